# src/crawler/managers/progress_manager.py
import sys
from typing import Optional

from tqdm import tqdm
import logging

logger = logging.getLogger(__name__)


class ProgressManager:
    """
    Manages the complete lifecycle of a tqdm progress bar.
    A disabled manager keeps the same interface and renders nothing.
    """

    def __init__(
            self,
            total: int,
            desc: str,
            unit: str = "it",
            max_pages: Optional[int] = None,
            enabled: bool = True,
    ):
        """
        Initializes and displays the progress bar.

        Args:
            total: Initial total of items (URLs) to process.
            max_pages: Optional limit on pages to fetch.
            enabled: False creates no bar; every method becomes a no-op.
        """
        if total <= 0:
            total = 1

        self.max_pages = max_pages
        self.pbar: Optional[tqdm] = None
        if not enabled:
            return

        self.pbar = tqdm(
            total=total,
            desc=desc,
            unit=f" {unit}",
            dynamic_ncols=True,
            smoothing=0.1,
            mininterval=0.5,
            postfix={"pages": "0", "failures": 0},
            bar_format="{l_bar}{bar}| {n_fmt}/{total_fmt} [{elapsed}<{remaining}, {rate_fmt}] {postfix}",
            file=sys.stderr,
        )

    def advance(self, steps: int = 1, pages_count: int = None, failures_count: int = None):
        """
        Increments the progress bar (steps = processed URLs) and updates status counters.
        """
        if not self.pbar:
            return
        self.pbar.update(steps)

        current_postfix = self.pbar.postfix if isinstance(self.pbar.postfix, dict) else {}
        updated = False

        if pages_count is not None:
            current_postfix["pages"] = f"{pages_count}/{self.max_pages}" if self.max_pages else str(pages_count)
            updated = True

        if failures_count is not None:
            current_postfix["failures"] = failures_count
            updated = True

        if updated:
            self.pbar.set_postfix(current_postfix, refresh=False)

    def set_total(self, new_total: int):
        """Sets the total of the progress bar (URLs found)."""
        if self.pbar:
            self.pbar.total = max(new_total, self.pbar.n)
            self.pbar.refresh()

    def close(self, final_pages: int, final_failures: int = 0, capped: bool = False):
        """
        Closes the progress bar with correct final status.

        Args:
            capped: True if the crawl stopped because max_pages was reached.
        """
        if not self.pbar:
            return

        try:
            final_pages_str = f"{final_pages}/capped" if capped and self.max_pages else str(final_pages)
            self.pbar.set_postfix({
                "pages": final_pages_str,
                "failures": final_failures
            }, refresh=True)

            self.pbar.close()
            logger.debug("ProgressManager: Progress bar closed.")
        except Exception as e:
            logger.error(f"Error encountered while closing progress bar: {e}")

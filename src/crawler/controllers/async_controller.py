import asyncio
import logging

logger = logging.getLogger(__name__)


class AsyncController:
    """
    Base class for asynchronous controllers.

    Provides the stop signal and resource cleanup for a long-running worker
    task. Subclasses set `_worker_task` when they start their pool.
    """

    def __init__(self):
        """Initializes the controller's state."""
        self._worker_task: asyncio.Task | None = None
        self.stop_crawl_event = asyncio.Event()

    async def shutdown(self):
        """Signals stop and cancels the worker task if it is still running."""
        self.stop_crawl_event.set()
        try:
            if self._worker_task and not self._worker_task.done():
                self._worker_task.cancel()
                try:
                    await self._worker_task
                except asyncio.CancelledError:
                    logger.debug("Worker task cancelled cleanly.")
        except Exception as e:
            logger.error("Error during controller shutdown: %s", e, exc_info=True)

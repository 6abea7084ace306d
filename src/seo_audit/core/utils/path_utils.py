# src/seo_audit/core/utils/path_utils.py
import logging
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)


class PathUtils:
    """
    A central utility for retrieving package paths and preparing output locations.
    """

    @staticmethod
    def get_package_root() -> Path:
        """Returns the directory of the installed seo_audit package."""
        return Path(__file__).resolve().parents[2]

    @staticmethod
    def get_default_settings_path() -> Path:
        return PathUtils.get_package_root() / "settings.json"

    @staticmethod
    def prepare_output_path(path: Union[str, Path]) -> Path:
        """
        Returns `path` as an absolute Path, creating its parent directory if needed.
        """
        target = Path(path).expanduser().resolve()
        if not target.parent.exists():
            target.parent.mkdir(parents=True, exist_ok=True)
            logger.debug("Created output directory %s", target.parent)
        return target

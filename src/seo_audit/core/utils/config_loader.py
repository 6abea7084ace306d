import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from seo_audit.core.utils.path_utils import PathUtils
from seo_audit.exceptions import ConfigError

logger = logging.getLogger(__name__)


def load_config(path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Loads settings from a JSON file.

    Without a path the settings.json shipped with the package is used; a missing
    default file yields an empty config. An explicitly given path must exist and
    contain a JSON object, otherwise ConfigError is raised.
    """
    if path is None:
        config_path = PathUtils.get_default_settings_path()
        if not config_path.exists():
            logger.warning("Configuration file 'settings.json' not found at %s. Using empty config.", config_path)
            return {}
    else:
        config_path = Path(path)
        if not config_path.is_file():
            raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigError(f"Failed to load {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{config_path} must contain a JSON object, got {type(data).__name__}")
    logger.debug("Loaded settings from %s", config_path)
    return data


def get_nested(config: Dict[str, Any], key_path: str, default: Optional[Any] = None) -> Any:
    """
    Safely retrieves a nested value from a config dictionary.

    Uses a dot as a separator, e.g., 'crawler.max_pages'.
    Returns `default` when any part of the path is missing or the value is None.
    """
    value: Any = config
    for key in key_path.split('.'):
        if isinstance(value, dict):
            value = value.get(key)
        else:
            return default

    return value if value is not None else default

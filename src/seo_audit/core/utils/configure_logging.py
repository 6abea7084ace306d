import logging
import sys
from typing import Dict, Optional, Union

from tqdm import tqdm

LOG_FORMAT = "%(asctime)s - %(levelname)s - [%(name)s:%(lineno)d] - %(message)s"


class LogWithTqdm(logging.Handler):
    """
    A custom logging handler that redirects logging output to `tqdm.write()`,
    ensuring that log messages do not interfere with the progress bar display.
    """
    def emit(self, record):
        try:
            msg = self.format(record)
            tqdm.write(msg, file=sys.stderr)
            self.flush()
        except Exception:
            self.handleError(record)


def _to_level(level: Union[str, int], fallback: int) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), fallback)
    return level


def configure_logger(
        general_level: Union[str, int] = 'INFO',
        module_specific_levels: Optional[Dict[str, Union[str, int]]] = None,
        silenced_loggers: Optional[Dict[str, Union[str, int]]] = None,
) -> logging.Logger:
    """
    Configures the root logger and specific module loggers with a
    TQDM-friendly handler. Returns the root logger.
    """
    tqdm_aware_handler = LogWithTqdm()
    tqdm_aware_handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root_logger = logging.getLogger()
    root_logger.setLevel(_to_level(general_level, logging.INFO))

    # Replace handlers so repeated CLI invocations in one process do not duplicate output.
    root_logger.handlers.clear()
    root_logger.addHandler(tqdm_aware_handler)

    for name, level in (module_specific_levels or {}).items():
        logging.getLogger(name).setLevel(_to_level(level, logging.INFO))

    for name, level in (silenced_loggers or {}).items():
        logging.getLogger(name).setLevel(_to_level(level, logging.CRITICAL))

    return root_logger

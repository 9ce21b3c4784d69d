"""
Loguru setup for interactive evaluation sessions.

The harness logs through loguru. PyMC and PyTensor log through the standard
``logging`` module, so their level is moved together with the loguru sink:
sampler chatter only appears when the harness itself is at DEBUG.
"""

import logging
import sys

from loguru import logger

from sgpbench.config import HarnessSettings

# Standard-library loggers used by the modelling backends
BACKEND_LOGGERS = ("pymc", "pytensor")

_PLAIN_FORMAT = "<level>{level: <8}</level> | {message}"
_TIMED_FORMAT = "<green>{time:HH:mm:ss}</green> | " + _PLAIN_FORMAT


def configure_notebook_logging(level: str = "INFO", show_time: bool = False):
    """
    Replace loguru's default sink with a compact stderr sink at ``level``.

    Args:
        level: Loguru level name for harness messages
        show_time: Prefix each line with HH:mm:ss

    Example:
        ```python
        from sgpbench.utils import configure_notebook_logging

        configure_notebook_logging(level="INFO")
        # INFO     | ARIMA(2, 1, 0) fitted on 80 observations in 0.05s
        # INFO     | arima: RMSE=0.6231, MAE=0.5012, coverage=0.94
        ```
    """
    logger.remove()
    logger.add(
        sys.stderr,
        format=_TIMED_FORMAT if show_time else _PLAIN_FORMAT,
        level=level,
        colorize=True,
    )
    debugging = level.upper() in ("DEBUG", "TRACE")
    _set_backend_level("INFO" if debugging else "WARNING")


def configure_from_settings(settings: HarnessSettings):
    """Configure logging at ``settings.log_level``."""
    configure_notebook_logging(level=settings.log_level)


def quiet_library_logging():
    """
    Warnings and errors only, with backend loggers held at ERROR.

    Useful around long sensitivity sweeps, where one INFO line per fit would
    bury the summary table.
    """
    configure_notebook_logging(level="WARNING")
    _set_backend_level("ERROR")


def verbose_library_logging():
    """DEBUG with timestamps: per-step GP loss, per-entry sweep progress, sampler output."""
    configure_notebook_logging(level="DEBUG", show_time=True)


def _set_backend_level(level: str):
    for name in BACKEND_LOGGERS:
        logging.getLogger(name).setLevel(level)

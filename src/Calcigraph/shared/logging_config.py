"""
Logging setup for Calcigraph runs.

Every module logs through a `Calcigraph.<module path>` logger. `setup_logging`
attaches the handlers to the package logger once per run: the console, a
log file named after the run start time, and `app.log`, which only holds the
latest run. Locations and formats default to `Calcigraph.shared.constants`.

Usage:
    from Calcigraph.shared.logging_config import setup_logging
    setup_logging(dev_mode=True, log_dir="runs/logs")
"""
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from Calcigraph.shared import constants

PACKAGE_LOGGER = 'Calcigraph'


def _make_handler(handler: logging.Handler, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(dev_mode: bool = False,
                  log_dir: Optional[Union[str, Path]] = None,
                  log_filename: Optional[str] = None,
                  console: bool = True) -> logging.Logger:
    """
    Configure the Calcigraph package logger.

    Calling it again replaces the handlers of the previous call.

    Args:
        dev_mode: DEBUG level everywhere, with file and line of each record.
        log_dir: Directory of the log files. Defaults to `constants.LOG_DIR`.
        log_filename: Name of the per-run log file. Defaults to a timestamped name.
        console: Also log to stdout.

    Returns:
        The package logger.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.DEBUG)

    level = logging.DEBUG if dev_mode else logging.INFO
    formatter = logging.Formatter(constants.DEV_LOG_FORMAT if dev_mode else constants.LOG_FORMAT)

    log_dir = Path(log_dir) if log_dir else constants.LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)
    if not log_filename:
        log_filename = f"calcigraph_{datetime.now():%Y-%m-%d_%H-%M-%S}.log"
    run_log = log_dir / log_filename

    if console:
        logger.addHandler(_make_handler(logging.StreamHandler(sys.stdout), level, formatter))
    logger.addHandler(_make_handler(logging.FileHandler(run_log), level, formatter))
    logger.addHandler(_make_handler(
        logging.FileHandler(log_dir / constants.LATEST_LOG_NAME, mode='w'), level, formatter))

    logger.info(f"Calcigraph logging initialized ({'development' if dev_mode else 'production'} mode)")
    logger.info(f"Log file: {run_log}")
    return logger


def get_logger(name: str) -> logging.Logger:
    """Logger `name`, placed under the Calcigraph namespace if it is not already."""
    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + '.'):
        name = f'{PACKAGE_LOGGER}.{name}'
    return logging.getLogger(name)

"""
Log handlers for applications embedding sales_core.

Repository modules only create ``logging.getLogger(__name__)`` loggers;
nothing is written anywhere until the host application calls
``setup_logging()``, which attaches:
- a size-rotated file (WARNING and above by default)
- a console handler that only shows CRITICAL records
"""
import logging
import logging.handlers
from datetime import date
from pathlib import Path
from typing import Optional, Union

APP_LOGGER_NAME = "sales_core"

FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUPS = 3


def log_file_path(log_dir: Path, app_name: str = APP_LOGGER_NAME, day: Optional[date] = None) -> Path:
    """<log_dir>/<app_name>_YYYYMMDD.log"""
    day = day or date.today()
    return log_dir / f"{app_name}_{day:%Y%m%d}.log"


def _file_handler(log_file: Path, level: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        log_file, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=FILE_DATE_FORMAT))
    return handler


def _console_handler() -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setLevel(logging.CRITICAL)
    handler.setFormatter(logging.Formatter("CRITICAL: %(message)s"))
    return handler


def setup_logging(
    log_dir: Union[str, Path, None] = None,
    app_name: str = APP_LOGGER_NAME,
    file_level: int = logging.WARNING,
) -> logging.Logger:
    """
    Configure the ``app_name`` logger once.

    Args:
        log_dir: Where the log file goes; defaults to ``paths.get_logs_dir()``.
        app_name: Logger name and log file prefix. Using the package name
                  captures every ``sales_core.*`` module logger.
        file_level: Lowest level written to the file.

    A logger that already has handlers is returned unchanged, so repeated
    calls never duplicate output.
    """
    logger = logging.getLogger(app_name)
    if logger.handlers:
        return logger

    if log_dir is None:
        from .paths import get_logs_dir  # noqa: PLC0415
        log_dir = get_logs_dir()
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    logger.setLevel(logging.DEBUG)
    logger.addHandler(_file_handler(log_file_path(log_dir, app_name), file_level))
    logger.addHandler(_console_handler())
    return logger


def shutdown_logging(app_name: str = APP_LOGGER_NAME) -> None:
    """Close and detach every handler installed on the ``app_name`` logger."""
    logger = logging.getLogger(app_name)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

"""Logging for the pool service and CLI.

All modules log through ``log``. Lines look like::

    10-19 14:03:27 [INFO] Search completed: total=57 rows=20 elapsed=412ms

uvicorn's own loggers share the handlers so request lines and application
lines interleave in one stream.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Final

LOG_FORMAT: Final = "%(asctime)s [%(levelabbr)s] %(message)s"
DATE_FORMAT: Final = "%m-%d %H:%M:%S"

_LEVEL_TAGS: Final[dict[int, str]] = {
    logging.DEBUG: "DEBG",
    logging.INFO: "INFO",
    logging.WARNING: "WARN",
    logging.ERROR: "ERRO",
    logging.CRITICAL: "ERRO",
}

_SHARED_LOGGERS: Final = ("uvicorn", "uvicorn.error", "uvicorn.access")

log = logging.getLogger("WorldcatPool")


class _LevelTagFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # noqa: A003
        record.levelabbr = _LEVEL_TAGS.get(record.levelno, record.levelname[:4])
        return super().format(record)


def _file_handler(log_dir: str, action: str) -> logging.Handler:
    """Open ``<log_dir>/<action>/<action>_<mmddHHMMSS>.log``."""
    action_dir = Path(log_dir or "log") / action
    action_dir.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now().strftime("%m%d%H%M%S")
    handler = logging.FileHandler(action_dir / f"{action}_{stamp}.log", encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    return handler


def configure_logging(
    *,
    level: str = "INFO",
    action: str | None = None,
    log_to_file: bool = False,
    log_dir: str = "log",
) -> None:
    """Install handlers on the package logger and the uvicorn loggers.

    Calling it again replaces the handlers from the previous call.

    Args:
        level: Console level name (DEBUG, INFO, ...).
        action: CLI command name; names the log file directory.
        log_to_file: Also write every record, DEBUG included, to a file.
        log_dir: Base directory for log files.
    """
    console_level = getattr(logging, (level or "INFO").upper(), logging.INFO)
    formatter = _LevelTagFormatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler()
    console.setLevel(console_level)
    handlers: list[logging.Handler] = [console]
    if log_to_file and action:
        handlers.append(_file_handler(log_dir, action))
    for handler in handlers:
        handler.setFormatter(formatter)

    for logger in (log, *(logging.getLogger(name) for name in _SHARED_LOGGERS)):
        logger.handlers[:] = handlers
        logger.propagate = False
    # file handler wants DEBUG even when the console does not
    log.setLevel(logging.DEBUG if log_to_file else console_level)

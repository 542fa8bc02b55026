# buildcore/logging_setup.py
from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

LOG_FILE_NAME = "buildcore.log"
LOG_MAX_BYTES = 1_000_000
LOG_BACKUP_COUNT = 3

FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
CONSOLE_FORMAT = "[%(levelname)s] %(name)s - %(message)s"

# Connection pool chatter from share link fetches
NOISY_LOGGERS = ("urllib3", "requests")


def _build_handlers(log_file: Path, level: int) -> List[logging.Handler]:
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=LOG_MAX_BYTES,
        backupCount=LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT))

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))

    handlers: List[logging.Handler] = [file_handler, console_handler]
    for handler in handlers:
        handler.setLevel(level)
    return handlers


def setup_logging(debug: bool = False, log_dir: Optional[Path] = None) -> Path:
    """
    Configure logging for a process that imports builds.

    Writes to <log_dir>/buildcore.log (rotating) and stderr. Calling it again
    replaces the handlers of the previous call. HTTP client loggers stay at
    WARNING unless debug is on.

    Returns the log file path.
    """
    log_dir = log_dir or Path.home() / ".pob_buildcore"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    level = logging.DEBUG if debug else logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()
    for handler in _build_handlers(log_file, level):
        root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if debug else logging.WARNING)

    root_logger.info(f"Logging initialized ({logging.getLevelName(level)}), file: {log_file}")
    return log_file

"""Logging configuration and setup.

Thread-safe logging configuration with file rotation and console output.
Brand-level messages are prefixed with ``[brand-slug]`` by their callers.
"""

import logging
import sys
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path

from src.shared.constants import LOGGING

__all__ = [
    'setup_logging',
]


# Brands run on worker threads; guard handler setup against duplicates
_logging_lock = threading.Lock()


def _is_console_handler(handler: logging.Handler) -> bool:
    """True for a StreamHandler writing to the process's stdout or stderr.

    Capture handlers installed by test runners and other in-memory
    StreamHandlers write to their own buffers and do not count.
    """
    if not isinstance(handler, logging.StreamHandler) or isinstance(handler, logging.FileHandler):
        return False
    console_streams = (sys.stdout, sys.stderr, sys.__stdout__, sys.__stderr__)
    return any(handler.stream is stream for stream in console_streams if stream is not None)


def _claim_file_handler(root_logger: logging.Logger, log_path: Path,
                        max_bytes: int, backup_count: int) -> bool:
    """Reuse a matching rotating handler for log_path, dropping stale ones.

    Returns:
        True if a handler with the requested rotation settings is installed
    """
    target = str(log_path.absolute())
    for handler in root_logger.handlers[:]:
        if not isinstance(handler, RotatingFileHandler) or handler.baseFilename != target:
            continue
        if handler.maxBytes == max_bytes and handler.backupCount == backup_count:
            return True
        root_logger.removeHandler(handler)
        handler.close()
    return False


def setup_logging(
    log_file: str = LOGGING.LOG_FILE,
    max_bytes: int = LOGGING.MAX_BYTES,
    backup_count: int = LOGGING.BACKUP_COUNT,
    level: int = logging.INFO,
) -> None:
    """Install a rotating file handler and a console handler on the root logger.

    Safe to call repeatedly and from several threads: existing handlers for
    the same file (with the same rotation) or the same console are reused.

    Args:
        log_file: Path to log file
        max_bytes: Maximum file size before rotation
        backup_count: Number of rotated files to keep
        level: Root logger level
    """
    formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(threadName)s - %(message)s')
    log_path = Path(log_file)

    with _logging_lock:
        root_logger = logging.getLogger()
        root_logger.setLevel(level)

        if not _claim_file_handler(root_logger, log_path, max_bytes, backup_count):
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding='utf-8',
            )
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

        if not any(_is_console_handler(h) for h in root_logger.handlers):
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(formatter)
            root_logger.addHandler(console_handler)

        # urllib3 logs every connection at DEBUG/INFO
        logging.getLogger("urllib3").setLevel(logging.WARNING)

"""
Logging system for Janitarr.
Supports colored console output and an optional log file.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

LOG_FORMAT = '%(asctime)s | %(levelname)s | %(name)s | %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class ColorFormatter(logging.Formatter):
    """Colored formatter for console output."""

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        # Copy so the file handler still sees the plain level name
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{color}{record.levelname:8}{self.RESET}"
        return super().format(record)


class Logger:
    """
    Logging setup for one process.

    Handlers are attached to the `janitarr` logger rather than the root, so
    creating a second Logger (as tests do) replaces the first one's handlers
    instead of stacking them.
    """

    ROOT_NAME = "janitarr"

    def __init__(self, log_dir: Optional[str] = None, debug: bool = False, console: bool = True):
        self.debug = debug
        self.log_dir = Path(log_dir) if log_dir else None
        level = logging.DEBUG if debug else logging.INFO

        root = logging.getLogger(self.ROOT_NAME)
        root.setLevel(logging.DEBUG)
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()

        # Console handler with colors
        if console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(level)
            console_handler.setFormatter(ColorFormatter(LOG_FORMAT, datefmt=DATE_FORMAT))
            root.addHandler(console_handler)

        # File handler
        self.log_file = None
        if self.log_dir is not None:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            self.log_file = self.log_dir / "janitarr.log"
            file_handler = logging.FileHandler(self.log_file)
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
            root.addHandler(file_handler)

        self._root = root

    def get_logger(self, name: str) -> logging.Logger:
        """Get a named logger."""
        return logging.getLogger(f"{self.ROOT_NAME}.{name}")

    def close(self):
        """Detach and close this instance's handlers."""
        for handler in list(self._root.handlers):
            self._root.removeHandler(handler)
            handler.close()

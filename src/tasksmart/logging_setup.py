# src/tasksmart/logging_setup.py

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

# Third-party loggers that only matter when something is broken.
_THIRD_PARTY_LEVELS = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "openai": logging.WARNING,
}


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the REPL readable while tasks are being typed:
    - tasksmart logs pass, except the SQLite stores (WARNING+ only;
      every get/set would otherwise print)
    - everything else, Python warnings included, only at ERROR+
    """

    _QUIET_PREFIXES = (
        "tasksmart.tasks.kv_store",
        "tasksmart.tasks.account_repo",
        "tasksmart.llm.usage",
    )

    def filter(self, record: logging.LogRecord) -> bool:
        if not record.name.startswith("tasksmart."):
            return record.levelno >= logging.ERROR
        if record.name.startswith(self._QUIET_PREFIXES):
            return record.levelno >= logging.WARNING
        return True


def setup_logging(
    *,
    log_dir: str | Path = ".local/tasksmart",
    file_name: str = "tasksmart.log",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    max_bytes: int = 2 * 1024 * 1024,
    backup_count: int = 3,
) -> Path:
    """
    Configure root logging once, before the app is built.

    Console: filtered for interactive use. File: everything at file_level,
    rotated at max_bytes. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / file_name

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    file_handler = RotatingFileHandler(
        str(log_file), maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    logging.captureWarnings(True)

    for name, level in _THIRD_PARTY_LEVELS.items():
        logging.getLogger(name).setLevel(level)

    return log_file

# src/tact/logging_setup.py

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable
from pathlib import Path

APP_LOGGER_PREFIX = "tact."
LOG_FILE_NAME = "tact.log"


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the interactive console readable while the prompt is waiting:
    - tact records pass, except those emitted from a background thread listed
      in `quiet_threads` (the sync watcher reports every signal it sees),
      which need WARNING+
    - third-party and captured Python warnings need ERROR+
    """

    def __init__(self, quiet_threads: Iterable[str] = ()) -> None:
        super().__init__()
        self.quiet_threads = frozenset(quiet_threads)

    def filter(self, record: logging.LogRecord) -> bool:
        if record.threadName in self.quiet_threads:
            return record.levelno >= logging.WARNING

        if record.name.startswith(APP_LOGGER_PREFIX):
            return True

        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/tact",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    quiet_threads: Iterable[str] = (),
) -> Path:
    """
    Configure logging with:
    - Console handler: readable + filtered for interactive use
    - File handler: everything, including the quiet threads

    Call this ONCE, very early (before first logger.info).
    Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(min(console_level, file_level))

    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s [%(threadName)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    ch.addFilter(_ConsoleNoiseFilter(quiet_threads))
    root.addHandler(ch)

    fh = logging.FileHandler(str(log_file), encoding="utf-8")
    fh.setLevel(file_level)
    fh.setFormatter(fmt)
    root.addHandler(fh)

    logging.captureWarnings(True)

    # watchdog logs its inotify bookkeeping at DEBUG.
    logging.getLogger("watchdog").setLevel(logging.WARNING)
    return log_file

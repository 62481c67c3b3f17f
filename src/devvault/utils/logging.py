"""Logging bootstrap for the DevVault desktop client.

Log records go to ``~/.devvault/logs/devvault.log`` (``DEVVAULT_LOG_DIR``
overrides the directory) through a rotating handler, and optionally to stderr.
The debug toggle in settings is applied later with :func:`set_level`, which
adjusts the installed handlers instead of rebuilding them.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path

__all__ = ["setup_logging", "set_level", "get_log_path"]

LOG_DIR_ENV = "DEVVAULT_LOG_DIR"
LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"

_LOG_FILENAME = "devvault.log"
# Libraries that log every request or loop tick at INFO/DEBUG.
_QUIET_LIBRARIES = ("asyncio", "qasync", "httpx", "httpcore")

_log_path: Path | None = None


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    max_bytes: int = 512_000,
    backup_count: int = 5,
    force: bool = False,
) -> Path:
    """Install the file and console handlers on the root logger.

    Repeated calls are no-ops returning the active log path unless ``force``
    is set, in which case the previous handlers are replaced.
    """

    global _log_path
    if _log_path is not None and not force:
        return _log_path

    directory = Path(log_dir or os.environ.get(LOG_DIR_ENV) or Path.home() / ".devvault" / "logs")
    directory = directory.expanduser()
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / _LOG_FILENAME

    formatter = logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT)
    rotating = logging.handlers.RotatingFileHandler(
        path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    handlers: list[logging.Handler] = [rotating]
    if console:
        handlers.append(logging.StreamHandler())
    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)
    set_level(level)

    _log_path = path
    return path


def set_level(level: int) -> None:
    """Change the verbosity of an already configured root logger."""

    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers:
        handler.setLevel(level)
    library_level = max(level, logging.WARNING)
    for name in _QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(library_level)


def get_log_path() -> Path | None:
    """Path of the active log file, or ``None`` before :func:`setup_logging`."""

    return _log_path

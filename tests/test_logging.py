"""Tests for the logging bootstrap helpers."""

from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path

import pytest

from devvault.utils import logging as logging_utils


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_setup_logging_writes_rotating_file(tmp_path: Path) -> None:
    path = logging_utils.setup_logging(logging.DEBUG, log_dir=tmp_path, console=False, force=True)

    logging.getLogger("devvault.test").info("hello from the workspace")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert path == tmp_path / "devvault.log"
    assert logging_utils.get_log_path() == path
    assert "hello from the workspace" in path.read_text(encoding="utf-8")
    assert any(isinstance(h, logging.handlers.RotatingFileHandler) for h in logging.getLogger().handlers)


def test_log_dir_env_override(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DEVVAULT_LOG_DIR", str(tmp_path / "custom"))

    path = logging_utils.setup_logging(logging.INFO, console=False, force=True)

    assert path.parent == tmp_path / "custom"


def test_noisy_loggers_are_quieted(tmp_path: Path) -> None:
    logging_utils.setup_logging(logging.DEBUG, log_dir=tmp_path, console=False, force=True)

    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("qasync").level == logging.WARNING


def test_set_level_updates_root_and_handlers(tmp_path: Path) -> None:
    logging_utils.setup_logging(logging.INFO, log_dir=tmp_path, console=False, force=True)

    logging_utils.set_level(logging.DEBUG)

    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert all(handler.level == logging.DEBUG for handler in root.handlers)

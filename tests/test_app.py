"""Tests covering the application bootstrap helpers."""

from __future__ import annotations

import asyncio
import io
import json
import logging
from pathlib import Path

import pytest

from devvault import app
from devvault.services.http_repository import HttpItemRepository
from devvault.services.repository import InMemoryItemRepository
from devvault.services.settings import Settings, SettingsStore
from devvault.workspace.tabs import TabKind


def test_drain_event_loop_cancels_pending_tasks() -> None:
    loop = asyncio.new_event_loop()

    cancellation_flag = {"called": False}

    async def pending() -> None:
        try:
            await asyncio.sleep(0.1)
        except asyncio.CancelledError:  # pragma: no cover - cancellation path exercised
            cancellation_flag["called"] = True
            raise

    loop.create_task(pending())

    try:
        app._drain_event_loop(loop)
        assert cancellation_flag["called"] is True
    finally:
        loop.close()


def test_drain_event_loop_ignores_closed_loop() -> None:
    loop = asyncio.new_event_loop()
    loop.close()

    app._drain_event_loop(loop)


def test_build_repository_picks_backend() -> None:
    memory = app.build_repository(Settings(repository_backend="memory"))
    assert isinstance(memory, InMemoryItemRepository)


@pytest.mark.asyncio
async def test_build_repository_http_backend_uses_settings() -> None:
    repository = app.build_repository(Settings(base_url="http://vault.test/api", api_token="t"))

    try:
        assert isinstance(repository, HttpItemRepository)
    finally:
        await repository.aclose()


def test_build_session_starts_with_a_new_tab() -> None:
    session = app.build_session(Settings(repository_backend="memory"))

    assert session.registry.tab_count() == 1
    assert session.registry.active_tab is not None
    assert session.registry.active_tab.kind is TabKind.NEW


@pytest.mark.asyncio
async def test_shutdown_session_closes_repository() -> None:
    closed: list[bool] = []

    class _Repository(InMemoryItemRepository):
        async def aclose(self) -> None:
            closed.append(True)

    session = app.build_session(Settings(repository_backend="memory"), repository=_Repository())

    await app._shutdown_session(session)

    assert closed == [True]


def test_coerce_cli_overrides_casts_types() -> None:
    overrides = app._coerce_cli_overrides(
        [
            "base_url=https://cli",
            "autosave_enabled=off",
            "max_retries=3",
            "autosave_delay=0.25",
        ]
    )

    assert overrides["base_url"] == "https://cli"
    assert overrides["autosave_enabled"] is False
    assert overrides["max_retries"] == 3
    assert overrides["autosave_delay"] == pytest.approx(0.25)


@pytest.mark.parametrize("entry", ["not_a_setting=value", "missing-separator", "=x", "compact_mode=maybe"])
def test_coerce_cli_overrides_rejects_bad_entries(entry: str) -> None:
    with pytest.raises(ValueError):
        app._coerce_cli_overrides([entry])


def test_dump_settings_redacts_api_token(tmp_path: Path) -> None:
    settings = Settings(api_token="super-secret-token", base_url="https://example.com")
    store = SettingsStore(tmp_path / "settings.json")
    buffer = io.StringIO()

    app._dump_settings(settings, store, overrides={"base_url": "https://cli"}, stream=buffer)

    payload = json.loads(buffer.getvalue())
    assert "super-secret-token" not in payload["settings"]["api_token"]
    assert payload["meta"]["secret_backend"] == store.vault.name
    assert payload["meta"]["cli_overrides"] == ["base_url"]


def test_main_dump_settings_applies_cli_overrides(
    tmp_path: Path, capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(app.sys, "argv", ["devvault"])
    monkeypatch.setattr(app, "configure_logging", lambda *args, **kwargs: None)
    settings_path = tmp_path / "settings.json"

    app.main(["--settings", str(settings_path), "--set", "locale=ru", "--dump-settings"])

    payload = json.loads(capsys.readouterr().out)
    assert payload["settings"]["locale"] == "ru"
    assert payload["meta"]["path"] == str(settings_path)


def test_main_rejects_invalid_override(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(app.sys, "argv", ["devvault"])
    monkeypatch.setattr(app, "configure_logging", lambda *args, **kwargs: None)
    with pytest.raises(SystemExit) as excinfo:
        app.main(["--settings", str(tmp_path / "s.json"), "--set", "nope"])

    assert excinfo.value.code == 2


def test_debug_logging_setting_raises_level_in_place(monkeypatch: pytest.MonkeyPatch) -> None:
    levels: list[int] = []
    monkeypatch.setattr(app.logging_utils, "set_level", levels.append)

    app._apply_logging_settings(Settings(debug_logging=False), debug=False)
    app._apply_logging_settings(Settings(debug_logging=True), debug=True)
    assert levels == []

    app._apply_logging_settings(Settings(debug_logging=True), debug=False)
    assert levels == [logging.DEBUG]

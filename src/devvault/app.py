"""Application bootstrap helpers for the DevVault desktop app."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import os
import sys
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, TextIO, cast, get_type_hints

from .services.http_repository import HttpItemRepository, HttpRepositorySettings
from .services.repository import InMemoryItemRepository, ItemRepository
from .services.settings import Settings, SettingsStore, redact_secret
from .ui.tab_strip import TabStrip
from .utils import logging as logging_utils
from .workspace.session import WorkspaceSession

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
_LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class QtRuntime:
    """Container returned by :func:`create_qapp`."""

    app: Any
    loop: asyncio.AbstractEventLoop


def configure_logging(debug: bool = False, *, force: bool = False) -> None:
    """Configure structured logging for the application."""

    level = logging.DEBUG if debug else logging.INFO
    logging_utils.setup_logging(level, force=force)
    _LOGGER.debug("Logging configured (level=%s)", logging.getLevelName(level))
    _install_qt_message_handler()


def _apply_logging_settings(settings: Settings, *, debug: bool) -> None:
    if settings.debug_logging and not debug:
        logging_utils.set_level(logging.DEBUG)
        _LOGGER.debug("Debug logging enabled from settings (log file: %s)", logging_utils.get_log_path())


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        settings = active_store.load(overrides=overrides)
    except (OSError, ValueError) as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        settings = Settings()
    return settings


def build_repository(settings: Settings) -> ItemRepository:
    """Pick the item repository backend configured in ``settings``."""

    if settings.repository_backend == "memory":
        _LOGGER.info("Using in-memory item repository; nothing will be persisted.")
        return InMemoryItemRepository()
    http_settings = HttpRepositorySettings(
        base_url=settings.base_url,
        api_token=settings.api_token,
        request_timeout=settings.request_timeout,
        max_retries=settings.max_retries,
        retry_min_seconds=settings.retry_min_seconds,
        retry_max_seconds=settings.retry_max_seconds,
    )
    _LOGGER.info("Using HTTP item repository at %s", settings.base_url)
    return HttpItemRepository(http_settings)


def create_qapp(settings: Settings) -> QtRuntime:
    """Create a qasync-powered QApplication instance."""

    try:  # Local import to avoid mandatory PySide6 dependency at import time.
        from PySide6.QtWidgets import QApplication
    except ImportError as exc:  # pragma: no cover - depends on desktop stack
        raise RuntimeError("PySide6 must be installed to launch the DevVault UI.") from exc

    try:
        from qasync import QEventLoop
    except ImportError as exc:  # pragma: no cover - depends on env setup
        raise RuntimeError("qasync is required to run the async Qt event loop.") from exc

    os.environ.setdefault("QT_ENABLE_HIGHDPI_SCALING", "1")
    app = cast(Any, QApplication.instance() or QApplication(sys.argv))
    app.setApplicationName("DevVault")
    app.setApplicationDisplayName("DevVault")

    loop = QEventLoop(app)
    asyncio.set_event_loop(loop)
    try:
        app.aboutToQuit.connect(loop.stop)  # type: ignore[attr-defined]
    except AttributeError:  # pragma: no cover - in case of mock QApplication
        pass

    if (settings.theme or "").lower() == "dark":
        try:
            app.setStyle("Fusion")
        except Exception:  # pragma: no cover - style availability varies
            _LOGGER.debug("Fusion style unavailable; continuing with default theme.")

    return QtRuntime(app=app, loop=loop)


def build_session(
    settings: Settings,
    *,
    repository: ItemRepository | None = None,
    loop: asyncio.AbstractEventLoop | None = None,
) -> WorkspaceSession:
    session = WorkspaceSession(
        repository=repository or build_repository(settings),
        settings=settings,
        loop=loop,
    )
    session.registry.open_new_tab()
    return session


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point invoked by the `devvault` console script."""

    args, passthrough = _parse_cli_args(argv)
    _rewrite_sys_argv(passthrough)

    debug = _env_flag("DEVVAULT_DEBUG", default=False)
    configure_logging(debug)

    settings_path = args.settings_path or os.environ.get("DEVVAULT_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings_store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        raise SystemExit(2) from exc

    settings = load_settings(resolved_path, store=settings_store, overrides=cli_overrides or None)

    if args.dump_settings:
        _dump_settings(settings, settings_store, overrides=cli_overrides)
        return

    _apply_logging_settings(settings, debug=debug)

    runtime = create_qapp(settings)
    loop = runtime.loop
    session = build_session(settings, loop=loop)
    strip = TabStrip(session.registry)
    window = _build_window(strip)
    if window is not None:
        window.show()

    try:
        loop.run_forever()
    except KeyboardInterrupt:  # pragma: no cover - manual shutdown path
        _LOGGER.info("Shutdown requested by user.")
    finally:
        strip.detach()
        with contextlib.suppress(RuntimeError):
            loop.run_until_complete(_shutdown_session(session))
        _drain_event_loop(loop)
        loop.close()


def _build_window(strip: TabStrip) -> Any | None:  # pragma: no cover - Qt specific
    bar = strip.widget()
    if bar is None:
        return None
    from PySide6.QtWidgets import QVBoxLayout, QWidget

    window = QWidget()
    window.setObjectName("dv-main-window")
    window.setWindowTitle("DevVault")
    layout = QVBoxLayout(window)
    layout.setContentsMargins(0, 0, 0, 0)
    layout.addWidget(bar)
    layout.addStretch(1)
    window.resize(1100, 720)
    return window


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


async def _shutdown_session(session: WorkspaceSession) -> None:
    """Dispose editors and release the repository's network resources."""

    try:
        await session.aclose()
    except Exception as exc:  # pragma: no cover - defensive logging
        _LOGGER.debug("Workspace session shutdown failed: %s", exc)


def _drain_event_loop(loop: asyncio.AbstractEventLoop) -> None:
    """Cancel outstanding tasks and shutdown async machinery before closing."""

    if loop.is_closed():
        return

    async def _cleanup() -> None:
        current_task = None
        with contextlib.suppress(RuntimeError):
            current_task = asyncio.current_task(loop=loop)

        tasks = [task for task in asyncio.all_tasks(loop) if not task.done() and task is not current_task]
        if tasks:
            _LOGGER.debug("Canceling %s pending asyncio task(s) before shutdown.", len(tasks))
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        for step in (getattr(loop, "shutdown_asyncgens", None), getattr(loop, "shutdown_default_executor", None)):
            if step is None:
                continue
            with contextlib.suppress(RuntimeError, NotImplementedError):
                await step()

    try:
        loop.run_until_complete(_cleanup())
    except RuntimeError as exc:  # pragma: no cover - defensive guard
        _LOGGER.debug("Unable to drain asyncio loop: %s", exc)


def _install_qt_message_handler() -> None:
    """Redirect Qt warnings to the Python logging stack when available."""

    try:
        from PySide6.QtCore import QtMsgType, qInstallMessageHandler
    except Exception:  # pragma: no cover - PySide6 optional during tests
        return

    level_map = {
        QtMsgType.QtDebugMsg: logging.DEBUG,
        QtMsgType.QtInfoMsg: logging.INFO,
        QtMsgType.QtWarningMsg: logging.WARNING,
        QtMsgType.QtCriticalMsg: logging.ERROR,
        QtMsgType.QtFatalMsg: logging.CRITICAL,
    }

    def _handler(mode, context, message):  # type: ignore[no-untyped-def]
        del context
        logging.getLogger("PySide6").log(level_map.get(mode, logging.INFO), message)

    qInstallMessageHandler(_handler)


def _parse_cli_args(argv: Sequence[str] | None) -> tuple[argparse.Namespace, list[str]]:
    parser = argparse.ArgumentParser(
        prog="devvault",
        add_help=True,
        description="Launch the DevVault workspace or inspect its configuration.",
    )
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload (with secrets redacted) and exit.",
    )
    parser.add_argument(
        "--settings",
        dest="settings_path",
        metavar="PATH",
        help="Override the default ~/.devvault/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings before launch (repeatable).",
    )
    return parser.parse_known_args(argv)


def _rewrite_sys_argv(passthrough: Sequence[str]) -> None:
    program = sys.argv[0] if sys.argv else "devvault"
    sys.argv = [program, *passthrough]


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if not items:
        return overrides

    fields = Settings.__dataclass_fields__  # type: ignore[attr-defined]
    type_hints = get_type_hints(Settings)
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        if key not in fields:
            raise ValueError(f"Unknown setting '{key}'.")
        overrides[key] = _coerce_value(type_hints.get(key, str), raw_value.strip())
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    if annotation is bool:
        return _parse_bool(raw_value)
    if annotation is int:
        return int(raw_value, 10)
    if annotation is float:
        return float(raw_value)
    return raw_value


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    payload = asdict(settings)
    payload["api_token"] = redact_secret(payload.get("api_token", ""))
    metadata = {
        "path": str(store.path),
        "secret_backend": store.vault.name,
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": _active_env_overrides(),
    }
    json.dump({"settings": payload, "meta": metadata}, destination, indent=2, ensure_ascii=False)
    destination.write("\n")


def _active_env_overrides() -> list[str]:
    return sorted(name for name in os.environ if name.startswith("DEVVAULT_"))

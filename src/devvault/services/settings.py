"""Settings dataclasses and persistence helpers."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

from cryptography.fernet import Fernet, InvalidToken

__all__ = [
    "Settings",
    "SettingsStore",
    "SecretVault",
    "REPOSITORY_BACKENDS",
    "SUPPORTED_LOCALES",
    "normalize_settings",
    "redact_secret",
]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".devvault"
_DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
_SETTINGS_VERSION = 1
_API_TOKEN_FIELD = "api_token_ciphertext"
_ENV_OVERRIDES: Mapping[str, str] = {
    "DEVVAULT_REPOSITORY_BACKEND": "repository_backend",
    "DEVVAULT_BASE_URL": "base_url",
    "DEVVAULT_API_TOKEN": "api_token",
    "DEVVAULT_LOCALE": "locale",
    "DEVVAULT_THEME": "theme",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "DEVVAULT_AUTOSAVE": "autosave_enabled",
    "DEVVAULT_DEBUG_LOGGING": "debug_logging",
}
_FLOAT_ENV_OVERRIDES: Mapping[str, str] = {
    "DEVVAULT_REQUEST_TIMEOUT": "request_timeout",
    "DEVVAULT_AUTOSAVE_DELAY": "autosave_delay",
}
_INT_ENV_OVERRIDES: Mapping[str, str] = {
    "DEVVAULT_MAX_RETRIES": "max_retries",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
MIN_FONT_SIZE = 4
MAX_FONT_SIZE = 128
REPOSITORY_BACKENDS: tuple[str, ...] = ("http", "memory")
SUPPORTED_LOCALES: tuple[str, ...] = ("en", "ru")


@dataclass(slots=True)
class Settings:
    """User-configurable settings persisted between sessions."""

    repository_backend: str = "http"
    base_url: str = "http://127.0.0.1:7878/api"
    api_token: str = ""
    request_timeout: float = 10.0
    max_retries: int = 1
    retry_min_seconds: float = 0.25
    retry_max_seconds: float = 2.0
    autosave_enabled: bool = True
    autosave_delay: float = 0.5
    locale: str = "en"
    theme: str = "dark"
    editor_font_size: int = 14
    compact_mode: bool = False
    debug_logging: bool = False


class SecretVault:
    """Encrypts and decrypts sensitive strings with a Fernet key kept on disk."""

    name = "fernet"

    def __init__(self, *, key_path: Path | None = None) -> None:
        self._key_path = key_path or (_SETTINGS_DIR / "settings.key")
        self._fernet: Fernet | None = None

    @property
    def key_path(self) -> Path:
        return self._key_path

    def encrypt(self, secret: str) -> str:
        if not secret:
            return ""
        token = self._get_fernet().encrypt(secret.encode("utf-8"))
        return f"{self.name}:{token.decode('ascii')}"

    def decrypt(self, token: str | None) -> str:
        if not token:
            return ""
        prefix, _, payload = token.partition(":")
        if prefix != self.name or not payload:
            raise ValueError(f"Unknown secret token prefix {prefix!r}")
        try:
            raw = self._get_fernet().decrypt(payload.encode("ascii"))
        except InvalidToken as exc:
            raise ValueError("Invalid Fernet token") from exc
        return raw.decode("utf-8")

    def _get_fernet(self) -> Fernet:
        if self._fernet is None:
            self._fernet = Fernet(self._load_or_create_key())
        return self._fernet

    def _load_or_create_key(self) -> bytes:
        path = self._key_path
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.exists():
            return path.read_bytes().strip()
        key = Fernet.generate_key()
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_bytes(key)
        if os.name != "nt":  # pragma: no cover - depends on OS
            os.chmod(tmp_path, 0o600)
        tmp_path.replace(path)
        return key


class SettingsStore:
    """Persistence adapter for :class:`Settings`."""

    def __init__(self, path: Path | None = None, *, vault: SecretVault | None = None) -> None:
        self._path = path or _DEFAULT_SETTINGS_PATH
        self._vault = vault or SecretVault(key_path=self._path.with_suffix(".key"))

    @property
    def path(self) -> Path:
        """Return the resolved path backing this store."""

        return self._path

    @property
    def vault(self) -> SecretVault:
        return self._vault

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Load settings from disk, applying CLI/environment overrides when present."""

        payload = self._read_payload()
        settings = Settings()
        needs_migration = False

        if payload:
            plaintext_token, migrated = self._decrypt_api_token(
                payload.pop(_API_TOKEN_FIELD, None), payload.pop("api_token", None)
            )
            needs_migration = migrated
            data = _filter_fields(payload)
            try:
                settings = Settings(**data)
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = Settings()
            if plaintext_token:
                settings = replace(settings, api_token=plaintext_token)

        version_mismatch = bool(payload) and payload.get("version") != _SETTINGS_VERSION
        if needs_migration or version_mismatch:
            try:
                self.save(settings)
            except OSError as exc:  # pragma: no cover - defensive guard
                LOGGER.warning("Failed to migrate settings payload: %s", exc)

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="CLI")

        settings = self._apply_env_overrides(settings)
        return normalize_settings(settings)

    def save(self, settings: Settings) -> Path:
        """Persist settings to disk with atomic file writes."""

        payload = self._serialize(settings)
        body = json.dumps(payload, indent=2, sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._path)
        LOGGER.debug("Settings saved to %s (backend=%s)", self._path, settings.repository_backend)
        return self._path

    def _serialize(self, settings: Settings) -> Dict[str, Any]:
        data = asdict(settings)
        api_token = data.pop("api_token", "") or ""
        if api_token:
            data[_API_TOKEN_FIELD] = self._vault.encrypt(api_token)
        data["version"] = _SETTINGS_VERSION
        return data

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            text = self._path.read_text(encoding="utf-8")
            data = json.loads(text)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(data, dict):
            LOGGER.warning("Settings file %s does not contain an object", self._path)
            return {}
        return data

    def _decrypt_api_token(self, ciphertext: str | None, legacy_plaintext: str | None) -> tuple[str, bool]:
        if ciphertext:
            try:
                return self._vault.decrypt(ciphertext), False
            except ValueError as exc:
                LOGGER.warning("Unable to decrypt API token: %s", exc)
                return "", False
        if legacy_plaintext:
            LOGGER.info("Detected plaintext API token; migrating to encrypted storage.")
            return legacy_plaintext, True
        return "", False

    def _apply_overrides(
        self,
        settings: Settings,
        overrides: Mapping[str, Any],
        *,
        source: str = "runtime",
    ) -> Settings:
        allowed = {field.name for field in fields(Settings)}
        filtered: Dict[str, Any] = {}
        for key, value in overrides.items():
            if key not in allowed or value is None:
                continue
            filtered[key] = value
        if filtered:
            LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
            settings = replace(settings, **filtered)
        return settings

    def _apply_env_overrides(self, settings: Settings) -> Settings:
        overrides: Dict[str, Any] = {}
        for env_name, field_name in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value
        for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip().lower() in _TRUE_VALUES
        for env_name, field_name in _INT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = int(value, 10)
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not a valid integer", env_name, value)
        for env_name, field_name in _FLOAT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = float(value)
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not a valid float", env_name, value)
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings


def normalize_settings(settings: Settings) -> Settings:
    """Clamp numeric fields and fall back to defaults for unknown enum values."""

    defaults = Settings()
    updates: Dict[str, Any] = {}
    backend = str(settings.repository_backend or "").strip().lower()
    if backend not in REPOSITORY_BACKENDS:
        LOGGER.warning("Unknown repository_backend %r; using %s", settings.repository_backend, defaults.repository_backend)
        backend = defaults.repository_backend
    if backend != settings.repository_backend:
        updates["repository_backend"] = backend
    locale = str(settings.locale or "").strip().lower()
    if locale not in SUPPORTED_LOCALES:
        locale = defaults.locale
    if locale != settings.locale:
        updates["locale"] = locale
    font_size = min(MAX_FONT_SIZE, max(MIN_FONT_SIZE, int(settings.editor_font_size)))
    if font_size != settings.editor_font_size:
        updates["editor_font_size"] = font_size
    if settings.autosave_delay < 0:
        updates["autosave_delay"] = 0.0
    if settings.max_retries < 1:
        updates["max_retries"] = 1
    if updates:
        settings = replace(settings, **updates)
    return settings


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {field.name for field in fields(Settings)} - {"api_token"}
    return {key: value for key, value in payload.items() if key in allowed}


def redact_secret(value: str) -> str:
    """Return a short hint for ``value`` suitable for logs and dumps."""

    stripped = (value or "").strip()
    if not stripped:
        return ""
    if len(stripped) <= 8:
        return "…" + stripped[-2:]
    return f"{stripped[:4]}…{stripped[-4:]}"

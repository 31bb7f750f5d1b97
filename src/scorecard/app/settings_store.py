from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from scorecard.app.endpoint_client import (
    DEFAULT_ENDPOINT_URL,
    DEFAULT_TIMEOUT_SECONDS,
    is_http_url,
)
from scorecard.app.record_store import BACKEND_LOCAL_SQLITE, normalize_backend

_APP_SETTINGS_DIRNAME = "scorecard"
_SETTINGS_PATH_ENV = "SCORECARD_SETTINGS_PATH"
_DATA_STORAGE_FOLDER_KEY = "dataStorageFolder"
_DATA_STORAGE_BACKEND_KEY = "dataStorageBackend"
_ENDPOINT_URL_KEY = "endpointUrl"
_ENDPOINT_API_KEY = "endpointApiKey"
_ENDPOINT_TIMEOUT_KEY = "endpointTimeoutSeconds"
DEFAULT_DATA_STORAGE_BACKEND = BACKEND_LOCAL_SQLITE


def _resolve_settings_path() -> Path:
    env = os.environ
    override = str(env.get(_SETTINGS_PATH_ENV, "") or "").strip()
    if override:
        return Path(override).expanduser()
    if os.name == "nt":
        appdata = str(env.get("APPDATA", "") or "").strip()
        if appdata:
            return Path(appdata) / _APP_SETTINGS_DIRNAME / "config" / "settings.json"
        localappdata = str(env.get("LOCALAPPDATA", "") or "").strip()
        if localappdata:
            return Path(localappdata) / _APP_SETTINGS_DIRNAME / "config" / "settings.json"
    else:
        xdg_config_home = str(env.get("XDG_CONFIG_HOME", "") or "").strip()
        if xdg_config_home:
            return Path(xdg_config_home) / _APP_SETTINGS_DIRNAME / "settings.json"
    return Path.home() / ".config" / _APP_SETTINGS_DIRNAME / "settings.json"


def _resolve_data_home() -> Path:
    env = os.environ
    if os.name == "nt":
        localappdata = str(env.get("LOCALAPPDATA", "") or "").strip()
        if localappdata:
            return Path(localappdata) / _APP_SETTINGS_DIRNAME
    else:
        xdg_data_home = str(env.get("XDG_DATA_HOME", "") or "").strip()
        if xdg_data_home:
            return Path(xdg_data_home) / _APP_SETTINGS_DIRNAME
    return Path.home() / ".local" / "share" / _APP_SETTINGS_DIRNAME


@dataclass(frozen=True, slots=True)
class EndpointSettings:
    url: str = DEFAULT_ENDPOINT_URL
    api_key: str = ""
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    def to_mapping(self, *, redact_api_key: bool = False) -> dict[str, Any]:
        api_key = self.api_key
        if redact_api_key and api_key:
            api_key = "********"
        return {
            "url": self.url,
            "api_key": api_key,
            "timeout_seconds": self.timeout_seconds,
        }


def settings_path() -> Path:
    return _resolve_settings_path()


def load_settings() -> dict[str, Any]:
    path = settings_path()
    if not path.exists():
        return {}
    try:
        raw = path.read_text(encoding="utf-8")
        data = json.loads(raw)
    except (OSError, ValueError):
        return {}
    if not isinstance(data, dict):
        return {}
    return data


def save_settings(settings: dict[str, Any]) -> None:
    path = settings_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(settings, indent=2), encoding="utf-8")


def default_data_storage_folder() -> Path:
    return (_resolve_data_home() / "data").expanduser()


def normalize_data_storage_folder(
    value: str | Path | None,
    *,
    default: Path | None = None,
) -> Path:
    fallback = Path(default) if default is not None else default_data_storage_folder()
    candidate: Path
    if isinstance(value, Path):
        candidate = value
    elif isinstance(value, str):
        text = value.strip()
        candidate = Path(text) if text else fallback
    else:
        candidate = fallback

    candidate = candidate.expanduser()
    if not candidate.is_absolute():
        candidate = _resolve_data_home() / candidate
    try:
        return candidate.resolve()
    except OSError:
        return candidate


def load_data_storage_folder(default: Path | None = None) -> Path:
    fallback = normalize_data_storage_folder(default)
    value = load_settings().get(_DATA_STORAGE_FOLDER_KEY)
    if not isinstance(value, str) or not value.strip():
        return fallback
    return normalize_data_storage_folder(value, default=fallback)


def save_data_storage_folder(value: str | Path | None) -> Path:
    resolved = normalize_data_storage_folder(value)
    settings = load_settings()
    settings[_DATA_STORAGE_FOLDER_KEY] = str(resolved)
    save_settings(settings)
    return resolved


def load_data_storage_backend(default: str = DEFAULT_DATA_STORAGE_BACKEND) -> str:
    value = load_settings().get(_DATA_STORAGE_BACKEND_KEY)
    return normalize_backend(value if isinstance(value, str) else None, default=default)


def save_data_storage_backend(value: str) -> str:
    resolved = normalize_backend(value)
    settings = load_settings()
    settings[_DATA_STORAGE_BACKEND_KEY] = resolved
    save_settings(settings)
    return resolved


def normalize_endpoint_settings(value: EndpointSettings | dict[str, Any] | None) -> EndpointSettings:
    if isinstance(value, EndpointSettings):
        raw_url = value.url
        raw_api_key = value.api_key
        raw_timeout: object = value.timeout_seconds
    elif isinstance(value, dict):
        raw_url = value.get("url", "")
        raw_api_key = value.get("api_key", "")
        raw_timeout = value.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS)
    else:
        raw_url = ""
        raw_api_key = ""
        raw_timeout = DEFAULT_TIMEOUT_SECONDS

    try:
        timeout_seconds = float(raw_timeout)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        timeout_seconds = DEFAULT_TIMEOUT_SECONDS

    url = str(raw_url or "").strip()
    if not is_http_url(url):
        url = DEFAULT_ENDPOINT_URL

    return EndpointSettings(
        url=url,
        api_key=str(raw_api_key or "").strip(),
        timeout_seconds=max(1.0, timeout_seconds),
    )


def load_endpoint_settings(default: EndpointSettings | None = None) -> EndpointSettings:
    fallback = normalize_endpoint_settings(default)
    settings = load_settings()
    return normalize_endpoint_settings(
        {
            "url": settings.get(_ENDPOINT_URL_KEY, fallback.url),
            "api_key": settings.get(_ENDPOINT_API_KEY, fallback.api_key),
            "timeout_seconds": settings.get(_ENDPOINT_TIMEOUT_KEY, fallback.timeout_seconds),
        }
    )


def save_endpoint_settings(value: EndpointSettings | dict[str, Any]) -> EndpointSettings:
    normalized = normalize_endpoint_settings(value)
    settings = load_settings()
    settings[_ENDPOINT_URL_KEY] = normalized.url
    settings[_ENDPOINT_API_KEY] = normalized.api_key
    settings[_ENDPOINT_TIMEOUT_KEY] = normalized.timeout_seconds
    save_settings(settings)
    return normalized

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from scorecard.app.debug_log import debug_event
from scorecard.app.endpoint_client import EndpointConfig, RemoteEndpointClient, SubmissionEndpoint
from scorecard.app.record_store import (
    SUPPORTED_BACKENDS,
    RecordStore,
    create_record_store,
    normalize_backend,
)
from scorecard.app.settings_store import (
    DEFAULT_DATA_STORAGE_BACKEND,
    EndpointSettings,
    load_data_storage_backend,
    load_data_storage_folder,
    load_endpoint_settings,
    normalize_data_storage_folder,
    normalize_endpoint_settings,
)
from scorecard.app.sync_coordinator import Dispatcher, SyncCoordinator


@dataclass(frozen=True, slots=True)
class SyncRuntime:
    backend: str
    data_root: Path
    store: RecordStore
    endpoint: SubmissionEndpoint
    coordinator: SyncCoordinator
    endpoint_settings: EndpointSettings
    warnings: tuple[str, ...] = ()

    def close(self) -> None:
        self.store.close()
        debug_event("runtime.closed", backend=self.backend)


def build_sync_runtime(
    *,
    backend: str | None = None,
    data_root: Path | str | None = None,
    endpoint_settings: EndpointSettings | None = None,
    endpoint: SubmissionEndpoint | None = None,
    dispatcher: Dispatcher | None = None,
    environ: Mapping[str, str] | None = None,
) -> SyncRuntime:
    env = os.environ if environ is None else environ
    warnings: list[str] = []

    requested_backend = (
        backend
        or _first_env(env, ("SCORECARD_DATA_BACKEND",))
        or load_data_storage_backend()
    )
    effective_backend = normalize_backend(requested_backend, default=DEFAULT_DATA_STORAGE_BACKEND)
    if str(requested_backend).strip().lower() not in SUPPORTED_BACKENDS:
        warnings.append(
            f"Unknown data backend {requested_backend!r}. "
            f"Falling back to {effective_backend}."
        )

    folder_override = _first_env(env, ("SCORECARD_DATA_FOLDER",))
    if data_root is not None:
        normalized_root = normalize_data_storage_folder(data_root)
    elif folder_override:
        normalized_root = normalize_data_storage_folder(folder_override)
    else:
        normalized_root = load_data_storage_folder()

    resolved_endpoint = resolve_endpoint_settings(endpoint_settings, environ=env)
    client = endpoint or RemoteEndpointClient(
        EndpointConfig.from_mapping(resolved_endpoint.to_mapping())
    )
    store = create_record_store(effective_backend, normalized_root)
    coordinator = SyncCoordinator(store, client, dispatcher=dispatcher)
    debug_event(
        "runtime.started",
        backend=effective_backend,
        data_root=str(normalized_root),
        endpoint=resolved_endpoint.to_mapping(redact_api_key=True),
        warnings=len(warnings),
    )
    return SyncRuntime(
        backend=effective_backend,
        data_root=normalized_root,
        store=store,
        endpoint=client,
        coordinator=coordinator,
        endpoint_settings=resolved_endpoint,
        warnings=tuple(warnings),
    )


def resolve_endpoint_settings(
    value: EndpointSettings | None,
    *,
    environ: Mapping[str, str] | None = None,
) -> EndpointSettings:
    env = os.environ if environ is None else environ
    stored = value if value is not None else load_endpoint_settings()
    url = _first_env(env, ("SCORECARD_ENDPOINT_URL",)) or stored.url
    api_key = _first_env(env, ("SCORECARD_ENDPOINT_API_KEY",)) or stored.api_key
    return normalize_endpoint_settings(
        {
            "url": url,
            "api_key": api_key,
            "timeout_seconds": stored.timeout_seconds,
        }
    )


def _first_env(values: Mapping[str, str], keys: tuple[str, ...]) -> str:
    for key in keys:
        value = str(values.get(key, "") or "").strip()
        if value:
            return value
    return ""

from __future__ import annotations

import json

from scorecard.app.endpoint_client import DEFAULT_ENDPOINT_URL, RemoteEndpointClient
from scorecard.app.record_store import (
    BACKEND_LOCAL_JSON,
    BACKEND_LOCAL_SQLITE,
    BACKEND_MEMORY,
    InMemoryRecordStore,
    LocalSqliteRecordStore,
)
from scorecard.app.settings_store import (
    EndpointSettings,
    default_data_storage_folder,
    load_data_storage_backend,
    load_data_storage_folder,
    load_endpoint_settings,
    load_settings,
    normalize_endpoint_settings,
    save_data_storage_backend,
    save_data_storage_folder,
    save_endpoint_settings,
    settings_path,
)
from scorecard.app.sync_coordinator import inline_dispatcher
from scorecard.app.sync_runtime import build_sync_runtime, resolve_endpoint_settings


def test_settings_path_honours_override(tmp_path):
    assert settings_path() == tmp_path / "config" / "settings.json"
    assert load_settings() == {}


def test_corrupt_settings_file_reads_as_empty():
    path = settings_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("{broken", encoding="utf-8")

    assert load_settings() == {}
    assert load_data_storage_backend() == BACKEND_LOCAL_SQLITE


def test_data_storage_folder_round_trip(tmp_path):
    assert load_data_storage_folder() == default_data_storage_folder().resolve()

    saved = save_data_storage_folder(tmp_path / "records")

    assert saved == (tmp_path / "records").resolve()
    assert load_data_storage_folder() == saved


def test_relative_folder_resolves_under_data_home(tmp_path):
    saved = save_data_storage_folder("custom")

    assert saved == (tmp_path / "xdg-data" / "scorecard" / "custom").resolve()


def test_backend_round_trip():
    assert save_data_storage_backend(" LOCAL_JSON ") == BACKEND_LOCAL_JSON
    assert load_data_storage_backend() == BACKEND_LOCAL_JSON
    assert json.loads(settings_path().read_text(encoding="utf-8"))["dataStorageBackend"] == "local_json"


def test_endpoint_settings_round_trip():
    assert load_endpoint_settings() == EndpointSettings()

    saved = save_endpoint_settings(
        {"url": "https://example.test/submit", "api_key": " abc ", "timeout_seconds": 0}
    )

    assert saved == EndpointSettings(url="https://example.test/submit", api_key="abc", timeout_seconds=1.0)
    assert load_endpoint_settings() == saved
    assert saved.to_mapping(redact_api_key=True)["api_key"] == "********"


def test_endpoint_url_without_scheme_falls_back_to_default():
    saved = save_endpoint_settings({"url": "httpbin.org/post"})

    assert saved.url == DEFAULT_ENDPOINT_URL
    assert normalize_endpoint_settings(EndpointSettings(url="example.test")).url == DEFAULT_ENDPOINT_URL


def test_save_settings_preserves_other_keys():
    save_data_storage_backend(BACKEND_MEMORY)
    save_endpoint_settings(EndpointSettings(url="https://example.test"))

    stored = load_settings()
    assert stored["dataStorageBackend"] == BACKEND_MEMORY
    assert stored["endpointUrl"] == "https://example.test"


def test_build_runtime_with_memory_backend(tmp_path):
    runtime = build_sync_runtime(
        backend=BACKEND_MEMORY,
        data_root=tmp_path / "data",
        dispatcher=inline_dispatcher,
        environ={},
    )

    assert runtime.backend == BACKEND_MEMORY
    assert isinstance(runtime.store, InMemoryRecordStore)
    assert runtime.coordinator.store is runtime.store
    assert isinstance(runtime.endpoint, RemoteEndpointClient)
    assert runtime.endpoint_settings.url == DEFAULT_ENDPOINT_URL
    assert runtime.warnings == ()
    runtime.close()


def test_build_runtime_warns_on_unknown_backend(tmp_path, endpoint):
    runtime = build_sync_runtime(
        backend="cloud",
        data_root=tmp_path / "data",
        endpoint=endpoint,
        environ={},
    )

    assert runtime.backend == BACKEND_LOCAL_SQLITE
    assert isinstance(runtime.store, LocalSqliteRecordStore)
    assert runtime.endpoint is endpoint
    assert len(runtime.warnings) == 1
    assert "cloud" in runtime.warnings[0]
    runtime.close()


def test_build_runtime_reads_environment(tmp_path, endpoint):
    runtime = build_sync_runtime(
        endpoint=endpoint,
        environ={
            "SCORECARD_DATA_BACKEND": "local_json",
            "SCORECARD_DATA_FOLDER": str(tmp_path / "env-data"),
        },
    )

    assert runtime.backend == BACKEND_LOCAL_JSON
    assert runtime.data_root == (tmp_path / "env-data").resolve()
    runtime.close()


def test_build_runtime_uses_saved_settings(tmp_path, endpoint):
    save_data_storage_backend(BACKEND_MEMORY)
    save_data_storage_folder(tmp_path / "saved")

    runtime = build_sync_runtime(endpoint=endpoint, environ={})

    assert runtime.backend == BACKEND_MEMORY
    assert runtime.data_root == (tmp_path / "saved").resolve()


def test_environment_overrides_endpoint_settings():
    stored = EndpointSettings(url="https://stored.test", api_key="stored-key", timeout_seconds=4.0)

    resolved = resolve_endpoint_settings(
        stored,
        environ={"SCORECARD_ENDPOINT_URL": "https://env.test", "SCORECARD_ENDPOINT_API_KEY": "env-key"},
    )

    assert resolved == EndpointSettings(url="https://env.test", api_key="env-key", timeout_seconds=4.0)
    assert resolve_endpoint_settings(stored, environ={}) == stored

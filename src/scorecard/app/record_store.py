from __future__ import annotations

import json
import os
import shutil
import sqlite3
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from threading import RLock
from time import perf_counter
from typing import Any, Mapping, Protocol

from scorecard.app.debug_log import debug_event
from scorecard.core.event_stream import CHANGE_DELETE, CHANGE_PUT, RecordChangeStream


BACKEND_LOCAL_SQLITE = "local_sqlite"
BACKEND_LOCAL_JSON = "local_json"
BACKEND_MEMORY = "memory"
SUPPORTED_BACKENDS: tuple[str, ...] = (
    BACKEND_LOCAL_SQLITE,
    BACKEND_LOCAL_JSON,
    BACKEND_MEMORY,
)
DRAFT_KEY = "current_draft"
DEFAULT_SQLITE_FILE_NAME = "scorecard_records.sqlite3"
DEFAULT_JSON_FILE_NAME = "scorecard_records.json"
_SCHEMA_VERSION = 1
_APP_ID = "scorecard"
_SQLITE_TABLE = "score_records"


class RecordStoreError(RuntimeError):
    """Raised when the underlying storage cannot be read or written."""


class RecordCorruptError(RecordStoreError):
    def __init__(self, key: str, message: str = "") -> None:
        detail = message.strip() if message.strip() else f"Stored entry {key!r} is corrupted."
        super().__init__(detail)
        self.key = key


class RecordStore(Protocol):
    backend: str
    changes: RecordChangeStream

    def put(self, key: str, mapping: Mapping[str, Any]) -> None:
        raise NotImplementedError

    def get(self, key: str) -> Any | None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def keys(self) -> set[str]:
        raise NotImplementedError

    def contains(self, key: str) -> bool:
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError


class InMemoryRecordStore:
    backend = BACKEND_MEMORY

    def __init__(self, *, changes: RecordChangeStream | None = None) -> None:
        self.changes = changes or RecordChangeStream()
        self._entries: dict[str, str] = {}
        self._lock = RLock()

    def put(self, key: str, mapping: Mapping[str, Any]) -> None:
        payload_json = _dump_payload(key, mapping)
        with self._lock:
            self._entries[key] = payload_json
        self.changes.publish(CHANGE_PUT, key)

    def put_raw(self, key: str, payload_json: str) -> None:
        with self._lock:
            self._entries[key] = str(payload_json)
        self.changes.publish(CHANGE_PUT, key)

    def get(self, key: str) -> Any | None:
        with self._lock:
            payload_json = self._entries.get(key)
        if payload_json is None:
            return None
        return _load_payload(key, payload_json)

    def delete(self, key: str) -> None:
        with self._lock:
            existed = self._entries.pop(key, None) is not None
        if existed:
            self.changes.publish(CHANGE_DELETE, key)

    def keys(self) -> set[str]:
        with self._lock:
            return set(self._entries)

    def contains(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def close(self) -> None:
        self.changes.clear_subscribers()


class LocalJsonRecordStore:
    backend = BACKEND_LOCAL_JSON

    def __init__(
        self,
        data_root: Path | str,
        *,
        data_file_name: str = DEFAULT_JSON_FILE_NAME,
        changes: RecordChangeStream | None = None,
    ) -> None:
        self.data_root = _normalize_path(Path(data_root))
        self.changes = changes or RecordChangeStream()
        self._data_file_name = str(data_file_name or DEFAULT_JSON_FILE_NAME).strip() or DEFAULT_JSON_FILE_NAME
        self._lock = RLock()
        self._entries: dict[str, Any] | None = None
        self.load_warning = ""

    @property
    def storage_file_path(self) -> Path:
        return self.data_root / self._data_file_name

    @property
    def backup_file_path(self) -> Path:
        storage_file = self.storage_file_path
        return storage_file.with_suffix(f"{storage_file.suffix}.bak")

    def put(self, key: str, mapping: Mapping[str, Any]) -> None:
        value = json.loads(_dump_payload(key, mapping))
        with self._lock:
            entries = dict(self._load_entries())
            entries[key] = value
            self._write_atomic_json(entries)
            self._entries = entries
        self.changes.publish(CHANGE_PUT, key)

    def get(self, key: str) -> Any | None:
        with self._lock:
            entries = self._load_entries()
            value = entries.get(key)
        if value is None:
            return None
        return json.loads(json.dumps(value))

    def delete(self, key: str) -> None:
        with self._lock:
            entries = dict(self._load_entries())
            if key not in entries:
                return
            del entries[key]
            self._write_atomic_json(entries)
            self._entries = entries
        self.changes.publish(CHANGE_DELETE, key)

    def keys(self) -> set[str]:
        with self._lock:
            return set(self._load_entries())

    def contains(self, key: str) -> bool:
        with self._lock:
            return key in self._load_entries()

    def close(self) -> None:
        with self._lock:
            self._entries = None
        self.changes.clear_subscribers()

    def _load_entries(self) -> dict[str, Any]:
        if self._entries is not None:
            return self._entries
        primary_path = self.storage_file_path
        if not primary_path.exists():
            self._entries = {}
            return self._entries
        try:
            self._entries = self._read_entries(primary_path)
            return self._entries
        except (OSError, ValueError) as primary_error:
            backup_path = self.backup_file_path
            if backup_path.exists() and backup_path.is_file():
                try:
                    self._entries = self._read_entries(backup_path)
                    self.load_warning = "Primary records file could not be read; recovered from backup copy."
                    debug_event(
                        "store.json.recovered_backup",
                        path=str(primary_path),
                        error=str(primary_error),
                    )
                    return self._entries
                except (OSError, ValueError) as backup_error:
                    raise RecordStoreError(
                        "Primary and backup records files could not be read. "
                        f"Primary error: {primary_error}. Backup error: {backup_error}."
                    ) from backup_error
            raise RecordStoreError(
                f"Records file could not be read: {primary_error}."
            ) from primary_error

    def _read_entries(self, path: Path) -> dict[str, Any]:
        raw = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            raise ValueError("Records file must hold a JSON object.")
        records = raw.get("records")
        if not isinstance(records, dict):
            raise ValueError("Records file is missing the 'records' object.")
        return {str(key): value for key, value in records.items()}

    def _write_atomic_json(self, entries: dict[str, Any]) -> None:
        self.data_root.mkdir(parents=True, exist_ok=True)
        target_path = self.storage_file_path
        backup_path = self.backup_file_path
        payload = {
            "app": _APP_ID,
            "schemaVersion": _SCHEMA_VERSION,
            "savedAtUtc": datetime.now(timezone.utc).isoformat(timespec="seconds"),
            "records": entries,
        }

        if target_path.exists():
            try:
                shutil.copy2(target_path, backup_path)
            except OSError as exc:
                debug_event("store.json.backup_failed", path=str(backup_path), error=str(exc))

        fd, temp_path = tempfile.mkstemp(
            prefix=f"{target_path.stem}.",
            suffix=".tmp",
            dir=str(self.data_root),
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as handle:
                json.dump(payload, handle, indent=2, ensure_ascii=False)
                handle.write("\n")
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_path, target_path)
        except OSError as exc:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise RecordStoreError(f"Records file could not be written: {exc}") from exc


class LocalSqliteRecordStore:
    backend = BACKEND_LOCAL_SQLITE

    def __init__(
        self,
        data_root: Path | str,
        *,
        sqlite_file_name: str = DEFAULT_SQLITE_FILE_NAME,
        changes: RecordChangeStream | None = None,
    ) -> None:
        self.data_root = _normalize_path(Path(data_root))
        self.changes = changes or RecordChangeStream()
        self._sqlite_file_name = str(sqlite_file_name or DEFAULT_SQLITE_FILE_NAME).strip()
        if not self._sqlite_file_name:
            self._sqlite_file_name = DEFAULT_SQLITE_FILE_NAME

    @property
    def storage_file_path(self) -> Path:
        return self.data_root / self._sqlite_file_name

    def put(self, key: str, mapping: Mapping[str, Any]) -> None:
        self.put_raw(key, _dump_payload(key, mapping))

    def put_raw(self, key: str, payload_json: str) -> None:
        started_at = perf_counter()
        saved_at_utc = datetime.now(timezone.utc).isoformat(timespec="seconds")
        try:
            with self._connect() as connection:
                self._ensure_schema(connection)
                connection.execute(
                    (
                        f"insert into {_SQLITE_TABLE} "
                        "(record_key, schema_version, saved_at_utc, payload_json) "
                        "values (?, ?, ?, ?) "
                        "on conflict(record_key) do update set "
                        "schema_version = excluded.schema_version, "
                        "saved_at_utc = excluded.saved_at_utc, "
                        "payload_json = excluded.payload_json"
                    ),
                    (key, _SCHEMA_VERSION, saved_at_utc, payload_json),
                )
                connection.commit()
        except sqlite3.Error as exc:
            debug_event(
                "store.sqlite.put.error",
                path=str(self.storage_file_path),
                key=key,
                error=str(exc),
            )
            raise RecordStoreError(f"Could not save record {key!r}: {exc}") from exc
        debug_event(
            "store.sqlite.put",
            key=key,
            bytes=len(payload_json.encode("utf-8")),
            duration_ms=round((perf_counter() - started_at) * 1000.0, 2),
        )
        self.changes.publish(CHANGE_PUT, key)

    def get(self, key: str) -> Any | None:
        try:
            with self._connect() as connection:
                self._ensure_schema(connection)
                row = connection.execute(
                    f"select payload_json from {_SQLITE_TABLE} where record_key = ? limit 1",
                    (key,),
                ).fetchone()
        except sqlite3.Error as exc:
            debug_event("store.sqlite.get.error", key=key, error=str(exc))
            raise RecordStoreError(f"Could not read record {key!r}: {exc}") from exc
        if row is None:
            return None
        value = row[0]
        if not isinstance(value, str):
            raise RecordCorruptError(key)
        return _load_payload(key, value)

    def delete(self, key: str) -> None:
        try:
            with self._connect() as connection:
                self._ensure_schema(connection)
                cursor = connection.execute(
                    f"delete from {_SQLITE_TABLE} where record_key = ?",
                    (key,),
                )
                connection.commit()
                removed = cursor.rowcount > 0
        except sqlite3.Error as exc:
            debug_event("store.sqlite.delete.error", key=key, error=str(exc))
            raise RecordStoreError(f"Could not delete record {key!r}: {exc}") from exc
        debug_event("store.sqlite.delete", key=key, removed=removed)
        if removed:
            self.changes.publish(CHANGE_DELETE, key)

    def keys(self) -> set[str]:
        try:
            with self._connect() as connection:
                self._ensure_schema(connection)
                rows = connection.execute(f"select record_key from {_SQLITE_TABLE}").fetchall()
        except sqlite3.Error as exc:
            debug_event("store.sqlite.keys.error", error=str(exc))
            raise RecordStoreError(f"Could not list records: {exc}") from exc
        return {str(row[0]) for row in rows}

    def contains(self, key: str) -> bool:
        try:
            with self._connect() as connection:
                self._ensure_schema(connection)
                row = connection.execute(
                    f"select 1 from {_SQLITE_TABLE} where record_key = ? limit 1",
                    (key,),
                ).fetchone()
        except sqlite3.Error as exc:
            raise RecordStoreError(f"Could not read record {key!r}: {exc}") from exc
        return row is not None

    def close(self) -> None:
        self.changes.clear_subscribers()

    def _connect(self) -> sqlite3.Connection:
        self.data_root.mkdir(parents=True, exist_ok=True)
        return sqlite3.connect(str(self.storage_file_path), timeout=4.0)

    def _ensure_schema(self, connection: sqlite3.Connection) -> None:
        connection.execute(
            f"""
            create table if not exists {_SQLITE_TABLE} (
                record_key text primary key,
                schema_version integer not null default {_SCHEMA_VERSION},
                saved_at_utc text not null,
                payload_json text not null
            )
            """
        )


def normalize_backend(value: str | None, *, default: str = BACKEND_LOCAL_SQLITE) -> str:
    fallback = str(default or BACKEND_LOCAL_SQLITE).strip().lower()
    if fallback not in SUPPORTED_BACKENDS:
        fallback = BACKEND_LOCAL_SQLITE
    normalized = str(value or "").strip().lower()
    if normalized in SUPPORTED_BACKENDS:
        return normalized
    return fallback


def create_record_store(
    backend: str,
    data_root: Path | str,
    *,
    changes: RecordChangeStream | None = None,
) -> RecordStore:
    normalized_backend = normalize_backend(backend)
    if normalized_backend == BACKEND_MEMORY:
        return InMemoryRecordStore(changes=changes)
    if normalized_backend == BACKEND_LOCAL_JSON:
        return LocalJsonRecordStore(data_root, changes=changes)
    return LocalSqliteRecordStore(data_root, changes=changes)


def _dump_payload(key: str, mapping: Mapping[str, Any]) -> str:
    if not isinstance(mapping, Mapping):
        raise TypeError(f"Record {key!r} must be a mapping, got {type(mapping).__name__}.")
    try:
        return json.dumps(dict(mapping), ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise RecordStoreError(f"Record {key!r} is not JSON serializable: {exc}") from exc


def _load_payload(key: str, payload_json: str) -> Any:
    try:
        return json.loads(payload_json)
    except ValueError as exc:
        debug_event("store.payload_invalid", key=key, error=str(exc))
        raise RecordCorruptError(key, f"Stored entry {key!r} is not valid JSON: {exc}") from exc


def _normalize_path(path: Path) -> Path:
    expanded = path.expanduser()
    try:
        return expanded.resolve()
    except OSError:
        return expanded

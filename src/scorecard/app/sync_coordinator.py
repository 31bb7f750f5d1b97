from __future__ import annotations

from datetime import datetime
from threading import Lock, Thread
from typing import Any, Callable, Mapping

from scorecard.app.debug_log import debug_event
from scorecard.app.endpoint_client import EndpointTransportError, SubmissionEndpoint
from scorecard.app.record_store import DRAFT_KEY, RecordStore, RecordStoreError
from scorecard.app.score_models import HeaderUpdate, ScoreCardRecord
from scorecard.app.submission_codec import SubmissionDecodeError, decode, encode


DRAFT_LOAD_PROMPT = "A saved draft was found. Do you want to continue filling it?"
CLEAR_FORM_PROMPT = "Are you sure you want to clear the current form data? This cannot be undone."

Dispatcher = Callable[[Callable[[], None]], None]
ConfirmCallback = Callable[[str], bool]


class SubmissionSaveError(RuntimeError):
    """Raised when a submission could not be written to local storage."""


def thread_dispatcher(job: Callable[[], None]) -> None:
    Thread(target=job, name="scorecard-delivery", daemon=True).start()


def inline_dispatcher(job: Callable[[], None]) -> None:
    job()


def timestamp_submission_id() -> str:
    return datetime.now().isoformat(timespec="microseconds")


def sync_result_message(synced_count: int) -> str:
    if synced_count > 0:
        return f"Successfully synced {synced_count} submission(s)!"
    return "No pending submissions synced."


class SyncCoordinator:
    """Owns the active form record and moves it through draft, submit and delivery."""

    def __init__(
        self,
        store: RecordStore,
        endpoint: SubmissionEndpoint,
        *,
        dispatcher: Dispatcher | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._store = store
        self._endpoint = endpoint
        self._dispatcher = dispatcher or thread_dispatcher
        self._id_factory = id_factory or timestamp_submission_id
        self._record = ScoreCardRecord()
        self._in_flight: set[str] = set()
        self._in_flight_lock = Lock()

    @property
    def store(self) -> RecordStore:
        return self._store

    @property
    def record(self) -> ScoreCardRecord:
        return self._record

    def update_header(self, update: HeaderUpdate) -> None:
        self._record.apply_header(update)

    def update_score(self, section_title: str, parameter_name: str, score: int) -> bool:
        updated = self._record.update_score(section_title, parameter_name, score)
        if not updated:
            debug_event(
                "form.update_score.unknown",
                section=section_title,
                parameter=parameter_name,
            )
        return updated

    def update_remarks(self, section_title: str, parameter_name: str, remarks: str) -> bool:
        updated = self._record.update_remarks(section_title, parameter_name, remarks)
        if not updated:
            debug_event(
                "form.update_remarks.unknown",
                section=section_title,
                parameter=parameter_name,
            )
        return updated

    def is_dirty(self) -> bool:
        return self._record.is_dirty()

    def active_deliveries(self) -> frozenset[str]:
        with self._in_flight_lock:
            return frozenset(self._in_flight)

    def save_draft(self, record: ScoreCardRecord | None = None) -> bool:
        source = record if record is not None else self._record
        if not source.is_dirty():
            return False
        try:
            self._store.put(DRAFT_KEY, encode(source))
        except (RecordStoreError, OSError) as exc:
            debug_event("sync.draft.save_failed", error=str(exc))
            return False
        debug_event("sync.draft.saved")
        return True

    def peek_draft(self) -> ScoreCardRecord | None:
        try:
            raw = self._store.get(DRAFT_KEY)
        except RecordStoreError as exc:
            debug_event("sync.draft.read_failed", error=str(exc))
            return None
        if raw is None:
            return None
        try:
            return decode(raw)
        except SubmissionDecodeError as exc:
            debug_event("sync.draft.decode_failed", error=str(exc))
            return None

    def load_draft_if_present(self, confirm: ConfirmCallback) -> bool:
        draft = self.peek_draft()
        if draft is None:
            return False
        if not confirm(DRAFT_LOAD_PROMPT):
            self._delete_draft(reason="declined")
            return False
        self._record = draft.copy()
        debug_event("sync.draft.loaded")
        return True

    def clear_form(self, confirm: ConfirmCallback | None = None) -> bool:
        if confirm is not None and not confirm(CLEAR_FORM_PROMPT):
            return False
        self._record.reset()
        self._delete_draft(reason="cleared")
        return True

    def submit(self, record: ScoreCardRecord | None = None) -> str:
        source = record if record is not None else self._record
        snapshot = source.copy()
        snapshot.is_synced = False
        try:
            snapshot.submission_id = self._next_submission_id()
            payload = encode(snapshot)
            self._store.put(snapshot.submission_id, payload)
        except (RecordStoreError, OSError) as exc:
            debug_event("sync.submit.save_failed", error=str(exc))
            raise SubmissionSaveError(f"Failed to save submission locally: {exc}") from exc

        submission_id = snapshot.submission_id
        debug_event("sync.submit.saved", submission_id=submission_id)
        self._delete_draft(reason="submitted")
        self._record.reset()

        if self._claim(submission_id):
            try:
                self._dispatcher(lambda: self._deliver_claimed(submission_id, payload))
            except RuntimeError as exc:
                self._release(submission_id)
                debug_event(
                    "sync.deliver.dispatch_failed",
                    submission_id=submission_id,
                    error=str(exc),
                )
        return submission_id

    def deliver(self, submission_id: str, payload: Mapping[str, Any]) -> bool:
        if not self._claim(submission_id):
            debug_event("sync.deliver.skipped_in_flight", submission_id=submission_id)
            return False
        return self._deliver_claimed(submission_id, payload)

    def pending_ids(self) -> list[str]:
        pending: list[str] = []
        for key, record in self._iter_submissions():
            if not record.is_synced:
                pending.append(key)
        return pending

    def sync_pending(self) -> int:
        pending = self.pending_ids()
        if not pending:
            debug_event("sync.pending.none")
            return 0

        debug_event("sync.pending.start", count=len(pending))
        synced_count = 0
        for submission_id in pending:
            if not self._claim(submission_id):
                debug_event("sync.deliver.skipped_in_flight", submission_id=submission_id)
                continue
            record = self._read_submission(submission_id)
            if record is None or record.is_synced:
                self._release(submission_id)
                continue
            if record.submission_id is None:
                record.submission_id = submission_id
            if self._deliver_claimed(submission_id, encode(record)):
                synced_count += 1
        debug_event("sync.pending.finish", attempted=len(pending), synced=synced_count)
        return synced_count

    def sync_pending_in_background(self, on_finished: Callable[[int], None] | None = None) -> None:
        def _job() -> None:
            count = self.sync_pending()
            if on_finished is not None:
                on_finished(count)

        self._dispatcher(_job)

    def _deliver_claimed(self, submission_id: str, payload: Mapping[str, Any]) -> bool:
        try:
            try:
                response = self._endpoint.post(payload)
            except EndpointTransportError as exc:
                debug_event("sync.deliver.failed", submission_id=submission_id, error=str(exc))
                return False
            if not response.accepted:
                debug_event(
                    "sync.deliver.rejected",
                    submission_id=submission_id,
                    status=response.status_code,
                    body=response.body[:200],
                )
                return False
            return self._mark_synced(submission_id)
        finally:
            self._release(submission_id)

    def _mark_synced(self, submission_id: str) -> bool:
        try:
            current = self._store.get(submission_id)
            if not isinstance(current, Mapping):
                debug_event("sync.deliver.entry_missing", submission_id=submission_id)
                return False
            updated = dict(current)
            updated["isSynced"] = True
            self._store.put(submission_id, updated)
        except RecordStoreError as exc:
            debug_event("sync.deliver.mark_failed", submission_id=submission_id, error=str(exc))
            return False
        debug_event("sync.deliver.synced", submission_id=submission_id)
        return True

    def _iter_submissions(self) -> list[tuple[str, ScoreCardRecord]]:
        try:
            keys = sorted(key for key in self._store.keys() if key != DRAFT_KEY)
        except RecordStoreError as exc:
            debug_event("sync.scan.failed", error=str(exc))
            return []
        rows: list[tuple[str, ScoreCardRecord]] = []
        for key in keys:
            record = self._read_submission(key)
            if record is not None:
                rows.append((key, record))
        return rows

    def _read_submission(self, key: str) -> ScoreCardRecord | None:
        try:
            raw = self._store.get(key)
            if raw is None:
                return None
            return decode(raw)
        except (RecordStoreError, SubmissionDecodeError) as exc:
            debug_event("sync.scan.skipped_corrupt", submission_id=key, error=str(exc))
            return None

    def _next_submission_id(self) -> str:
        base = str(self._id_factory() or "").strip() or timestamp_submission_id()
        candidate = base
        suffix = 0
        while candidate == DRAFT_KEY or self._store.contains(candidate):
            suffix += 1
            candidate = f"{base}-{suffix}"
        return candidate

    def _delete_draft(self, *, reason: str) -> None:
        try:
            self._store.delete(DRAFT_KEY)
        except RecordStoreError as exc:
            debug_event("sync.draft.delete_failed", reason=reason, error=str(exc))
            return
        debug_event("sync.draft.deleted", reason=reason)

    def _claim(self, submission_id: str) -> bool:
        with self._in_flight_lock:
            if submission_id in self._in_flight:
                return False
            self._in_flight.add(submission_id)
            return True

    def _release(self, submission_id: str) -> None:
        with self._in_flight_lock:
            self._in_flight.discard(submission_id)

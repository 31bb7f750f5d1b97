from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from scorecard.app.debug_log import debug_event
from scorecard.app.record_store import DRAFT_KEY, RecordStore, RecordStoreError
from scorecard.app.score_models import ScoreCardRecord
from scorecard.app.submission_codec import SubmissionDecodeError, decode


STATUS_SYNCED = "Synced"
STATUS_PENDING = "Pending Sync"
DELETE_SUBMISSION_PROMPT = "Are you sure you want to delete this submission? This cannot be undone."


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    submission_id: str
    record: ScoreCardRecord | None = None
    error: str = ""

    @property
    def corrupted(self) -> bool:
        return self.record is None

    @property
    def status_label(self) -> str:
        if self.record is None:
            return "Error"
        return STATUS_SYNCED if self.record.is_synced else STATUS_PENDING

    @property
    def title(self) -> str:
        if self.record is None:
            return f"Error loading submission {self.submission_id}"
        location = self.record.location or "Unknown location"
        when = self.record.date.isoformat() if self.record.date is not None else "No date"
        return f"{location} ({when})"


@dataclass(frozen=True, slots=True)
class HistoryCounts:
    pending: int = 0
    synced: int = 0
    corrupted: int = 0

    @property
    def total(self) -> int:
        return self.pending + self.synced + self.corrupted


def list_history(store: RecordStore) -> list[HistoryEntry]:
    try:
        keys = sorted((key for key in store.keys() if key != DRAFT_KEY), reverse=True)
    except RecordStoreError as exc:
        debug_event("history.scan_failed", error=str(exc))
        return []
    entries: list[HistoryEntry] = []
    for key in keys:
        try:
            raw = store.get(key)
        except RecordStoreError as exc:
            debug_event("history.entry_unreadable", submission_id=key, error=str(exc))
            entries.append(HistoryEntry(submission_id=key, error=str(exc)))
            continue
        if raw is None:
            continue
        try:
            record = decode(raw)
        except SubmissionDecodeError as exc:
            debug_event("history.entry_corrupt", submission_id=key, error=str(exc))
            entries.append(HistoryEntry(submission_id=key, error=str(exc)))
            continue
        entries.append(HistoryEntry(submission_id=key, record=record))
    return entries


def load_submission(store: RecordStore, submission_id: str) -> ScoreCardRecord | None:
    if submission_id == DRAFT_KEY:
        return None
    try:
        raw = store.get(submission_id)
        if raw is None:
            return None
        return decode(raw)
    except (RecordStoreError, SubmissionDecodeError) as exc:
        debug_event("history.load_failed", submission_id=submission_id, error=str(exc))
        return None


def delete_submission(
    store: RecordStore,
    submission_id: str,
    confirm: Callable[[str], bool] | None = None,
) -> bool:
    if submission_id == DRAFT_KEY:
        raise ValueError("The draft slot is not a submission.")
    if not store.contains(submission_id):
        return False
    if confirm is not None and not confirm(DELETE_SUBMISSION_PROMPT):
        return False
    store.delete(submission_id)
    debug_event("history.deleted", submission_id=submission_id)
    return True


def count_by_status(store: RecordStore) -> HistoryCounts:
    pending = 0
    synced = 0
    corrupted = 0
    for entry in list_history(store):
        if entry.record is None:
            corrupted += 1
        elif entry.record.is_synced:
            synced += 1
        else:
            pending += 1
    return HistoryCounts(pending=pending, synced=synced, corrupted=corrupted)

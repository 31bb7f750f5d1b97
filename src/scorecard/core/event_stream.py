from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from threading import RLock
from typing import Callable

from scorecard.app.debug_log import debug_event


CHANGE_PUT = "put"
CHANGE_DELETE = "delete"


def _utc_iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


@dataclass(frozen=True, slots=True)
class RecordChange:
    sequence: int
    timestamp: str
    change_type: str
    key: str


class RecordChangeStream:
    """Publishes store mutations to subscribers, e.g. a live history list."""

    def __init__(self, *, history_limit: int = 200) -> None:
        self._sequence = 0
        self._history_limit = max(1, int(history_limit))
        self._changes: list[RecordChange] = []
        self._subscribers: list[Callable[[RecordChange], None]] = []
        self._lock = RLock()

    @property
    def sequence(self) -> int:
        with self._lock:
            return self._sequence

    def publish(self, change_type: str, key: str) -> RecordChange:
        with self._lock:
            self._sequence += 1
            change = RecordChange(
                sequence=self._sequence,
                timestamp=_utc_iso_now(),
                change_type=str(change_type or "").strip(),
                key=str(key),
            )
            self._changes.append(change)
            if len(self._changes) > self._history_limit:
                del self._changes[: len(self._changes) - self._history_limit]
            subscribers = tuple(self._subscribers)

        for subscriber in subscribers:
            try:
                subscriber(change)
            except Exception as exc:
                debug_event(
                    "changes.subscriber_error",
                    change_type=change.change_type,
                    key=change.key,
                    error=str(exc),
                )
                continue
        return change

    def tail(self, *, limit: int = 100) -> tuple[RecordChange, ...]:
        safe_limit = max(1, int(limit))
        with self._lock:
            return tuple(self._changes[-safe_limit:])

    def subscribe(self, callback: Callable[[RecordChange], None]) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                try:
                    self._subscribers.remove(callback)
                except ValueError:
                    return

        return _unsubscribe

    def clear_subscribers(self) -> None:
        with self._lock:
            self._subscribers.clear()

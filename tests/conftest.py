# tests/conftest.py
"""
Shared fixtures for the score card sync tests.

- Settings and debug logs are redirected into a per-test temp dir.
- `endpoint` is a scripted stand-in for the remote submission endpoint.
- Coordinators run deliveries inline unless a test supplies its own dispatcher.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Callable, Mapping

import pytest

from scorecard.app.endpoint_client import EndpointResponse
from scorecard.app.record_store import InMemoryRecordStore
from scorecard.app.score_models import HeaderUpdate, ScoreCardRecord
from scorecard.app.sync_coordinator import SyncCoordinator, inline_dispatcher


class FakeEndpoint:
    """Returns queued statuses in order, then `default_status`."""

    def __init__(self, *, default_status: int = 200) -> None:
        self.default_status = default_status
        self.queued: list[int | Exception] = []
        self.posted: list[dict[str, Any]] = []
        self.before_reply: Callable[[Mapping[str, Any]], None] | None = None

    def queue(self, *outcomes: int | Exception) -> None:
        self.queued.extend(outcomes)

    def post(self, payload: Mapping[str, Any]) -> EndpointResponse:
        self.posted.append(dict(payload))
        if self.before_reply is not None:
            self.before_reply(payload)
        outcome: int | Exception = self.queued.pop(0) if self.queued else self.default_status
        if isinstance(outcome, Exception):
            raise outcome
        return EndpointResponse(status_code=outcome, body="{}")

    @property
    def posted_ids(self) -> list[str]:
        return [str(payload.get("submissionId")) for payload in self.posted]


class SequentialIds:
    def __init__(self) -> None:
        self.counter = 0

    def __call__(self) -> str:
        self.counter += 1
        return f"2023-10-27T10:00:00.{self.counter:06d}"


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("SCORECARD_SETTINGS_PATH", str(tmp_path / "config" / "settings.json"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "xdg-data"))
    monkeypatch.delenv("SCORECARD_DEBUG", raising=False)
    monkeypatch.delenv("SCORECARD_DEBUG_LOG", raising=False)
    for key in (
        "SCORECARD_ENDPOINT_URL",
        "SCORECARD_ENDPOINT_API_KEY",
        "SCORECARD_DATA_BACKEND",
        "SCORECARD_DATA_FOLDER",
    ):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def memory_store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def endpoint() -> FakeEndpoint:
    return FakeEndpoint()


@pytest.fixture
def coordinator(memory_store, endpoint) -> SyncCoordinator:
    return SyncCoordinator(
        memory_store,
        endpoint,
        dispatcher=inline_dispatcher,
        id_factory=SequentialIds(),
    )


@pytest.fixture
def filled_record() -> ScoreCardRecord:
    record = ScoreCardRecord()
    record.apply_header(
        HeaderUpdate(
            location="Sample Station",
            date=date(2023, 10, 27),
            inspector_name="A. Inspector",
            inspector_designation="Senior Section Engineer",
            train_no="12309",
            remarks_overall="Platform 2 needs attention.",
        )
    )
    record.update_score("Platform Cleanliness", "General cleanliness", 8)
    record.update_remarks("Platform Cleanliness", "General cleanliness", "Swept twice daily")
    record.update_score("Parking Area", "Overall Appearance", 6)
    return record

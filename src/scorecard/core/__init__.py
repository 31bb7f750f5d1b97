from __future__ import annotations

from scorecard.core.event_stream import (
    CHANGE_DELETE,
    CHANGE_PUT,
    RecordChange,
    RecordChangeStream,
)

__all__ = [
    "CHANGE_DELETE",
    "CHANGE_PUT",
    "RecordChange",
    "RecordChangeStream",
]

from __future__ import annotations

import json
from collections.abc import Mapping
from datetime import date
from typing import Any

from scorecard.app.score_models import (
    ScoreCardRecord,
    ScoreSection,
    build_default_sections,
    clamp_score,
)


class SubmissionDecodeError(ValueError):
    """Raised when a stored entry is not a mapping at all."""


def encode(record: ScoreCardRecord) -> dict[str, Any]:
    return {
        "submissionId": record.submission_id,
        "location": record.location,
        "date": record.date.isoformat() if record.date is not None else None,
        "inspectorName": record.inspector_name,
        "inspectorDesignation": record.inspector_designation,
        "trainNo": record.train_no,
        "remarksOverall": record.remarks_overall,
        "isSynced": bool(record.is_synced),
        "sections": [_encode_section(section) for section in record.sections],
    }


def decode(raw: object) -> ScoreCardRecord:
    if not isinstance(raw, Mapping):
        raise SubmissionDecodeError(
            f"Stored submission must be a mapping, got {type(raw).__name__}."
        )
    submission_id = raw.get("submissionId")
    return ScoreCardRecord(
        submission_id=submission_id if isinstance(submission_id, str) and submission_id else None,
        location=_as_text(raw.get("location")),
        date=parse_record_date(raw.get("date")),
        inspector_name=_as_text(raw.get("inspectorName")),
        inspector_designation=_as_text(raw.get("inspectorDesignation")),
        train_no=_as_text(raw.get("trainNo")),
        remarks_overall=_as_text(raw.get("remarksOverall")),
        is_synced=raw.get("isSynced") is True,
        sections=_decode_sections(raw.get("sections")),
    )


def encode_json(record: ScoreCardRecord) -> str:
    return json.dumps(encode(record), ensure_ascii=False)


def decode_json(text: str | bytes) -> ScoreCardRecord:
    try:
        raw = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise SubmissionDecodeError(f"Submission payload is not valid JSON: {exc}") from exc
    return decode(raw)


def parse_record_date(value: object) -> date | None:
    if isinstance(value, date):
        return value
    text = _as_text(value).strip()
    if len(text) < 10:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def _encode_section(section: ScoreSection) -> dict[str, Any]:
    return {
        "section": section.title,
        "parameters": [
            {
                "parameter": parameter.name,
                "score": int(parameter.score),
                "remarks": parameter.remarks,
            }
            for parameter in section.parameters
        ],
    }


def _decode_sections(value: object) -> list[ScoreSection]:
    sections = build_default_sections()
    if not isinstance(value, list):
        return sections

    stored: dict[tuple[str, str], Mapping[str, Any]] = {}
    for raw_section in value:
        if not isinstance(raw_section, Mapping):
            continue
        title = _as_text(raw_section.get("section"))
        raw_parameters = raw_section.get("parameters")
        if not title or not isinstance(raw_parameters, list):
            continue
        for raw_parameter in raw_parameters:
            if not isinstance(raw_parameter, Mapping):
                continue
            name = _as_text(raw_parameter.get("parameter"))
            if name:
                stored.setdefault((title, name), raw_parameter)

    for section in sections:
        for parameter in section.parameters:
            raw_parameter = stored.get((section.title, parameter.name))
            if raw_parameter is None:
                continue
            parameter.score = clamp_score(raw_parameter.get("score"))
            parameter.remarks = _as_text(raw_parameter.get("remarks"))
    return sections


def _as_text(value: object) -> str:
    if isinstance(value, str):
        return value
    return ""

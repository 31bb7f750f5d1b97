from __future__ import annotations

import re
from dataclasses import dataclass

from scorecard.app.score_models import ScoreCardRecord


REPORT_TITLE = "Station Inspection Score Card"
REPORT_DETAILS_HEADING = "Inspection Details"
REPORT_FOOTER = "--- End of Report ---"
SECTION_COLUMNS: tuple[str, str, str] = ("Parameter", "Score", "Remarks")
_NOT_AVAILABLE = "N/A"
_EMPTY_REMARKS = "-"
_FILE_NAME_PATTERN = re.compile(r"[^A-Za-z0-9_-]+")


@dataclass(frozen=True, slots=True)
class SectionTable:
    title: str
    rows: tuple[tuple[str, str, str], ...]
    total_score: int
    max_score: int


@dataclass(frozen=True, slots=True)
class ScoreReport:
    title: str
    details_heading: str
    header_rows: tuple[tuple[str, str], ...]
    sections: tuple[SectionTable, ...]
    total_score: int
    max_score: int
    footer: str = REPORT_FOOTER

    @property
    def percentage(self) -> float:
        if self.max_score <= 0:
            return 0.0
        return round(100.0 * self.total_score / self.max_score, 1)


def build_report(record: ScoreCardRecord) -> ScoreReport:
    """Collects the rows a PDF renderer needs; drawing is left to the caller."""
    header_rows = (
        ("Location/Station Name:", record.location),
        (
            "Date of Inspection:",
            record.date.isoformat() if record.date is not None else _NOT_AVAILABLE,
        ),
        ("Train Number:", record.train_no),
        ("Name of Inspector:", record.inspector_name),
        ("Designation of Inspector:", record.inspector_designation),
        ("Overall Remarks:", record.remarks_overall or _NOT_AVAILABLE),
    )
    sections = tuple(
        SectionTable(
            title=section.title,
            rows=tuple(
                (
                    parameter.name,
                    str(parameter.score),
                    parameter.remarks or _EMPTY_REMARKS,
                )
                for parameter in section.parameters
            ),
            total_score=section.total_score,
            max_score=section.max_score,
        )
        for section in record.sections
    )
    return ScoreReport(
        title=REPORT_TITLE,
        details_heading=REPORT_DETAILS_HEADING,
        header_rows=header_rows,
        sections=sections,
        total_score=record.total_score,
        max_score=record.max_score,
    )


def report_file_name(record: ScoreCardRecord) -> str:
    stem = record.submission_id or "draft"
    safe_stem = _FILE_NAME_PATTERN.sub("_", stem).strip("_") or "draft"
    return f"score_card_{safe_stem}.pdf"

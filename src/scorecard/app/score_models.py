from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date


MIN_SCORE = 0
MAX_SCORE = 10

SCORE_CARD_SCHEMA: tuple[tuple[str, tuple[str, ...]], ...] = (
    (
        "Platform Cleanliness",
        (
            "General cleanliness",
            "Absence of spitting/stains",
            "Absence of litter/garbage",
            "Cleanliness of tracks adjacent to platform",
            "Adequacy of dustbins",
            "Cleanliness of dustbins",
            "Adequacy of signage (cleanliness related)",
            "Overall Appearance",
        ),
    ),
    (
        "Urinals/Toilets/Bathrooms",
        (
            "Cleanliness of floors & walls",
            "Availability of water",
            "Working of taps/flush/showers",
            "Cleanliness of WCs/Urinals",
            "Absence of foul smell",
            "Cleanliness of wash basins",
            "Availability of liquid soap",
            "Overall Appearance",
        ),
    ),
    (
        "Water Booths/Coolers",
        (
            "Cleanliness around water points",
            "Absence of leakage/stagnation",
            "Working of taps/coolers",
            "Adequacy of water points",
            "Overall Appearance",
        ),
    ),
    (
        "Waiting Hall/Sitting Area",
        (
            "Cleanliness of floors & walls",
            "Cleanliness of furniture",
            "Absence of cobwebs/stains",
            "Adequacy of dustbins",
            "Cleanliness of dustbins",
            "Overall Appearance",
        ),
    ),
    (
        "Foot Over Bridge (FOB)/Subway",
        (
            "Cleanliness of stairs/ramps",
            "Cleanliness of floor",
            "Absence of spitting/stains",
            "Overall Appearance",
        ),
    ),
    (
        "Catering Units",
        (
            "Cleanliness of stalls",
            "Absence of litter/waste",
            "Personal hygiene of staff",
            "Overall Appearance",
        ),
    ),
    (
        "Entry/Exit Area",
        (
            "Cleanliness of approach roads",
            "Cleanliness of circulating area",
            "Adequacy of signage",
            "Overall Appearance",
        ),
    ),
    (
        "Parking Area",
        (
            "Cleanliness of parking area",
            "Absence of litter/waste",
            "Overall Appearance",
        ),
    ),
    (
        "Others (Any Other Area Inspected)",
        (
            "Specify area:",
            "Cleanliness Standard:",
            "Overall Appearance",
        ),
    ),
)

REQUIRED_HEADER_FIELDS: tuple[tuple[str, str], ...] = (
    ("location", "Location/Station Name"),
    ("date", "Date of Inspection"),
    ("train_no", "Train Number"),
    ("inspector_name", "Name of Inspector"),
    ("inspector_designation", "Designation of Inspector"),
)


def clamp_score(value: object) -> int:
    if isinstance(value, bool):
        return MIN_SCORE
    try:
        parsed = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return MIN_SCORE
    return max(MIN_SCORE, min(MAX_SCORE, parsed))


@dataclass(slots=True)
class ScoreParameter:
    name: str
    score: int = 0
    remarks: str = ""

    def copy(self) -> "ScoreParameter":
        return ScoreParameter(name=self.name, score=self.score, remarks=self.remarks)


@dataclass(slots=True)
class ScoreSection:
    title: str
    parameters: list[ScoreParameter] = field(default_factory=list)

    @property
    def total_score(self) -> int:
        return sum(parameter.score for parameter in self.parameters)

    @property
    def max_score(self) -> int:
        return MAX_SCORE * len(self.parameters)

    def find_parameter(self, name: str) -> ScoreParameter | None:
        for parameter in self.parameters:
            if parameter.name == name:
                return parameter
        return None

    def copy(self) -> "ScoreSection":
        return ScoreSection(
            title=self.title,
            parameters=[parameter.copy() for parameter in self.parameters],
        )


def build_default_sections() -> list[ScoreSection]:
    return [
        ScoreSection(
            title=title,
            parameters=[ScoreParameter(name=name) for name in parameter_names],
        )
        for title, parameter_names in SCORE_CARD_SCHEMA
    ]


_UNSET = object()


@dataclass(frozen=True, slots=True)
class HeaderUpdate:
    """Partial header change; fields left as ``None`` are not touched.

    ``date`` uses a sentinel so that callers can clear it explicitly with
    ``HeaderUpdate(date=None)``.
    """

    location: str | None = None
    date: object = _UNSET
    inspector_name: str | None = None
    inspector_designation: str | None = None
    train_no: str | None = None
    remarks_overall: str | None = None

    @property
    def touches_date(self) -> bool:
        return self.date is not _UNSET


@dataclass(slots=True)
class ScoreCardRecord:
    submission_id: str | None = None
    location: str = ""
    date: date | None = None
    inspector_name: str = ""
    inspector_designation: str = ""
    train_no: str = ""
    remarks_overall: str = ""
    is_synced: bool = False
    sections: list[ScoreSection] = field(default_factory=build_default_sections)

    @property
    def total_score(self) -> int:
        return sum(section.total_score for section in self.sections)

    @property
    def max_score(self) -> int:
        return sum(section.max_score for section in self.sections)

    def find_section(self, title: str) -> ScoreSection | None:
        for section in self.sections:
            if section.title == title:
                return section
        return None

    def apply_header(self, update: HeaderUpdate) -> None:
        if update.location is not None:
            self.location = update.location
        if update.touches_date:
            value = update.date
            if value is not None and not isinstance(value, date):
                raise TypeError("HeaderUpdate.date must be a datetime.date or None.")
            self.date = value  # type: ignore[assignment]
        if update.inspector_name is not None:
            self.inspector_name = update.inspector_name
        if update.inspector_designation is not None:
            self.inspector_designation = update.inspector_designation
        if update.train_no is not None:
            self.train_no = update.train_no
        if update.remarks_overall is not None:
            self.remarks_overall = update.remarks_overall

    def update_score(self, section_title: str, parameter_name: str, score: int) -> bool:
        if isinstance(score, bool) or not isinstance(score, int):
            raise TypeError("Score must be an integer.")
        if score < MIN_SCORE or score > MAX_SCORE:
            raise ValueError(f"Score must be between {MIN_SCORE} and {MAX_SCORE}, got {score}.")
        parameter = self._find_parameter(section_title, parameter_name)
        if parameter is None:
            return False
        parameter.score = score
        return True

    def update_remarks(self, section_title: str, parameter_name: str, remarks: str) -> bool:
        parameter = self._find_parameter(section_title, parameter_name)
        if parameter is None:
            return False
        parameter.remarks = str(remarks or "")
        return True

    def is_dirty(self) -> bool:
        return bool(
            self.location
            or self.date is not None
            or self.inspector_name
            or self.train_no
        )

    def missing_required_fields(self) -> list[str]:
        missing: list[str] = []
        for attribute, label in REQUIRED_HEADER_FIELDS:
            value = getattr(self, attribute)
            if value is None or (isinstance(value, str) and not value.strip()):
                missing.append(label)
        return missing

    def reset(self) -> None:
        self.submission_id = None
        self.location = ""
        self.date = None
        self.inspector_name = ""
        self.inspector_designation = ""
        self.train_no = ""
        self.remarks_overall = ""
        self.is_synced = False
        self.sections = build_default_sections()

    def copy(self) -> "ScoreCardRecord":
        return ScoreCardRecord(
            submission_id=self.submission_id,
            location=self.location,
            date=self.date,
            inspector_name=self.inspector_name,
            inspector_designation=self.inspector_designation,
            train_no=self.train_no,
            remarks_overall=self.remarks_overall,
            is_synced=self.is_synced,
            sections=[section.copy() for section in self.sections],
        )

    def _find_parameter(self, section_title: str, parameter_name: str) -> ScoreParameter | None:
        section = self.find_section(section_title)
        if section is None:
            return None
        return section.find_parameter(parameter_name)

from __future__ import annotations

from datetime import date

from scorecard.app.score_models import ScoreCardRecord
from scorecard.app.score_report import REPORT_FOOTER, REPORT_TITLE, build_report, report_file_name


def test_report_rows(filled_record):
    report = build_report(filled_record)

    assert report.title == REPORT_TITLE
    assert report.footer == REPORT_FOOTER
    assert dict(report.header_rows)["Date of Inspection:"] == "2023-10-27"
    assert dict(report.header_rows)["Train Number:"] == "12309"
    assert len(report.sections) == 9

    platform = report.sections[0]
    assert platform.title == "Platform Cleanliness"
    assert platform.rows[0] == ("General cleanliness", "8", "Swept twice daily")
    assert platform.rows[1][2] == "-"
    assert (platform.total_score, platform.max_score) == (8, 80)
    assert (report.total_score, report.max_score) == (14, 450)
    assert report.percentage == 3.1


def test_report_placeholders_for_empty_record():
    report = build_report(ScoreCardRecord())
    header = dict(report.header_rows)

    assert header["Date of Inspection:"] == "N/A"
    assert header["Overall Remarks:"] == "N/A"
    assert report.percentage == 0.0


def test_report_date_is_zero_padded():
    report = build_report(ScoreCardRecord(date=date(999, 1, 2)))

    assert dict(report.header_rows)["Date of Inspection:"] == "0999-01-02"


def test_report_file_name():
    assert report_file_name(ScoreCardRecord()) == "score_card_draft.pdf"
    assert (
        report_file_name(ScoreCardRecord(submission_id="2023-10-27T10:00:00.000001"))
        == "score_card_2023-10-27T10_00_00_000001.pdf"
    )

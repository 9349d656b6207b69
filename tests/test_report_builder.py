import io
import zipfile
from datetime import datetime, timedelta, timezone

import pytz

from models import DateRange, Student
from report_builder import (build_trend_figure, format_date_range, format_report_text,
                            generate_excel_report, generate_printable_html,
                            generate_student_report)
from conftest import START, make_entry


def test_report_for_default_categories(categories, students, date_range):
    entries = [make_entry("stu_1", c.id, START + timedelta(hours=i)) for i, c in enumerate(categories)]
    entries.append(make_entry("stu_2", "1", START))

    report = generate_student_report(students[0], entries, categories, date_range)

    assert report.student_id == "stu_1"
    assert report.total_positive == 4
    assert report.total_negative == 4
    assert len(report.entries) == 8
    assert report.trends[0].positive_count == 4
    assert report.trends[0].negative_count == 4


def test_report_without_entries_still_has_buckets(categories, students, date_range):
    report = generate_student_report(students[0], [], categories, date_range)
    assert report.total_positive == 0
    assert report.total_negative == 0
    assert report.entries == []
    assert report.trends
    assert all(t.positive_count == 0 and t.negative_count == 0 for t in report.trends)


def test_report_excludes_entries_outside_range(categories, students):
    date_range = DateRange(start=START, end=START + timedelta(days=7))
    entries = [
        make_entry("stu_1", "1", START - timedelta(days=1)),
        make_entry("stu_1", "5", START + timedelta(days=2)),
    ]
    report = generate_student_report(students[0], entries, categories, date_range)
    assert [e.behavior_id for e in report.entries] == ["5"]
    assert (report.total_positive, report.total_negative) == (0, 1)


def test_report_is_deterministic(categories, students, date_range):
    entries = [make_entry("stu_1", "2", START + timedelta(days=3))]
    first = generate_student_report(students[0], entries, categories, date_range)
    second = generate_student_report(students[0], entries, categories, date_range)
    assert first == second


def test_format_date_range():
    start = datetime(2026, 9, 1, 12, 0, tzinfo=timezone.utc)
    end = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)
    assert format_date_range(start, end) == "09/01/2026 - 10/01/2026"


def test_format_date_range_converts_timezone():
    start = datetime(2026, 9, 1, 2, 0, tzinfo=timezone.utc)
    end = datetime(2026, 9, 8, 2, 0, tzinfo=timezone.utc)
    chicago = pytz.timezone("America/Chicago")
    assert format_date_range(start, end, chicago) == "08/31/2026 - 09/07/2026"


def test_format_report_text(categories, students, date_range):
    entries = [
        make_entry("stu_1", "1", START),
        make_entry("stu_1", "6", START + timedelta(days=1)),
        make_entry("stu_1", "removed", START + timedelta(days=2)),
    ]
    report = generate_student_report(students[0], entries, categories, date_range)
    text = format_report_text(students[0], report, categories, "Math 101")

    assert text.startswith("BEHAVIOR REPORT")
    assert "Student: Ada Lovelace" in text
    assert "Class: Math 101" in text
    assert "• Positive Behaviors: 1" in text
    assert "• Negative Behaviors: 1" in text
    assert "• Total Score: 2" in text
    assert "• Helping a Classmate - 09/01/2026" in text
    assert "• Unknown - 09/03/2026" in text


def test_excel_report_returns_none_without_data(categories, students, date_range):
    assert generate_excel_report(students, [], categories, date_range) is None


def test_excel_report_is_a_workbook(categories, students, date_range):
    entries = [make_entry("stu_1", "1", START), make_entry("stu_1", "5", START + timedelta(days=1))]
    data = generate_excel_report(students, entries, categories, date_range,
                                 class_name_for=lambda s: "No Class")
    assert data
    with zipfile.ZipFile(io.BytesIO(data)) as workbook:
        assert "xl/worksheets/sheet1.xml" in workbook.namelist()
        shared = workbook.read("xl/sharedStrings.xml").decode("utf-8")
    assert "Ada Lovelace" in shared
    assert "No data for this period" in shared


def test_trend_figure_has_positive_and_negative_series(categories, students, date_range):
    report = generate_student_report(students[0], [make_entry("stu_1", "1", START)], categories, date_range)
    fig = build_trend_figure(report)
    assert [trace.name for trace in fig.data] == ["Positive", "Negative"]
    assert list(fig.data[0].y) == [1, 0, 0, 0, 0]


def test_printable_html_escapes_names(categories, date_range):
    students = [Student(id="stu_x", name="<Bobby>", created_at=START)]
    html = generate_printable_html(students, [make_entry("stu_x", "2", START)], categories, date_range)
    assert "&lt;Bobby&gt;" in html
    assert "<Bobby>" not in html
    assert "Net Score" in html

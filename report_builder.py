import html
import io

import plotly.graph_objects as go
import xlsxwriter

from behavior_tracker import (build_category_index, compute_score, compute_weekly_trends,
                              count_by_type, filter_entries_in_range)
from models import BehaviorReport

POSITIVE_COLOR = '#059669'
NEGATIVE_COLOR = '#DC2626'


def _format_date(value, tz=None):
    if tz is not None:
        value = value.astimezone(tz)
    return value.strftime('%m/%d/%Y')


def format_date_range(start, end, tz=None):
    """Display text for a reporting period, e.g. '09/17/2026 - 10/17/2026'."""
    return f"{_format_date(start, tz)} - {_format_date(end, tz)}"


def generate_student_report(student, entries, categories, date_range):
    """Builds the behavior report for one student over a date range."""
    own_entries = [entry for entry in entries if entry.student_id == student.id]
    filtered = filter_entries_in_range(own_entries, date_range.start, date_range.end)
    total_positive, total_negative = count_by_type(filtered, categories)

    return BehaviorReport(student_id=student.id,
                          date_range=date_range,
                          total_positive=total_positive,
                          total_negative=total_negative,
                          entries=filtered,
                          trends=compute_weekly_trends(filtered, categories, date_range))


def format_report_text(student, report, categories, class_name, tz=None, recent_limit=10):
    """Plain-text version of a student report, suitable for sharing."""
    index = build_category_index(categories)
    recent_lines = []
    for entry in report.entries[:recent_limit]:
        category = index.get(entry.behavior_id)
        recent_lines.append(f"• {category.name if category else 'Unknown'} - {_format_date(entry.timestamp, tz)}")

    lines = [
        "BEHAVIOR REPORT",
        f"Student: {student.name}",
        f"Class: {class_name}",
        f"Period: {format_date_range(report.date_range.start, report.date_range.end, tz)}",
        "",
        "SUMMARY:",
        f"• Positive Behaviors: {report.total_positive}",
        f"• Negative Behaviors: {report.total_negative}",
        f"• Total Score: {compute_score(report.entries, categories)}",
        "",
        "RECENT ENTRIES:",
    ]
    lines.extend(recent_lines)
    return "\n".join(lines).strip()


def _positive_percentage(report):
    classified = report.total_positive + report.total_negative
    return round(report.total_positive / classified * 100, 1) if classified else 0


def generate_excel_report(students, entries, categories, date_range, class_name_for=None, tz=None):
    """Generates an Excel report for all students within a date range."""
    in_range = filter_entries_in_range(entries, date_range.start, date_range.end)
    if not in_range:
        return None

    output = io.BytesIO()
    workbook = xlsxwriter.Workbook(output, {'in_memory': True})
    worksheet = workbook.add_worksheet("Behavior Report")

    # --- Formatting ---
    title_format = workbook.add_format({'bold': True, 'font_size': 16, 'align': 'center', 'valign': 'vcenter'})
    header_format = workbook.add_format({'bold': True, 'bg_color': '#D3D3D3', 'border': 1, 'align': 'center', 'valign': 'vcenter'})
    cell_format = workbook.add_format({'align': 'center', 'valign': 'vcenter'})

    # --- Write Titles and Headers ---
    worksheet.merge_range('A1:F1', 'Behavior Report', title_format)
    date_range_str = f"Date Range: {format_date_range(date_range.start, date_range.end, tz)}"
    worksheet.merge_range('A2:F2', date_range_str, workbook.add_format({'align': 'center'}))

    headers = ["Student Name", "Class", "Positive", "Negative", "Net Score", "Positive %"]
    worksheet.write_row('A4', headers, header_format)
    worksheet.set_column('A:B', 20)
    worksheet.set_column('C:F', 15)

    # --- Write Data for Each Student ---
    row_num = 4
    for student in students:
        report = generate_student_report(student, in_range, categories, date_range)
        class_name = class_name_for(student) if class_name_for else ""

        worksheet.write(row_num, 0, student.name, cell_format)
        worksheet.write(row_num, 1, class_name, cell_format)

        if not report.entries:
            worksheet.merge_range(row_num, 2, row_num, 5, "No data for this period", cell_format)
            row_num += 1
            continue

        worksheet.write(row_num, 2, report.total_positive, cell_format)
        worksheet.write(row_num, 3, report.total_negative, cell_format)
        worksheet.write(row_num, 4, compute_score(report.entries, categories), cell_format)
        worksheet.write(row_num, 5, f"{_positive_percentage(report)}%", cell_format)

        row_num += 1

    workbook.close()
    return output.getvalue()


def build_trend_figure(report):
    """Grouped bar chart of positive and negative counts per week."""
    weeks = [f"Week {trend.week}" for trend in report.trends]
    fig = go.Figure()
    fig.add_trace(go.Bar(x=weeks, y=[t.positive_count for t in report.trends],
                         name="Positive", marker_color=POSITIVE_COLOR))
    fig.add_trace(go.Bar(x=weeks, y=[t.negative_count for t in report.trends],
                         name="Negative", marker_color=NEGATIVE_COLOR))
    fig.update_layout(barmode='group', xaxis_title="Week", yaxis_title="Behaviors",
                      margin=dict(l=10, r=10, t=10, b=10))
    return fig


def generate_printable_html(students, entries, categories, date_range, class_name_for=None, tz=None):
    """Generates a printable HTML report with one section per student."""

    all_student_html = ""
    for student in students:
        report = generate_student_report(student, entries, categories, date_range)
        class_name = class_name_for(student) if class_name_for else ""

        trend_html = "<h4>Weekly Trend</h4><p>No data to display.</p>"
        if report.entries:
            fig = build_trend_figure(report)
            fig.update_layout(width=650, height=300)
            trend_html = f"<h4>Weekly Trend</h4>{fig.to_html(full_html=False, include_plotlyjs='cdn')}"

        all_student_html += f"""
        <div class="student-report">
            <h2>{html.escape(student.name)}</h2>
            <p class="class-name">{html.escape(class_name)}</p>
            <div class="top-row">
                <div class="summary-table">
                    <h4>Summary</h4>
                    <table>
                        <tr><th>Category</th><th>Value</th></tr>
                        <tr><td>Positive Behaviors</td><td>{report.total_positive}</td></tr>
                        <tr><td>Negative Behaviors</td><td>{report.total_negative}</td></tr>
                        <tr><td>Net Score</td><td>{compute_score(report.entries, categories)}</td></tr>
                        <tr><td>Positive %</td><td>{_positive_percentage(report)}%</td></tr>
                    </table>
                </div>
                <div class="chart-cell">{trend_html}</div>
            </div>
        </div>
        """

    full_html = f"""
    <html><head><title>Behavior Report</title><style>
        body {{ font-family: sans-serif; padding: 20px; }}
        .student-report {{ page-break-inside: avoid; border: 1px solid #ccc; border-radius: 10px; padding: 15px; margin-bottom: 20px; }}
        h1, .period {{ text-align: center; }} h2 {{ border-bottom: 2px solid #eee; padding-bottom: 5px; }} h4 {{ text-align: center; margin-top: 0; }}
        .top-row {{ display: flex; align-items: center; justify-content: space-around; margin-bottom: 15px; }}
        .summary-table, .chart-cell {{ flex: 1; padding: 10px; text-align: center; }}
        table {{ width: 100%; border-collapse: collapse; }}
        th, td {{ border: 1px solid #ddd; padding: 8px; text-align: left; }}
        th {{ background-color: #f2f2f2; }}
    </style></head><body>
        <h1>Behavior Report</h1>
        <p class="period">{format_date_range(date_range.start, date_range.end, tz)}</p>
        {all_student_html}
    </body></html>
    """
    return full_html

import base64
import logging
from datetime import datetime, time, timedelta

import pandas as pd
import plotly.express as px
import streamlit as st
from pydantic import ValidationError

from behavior_tracker import (compute_class_summary, compute_points_summary, compute_score,
                              count_by_type, entries_on_day, filter_entries_in_range)
from config import get_settings
from data_manager import DataManager
from models import BehaviorType, DateRange
from report_builder import (build_trend_figure, format_date_range, format_report_text,
                            generate_excel_report, generate_printable_html,
                            generate_student_report)
from storage import JsonDirectoryStore, Storage, StorageError

logger = logging.getLogger(__name__)

settings = get_settings()
logging.basicConfig(level=settings.log_level,
                    format="%(asctime)s %(levelname)s %(name)s: %(message)s")

TYPE_COLORS = {'positive': '#059669', 'negative': '#DC2626'}

# Initialize session state
if 'data_manager' not in st.session_state:
    manager = DataManager(Storage(JsonDirectoryStore(settings.data_dir)), settings.teacher_id)
    manager.load()
    st.session_state.data_manager = manager
if 'selected_student' not in st.session_state:
    st.session_state.selected_student = None
if 'editing_behavior' not in st.session_state:
    st.session_state.editing_behavior = None
if 'show_export_dialog' not in st.session_state:
    st.session_state.show_export_dialog = False
if 'show_print_dialog' not in st.session_state:
    st.session_state.show_print_dialog = False


def run_action(action, *args, **kwargs):
    """Runs a data manager change and reports the outcome in the UI."""
    try:
        success, message = action(*args, **kwargs)
    except StorageError as e:
        logger.error("Save failed: %s", e)
        st.error(f"Could not save changes: {e}")
        return False
    if success:
        st.success(message)
    else:
        st.error(message)
    return success


def local_today():
    return datetime.now(settings.tz).date()


def to_date_range(start_date, end_date):
    """Whole local days from start_date through end_date."""
    tz = settings.tz
    return DateRange(start=tz.localize(datetime.combine(start_date, time.min)),
                     end=tz.localize(datetime.combine(end_date, time.max)))


def format_timestamp(value):
    return value.astimezone(settings.tz).strftime('%m/%d/%Y %I:%M %p')


def main():
    st.set_page_config(page_title="Behavior Builder",
                       page_icon="📚",
                       layout="wide",
                       initial_sidebar_state="expanded")

    st.title("Behavior Builder")
    st.caption("Classroom Management Dashboard")

    render_sidebar()

    dashboard_tab, students_tab, behaviors_tab, classes_tab, reports_tab = st.tabs(
        ["Dashboard", "Students", "Behaviors", "Classes", "Reports"])
    with dashboard_tab:
        render_dashboard()
    with students_tab:
        render_students()
    with behaviors_tab:
        render_behaviors()
    with classes_tab:
        render_classes()
    with reports_tab:
        render_reports()


def render_sidebar():
    dm = st.session_state.data_manager

    st.sidebar.header("Roster Import")
    uploaded_file = st.sidebar.file_uploader("Upload Roster (CSV or Excel)", type=['csv', 'xlsx'])
    if uploaded_file is not None and st.session_state.get('imported_file_id') != uploaded_file.file_id:
        st.session_state.imported_file_id = uploaded_file.file_id
        with st.sidebar:
            run_action(dm.import_roster, uploaded_file)

    st.sidebar.download_button(label="Download Roster Template",
                               data=dm.roster_template(),
                               file_name="roster_template.csv",
                               mime="text/csv")

    download_data = dm.get_data_for_download()
    if download_data:
        st.sidebar.markdown("---")
        st.sidebar.header("Export Entry Log")
        timestamp = datetime.now(settings.tz).strftime("%Y%m%d_%H%M%S")
        st.sidebar.download_button(label="Download Behavior Log",
                                   data=download_data,
                                   file_name=f"behavior_log_{timestamp}.csv",
                                   mime="text/csv")


def render_dashboard():
    dm = st.session_state.data_manager

    today_entries = entries_on_day(dm.entries, local_today(), settings.tz)
    today_positive, today_negative = count_by_type(today_entries, dm.categories)

    c1, c2, c3 = st.columns(3)
    c1.metric("Students", len(dm.students))
    c2.metric("Today Positive", today_positive)
    c3.metric("Today Negative", today_negative)

    if not dm.students:
        st.info("Welcome! Add students or upload a class roster to begin.")
        return

    col1, spacer, col2 = st.columns([1, 0.2, 3])
    with col1:
        st.header("Student Roster")
        for student in dm.students:
            score = compute_score(dm.entries_for_student(student.id), dm.categories)
            if st.button(f"{student.name} ({score:+d})", key=f"btn_{student.id}", use_container_width=True):
                st.session_state.selected_student = student.id
                st.rerun()
    with col2:
        student = dm.get_student(st.session_state.selected_student) if st.session_state.selected_student else None
        if student:
            display_student_details(student)
        else:
            st.info("👈 Select a student to log behavior and view their history.")


def display_student_details(student):
    dm = st.session_state.data_manager
    st.header(student.name)
    st.caption(dm.get_class_name(student))

    # Behavior entry section
    st.subheader("Log Behavior")
    notes = st.text_input("Notes (optional)", key=f"notes_{student.id}")
    for label, categories in (("Positive", dm.positive_categories()), ("Negative", dm.negative_categories())):
        st.markdown(f"**{label}**")
        if not categories:
            continue
        cols = st.columns(min(len(categories), 4))
        for i, category in enumerate(categories):
            with cols[i % len(cols)]:
                if st.button(f"{category.name} ({category.points:+d})",
                             key=f"log_{category.id}_{student.id}", use_container_width=True):
                    if run_action(dm.log_behavior, student.id, category.id, notes):
                        st.rerun()

    history = dm.entries_for_student(student.id)
    if not history:
        st.info("No behavior data recorded for this student yet.")
        return

    st.subheader("Point System Distribution")
    points_summary = compute_points_summary(history, dm.categories)
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Positive Points", points_summary['total_positive_points'])
    c2.metric("Negative Points", points_summary['total_negative_points'])
    c3.metric("Net Score", points_summary['net_score'])
    c4.metric("Positive %", f"{points_summary['positive_percentage']}%")

    positive_count, negative_count = count_by_type(history, dm.categories)
    if positive_count or negative_count:
        fig_pie = px.pie(values=[positive_count, negative_count], names=['positive', 'negative'],
                         color=['positive', 'negative'], color_discrete_map=TYPE_COLORS)
        fig_pie.update_traces(textposition='inside', textinfo='percent+label')
        st.plotly_chart(fig_pie, use_container_width=True)

    st.subheader("Recent Behavior")
    rows = []
    for entry in history[:10]:
        category = dm.get_category(entry.behavior_id)
        rows.append({
            'When': format_timestamp(entry.timestamp),
            'Behavior': category.name if category else 'Unknown',
            'Points': category.points if category else 0,
            'Notes': entry.notes or "",
        })
    st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)


def render_students():
    dm = st.session_state.data_manager

    with st.form("add_student_form", clear_on_submit=True):
        st.markdown("#### Add Student")
        name = st.text_input("Name")
        email = st.text_input("Email (optional)")
        class_options = {"No Class": None}
        class_options.update({c.name: c.id for c in dm.classes})
        class_choice = st.selectbox("Class", list(class_options))
        if st.form_submit_button("Add Student"):
            run_action(dm.add_student, name, email=email, class_id=class_options[class_choice])

    st.markdown("#### Roster")
    if not dm.students:
        st.info("No students yet.")
        return
    for student in dm.students:
        col_name, col_class, col_delete = st.columns([0.5, 0.3, 0.2])
        col_name.write(f"**{student.name}**" + (f"  \n{student.email}" if student.email else ""))
        col_class.write(dm.get_class_name(student))
        if col_delete.button("Delete", key=f"delete_student_{student.id}"):
            if run_action(dm.delete_student, student.id):
                if st.session_state.selected_student == student.id:
                    st.session_state.selected_student = None
                st.rerun()


def render_behaviors():
    dm = st.session_state.data_manager
    editing = dm.get_category(st.session_state.editing_behavior) if st.session_state.editing_behavior else None

    with st.form("behavior_form", clear_on_submit=True):
        st.markdown("#### Edit Behavior" if editing else "#### Add Behavior")
        name = st.text_input("Behavior name", value=editing.name if editing else "")
        type_options = [BehaviorType.POSITIVE.value, BehaviorType.NEGATIVE.value]
        behavior_type = st.radio("Type", type_options, horizontal=True,
                                 index=type_options.index(editing.type.value) if editing else 0)
        points = st.text_input("Points", value=str(abs(editing.points)) if editing else "")
        if st.form_submit_button("Save Behavior"):
            if editing:
                success = run_action(dm.update_behavior, editing.id, name=name,
                                     behavior_type=behavior_type, points=points)
                if success:
                    st.session_state.editing_behavior = None
            else:
                run_action(dm.add_behavior, name, behavior_type, points)
    if editing and st.button("Cancel Edit"):
        st.session_state.editing_behavior = None
        st.rerun()

    for label, categories in (("Positive Behaviors", dm.positive_categories()),
                              ("Negative Behaviors", dm.negative_categories())):
        st.markdown(f"#### {label}")
        for category in categories:
            col_name, col_edit, col_delete = st.columns([0.6, 0.2, 0.2])
            tag = "" if category.is_custom else " _(default)_"
            col_name.write(f"{category.name}: {category.points:+d} points{tag}")
            if not category.is_custom:
                continue
            if col_edit.button("Edit", key=f"edit_behavior_{category.id}"):
                st.session_state.editing_behavior = category.id
                st.rerun()
            if col_delete.button("Delete", key=f"delete_behavior_{category.id}"):
                if run_action(dm.delete_behavior, category.id):
                    st.rerun()


def render_classes():
    dm = st.session_state.data_manager

    with st.form("add_class_form", clear_on_submit=True):
        st.markdown("#### Create Class")
        name = st.text_input("Class name")
        names_by_id = {s.id: s.name for s in dm.students}
        selected = st.multiselect("Choose students to include in this class",
                                  list(names_by_id), format_func=names_by_id.get)
        if st.form_submit_button("Create Class"):
            run_action(dm.add_class, name, selected)

    if not dm.classes:
        st.info("No Classes Created")
        return
    for school_class in dm.classes:
        with st.expander(f"{school_class.name} ({len(school_class.students)} students)"):
            for member in school_class.students:
                st.write(f"- {member.name}")
            if st.button("Delete Class", key=f"delete_class_{school_class.id}"):
                if run_action(dm.delete_class, school_class.id):
                    st.rerun()


def render_reports():
    dm = st.session_state.data_manager

    today = local_today()
    default_start = today - timedelta(days=settings.report_days)
    picked = st.date_input("Report period", value=(default_start, today), max_value=today, format="MM/DD/YYYY")
    if len(picked) != 2:
        st.warning("Please select a valid date range.")
        return
    start_date, end_date = picked
    if start_date > end_date:
        st.error("Error: Start date cannot be after end date.")
        return
    try:
        date_range = to_date_range(start_date, end_date)
    except ValidationError as e:
        st.error(f"Invalid date range: {e}")
        return

    st.write(f"**Period:** {format_date_range(date_range.start, date_range.end, settings.tz)}")

    summary = compute_class_summary(dm.entries, dm.categories, date_range)
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Total Entries", summary.total_entries)
    c2.metric("Positive", summary.positive_count)
    c3.metric("Negative", summary.negative_count)
    c4.metric("Positive Ratio", f"{summary.positive_ratio:.0f}%")

    if not dm.students:
        st.info("No students to report on.")
        return

    st.subheader("Students")
    in_range = filter_entries_in_range(dm.entries, date_range.start, date_range.end)
    for student in dm.students:
        report = generate_student_report(student, in_range, dm.categories, date_range)
        score = compute_score(report.entries, dm.categories)
        with st.expander(f"{student.name}: {score:+d}  (+{report.total_positive} / -{report.total_negative})"):
            st.plotly_chart(build_trend_figure(report), use_container_width=True,
                            key=f"trend_{student.id}")
            st.text(format_report_text(student, report, dm.categories,
                                       dm.get_class_name(student), tz=settings.tz))

    st.write("")
    export_col, print_col = st.columns(2)
    with export_col:
        if st.button("Export Class Report"):
            st.session_state.show_export_dialog = True
    with print_col:
        if st.button("Print Behavior Report"):
            st.session_state.show_print_dialog = True

    handle_dialogs(date_range)


def handle_dialogs(date_range):
    dm = st.session_state.data_manager

    # --- EXPORT DIALOG ---
    if st.session_state.show_export_dialog:
        with st.spinner("Generating report..."):
            report_bytes = generate_excel_report(dm.students, dm.entries, dm.categories, date_range,
                                                 class_name_for=dm.get_class_name, tz=settings.tz)
        if report_bytes:
            file_name = (f"behavior_report_{date_range.start.astimezone(settings.tz):%Y-%m-%d}"
                         f"_to_{date_range.end.astimezone(settings.tz):%Y-%m-%d}.xlsx")
            st.download_button(label="Click to Download Report", data=report_bytes, file_name=file_name,
                               mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")
        else:
            st.warning("No data found in the selected date range.")
        if st.button("Close Export View"):
            st.session_state.show_export_dialog = False
            st.rerun()

    # --- PRINT DIALOG ---
    if st.session_state.show_print_dialog:
        with st.spinner("Generating report..."):
            report_html = generate_printable_html(dm.students, dm.entries, dm.categories, date_range,
                                                  class_name_for=dm.get_class_name, tz=settings.tz)
            b64_html = base64.b64encode(report_html.encode()).decode()
            link = f'<a href="data:text/html;base64,{b64_html}" target="_blank" style="display: inline-block; padding: 10px 20px; background-color: #007bff; color: white; text-decoration: none; border-radius: 5px;">Click Here to Open Printable Report in New Tab</a>'
            st.markdown(link, unsafe_allow_html=True)
        if st.button("Close Print View"):
            st.session_state.show_print_dialog = False
            st.rerun()


if __name__ == "__main__":
    main()

"""
export.py — Projection of records and joined views into ExportPayloads.

A report's table is declared once as an ordered list of Columns (header +
extraction rule). Headers and every row are produced from that same list,
so a row can never have a different width than the header row.
Serialization to xlsx/csv/pdf happens in report_builder.py.
"""

import datetime as dt
import re
from typing import Any, Callable, Iterable, List, NamedTuple, Optional, Sequence

from analytics.models import (
    AttendanceRecord,
    CourseDirectoryEntry,
    ExportOptions,
    ExportPayload,
    GradeRecord,
    JoinedStudentView,
    ParticipationRecord,
    StudentProfile,
    SubjectDirectoryEntry,
)

DATE_FORMAT = "%d/%m/%Y"

STATUS_LABELS = {
    "present": "Present",
    "absent": "Absent",
    "late": "Late",
    "excused": "Excused",
}


class Column(NamedTuple):
    header: str
    extract: Callable[[Any], Any]


# ── Cell formatting ─────────────────────────────────────────────────

def date_cell(value: Optional[dt.date]) -> str:
    if value is None:
        return ""
    if isinstance(value, dt.datetime):
        value = value.date()
    return value.strftime(DATE_FORMAT)


def number_cell(value: Optional[float], decimals: int = 1) -> str:
    if value is None:
        return ""
    return f"{float(value):.{decimals}f}"


def percent_cell(value: Optional[float]) -> str:
    if value is None:
        return ""
    return f"{number_cell(value)}%"


def format_score(value: Optional[float]) -> str:
    """Scores print as entered: 95 stays '95', 95.5 stays '95.5'."""
    if value is None:
        return ""
    return f"{float(value):g}"


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(getattr(value, "value", value))


def field(name: str) -> Callable[[Any], Any]:
    return lambda item: getattr(item, name, None)


def remarks(item) -> str:
    return getattr(item, "remarks", None) or ""


def _safe_token(value: str, fallback: str = "item") -> str:
    """Create filesystem-safe token for filenames."""
    token = re.sub(r"[^A-Za-z0-9._-]+", "_", str(value)).strip("._-")
    return token or fallback


# ── Labels ──────────────────────────────────────────────────────────

class LabelResolver:
    """Display labels from the course/subject directories, falling back to the record."""

    def __init__(
        self,
        courses: Iterable[CourseDirectoryEntry] = (),
        subjects: Iterable[SubjectDirectoryEntry] = (),
    ):
        self.courses = {c.code: c.label for c in courses}
        self.subjects = {s.code: s.name for s in subjects}

    def course(self, code: str, fallback: Optional[str] = None) -> str:
        return self.courses.get(code) or fallback or code

    def subject(self, code: str, fallback: Optional[str] = None) -> str:
        return self.subjects.get(code) or fallback or code

    @staticmethod
    def student(item) -> str:
        return item.student_name or item.student_id


# ── Projection ──────────────────────────────────────────────────────

def project(items: Sequence, columns: Sequence[Column], title: str, filename: str) -> ExportPayload:
    """Shape ``items`` into headers + rows using one column list for both."""
    columns = list(columns)
    return ExportPayload(
        title=title,
        filename=filename,
        headers=[c.header for c in columns],
        rows=[[_cell(c.extract(item)) for c in columns] for item in items],
    )


def _with_remarks(columns: List[Column], options: ExportOptions) -> List[Column]:
    if options.include_remarks:
        columns.append(Column("Remarks", remarks))
    return columns


def _stem(name: str, today: Optional[dt.date]) -> str:
    return f"{name}_{(today or dt.date.today()).isoformat()}"


def grade_columns(labels: LabelResolver, options: ExportOptions) -> List[Column]:
    return _with_remarks([
        Column("Student", labels.student),
        Column("Student ID", field("student_id")),
        Column("Course", lambda g: labels.course(g.course_code, g.course_name)),
        Column("Subject", lambda g: labels.subject(g.subject_code, g.subject_name)),
        Column("Criterion", field("criterion")),
        Column("Score", lambda g: format_score(g.score)),
        Column("Period", field("period")),
        Column("Date", lambda g: date_cell(g.created_at)),
    ], options)


def attendance_columns(labels: LabelResolver, options: ExportOptions) -> List[Column]:
    return _with_remarks([
        Column("Student", labels.student),
        Column("Student ID", field("student_id")),
        Column("Course", lambda a: labels.course(a.course_code, a.course_name)),
        Column("Date", lambda a: date_cell(a.date)),
        Column("Status", lambda a: STATUS_LABELS.get(a.status.value, a.status.value)),
        Column("Arrival Time", field("arrival_time")),
    ], options)


def participation_columns(labels: LabelResolver, options: ExportOptions) -> List[Column]:
    return _with_remarks([
        Column("Student", labels.student),
        Column("Student ID", field("student_id")),
        Column("Course", lambda p: labels.course(p.course_code, p.course_name)),
        Column("Subject", lambda p: labels.subject(p.subject_code, p.subject_name)),
        Column("Type", field("participation_type")),
        Column("Score", lambda p: format_score(p.score)),
        Column("Date", lambda p: date_cell(p.date)),
    ], options)


def student_columns(labels: LabelResolver, options: ExportOptions) -> List[Column]:
    """Shared columns for the mixed grade/attendance/participation lines of one student."""

    def line_type(r) -> str:
        if isinstance(r, GradeRecord):
            return "Grade"
        if isinstance(r, AttendanceRecord):
            return "Attendance"
        return "Participation"

    def subject_or_course(r) -> str:
        if isinstance(r, AttendanceRecord):
            return labels.course(r.course_code, r.course_name)
        return labels.subject(r.subject_code, r.subject_name)

    def description(r) -> str:
        if isinstance(r, GradeRecord):
            return r.criterion
        if isinstance(r, AttendanceRecord):
            return "Attendance record"
        return r.participation_type

    def value(r) -> str:
        if isinstance(r, AttendanceRecord):
            return STATUS_LABELS.get(r.status.value, r.status.value)
        return format_score(r.score)

    return _with_remarks([
        Column("Type", line_type),
        Column("Subject/Course", subject_or_course),
        Column("Description", description),
        Column("Value/Status", value),
        Column("Date", lambda r: date_cell(r.record_date)),
    ], options)


def combined_columns() -> List[Column]:
    return [
        Column("Student", LabelResolver.student),
        Column("Student ID", field("student_id")),
        Column("Grade Mean", lambda v: number_cell(v.grade_mean())),
        Column("Attendance Records", lambda v: str(len(v.attendance))),
        Column("Attendance %", lambda v: percent_cell(v.attendance_rate())),
        Column("Participations", lambda v: str(len(v.participation))),
        Column("Participation Mean", lambda v: number_cell(v.participation_mean())),
    ]


# ── Report payloads ─────────────────────────────────────────────────

def export_grades(
    grades: Sequence[GradeRecord],
    options: ExportOptions = ExportOptions(),
    labels: Optional[LabelResolver] = None,
    today: Optional[dt.date] = None,
) -> ExportPayload:
    return project(grades, grade_columns(labels or LabelResolver(), options),
                   "Academic Report", _stem("academic_report", today))


def export_attendance(
    attendance: Sequence[AttendanceRecord],
    options: ExportOptions = ExportOptions(),
    labels: Optional[LabelResolver] = None,
    today: Optional[dt.date] = None,
) -> ExportPayload:
    return project(attendance, attendance_columns(labels or LabelResolver(), options),
                   "Attendance Report", _stem("attendance_report", today))


def export_participation(
    participation: Sequence[ParticipationRecord],
    options: ExportOptions = ExportOptions(),
    labels: Optional[LabelResolver] = None,
    today: Optional[dt.date] = None,
) -> ExportPayload:
    return project(participation, participation_columns(labels or LabelResolver(), options),
                   "Participation Report", _stem("participation_report", today))


def export_student(
    view: JoinedStudentView,
    options: ExportOptions = ExportOptions(),
    labels: Optional[LabelResolver] = None,
    profile: Optional[StudentProfile] = None,
    today: Optional[dt.date] = None,
) -> ExportPayload:
    """Grades, then attendance, then participation lines for one student."""
    lines = [*view.grades, *view.attendance, *view.participation]
    name = profile.full_name if profile else (view.student_name or view.student_id)
    return project(lines, student_columns(labels or LabelResolver(), options),
                   f"Individual Report - {name}",
                   _stem(f"student_report_{_safe_token(view.student_id, 'student')}", today))


def export_combined(
    views: Sequence[JoinedStudentView],
    today: Optional[dt.date] = None,
) -> ExportPayload:
    return project(views, combined_columns(), "Combined Report", _stem("combined_report", today))

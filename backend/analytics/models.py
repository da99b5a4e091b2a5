"""
models.py — Typed records, filter and result shapes for the reporting engine.

Source records are frozen once fetched; the engine never mutates them.
Result models are rebuilt on every report generation.
"""

import datetime as dt
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, field_validator


class ReportKind(str, Enum):
    ACADEMIC = "academic"
    ATTENDANCE = "attendance"
    PARTICIPATION = "participation"
    STUDENT = "student"
    COMBINED = "combined"


class RecordKind(str, Enum):
    GRADES = "grades"
    ATTENDANCE = "attendance"
    PARTICIPATION = "participation"


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    EXCUSED = "excused"


class ExportFormat(str, Enum):
    XLSX = "xlsx"
    CSV = "csv"
    PDF = "pdf"


# ── Source records ──────────────────────────────────────────────────

class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class GradeRecord(_Frozen):
    student_id: str
    course_code: str
    subject_code: str
    criterion: str = ""
    score: float
    remarks: Optional[str] = None
    created_at: dt.datetime
    student_name: Optional[str] = None
    course_name: Optional[str] = None
    subject_name: Optional[str] = None
    period: Optional[str] = None
    period_code: Optional[str] = None

    @property
    def record_date(self) -> dt.date:
        return self.created_at.date()


class AttendanceRecord(_Frozen):
    student_id: str
    course_code: str
    date: dt.date
    status: AttendanceStatus
    arrival_time: Optional[str] = None
    remarks: Optional[str] = None
    student_name: Optional[str] = None
    course_name: Optional[str] = None

    @property
    def record_date(self) -> dt.date:
        return self.date


class ParticipationRecord(_Frozen):
    student_id: str
    course_code: str
    subject_code: str
    date: dt.date
    participation_type: str
    score: float
    remarks: Optional[str] = None
    student_name: Optional[str] = None
    course_name: Optional[str] = None
    subject_name: Optional[str] = None

    @property
    def record_date(self) -> dt.date:
        return self.date


Record = Union[GradeRecord, AttendanceRecord, ParticipationRecord]


class CourseDirectoryEntry(_Frozen):
    code: str
    name: str
    level: str = ""
    section: str = ""

    @property
    def label(self) -> str:
        suffix = f"{self.level} {self.section}".strip()
        return f"{self.name} - {suffix}" if suffix else self.name


class SubjectDirectoryEntry(_Frozen):
    code: str
    name: str


class StudentProfile(_Frozen):
    student_id: str
    first_name: str = ""
    last_name: str = ""
    email: Optional[str] = None
    birth_date: Optional[dt.date] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip() or self.student_id


# ── Filter ──────────────────────────────────────────────────────────

# Select widgets send these for "no constraint"; None is the canonical form.
UNSET_TOKENS = frozenset({"", "all"})


class FilterSpec(_Frozen):
    """
    Every field is optional; an unset field imposes no constraint.

    ``status`` only applies to attendance, ``participation_type`` only to
    participation, ``period`` (a period code such as ``2024-1``) only to
    grades and the score range only to kinds that carry a score.
    """
    course_code: Optional[str] = None
    subject_code: Optional[str] = None
    student_id: Optional[str] = None
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    status: Optional[AttendanceStatus] = None
    participation_type: Optional[str] = None
    min_score: Optional[float] = None
    max_score: Optional[float] = None
    period: Optional[str] = None

    @field_validator("*", mode="before")
    @classmethod
    def _normalize_unset(cls, value):
        if isinstance(value, str) and value.strip().lower() in UNSET_TOKENS:
            return None
        return value

    def is_empty(self) -> bool:
        return all(value is None for value in self.model_dump().values())


class ExportOptions(_Frozen):
    include_remarks: bool = True


# ── Summary results ─────────────────────────────────────────────────

class BucketCount(_Frozen):
    label: str
    lower: float
    upper: float
    count: int
    percentage: float


class LeaderboardEntry(_Frozen):
    student_id: str
    student_name: Optional[str] = None
    mean: float
    count: int


class CourseAverage(_Frozen):
    course_code: str
    course_name: Optional[str] = None
    mean: float
    count: int


class CourseAttendance(_Frozen):
    course_code: str
    course_name: Optional[str] = None
    effective: int
    total: int
    rate: float


class DateAttendance(_Frozen):
    date: dt.date
    effective: int
    total: int
    rate: float


class TypeBreakdown(_Frozen):
    participation_type: str
    count: int
    mean: float


class SubjectAverage(_Frozen):
    subject_code: str
    subject_name: Optional[str] = None
    mean: float
    count: int


class Alert(_Frozen):
    student_id: str
    student_name: Optional[str] = None
    category: str  # "low_attendance" | "low_performance"
    severity: str  # "warning" | "critical"
    value: float
    threshold: float
    absences: Optional[int] = None
    message: str


class GradeSummary(_Frozen):
    kind: ReportKind = ReportKind.ACADEMIC
    average: float
    total_records: int
    total_students: int
    passed: int
    failed: int
    pass_mark: float
    distribution: List[BucketCount]
    by_course: List[CourseAverage]
    leaderboard: List[LeaderboardEntry]
    alerts: List[Alert]


class AttendanceSummary(_Frozen):
    kind: ReportKind = ReportKind.ATTENDANCE
    total_records: int
    total_students: int
    attendance_rate: float
    status_counts: Dict[str, int]
    by_course: List[CourseAttendance]
    by_date: List[DateAttendance]
    alerts: List[Alert]


class ParticipationSummary(_Frozen):
    kind: ReportKind = ReportKind.PARTICIPATION
    total_records: int
    total_students: int
    average: float
    by_type: List[TypeBreakdown]
    leaderboard: List[LeaderboardEntry]
    distribution: List[BucketCount]


class StudentSummary(_Frozen):
    kind: ReportKind = ReportKind.STUDENT
    student_id: str
    student_name: Optional[str] = None
    profile: Optional[StudentProfile] = None
    grade_mean: float
    attendance_rate: float
    participation_mean: float
    total_grades: int
    total_attendance: int
    total_participation: int
    absences: int
    academic_status: str
    status_counts: Dict[str, int]
    by_subject: List[SubjectAverage]


class CombinedRow(_Frozen):
    student_id: str
    student_name: Optional[str] = None
    grade_mean: float
    attendance_count: int
    attendance_rate: float
    participation_count: int
    participation_mean: float


class CombinedSummary(_Frozen):
    kind: ReportKind = ReportKind.COMBINED
    total_students: int
    average: float
    rows: List[CombinedRow]


SummaryResult = Union[GradeSummary, AttendanceSummary, ParticipationSummary, StudentSummary, CombinedSummary]


# ── Joined view ─────────────────────────────────────────────────────

class JoinedStudentView(_Frozen):
    """
    One student's grade, attendance and participation records.

    Derived figures are recomputed on each call rather than stored.
    """
    student_id: str
    student_name: Optional[str] = None
    grades: Tuple[GradeRecord, ...] = ()
    attendance: Tuple[AttendanceRecord, ...] = ()
    participation: Tuple[ParticipationRecord, ...] = ()

    def grade_mean(self) -> float:
        from analytics.stats import compute_mean
        return compute_mean(g.score for g in self.grades)

    def attendance_rate(self) -> float:
        from analytics.stats import effective_rate
        return effective_rate(self.attendance)

    def participation_mean(self) -> float:
        from analytics.stats import compute_mean
        return compute_mean(p.score for p in self.participation)

    def absences(self) -> int:
        return sum(1 for a in self.attendance if a.status == AttendanceStatus.ABSENT)


# ── Export ──────────────────────────────────────────────────────────

class ExportPayload(_Frozen):
    title: str
    filename: str
    headers: List[str]
    rows: List[List[str]]

"""
stats.py — All aggregate computations over filtered record collections.

Computes:
- Arithmetic mean of scores (defined as 0 for an empty collection)
- Pass/fail counts against a configurable pass mark
- Attendance status counts and effective-attendance rates
- Bucketed score distributions with per-bucket percentages
- Student leaderboards (mean desc, count desc, id asc)
- Per-course, per-date, per-subject and per-type breakdowns
- One summary object per report kind

Nothing in here raises on empty input; every empty result is a valid value.
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from analytics import grading
from analytics.models import (
    AttendanceRecord,
    AttendanceSummary,
    BucketCount,
    CombinedRow,
    CombinedSummary,
    CourseAttendance,
    CourseAverage,
    DateAttendance,
    GradeRecord,
    GradeSummary,
    JoinedStudentView,
    LeaderboardEntry,
    ParticipationRecord,
    ParticipationSummary,
    StudentProfile,
    StudentSummary,
    SubjectAverage,
    TypeBreakdown,
)

logger = logging.getLogger(__name__)


# ── Helpers ─────────────────────────────────────────────────────────

def _safe_float(val) -> float:
    """Convert to a finite float; NaN, inf and junk become 0.0."""
    try:
        v = float(val)
    except (TypeError, ValueError):
        return 0.0
    return 0.0 if (np.isnan(v) or np.isinf(v)) else v


def _name(val) -> Optional[str]:
    """Display names come back from pandas as NaN when missing."""
    return val if isinstance(val, str) and val else None


def _frame(records: Sequence, fields: Sequence[str]) -> pd.DataFrame:
    rows = []
    for r in records:
        row = {}
        for f in fields:
            v = getattr(r, f)
            row[f] = getattr(v, "value", v)
        rows.append(row)
    return pd.DataFrame(rows, columns=list(fields))


def _percentage(part: int, total: int) -> float:
    return part / total * 100 if total > 0 else 0.0


# ── Scalar aggregates ───────────────────────────────────────────────

def compute_mean(scores: Iterable[float]) -> float:
    """Arithmetic mean; an empty collection has mean 0."""
    values = [float(s) for s in scores]
    if not values:
        return 0.0
    return _safe_float(np.mean(values))


def count_pass_fail(scores: Iterable[float], pass_mark: float = grading.PASS_MARK) -> Tuple[int, int]:
    """Return (passed, failed); pass means score >= pass_mark."""
    passed = failed = 0
    for s in scores:
        if grading.is_passing(s, pass_mark):
            passed += 1
        else:
            failed += 1
    return passed, failed


def count_statuses(records: Iterable[AttendanceRecord]) -> Dict[str, int]:
    """Counts for all four statuses, zero for the ones never seen."""
    counts = {status: 0 for status in grading.ATTENDANCE_STATUSES}
    for r in records:
        counts[r.status.value] += 1
    return counts


def effective_rate(records: Iterable[AttendanceRecord]) -> float:
    """Percentage of records whose status counts as attended."""
    records = list(records)
    effective = sum(1 for r in records if grading.is_effective(r.status))
    return _percentage(effective, len(records))


def count_students(records: Iterable) -> int:
    return len({r.student_id for r in records})


# ── Distribution & ranking ──────────────────────────────────────────

def compute_distribution(scores: Iterable[float], buckets: List[grading.Bucket]) -> List[BucketCount]:
    """
    Tally scores into fixed ordered buckets.

    Percentages are of the total tally and are 0 for every bucket when there
    are no scores.
    """
    counts = [0] * len(buckets)
    for s in scores:
        counts[grading.bucket_index(float(s), buckets)] += 1
    total = sum(counts)

    return [
        BucketCount(
            label=b.label,
            lower=b.lower,
            upper=b.upper,
            count=c,
            percentage=_percentage(c, total),
        )
        for b, c in zip(buckets, counts)
    ]


def compute_leaderboard(
    records: Sequence,
    size: int = grading.LEADERBOARD_SIZE,
) -> List[LeaderboardEntry]:
    """
    Rank students by mean score.

    Ties on mean go to the student with more records, then to the lower
    student id, so the order is fully deterministic.
    """
    if not records or size <= 0:
        return []

    df = _frame(records, ["student_id", "student_name", "score"])
    per_student = (
        df.groupby("student_id", sort=False)
        .agg(mean=("score", "mean"), count=("score", "size"), student_name=("student_name", "first"))
        .reset_index()
        .sort_values(["mean", "count", "student_id"], ascending=[False, False, True], kind="mergesort")
    )

    return [
        LeaderboardEntry(
            student_id=str(row["student_id"]),
            student_name=_name(row["student_name"]),
            mean=_safe_float(row["mean"]),
            count=int(row["count"]),
        )
        for _, row in per_student.head(size).iterrows()
    ]


# ── Breakdowns ──────────────────────────────────────────────────────

def breakdown_grades_by_course(
    grades: Sequence[GradeRecord],
    course_labels: Optional[Dict[str, str]] = None,
) -> List[CourseAverage]:
    """Mean grade per course, in the order courses first appear."""
    if not grades:
        return []
    course_labels = course_labels or {}

    df = _frame(grades, ["course_code", "course_name", "score"])
    per_course = df.groupby("course_code", sort=False).agg(
        mean=("score", "mean"), count=("score", "size"), course_name=("course_name", "first"),
    )
    return [
        CourseAverage(
            course_code=str(code),
            course_name=course_labels.get(code) or _name(row["course_name"]),
            mean=_safe_float(row["mean"]),
            count=int(row["count"]),
        )
        for code, row in per_course.iterrows()
    ]


def breakdown_attendance_by_course(
    attendance: Sequence[AttendanceRecord],
    course_labels: Optional[Dict[str, str]] = None,
) -> List[CourseAttendance]:
    """Effective/total attendance per course, in the order courses first appear."""
    if not attendance:
        return []
    course_labels = course_labels or {}

    df = _frame(attendance, ["course_code", "course_name", "status"])
    df["effective"] = df["status"].isin(sorted(grading.EFFECTIVE_STATUSES))
    per_course = df.groupby("course_code", sort=False).agg(
        effective=("effective", "sum"), total=("status", "size"), course_name=("course_name", "first"),
    )
    return [
        CourseAttendance(
            course_code=str(code),
            course_name=course_labels.get(code) or _name(row["course_name"]),
            effective=int(row["effective"]),
            total=int(row["total"]),
            rate=_percentage(int(row["effective"]), int(row["total"])),
        )
        for code, row in per_course.iterrows()
    ]


def breakdown_attendance_by_date(attendance: Sequence[AttendanceRecord]) -> List[DateAttendance]:
    """Effective attendance rate per day, oldest first."""
    if not attendance:
        return []

    df = _frame(attendance, ["date", "status"])
    df["effective"] = df["status"].isin(sorted(grading.EFFECTIVE_STATUSES))
    per_date = df.groupby("date", sort=True).agg(effective=("effective", "sum"), total=("status", "size"))
    return [
        DateAttendance(
            date=day,
            effective=int(row["effective"]),
            total=int(row["total"]),
            rate=_percentage(int(row["effective"]), int(row["total"])),
        )
        for day, row in per_date.iterrows()
    ]


def breakdown_by_type(participation: Sequence[ParticipationRecord]) -> List[TypeBreakdown]:
    """Count and mean score per participation label; labels come from the data."""
    if not participation:
        return []

    df = _frame(participation, ["participation_type", "score"])
    per_type = df.groupby("participation_type", sort=False).agg(
        count=("score", "size"), mean=("score", "mean"),
    )
    return [
        TypeBreakdown(participation_type=str(label), count=int(row["count"]), mean=_safe_float(row["mean"]))
        for label, row in per_type.iterrows()
    ]


def breakdown_grades_by_subject(
    grades: Sequence[GradeRecord],
    subject_labels: Optional[Dict[str, str]] = None,
) -> List[SubjectAverage]:
    """Mean grade per subject, in the order subjects first appear."""
    if not grades:
        return []
    subject_labels = subject_labels or {}

    df = _frame(grades, ["subject_code", "subject_name", "score"])
    per_subject = df.groupby("subject_code", sort=False).agg(
        mean=("score", "mean"), count=("score", "size"), subject_name=("subject_name", "first"),
    )
    return [
        SubjectAverage(
            subject_code=str(code),
            subject_name=subject_labels.get(code) or _name(row["subject_name"]),
            mean=_safe_float(row["mean"]),
            count=int(row["count"]),
        )
        for code, row in per_subject.iterrows()
    ]


# ── Report summaries ────────────────────────────────────────────────

def compute_grade_summary(
    grades: Sequence[GradeRecord],
    pass_mark: float = grading.PASS_MARK,
    leaderboard_size: int = grading.LEADERBOARD_SIZE,
    course_labels: Optional[Dict[str, str]] = None,
) -> GradeSummary:
    """Academic report: mean, pass/fail, distribution, courses, top students, alerts."""
    from analytics.alerts import low_performance_alerts

    scores = [g.score for g in grades]
    passed, failed = count_pass_fail(scores, pass_mark)
    summary = GradeSummary(
        average=compute_mean(scores),
        total_records=len(grades),
        total_students=count_students(grades),
        passed=passed,
        failed=failed,
        pass_mark=pass_mark,
        distribution=compute_distribution(scores, grading.grade_buckets(pass_mark)),
        by_course=breakdown_grades_by_course(grades, course_labels),
        leaderboard=compute_leaderboard(grades, leaderboard_size),
        alerts=low_performance_alerts(grades, pass_mark),
    )
    logger.debug("Grade summary over %d records: mean %.2f", summary.total_records, summary.average)
    return summary


def compute_attendance_summary(
    attendance: Sequence[AttendanceRecord],
    low_attendance_threshold: float = grading.LOW_ATTENDANCE_THRESHOLD,
    course_labels: Optional[Dict[str, str]] = None,
) -> AttendanceSummary:
    """Attendance report: status counts, effective rate, per course, per day, alerts."""
    from analytics.alerts import low_attendance_alerts

    summary = AttendanceSummary(
        total_records=len(attendance),
        total_students=count_students(attendance),
        attendance_rate=effective_rate(attendance),
        status_counts=count_statuses(attendance),
        by_course=breakdown_attendance_by_course(attendance, course_labels),
        by_date=breakdown_attendance_by_date(attendance),
        alerts=low_attendance_alerts(attendance, low_attendance_threshold),
    )
    logger.debug("Attendance summary over %d records: rate %.2f", summary.total_records, summary.attendance_rate)
    return summary


def compute_participation_summary(
    participation: Sequence[ParticipationRecord],
    leaderboard_size: int = grading.LEADERBOARD_SIZE,
) -> ParticipationSummary:
    """Participation report: mean score, per type, top participants, distribution."""
    scores = [p.score for p in participation]
    summary = ParticipationSummary(
        total_records=len(participation),
        total_students=count_students(participation),
        average=compute_mean(scores),
        by_type=breakdown_by_type(participation),
        leaderboard=compute_leaderboard(participation, leaderboard_size),
        distribution=compute_distribution(scores, grading.participation_buckets()),
    )
    logger.debug("Participation summary over %d records: mean %.2f", summary.total_records, summary.average)
    return summary


def compute_student_summary(
    view: JoinedStudentView,
    profile: Optional[StudentProfile] = None,
    subject_labels: Optional[Dict[str, str]] = None,
) -> StudentSummary:
    """Individual report for one student."""
    grade_mean = view.grade_mean()
    return StudentSummary(
        student_id=view.student_id,
        student_name=profile.full_name if profile else view.student_name,
        profile=profile,
        grade_mean=grade_mean,
        attendance_rate=view.attendance_rate(),
        participation_mean=view.participation_mean(),
        total_grades=len(view.grades),
        total_attendance=len(view.attendance),
        total_participation=len(view.participation),
        absences=view.absences(),
        academic_status=grading.classify_academic_status(grade_mean),
        status_counts=count_statuses(view.attendance),
        by_subject=breakdown_grades_by_subject(view.grades, subject_labels),
    )


def compute_combined_summary(views: Sequence[JoinedStudentView]) -> CombinedSummary:
    """Combined report: one row of derived figures per joined student."""
    rows = [
        CombinedRow(
            student_id=v.student_id,
            student_name=v.student_name,
            grade_mean=v.grade_mean(),
            attendance_count=len(v.attendance),
            attendance_rate=v.attendance_rate(),
            participation_count=len(v.participation),
            participation_mean=v.participation_mean(),
        )
        for v in views
    ]
    return CombinedSummary(
        total_students=len(rows),
        average=compute_mean(r.grade_mean for r in rows),
        rows=rows,
    )

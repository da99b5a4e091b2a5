"""
alerts.py — Low-performance alerts for the report screens.

Flags:
- Low attendance: effective attendance rate below the configured threshold
- Low performance: mean grade below the pass mark

Severity: critical when more than CRITICAL_MARGIN points below the
threshold, warning otherwise. Messages are f-string templates.
"""

from typing import Dict, List, Sequence

from analytics import grading
from analytics.models import Alert, AttendanceRecord, AttendanceStatus, GradeRecord
from analytics.stats import compute_mean, effective_rate


RECOMMENDATIONS = {
    "low_attendance": (
        "Contact the student's tutor to review the absences and agree on an "
        "attendance plan."
    ),
    "low_performance": (
        "Arrange remedial sessions in the weakest subjects and follow up with "
        "the course teacher."
    ),
}


def _severity(value: float, threshold: float) -> str:
    return "critical" if value < threshold - grading.CRITICAL_MARGIN else "warning"


def _group_by_student(records: Sequence) -> Dict[str, list]:
    """Group records per student, keeping first-seen order."""
    groups: Dict[str, list] = {}
    for r in records:
        groups.setdefault(r.student_id, []).append(r)
    return groups


def _display(student_id: str, records: Sequence) -> str:
    for r in records:
        if r.student_name:
            return f"{r.student_name} ({student_id})"
    return student_id


def narrate_low_attendance(who: str, rate: float, threshold: float, absences: int) -> str:
    return (
        f"{who} attended {rate:.1f}% of sessions, below the required {threshold:.0f}%, "
        f"with {absences} absence{'s' if absences != 1 else ''}. {RECOMMENDATIONS['low_attendance']}"
    )


def narrate_low_performance(who: str, mean: float, pass_mark: float) -> str:
    return (
        f"{who} has a mean grade of {mean:.1f}, {pass_mark - mean:.1f} points below the "
        f"pass mark of {pass_mark:g}. {RECOMMENDATIONS['low_performance']}"
    )


def low_attendance_alerts(
    attendance: Sequence[AttendanceRecord],
    threshold: float = grading.LOW_ATTENDANCE_THRESHOLD,
) -> List[Alert]:
    """Students whose effective attendance rate is below ``threshold``, lowest rate first."""
    alerts: List[Alert] = []
    for student_id, records in _group_by_student(attendance).items():
        rate = effective_rate(records)
        if rate >= threshold:
            continue
        absences = sum(1 for r in records if r.status == AttendanceStatus.ABSENT)
        who = _display(student_id, records)
        alerts.append(
            Alert(
                student_id=student_id,
                student_name=next((r.student_name for r in records if r.student_name), None),
                category="low_attendance",
                severity=_severity(rate, threshold),
                value=rate,
                threshold=threshold,
                absences=absences,
                message=narrate_low_attendance(who, rate, threshold, absences),
            )
        )
    alerts.sort(key=lambda a: (a.value, a.student_id))
    return alerts


def low_performance_alerts(
    grades: Sequence[GradeRecord],
    pass_mark: float = grading.PASS_MARK,
) -> List[Alert]:
    """Students whose mean grade is below the pass mark, lowest mean first."""
    alerts: List[Alert] = []
    for student_id, records in _group_by_student(grades).items():
        mean = compute_mean(r.score for r in records)
        if grading.is_passing(mean, pass_mark):
            continue
        who = _display(student_id, records)
        alerts.append(
            Alert(
                student_id=student_id,
                student_name=next((r.student_name for r in records if r.student_name), None),
                category="low_performance",
                severity=_severity(mean, pass_mark),
                value=mean,
                threshold=pass_mark,
                message=narrate_low_performance(who, mean, pass_mark),
            )
        )
    alerts.sort(key=lambda a: (a.value, a.student_id))
    return alerts

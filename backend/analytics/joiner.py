"""
joiner.py — Per-student views across grades, attendance and participation.

The combined report is grade-anchored: a student appears only if they have
at least one grade record, whatever else they have. The individual student
report is not anchored and keeps every record of the chosen student.
"""

from typing import Dict, List, Optional, Sequence

from analytics.models import (
    AttendanceRecord,
    GradeRecord,
    JoinedStudentView,
    ParticipationRecord,
)


def _first_name_for(student_id: str, *collections: Sequence) -> Optional[str]:
    for records in collections:
        for r in records:
            if r.student_id == student_id and r.student_name:
                return r.student_name
    return None


def join_by_student(
    grades: Sequence[GradeRecord],
    attendance: Sequence[AttendanceRecord],
    participation: Sequence[ParticipationRecord],
) -> List[JoinedStudentView]:
    """
    One view per distinct student in ``grades``, in first-seen order.

    Attendance and participation records are attached only to students
    already anchored by a grade; everything else is dropped.
    """
    anchored: Dict[str, Dict[str, list]] = {}
    names: Dict[str, Optional[str]] = {}

    for g in grades:
        if g.student_id not in anchored:
            anchored[g.student_id] = {"grades": [], "attendance": [], "participation": []}
            names[g.student_id] = g.student_name
        elif not names[g.student_id] and g.student_name:
            names[g.student_id] = g.student_name
        anchored[g.student_id]["grades"].append(g)

    for a in attendance:
        if a.student_id in anchored:
            anchored[a.student_id]["attendance"].append(a)

    for p in participation:
        if p.student_id in anchored:
            anchored[p.student_id]["participation"].append(p)

    return [
        JoinedStudentView(
            student_id=student_id,
            student_name=names[student_id],
            grades=tuple(parts["grades"]),
            attendance=tuple(parts["attendance"]),
            participation=tuple(parts["participation"]),
        )
        for student_id, parts in anchored.items()
    ]


def build_student_view(
    student_id: str,
    grades: Sequence[GradeRecord],
    attendance: Sequence[AttendanceRecord],
    participation: Sequence[ParticipationRecord],
    student_name: Optional[str] = None,
) -> JoinedStudentView:
    """View of one student's records from each collection, even when some are empty."""
    own_grades = tuple(g for g in grades if g.student_id == student_id)
    own_attendance = tuple(a for a in attendance if a.student_id == student_id)
    own_participation = tuple(p for p in participation if p.student_id == student_id)

    return JoinedStudentView(
        student_id=student_id,
        student_name=student_name or _first_name_for(student_id, own_grades, own_attendance, own_participation),
        grades=own_grades,
        attendance=own_attendance,
        participation=own_participation,
    )

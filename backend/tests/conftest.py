"""
Shared sample records and an in-memory record source for the test suite.
"""

import asyncio
import datetime as dt
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from analytics.models import (
    AttendanceRecord,
    CourseDirectoryEntry,
    GradeRecord,
    ParticipationRecord,
    RecordKind,
    StudentProfile,
    SubjectDirectoryEntry,
)
from analytics.source import FetchError


def grade(student_id, score, course="C1", subject="MATH", day=dt.date(2024, 3, 5), **extra):
    return GradeRecord(
        student_id=student_id,
        course_code=course,
        subject_code=subject,
        score=score,
        created_at=dt.datetime.combine(day, dt.time(10, 0)),
        **extra,
    )


def attendance(student_id, status, course="C1", day=dt.date(2024, 3, 5), **extra):
    return AttendanceRecord(student_id=student_id, course_code=course, date=day, status=status, **extra)


def participation(student_id, score, kind="Oral", course="C1", subject="MATH", day=dt.date(2024, 3, 5), **extra):
    return ParticipationRecord(
        student_id=student_id,
        course_code=course,
        subject_code=subject,
        date=day,
        participation_type=kind,
        score=score,
        **extra,
    )


class FakeSource:
    """
    In-memory RecordSource.

    ``fail`` makes every fetch raise FetchError; ``failing_courses`` only
    fails record fetches for those course filters. ``gates`` maps a course
    filter to an asyncio.Event the record fetch waits on.
    """

    def __init__(
        self,
        grades=(),
        attendance=(),
        participation=(),
        courses=(),
        subjects=(),
        profiles=None,
        fail=False,
        failing_courses=(),
        gates=None,
    ):
        self.records = {
            RecordKind.GRADES: list(grades),
            RecordKind.ATTENDANCE: list(attendance),
            RecordKind.PARTICIPATION: list(participation),
        }
        self.courses = list(courses)
        self.subjects = list(subjects)
        self.profiles = profiles or {}
        self.fail = fail
        self.failing_courses = set(failing_courses)
        self.gates = gates or {}
        self.calls = []

    async def fetch_records(self, kind, spec):
        self.calls.append((RecordKind(kind), spec))
        gate = self.gates.get(spec.course_code)
        if gate is not None:
            await gate.wait()
        if self.fail or spec.course_code in self.failing_courses:
            raise FetchError("school API unavailable")
        return list(self.records[RecordKind(kind)])

    async def fetch_course_directory(self):
        if self.fail:
            raise FetchError("school API unavailable")
        return list(self.courses)

    async def fetch_subject_directory(self):
        if self.fail:
            raise FetchError("school API unavailable")
        return list(self.subjects)

    async def fetch_student(self, student_id):
        if self.fail:
            raise FetchError("school API unavailable")
        await asyncio.sleep(0)
        return self.profiles.get(student_id)


@pytest.fixture
def sample_grades():
    return [
        grade("S1", 95, criterion="Exam 1", remarks="Great work", period="Term 1",
              student_name="Ana Perez", course_name="Grade 5", subject_name="Mathematics"),
        grade("S1", 40, subject="SCI", day=dt.date(2024, 3, 12), criterion="Quiz",
              student_name="Ana Perez", subject_name="Science"),
        grade("S2", 70, criterion="Exam 1", student_name="Luis Gomez"),
        grade("S3", 30, course="C2", day=dt.date(2024, 4, 2), criterion="Exam 1", student_name="Maria Rojas"),
    ]


@pytest.fixture
def sample_attendance():
    return [
        attendance("S1", "present", student_name="Ana Perez"),
        attendance("S1", "absent", day=dt.date(2024, 3, 6), remarks="Sick"),
        attendance("S1", "late", day=dt.date(2024, 3, 7), arrival_time="08:15"),
        attendance("S2", "present", student_name="Luis Gomez"),
        attendance("S4", "absent", course="C2"),
    ]


@pytest.fixture
def sample_participation():
    return [
        participation("S1", 4, student_name="Ana Perez"),
        participation("S2", 5, kind="Written", day=dt.date(2024, 3, 6)),
        participation("S4", 2, course="C2", subject="SCI", day=dt.date(2024, 3, 7)),
    ]


@pytest.fixture
def sample_courses():
    return [
        CourseDirectoryEntry(code="C1", name="Grade 5", level="Primary", section="A"),
        CourseDirectoryEntry(code="C2", name="Grade 6", level="Primary", section="B"),
    ]


@pytest.fixture
def sample_subjects():
    return [
        SubjectDirectoryEntry(code="MATH", name="Mathematics"),
        SubjectDirectoryEntry(code="SCI", name="Science"),
    ]


@pytest.fixture
def make_source(sample_grades, sample_attendance, sample_participation, sample_courses, sample_subjects):
    """Factory for a FakeSource over the sample data; keyword arguments override it."""
    def _make(**overrides):
        kwargs = dict(
            grades=sample_grades,
            attendance=sample_attendance,
            participation=sample_participation,
            courses=sample_courses,
            subjects=sample_subjects,
            profiles={"S1": StudentProfile(student_id="S1", first_name="Ana", last_name="Perez")},
        )
        kwargs.update(overrides)
        return FakeSource(**kwargs)
    return _make

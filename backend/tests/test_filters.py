"""
Tests for analytics/filters.py — FilterSpec normalisation and record filtering.
"""

import datetime as dt
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from analytics.filters import filter_records
from analytics.models import AttendanceStatus, FilterSpec
from conftest import attendance, grade, participation


class TestFilterSpec:
    def test_defaults_are_unset(self):
        assert FilterSpec().is_empty()

    def test_blank_and_all_mean_unset(self):
        spec = FilterSpec(course_code="", subject_code="all", student_id=" ALL ", start_date="")
        assert spec.course_code is None
        assert spec.subject_code is None
        assert spec.student_id is None
        assert spec.start_date is None
        assert spec.is_empty()

    def test_status_coerced_to_enum(self):
        assert FilterSpec(status="late").status == AttendanceStatus.LATE


class TestFilterRecords:
    def test_empty_spec_is_identity(self, sample_grades, sample_attendance):
        assert filter_records(sample_grades, FilterSpec()) == sample_grades
        assert filter_records(sample_attendance, FilterSpec()) == sample_attendance

    def test_empty_input(self):
        assert filter_records([], FilterSpec(course_code="C1")) == []

    def test_exact_course_match(self, sample_grades):
        result = filter_records(sample_grades, FilterSpec(course_code="C2"))
        assert [g.student_id for g in result] == ["S3"]

    def test_fields_combine(self, sample_grades):
        result = filter_records(sample_grades, FilterSpec(course_code="C1", subject_code="MATH"))
        assert [g.student_id for g in result] == ["S1", "S2"]

    def test_keeps_input_order(self, sample_attendance):
        result = filter_records(sample_attendance, FilterSpec(student_id="S1"))
        assert [a.date.day for a in result] == [5, 6, 7]

    def test_date_range_is_inclusive(self, sample_attendance):
        spec = FilterSpec(start_date=dt.date(2024, 3, 6), end_date=dt.date(2024, 3, 7))
        result = filter_records(sample_attendance, spec)
        assert [a.status for a in result] == [AttendanceStatus.ABSENT, AttendanceStatus.LATE]

    def test_grade_dates_use_creation_day(self, sample_grades):
        result = filter_records(sample_grades, FilterSpec(start_date="2024-03-10", end_date="2024-03-31"))
        assert [g.score for g in result] == [40]

    def test_inverted_range_matches_nothing(self, sample_attendance):
        spec = FilterSpec(start_date=dt.date(2024, 3, 7), end_date=dt.date(2024, 3, 5))
        assert filter_records(sample_attendance, spec) == []

    def test_status_only_constrains_attendance(self, sample_attendance, sample_grades):
        spec = FilterSpec(status="absent")
        assert [a.student_id for a in filter_records(sample_attendance, spec)] == ["S1", "S4"]
        assert filter_records(sample_grades, spec) == sample_grades

    def test_score_range_is_inclusive(self, sample_grades):
        result = filter_records(sample_grades, FilterSpec(min_score=40, max_score=70))
        assert [g.score for g in result] == [40, 70]

    def test_score_range_ignored_for_attendance(self, sample_attendance):
        assert filter_records(sample_attendance, FilterSpec(min_score=90)) == sample_attendance

    def test_participation_type(self, sample_participation):
        result = filter_records(sample_participation, FilterSpec(participation_type="Oral"))
        assert [p.student_id for p in result] == ["S1", "S4"]

    def test_period_matches_code(self):
        records = [
            grade("S1", 80, period="First Term 2024", period_code="2024-1"),
            grade("S2", 60, period="Second Term 2024", period_code="2024-2"),
        ]
        assert [g.student_id for g in filter_records(records, FilterSpec(period="2024-2"))] == ["S2"]

    def test_period_ignores_display_name(self):
        records = [grade("S1", 80, period="2024-2", period_code="2024-1")]
        assert filter_records(records, FilterSpec(period="2024-2")) == []

    def test_grades_without_period_code_are_kept(self):
        # Already scoped by the server's periodo parameter.
        records = [grade("S1", 80, period="First Term 2024")]
        assert filter_records(records, FilterSpec(period="2024-1")) == records

    def test_period_only_on_grades(self):
        others = [attendance("S1", "present"), participation("S1", 3)]
        assert filter_records(others, FilterSpec(period="2024-2")) == others

"""
Tests for analytics/grading.py — buckets, thresholds and status labels.
"""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from analytics.grading import (
    PASS_MARK,
    bucket_index,
    classify_academic_status,
    get_all_grade_thresholds,
    grade_buckets,
    is_effective,
    is_passing,
    participation_buckets,
)
from analytics.models import AttendanceStatus


class TestGradeBuckets:
    def test_default_labels(self):
        labels = [b.label for b in grade_buckets()]
        assert labels == ["90-100", "80-89", "70-79", "60-69", "51-59", "0-50"]

    def test_every_whole_score_lands_in_its_range(self):
        buckets = grade_buckets()
        for score in range(0, 101):
            b = buckets[bucket_index(score, buckets)]
            assert b.lower <= score
            assert score < b.upper or b.upper == 100.0

    def test_pass_mark_boundary(self):
        buckets = grade_buckets()
        assert buckets[bucket_index(51, buckets)].label == "51-59"
        assert buckets[bucket_index(50.9, buckets)].label == "0-50"

    def test_out_of_range_scores_are_clamped(self):
        buckets = grade_buckets()
        assert bucket_index(105, buckets) == 0
        assert bucket_index(-3, buckets) == len(buckets) - 1

    def test_custom_pass_mark(self):
        labels = [b.label for b in grade_buckets(65)]
        assert labels == ["90-100", "80-89", "70-79", "65-69", "0-64"]

    def test_zero_pass_mark_has_no_empty_bucket(self):
        buckets = grade_buckets(0)
        assert [b.label for b in buckets] == ["90-100", "80-89", "70-79", "60-69", "0-59"]
        assert all(b.lower < b.upper for b in buckets)

    def test_fractional_pass_mark_labels(self):
        buckets = grade_buckets(50.5)
        assert [b.label for b in buckets[-2:]] == ["50.5-59", "0-50"]
        assert buckets[-1].upper == 50.5

    def test_pass_mark_above_scale(self):
        buckets = grade_buckets(120)
        assert [(b.label, b.lower, b.upper) for b in buckets] == [("0-100", 0.0, 100.0)]
        assert bucket_index(100, buckets) == 0


class TestParticipationBuckets:
    def test_one_bucket_per_point(self):
        buckets = participation_buckets()
        assert len(buckets) == 6
        assert buckets[0].label == "5 (Excellent)"
        assert buckets[-1].label == "0 (Did not participate)"

    def test_fractional_scores_round_down(self):
        buckets = participation_buckets()
        assert buckets[bucket_index(4.5, buckets)].label.startswith("4")
        assert buckets[bucket_index(5, buckets)].label.startswith("5")


class TestStatusHelpers:
    def test_effective_statuses(self):
        assert is_effective("present")
        assert is_effective(AttendanceStatus.LATE)
        assert is_effective(AttendanceStatus.EXCUSED)
        assert not is_effective(AttendanceStatus.ABSENT)

    def test_is_passing(self):
        assert is_passing(PASS_MARK)
        assert not is_passing(PASS_MARK - 0.5)
        assert not is_passing(None)

    def test_academic_status_bands(self):
        assert classify_academic_status(95) == "Excellent"
        assert classify_academic_status(75) == "Good"
        assert classify_academic_status(60) == "Fair"
        assert classify_academic_status(59.9) == "Poor"
        assert classify_academic_status(None) == "Poor"

    def test_grade_thresholds_mark_passing_bands(self):
        scale = get_all_grade_thresholds()
        assert scale[0]["label"] == "90-100"
        assert [s["passing"] for s in scale] == [True, True, True, True, True, False]

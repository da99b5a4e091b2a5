"""
grading.py — Named thresholds, bands and labels shared by every report.

Every threshold a report needs lives here so report kinds never re-declare
their own literals:
  - pass mark on the 0-100 grade scale
  - grade distribution buckets (derived from the pass mark)
  - participation buckets on the 0-5 scale
  - attendance statuses and the "effective attendance" set
  - academic status bands used by the per-student report
"""

import math
from typing import Any, Dict, List, NamedTuple, Optional


PASS_MARK = 51
GRADE_SCALE_MAX = 100.0
PARTICIPATION_SCALE_MAX = 5.0
LOW_ATTENDANCE_THRESHOLD = 80.0
LEADERBOARD_SIZE = 10

# Alerts this many points below their threshold are critical.
CRITICAL_MARGIN = 15.0

ATTENDANCE_STATUSES = ("present", "absent", "late", "excused")
EFFECTIVE_STATUSES = frozenset({"present", "late", "excused"})


class Bucket(NamedTuple):
    """A score range: ``lower`` inclusive, ``upper`` exclusive (top bucket inclusive)."""
    label: str
    lower: float
    upper: float


# Edges above the pass mark for the grade distribution.
GRADE_BUCKET_EDGES = (90.0, 80.0, 70.0, 60.0)

PARTICIPATION_LABELS = {
    5: "Excellent",
    4: "Very Good",
    3: "Good",
    2: "Fair",
    1: "Poor",
    0: "Did not participate",
}

ACADEMIC_STATUS_BANDS = [
    (90.0, "Excellent"),
    (75.0, "Good"),
    (60.0, "Fair"),
    (0.0, "Poor"),
]


def _fmt_edge(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:g}"


def grade_buckets(pass_mark: float = PASS_MARK) -> List[Bucket]:
    """
    Distribution buckets for the 0-100 scale, highest first.

    With the default pass mark of 51 this is
    90-100, 80-89, 70-79, 60-69, 51-59, 0-50.

    Labels name the whole scores a bucket holds. A pass mark outside the
    scale is clamped onto it and empty ranges are left out.
    """
    mark = min(max(float(pass_mark), 0.0), GRADE_SCALE_MAX)
    lowers = [e for e in GRADE_BUCKET_EDGES if e > mark] + [mark, 0.0]

    ranges = []
    upper = GRADE_SCALE_MAX
    for lower in lowers:
        if lower < upper:
            ranges.append((lower, upper))
            upper = lower

    buckets: List[Bucket] = []
    for idx, (lower, upper) in enumerate(ranges):
        top = upper if idx == 0 else math.ceil(upper) - 1
        buckets.append(Bucket(f"{_fmt_edge(lower)}-{_fmt_edge(top)}", lower, upper))
    return buckets


def participation_buckets() -> List[Bucket]:
    """One bucket per whole point on the 0-5 scale, highest first."""
    buckets = [Bucket(f"5 ({PARTICIPATION_LABELS[5]})", 5.0, PARTICIPATION_SCALE_MAX)]
    for point in range(4, -1, -1):
        buckets.append(Bucket(f"{point} ({PARTICIPATION_LABELS[point]})", float(point), float(point + 1)))
    return buckets


def bucket_index(score: float, buckets: List[Bucket]) -> int:
    """
    Index of the bucket holding ``score``.

    Scores above the top bucket land in it, scores below the bottom bucket
    land in the last one, so every score is counted exactly once.
    """
    for idx, bucket in enumerate(buckets):
        if score >= bucket.lower:
            return idx
    return len(buckets) - 1


def is_passing(score: Optional[float], pass_mark: float = PASS_MARK) -> bool:
    return score is not None and score >= pass_mark


def is_effective(status: Any) -> bool:
    """Present, late and excused count toward attendance; absent does not."""
    return str(getattr(status, "value", status)) in EFFECTIVE_STATUSES


def classify_academic_status(mean: Optional[float]) -> str:
    """Excellent / Good / Fair / Poor from a mean grade."""
    value = mean or 0.0
    for min_score, label in ACADEMIC_STATUS_BANDS:
        if value >= min_score:
            return label
    return "Poor"


def get_all_grade_thresholds(pass_mark: float = PASS_MARK) -> List[Dict[str, Any]]:
    """Return the grade scale for legend/reference."""
    thresholds = []
    for bucket in grade_buckets(pass_mark):
        thresholds.append(
            {
                "label": bucket.label,
                "min": bucket.lower,
                "max": bucket.upper,
                "passing": bucket.lower >= pass_mark,
            }
        )
    return thresholds

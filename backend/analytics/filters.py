"""
filters.py — Client-side narrowing of fetched records by a FilterSpec.

Each populated field of the spec is an exact-match (codes, identifiers,
labels) or inclusive range (dates, scores) constraint. Fields a record kind
does not carry are skipped for that kind. The filter never validates the
spec: an inverted date range simply matches nothing.

``period`` is matched against the grade's period code. Grades that arrive
without one were already scoped by the server's ``periodo`` parameter and
are kept.
"""

from typing import Callable, List, Sequence, TypeVar

from analytics.models import FilterSpec

R = TypeVar("R")


def _attr(record, name: str):
    return getattr(record, name, None)


def _has(record, name: str) -> bool:
    return name in type(record).model_fields


def _in_period(record, wanted: str) -> bool:
    if not _has(record, "period_code"):
        return True
    code = _attr(record, "period_code")
    return code is None or code == wanted


def _predicates(spec: FilterSpec) -> List[Callable[[object], bool]]:
    """Build one predicate per populated spec field."""
    checks: List[Callable[[object], bool]] = []

    for field_name in ("course_code", "subject_code", "student_id", "participation_type"):
        wanted = getattr(spec, field_name)
        if wanted is None:
            continue
        checks.append(
            lambda r, f=field_name, w=wanted: not _has(r, f) or _attr(r, f) == w
        )

    if spec.period is not None:
        checks.append(lambda r, w=spec.period: _in_period(r, w))

    if spec.status is not None:
        checks.append(lambda r, w=spec.status: not _has(r, "status") or _attr(r, "status") == w)

    if spec.start_date is not None:
        checks.append(lambda r, w=spec.start_date: r.record_date >= w)
    if spec.end_date is not None:
        checks.append(lambda r, w=spec.end_date: r.record_date <= w)

    if spec.min_score is not None:
        checks.append(lambda r, w=spec.min_score: not _has(r, "score") or r.score >= w)
    if spec.max_score is not None:
        checks.append(lambda r, w=spec.max_score: not _has(r, "score") or r.score <= w)

    return checks


def filter_records(records: Sequence[R], spec: FilterSpec) -> List[R]:
    """Return the records matching every populated field of ``spec``, in input order."""
    if spec.is_empty():
        return list(records)
    checks = _predicates(spec)
    return [r for r in records if all(check(r) for check in checks)]

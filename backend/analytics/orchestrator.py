"""
orchestrator.py — Per-report pipeline: fetch → filter → aggregate/join → project.

One ReportOrchestrator serves one report screen. It owns the screen's
FilterSpec and the latest result, and moves through

    idle → loading → ready
    idle → loading → failed

Every generation request takes a sequence number. Fetches of one request run
concurrently and are only aggregated once all of them completed; when a
request finishes after a newer one was started, its result is dropped
without touching the state (last request wins, nothing is cancelled).
"""

import asyncio
import datetime as dt
import logging
from enum import Enum
from typing import Callable, Dict, List, NamedTuple, Optional, Sequence

from analytics import export, stats
from analytics.export import LabelResolver
from analytics.filters import filter_records
from analytics.joiner import build_student_view, join_by_student
from analytics.models import (
    AttendanceRecord,
    ExportOptions,
    ExportPayload,
    FilterSpec,
    GradeRecord,
    JoinedStudentView,
    ParticipationRecord,
    RecordKind,
    ReportKind,
    StudentProfile,
    SummaryResult,
)
from analytics.settings import ReportSettings
from analytics.source import FetchError, RecordSource

logger = logging.getLogger(__name__)


class ReportState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


ALL_RECORDS = (RecordKind.GRADES, RecordKind.ATTENDANCE, RecordKind.PARTICIPATION)

RECORDS_NEEDED: Dict[ReportKind, Sequence[RecordKind]] = {
    ReportKind.ACADEMIC: (RecordKind.GRADES,),
    ReportKind.ATTENDANCE: (RecordKind.ATTENDANCE,),
    ReportKind.PARTICIPATION: (RecordKind.PARTICIPATION,),
    ReportKind.STUDENT: ALL_RECORDS,
    ReportKind.COMBINED: ALL_RECORDS,
}


class ReportData(NamedTuple):
    """Filtered records and label directories for one request."""
    grades: List[GradeRecord]
    attendance: List[AttendanceRecord]
    participation: List[ParticipationRecord]
    labels: LabelResolver
    profile: Optional[StudentProfile] = None


class ReportOrchestrator:
    def __init__(
        self,
        kind: ReportKind,
        source: RecordSource,
        settings: Optional[ReportSettings] = None,
        today: Optional[dt.date] = None,
    ):
        self.kind = ReportKind(kind)
        self.source = source
        self.settings = settings or ReportSettings()
        self.today = today

        self.spec = FilterSpec()
        self.state = ReportState.IDLE
        self.summary: Optional[SummaryResult] = None
        self.payload: Optional[ExportPayload] = None
        self.view: Optional[JoinedStudentView] = None
        self.error: Optional[str] = None
        self._sequence = 0

    # ── Request bookkeeping ─────────────────────────────────────────

    def _begin(self, spec: Optional[FilterSpec]) -> int:
        if spec is not None:
            self.spec = spec
        self._sequence += 1
        self.state = ReportState.LOADING
        self.error = None
        return self._sequence

    def _is_current(self, ticket: int) -> bool:
        return ticket == self._sequence

    def _fail(self, message: str):
        self.state = ReportState.FAILED
        self.summary = None
        self.payload = None
        self.view = None
        self.error = message

    def _require_student(self, spec: FilterSpec) -> str:
        if not spec.student_id:
            raise ValueError("The student report needs a student_id")
        return spec.student_id

    # ── Loading ─────────────────────────────────────────────────────

    async def _load(
        self,
        spec: FilterSpec,
        kinds: Sequence[RecordKind],
        student_id: Optional[str] = None,
    ) -> ReportData:
        """Fetch directories, records and optional profile concurrently, then filter."""
        jobs = [
            self.source.fetch_course_directory(),
            self.source.fetch_subject_directory(),
            *(self.source.fetch_records(k, spec) for k in kinds),
        ]
        if student_id is not None:
            jobs.append(self.source.fetch_student(student_id))

        # Wait for every fetch, even after one failed, then report the first failure.
        results = await asyncio.gather(*jobs, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                raise result

        courses, subjects = results[0], results[1]
        fetched = dict(zip(kinds, results[2:2 + len(kinds)]))
        profile = results[-1] if student_id is not None else None

        def narrowed(kind: RecordKind) -> list:
            return filter_records(fetched.get(kind, []), spec)

        return ReportData(
            grades=narrowed(RecordKind.GRADES),
            attendance=narrowed(RecordKind.ATTENDANCE),
            participation=narrowed(RecordKind.PARTICIPATION),
            labels=LabelResolver(courses, subjects),
            profile=profile,
        )

    async def _run(
        self,
        spec: FilterSpec,
        kinds: Sequence[RecordKind],
        build: Callable[[ReportData], object],
        slot: str,
        student_id: Optional[str] = None,
    ):
        ticket = self._begin(spec)
        logger.info("%s report: request #%d started", self.kind.value, ticket)
        try:
            data = await self._load(spec, kinds, student_id)
        except FetchError as exc:
            if not self._is_current(ticket):
                logger.debug("%s report: dropping failure of superseded request #%d", self.kind.value, ticket)
                return None
            logger.warning("%s report: request #%d failed: %s", self.kind.value, ticket, exc)
            self._fail(str(exc))
            return None

        if not self._is_current(ticket):
            logger.debug("%s report: dropping result of superseded request #%d", self.kind.value, ticket)
            return None

        result = build(data)
        setattr(self, slot, result)
        self.state = ReportState.READY
        logger.info(
            "%s report: request #%d ready (%d grades, %d attendance, %d participation)",
            self.kind.value, ticket, len(data.grades), len(data.attendance), len(data.participation),
        )
        return result

    # ── Builders ────────────────────────────────────────────────────

    def _student_view(self, data: ReportData, student_id: str) -> JoinedStudentView:
        return build_student_view(
            student_id,
            data.grades,
            data.attendance,
            data.participation,
            student_name=data.profile.full_name if data.profile else None,
        )

    def _summarize(self, data: ReportData) -> SummaryResult:
        s = self.settings
        if self.kind == ReportKind.ACADEMIC:
            return stats.compute_grade_summary(
                data.grades, s.pass_mark, s.leaderboard_size, data.labels.courses,
            )
        if self.kind == ReportKind.ATTENDANCE:
            return stats.compute_attendance_summary(
                data.attendance, s.low_attendance_threshold, data.labels.courses,
            )
        if self.kind == ReportKind.PARTICIPATION:
            return stats.compute_participation_summary(data.participation, s.leaderboard_size)
        if self.kind == ReportKind.STUDENT:
            view = self._student_view(data, self.spec.student_id)
            return stats.compute_student_summary(view, data.profile, data.labels.subjects)
        return stats.compute_combined_summary(
            join_by_student(data.grades, data.attendance, data.participation)
        )

    def _project(self, data: ReportData, options: ExportOptions) -> ExportPayload:
        if self.kind == ReportKind.ACADEMIC:
            return export.export_grades(data.grades, options, data.labels, self.today)
        if self.kind == ReportKind.ATTENDANCE:
            return export.export_attendance(data.attendance, options, data.labels, self.today)
        if self.kind == ReportKind.PARTICIPATION:
            return export.export_participation(data.participation, options, data.labels, self.today)
        if self.kind == ReportKind.STUDENT:
            view = self._student_view(data, self.spec.student_id)
            return export.export_student(view, options, data.labels, data.profile, self.today)
        return export.export_combined(
            join_by_student(data.grades, data.attendance, data.participation), self.today,
        )

    # ── Public operations ───────────────────────────────────────────

    async def generate_summary(self, spec: Optional[FilterSpec] = None) -> Optional[SummaryResult]:
        """
        Summary for this report kind.

        Returns None when the request failed (see ``state``/``error``) or was
        superseded by a newer one.
        """
        spec = spec if spec is not None else self.spec
        student_id = self._require_student(spec) if self.kind == ReportKind.STUDENT else None
        return await self._run(spec, RECORDS_NEEDED[self.kind], self._summarize, "summary", student_id)

    async def generate_export(
        self,
        spec: Optional[FilterSpec] = None,
        options: Optional[ExportOptions] = None,
    ) -> Optional[ExportPayload]:
        spec = spec if spec is not None else self.spec
        options = options or ExportOptions()
        student_id = self._require_student(spec) if self.kind == ReportKind.STUDENT else None
        return await self._run(
            spec,
            RECORDS_NEEDED[self.kind],
            lambda data: self._project(data, options),
            "payload",
            student_id,
        )

    async def join_for_student(
        self,
        student_id: str,
        spec: Optional[FilterSpec] = None,
    ) -> Optional[JoinedStudentView]:
        """Every record of one student across the three collections, filtered by ``spec``."""
        if not student_id:
            raise ValueError("student_id is required")
        spec = (spec if spec is not None else self.spec).model_copy(update={"student_id": student_id})
        return await self._run(
            spec,
            ALL_RECORDS,
            lambda data: self._student_view(data, student_id),
            "view",
            student_id,
        )

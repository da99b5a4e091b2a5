"""
Report routes — summaries, exports and the per-student view.
"""

import datetime as dt
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response

from analytics.models import ExportFormat, ExportOptions, FilterSpec, ReportKind
from analytics.orchestrator import ReportOrchestrator, ReportState
from analytics.report_builder import MEDIA_TYPES, distribution_chart, filename_for, serialize
from analytics.settings import ReportSettings
from analytics.source import ApiRecordSource, RecordSource

router = APIRouter()

CHART_KINDS = {
    ReportKind.ACADEMIC: "Grade Distribution",
    ReportKind.PARTICIPATION: "Participation Score Distribution",
}


def get_settings() -> ReportSettings:
    return ReportSettings.from_env()


def get_record_source(settings: ReportSettings = Depends(get_settings)) -> RecordSource:
    return ApiRecordSource.from_settings(settings)


def _orchestrator(kind: ReportKind, source: RecordSource, settings: ReportSettings) -> ReportOrchestrator:
    return ReportOrchestrator(kind, source, settings)


def _raise_if_failed(orchestrator: ReportOrchestrator):
    if orchestrator.state == ReportState.FAILED:
        raise HTTPException(502, f"Could not load report data: {orchestrator.error}")


@router.post("/{kind}/summary")
async def report_summary(
    kind: ReportKind,
    spec: Optional[FilterSpec] = None,
    source: RecordSource = Depends(get_record_source),
    settings: ReportSettings = Depends(get_settings),
):
    """On-screen summary for one report kind."""
    orchestrator = _orchestrator(kind, source, settings)
    try:
        summary = await orchestrator.generate_summary(spec or FilterSpec())
    except ValueError as exc:
        raise HTTPException(400, str(exc))
    _raise_if_failed(orchestrator)
    return summary


@router.post("/{kind}/payload")
async def report_payload(
    kind: ReportKind,
    spec: Optional[FilterSpec] = None,
    include_remarks: bool = True,
    source: RecordSource = Depends(get_record_source),
    settings: ReportSettings = Depends(get_settings),
):
    """Headers and rows of the export table, before serialization."""
    orchestrator = _orchestrator(kind, source, settings)
    try:
        payload = await orchestrator.generate_export(spec or FilterSpec(), ExportOptions(include_remarks=include_remarks))
    except ValueError as exc:
        raise HTTPException(400, str(exc))
    _raise_if_failed(orchestrator)
    return payload


@router.post("/{kind}/export")
async def report_export(
    kind: ReportKind,
    spec: Optional[FilterSpec] = None,
    fmt: ExportFormat = Query(ExportFormat.XLSX, alias="format"),
    include_remarks: bool = True,
    source: RecordSource = Depends(get_record_source),
    settings: ReportSettings = Depends(get_settings),
):
    """Download the report as xlsx, csv or pdf."""
    orchestrator = _orchestrator(kind, source, settings)
    try:
        payload = await orchestrator.generate_export(spec or FilterSpec(), ExportOptions(include_remarks=include_remarks))
    except ValueError as exc:
        raise HTTPException(400, str(exc))
    _raise_if_failed(orchestrator)

    content = serialize(payload, fmt, school_name=settings.school_name)
    return Response(
        content=content,
        media_type=MEDIA_TYPES[fmt],
        headers={"Content-Disposition": f'attachment; filename="{filename_for(payload, fmt)}"'},
    )


@router.post("/{kind}/distribution-chart")
async def report_distribution_chart(
    kind: ReportKind,
    spec: Optional[FilterSpec] = None,
    source: RecordSource = Depends(get_record_source),
    settings: ReportSettings = Depends(get_settings),
):
    """PNG bar chart of the score distribution (academic and participation)."""
    if kind not in CHART_KINDS:
        raise HTTPException(400, f"No distribution chart for the {kind.value} report.")
    orchestrator = _orchestrator(kind, source, settings)
    summary = await orchestrator.generate_summary(spec or FilterSpec())
    _raise_if_failed(orchestrator)
    return Response(content=distribution_chart(summary.distribution, CHART_KINDS[kind]), media_type="image/png")


@router.get("/student/{student_id}")
async def student_view(
    student_id: str,
    course_code: Optional[str] = None,
    subject_code: Optional[str] = None,
    start_date: Optional[dt.date] = None,
    end_date: Optional[dt.date] = None,
    source: RecordSource = Depends(get_record_source),
    settings: ReportSettings = Depends(get_settings),
):
    """All records of one student plus their derived figures."""
    spec = FilterSpec(
        course_code=course_code,
        subject_code=subject_code,
        start_date=start_date,
        end_date=end_date,
    )
    orchestrator = _orchestrator(ReportKind.STUDENT, source, settings)
    view = await orchestrator.join_for_student(student_id, spec)
    _raise_if_failed(orchestrator)

    return {
        **view.model_dump(mode="json"),
        "grade_mean": view.grade_mean(),
        "attendance_rate": view.attendance_rate(),
        "participation_mean": view.participation_mean(),
        "absences": view.absences(),
    }

"""
source.py — Fetching records and directories from the school API.

The API answers paginated JSON ({"results": [...], "next": url}) with
Spanish field names; this module maps them onto the typed records in
models.py. Filter fields are forwarded as query parameters so the server can
pre-filter, but callers still run the client-side filter on the result.

Transport failures, error statuses and bodies of the wrong shape all surface
as FetchError.
"""

import logging
from typing import Any, Dict, List, Optional, Protocol

import httpx
from pydantic import ValidationError

from analytics.models import (
    AttendanceRecord,
    AttendanceStatus,
    CourseDirectoryEntry,
    FilterSpec,
    GradeRecord,
    ParticipationRecord,
    Record,
    RecordKind,
    StudentProfile,
    SubjectDirectoryEntry,
)

logger = logging.getLogger(__name__)


class FetchError(Exception):
    """A record or directory fetch could not be completed."""


class RecordSource(Protocol):
    async def fetch_records(self, kind: RecordKind, spec: FilterSpec) -> List[Record]: ...

    async def fetch_course_directory(self) -> List[CourseDirectoryEntry]: ...

    async def fetch_subject_directory(self) -> List[SubjectDirectoryEntry]: ...

    async def fetch_student(self, student_id: str) -> Optional[StudentProfile]: ...


ENDPOINTS = {
    RecordKind.GRADES: "/api/grades/",
    RecordKind.ATTENDANCE: "/api/attendance/",
    RecordKind.PARTICIPATION: "/api/participation/",
}

# Wire status values. English values are accepted as well.
WIRE_STATUSES = {
    "presente": AttendanceStatus.PRESENT,
    "ausente": AttendanceStatus.ABSENT,
    "tardanza": AttendanceStatus.LATE,
    "justificado": AttendanceStatus.EXCUSED,
}
STATUS_PARAMS = {status: wire for wire, status in WIRE_STATUSES.items()}

QUERY_PARAMS = {
    "course_code": "curso",
    "subject_code": "materia",
    "student_id": "ci_estudiante",
    "start_date": "fecha_inicio",
    "end_date": "fecha_fin",
    "participation_type": "tipo_participacion",
    "period": "periodo",
}


# ── Query mapping ───────────────────────────────────────────────────

def query_params(spec: FilterSpec) -> Dict[str, str]:
    """Translate the populated FilterSpec fields into API query parameters."""
    params: Dict[str, str] = {}
    for field_name, param in QUERY_PARAMS.items():
        value = getattr(spec, field_name)
        if value is None:
            continue
        params[param] = value.isoformat() if hasattr(value, "isoformat") else str(value)
    if spec.status is not None:
        params["estado"] = STATUS_PARAMS[AttendanceStatus(spec.status)]
    return params


# ── Record mapping ──────────────────────────────────────────────────

def _text(item: Dict[str, Any], key: str) -> Optional[str]:
    value = item.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _status(raw: Any) -> AttendanceStatus:
    value = str(raw or "").strip().lower()
    if value in WIRE_STATUSES:
        return WIRE_STATUSES[value]
    return AttendanceStatus(value)


def parse_grade(item: Dict[str, Any]) -> GradeRecord:
    return GradeRecord(
        student_id=str(item["ci_estudiante"]),
        course_code=str(item["codigo_curso"]),
        subject_code=str(item["codigo_materia"]),
        criterion=_text(item, "criterio_descripcion") or "",
        score=item["nota"],
        remarks=_text(item, "observaciones"),
        created_at=item["created_at"],
        student_name=_text(item, "estudiante_nombre"),
        course_name=_text(item, "curso_nombre"),
        subject_name=_text(item, "materia_nombre"),
        period=_text(item, "periodo_nombre"),
        period_code=_text(item, "codigo_periodo"),
    )


def parse_attendance(item: Dict[str, Any]) -> AttendanceRecord:
    return AttendanceRecord(
        student_id=str(item["ci_estudiante"]),
        course_code=str(item["codigo_curso"]),
        date=item["fecha"],
        status=_status(item.get("estado")),
        arrival_time=_text(item, "hora_llegada"),
        remarks=_text(item, "observaciones"),
        student_name=_text(item, "estudiante_nombre"),
        course_name=_text(item, "curso_nombre"),
    )


def parse_participation(item: Dict[str, Any]) -> ParticipationRecord:
    return ParticipationRecord(
        student_id=str(item["ci_estudiante"]),
        course_code=str(item["codigo_curso"]),
        subject_code=str(item["codigo_materia"]),
        date=item["fecha"],
        participation_type=_text(item, "tipo_participacion") or "",
        score=item["calificacion"],
        remarks=_text(item, "observaciones"),
        student_name=_text(item, "estudiante_nombre"),
        course_name=_text(item, "curso_nombre"),
        subject_name=_text(item, "materia_nombre"),
    )


# What a parser raises on an item of the wrong shape.
MALFORMED = (KeyError, TypeError, AttributeError, ValueError, ValidationError)

PARSERS = {
    RecordKind.GRADES: parse_grade,
    RecordKind.ATTENDANCE: parse_attendance,
    RecordKind.PARTICIPATION: parse_participation,
}


def parse_course(item: Dict[str, Any]) -> CourseDirectoryEntry:
    return CourseDirectoryEntry(
        code=str(item["codigo"]),
        name=str(item.get("nombre") or item["codigo"]),
        level=_text(item, "nivel") or "",
        section=_text(item, "paralelo") or "",
    )


def parse_subject(item: Dict[str, Any]) -> SubjectDirectoryEntry:
    return SubjectDirectoryEntry(code=str(item["codigo"]), name=str(item.get("nombre") or item["codigo"]))


def parse_student(item: Dict[str, Any]) -> StudentProfile:
    return StudentProfile(
        student_id=str(item["ci"]),
        first_name=_text(item, "nombre") or "",
        last_name=_text(item, "apellido") or "",
        email=_text(item, "email"),
        birth_date=item.get("fecha_nacimiento") or None,
    )


# ── HTTP source ─────────────────────────────────────────────────────

class ApiRecordSource:
    """RecordSource backed by the school REST API."""

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings) -> "ApiRecordSource":
        return cls(settings.data_api_url, settings.data_api_token, settings.data_api_timeout)

    def _client(self) -> httpx.AsyncClient:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=self._transport,
        )

    async def _get_all(self, path: str, params: Optional[Dict[str, str]] = None) -> List[Dict[str, Any]]:
        """GET ``path`` and follow ``next`` links until the last page."""
        items: List[Dict[str, Any]] = []
        url: Optional[str] = path
        try:
            async with self._client() as client:
                while url:
                    res = await client.get(url, params=params)
                    res.raise_for_status()
                    data = res.json()
                    if isinstance(data, list):
                        items.extend(data)
                        break
                    if not isinstance(data, dict):
                        raise FetchError(f"Unexpected {type(data).__name__} body from {url}")
                    page = data.get("results") or []
                    if not isinstance(page, list):
                        raise FetchError(f"Unexpected results from {url}")
                    items.extend(page)
                    logger.debug("Fetched %d items from %s", len(page), url)
                    url = data.get("next")
                    # The next link already carries the query string.
                    params = None
        except httpx.HTTPStatusError as exc:
            raise FetchError(f"{path} answered HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise FetchError(f"Could not reach {path}: {exc}") from exc
        except ValueError as exc:
            raise FetchError(f"Invalid JSON from {path}") from exc
        return items

    async def fetch_records(self, kind: RecordKind, spec: FilterSpec) -> List[Record]:
        kind = RecordKind(kind)
        items = await self._get_all(ENDPOINTS[kind], query_params(spec))
        parse = PARSERS[kind]
        try:
            records = [parse(item) for item in items]
        except MALFORMED as exc:
            raise FetchError(f"Malformed {kind.value} record: {exc}") from exc
        logger.info("Fetched %d %s records", len(records), kind.value)
        return records

    async def fetch_course_directory(self) -> List[CourseDirectoryEntry]:
        items = await self._get_all("/api/courses/")
        try:
            return [parse_course(item) for item in items]
        except MALFORMED as exc:
            raise FetchError(f"Malformed course entry: {exc}") from exc

    async def fetch_subject_directory(self) -> List[SubjectDirectoryEntry]:
        items = await self._get_all("/api/subjects/")
        try:
            return [parse_subject(item) for item in items]
        except MALFORMED as exc:
            raise FetchError(f"Malformed subject entry: {exc}") from exc

    async def fetch_student(self, student_id: str) -> Optional[StudentProfile]:
        """Student profile, or None when the API does not know the id."""
        path = f"/api/students/{student_id}/"
        try:
            async with self._client() as client:
                res = await client.get(path)
                if res.status_code == 404:
                    return None
                res.raise_for_status()
                body = res.json()
                if not isinstance(body, dict):
                    raise FetchError(f"Unexpected {type(body).__name__} body from {path}")
                return parse_student(body)
        except httpx.HTTPStatusError as exc:
            raise FetchError(f"{path} answered HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise FetchError(f"Could not reach {path}: {exc}") from exc
        except MALFORMED as exc:
            raise FetchError(f"Malformed student profile from {path}: {exc}") from exc

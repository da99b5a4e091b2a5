"""
Tests for analytics/source.py — API pagination, field mapping and fetch errors.
"""

import asyncio
import datetime as dt
import os
import sys

import httpx
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from analytics.models import AttendanceStatus, FilterSpec, RecordKind
from analytics.source import ApiRecordSource, FetchError, query_params

BASE_URL = "http://school.test"

GRADE_ITEM = {
    "ci_estudiante": 1234567,
    "estudiante_nombre": "Ana Perez",
    "codigo_curso": "C1",
    "curso_nombre": "Grade 5",
    "codigo_materia": "MATH",
    "materia_nombre": "Mathematics",
    "criterio_descripcion": "Exam 1",
    "codigo_periodo": "2024-1",
    "periodo_nombre": "Term 1",
    "nota": "85.50",
    "observaciones": "",
    "created_at": "2024-03-05T10:00:00Z",
}


def _source(handler):
    return ApiRecordSource(BASE_URL, token="secret", transport=httpx.MockTransport(handler))


class TestQueryParams:
    def test_maps_populated_fields(self):
        spec = FilterSpec(
            course_code="C1",
            student_id="S1",
            start_date=dt.date(2024, 3, 1),
            status="absent",
            participation_type="all",
        )
        assert query_params(spec) == {
            "curso": "C1",
            "ci_estudiante": "S1",
            "fecha_inicio": "2024-03-01",
            "estado": "ausente",
        }

    def test_empty_spec(self):
        assert query_params(FilterSpec()) == {}


class TestFetchRecords:
    def test_follows_pagination(self):
        seen = []

        def handler(request):
            seen.append(request)
            if request.url.params.get("page") == "2":
                return httpx.Response(200, json={"results": [dict(GRADE_ITEM, nota=40)], "next": None})
            return httpx.Response(200, json={
                "results": [GRADE_ITEM],
                "next": f"{BASE_URL}/api/grades/?curso=C1&page=2",
            })

        records = asyncio.run(_source(handler).fetch_records(RecordKind.GRADES, FilterSpec(course_code="C1")))

        assert [r.score for r in records] == [85.5, 40.0]
        assert seen[0].url.path == "/api/grades/"
        assert seen[0].url.params["curso"] == "C1"
        assert seen[0].headers["Authorization"] == "Bearer secret"
        assert len(seen) == 2

    def test_grade_mapping(self):
        handler = lambda request: httpx.Response(200, json={"results": [GRADE_ITEM], "next": None})
        (record,) = asyncio.run(_source(handler).fetch_records(RecordKind.GRADES, FilterSpec()))
        assert record.student_id == "1234567"
        assert record.student_name == "Ana Perez"
        assert record.criterion == "Exam 1"
        assert record.period == "Term 1"
        assert record.period_code == "2024-1"
        assert record.remarks is None
        assert record.record_date == dt.date(2024, 3, 5)

    def test_attendance_status_mapping(self):
        items = [
            {"ci_estudiante": "S1", "codigo_curso": "C1", "fecha": "2024-03-05", "estado": "tardanza",
             "hora_llegada": "08:15"},
            {"ci_estudiante": "S1", "codigo_curso": "C1", "fecha": "2024-03-06", "estado": "justificado"},
        ]
        handler = lambda request: httpx.Response(200, json={"results": items, "next": None})
        records = asyncio.run(_source(handler).fetch_records(RecordKind.ATTENDANCE, FilterSpec()))
        assert [r.status for r in records] == [AttendanceStatus.LATE, AttendanceStatus.EXCUSED]
        assert records[0].arrival_time == "08:15"

    def test_participation_mapping(self):
        item = {"ci_estudiante": "S2", "codigo_curso": "C1", "codigo_materia": "SCI", "fecha": "2024-03-06",
                "tipo_participacion": "Oral", "calificacion": 4}
        handler = lambda request: httpx.Response(200, json=[item])
        (record,) = asyncio.run(_source(handler).fetch_records(RecordKind.PARTICIPATION, FilterSpec()))
        assert record.participation_type == "Oral"
        assert record.score == 4.0

    def test_http_error(self):
        handler = lambda request: httpx.Response(500, json={"detail": "boom"})
        with pytest.raises(FetchError, match="HTTP 500"):
            asyncio.run(_source(handler).fetch_records(RecordKind.GRADES, FilterSpec()))

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(FetchError):
            asyncio.run(_source(handler).fetch_records(RecordKind.GRADES, FilterSpec()))

    def test_malformed_record(self):
        broken = {k: v for k, v in GRADE_ITEM.items() if k != "nota"}
        handler = lambda request: httpx.Response(200, json={"results": [broken], "next": None})
        with pytest.raises(FetchError, match="Malformed grades record"):
            asyncio.run(_source(handler).fetch_records(RecordKind.GRADES, FilterSpec()))

    def test_invalid_json(self):
        handler = lambda request: httpx.Response(200, content=b"<html>", headers={"content-type": "text/html"})
        with pytest.raises(FetchError, match="Invalid JSON"):
            asyncio.run(_source(handler).fetch_records(RecordKind.GRADES, FilterSpec()))

    def test_scalar_body(self):
        handler = lambda request: httpx.Response(200, json="maintenance")
        with pytest.raises(FetchError, match="Unexpected str body"):
            asyncio.run(_source(handler).fetch_records(RecordKind.GRADES, FilterSpec()))

    def test_results_not_a_list(self):
        handler = lambda request: httpx.Response(200, json={"results": {"ci_estudiante": "S1"}, "next": None})
        with pytest.raises(FetchError, match="Unexpected results"):
            asyncio.run(_source(handler).fetch_records(RecordKind.GRADES, FilterSpec()))

    def test_item_not_an_object(self):
        handler = lambda request: httpx.Response(200, json={"results": ["S1"], "next": None})
        with pytest.raises(FetchError, match="Malformed attendance record"):
            asyncio.run(_source(handler).fetch_records(RecordKind.ATTENDANCE, FilterSpec()))


class TestDirectories:
    def test_courses_and_subjects(self):
        def handler(request):
            if request.url.path == "/api/courses/":
                return httpx.Response(200, json={"results": [
                    {"codigo": "C1", "nombre": "Grade 5", "nivel": "Primary", "paralelo": "A"},
                ], "next": None})
            return httpx.Response(200, json={"results": [{"codigo": "MATH", "nombre": "Mathematics"}], "next": None})

        source = _source(handler)
        (course,) = asyncio.run(source.fetch_course_directory())
        (subject,) = asyncio.run(source.fetch_subject_directory())
        assert course.label == "Grade 5 - Primary A"
        assert subject.name == "Mathematics"

    def test_student_profile(self):
        def handler(request):
            assert request.url.path == "/api/students/S1/"
            return httpx.Response(200, json={"ci": "S1", "nombre": "Ana", "apellido": "Perez",
                                             "email": "ana@school.test", "fecha_nacimiento": "2012-07-01"})

        profile = asyncio.run(_source(handler).fetch_student("S1"))
        assert profile.full_name == "Ana Perez"
        assert profile.birth_date == dt.date(2012, 7, 1)

    def test_course_entry_not_an_object(self):
        handler = lambda request: httpx.Response(200, json={"results": ["C1"], "next": None})
        with pytest.raises(FetchError, match="Malformed course entry"):
            asyncio.run(_source(handler).fetch_course_directory())

    def test_subject_entry_not_an_object(self):
        handler = lambda request: httpx.Response(200, json=[42])
        with pytest.raises(FetchError, match="Malformed subject entry"):
            asyncio.run(_source(handler).fetch_subject_directory())

    def test_student_profile_not_an_object(self):
        handler = lambda request: httpx.Response(200, json=[{"ci": "S1"}])
        with pytest.raises(FetchError, match="Unexpected list body"):
            asyncio.run(_source(handler).fetch_student("S1"))

    def test_unknown_student(self):
        handler = lambda request: httpx.Response(404, json={"detail": "Not found."})
        assert asyncio.run(_source(handler).fetch_student("NOPE")) is None

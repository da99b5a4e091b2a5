"""
School Reports — Academic analytics and report export service.
FastAPI backend entry point.
"""

import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from analytics.grading import get_all_grade_thresholds
from analytics.models import ExportFormat, ReportKind
from analytics.settings import ReportSettings
from routes.reports import router as reports_router

# Load environment
load_dotenv()

SETTINGS = ReportSettings.from_env()

logging.basicConfig(
    level=SETTINGS.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="School Reports API",
    description=(
        "Academic, attendance and participation reports over the school API, "
        "with xlsx/csv/pdf export."
    ),
    version="1.0.0",
)

# CORS — allow the frontend dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=SETTINGS.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(reports_router, prefix="/api/reports", tags=["Reports"])


@app.get("/api/health")
async def health_check():
    return {
        "status": "ok",
        "school_name": SETTINGS.school_name,
        "pass_mark": SETTINGS.pass_mark,
    }


@app.get("/api/config")
async def get_config():
    """Return server configuration to the frontend."""
    return {
        "school_name": SETTINGS.school_name,
        "pass_mark": SETTINGS.pass_mark,
        "low_attendance_threshold": SETTINGS.low_attendance_threshold,
        "leaderboard_size": SETTINGS.leaderboard_size,
        "grade_scale": get_all_grade_thresholds(SETTINGS.pass_mark),
        "report_kinds": [k.value for k in ReportKind],
        "export_formats": [f.value for f in ExportFormat],
    }

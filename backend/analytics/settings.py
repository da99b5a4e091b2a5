"""
settings.py — Environment-driven configuration for the reporting engine.

Values come from environment variables (a `.env` file is loaded by main.py
before this module is used). Defaults mirror the constants in grading.py.
"""

import os
from dataclasses import dataclass, field
from typing import List

from analytics import grading


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    return float(raw) if raw else float(default)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw else int(default)


def _env_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass(frozen=True)
class ReportSettings:
    pass_mark: float = grading.PASS_MARK
    low_attendance_threshold: float = grading.LOW_ATTENDANCE_THRESHOLD
    leaderboard_size: int = grading.LEADERBOARD_SIZE
    school_name: str = "My School"
    data_api_url: str = "http://127.0.0.1:8000"
    data_api_token: str = ""
    data_api_timeout: float = 20.0
    cors_origins: List[str] = field(default_factory=lambda: ["http://localhost:5173"])
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "ReportSettings":
        return cls(
            pass_mark=_env_float("PASS_MARK", grading.PASS_MARK),
            low_attendance_threshold=_env_float("LOW_ATTENDANCE_THRESHOLD", grading.LOW_ATTENDANCE_THRESHOLD),
            leaderboard_size=_env_int("LEADERBOARD_SIZE", grading.LEADERBOARD_SIZE),
            school_name=os.getenv("SCHOOL_NAME", "My School"),
            data_api_url=os.getenv("DATA_API_URL", "http://127.0.0.1:8000").rstrip("/"),
            data_api_token=os.getenv("DATA_API_TOKEN", "").strip(),
            data_api_timeout=_env_float("DATA_API_TIMEOUT_SECONDS", 20.0),
            cors_origins=_env_list("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000"),
            log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        )

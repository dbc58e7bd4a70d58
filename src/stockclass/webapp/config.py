"""Configuration constants for the StockClass teacher console."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

load_dotenv()


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


SESSION_SECRET = os.environ.get("SESSION_SECRET", "change-this-session-secret")
SQLITE_FILE_NAME = os.environ.get("STOCKCLASS_SQLITE", "stockclass.db")
TEACHER_PASSCODE = os.environ.get("TEACHER_PASSCODE", "0000")
EVENT_LOG_PATH: Optional[Path] = (
    Path(os.environ["STOCKCLASS_EVENT_LOG"]) if os.environ.get("STOCKCLASS_EVENT_LOG") else None
)
HANDLE_MAX_ATTEMPTS = _int_env("STOCKCLASS_HANDLE_MAX_ATTEMPTS", 9000)
LOGIN_MAX_ATTEMPTS = _int_env("LOGIN_MAX_ATTEMPTS", 5)
LOGIN_LOCKOUT_MINUTES = _int_env("LOGIN_LOCKOUT_MINUTES", 15)

APP_TITLE = "주식 시뮬레이션 교사용 관리 페이지"
TEACHER_ONLY_WARNING = "⚠️ 본 사이트는 교사용입니다. 학생들에게 노출되지 않도록 해주세요."
EDUCATION_NOTE = (
    "※ 본 게임은 실제 투자가 아닌 학습용 시뮬레이션으로, 초·중·고등학생의 금융 이해력 향상과 "
    "합리적 판단력 함양을 위한 교육 활동입니다."
)
NAV_LINKS: Tuple[Tuple[str, str], ...] = (
    ("/students", "학생 현황"),
    ("/create", "학생 생성"),
)

__all__ = [
    "APP_TITLE",
    "EDUCATION_NOTE",
    "EVENT_LOG_PATH",
    "HANDLE_MAX_ATTEMPTS",
    "LOGIN_LOCKOUT_MINUTES",
    "LOGIN_MAX_ATTEMPTS",
    "NAV_LINKS",
    "SESSION_SECRET",
    "SQLITE_FILE_NAME",
    "TEACHER_ONLY_WARNING",
    "TEACHER_PASSCODE",
]

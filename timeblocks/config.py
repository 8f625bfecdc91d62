from __future__ import annotations

import os
import re

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
LLM_DEBUG = os.getenv("LLM_DEBUG", "0") == "1"

HHMM_RE = re.compile(r"^(\d{1,2}):(\d{1,2})$")

# -------------------------
# 시간 격자
# -------------------------
HOURS_START = 0
HOURS_END = 24
MINUTES_PER_UNIT = 30
UNITS_PER_HOUR = 60 // MINUTES_PER_UNIT
UNITS_PER_DAY = (HOURS_END - HOURS_START) * UNITS_PER_HOUR
INVALID_UNIT = -1
DEFAULT_ADD_UNITS = UNITS_PER_HOUR
# 한 번의 이동/추가가 다룰 수 있는 최대 범위
MAX_SPAN_DAYS = 366
MAX_SPAN_UNITS = MAX_SPAN_DAYS * UNITS_PER_DAY

SPLIT_SUFFIX = "-split-"
DEFAULT_TASK_TITLE = "New Task"

# -------------------------
# 색상 팔레트
# -------------------------
COLORS = [
    "bg-sky-400",
    "bg-blue-500",
    "bg-emerald-400",
    "bg-lime-400",
    "bg-amber-400",
    "bg-orange-500",
    "bg-rose-400",
    "bg-violet-400",
]
WARNING_COLORS = {"bg-rose-400", "bg-orange-500"}
URGENT_COLOR = "bg-rose-400"
COLOR_WORDS = {
    "sky": "bg-sky-400",
    "lightblue": "bg-sky-400",
    "cyan": "bg-sky-400",
    "blue": "bg-blue-500",
    "navy": "bg-blue-500",
    "green": "bg-emerald-400",
    "emerald": "bg-emerald-400",
    "lime": "bg-lime-400",
    "yellow": "bg-amber-400",
    "amber": "bg-amber-400",
    "orange": "bg-orange-500",
    "red": "bg-rose-400",
    "rose": "bg-rose-400",
    "pink": "bg-rose-400",
    "purple": "bg-violet-400",
    "violet": "bg-violet-400",
}

# -------------------------
# 플래너 LLM
# -------------------------
DEFAULT_PLANNER_MODEL = os.getenv("PLANNER_MODEL", "gpt-5-nano")
DEFAULT_REASONING_EFFORT = os.getenv("PLANNER_REASONING_EFFORT", "low")
ALLOWED_REASONING_EFFORTS = {"low", "medium", "high"}
MAX_COMPLETION_TOKENS = int(os.getenv("PLANNER_MAX_COMPLETION_TOKENS", "8000"))

# -------------------------
# 서버
# -------------------------
API_BASE = os.getenv("API_BASE", "/api")
DEFAULT_SESSION_ID = "default"
UNDO_HISTORY_LIMIT = int(os.getenv("UNDO_HISTORY_LIMIT", "50"))
HOST = os.getenv("HOST", "127.0.0.1")
PORT = int(os.getenv("PORT", "8787"))

CORS_ALLOW_ORIGINS = os.getenv("CORS_ALLOW_ORIGINS", "")
cors_origins: list[str] = []
if CORS_ALLOW_ORIGINS:
    cors_origins.extend(
        [origin.strip() for origin in CORS_ALLOW_ORIGINS.split(",") if origin.strip()])

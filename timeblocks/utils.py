from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any, Tuple
import math
import re

from .config import (
    LLM_DEBUG,
    HHMM_RE,
    HOURS_START,
    MINUTES_PER_UNIT,
    UNITS_PER_DAY,
    INVALID_UNIT,
)


def _log_debug(message: str) -> None:
    if LLM_DEBUG:
        print(message, flush=True)


def normalize_text(text: str) -> str:
    t = (text or "").strip()
    t = re.sub(r"\s+", " ", t)
    return t


# -------------------------
# 시간 <-> 유닛
# -------------------------

def round_minutes_to_units(minutes: float) -> int:
    """Nearest whole unit; halves round toward +inf (-15 -> 0, 15 -> 1)."""
    return math.floor(minutes / MINUTES_PER_UNIT + 0.5)


def time_to_unit(text: Any) -> int:
    """
    "HH:MM" -> unit index. Hours past 23 are next-day spillover ("25:00" -> 50).
    Returns INVALID_UNIT when the text is not a clock time.
    """
    if not isinstance(text, str):
        return INVALID_UNIT
    candidate = re.sub(r"\s*:\s*", ":", text.strip())
    parts = candidate.split(":")
    if len(parts) == 3:
        candidate = f"{parts[0]}:{parts[1]}"
    match = HHMM_RE.match(candidate)
    if not match:
        return INVALID_UNIT
    hour = int(match.group(1))
    minute = int(match.group(2))
    if minute > 59:
        return INVALID_UNIT
    minutes_from_start = (hour - HOURS_START) * 60 + minute
    return round_minutes_to_units(minutes_from_start)


def safe_time_to_unit(value: Any) -> int:
    """Tolerant variant of time_to_unit ("10am" -> 20, "18" -> 36)."""
    if isinstance(value, bool):
        return INVALID_UNIT
    if isinstance(value, int):
        value = str(value)
    if not isinstance(value, str):
        return INVALID_UNIT
    clean = re.sub(r"\s", "", value.lower())
    clean = clean.replace("am", "").replace("pm", "")
    if not clean:
        return INVALID_UNIT
    if ":" not in clean:
        if not clean.isdigit():
            return INVALID_UNIT
        return time_to_unit(f"{int(clean)}:00")
    return time_to_unit(clean)


def unit_to_time(unit: int) -> Tuple[int, int]:
    total_minutes = HOURS_START * 60 + unit * MINUTES_PER_UNIT
    return (total_minutes // 60, total_minutes % 60)


def format_time(unit: int) -> str:
    hour, minute = unit_to_time(unit)
    return f"{hour:02d}:{minute:02d}"


# -------------------------
# 날짜 키
# -------------------------

def parse_date_key(key: str) -> date:
    return datetime.strptime(key.strip(), "%Y-%m-%d").date()


def format_date_key(value: date) -> str:
    return value.strftime("%Y-%m-%d")


def today_key() -> str:
    return format_date_key(date.today())


def add_days(key: str, offset: int) -> str:
    return format_date_key(parse_date_key(key) + timedelta(days=offset))


def days_between(start_key: str, end_key: str) -> int:
    return (parse_date_key(end_key) - parse_date_key(start_key)).days


def to_global_ordinal(key: str, unit: int, anchor_key: str) -> int:
    return days_between(anchor_key, key) * UNITS_PER_DAY + unit


def from_global_ordinal(ordinal: int, anchor_key: str) -> Tuple[str, int]:
    day_offset, unit = divmod(ordinal, UNITS_PER_DAY)
    return (add_days(anchor_key, day_offset), unit)

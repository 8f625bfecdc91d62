from __future__ import annotations

import logging
import math
import re
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from pydantic import ValidationError

from ..config import (
    COLORS,
    COLOR_WORDS,
    DEFAULT_ADD_UNITS,
    DEFAULT_TASK_TITLE,
    INVALID_UNIT,
    MAX_SPAN_UNITS,
)
from ..utils import (
    _log_debug,
    format_date_key,
    format_time,
    parse_date_key,
    round_minutes_to_units,
    safe_time_to_unit,
    today_key,
)
from .schemas import (
    ActionType,
    AddAction,
    CanonicalAction,
    DeleteAction,
    RenameAction,
    ResizeAction,
    SetColorAction,
    SetUrgentAction,
    ShiftAction,
    SplitAction,
)

logger = logging.getLogger(__name__)

_KEY_STRIP_RE = re.compile(r"[^a-z0-9]")

# Discriminant keys, highest priority first.
KIND_KEYS = ("type", "action", "tool", "kind", "op", "operation")

KIND_SYNONYMS: Dict[str, ActionType] = {
    "add": "add",
    "create": "add",
    "insert": "add",
    "new": "add",
    "delete": "delete",
    "remove": "delete",
    "cancel": "delete",
    "shift": "shift",
    "move": "shift",
    "delay": "shift",
    "postpone": "shift",
    "resize": "resize",
    "extend": "resize",
    "shorten": "resize",
    "split": "split",
    "cut": "split",
    "rename": "rename",
    "retitle": "rename",
    "setcolor": "setColor",
    "color": "setColor",
    "recolor": "setColor",
    "seturgent": "setUrgent",
    "urgent": "setUrgent",
    "markurgent": "setUrgent",
}

# Field aliases in resolution order. Keys are compared after _fold_key.
TITLE_KEYS = ("title", "name", "task", "tasktitle")
DATE_KEYS = ("date", "day", "datekey")
ADD_START_KEYS = ("start", "starttime", "newstart", "at", "from")
ADD_END_KEYS = ("end", "endtime", "newend", "to", "until")
ADD_DURATION_KEYS = ("durationminutes", "duration", "minutes")
SHIFT_DELTA_KEYS = ("deltaminutes", "minutesdelta", "delta", "minutes", "offsetminutes")
RESIZE_START_KEYS = ("newstart", "start", "starttime")
RESIZE_END_KEYS = ("newend", "end", "endtime")
SPLIT_AT_KEYS = ("attime", "at", "time", "splitat")
RENAME_FROM_KEYS = ("fromtitle", "title", "oldtitle")
RENAME_TO_KEYS = ("totitle", "newtitle", "to")
COLOR_KEYS = ("color", "newcolor", "value")
URGENT_KEYS = ("urgent", "value", "flag")

_TRUE_WORDS = {"true", "yes", "y", "1", "on"}
_FALSE_WORDS = {"false", "no", "n", "0", "off"}
_LOOSE_DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%Y.%m.%d", "%m/%d/%Y")


class SkipAction(Exception):
  """Raised while normalizing one entry; the entry is dropped."""


# ---------------------------------------------------------------------------
#  Utility functions
# ---------------------------------------------------------------------------

def _fold_key(key: Any) -> str:
  if not isinstance(key, str):
    return ""
  return _KEY_STRIP_RE.sub("", key.lower())


def _fold_keys(raw: Mapping[Any, Any]) -> Dict[str, Any]:
  folded: Dict[str, Any] = {}
  for key, value in raw.items():
    name = _fold_key(key)
    if name and name not in folded:
      folded[name] = value
  return folded


def _pick(fields: Dict[str, Any], keys: Iterable[str]) -> Any:
  for key in keys:
    value = fields.get(key)
    if value is None:
      continue
    if isinstance(value, str) and not value.strip():
      continue
    return value
  return None


def _clean_str(value: Any) -> Optional[str]:
  if not isinstance(value, str):
    return None
  text = value.strip()
  return text or None


def _clean_number(value: Any) -> Optional[float]:
  if isinstance(value, bool):
    return None
  if isinstance(value, (int, float)):
    raw: Any = value
  else:
    raw = _clean_str(value)
    if not raw:
      return None
  try:
    number = float(raw)
  except (ValueError, OverflowError):
    return None
  # json.loads and float() both accept NaN / Infinity
  if not math.isfinite(number):
    return None
  return number


def parse_bool(value: Any) -> Optional[bool]:
  if isinstance(value, bool):
    return value
  if isinstance(value, (int, float)):
    return value != 0
  text = _clean_str(value)
  if not text:
    return None
  lowered = text.lower()
  if lowered in _TRUE_WORDS:
    return True
  if lowered in _FALSE_WORDS:
    return False
  return None


def resolve_color(value: Any) -> Optional[str]:
  """Palette class for a color given as a class or a color word."""
  text = _clean_str(value)
  if not text:
    return None
  if text in COLORS:
    return text
  lowered = text.lower()
  for color in COLORS:
    if color == lowered:
      return color
  return COLOR_WORDS.get(_fold_key(lowered))


def resolve_kind(raw: Mapping[str, Any]) -> Optional[ActionType]:
  fields = _fold_keys(raw)
  for key in KIND_KEYS:
    value = _clean_str(fields.get(key))
    if value:
      return KIND_SYNONYMS.get(_fold_key(value))
  return None


def try_parse_date(value: Any) -> Optional[date]:
  if isinstance(value, datetime):
    return value.date()
  if isinstance(value, date):
    return value
  if not isinstance(value, str):
    return None
  cleaned = value.strip()
  if not cleaned:
    return None
  # "2026-02-01T00:00:00Z" -> "2026-02-01"
  if "T" in cleaned:
    cleaned = cleaned.split("T")[0]
  elif " " in cleaned:
    cleaned = cleaned.split(" ")[0]
  for fmt in _LOOSE_DATE_FORMATS:
    try:
      return datetime.strptime(cleaned, fmt).date()
    except ValueError:
      continue
  return None


def normalize_date(value: Any, context_date: str) -> str:
  """Loose date -> day key, falling back to context_date; fixes year drift."""
  parsed = try_parse_date(value)
  if parsed is None:
    if value is not None:
      _log_debug(f"[NORMALIZE] unparsable date {value!r}, using {context_date}")
    return context_date

  context = parse_date_key(context_date)
  if parsed.year != context.year and (parsed.month, parsed.day) == (context.month, context.day):
    logger.warning("Year drift detected, forcing %s -> %s",
                   format_date_key(parsed), context_date)
    return context_date
  return format_date_key(parsed)


def _require_title(fields: Dict[str, Any], keys: Iterable[str] = TITLE_KEYS) -> str:
  title = _clean_str(_pick(fields, keys))
  if not title:
    raise SkipAction("missing title")
  return title


def _require_unit(value: Any, label: str) -> int:
  unit = safe_time_to_unit(value)
  if unit == INVALID_UNIT:
    raise SkipAction(f"invalid {label} time {value!r}")
  return unit


def _optional_unit(value: Any, label: str) -> Optional[int]:
  if value is None:
    return None
  return _require_unit(value, label)


# ---------------------------------------------------------------------------
#  Per-kind builders
# ---------------------------------------------------------------------------

def _build_add(fields: Dict[str, Any], day: str) -> AddAction:
  title = _clean_str(_pick(fields, TITLE_KEYS)) or DEFAULT_TASK_TITLE
  start_unit = _require_unit(_pick(fields, ADD_START_KEYS), "start")

  raw_end = _pick(fields, ADD_END_KEYS)
  if raw_end is not None:
    end_unit = _require_unit(raw_end, "end")
  else:
    duration_minutes = _clean_number(_pick(fields, ADD_DURATION_KEYS))
    units = round_minutes_to_units(duration_minutes) if duration_minutes else 0
    end_unit = start_unit + (units if units > 0 else DEFAULT_ADD_UNITS)

  if end_unit <= start_unit:
    _log_debug(f"[NORMALIZE] add {title!r}: end {format_time(end_unit)} "
               f"<= start {format_time(start_unit)}, clamping to one unit")
    end_unit = start_unit + 1
  if end_unit - start_unit > MAX_SPAN_UNITS:
    raise SkipAction(f"duration of {end_unit - start_unit} units is too long")

  return AddAction(
      title=title,
      date=day,
      start_unit=start_unit,
      end_unit=end_unit,
      color=resolve_color(fields.get("color")),
      urgent=bool(parse_bool(fields.get("urgent"))),
  )


def _build_delete(fields: Dict[str, Any], day: str) -> DeleteAction:
  return DeleteAction(title=_require_title(fields), date=day)


def _build_shift(fields: Dict[str, Any], day: str) -> ShiftAction:
  title = _require_title(fields)
  delta = _clean_number(_pick(fields, SHIFT_DELTA_KEYS))
  if delta is None:
    raise SkipAction("missing deltaMinutes")
  if abs(round_minutes_to_units(delta)) > MAX_SPAN_UNITS:
    raise SkipAction(f"deltaMinutes {delta:g} is out of range")
  return ShiftAction(title=title, date=day, delta_minutes=delta)


def _build_resize(fields: Dict[str, Any], day: str) -> ResizeAction:
  title = _require_title(fields)
  new_start = _optional_unit(_pick(fields, RESIZE_START_KEYS), "newStart")
  new_end = _optional_unit(_pick(fields, RESIZE_END_KEYS), "newEnd")
  if new_start is None and new_end is None:
    raise SkipAction("resize without newStart/newEnd")
  return ResizeAction(title=title, date=day, new_start_unit=new_start, new_end_unit=new_end)


def _build_split(fields: Dict[str, Any], day: str) -> SplitAction:
  title = _require_title(fields)
  at_unit = _require_unit(_pick(fields, SPLIT_AT_KEYS), "atTime")
  return SplitAction(title=title, date=day, at_unit=at_unit)


def _build_rename(fields: Dict[str, Any], day: str) -> RenameAction:
  from_title = _require_title(fields, RENAME_FROM_KEYS)
  to_title = _clean_str(_pick(fields, RENAME_TO_KEYS))
  if not to_title:
    raise SkipAction("rename without toTitle")
  return RenameAction(title=from_title, date=day, to_title=to_title)


def _build_set_color(fields: Dict[str, Any], day: str) -> SetColorAction:
  title = _require_title(fields)
  raw_color = _pick(fields, COLOR_KEYS)
  color = resolve_color(raw_color)
  if color is None:
    raise SkipAction(f"color {raw_color!r} is not in the palette")
  return SetColorAction(title=title, date=day, color=color)


def _build_set_urgent(fields: Dict[str, Any], day: str) -> SetUrgentAction:
  title = _require_title(fields)
  urgent = parse_bool(_pick(fields, URGENT_KEYS))
  return SetUrgentAction(title=title, date=day, urgent=bool(urgent))


_BUILDERS: Dict[ActionType, Callable[[Dict[str, Any], str], CanonicalAction]] = {
    "add": _build_add,
    "delete": _build_delete,
    "shift": _build_shift,
    "resize": _build_resize,
    "split": _build_split,
    "rename": _build_rename,
    "setColor": _build_set_color,
    "setUrgent": _build_set_urgent,
}


# ---------------------------------------------------------------------------
#  Entry points
# ---------------------------------------------------------------------------

def normalize_action(raw: Any, context_date: Optional[str] = None) -> Optional[CanonicalAction]:
  """One loose action dict -> canonical action, or None when it must be skipped."""
  context = context_date or today_key()
  if not isinstance(raw, Mapping):
    logger.warning("Skipping non-object action: %r", raw)
    return None

  kind = resolve_kind(raw)
  if kind is None:
    logger.warning("Skipping action with unknown type: %r", raw)
    return None

  fields = _fold_keys(raw)
  day = normalize_date(_pick(fields, DATE_KEYS), context)
  try:
    action = _BUILDERS[kind](fields, day)
  except SkipAction as exc:
    logger.warning("Skipping %s action (%s): %r", kind, exc, raw)
    return None
  except ValidationError as exc:
    logger.warning("Skipping %s action (invalid fields: %s): %r",
                   kind, exc.error_count(), raw)
    return None

  _log_debug(f"[NORMALIZE] {kind} on {day}: {action!r}")
  return action


def _coerce_action_list(raw_actions: Any) -> Tuple[List[Any], bool]:
  if raw_actions is None:
    return ([], True)
  if isinstance(raw_actions, Mapping):
    inner = raw_actions.get("actions")
    if isinstance(inner, list):
      return (inner, True)
    return ([raw_actions], True)
  if isinstance(raw_actions, (str, bytes)):
    return ([], False)
  try:
    return (list(raw_actions), True)
  except TypeError:
    return ([], False)


def normalize_actions(raw_actions: Any,
                      context_date: Optional[str] = None) -> List[CanonicalAction]:
  """
  Loose upstream action list -> canonical actions, in input order.
  Malformed entries are logged and dropped; the batch never aborts.
  """
  context = context_date or today_key()
  parse_date_key(context)
  items, ok = _coerce_action_list(raw_actions)
  if not ok:
    logger.warning("Action payload is not a list: %r", raw_actions)
    return []

  normalized: List[CanonicalAction] = []
  for raw in items:
    action = normalize_action(raw, context)
    if action is not None:
      normalized.append(action)
  _log_debug(f"[NORMALIZE] {len(normalized)}/{len(items)} actions kept (context {context})")
  return normalized

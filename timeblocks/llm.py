from __future__ import annotations

import json
import re
import time
from typing import Any, Dict, List, Optional

from fastapi import HTTPException
from openai import AsyncOpenAI

from .config import (
    OPENAI_API_KEY,
    COLORS,
    DEFAULT_PLANNER_MODEL,
    DEFAULT_REASONING_EFFORT,
    ALLOWED_REASONING_EFFORTS,
    MAX_COMPLETION_TOKENS,
)
from .blocks import family_of, family_span
from .models import TaskBlock
from .utils import _log_debug, format_time, normalize_text, today_key

async_client: Optional[AsyncOpenAI] = AsyncOpenAI(api_key=OPENAI_API_KEY) if OPENAI_API_KEY else None

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)


def get_async_client() -> AsyncOpenAI:
  if async_client is None:
    raise HTTPException(
        status_code=500,
        detail="LLM client is not configured (OPENAI_API_KEY is not set)")
  return async_client

# -------------------------
# LLM 프롬프트
# -------------------------
SYSTEM_ROLE = """You are the "TimeBlocks" scheduling engine. You are a strictly logical API, not a chatbot.
You modify a user's calendar of time blocks based on a natural language request.
- Times are strictly 24-hour "HH:MM". Hours beyond 24:00 are valid for next-day spillover ("25:00").
- Dates are "YYYY-MM-DD".
- The grid has 30-minute granularity; prefer 30-minute increments.
"""

PLANNER_ROLE = """You are the Senior Scheduler. Analyze the user request against the current calendar and
write a precise, numbered, step-by-step plan. Do not write JSON.
1. Identify exactly which existing tasks (title and date) are meant.
2. Do the math explicitly ("13:00 + 45 minutes = 13:45").
3. "move/shift/delay/push/bring forward" keeps the duration. "extend/shorten/longer/shorter" changes it.
4. For an exclusive insert (a break, something not done at the same time), end the original task at the
   insert start, add the new task, then add the remainder of the original task after it so the total
   duration is kept. For concurrent requests ("while studying") just add the new task.
5. If a task has several slices with the same title, say that every slice must be updated.
"""

IMPLEMENTER_ROLE = """You are the Code Implementer. Translate the plan you receive into JSON, nothing else.
Return exactly {"actions": [...]} using only these actions and fields:
- {"type": "add", "title", "date", "start": "HH:MM", "end": "HH:MM", "urgent"?: bool, "color"?: string}
- {"type": "delete", "title", "date"}
- {"type": "shift", "title", "date", "deltaMinutes": number}  (+ later, - earlier, duration unchanged)
- {"type": "resize", "title", "date", "newStart"?: "HH:MM", "newEnd"?: "HH:MM"}
- {"type": "split", "title", "date", "atTime": "HH:MM"}  (atTime strictly inside the task)
- {"type": "rename", "date", "fromTitle", "toTitle"}
- {"type": "setColor", "title", "date", "color"}  (color from: __COLORS__)
- {"type": "setUrgent", "title", "date", "urgent": bool}
Rules:
1. Copy "title" and "date" exactly from Existing Tasks; never invent placeholders.
2. Do not change the math of the plan. Multiple requests become multiple actions, in order.
3. Every action has a "date"; use Today when the plan gives none.
4. Never simulate a split with delete + add, and never use split + shift to open a gap.
"""


def _task_views(tasks: List[TaskBlock]) -> List[Dict[str, Any]]:
  """One entry per logical entity; spillover shown as end times past 24:00."""
  views: List[Dict[str, Any]] = []
  seen: set[str] = set()
  for task in tasks:
    logical = task.logical_id
    if logical in seen:
      continue
    seen.add(logical)
    family = family_of(tasks, logical)
    anchor = family[0].date
    start, end, _ = family_span(family, anchor)
    views.append({
        "title": task.title,
        "date": anchor,
        "start": format_time(start),
        "end": format_time(end),
        "color": task.color,
        "urgent": task.urgent,
    })
  return views


def _live_context(tasks: List[TaskBlock], today: str) -> str:
  return (f"### LIVE CONTEXT\n- Today: {today}\n"
          f"- Existing Tasks: {json.dumps(_task_views(tasks), ensure_ascii=False, indent=2)}\n")


def build_planner_prompt(request: str, tasks: List[TaskBlock], today: str) -> str:
  return "\n".join([
      SYSTEM_ROLE,
      PLANNER_ROLE,
      _live_context(tasks, today),
      "### USER REQUEST",
      f'"{normalize_text(request)}"',
      "",
      "### YOUR PLAN:",
  ])


def build_implementer_prompt(plan: str, tasks: List[TaskBlock], today: str) -> str:
  return "\n".join([
      SYSTEM_ROLE,
      IMPLEMENTER_ROLE.replace("__COLORS__", ", ".join(COLORS)),
      _live_context(tasks, today),
      "### LOGICAL PLAN",
      plan.strip() or "(empty)",
      "",
      "### YOUR JSON RESPONSE:",
  ])


# -------------------------
# 응답 파싱
# -------------------------

def _safe_json_loads(raw: str) -> Any:
  if not raw or not isinstance(raw, str):
    return None
  raw = _FENCE_RE.sub("", raw).strip()

  try:
    return json.loads(raw)
  except ValueError:
    pass

  for opener, closer in (("{", "}"), ("[", "]")):
    start = raw.find(opener)
    end = raw.rfind(closer)
    if start != -1 and end != -1 and end > start:
      try:
        return json.loads(raw[start:end + 1])
      except ValueError:
        continue
  return None


def extract_actions(raw: str) -> List[Any]:
  """{"actions": [...]} or a bare list; any other shape yields []."""
  parsed = _safe_json_loads(raw)
  if isinstance(parsed, list):
    return parsed
  if isinstance(parsed, dict) and isinstance(parsed.get("actions"), list):
    return parsed["actions"]
  _log_debug(f"[LLM DEBUG] response has no actions list: {str(raw)[:200]!r}")
  return []


# -------------------------
# 호출
# -------------------------

def _pick_reasoning_effort(value: Optional[str]) -> str:
  cleaned = (value or "").strip().lower()
  if cleaned in ALLOWED_REASONING_EFFORTS:
    return cleaned
  return DEFAULT_REASONING_EFFORT


async def _chat(kind: str,
                prompt: str,
                json_mode: bool,
                model_name: Optional[str] = None,
                reasoning_effort: Optional[str] = None) -> str:
  c = get_async_client()
  model = (model_name or "").strip() or DEFAULT_PLANNER_MODEL
  params: Dict[str, Any] = {
      "model": model,
      "messages": [{"role": "user", "content": prompt}],
      "max_completion_tokens": MAX_COMPLETION_TOKENS,
      "reasoning_effort": _pick_reasoning_effort(reasoning_effort),
  }
  if json_mode:
    params["response_format"] = {"type": "json_object"}

  started = time.perf_counter()
  try:
    completion = await c.chat.completions.create(**params)
  except Exception as exc:
    _log_debug(f"[LLM DEBUG] {kind} exception: {exc!r}")
    raise HTTPException(status_code=502, detail=f"Planner request failed: {exc}") from exc

  latency_ms = (time.perf_counter() - started) * 1000.0
  content = completion.choices[0].message.content if completion.choices else None
  raw_content = content if isinstance(content, str) else ""
  _log_debug(f"[LLM DEBUG] {kind} model={model} latency={latency_ms:.0f}ms\n{raw_content}")
  return raw_content


async def request_plan(request: str,
                       tasks: List[TaskBlock],
                       today: Optional[str] = None,
                       model_name: Optional[str] = None) -> List[Any]:
  """
  Two passes: a free-text plan, then the plan translated into an action list.
  Returns the raw (not yet normalized) actions.
  """
  today = today or today_key()
  plan = await _chat("planner", build_planner_prompt(request, tasks, today),
                     json_mode=False, model_name=model_name)
  raw = await _chat("implementer", build_implementer_prompt(plan, tasks, today),
                    json_mode=True, model_name=model_name)
  return extract_actions(raw)

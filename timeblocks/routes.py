from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query

from .config import DEFAULT_SESSION_ID
from .models import (
    TaskBlock,
    TaskListPayload,
    NormalizeRequest,
    ApplyRequest,
    PlanRequest,
    AgentRunRequest,
    CreateBlockRequest,
    DropRequest,
    SplitRequest,
    dump_tasks,
)
from .utils import _log_debug, parse_date_key, today_key
from .agent import apply_actions, dump_actions, normalize_actions
from .editing import create_block_at, delete_block, drop_block, split_block
from . import llm, state

router = APIRouter()
logger = logging.getLogger(__name__)


def _context_date(raw: Optional[str]) -> str:
    if raw is None or not raw.strip():
        return today_key()
    try:
        parse_date_key(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"todayKey must be YYYY-MM-DD, got {raw!r}")
    return raw.strip()


def _tasks_response(tasks: List[TaskBlock], **extra: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"tasks": dump_tasks(tasks)}
    payload.update(extra)
    return payload


@router.get("/tasks")
def list_tasks(session_id: str = Query(DEFAULT_SESSION_ID)):
    return _tasks_response(state.get_tasks(session_id))


@router.put("/tasks")
def put_tasks(body: TaskListPayload, session_id: str = Query(DEFAULT_SESSION_ID)):
    return _tasks_response(state.commit_tasks(session_id, body.tasks))


@router.post("/tasks/create")
def create_task(body: CreateBlockRequest, session_id: str = Query(DEFAULT_SESSION_ID)):
    title = body.title.strip()
    if not title:
        raise HTTPException(status_code=400, detail="title is required")
    date = _context_date(body.date)
    updated = create_block_at(state.get_tasks(session_id), title, date, body.unit)
    return _tasks_response(state.commit_tasks(session_id, updated))


@router.post("/tasks/drop")
def drop_task(body: DropRequest, session_id: str = Query(DEFAULT_SESSION_ID)):
    tasks = state.get_tasks(session_id)
    if not any(t.id == body.task_id for t in tasks):
        raise HTTPException(status_code=404, detail=f"Unknown task id: {body.task_id}")
    date = _context_date(body.date)
    try:
        updated = drop_block(tasks, body.task_id, date, body.unit, body.mode)
    except (ValueError, OverflowError) as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _tasks_response(state.commit_tasks(session_id, updated))


@router.post("/tasks/split")
def split_task(body: SplitRequest, session_id: str = Query(DEFAULT_SESSION_ID)):
    tasks = state.get_tasks(session_id)
    if not any(t.id == body.task_id for t in tasks):
        raise HTTPException(status_code=404, detail=f"Unknown task id: {body.task_id}")
    updated = split_block(tasks, body.task_id, body.unit)
    return _tasks_response(state.commit_tasks(session_id, updated))


@router.delete("/tasks/{task_id}")
def remove_task(task_id: str, session_id: str = Query(DEFAULT_SESSION_ID)):
    tasks = state.get_tasks(session_id)
    if not any(t.id == task_id for t in tasks):
        raise HTTPException(status_code=404, detail=f"Unknown task id: {task_id}")
    return _tasks_response(state.commit_tasks(session_id, delete_block(tasks, task_id)))


@router.post("/normalize")
def normalize(body: NormalizeRequest):
    actions = normalize_actions(body.actions, _context_date(body.today_key))
    return {"actions": dump_actions(actions)}


@router.post("/apply")
def apply(body: ApplyRequest):
    actions = normalize_actions(body.actions, _context_date(body.today_key))
    updated = apply_actions(actions, body.tasks)
    return _tasks_response(updated, actions=dump_actions(actions))


@router.post("/ai-plan")
async def ai_plan(body: PlanRequest):
    context = _context_date(body.today_key)
    raw_actions = await llm.request_plan(body.prompt, body.tasks, context, model_name=body.model)
    actions = normalize_actions(raw_actions, context)
    _log_debug(f"[AI PLAN] raw={len(raw_actions)} normalized={len(actions)}")
    return {"actions": dump_actions(actions)}


@router.post("/agent/run")
async def agent_run(body: AgentRunRequest, session_id: str = Query(DEFAULT_SESSION_ID)):
    context = _context_date(body.today_key)
    before = state.get_tasks(session_id)
    try:
        raw_actions = await llm.request_plan(body.prompt, before, context, model_name=body.model)
    except HTTPException as exc:
        if exc.status_code >= 500:
            logger.warning("Planner failed for session %s: %s", session_id, exc.detail)
        raise

    actions = normalize_actions(raw_actions, context)
    updated = apply_actions(actions, before)
    if not body.dry_run and actions:
        updated = state.commit_tasks(session_id, updated)
    return _tasks_response(updated, actions=dump_actions(actions), dryRun=body.dry_run)


@router.post("/undo")
def undo(session_id: str = Query(DEFAULT_SESSION_ID)):
    tasks, changed = state.undo(session_id)
    return _tasks_response(tasks, changed=changed)


@router.post("/redo")
def redo(session_id: str = Query(DEFAULT_SESSION_ID)):
    tasks, changed = state.redo(session_id)
    return _tasks_response(tasks, changed=changed)

from __future__ import annotations

from typing import Dict, List, Tuple

from .config import UNDO_HISTORY_LIMIT
from .models import TaskBlock
from .utils import _log_debug

# 메모리 저장
# NOTE: 상태 변경은 이 모듈 내 함수에서 처리한다.
_session_tasks: Dict[str, List[TaskBlock]] = {}
_undo_stacks: Dict[str, List[List[TaskBlock]]] = {}
_redo_stacks: Dict[str, List[List[TaskBlock]]] = {}


def get_tasks(session_id: str) -> List[TaskBlock]:
    return list(_session_tasks.get(session_id, []))


def commit_tasks(session_id: str, tasks: List[TaskBlock]) -> List[TaskBlock]:
    previous = _session_tasks.get(session_id, [])
    undo = _undo_stacks.setdefault(session_id, [])
    undo.append(list(previous))
    if len(undo) > UNDO_HISTORY_LIMIT:
        del undo[:len(undo) - UNDO_HISTORY_LIMIT]
    _redo_stacks.pop(session_id, None)
    _session_tasks[session_id] = list(tasks)
    _log_debug(f"[STORE] commit session={session_id} tasks={len(tasks)} history={len(undo)}")
    return get_tasks(session_id)


def undo(session_id: str) -> Tuple[List[TaskBlock], bool]:
    undo_stack = _undo_stacks.get(session_id)
    if not undo_stack:
        return (get_tasks(session_id), False)
    _redo_stacks.setdefault(session_id, []).append(get_tasks(session_id))
    _session_tasks[session_id] = undo_stack.pop()
    return (get_tasks(session_id), True)


def redo(session_id: str) -> Tuple[List[TaskBlock], bool]:
    redo_stack = _redo_stacks.get(session_id)
    if not redo_stack:
        return (get_tasks(session_id), False)
    _undo_stacks.setdefault(session_id, []).append(get_tasks(session_id))
    _session_tasks[session_id] = redo_stack.pop()
    return (get_tasks(session_id), True)

"""
Action Applier: folds canonical actions, in order, onto a task collection.

Every step returns a new list; TaskBlock instances are immutable, so the
caller's collection is never touched. Entity-scoped actions resolve logical
families first and replace each family as a whole.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, List, Optional

from ..blocks import (
    IdFactory,
    families_matching,
    family_of,
    family_span,
    new_block_id,
    place_new_block,
    replace_family,
    split_across_days,
)
from ..config import URGENT_COLOR, WARNING_COLORS
from ..models import TaskBlock
from ..utils import _log_debug, format_time, round_minutes_to_units
from .schemas import (
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


def _apply_add(tasks: List[TaskBlock], action: AddAction,
               id_factory: IdFactory) -> List[TaskBlock]:
  fragments = place_new_block(tasks,
                              title=action.title,
                              date=action.date,
                              start_unit=action.start_unit,
                              duration=action.end_unit - action.start_unit,
                              color=action.color,
                              urgent=action.urgent,
                              id_factory=id_factory)
  _log_debug(f"[APPLY] add {action.title!r} {action.date} "
             f"{format_time(action.start_unit)}-{format_time(action.end_unit)} "
             f"-> {len(fragments)} fragment(s)")
  return tasks + fragments


def _apply_delete(tasks: List[TaskBlock], action: DeleteAction) -> List[TaskBlock]:
  doomed = set(families_matching(tasks, action.title, action.date))
  if not doomed:
    return tasks
  return [t for t in tasks if t.logical_id not in doomed]


def _apply_shift(tasks: List[TaskBlock], action: ShiftAction) -> List[TaskBlock]:
  delta = round_minutes_to_units(action.delta_minutes)
  if delta == 0:
    return tasks
  for logical in families_matching(tasks, action.title, action.date):
    family = family_of(tasks, logical)
    anchor = family[0].date
    start, _, duration = family_span(family, anchor)
    base = family[0].model_copy(update={"id": logical, "date": anchor})
    tasks = replace_family(tasks, logical, split_across_days(base, start + delta, duration))
  return tasks


def _apply_resize(tasks: List[TaskBlock], action: ResizeAction) -> List[TaskBlock]:
  for logical in families_matching(tasks, action.title, action.date):
    family = family_of(tasks, logical)
    # Bounds in the action are relative to the selector date.
    old_start, old_end, _ = family_span(family, action.date)
    start = old_start if action.new_start_unit is None else action.new_start_unit
    end = old_end if action.new_end_unit is None else action.new_end_unit
    if end <= start:
      end = start + 1
    base = family[0].model_copy(update={"id": logical, "date": action.date})
    tasks = replace_family(tasks, logical, split_across_days(base, start, end - start))
  return tasks


def split_fragment(task: TaskBlock, at_unit: int,
                   id_factory: IdFactory) -> Optional[List[TaskBlock]]:
  """Fork one fragment into two new entities; None when at_unit is not interior."""
  if at_unit <= task.start_unit or at_unit >= task.end_unit:
    return None
  first = task.model_copy(update={"id": id_factory(), "end_unit": at_unit})
  second = task.model_copy(update={"id": id_factory(), "start_unit": at_unit})
  return [first, second]


def _apply_split(tasks: List[TaskBlock], action: SplitAction,
                 id_factory: IdFactory) -> List[TaskBlock]:
  out: List[TaskBlock] = []
  for t in tasks:
    if t.date != action.date or t.title != action.title:
      out.append(t)
      continue
    pieces = split_fragment(t, action.at_unit, id_factory)
    if pieces is None:
      _log_debug(f"[APPLY] split {t.title!r} at {format_time(action.at_unit)} "
                 f"is outside {format_time(t.start_unit)}-{format_time(t.end_unit)}")
      out.append(t)
      continue
    out.extend(pieces)
  return out


def _update_families(tasks: List[TaskBlock], title: str, date: str,
                     update: Callable[[TaskBlock], Dict[str, object]]) -> List[TaskBlock]:
  targets = set(families_matching(tasks, title, date))
  if not targets:
    return tasks
  return [t.model_copy(update=update(t)) if t.logical_id in targets else t
          for t in tasks]


def _urgent_update(urgent: bool) -> Callable[[TaskBlock], Dict[str, object]]:
  def update(t: TaskBlock) -> Dict[str, object]:
    color = t.color
    if urgent and color not in WARNING_COLORS:
      color = URGENT_COLOR
    return {"urgent": urgent, "color": color}
  return update


def apply_action(tasks: List[TaskBlock], action: CanonicalAction,
                 id_factory: Optional[IdFactory] = None) -> List[TaskBlock]:
  make_id = id_factory or new_block_id
  current = list(tasks)

  if isinstance(action, AddAction):
    return _apply_add(current, action, make_id)
  if isinstance(action, DeleteAction):
    return _apply_delete(current, action)
  if isinstance(action, ShiftAction):
    return _apply_shift(current, action)
  if isinstance(action, ResizeAction):
    return _apply_resize(current, action)
  if isinstance(action, SplitAction):
    return _apply_split(current, action, make_id)
  if isinstance(action, RenameAction):
    return _update_families(current, action.title, action.date,
                            lambda t: {"title": action.to_title})
  if isinstance(action, SetColorAction):
    return _update_families(current, action.title, action.date,
                            lambda t: {"color": action.color})
  if isinstance(action, SetUrgentAction):
    return _update_families(current, action.title, action.date,
                            _urgent_update(action.urgent))
  raise TypeError(f"Unsupported action: {action!r}")


def apply_actions(actions: Iterable[CanonicalAction],
                  tasks: Iterable[TaskBlock],
                  id_factory: Optional[IdFactory] = None) -> List[TaskBlock]:
  current = list(tasks)
  for action in actions:
    _log_debug(f"[APPLY] {action.type} {getattr(action, 'title', '')!r} on {action.date}")
    try:
      current = apply_action(current, action, id_factory)
    except OverflowError as exc:
      # dates past year 1..9999 cannot be represented; drop just this action
      logger.warning("Skipping %s action on %s: %s", action.type, action.date, exc)
  return current

from __future__ import annotations

from typing import List, Optional

from .agent.applier import split_fragment
from .blocks import (
    IdFactory,
    family_of,
    family_span,
    new_block_id,
    place_new_block,
    replace_family,
    split_across_days,
)
from .config import DEFAULT_ADD_UNITS, UNITS_PER_DAY
from .models import TaskBlock
from .utils import to_global_ordinal

DROP_MODES = ("move", "resize-start", "resize-end")


def _find(tasks: List[TaskBlock], fragment_id: str) -> int:
    for index, t in enumerate(tasks):
        if t.id == fragment_id:
            return index
    return -1


def create_block_at(tasks: List[TaskBlock],
                    title: str,
                    date: str,
                    unit: int,
                    id_factory: Optional[IdFactory] = None) -> List[TaskBlock]:
    """Cell click: rename the entity under the cell, or add a one-hour block."""
    for t in tasks:
        if t.date == date and t.start_unit <= unit < t.end_unit:
            logical = t.logical_id
            return [f.model_copy(update={"title": title}) if f.logical_id == logical else f
                    for f in tasks]

    end_unit = min(UNITS_PER_DAY, unit + DEFAULT_ADD_UNITS)
    fragments = place_new_block(tasks,
                                title=title,
                                date=date,
                                start_unit=unit,
                                duration=end_unit - unit,
                                id_factory=id_factory)
    return list(tasks) + fragments


def drop_block(tasks: List[TaskBlock], fragment_id: str, date: str, unit: int,
               mode: str = "move") -> List[TaskBlock]:
    """
    Result of dropping a dragged fragment on (date, unit). The whole logical
    entity follows the dragged fragment.

    move          shifts the entity so the dragged fragment starts at the cell
    resize-start  moves the start edge, at least one unit before the end
    resize-end    moves the end edge to include the drop cell
    """
    if mode not in DROP_MODES:
        raise ValueError(f"Unknown drop mode: {mode}")
    index = _find(tasks, fragment_id)
    if index == -1:
        return list(tasks)

    dragged = tasks[index]
    logical = dragged.logical_id
    family = family_of(tasks, logical)
    anchor = dragged.date
    start, end, duration = family_span(family, anchor)
    target = to_global_ordinal(date, unit, anchor)

    if mode == "move":
        delta = target - dragged.start_unit
        start, end = start + delta, start + delta + duration
    elif mode == "resize-start":
        start = min(target, end - 1)
    else:
        end = max(target + 1, start + 1)

    base = family[0].model_copy(update={"date": anchor})
    return replace_family(tasks, logical, split_across_days(base, start, end - start))


def split_block(tasks: List[TaskBlock], fragment_id: str, unit: int,
                id_factory: Optional[IdFactory] = None) -> List[TaskBlock]:
    index = _find(tasks, fragment_id)
    if index == -1:
        return list(tasks)
    pieces = split_fragment(tasks[index], unit, id_factory or new_block_id)
    if pieces is None:
        return list(tasks)
    updated = list(tasks)
    updated[index:index + 1] = pieces
    return updated


def delete_block(tasks: List[TaskBlock], fragment_id: str) -> List[TaskBlock]:
    return [t for t in tasks if t.id != fragment_id]

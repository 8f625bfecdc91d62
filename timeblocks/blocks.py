"""
Logical identity and day-boundary splitting for time blocks.

A logical entity (one task as the user sees it) is stored as one or more
fragments. The first fragment carries the bare logical id, every later one
carries "<logical>-split-<n>".
"""

from __future__ import annotations

import secrets
import time
from typing import Callable, Dict, List, Optional, Tuple

from .config import SPLIT_SUFFIX, UNITS_PER_DAY, COLORS
from .models import TaskBlock, logical_id
from .utils import add_days, from_global_ordinal, to_global_ordinal

IdFactory = Callable[[], str]


def fragment_id(logical: str, part_index: int) -> str:
    base = logical_id(logical)
    if part_index == 0:
        return base
    return f"{base}{SPLIT_SUFFIX}{part_index}"


def new_block_id() -> str:
    return f"{int(time.time() * 1000)}-{secrets.token_hex(6)}"


def split_across_days(base: TaskBlock, global_start: int,
                      total_duration: int) -> List[TaskBlock]:
    """
    Lay `total_duration` units starting at `global_start` (relative to
    base.date, may be negative or past the end of the day) out as one
    fragment per touched day.
    """
    if total_duration <= 0:
        raise ValueError(f"total_duration must be positive, got {total_duration}")

    results: List[TaskBlock] = []
    remaining = total_duration
    current_date, current_start = from_global_ordinal(global_start, base.date)
    part_index = 0

    while remaining > 0:
        chunk = min(remaining, UNITS_PER_DAY - current_start)
        results.append(base.model_copy(update={
            "id": fragment_id(base.id, part_index),
            "date": current_date,
            "start_unit": current_start,
            "end_unit": current_start + chunk,
        }))

        remaining -= chunk
        part_index += 1
        if remaining > 0:
            current_start = 0
            current_date = add_days(current_date, 1)
    return results


def _sort_key(task: TaskBlock) -> Tuple[str, int]:
    return (task.date, task.start_unit)


def family_of(tasks: List[TaskBlock], logical: str) -> List[TaskBlock]:
    return sorted((t for t in tasks if t.logical_id == logical), key=_sort_key)


def families_matching(tasks: List[TaskBlock], title: str, date: str) -> List[str]:
    seen: Dict[str, None] = {}
    for t in tasks:
        if t.date == date and t.title == title:
            seen.setdefault(t.logical_id, None)
    return list(seen)


def family_span(fragments: List[TaskBlock], anchor: str) -> Tuple[int, int, int]:
    """(global_start, global_end, duration) of a family relative to anchor."""
    if not fragments:
        raise ValueError("empty family")
    ordered = sorted(fragments, key=_sort_key)
    first, last = ordered[0], ordered[-1]
    duration = sum(t.duration for t in ordered)
    return (to_global_ordinal(first.date, first.start_unit, anchor),
            to_global_ordinal(last.date, last.end_unit, anchor),
            duration)


def replace_family(tasks: List[TaskBlock], logical: str,
                   new_fragments: List[TaskBlock]) -> List[TaskBlock]:
    out: List[TaskBlock] = []
    inserted = False
    for t in tasks:
        if t.logical_id != logical:
            out.append(t)
            continue
        if not inserted:
            out.extend(new_fragments)
            inserted = True
    if not inserted:
        out.extend(new_fragments)
    return out


def count_entities_on(tasks: List[TaskBlock], date: str) -> int:
    return len({t.logical_id for t in tasks if t.date == date})


def next_color_for(tasks: List[TaskBlock], date: str) -> str:
    return COLORS[count_entities_on(tasks, date) % len(COLORS)]


def place_new_block(tasks: List[TaskBlock],
                    title: str,
                    date: str,
                    start_unit: int,
                    duration: int,
                    color: Optional[str] = None,
                    urgent: bool = False,
                    id_factory: Optional[IdFactory] = None) -> List[TaskBlock]:
    """Fragments of a brand-new entity; nothing is added to `tasks`."""
    seed = TaskBlock.model_construct(
        id=(id_factory or new_block_id)(),
        title=title,
        date=date,
        start_unit=start_unit,
        end_unit=start_unit + duration,
        color=color or next_color_for(tasks, date),
        urgent=urgent,
    )
    return split_across_days(seed, start_unit, duration)

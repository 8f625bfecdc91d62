import itertools

import pytest

from timeblocks import state
from timeblocks.models import TaskBlock
from timeblocks.utils import time_to_unit


def make_block(
    title: str = "Task",
    date: str = "2024-11-10",
    start: str = "09:00",
    end: str = "10:00",
    block_id: str = "t1",
    color: str = "bg-sky-400",
    urgent: bool = False,
) -> TaskBlock:
    """Single-fragment block from HH:MM bounds (end must stay within the day)."""
    return TaskBlock(
        id=block_id,
        title=title,
        date=date,
        start_unit=time_to_unit(start),
        end_unit=time_to_unit(end),
        color=color,
        urgent=urgent,
    )


@pytest.fixture
def id_factory():
    counter = itertools.count(1)
    return lambda: f"id{next(counter)}"


@pytest.fixture(autouse=True)
def _clean_store():
    yield
    state._session_tasks.clear()
    state._undo_stacks.clear()
    state._redo_stacks.clear()

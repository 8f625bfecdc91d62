from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator
from typing import List, Optional, Dict, Any

from .config import COLORS, SPLIT_SUFFIX, UNITS_PER_DAY


def logical_id(fragment_id: str) -> str:
    """Strip the fragment suffix; idempotent."""
    i = fragment_id.find(SPLIT_SUFFIX)
    return fragment_id if i == -1 else fragment_id[:i]


class TaskBlock(BaseModel):
    """One stored fragment of a time block. `id` is the fragment id."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str = Field(min_length=1)
    title: str
    date: str  # "YYYY-MM-DD"
    start_unit: int = Field(
        ge=0,
        lt=UNITS_PER_DAY,
        validation_alias=AliasChoices("start_unit", "startUnit", "startHour"),
        serialization_alias="startUnit",
    )
    end_unit: int = Field(
        gt=0,
        le=UNITS_PER_DAY,
        validation_alias=AliasChoices("end_unit", "endUnit", "endHour"),
        serialization_alias="endUnit",
    )
    color: str = COLORS[0]
    urgent: bool = False

    @model_validator(mode="after")
    def _check_span(self) -> "TaskBlock":
        if self.end_unit <= self.start_unit:
            raise ValueError(
                f"end_unit ({self.end_unit}) must be greater than start_unit ({self.start_unit})")
        return self

    @property
    def logical_id(self) -> str:
        return logical_id(self.id)

    @property
    def duration(self) -> int:
        return self.end_unit - self.start_unit

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


def dump_tasks(tasks: List[TaskBlock]) -> List[Dict[str, Any]]:
    return [t.to_wire() for t in tasks]


class TaskListPayload(BaseModel):
    tasks: List[TaskBlock] = Field(default_factory=list)


class NormalizeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    actions: List[Any] = Field(default_factory=list)
    today_key: Optional[str] = Field(default=None, alias="todayKey")


class ApplyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    actions: List[Any] = Field(default_factory=list)
    tasks: List[TaskBlock] = Field(default_factory=list)
    today_key: Optional[str] = Field(default=None, alias="todayKey")


class PlanRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt: str
    tasks: List[TaskBlock] = Field(default_factory=list)
    today_key: Optional[str] = Field(default=None, alias="todayKey")
    model: Optional[str] = None


class AgentRunRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt: str
    today_key: Optional[str] = Field(default=None, alias="todayKey")
    dry_run: bool = Field(default=False, alias="dryRun")
    model: Optional[str] = None


class CreateBlockRequest(BaseModel):
    title: str
    date: str
    unit: int = Field(ge=0, lt=UNITS_PER_DAY)


class DropRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    task_id: str = Field(alias="taskId")
    date: str
    unit: int = Field(ge=0, lt=UNITS_PER_DAY)
    mode: str = "move"


class SplitRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    task_id: str = Field(alias="taskId")
    unit: int = Field(ge=0, le=UNITS_PER_DAY)

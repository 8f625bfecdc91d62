from __future__ import annotations

from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator

from ..config import COLORS

ActionType = Literal[
    "add",
    "delete",
    "shift",
    "resize",
    "split",
    "rename",
    "setColor",
    "setUrgent",
]


# ---------------------------------------------------------------------------
#  Canonical actions
#  Times are unit indices relative to `date`; no string parsing past here.
# ---------------------------------------------------------------------------

class _TargetedAction(BaseModel):
  model_config = ConfigDict(extra="forbid", frozen=True)

  title: str = Field(min_length=1)
  date: str


class AddAction(BaseModel):
  model_config = ConfigDict(extra="forbid", frozen=True)

  type: Literal["add"] = "add"
  title: str = Field(min_length=1)
  date: str
  start_unit: int = Field(ge=0)
  end_unit: int
  color: Optional[str] = None
  urgent: bool = False

  @model_validator(mode="after")
  def _check_span(self) -> "AddAction":
    if self.end_unit <= self.start_unit:
      raise ValueError("end_unit must be greater than start_unit")
    return self


class DeleteAction(_TargetedAction):
  type: Literal["delete"] = "delete"


class ShiftAction(_TargetedAction):
  type: Literal["shift"] = "shift"
  delta_minutes: float = Field(allow_inf_nan=False)


class ResizeAction(_TargetedAction):
  type: Literal["resize"] = "resize"
  new_start_unit: Optional[int] = Field(default=None, ge=0)
  new_end_unit: Optional[int] = Field(default=None, ge=0)

  @model_validator(mode="after")
  def _check_bounds(self) -> "ResizeAction":
    if self.new_start_unit is None and self.new_end_unit is None:
      raise ValueError("resize needs new_start_unit or new_end_unit")
    return self


class SplitAction(_TargetedAction):
  type: Literal["split"] = "split"
  at_unit: int = Field(ge=0)


class RenameAction(_TargetedAction):
  """`title` is the current title (fromTitle)."""
  type: Literal["rename"] = "rename"
  to_title: str = Field(min_length=1)


class SetColorAction(_TargetedAction):
  type: Literal["setColor"] = "setColor"
  color: str

  @field_validator("color")
  @classmethod
  def _palette_only(cls, value: str) -> str:
    if value not in COLORS:
      raise ValueError(f"color {value!r} is not in the palette")
    return value


class SetUrgentAction(_TargetedAction):
  type: Literal["setUrgent"] = "setUrgent"
  urgent: bool = False


CanonicalAction = Annotated[
    Union[
        AddAction,
        DeleteAction,
        ShiftAction,
        ResizeAction,
        SplitAction,
        RenameAction,
        SetColorAction,
        SetUrgentAction,
    ],
    Field(discriminator="type"),
]

canonical_actions_adapter: TypeAdapter[List[CanonicalAction]] = TypeAdapter(
    List[CanonicalAction])


def dump_actions(actions: List[CanonicalAction]) -> List[dict]:
  return canonical_actions_adapter.dump_python(list(actions), mode="json")

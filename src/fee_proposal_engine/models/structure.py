from __future__ import annotations

from typing import Any, Mapping, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _Node(BaseModel):
    # Records coming back from storage carry many more columns than the
    # rollup needs; keep them so a save writes back what was loaded.
    model_config = ConfigDict(extra="allow", frozen=True)


class Space(_Node):
    id: str
    name: str = ""
    construction_costs: Mapping[str, Any] = Field(default_factory=dict)

    @field_validator("construction_costs", mode="before")
    @classmethod
    def _default_costs(cls, value: Any) -> Any:
        return value if isinstance(value, Mapping) else {}


class Level(_Node):
    id: str
    name: str = ""
    spaces: Sequence[Space] = Field(default_factory=list)

    @field_validator("spaces", mode="before")
    @classmethod
    def _default_spaces(cls, value: Any) -> Any:
        return value if isinstance(value, (list, tuple)) else []


class Structure(_Node):
    id: str
    name: str = ""
    levels: Sequence[Level] = Field(default_factory=list)
    parent_id: str | None = None
    is_duplicate: bool = False
    duplicate_number: int | None = None
    duplicate_parent_id: str | None = None
    duplicate_rate: float = 1.0

    @field_validator("levels", mode="before")
    @classmethod
    def _default_levels(cls, value: Any) -> Any:
        return value if isinstance(value, (list, tuple)) else []

    @field_validator("is_duplicate", mode="before")
    @classmethod
    def _coerce_flag(cls, value: Any) -> bool:
        return bool(value)

    @field_validator("duplicate_number", "duplicate_parent_id", mode="before")
    @classmethod
    def _falsy_to_none(cls, value: Any) -> Any:
        return value or None

    @field_validator("duplicate_rate", mode="before")
    @classmethod
    def _default_rate(cls, value: Any) -> Any:
        return value or 1.0


__all__ = ["Level", "Space", "Structure"]

from __future__ import annotations

from typing import Any, Mapping, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .fee import Category
from .structure import Structure

NEW_PROPOSAL_ID = "new"


def _empty_phase() -> dict[str, Any]:
    return {
        "structures": [],
        "levels": [],
        "spaces": [],
        "total": 0,
        "parameters": {"cost_index": None},
    }


def default_calculations() -> dict[str, Any]:
    return {"design": _empty_phase(), "construction": _empty_phase(), "total": 0}


class ProjectData(BaseModel):
    """The ``project_data`` document stored with each proposal."""

    model_config = ConfigDict(extra="allow")

    structures: Sequence[Structure] = Field(default_factory=list)
    calculations: Mapping[str, Any] = Field(default_factory=default_calculations)
    disciplines: Sequence[Any] = Field(default_factory=list)
    services: Sequence[Any] = Field(default_factory=list)
    tracked_services: Sequence[Mapping[str, Any]] = Field(default_factory=list)
    flex_fees: Sequence[Category] = Field(default_factory=list)

    @field_validator("structures", "disciplines", "services", "tracked_services", "flex_fees", mode="before")
    @classmethod
    def _default_list(cls, value: Any) -> Any:
        return value if isinstance(value, (list, tuple)) else []

    @field_validator("calculations", mode="before")
    @classmethod
    def _default_calculations(cls, value: Any) -> Any:
        return value if isinstance(value, Mapping) else default_calculations()


class ProposalRecord(BaseModel):
    """A proposal as exchanged with remote storage.

    Columns other than ``id`` and ``project_data`` belong to the storage
    layer and are carried through untouched.
    """

    model_config = ConfigDict(extra="allow")

    id: str = NEW_PROPOSAL_ID
    project_id: str | None = None
    project_data: ProjectData = Field(default_factory=ProjectData)

    @field_validator("project_data", mode="before")
    @classmethod
    def _default_project_data(cls, value: Any) -> Any:
        return value if isinstance(value, (Mapping, ProjectData)) else {}

    @property
    def is_new(self) -> bool:
        return not self.id or self.id == NEW_PROPOSAL_ID


__all__ = ["NEW_PROPOSAL_ID", "ProjectData", "ProposalRecord", "default_calculations"]

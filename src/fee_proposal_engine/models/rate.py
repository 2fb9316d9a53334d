from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class HourlyRate(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int | None = None
    discipline_id: int
    role_id: str
    role_designation: str | None = None
    rate: float
    description: str | None = None


__all__ = ["HourlyRate"]

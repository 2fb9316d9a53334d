from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Mapping, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class FeeType(str, Enum):
    simple = "simple"
    hourly = "hourly"


class SimplePricing(BaseModel):
    """Flat rate per unit."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    type: Literal["simple"] = "simple"
    amount: float = 0.0
    quantity: float | None = None
    description: str | None = None


class HourlyPricing(BaseModel):
    """Hourly rate resolved from the rate table for a discipline/role pair."""

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    type: Literal["hourly"] = "hourly"
    discipline_id: int | None = None
    role_id: str | None = None
    role_designation: str | None = None
    hourly_rate: float | None = Field(default=None, alias="hourlyRate")
    hours: float | None = None


Pricing = Annotated[Union[SimplePricing, HourlyPricing], Field(discriminator="type")]

# Flat keys used by records saved before pricing was nested.
_FLAT_PRICING_KEYS: Mapping[str, Sequence[str]] = {
    "simple": ("amount", "quantity", "description"),
    "hourly": ("discipline_id", "role_id", "role_designation", "hourlyRate", "hourly_rate", "hours"),
}


class _FeeItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    pricing: Pricing | None = None

    @property
    def type(self) -> FeeType | None:
        if self.pricing is None:
            return None
        return FeeType(self.pricing.type)

    @model_validator(mode="before")
    @classmethod
    def _fold_flat_pricing(cls, data: Any) -> Any:
        if not isinstance(data, Mapping) or "pricing" in data:
            return data
        data = dict(data)
        kind = data.pop("type", None)
        flat = {
            key: data.pop(key)
            for keys in _FLAT_PRICING_KEYS.values()
            for key in keys
            if key in data
        }
        if kind in _FLAT_PRICING_KEYS:
            data["pricing"] = {
                "type": kind,
                **{key: value for key, value in flat.items() if key in _FLAT_PRICING_KEYS[kind]},
            }
        return data


class FeeSubcomponent(_FeeItem):
    pass


class FeeComponent(_FeeItem):
    subcomponents: Sequence[FeeSubcomponent] = Field(default_factory=list)

    @field_validator("subcomponents", mode="before")
    @classmethod
    def _default_subcomponents(cls, value: Any) -> Any:
        return value if isinstance(value, (list, tuple)) else []

    @property
    def is_container(self) -> bool:
        return bool(self.subcomponents)


class Category(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    fees: Sequence[FeeComponent] = Field(default_factory=list)

    @field_validator("fees", mode="before")
    @classmethod
    def _default_fees(cls, value: Any) -> Any:
        return value if isinstance(value, (list, tuple)) else []


__all__ = [
    "Category",
    "FeeComponent",
    "FeeSubcomponent",
    "FeeType",
    "HourlyPricing",
    "Pricing",
    "SimplePricing",
]

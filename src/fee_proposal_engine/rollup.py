from __future__ import annotations

from typing import Iterable, Sequence

from pydantic import BaseModel, Field

from .models.fee import Category, FeeComponent, FeeSubcomponent, HourlyPricing, Pricing, SimplePricing


def pricing_total(pricing: Pricing | None) -> float:
    if isinstance(pricing, SimplePricing):
        quantity = 1 if pricing.quantity is None else pricing.quantity
        return pricing.amount * quantity
    if isinstance(pricing, HourlyPricing):
        if pricing.hourly_rate is None or pricing.hours is None:
            return 0.0
        return pricing.hourly_rate * pricing.hours
    return 0.0


def subcomponent_total(sub: FeeSubcomponent) -> float:
    return pricing_total(sub.pricing)


def component_total(fee: FeeComponent) -> float:
    # A component with subcomponents is only a container; its own pricing is ignored.
    if fee.subcomponents:
        return sum((subcomponent_total(sub) for sub in fee.subcomponents), 0.0)
    return pricing_total(fee.pricing)


def category_total(category: Category) -> float:
    return sum((component_total(fee) for fee in category.fees), 0.0)


def grand_total(categories: Iterable[Category]) -> float:
    return sum((category_total(category) for category in categories), 0.0)


def format_amount(value: float) -> str:
    """``1234.5`` -> ``"1,234.50"``; currency symbols are left to the caller."""
    return f"{value:,.2f}"


class CategoryTotal(BaseModel):
    category_id: str
    name: str
    total: float
    formatted: str


class FeeSummary(BaseModel):
    categories: Sequence[CategoryTotal] = Field(default_factory=list)
    total: float = 0.0
    formatted: str = "0.00"


def summarize(categories: Iterable[Category]) -> FeeSummary:
    lines = []
    for category in categories:
        total = category_total(category)
        lines.append(
            CategoryTotal(
                category_id=category.id,
                name=category.name,
                total=total,
                formatted=format_amount(total),
            )
        )
    total = sum((line.total for line in lines), 0.0)
    return FeeSummary(categories=lines, total=total, formatted=format_amount(total))


__all__ = [
    "CategoryTotal",
    "FeeSummary",
    "category_total",
    "component_total",
    "format_amount",
    "grand_total",
    "pricing_total",
    "subcomponent_total",
    "summarize",
]

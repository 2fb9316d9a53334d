from __future__ import annotations

import logging
import uuid
from typing import Any, Callable, Iterable, Mapping, Sequence, TypeVar

from . import rollup
from .models.fee import (
    Category,
    FeeComponent,
    FeeSubcomponent,
    FeeType,
    HourlyPricing,
    SimplePricing,
)
from .models.rate import HourlyRate
from .rate_table import RateTable

logger = logging.getLogger(__name__)

UNTITLED_CATEGORY = "Untitled Category"
UNTITLED_COMPONENT = "Untitled Component"
UNTITLED_SUBCOMPONENT = "Untitled Subcomponent"
NEW_FEE_NAME = "New Fee"
NEW_SUBCOMPONENT_NAME = "New Subcomponent"

_Item = TypeVar("_Item", FeeComponent, FeeSubcomponent)
_Transform = Callable[[_Item], "_Item | None"]


def _clamp(index: int, size: int) -> int:
    return max(0, min(index, size))


def _label(name: str, fallback: str) -> str:
    return name.strip() or fallback


def _with_type(item: _Item, fee_type: FeeType | str) -> _Item:
    fee_type = FeeType(fee_type)
    if item.type is fee_type:
        return item
    pricing = SimplePricing() if fee_type is FeeType.simple else HourlyPricing(hours=0.0)
    return item.model_copy(update={"pricing": pricing})


def _with_pricing_fields(item: _Item, fields: Mapping[str, Any]) -> _Item | None:
    if item.pricing is None:
        return None
    model = type(item.pricing)
    # Wire aliases such as "hourlyRate" address the same field as its Python name.
    aliases = {info.alias: name for name, info in model.model_fields.items() if info.alias}
    changes = {aliases.get(key, key): value for key, value in fields.items()}
    pricing = model.model_validate({**item.pricing.model_dump(), **changes})
    return item.model_copy(update={"pricing": pricing})


def _with_discipline(item: _Item, discipline_id: int) -> _Item | None:
    if not isinstance(item.pricing, HourlyPricing):
        return None
    return item.model_copy(update={"pricing": HourlyPricing(discipline_id=discipline_id)})


def _with_rate(item: _Item, rate: HourlyRate) -> _Item:
    hours = item.pricing.hours if isinstance(item.pricing, HourlyPricing) else None
    pricing = HourlyPricing(
        discipline_id=rate.discipline_id,
        role_id=rate.role_id,
        role_designation=rate.role_designation,
        hourly_rate=rate.rate,
        hours=hours,
    )
    return item.model_copy(update={"pricing": pricing})


class FeeEditor:
    """Ordered fee categories with their components and subcomponents.

    Mutators return the new entity on success and ``None`` (or ``False``) when
    the target does not exist or nothing could be applied. The list of
    categories is rebuilt on every change; previously returned objects are
    never modified.
    """

    def __init__(
        self,
        categories: Iterable[Category | Mapping[str, Any]] = (),
        *,
        rate_table: RateTable | None = None,
    ) -> None:
        self._categories: list[Category] = [Category.model_validate(c) for c in categories]
        self.rate_table = rate_table or RateTable()

    @property
    def categories(self) -> tuple[Category, ...]:
        return tuple(self._categories)

    def total(self) -> float:
        return rollup.grand_total(self._categories)

    def summary(self) -> rollup.FeeSummary:
        return rollup.summarize(self._categories)

    # -- lookups -----------------------------------------------------------

    def get_category(self, category_id: str) -> Category | None:
        return next((c for c in self._categories if c.id == category_id), None)

    def get_fee(self, category_id: str, fee_id: str) -> FeeComponent | None:
        category = self.get_category(category_id)
        if category is None:
            return None
        return next((f for f in category.fees if f.id == fee_id), None)

    def get_subcomponent(self, category_id: str, fee_id: str, sub_id: str) -> FeeSubcomponent | None:
        fee = self.get_fee(category_id, fee_id)
        if fee is None:
            return None
        return next((s for s in fee.subcomponents if s.id == sub_id), None)

    # -- categories --------------------------------------------------------

    def add_category_at(self, index: int, name: str = "") -> Category:
        category = Category(id=self._generate_id("cat"), name=name)
        categories = list(self._categories)
        categories.insert(_clamp(index, len(categories)), category)
        self._categories = categories
        return category

    def rename_category(self, category_id: str, name: str) -> Category | None:
        return self._replace_category(
            category_id, lambda c: c.model_copy(update={"name": _label(name, UNTITLED_CATEGORY)})
        )

    def delete_category(self, category_id: str) -> bool:
        if self.get_category(category_id) is None:
            self._not_found("delete_category", category_id=category_id)
            return False
        self._categories = [c for c in self._categories if c.id != category_id]
        return True

    def move_category(self, from_index: int, to_index: int) -> bool:
        if not 0 <= from_index < len(self._categories):
            self._not_found("move_category", from_index=from_index)
            return False
        categories = list(self._categories)
        moved = categories.pop(from_index)
        categories.insert(_clamp(to_index, len(categories)), moved)
        self._categories = categories
        return True

    # -- fee components ----------------------------------------------------

    def add_fee(self, category_id: str, after_index: int, name: str = NEW_FEE_NAME) -> FeeComponent | None:
        fee = FeeComponent(id=self._generate_id("fee"), name=name)

        def insert(category: Category) -> Category:
            fees = list(category.fees)
            fees.insert(_clamp(after_index + 1, len(fees)), fee)
            return category.model_copy(update={"fees": fees})

        if self._replace_category(category_id, insert) is None:
            return None
        return fee

    def rename_fee(self, category_id: str, fee_id: str, name: str) -> FeeComponent | None:
        return self._replace_fee(
            category_id, fee_id, lambda f: f.model_copy(update={"name": _label(name, UNTITLED_COMPONENT)})
        )

    def delete_fee(self, category_id: str, fee_id: str) -> bool:
        if self.get_fee(category_id, fee_id) is None:
            self._not_found("delete_fee", category_id=category_id, fee_id=fee_id)
            return False
        self._replace_category(
            category_id, lambda c: c.model_copy(update={"fees": [f for f in c.fees if f.id != fee_id]})
        )
        return True

    def set_fee_type(self, category_id: str, fee_id: str, fee_type: FeeType | str) -> FeeComponent | None:
        # Components with subcomponents stay untyped.
        return self._replace_fee(
            category_id, fee_id, lambda f: None if f.is_container else _with_type(f, fee_type)
        )

    def update_fee_pricing(self, category_id: str, fee_id: str, /, **fields: Any) -> FeeComponent | None:
        return self._replace_fee(category_id, fee_id, lambda f: _with_pricing_fields(f, fields))

    def select_fee_discipline(self, category_id: str, fee_id: str, discipline_id: int) -> FeeComponent | None:
        return self._replace_fee(category_id, fee_id, lambda f: _with_discipline(f, discipline_id))

    def update_fee_with_role(
        self,
        category_id: str,
        fee_id: str,
        role_id: str,
        designation: str | None,
    ) -> FeeComponent | None:
        return self._replace_fee(category_id, fee_id, lambda f: self._with_role(f, role_id, designation))

    def update_fee_with_rate(self, category_id: str, fee_id: str, rate: HourlyRate) -> FeeComponent | None:
        return self._replace_fee(
            category_id, fee_id, lambda f: None if f.is_container else _with_rate(f, rate)
        )

    def move_fee(self, from_category_id: str, fee_id: str, to_category_id: str, to_index: int) -> bool:
        fee = self.get_fee(from_category_id, fee_id)
        if fee is None or self.get_category(to_category_id) is None:
            self._not_found("move_fee", category_id=from_category_id, fee_id=fee_id, to_category_id=to_category_id)
            return False

        categories = self._map_category(
            self._categories,
            from_category_id,
            lambda c: c.model_copy(update={"fees": [f for f in c.fees if f.id != fee_id]}),
        )

        def insert(category: Category) -> Category:
            fees = list(category.fees)
            fees.insert(_clamp(to_index, len(fees)), fee)
            return category.model_copy(update={"fees": fees})

        self._categories = self._map_category(categories, to_category_id, insert)
        return True

    # -- subcomponents -----------------------------------------------------

    def add_subcomponent(
        self,
        category_id: str,
        fee_id: str,
        name: str = NEW_SUBCOMPONENT_NAME,
    ) -> FeeSubcomponent | None:
        sub = FeeSubcomponent(id=self._generate_id("sub"), name=name)
        updated = self._replace_fee(
            category_id,
            fee_id,
            lambda f: f.model_copy(update={"pricing": None, "subcomponents": [*f.subcomponents, sub]}),
        )
        return sub if updated is not None else None

    def rename_subcomponent(self, category_id: str, fee_id: str, sub_id: str, name: str) -> FeeSubcomponent | None:
        return self._replace_sub(
            category_id,
            fee_id,
            sub_id,
            lambda s: s.model_copy(update={"name": _label(name, UNTITLED_SUBCOMPONENT)}),
        )

    def delete_subcomponent(self, category_id: str, fee_id: str, sub_id: str) -> bool:
        if self.get_subcomponent(category_id, fee_id, sub_id) is None:
            self._not_found("delete_subcomponent", category_id=category_id, fee_id=fee_id, sub_id=sub_id)
            return False
        self._replace_fee(
            category_id,
            fee_id,
            lambda f: f.model_copy(update={"subcomponents": [s for s in f.subcomponents if s.id != sub_id]}),
        )
        return True

    def set_sub_type(
        self,
        category_id: str,
        fee_id: str,
        sub_id: str,
        fee_type: FeeType | str,
    ) -> FeeSubcomponent | None:
        return self._replace_sub(category_id, fee_id, sub_id, lambda s: _with_type(s, fee_type))

    def update_sub_pricing(
        self,
        category_id: str,
        fee_id: str,
        sub_id: str,
        /,
        **fields: Any,
    ) -> FeeSubcomponent | None:
        return self._replace_sub(category_id, fee_id, sub_id, lambda s: _with_pricing_fields(s, fields))

    def select_sub_discipline(
        self,
        category_id: str,
        fee_id: str,
        sub_id: str,
        discipline_id: int,
    ) -> FeeSubcomponent | None:
        return self._replace_sub(category_id, fee_id, sub_id, lambda s: _with_discipline(s, discipline_id))

    def update_sub_with_role(
        self,
        category_id: str,
        fee_id: str,
        sub_id: str,
        role_id: str,
        designation: str | None,
    ) -> FeeSubcomponent | None:
        return self._replace_sub(category_id, fee_id, sub_id, lambda s: self._with_role(s, role_id, designation))

    def update_sub_with_rate(
        self,
        category_id: str,
        fee_id: str,
        sub_id: str,
        rate: HourlyRate,
    ) -> FeeSubcomponent | None:
        return self._replace_sub(category_id, fee_id, sub_id, lambda s: _with_rate(s, rate))

    def move_subcomponent(
        self,
        from_category_id: str,
        from_fee_id: str,
        sub_id: str,
        to_category_id: str,
        to_fee_id: str,
        to_index: int,
    ) -> bool:
        """Move a subcomponent within its component or into another one.

        ``to_index`` is the position in the destination list after the move.
        A component receiving a subcomponent from elsewhere loses its own type.
        """
        sub = self.get_subcomponent(from_category_id, from_fee_id, sub_id)
        if sub is None or self.get_fee(to_category_id, to_fee_id) is None:
            self._not_found("move_subcomponent", sub_id=sub_id, to_category_id=to_category_id, to_fee_id=to_fee_id)
            return False
        same_parent = (from_category_id, from_fee_id) == (to_category_id, to_fee_id)

        categories = self._map_fee(
            self._categories,
            from_category_id,
            from_fee_id,
            lambda f: f.model_copy(update={"subcomponents": [s for s in f.subcomponents if s.id != sub_id]}),
        )

        def insert(fee: FeeComponent) -> FeeComponent:
            subs = list(fee.subcomponents)
            subs.insert(_clamp(to_index, len(subs)), sub)
            update: dict[str, Any] = {"subcomponents": subs}
            if not same_parent:
                update["pricing"] = None
            return fee.model_copy(update=update)

        self._categories = self._map_fee(categories, to_category_id, to_fee_id, insert)
        return True

    # -- internals ---------------------------------------------------------

    def _with_role(self, item: _Item, role_id: str, designation: str | None) -> _Item | None:
        pricing = item.pricing
        if isinstance(item, FeeComponent) and item.is_container:
            return None
        if not isinstance(pricing, HourlyPricing) or pricing.discipline_id is None:
            return None
        rate = self.rate_table.rate_for(pricing.discipline_id, role_id, designation)
        if rate is None:
            return None
        updated = pricing.model_copy(
            update={
                "hourly_rate": rate.rate,
                "role_id": role_id,
                "role_designation": designation,
                "hours": pricing.hours or 0.0,
            }
        )
        return item.model_copy(update={"pricing": updated})

    @staticmethod
    def _map_category(
        categories: Sequence[Category],
        category_id: str,
        fn: Callable[[Category], Category],
    ) -> list[Category]:
        return [fn(c) if c.id == category_id else c for c in categories]

    @classmethod
    def _map_fee(
        cls,
        categories: Sequence[Category],
        category_id: str,
        fee_id: str,
        fn: Callable[[FeeComponent], FeeComponent],
    ) -> list[Category]:
        return cls._map_category(
            categories,
            category_id,
            lambda c: c.model_copy(update={"fees": [fn(f) if f.id == fee_id else f for f in c.fees]}),
        )

    def _replace_category(self, category_id: str, fn: Callable[[Category], Category]) -> Category | None:
        category = self.get_category(category_id)
        if category is None:
            self._not_found("category", category_id=category_id)
            return None
        updated = fn(category)
        self._categories = [updated if c.id == category_id else c for c in self._categories]
        return updated

    def _replace_fee(self, category_id: str, fee_id: str, fn: _Transform) -> FeeComponent | None:
        fee = self.get_fee(category_id, fee_id)
        if fee is None:
            self._not_found("fee", category_id=category_id, fee_id=fee_id)
            return None
        updated = fn(fee)
        if updated is None:
            logger.debug("Fee left unchanged", extra={"category_id": category_id, "fee_id": fee_id})
            return None
        self._categories = self._map_fee(self._categories, category_id, fee_id, lambda _: updated)
        return updated

    def _replace_sub(self, category_id: str, fee_id: str, sub_id: str, fn: _Transform) -> FeeSubcomponent | None:
        sub = self.get_subcomponent(category_id, fee_id, sub_id)
        if sub is None:
            self._not_found("subcomponent", category_id=category_id, fee_id=fee_id, sub_id=sub_id)
            return None
        updated = fn(sub)
        if updated is None:
            logger.debug("Subcomponent left unchanged", extra={"fee_id": fee_id, "sub_id": sub_id})
            return None
        self._replace_fee(
            category_id,
            fee_id,
            lambda f: f.model_copy(
                update={"subcomponents": [updated if s.id == sub_id else s for s in f.subcomponents]}
            ),
        )
        return updated

    @staticmethod
    def _not_found(target: str, **ids: Any) -> None:
        logger.debug(f"Unknown {target}", extra=ids)

    @staticmethod
    def _generate_id(prefix: str) -> str:
        return f"{prefix}-{uuid.uuid4().hex[:12]}"


__all__ = [
    "FeeEditor",
    "NEW_FEE_NAME",
    "NEW_SUBCOMPONENT_NAME",
    "UNTITLED_CATEGORY",
    "UNTITLED_COMPONENT",
    "UNTITLED_SUBCOMPONENT",
]

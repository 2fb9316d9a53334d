from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping

from .models.rate import HourlyRate

logger = logging.getLogger(__name__)


class RateTable:
    """Read-only, in-memory view of the hourly rate table."""

    def __init__(self, rates: Iterable[HourlyRate | Mapping[str, Any]] = ()) -> None:
        self._rates = tuple(HourlyRate.model_validate(rate) for rate in rates)

    def __len__(self) -> int:
        return len(self._rates)

    def all(self) -> tuple[HourlyRate, ...]:
        return self._rates

    def for_discipline(self, discipline_id: int) -> list[HourlyRate]:
        return [rate for rate in self._rates if rate.discipline_id == discipline_id]

    def available_roles(self, discipline_id: int) -> list[tuple[str, str | None]]:
        """Distinct (role_id, designation) pairs offered for a discipline."""
        seen: dict[tuple[str, str | None], None] = {}
        for rate in self.for_discipline(discipline_id):
            seen.setdefault((rate.role_id, rate.role_designation), None)
        return list(seen)

    def rate_for(self, discipline_id: int, role_id: str, designation: str | None) -> HourlyRate | None:
        for rate in self._rates:
            if (
                rate.discipline_id == discipline_id
                and rate.role_id == role_id
                and rate.role_designation == designation
            ):
                return rate
        logger.debug(
            "No hourly rate",
            extra={"discipline_id": discipline_id, "role_id": role_id, "role_designation": designation},
        )
        return None


class LocalRateRepository:
    def __init__(self, *, path: Path) -> None:
        self._path = path

    def load(self) -> RateTable:
        if not self._path.exists():
            raise FileNotFoundError(f"Hourly rate table not found: {self._path}")
        with self._path.open("r", encoding="utf-8") as fp:
            data = json.load(fp)
        return RateTable(data)


__all__ = ["LocalRateRepository", "RateTable"]

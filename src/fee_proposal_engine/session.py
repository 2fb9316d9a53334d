from __future__ import annotations

from typing import Any, Mapping

from . import rollup
from .fee_editor import FeeEditor
from .models.proposal import ProjectData, ProposalRecord
from .rate_table import RateTable
from .structure_tree import StructureTree


class ProposalSession:
    """Editable state of one proposal.

    Owns the structure tree and the fee editor for a single caller. Nothing in
    here performs I/O: load a record, apply mutations, then hand
    :meth:`to_record` to whatever persists it. Calls must not interleave.
    """

    def __init__(self, record: ProposalRecord, *, rate_table: RateTable | None = None) -> None:
        self._record = record
        data = record.project_data
        self.structures = StructureTree(data.structures)
        self.fees = FeeEditor(data.flex_fees, rate_table=rate_table)

    @classmethod
    def from_record(
        cls,
        record: ProposalRecord | Mapping[str, Any],
        *,
        rate_table: RateTable | None = None,
    ) -> "ProposalSession":
        return cls(ProposalRecord.model_validate(record), rate_table=rate_table)

    @property
    def proposal_id(self) -> str:
        return self._record.id

    @property
    def rate_table(self) -> RateTable:
        return self.fees.rate_table

    def total(self) -> float:
        return self.fees.total()

    def summary(self) -> rollup.FeeSummary:
        return self.fees.summary()

    def to_project_data(self) -> ProjectData:
        return self._record.project_data.model_copy(
            update={
                "structures": list(self.structures.structures),
                "flex_fees": list(self.fees.categories),
            }
        )

    def to_record(self) -> ProposalRecord:
        return self._record.model_copy(update={"project_data": self.to_project_data()})

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dict in the shape remote storage expects."""
        return self.to_record().model_dump(mode="json", by_alias=True)


__all__ = ["ProposalSession"]

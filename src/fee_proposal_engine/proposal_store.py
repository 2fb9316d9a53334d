from __future__ import annotations

import threading
import uuid
from datetime import datetime
from typing import Dict, Protocol

from .models.proposal import ProposalRecord


class ProposalStore(Protocol):
    def get(self, proposal_id: str) -> ProposalRecord | None:
        ...

    def save(self, record: ProposalRecord) -> ProposalRecord:
        ...


class InMemoryProposalStore:
    """Process-local proposal storage for dev mode and tests."""

    def __init__(self) -> None:
        self._proposals: Dict[str, ProposalRecord] = {}
        self._lock = threading.Lock()

    def get(self, proposal_id: str) -> ProposalRecord | None:
        with self._lock:
            return self._proposals.get(proposal_id)

    def save(self, record: ProposalRecord) -> ProposalRecord:
        with self._lock:
            if record.is_new:
                record = record.model_copy(update={"id": self._generate_id(record.project_id)})
            record = record.model_copy(update={"updated_at": datetime.utcnow().isoformat()})
            self._proposals[record.id] = record
            return record

    def _generate_id(self, project_id: str | None) -> str:
        ts = datetime.utcnow().strftime("%Y%m%d%H%M%S")
        suffix = uuid.uuid4().hex[:6]
        if project_id:
            safe = project_id.replace("/", "-")
            return f"prop_{safe}_{suffix}"
        return f"prop_{ts}_{suffix}"


__all__ = ["InMemoryProposalStore", "ProposalStore"]

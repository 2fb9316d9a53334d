from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

from fee_proposal_engine.gateway import AuthenticationRequiredError, HttpProposalGateway, ProposalGatewayError
from fee_proposal_engine.logging_config import bind_proposal, set_trace_id, setup_logging
from fee_proposal_engine.models.fee import FeeType
from fee_proposal_engine.models.proposal import ProjectData, ProposalRecord
from fee_proposal_engine.models.rate import HourlyRate
from fee_proposal_engine.proposal_store import InMemoryProposalStore, ProposalStore
from fee_proposal_engine.rate_table import LocalRateRepository, RateTable
from fee_proposal_engine.rollup import FeeSummary
from fee_proposal_engine.session import ProposalSession


class CreateProposalRequest(BaseModel):
    project_id: str | None = None
    project_data: ProjectData | None = Field(default=None, description="Optional initial project_data")


class ProposalResponse(BaseModel):
    proposal: dict[str, Any]
    summary: FeeSummary

    @staticmethod
    def from_session(session: ProposalSession) -> "ProposalResponse":
        return ProposalResponse(proposal=session.to_payload(), summary=session.summary())


class AddCategoryRequest(BaseModel):
    index: int
    name: str = ""


class RenameRequest(BaseModel):
    name: str


class AddFeeRequest(BaseModel):
    after_index: int = -1


class FeeTypeRequest(BaseModel):
    type: FeeType


class DisciplineRequest(BaseModel):
    discipline_id: int


class RoleRequest(BaseModel):
    role_id: str
    designation: str | None = None


class MoveFeeRequest(BaseModel):
    to_category_id: str
    to_index: int


class MoveCategoryRequest(BaseModel):
    from_index: int
    to_index: int


class MoveSubcomponentRequest(BaseModel):
    to_category_id: str
    to_fee_id: str
    to_index: int


# Environment configuration
ENVIRONMENT = os.getenv("ENVIRONMENT", "dev")
PROJECT_ID = os.getenv("PROJECT_ID")
PROPOSAL_API_URL = os.getenv("PROPOSAL_API_URL")
PROPOSAL_API_KEY = os.getenv("PROPOSAL_API_KEY")
HOURLY_RATES_PATH = Path(os.getenv("HOURLY_RATES_PATH", "data/hourly_rates.json"))

# Setup logging
setup_logging(environment=ENVIRONMENT, project_id=PROJECT_ID)
logger = logging.getLogger(__name__)

app = FastAPI(title="Fee Proposal Engine API", version="0.1.0")

# Remote storage when configured, in-memory otherwise
gateway = (
    HttpProposalGateway(base_url=PROPOSAL_API_URL, api_key=PROPOSAL_API_KEY, project_id=PROJECT_ID)
    if PROPOSAL_API_URL
    else None
)
store: ProposalStore = gateway or InMemoryProposalStore()


def _load_rate_table() -> RateTable:
    if gateway:
        return gateway.fetch_hourly_rates()
    if HOURLY_RATES_PATH.exists():
        return LocalRateRepository(path=HOURLY_RATES_PATH).load()
    logger.warning("No hourly rate table configured", extra={"path": str(HOURLY_RATES_PATH)})
    return RateTable()


rate_table = _load_rate_table()

# Route handlers are coroutines without awaits, so each load, mutate and save
# runs to completion on the event loop and proposal edits never interleave.
# The remote gateway is a blocking client and holds the loop while it waits.


@app.middleware("http")
async def assign_trace_id(request: Request, call_next):
    header = request.headers.get("X-Cloud-Trace-Context", "")
    set_trace_id(header.split("/")[0] or str(uuid.uuid4()))
    return await call_next(request)


@app.exception_handler(ProposalGatewayError)
async def gateway_error_handler(request: Request, exc: ProposalGatewayError) -> JSONResponse:
    status_code = 401 if isinstance(exc, AuthenticationRequiredError) else 502
    return JSONResponse({"detail": exc.message}, status_code=status_code)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse({"detail": exc.errors(include_url=False, include_context=False)}, status_code=422)


def _open(proposal_id: str) -> ProposalSession:
    bind_proposal(proposal_id)
    record = store.get(proposal_id)
    if not record:
        raise HTTPException(status_code=404, detail="Proposal not found")
    return ProposalSession(record, rate_table=rate_table)


def _commit(session: ProposalSession) -> ProposalResponse:
    saved = store.save(session.to_record())
    return ProposalResponse.from_session(ProposalSession(saved, rate_table=rate_table))


@app.post("/v1/proposals", response_model=ProposalResponse)
async def create_proposal(request: CreateProposalRequest) -> ProposalResponse:
    record = ProposalRecord(project_id=request.project_id, project_data=request.project_data or ProjectData())
    saved = store.save(record)
    logger.info("Created proposal", extra={"proposal_id": saved.id, "project_id": request.project_id})
    return ProposalResponse.from_session(ProposalSession(saved, rate_table=rate_table))


@app.get("/v1/proposals/{proposal_id}", response_model=ProposalResponse)
async def get_proposal(proposal_id: str) -> ProposalResponse:
    return ProposalResponse.from_session(_open(proposal_id))


@app.get("/v1/proposals/{proposal_id}/summary", response_model=FeeSummary)
async def get_summary(proposal_id: str) -> FeeSummary:
    return _open(proposal_id).summary()


# Structures


@app.post("/v1/proposals/{proposal_id}/structures", response_model=ProposalResponse)
async def add_structure(proposal_id: str, structure: dict[str, Any]) -> ProposalResponse:
    session = _open(proposal_id)
    session.structures.add_structure(structure)
    return _commit(session)


@app.patch("/v1/proposals/{proposal_id}/structures/{structure_id}", response_model=ProposalResponse)
async def update_structure(proposal_id: str, structure_id: str, updates: dict[str, Any]) -> ProposalResponse:
    session = _open(proposal_id)
    session.structures.update_structure(structure_id, updates)
    return _commit(session)


@app.delete("/v1/proposals/{proposal_id}/structures/{structure_id}", response_model=ProposalResponse)
async def remove_structure(proposal_id: str, structure_id: str) -> ProposalResponse:
    session = _open(proposal_id)
    session.structures.remove_structure(structure_id)
    return _commit(session)


@app.post("/v1/proposals/{proposal_id}/structures/{structure_id}/duplicate", response_model=ProposalResponse)
async def duplicate_structure(proposal_id: str, structure_id: str) -> ProposalResponse:
    session = _open(proposal_id)
    session.structures.duplicate_structure(structure_id)
    return _commit(session)


@app.patch(
    "/v1/proposals/{proposal_id}/structures/{structure_id}/levels/{level_id}/spaces/{space_id}",
    response_model=ProposalResponse,
)
async def update_space(
    proposal_id: str,
    structure_id: str,
    level_id: str,
    space_id: str,
    updates: dict[str, Any],
) -> ProposalResponse:
    session = _open(proposal_id)
    session.structures.update_space(structure_id, level_id, space_id, updates)
    return _commit(session)


# Flex fees


@app.post("/v1/proposals/{proposal_id}/categories", response_model=ProposalResponse)
async def add_category(proposal_id: str, request: AddCategoryRequest) -> ProposalResponse:
    session = _open(proposal_id)
    session.fees.add_category_at(request.index, request.name)
    return _commit(session)


@app.patch("/v1/proposals/{proposal_id}/categories/{category_id}", response_model=ProposalResponse)
async def rename_category(proposal_id: str, category_id: str, request: RenameRequest) -> ProposalResponse:
    session = _open(proposal_id)
    session.fees.rename_category(category_id, request.name)
    return _commit(session)


@app.delete("/v1/proposals/{proposal_id}/categories/{category_id}", response_model=ProposalResponse)
async def delete_category(proposal_id: str, category_id: str) -> ProposalResponse:
    session = _open(proposal_id)
    session.fees.delete_category(category_id)
    return _commit(session)


@app.post("/v1/proposals/{proposal_id}/categories/move", response_model=ProposalResponse)
async def move_category(proposal_id: str, request: MoveCategoryRequest) -> ProposalResponse:
    session = _open(proposal_id)
    session.fees.move_category(request.from_index, request.to_index)
    return _commit(session)


@app.post("/v1/proposals/{proposal_id}/categories/{category_id}/fees", response_model=ProposalResponse)
async def add_fee(proposal_id: str, category_id: str, request: AddFeeRequest) -> ProposalResponse:
    session = _open(proposal_id)
    session.fees.add_fee(category_id, request.after_index)
    return _commit(session)


@app.patch("/v1/proposals/{proposal_id}/categories/{category_id}/fees/{fee_id}", response_model=ProposalResponse)
async def rename_fee(proposal_id: str, category_id: str, fee_id: str, request: RenameRequest) -> ProposalResponse:
    session = _open(proposal_id)
    session.fees.rename_fee(category_id, fee_id, request.name)
    return _commit(session)


@app.delete("/v1/proposals/{proposal_id}/categories/{category_id}/fees/{fee_id}", response_model=ProposalResponse)
async def delete_fee(proposal_id: str, category_id: str, fee_id: str) -> ProposalResponse:
    session = _open(proposal_id)
    session.fees.delete_fee(category_id, fee_id)
    return _commit(session)


@app.put("/v1/proposals/{proposal_id}/categories/{category_id}/fees/{fee_id}/type", response_model=ProposalResponse)
async def set_fee_type(proposal_id: str, category_id: str, fee_id: str, request: FeeTypeRequest) -> ProposalResponse:
    session = _open(proposal_id)
    session.fees.set_fee_type(category_id, fee_id, request.type)
    return _commit(session)


@app.patch(
    "/v1/proposals/{proposal_id}/categories/{category_id}/fees/{fee_id}/pricing",
    response_model=ProposalResponse,
)
async def update_fee_pricing(
    proposal_id: str,
    category_id: str,
    fee_id: str,
    fields: dict[str, Any],
) -> ProposalResponse:
    session = _open(proposal_id)
    session.fees.update_fee_pricing(category_id, fee_id, **fields)
    return _commit(session)


@app.put(
    "/v1/proposals/{proposal_id}/categories/{category_id}/fees/{fee_id}/discipline",
    response_model=ProposalResponse,
)
async def select_fee_discipline(
    proposal_id: str,
    category_id: str,
    fee_id: str,
    request: DisciplineRequest,
) -> ProposalResponse:
    session = _open(proposal_id)
    session.fees.select_fee_discipline(category_id, fee_id, request.discipline_id)
    return _commit(session)


@app.put("/v1/proposals/{proposal_id}/categories/{category_id}/fees/{fee_id}/role", response_model=ProposalResponse)
async def update_fee_with_role(
    proposal_id: str,
    category_id: str,
    fee_id: str,
    request: RoleRequest,
) -> ProposalResponse:
    session = _open(proposal_id)
    session.fees.update_fee_with_role(category_id, fee_id, request.role_id, request.designation)
    return _commit(session)


@app.post("/v1/proposals/{proposal_id}/categories/{category_id}/fees/{fee_id}/move", response_model=ProposalResponse)
async def move_fee(proposal_id: str, category_id: str, fee_id: str, request: MoveFeeRequest) -> ProposalResponse:
    session = _open(proposal_id)
    session.fees.move_fee(category_id, fee_id, request.to_category_id, request.to_index)
    return _commit(session)


@app.post(
    "/v1/proposals/{proposal_id}/categories/{category_id}/fees/{fee_id}/subcomponents",
    response_model=ProposalResponse,
)
async def add_subcomponent(proposal_id: str, category_id: str, fee_id: str) -> ProposalResponse:
    session = _open(proposal_id)
    session.fees.add_subcomponent(category_id, fee_id)
    return _commit(session)


SUBCOMPONENT_PATH = "/v1/proposals/{proposal_id}/categories/{category_id}/fees/{fee_id}/subcomponents/{sub_id}"


@app.patch(SUBCOMPONENT_PATH, response_model=ProposalResponse)
async def rename_subcomponent(
    proposal_id: str,
    category_id: str,
    fee_id: str,
    sub_id: str,
    request: RenameRequest,
) -> ProposalResponse:
    session = _open(proposal_id)
    session.fees.rename_subcomponent(category_id, fee_id, sub_id, request.name)
    return _commit(session)


@app.delete(SUBCOMPONENT_PATH, response_model=ProposalResponse)
async def delete_subcomponent(proposal_id: str, category_id: str, fee_id: str, sub_id: str) -> ProposalResponse:
    session = _open(proposal_id)
    session.fees.delete_subcomponent(category_id, fee_id, sub_id)
    return _commit(session)


@app.put(f"{SUBCOMPONENT_PATH}/type", response_model=ProposalResponse)
async def set_sub_type(
    proposal_id: str,
    category_id: str,
    fee_id: str,
    sub_id: str,
    request: FeeTypeRequest,
) -> ProposalResponse:
    session = _open(proposal_id)
    session.fees.set_sub_type(category_id, fee_id, sub_id, request.type)
    return _commit(session)


@app.patch(f"{SUBCOMPONENT_PATH}/pricing", response_model=ProposalResponse)
async def update_sub_pricing(
    proposal_id: str,
    category_id: str,
    fee_id: str,
    sub_id: str,
    fields: dict[str, Any],
) -> ProposalResponse:
    session = _open(proposal_id)
    session.fees.update_sub_pricing(category_id, fee_id, sub_id, **fields)
    return _commit(session)


@app.put(f"{SUBCOMPONENT_PATH}/discipline", response_model=ProposalResponse)
async def select_sub_discipline(
    proposal_id: str,
    category_id: str,
    fee_id: str,
    sub_id: str,
    request: DisciplineRequest,
) -> ProposalResponse:
    session = _open(proposal_id)
    session.fees.select_sub_discipline(category_id, fee_id, sub_id, request.discipline_id)
    return _commit(session)


@app.put(f"{SUBCOMPONENT_PATH}/role", response_model=ProposalResponse)
async def update_sub_with_role(
    proposal_id: str,
    category_id: str,
    fee_id: str,
    sub_id: str,
    request: RoleRequest,
) -> ProposalResponse:
    session = _open(proposal_id)
    session.fees.update_sub_with_role(category_id, fee_id, sub_id, request.role_id, request.designation)
    return _commit(session)


@app.post(f"{SUBCOMPONENT_PATH}/move", response_model=ProposalResponse)
async def move_subcomponent(
    proposal_id: str,
    category_id: str,
    fee_id: str,
    sub_id: str,
    request: MoveSubcomponentRequest,
) -> ProposalResponse:
    session = _open(proposal_id)
    session.fees.move_subcomponent(
        category_id, fee_id, sub_id, request.to_category_id, request.to_fee_id, request.to_index
    )
    return _commit(session)


@app.get("/v1/hourly-rates", response_model=list[HourlyRate])
async def list_hourly_rates(discipline_id: int | None = None) -> list[HourlyRate]:
    if discipline_id is None:
        return list(rate_table.all())
    return rate_table.for_discipline(discipline_id)


@app.get("/health")
async def healthcheck() -> JSONResponse:
    return JSONResponse({"status": "ok"})

"""FastAPI routes for distribution records."""

from datetime import datetime
from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from pressledger.api.dependencies import CurrentActor, ledger_http_error, require_roles
from pressledger.database import get_db
from pressledger.hierarchy import Role
from pressledger.models import Actor
from pressledger.services.exceptions import LedgerError
from pressledger.services.ledger import (
    StatusUpdateResult,
    create_distribution,
    create_pending_shipment,
    get_available_newspapers,
    get_distribution,
    list_distributions,
    update_status,
    update_unsold,
)

router = APIRouter(prefix="/distributions", tags=["distributions"])


# --- Pydantic Schemas ---


class HierarchyResponse(BaseModel):
    """Denormalized ancestor chain stored on a record."""

    manufacturer_id: UUID | None = None
    district_distributor_id: UUID | None = None
    area_distributor_id: UUID | None = None
    vendor_id: UUID | None = None

    model_config = {"from_attributes": True}


class DistributionRecordResponse(BaseModel):
    """Response schema for a distribution record."""

    id: UUID = Field(description="Record UUID")
    newspaper_name: str = Field(description="Newspaper title")
    quantity: int = Field(description="Copies shipped")
    sender_id: UUID = Field(description="Shipping actor")
    receiver_id: UUID = Field(description="Receiving actor")
    status: str = Field(description="pending, distributed, delivered or cancelled")
    total_unsold: int = Field(description="Unsold copies reported by the vendor")
    received_quantity: int = Field(description="Copies reported as received")
    hierarchy: HierarchyResponse = Field(description="Ancestor chain snapshot")
    status_updates: list[dict[str, Any]] = Field(description="Audit trail")
    created_at: datetime = Field(description="When the shipment was recorded")

    model_config = {"from_attributes": True}


class DistributionListResponse(BaseModel):
    """Response schema for distribution history."""

    items: list[DistributionRecordResponse]
    total: int


class NewspaperListResponse(BaseModel):
    """Distinct newspaper titles visible to the caller."""

    newspapers: list[str]


class DistributionCreateRequest(BaseModel):
    """Request schema for shipping newspapers one tier down."""

    newspaper_name: str = Field(description="Newspaper title")
    quantity: int = Field(description="Copies to ship (at least 1)")
    receiver_id: UUID = Field(description="Actor one tier below the sender")


class UnsoldUpdateRequest(BaseModel):
    """Request schema for a vendor's unsold report."""

    unsold_quantity: int = Field(description="Copies left unsold")


class StatusUpdateRequest(BaseModel):
    """Request schema for a receiver's status report."""

    status: str = Field(description="New status")
    received_quantity: int = Field(description="Copies received")


class PropagationStepResponse(BaseModel):
    """Outcome of one ancestor write."""

    upper_role: str
    lower_role: str
    outcome: str
    target_id: UUID | None = None
    error: str | None = None


class PropagationReportResponse(BaseModel):
    """Outcome of mirroring a status change onto ancestor shipments."""

    outcome: str = Field(description="success, partial or failed")
    steps: list[PropagationStepResponse]


class StatusUpdateResponse(BaseModel):
    """Response schema for a status update."""

    record: DistributionRecordResponse
    propagation: PropagationReportResponse


def _status_update_response(result: StatusUpdateResult) -> StatusUpdateResponse:
    return StatusUpdateResponse(
        record=DistributionRecordResponse.model_validate(result.record),
        propagation=PropagationReportResponse(
            outcome=result.propagation.outcome.value,
            steps=[
                PropagationStepResponse(
                    upper_role=step.upper_role.value,
                    lower_role=step.lower_role.value,
                    outcome=step.outcome.value,
                    target_id=step.target_id,
                    error=step.error,
                )
                for step in result.propagation.steps
            ],
        ),
    )


# --- API Endpoints ---


@router.post(
    "",
    response_model=DistributionRecordResponse,
    status_code=status.HTTP_201_CREATED,
)
async def post_distribution(
    request: DistributionCreateRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor: CurrentActor,
) -> DistributionRecordResponse:
    """Ship newspapers from the caller to an actor one tier below.

    Raises:
        HTTPException: 400 on invalid input or a hierarchy violation.
    """
    try:
        record = await create_distribution(
            db, actor, request.newspaper_name, request.quantity, request.receiver_id
        )
    except LedgerError as e:
        raise ledger_http_error(e) from e
    return DistributionRecordResponse.model_validate(record)


@router.post(
    "/pending",
    response_model=DistributionRecordResponse,
    status_code=status.HTTP_201_CREATED,
)
async def post_pending_shipment(
    request: DistributionCreateRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor: CurrentActor,
) -> DistributionRecordResponse:
    """Record a shipment to a direct subordinate that is not yet confirmed.

    Raises:
        HTTPException: 400 on invalid input or a hierarchy violation.
    """
    try:
        record = await create_pending_shipment(
            db, actor, request.newspaper_name, request.quantity, request.receiver_id
        )
    except LedgerError as e:
        raise ledger_http_error(e) from e
    return DistributionRecordResponse.model_validate(record)


@router.get("", response_model=DistributionListResponse)
async def get_distributions(
    db: Annotated[AsyncSession, Depends(get_db)],
    actor: CurrentActor,
) -> DistributionListResponse:
    """List the records in the caller's subtree, newest first."""
    records = await list_distributions(db, actor)
    return DistributionListResponse(
        items=[DistributionRecordResponse.model_validate(r) for r in records],
        total=len(records),
    )


@router.get("/newspapers", response_model=NewspaperListResponse)
async def get_newspapers(
    db: Annotated[AsyncSession, Depends(get_db)],
    actor: CurrentActor,
) -> NewspaperListResponse:
    """List the distinct newspaper titles in the caller's subtree."""
    try:
        names = await get_available_newspapers(db, actor)
    except LedgerError as e:
        raise ledger_http_error(e) from e
    return NewspaperListResponse(newspapers=names)


@router.get("/{record_id}", response_model=DistributionRecordResponse)
async def get_distribution_record(
    record_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor: CurrentActor,
) -> DistributionRecordResponse:
    """Fetch one record from the caller's subtree.

    Raises:
        HTTPException: 404 if the record is absent or out of scope.
    """
    try:
        record = await get_distribution(db, actor, record_id)
    except LedgerError as e:
        raise ledger_http_error(e) from e
    return DistributionRecordResponse.model_validate(record)


@router.patch("/{record_id}/unsold", response_model=DistributionRecordResponse)
async def patch_unsold(
    record_id: UUID,
    request: UnsoldUpdateRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor: Annotated[Actor, Depends(require_roles(Role.VENDOR))],
) -> DistributionRecordResponse:
    """Report unsold copies on a shipment and mark it delivered (vendors only).

    Raises:
        HTTPException: 404 if the record is not the vendor's or already closed.
        HTTPException: 400 if the unsold quantity is out of range.
    """
    try:
        record = await update_unsold(db, actor.id, record_id, request.unsold_quantity)
    except LedgerError as e:
        raise ledger_http_error(e) from e
    return DistributionRecordResponse.model_validate(record)


@router.patch("/{record_id}/status", response_model=StatusUpdateResponse)
async def patch_status(
    record_id: UUID,
    request: StatusUpdateRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor: CurrentActor,
) -> StatusUpdateResponse:
    """Report the status and received quantity of a shipment to the caller.

    Ancestor shipments are updated best effort; the response carries the
    propagation outcome, and a partial propagation is still a 200.

    Raises:
        HTTPException: 404 if the caller is not the record's receiver.
        HTTPException: 400 on an unknown status or out-of-range quantity.
    """
    try:
        result = await update_status(
            db, actor.id, record_id, request.status, request.received_quantity
        )
    except LedgerError as e:
        raise ledger_http_error(e) from e
    return _status_update_response(result)

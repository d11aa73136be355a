"""FastAPI routes for distribution statistics."""

from datetime import date, datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from pressledger.api.dependencies import ledger_http_error, require_tier_actor
from pressledger.database import get_db
from pressledger.models import Actor
from pressledger.services.aggregation import (
    compute_daily_series,
    compute_stats,
    compute_today_stats,
    compute_unsold_summary,
)
from pressledger.services.exceptions import LedgerError

router = APIRouter(prefix="/stats", tags=["stats"])

TierActor = Annotated[Actor, Depends(require_tier_actor)]


# --- Pydantic Schemas ---


class StatsResponse(BaseModel):
    """Lifetime sell-through for the caller's subtree."""

    actor_id: UUID = Field(description="Caller the figures are scoped to")
    role: str = Field(description="Caller role")
    total_newspapers: int = Field(description="Copies shipped across all records")
    delivered_quantity: int = Field(description="Copies on delivered records")
    total_sold: int = Field(description="Delivered copies minus unsold")
    total_unsold: int = Field(description="Unsold copies on delivered records")
    distribution_rate: float = Field(description="Sold / delivered * 100")
    calculated_at: datetime = Field(description="Timestamp when stats were calculated")

    model_config = {"from_attributes": True}


class TodayStatsResponse(BaseModel):
    """Throughput on records created today (UTC)."""

    actor_id: UUID
    role: str
    day: date
    newspapers_received: int = Field(description="Sum of received quantities")
    newspapers_produced: int | None = Field(
        description="Sum of shipped quantities (manufacturers only)"
    )
    record_count: int

    model_config = {"from_attributes": True}


class DailyPointResponse(BaseModel):
    """Copies received, sold and unsold on one day."""

    date: date
    received: int
    sold: int
    unsold: int

    model_config = {"from_attributes": True}


class DailySeriesResponse(BaseModel):
    """Daily series over a date range; days without records are omitted."""

    start_date: date
    end_date: date
    days: list[DailyPointResponse]


class UnsoldSummaryRowResponse(BaseModel):
    """Unsold totals for one subordinate."""

    actor_id: UUID
    actor_name: str
    total_quantity: int
    total_unsold: int
    total_sold: int

    model_config = {"from_attributes": True}


class UnsoldSummaryResponse(BaseModel):
    """Unsold totals grouped by the tier below the caller."""

    rows: list[UnsoldSummaryRowResponse]


# --- API Endpoints ---


@router.get("", response_model=StatsResponse)
async def get_stats(
    db: Annotated[AsyncSession, Depends(get_db)],
    actor: TierActor,
    start: Annotated[
        datetime | None,
        Query(description="Only records created at or after this time"),
    ] = None,
    end: Annotated[
        datetime | None,
        Query(description="Only records created at or before this time"),
    ] = None,
) -> StatsResponse:
    """Get lifetime sold/unsold figures and distribution rate."""
    try:
        stats = await compute_stats(db, actor.id, actor.role, start=start, end=end)
    except LedgerError as e:
        raise ledger_http_error(e) from e
    return StatsResponse(
        actor_id=stats.actor_id,
        role=stats.role.value,
        total_newspapers=stats.total_newspapers,
        delivered_quantity=stats.delivered_quantity,
        total_sold=stats.total_sold,
        total_unsold=stats.total_unsold,
        distribution_rate=stats.distribution_rate,
        calculated_at=stats.calculated_at,
    )


@router.get("/today", response_model=TodayStatsResponse)
async def get_today_stats(
    db: Annotated[AsyncSession, Depends(get_db)],
    actor: TierActor,
) -> TodayStatsResponse:
    """Get received (and produced) copies on records created today."""
    try:
        stats = await compute_today_stats(db, actor.id, actor.role)
    except LedgerError as e:
        raise ledger_http_error(e) from e
    return TodayStatsResponse(
        actor_id=stats.actor_id,
        role=stats.role.value,
        day=stats.day,
        newspapers_received=stats.newspapers_received,
        newspapers_produced=stats.newspapers_produced,
        record_count=stats.record_count,
    )


@router.get("/daily", response_model=DailySeriesResponse)
async def get_daily_series(
    db: Annotated[AsyncSession, Depends(get_db)],
    actor: TierActor,
    start_date: Annotated[date, Query(description="First day (inclusive)")],
    end_date: Annotated[date, Query(description="Last day (inclusive)")],
) -> DailySeriesResponse:
    """Get received/sold/unsold copies per UTC day, ascending.

    Raises:
        HTTPException: 400 on an inverted or overlong date range.
    """
    try:
        series = await compute_daily_series(db, actor.id, actor.role, start_date, end_date)
    except LedgerError as e:
        raise ledger_http_error(e) from e
    return DailySeriesResponse(
        start_date=start_date,
        end_date=end_date,
        days=[DailyPointResponse.model_validate(point) for point in series],
    )


@router.get("/unsold-summary", response_model=UnsoldSummaryResponse)
async def get_unsold_summary(
    db: Annotated[AsyncSession, Depends(get_db)],
    actor: TierActor,
) -> UnsoldSummaryResponse:
    """Get unsold totals grouped by the actors one tier below the caller."""
    try:
        rows = await compute_unsold_summary(db, actor.id, actor.role)
    except LedgerError as e:
        raise ledger_http_error(e) from e
    return UnsoldSummaryResponse(
        rows=[UnsoldSummaryRowResponse.model_validate(row) for row in rows]
    )

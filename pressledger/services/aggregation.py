"""Distribution statistics scoped to an actor's position in the hierarchy.

This module provides read-only views over distribution records:
- Lifetime sell-through: quantity, sold, unsold and distribution rate over
  delivered records
- Today's throughput: received (and, for manufacturers, produced) copies
  on records created during the current UTC day
- A daily series of received/sold/unsold copies
- An unsold summary grouped by the actors one tier down

Every view filters records by the hierarchy key of the caller's role, so a
district distributor sees its whole subtree. The lifetime and today views
read different quantity fields (``quantity``/``total_unsold`` versus
``received_quantity``) and are deliberately not reconciled.
"""

import logging
import uuid
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from itertools import groupby
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pressledger.config import settings
from pressledger.hierarchy import (
    DistributionStatus,
    Role,
    hierarchy_key,
    is_tier,
    parse_role,
    subordinate_role,
)
from pressledger.models import Actor, DistributionRecord
from pressledger.services.exceptions import InvalidInputError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DistributionStats:
    """Lifetime sell-through for an actor's subtree.

    Attributes:
        actor_id: Actor the figures are scoped to
        role: Role whose hierarchy key was used for scoping
        total_newspapers: Quantity across all records in scope
        delivered_quantity: Quantity across delivered records
        total_sold: delivered_quantity minus total_unsold
        total_unsold: Unsold copies across delivered records
        distribution_rate: total_sold / delivered_quantity * 100 (0 if none)
        calculated_at: Timestamp when the figures were calculated
    """

    actor_id: uuid.UUID
    role: Role
    total_newspapers: int
    delivered_quantity: int
    total_sold: int
    total_unsold: int
    distribution_rate: float
    calculated_at: datetime


@dataclass(frozen=True)
class TodayStats:
    """Throughput on records created during one UTC day.

    Attributes:
        actor_id: Actor the figures are scoped to
        role: Role whose hierarchy key was used for scoping
        day: The UTC calendar day
        newspapers_received: Sum of received_quantity
        newspapers_produced: Sum of quantity (manufacturers only)
        record_count: Number of records created that day
    """

    actor_id: uuid.UUID
    role: Role
    day: date
    newspapers_received: int
    newspapers_produced: int | None
    record_count: int


@dataclass(frozen=True)
class DailyPoint:
    """Copies received, sold and unsold on one UTC day."""

    date: date
    received: int
    sold: int
    unsold: int


@dataclass(frozen=True)
class UnsoldSummaryRow:
    """Unsold totals for one actor one tier below the caller.

    Attributes:
        actor_id: Subordinate actor (the caller itself for vendors)
        actor_name: Display name of that actor
        total_quantity: Quantity shipped on that branch
        total_unsold: Unsold copies reported on that branch
        total_sold: total_quantity minus total_unsold
    """

    actor_id: uuid.UUID
    actor_name: str
    total_quantity: int
    total_unsold: int
    total_sold: int


class DailySeries:
    """Restartable, ascending sequence of DailyPoint values.

    Holds the raw (created_at, quantity, total_unsold) rows ordered by
    creation time and buckets them by UTC day each time it is iterated.
    Days without records are omitted.
    """

    def __init__(self, rows: Sequence[tuple[datetime, int, int]]) -> None:
        self._rows = tuple(rows)

    def __iter__(self) -> Iterator[DailyPoint]:
        for day, bucket in groupby(self._rows, key=lambda row: as_utc(row[0]).date()):
            received = sold = unsold = 0
            for _, quantity, total_unsold in bucket:
                total_unsold = total_unsold or 0
                received += quantity
                sold += quantity - total_unsold
                unsold += total_unsold
            yield DailyPoint(date=day, received=received, sold=sold, unsold=unsold)

    def __repr__(self) -> str:
        return f"<DailySeries(rows={len(self._rows)})>"


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime.

    Naive values are taken to be UTC already; SQLite returns them that way.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def calculate_distribution_rate(sold: int, quantity: int) -> float:
    """Calculate the percentage of shipped copies accounted as sold.

    Args:
        sold: Copies sold
        quantity: Copies shipped

    Returns:
        sold / quantity * 100, or 0.0 when nothing was shipped

    Examples:
        >>> calculate_distribution_rate(80, 100)
        80.0
        >>> calculate_distribution_rate(0, 0)
        0.0
    """
    if quantity <= 0:
        return 0.0
    return sold / quantity * 100


def _scoped_role(role: str | Role) -> Role:
    try:
        role = parse_role(role)
    except ValueError as e:
        raise InvalidInputError(f"Unknown role: {role!r}") from e
    if not is_tier(role):
        raise InvalidInputError(f"Invalid role for analytics access: {role.value}")
    return role


def _scope_clauses(
    actor_id: uuid.UUID,
    role: Role,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[Any]:
    clauses: list[Any] = [
        getattr(DistributionRecord, hierarchy_key(role)) == actor_id
    ]
    if start is not None:
        clauses.append(DistributionRecord.created_at >= start)
    if end is not None:
        clauses.append(DistributionRecord.created_at <= end)
    return clauses


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Return the [start, end) UTC datetimes of a calendar day."""
    start = datetime.combine(day, time.min, tzinfo=UTC)
    return start, start + timedelta(days=1)


async def compute_stats(
    session: AsyncSession,
    actor_id: uuid.UUID,
    role: str | Role,
    start: datetime | None = None,
    end: datetime | None = None,
    as_of: datetime | None = None,
) -> DistributionStats:
    """Calculate lifetime sell-through for an actor's subtree.

    Sold and unsold figures come from delivered records only, since only
    those carry a vendor's unsold report.

    Args:
        session: Database session
        actor_id: Actor to scope to
        role: The actor's role; picks the hierarchy key
        start: Optional inclusive lower bound on created_at
        end: Optional inclusive upper bound on created_at
        as_of: Timestamp recorded on the result (default: now)

    Returns:
        DistributionStats for the scope

    Raises:
        InvalidInputError: For unknown roles and admin
    """
    role = _scoped_role(role)
    clauses = _scope_clauses(actor_id, role, start, end)

    total_result = await session.execute(
        select(func.coalesce(func.sum(DistributionRecord.quantity), 0)).where(*clauses)
    )
    total_newspapers = int(total_result.scalar() or 0)

    delivered_result = await session.execute(
        select(
            func.coalesce(func.sum(DistributionRecord.quantity), 0),
            func.coalesce(func.sum(DistributionRecord.total_unsold), 0),
        )
        .where(*clauses)
        .where(DistributionRecord.status == DistributionStatus.DELIVERED.value)
    )
    delivered_quantity, total_unsold = delivered_result.one()
    delivered_quantity = int(delivered_quantity or 0)
    total_unsold = int(total_unsold or 0)
    total_sold = delivered_quantity - total_unsold

    logger.debug(
        f"Stats for {role.value} {actor_id}: {total_sold}/{delivered_quantity} "
        f"sold of {total_newspapers} shipped"
    )

    return DistributionStats(
        actor_id=actor_id,
        role=role,
        total_newspapers=total_newspapers,
        delivered_quantity=delivered_quantity,
        total_sold=total_sold,
        total_unsold=total_unsold,
        distribution_rate=calculate_distribution_rate(total_sold, delivered_quantity),
        calculated_at=as_of or datetime.now(UTC),
    )


async def compute_today_stats(
    session: AsyncSession,
    actor_id: uuid.UUID,
    role: str | Role,
    now: datetime | None = None,
) -> TodayStats:
    """Calculate throughput on records created during the current UTC day.

    Args:
        session: Database session
        actor_id: Actor to scope to
        role: The actor's role; picks the hierarchy key
        now: Reference time (default: now)

    Returns:
        TodayStats for the day containing ``now``

    Raises:
        InvalidInputError: For unknown roles and admin
    """
    role = _scoped_role(role)
    today = as_utc(now or datetime.now(UTC)).date()
    day_start, day_end = day_bounds(today)

    result = await session.execute(
        select(
            func.coalesce(func.sum(DistributionRecord.received_quantity), 0),
            func.coalesce(func.sum(DistributionRecord.quantity), 0),
            func.count(DistributionRecord.id),
        )
        .where(*_scope_clauses(actor_id, role))
        .where(DistributionRecord.created_at >= day_start)
        .where(DistributionRecord.created_at < day_end)
    )
    received, produced, count = result.one()

    return TodayStats(
        actor_id=actor_id,
        role=role,
        day=today,
        newspapers_received=int(received or 0),
        newspapers_produced=int(produced or 0) if role == Role.MANUFACTURER else None,
        record_count=int(count or 0),
    )


async def compute_daily_series(
    session: AsyncSession,
    actor_id: uuid.UUID,
    role: str | Role,
    start_date: date,
    end_date: date,
) -> DailySeries:
    """Bucket an actor's records by UTC creation day.

    Per day: received is the shipped quantity, sold is quantity minus
    unsold, unsold is total_unsold. Both dates are inclusive.

    Raises:
        InvalidInputError: For unknown roles and admin, an inverted range, or
            a range longer than ``settings.daily_series_max_days``
    """
    role = _scoped_role(role)
    if start_date > end_date:
        raise InvalidInputError("start_date must not be after end_date")
    span = (end_date - start_date).days + 1
    if span > settings.daily_series_max_days:
        raise InvalidInputError(
            f"Date range of {span} days exceeds the maximum of "
            f"{settings.daily_series_max_days}"
        )

    range_start, _ = day_bounds(start_date)
    _, range_end = day_bounds(end_date)

    result = await session.execute(
        select(
            DistributionRecord.created_at,
            DistributionRecord.quantity,
            DistributionRecord.total_unsold,
        )
        .where(*_scope_clauses(actor_id, role))
        .where(DistributionRecord.created_at >= range_start)
        .where(DistributionRecord.created_at < range_end)
        .order_by(DistributionRecord.created_at, DistributionRecord.id)
    )
    rows = [(row[0], row[1], row[2]) for row in result.all()]
    return DailySeries(rows)


async def compute_unsold_summary(
    session: AsyncSession,
    actor_id: uuid.UUID,
    role: str | Role,
) -> list[UnsoldSummaryRow]:
    """Total quantity and unsold copies per actor one tier below the caller.

    Vendors get a single row for themselves. Records with no actor at the
    grouping tier (shipments into the caller itself) are left out.

    Raises:
        InvalidInputError: For unknown roles and admin
    """
    role = _scoped_role(role)
    group_role = subordinate_role(role) or role
    group_column = getattr(DistributionRecord, hierarchy_key(group_role))

    total_quantity = func.coalesce(func.sum(DistributionRecord.quantity), 0)
    total_unsold = func.coalesce(func.sum(DistributionRecord.total_unsold), 0)

    result = await session.execute(
        select(group_column, Actor.name, total_quantity, total_unsold)
        .join(Actor, Actor.id == group_column)
        .where(*_scope_clauses(actor_id, role))
        .group_by(group_column, Actor.name)
        .order_by(Actor.name)
    )

    return [
        UnsoldSummaryRow(
            actor_id=group_id,
            actor_name=name,
            total_quantity=int(quantity),
            total_unsold=int(unsold),
            total_sold=int(quantity) - int(unsold),
        )
        for group_id, name, quantity, unsold in result.all()
    ]

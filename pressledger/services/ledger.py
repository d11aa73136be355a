"""Distribution ledger service.

This module owns every write to distribution records:
- Creating shipments, with hierarchy validation and a denormalized
  ancestor snapshot on each record
- Recording unsold copies reported by vendors
- Recording status/received-quantity changes reported by receivers, and
  mirroring them onto the ancestor shipments of the same branch

The three write paths treat ancestor records differently and are kept as
separate operations:
- create_distribution appends its audit entry to the parent shipment
- update_unsold touches only the record itself
- update_status overwrites status and received quantity on each ancestor
  shipment

Ancestor writes are best effort. Each one runs in its own SAVEPOINT and its
outcome is tracked on a PropagationReport; a failed step never rolls back
the primary write.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from sqlalchemy import ColumnElement, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pressledger.hierarchy import (
    OPEN_STATUSES,
    RECEIVER_ROLE_FOR_SENDER,
    DistributionStatus,
    HierarchySnapshot,
    Role,
    hierarchy_key,
    parse_role,
    superior_role,
)
from pressledger.models import Actor, DistributionRecord
from pressledger.services.actor_directory import find_actor, resolve_superior
from pressledger.services.exceptions import (
    HierarchyViolationError,
    InvalidInputError,
    NotFoundError,
    PropagationFailure,
)

logger = logging.getLogger(__name__)


class StepOutcome(str, Enum):
    """Result of a single ancestor write."""

    UPDATED = "updated"
    NOT_FOUND = "not_found"
    FAILED = "failed"


class PropagationOutcome(str, Enum):
    """Overall result of an upward propagation."""

    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass(frozen=True)
class PropagationStep:
    """Outcome of propagating onto one hierarchy edge.

    Attributes:
        upper_role: Sending tier of the ancestor shipment
        lower_role: Receiving tier of the ancestor shipment
        outcome: updated, not_found or failed
        target_id: Id of the ancestor record that was located, if any
        error: Failure description for failed steps
    """

    upper_role: Role
    lower_role: Role
    outcome: StepOutcome
    target_id: uuid.UUID | None = None
    error: str | None = None


@dataclass
class PropagationReport:
    """Per-step tracking of an upward propagation."""

    steps: list[PropagationStep] = field(default_factory=list)

    @property
    def outcome(self) -> PropagationOutcome:
        """success when every step updated its ancestor (or there were no
        steps), failed when none did, partial otherwise."""
        updated = sum(1 for step in self.steps if step.outcome == StepOutcome.UPDATED)
        if updated == len(self.steps):
            return PropagationOutcome.SUCCESS
        if updated == 0:
            return PropagationOutcome.FAILED
        return PropagationOutcome.PARTIAL

    @property
    def failures(self) -> list[PropagationFailure]:
        """Steps that did not update an ancestor, as PropagationFailure errors."""
        return [
            PropagationFailure(
                step.error
                or f"No {step.upper_role.value} -> {step.lower_role.value} "
                "shipment found"
            )
            for step in self.steps
            if step.outcome != StepOutcome.UPDATED
        ]


@dataclass(frozen=True)
class StatusUpdateResult:
    """Result of update_status: the authoritative record plus propagation."""

    record: DistributionRecord
    propagation: PropagationReport


def make_status_entry(
    actor_id: uuid.UUID,
    status: DistributionStatus,
    quantity: int,
    received_quantity: int,
    timestamp: datetime | None = None,
) -> dict[str, Any]:
    """Build an audit entry for a record's status_updates trail."""
    return {
        "actor_id": str(actor_id),
        "status": status.value,
        "quantity": quantity,
        "received_quantity": received_quantity,
        "timestamp": (timestamp or datetime.now(UTC)).isoformat(),
    }


def _validate_quantity(value: Any, name: str, minimum: int = 0) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInputError(f"{name} must be an integer")
    if value < minimum:
        raise InvalidInputError(f"{name} must be at least {minimum}")
    return value


def _parse_status(value: str | DistributionStatus) -> DistributionStatus:
    try:
        return DistributionStatus(value)
    except ValueError as e:
        raise InvalidInputError(f"Unknown status: {value!r}") from e


def scope_filter(actor: Actor) -> ColumnElement[bool] | None:
    """Return the clause restricting records to ``actor``'s subtree.

    Admins see every record, so None is returned for them.
    """
    role = parse_role(actor.role)
    if role == Role.ADMIN:
        return None
    return getattr(DistributionRecord, hierarchy_key(role)) == actor.id


async def resolve_hierarchy(
    session: AsyncSession,
    sender: Actor,
    receiver: Actor,
) -> HierarchySnapshot:
    """Validate a sender/receiver pair and build the record's snapshot.

    Walks superior links upward from the sender, checking that each link
    exists and points exactly one tier up. The snapshot holds every tier
    from the manufacturer down to the receiver.

    Raises:
        HierarchyViolationError: If the sender may not ship, the receiver
            is not one tier below the sender, or an ancestor link is
            missing or has the wrong role
    """
    try:
        sender_role = parse_role(sender.role)
    except ValueError as e:
        raise HierarchyViolationError(f"Sender has unknown role {sender.role!r}") from e

    required = RECEIVER_ROLE_FOR_SENDER.get(sender_role)
    if required is None:
        raise HierarchyViolationError(
            f"Role {sender_role.value!r} may not originate distributions"
        )
    if receiver.role != required.value:
        raise HierarchyViolationError(
            f"{sender_role.value} can only distribute to {required.value}, "
            f"not {receiver.role}"
        )

    snapshot = (
        HierarchySnapshot()
        .with_tier(sender_role, sender.id)
        .with_tier(required, receiver.id)
    )

    current = sender
    expected = superior_role(sender_role)
    while expected is not None:
        if current.superior_id is None:
            raise HierarchyViolationError(
                f"{current.role} {current.id} must be associated with a {expected.value}"
            )
        try:
            superior = await resolve_superior(session, current.id)
        except NotFoundError as e:
            raise HierarchyViolationError(str(e)) from e
        if superior.role != expected.value:
            raise HierarchyViolationError(
                f"{current.role} {current.id} must be associated with a "
                f"{expected.value}, found {superior.role}"
            )
        snapshot = snapshot.with_tier(expected, superior.id)
        current = superior
        expected = superior_role(expected)

    return snapshot


async def _prepare_shipment(
    session: AsyncSession,
    sender: Actor,
    newspaper_name: str,
    quantity: int,
    receiver_id: uuid.UUID,
) -> tuple[str, int, Actor, HierarchySnapshot]:
    name = (newspaper_name or "").strip()
    if not name:
        raise InvalidInputError("Newspaper name is required")
    quantity = _validate_quantity(quantity, "Quantity", minimum=1)

    receiver = await find_actor(session, receiver_id)
    if receiver is None:
        raise InvalidInputError(f"Receiver {receiver_id} not found")

    snapshot = await resolve_hierarchy(session, sender, receiver)
    return name, quantity, receiver, snapshot


async def _persist_shipment(
    session: AsyncSession,
    sender: Actor,
    receiver: Actor,
    newspaper_name: str,
    quantity: int,
    status: DistributionStatus,
    snapshot: HierarchySnapshot,
    created_at: datetime,
) -> tuple[DistributionRecord, dict[str, Any]]:
    entry = make_status_entry(sender.id, status, quantity, quantity, created_at)
    record = DistributionRecord(
        newspaper_name=newspaper_name,
        quantity=quantity,
        sender_id=sender.id,
        receiver_id=receiver.id,
        status=status.value,
        total_unsold=0,
        received_quantity=quantity,
        status_updates=[entry],
        created_at=created_at,
        updated_at=created_at,
    )
    record.hierarchy = snapshot
    session.add(record)
    await session.flush()
    return record, entry


async def create_distribution(
    session: AsyncSession,
    sender: Actor,
    newspaper_name: str,
    quantity: int,
    receiver_id: uuid.UUID,
    created_at: datetime | None = None,
) -> DistributionRecord:
    """Record a shipment from ``sender`` to the tier directly below.

    The record starts as ``distributed`` with the full quantity received.
    When the sender is a distributor, the audit entry is also appended to
    the shipment the sender itself received for the same newspaper, if one
    is still open.

    Args:
        session: Database session
        sender: Actor shipping the newspapers
        newspaper_name: Title being shipped
        quantity: Units shipped (at least 1)
        receiver_id: Actor receiving the shipment
        created_at: Shipment time (default: now)

    Returns:
        The persisted DistributionRecord

    Raises:
        InvalidInputError: Blank name, quantity below 1, unknown receiver
        HierarchyViolationError: Role mismatch or broken ancestor chain
    """
    name, quantity, receiver, snapshot = await _prepare_shipment(
        session, sender, newspaper_name, quantity, receiver_id
    )
    created_at = created_at or datetime.now(UTC)

    record, entry = await _persist_shipment(
        session,
        sender,
        receiver,
        name,
        quantity,
        DistributionStatus.DISTRIBUTED,
        snapshot,
        created_at,
    )
    logger.info(
        f"Distributed {quantity} x {name!r} from {sender.role} {sender.id} "
        f"to {receiver.role} {receiver.id} (record {record.id})"
    )

    await _append_to_parent_shipment(session, record, sender, entry)
    return record


async def create_pending_shipment(
    session: AsyncSession,
    sender: Actor,
    newspaper_name: str,
    quantity: int,
    receiver_id: uuid.UUID,
    created_at: datetime | None = None,
) -> DistributionRecord:
    """Record a shipment that the receiver has not yet confirmed.

    Validates like create_distribution and additionally requires the
    receiver to report directly to the sender. The record starts as
    ``pending`` and nothing is propagated to ancestor shipments.

    Raises:
        InvalidInputError: Blank name, quantity below 1, unknown receiver
        HierarchyViolationError: Role mismatch, broken ancestor chain, or a
            receiver whose superior is not the sender
    """
    name, quantity, receiver, snapshot = await _prepare_shipment(
        session, sender, newspaper_name, quantity, receiver_id
    )
    if receiver.superior_id != sender.id:
        raise HierarchyViolationError(
            f"Receiver {receiver.id} does not report to {sender.id}"
        )

    record, _ = await _persist_shipment(
        session,
        sender,
        receiver,
        name,
        quantity,
        DistributionStatus.PENDING,
        snapshot,
        created_at or datetime.now(UTC),
    )
    logger.info(
        f"Recorded pending shipment of {quantity} x {name!r} to "
        f"{receiver.role} {receiver.id} (record {record.id})"
    )
    return record


async def _append_to_parent_shipment(
    session: AsyncSession,
    record: DistributionRecord,
    sender: Actor,
    entry: dict[str, Any],
) -> DistributionRecord | None:
    """Append ``entry`` to the open shipment the sender received.

    Best effort: a failure is logged and the new record stands.
    """
    sender_role = parse_role(sender.role)
    if sender_role == Role.MANUFACTURER:
        return None

    key_column = getattr(DistributionRecord, hierarchy_key(sender_role))
    query = (
        select(DistributionRecord)
        .where(DistributionRecord.newspaper_name == record.newspaper_name)
        .where(DistributionRecord.status == DistributionStatus.DISTRIBUTED.value)
        .where(key_column == sender.id)
        .where(DistributionRecord.receiver_id == sender.id)
        .where(DistributionRecord.id != record.id)
        .order_by(DistributionRecord.created_at, DistributionRecord.id)
        .limit(1)
    )

    try:
        async with session.begin_nested():
            result = await session.execute(query)
            parent = result.scalar_one_or_none()
            if parent is None:
                logger.debug(
                    f"No open {record.newspaper_name!r} shipment into "
                    f"{sender.id}; nothing to append"
                )
                return None
            parent.append_status_update(dict(entry))
            await session.flush()
    except SQLAlchemyError as e:
        logger.warning(
            f"Could not append status update of record {record.id} to its "
            f"parent shipment: {e}"
        )
        return None

    logger.debug(f"Appended status update of record {record.id} to {parent.id}")
    return parent


async def update_unsold(
    session: AsyncSession,
    vendor_id: uuid.UUID,
    record_id: uuid.UUID,
    unsold_qty: int,
) -> DistributionRecord:
    """Record the vendor's unsold copies and mark the shipment delivered.

    Only the record itself changes. No audit entry is appended and ancestor
    shipments are left untouched.

    Raises:
        NotFoundError: If the record does not belong to the vendor or was
            already closed
        InvalidInputError: If unsold_qty is negative or exceeds quantity
    """
    result = await session.execute(
        select(DistributionRecord)
        .where(DistributionRecord.id == record_id)
        .where(DistributionRecord.vendor_id == vendor_id)
        .where(DistributionRecord.status.in_([s.value for s in OPEN_STATUSES]))
    )
    record = result.scalar_one_or_none()
    if record is None:
        raise NotFoundError(
            f"Distribution record {record_id} not found or already updated"
        )

    unsold_qty = _validate_quantity(unsold_qty, "Unsold quantity")
    if unsold_qty > record.quantity:
        raise InvalidInputError(
            f"Unsold quantity {unsold_qty} cannot be greater than "
            f"received quantity {record.quantity}"
        )

    record.total_unsold = unsold_qty
    record.status = DistributionStatus.DELIVERED.value
    await session.flush()

    logger.info(
        f"Vendor {vendor_id} reported {unsold_qty}/{record.quantity} unsold "
        f"on record {record_id}"
    )
    return record


async def update_status(
    session: AsyncSession,
    receiver_id: uuid.UUID,
    record_id: uuid.UUID,
    status: str | DistributionStatus,
    received_qty: int,
    timestamp: datetime | None = None,
) -> StatusUpdateResult:
    """Record a receiver's status change and mirror it up the branch.

    The record's status and received quantity are set and an audit entry is
    appended. Then, for each ancestor shipment on the record's branch
    (innermost first), the status and received quantity are overwritten.
    Ancestor steps are independent; the returned report says which ones
    succeeded.

    Args:
        session: Database session
        receiver_id: Actor reporting the change; must be the record's receiver
        record_id: Record to update
        status: New status
        received_qty: Units received (0..quantity)
        timestamp: Audit entry time (default: now)

    Returns:
        StatusUpdateResult with the updated record and propagation report

    Raises:
        InvalidInputError: Unknown status or received_qty out of range
        NotFoundError: If the record's receiver is not ``receiver_id``
    """
    new_status = _parse_status(status)

    result = await session.execute(
        select(DistributionRecord)
        .where(DistributionRecord.id == record_id)
        .where(DistributionRecord.receiver_id == receiver_id)
    )
    record = result.scalar_one_or_none()
    if record is None:
        raise NotFoundError(f"Distribution record {record_id} not found")

    received_qty = _validate_quantity(received_qty, "Received quantity")
    if received_qty > record.quantity:
        raise InvalidInputError(
            f"Received quantity {received_qty} cannot be greater than "
            f"sent quantity {record.quantity}"
        )

    record.status = new_status.value
    record.received_quantity = received_qty
    record.append_status_update(
        make_status_entry(
            receiver_id, new_status, record.quantity, received_qty, timestamp
        )
    )
    await session.flush()

    logger.info(
        f"Receiver {receiver_id} set record {record_id} to {new_status.value} "
        f"({received_qty}/{record.quantity} received)"
    )

    report = await propagate_status(session, record, new_status, received_qty)
    if report.outcome != PropagationOutcome.SUCCESS:
        logger.warning(
            f"Propagation from record {record_id} was {report.outcome.value}: "
            + "; ".join(str(failure) for failure in report.failures)
        )
    return StatusUpdateResult(record=record, propagation=report)


async def propagate_status(
    session: AsyncSession,
    record: DistributionRecord,
    status: DistributionStatus,
    received_qty: int,
) -> PropagationReport:
    """Overwrite status and received quantity on the record's ancestor shipments.

    The record's own edge is its innermost one; every edge above it is one
    step, walked innermost first.
    """
    report = PropagationReport()
    ancestor_edges = record.hierarchy.edges()[1:]
    for upper, lower in ancestor_edges:
        step = await _propagate_to_edge(session, record, upper, lower, status, received_qty)
        report.steps.append(step)
    return report


async def _find_edge_record(
    session: AsyncSession,
    record: DistributionRecord,
    upper: Role,
    lower: Role,
) -> list[DistributionRecord]:
    snapshot = record.hierarchy
    lower_id = snapshot.get(lower)
    result = await session.execute(
        select(DistributionRecord)
        .where(getattr(DistributionRecord, hierarchy_key(upper)) == snapshot.get(upper))
        .where(getattr(DistributionRecord, hierarchy_key(lower)) == lower_id)
        .where(DistributionRecord.receiver_id == lower_id)
        .where(DistributionRecord.id != record.id)
        .order_by(DistributionRecord.created_at, DistributionRecord.id)
        .limit(2)
    )
    return list(result.scalars().all())


def _step_error(error: Exception, upper: Role, lower: Role) -> str:
    """Client-facing failure text; storage errors omit statement and parameters."""
    if isinstance(error, PropagationFailure):
        return str(error)
    return f"{type(error).__name__} updating {upper.value} -> {lower.value} shipment"


async def _propagate_to_edge(
    session: AsyncSession,
    record: DistributionRecord,
    upper: Role,
    lower: Role,
    status: DistributionStatus,
    received_qty: int,
) -> PropagationStep:
    target_id: uuid.UUID | None = None
    try:
        async with session.begin_nested():
            candidates = await _find_edge_record(session, record, upper, lower)
            if not candidates:
                logger.warning(
                    f"No {upper.value} -> {lower.value} shipment found above "
                    f"record {record.id}"
                )
                return PropagationStep(upper, lower, StepOutcome.NOT_FOUND)

            target = candidates[0]
            target_id = target.id
            if len(candidates) > 1:
                logger.warning(
                    f"Several {upper.value} -> {lower.value} shipments match "
                    f"record {record.id}; using earliest {target.id}"
                )
            if received_qty > target.quantity:
                raise PropagationFailure(
                    f"Received quantity {received_qty} exceeds quantity "
                    f"{target.quantity} of ancestor record {target.id}"
                )

            target.status = status.value
            target.received_quantity = received_qty
            await session.flush()
    except (SQLAlchemyError, PropagationFailure) as e:
        logger.warning(
            f"Propagation {upper.value} -> {lower.value} from record "
            f"{record.id} failed: {e}"
        )
        return PropagationStep(
            upper,
            lower,
            StepOutcome.FAILED,
            target_id=target_id,
            error=_step_error(e, upper, lower),
        )

    return PropagationStep(upper, lower, StepOutcome.UPDATED, target_id=target_id)


async def list_distributions(
    session: AsyncSession,
    actor: Actor,
) -> list[DistributionRecord]:
    """Return the records in the actor's subtree, newest first."""
    query = select(DistributionRecord)
    clause = scope_filter(actor)
    if clause is not None:
        query = query.where(clause)
    query = query.order_by(DistributionRecord.created_at.desc())

    result = await session.execute(query)
    return list(result.scalars().all())


async def get_distribution(
    session: AsyncSession,
    actor: Actor,
    record_id: uuid.UUID,
) -> DistributionRecord:
    """Return one record, provided it is in the actor's subtree.

    Raises:
        NotFoundError: If the record is absent or out of scope
    """
    query = select(DistributionRecord).where(DistributionRecord.id == record_id)
    clause = scope_filter(actor)
    if clause is not None:
        query = query.where(clause)

    result = await session.execute(query)
    record = result.scalar_one_or_none()
    if record is None:
        raise NotFoundError(f"Distribution record {record_id} not found")
    return record


async def get_available_newspapers(
    session: AsyncSession,
    actor: Actor,
) -> list[str]:
    """Return the distinct newspaper names in the actor's subtree.

    Raises:
        InvalidInputError: For actors outside the hierarchy (admin)
    """
    clause = scope_filter(actor)
    if clause is None:
        raise InvalidInputError("Invalid role for newspaper selection")

    result = await session.execute(
        select(DistributionRecord.newspaper_name)
        .where(clause)
        .distinct()
        .order_by(DistributionRecord.newspaper_name)
    )
    return [row[0] for row in result.all()]

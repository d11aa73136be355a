"""DistributionRecord model for newspaper shipments between tiers."""

import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from pressledger.database import Base
from pressledger.hierarchy import HIERARCHY_KEYS, HierarchySnapshot


def _actor_fk() -> ForeignKey:
    return ForeignKey("actors.id", ondelete="RESTRICT")


class DistributionRecord(Base):
    """One shipment of a named newspaper between two adjacent tiers.

    The ancestor chain is denormalized onto four indexed columns at creation
    time and exposed through the ``hierarchy`` property. Records are never
    deleted; status changes are appended to ``status_updates``.

    Attributes:
        id: Unique identifier (UUID)
        newspaper_name: Title being shipped
        quantity: Units sent (also the initial received quantity)
        sender_id: Actor shipping the newspapers
        receiver_id: Actor one tier below the sender
        status: pending, distributed, delivered or cancelled
        total_unsold: Unsold units reported by the vendor
        received_quantity: Units the receiver reports as received
        manufacturer_id: Hierarchy snapshot, manufacturer tier
        district_distributor_id: Hierarchy snapshot, district tier
        area_distributor_id: Hierarchy snapshot, area tier
        vendor_id: Hierarchy snapshot, vendor tier
        status_updates: JSON array of audit entries, append-only
        created_at: Timestamp when the shipment was recorded
        updated_at: Last update timestamp
    """

    __tablename__ = "distribution_records"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    newspaper_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    sender_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), _actor_fk(), nullable=False
    )
    receiver_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), _actor_fk(), nullable=False
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="pending",
        index=True,
    )
    total_unsold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    received_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Denormalized hierarchy snapshot
    manufacturer_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), _actor_fk(), nullable=True, index=True
    )
    district_distributor_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), _actor_fk(), nullable=True, index=True
    )
    area_distributor_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), _actor_fk(), nullable=True, index=True
    )
    vendor_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), _actor_fk(), nullable=True, index=True
    )

    # Audit trail (JSON array of status update dicts)
    status_updates: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_distribution_records_quantity"),
        CheckConstraint(
            "total_unsold >= 0 AND total_unsold <= quantity",
            name="ck_distribution_records_total_unsold",
        ),
        CheckConstraint(
            "received_quantity >= 0 AND received_quantity <= quantity",
            name="ck_distribution_records_received_quantity",
        ),
        # Shipment lookups by edge
        Index(
            "ix_distribution_records_sender_receiver",
            "sender_id",
            "receiver_id",
        ),
        # Daily series scans
        Index(
            "ix_distribution_records_created_at",
            "created_at",
        ),
    )

    @property
    def hierarchy(self) -> HierarchySnapshot:
        """Snapshot of the ancestor chain stored on this record."""
        return HierarchySnapshot(
            **{key: getattr(self, key) for key in HIERARCHY_KEYS.values()}
        )

    @hierarchy.setter
    def hierarchy(self, snapshot: HierarchySnapshot) -> None:
        for role, key in HIERARCHY_KEYS.items():
            setattr(self, key, snapshot.get(role))

    def append_status_update(self, entry: dict[str, Any]) -> None:
        """Append an audit entry.

        The list is replaced rather than mutated in place so the JSON column
        is flagged as changed.
        """
        self.status_updates = [*(self.status_updates or []), entry]

    def __repr__(self) -> str:
        return (
            f"<DistributionRecord(newspaper_name={self.newspaper_name!r}, "
            f"quantity={self.quantity!r}, "
            f"status={self.status!r})>"
        )

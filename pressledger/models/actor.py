"""Actor model for supply hierarchy participants."""

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from pressledger.database import Base


class Actor(Base):
    """Actor model representing a participant in the distribution chain.

    Each tier actor below the manufacturer points at exactly one superior
    one tier up, so the superior links form a tree rooted at manufacturers.
    Superior roles are not checked on insert; the ledger validates the
    chain when the actor first ships newspapers.

    Attributes:
        id: Unique identifier (UUID)
        name: Display name
        email: Unique, lower-cased contact address
        role: One of manufacturer, district_distributor, area_distributor,
            vendor, admin
        superior_id: Actor one tier above (None for admin and manufacturer)
        created_at: Timestamp when the record was created
    """

    __tablename__ = "actors"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )
    role: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        index=True,
    )
    superior_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("actors.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Actor(name={self.name!r}, role={self.role!r})>"

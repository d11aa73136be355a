"""create_actors_and_distribution_records

Revision ID: 7c1e4a9b2d30
Revises:
Create Date: 2026-10-19 09:12:44.318207

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "7c1e4a9b2d30"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

HIERARCHY_COLUMNS = (
    "manufacturer_id",
    "district_distributor_id",
    "area_distributor_id",
    "vendor_id",
)


def upgrade() -> None:
    """Create the actor directory and the distribution ledger tables."""
    op.create_table(
        "actors",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("role", sa.String(30), nullable=False),
        sa.Column(
            "superior_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("actors.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_actors_email", "actors", ["email"], unique=True)
    op.create_index("ix_actors_role", "actors", ["role"])
    op.create_index("ix_actors_superior_id", "actors", ["superior_id"])

    op.create_table(
        "distribution_records",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("newspaper_name", sa.String(255), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column(
            "sender_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("actors.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "receiver_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("actors.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("total_unsold", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("received_quantity", sa.Integer(), nullable=False, server_default="0"),
        *[
            sa.Column(
                name,
                sa.Uuid(as_uuid=True),
                sa.ForeignKey("actors.id", ondelete="RESTRICT"),
                nullable=True,
            )
            for name in HIERARCHY_COLUMNS
        ],
        sa.Column("status_updates", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("quantity >= 1", name="ck_distribution_records_quantity"),
        sa.CheckConstraint(
            "total_unsold >= 0 AND total_unsold <= quantity",
            name="ck_distribution_records_total_unsold",
        ),
        sa.CheckConstraint(
            "received_quantity >= 0 AND received_quantity <= quantity",
            name="ck_distribution_records_received_quantity",
        ),
    )
    op.create_index(
        "ix_distribution_records_newspaper_name",
        "distribution_records",
        ["newspaper_name"],
    )
    op.create_index(
        "ix_distribution_records_status",
        "distribution_records",
        ["status"],
    )
    op.create_index(
        "ix_distribution_records_sender_receiver",
        "distribution_records",
        ["sender_id", "receiver_id"],
    )
    op.create_index(
        "ix_distribution_records_created_at",
        "distribution_records",
        ["created_at"],
    )
    # One index per hierarchy key for subtree scans
    for name in HIERARCHY_COLUMNS:
        op.create_index(
            f"ix_distribution_records_{name}",
            "distribution_records",
            [name],
        )


def downgrade() -> None:
    """Drop the ledger tables."""
    for name in HIERARCHY_COLUMNS:
        op.drop_index(f"ix_distribution_records_{name}", table_name="distribution_records")
    op.drop_index("ix_distribution_records_created_at", table_name="distribution_records")
    op.drop_index("ix_distribution_records_sender_receiver", table_name="distribution_records")
    op.drop_index("ix_distribution_records_status", table_name="distribution_records")
    op.drop_index("ix_distribution_records_newspaper_name", table_name="distribution_records")
    op.drop_table("distribution_records")

    op.drop_index("ix_actors_superior_id", table_name="actors")
    op.drop_index("ix_actors_role", table_name="actors")
    op.drop_index("ix_actors_email", table_name="actors")
    op.drop_table("actors")

"""Shared fixtures: an in-memory SQLite ledger and a seeded supply chain."""

import uuid
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from datetime import UTC, datetime

import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from pressledger.database import Base
from pressledger.models import Actor
from pressledger.services.actor_directory import register_actor


@dataclass(frozen=True)
class Chain:
    """One branch of the supply hierarchy."""

    manufacturer: Actor
    district: Actor
    area: Actor
    vendor: Actor


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create an in-memory SQLite engine with the ledger schema."""
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)

    # Let SQLAlchemy, not the driver, manage BEGIN so SAVEPOINTs work
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):  # type: ignore[no-untyped-def]
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):  # type: ignore[no-untyped-def]
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Provide a session bound to the in-memory database."""
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest_asyncio.fixture
async def chain(session: AsyncSession) -> Chain:
    """Register manufacturer -> district -> area -> vendor."""
    return await make_chain(session, "north")


async def make_chain(
    session: AsyncSession,
    label: str,
    manufacturer: Actor | None = None,
) -> Chain:
    """Register a full branch, optionally under an existing manufacturer."""
    if manufacturer is None:
        manufacturer = await register_actor(
            session, f"{label} press", f"press@{label}.example", "manufacturer"
        )
    district = await register_actor(
        session,
        f"{label} district",
        f"district@{label}.example",
        "district_distributor",
        manufacturer.id,
    )
    area = await register_actor(
        session,
        f"{label} area",
        f"area@{label}.example",
        "area_distributor",
        district.id,
    )
    vendor = await register_actor(
        session,
        f"{label} vendor",
        f"vendor@{label}.example",
        "vendor",
        area.id,
    )
    return Chain(manufacturer, district, area, vendor)


def make_actor(role: str, superior_id: uuid.UUID | None = None) -> Actor:
    """Build a transient actor for API tests."""
    actor_id = uuid.uuid4()
    return Actor(
        id=actor_id,
        name=f"{role} {actor_id.hex[:6]}",
        email=f"{actor_id.hex[:8]}@example.com",
        role=role,
        superior_id=superior_id,
        created_at=datetime.now(UTC),
    )

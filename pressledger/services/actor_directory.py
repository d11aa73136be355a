"""Actor directory: identity and superior lookups for the ledger.

Provides read access to actors and their superior links, plus actor
registration. Registration checks only that the superior link is present
where the role needs one and that it resolves; whether the superior sits
exactly one tier up is checked when the actor first ships newspapers.
"""

import logging
import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pressledger.hierarchy import Role, is_tier, parse_role
from pressledger.models import Actor
from pressledger.services.exceptions import InvalidInputError, NotFoundError

logger = logging.getLogger(__name__)

# Roles that sit at the top of their tree and take no superior
ROOT_ROLES: frozenset[Role] = frozenset({Role.ADMIN, Role.MANUFACTURER})


async def find_actor(session: AsyncSession, actor_id: uuid.UUID) -> Actor | None:
    """Look up an actor by id, returning None when absent."""
    result = await session.execute(select(Actor).where(Actor.id == actor_id))
    return result.scalar_one_or_none()


async def get_actor(session: AsyncSession, actor_id: uuid.UUID) -> Actor:
    """Look up an actor by id.

    Raises:
        NotFoundError: If no actor has that id
    """
    actor = await find_actor(session, actor_id)
    if actor is None:
        raise NotFoundError(f"Actor {actor_id} not found")
    return actor


async def resolve_superior(session: AsyncSession, actor_id: uuid.UUID) -> Actor:
    """Return the actor's direct superior.

    Raises:
        NotFoundError: If the actor is absent, has no superior, or its
            superior id dangles
    """
    actor = await get_actor(session, actor_id)
    if actor.superior_id is None:
        raise NotFoundError(f"Actor {actor_id} has no superior")

    superior = await find_actor(session, actor.superior_id)
    if superior is None:
        raise NotFoundError(
            f"Superior {actor.superior_id} of actor {actor_id} not found"
        )
    return superior


async def role_of(session: AsyncSession, actor_id: uuid.UUID) -> Role:
    """Return the role of an actor.

    Raises:
        NotFoundError: If no actor has that id
    """
    actor = await get_actor(session, actor_id)
    return parse_role(actor.role)


async def register_actor(
    session: AsyncSession,
    name: str,
    email: str,
    role: str | Role,
    superior_id: uuid.UUID | None = None,
) -> Actor:
    """Create a new actor.

    Args:
        session: Database session
        name: Display name
        email: Contact address, stored lower-cased and unique
        role: Actor role
        superior_id: Superior actor, required below the manufacturer tier

    Returns:
        The created Actor

    Raises:
        InvalidInputError: On blank name/email, unknown role, a missing or
            unexpected superior, a dangling superior id, or a duplicate email
    """
    name = (name or "").strip()
    email = (email or "").strip().lower()
    if not name:
        raise InvalidInputError("Name is required")
    if not email or "@" not in email:
        raise InvalidInputError("A valid email is required")

    try:
        role = parse_role(role)
    except ValueError as e:
        raise InvalidInputError(f"Unknown role: {role!r}") from e

    if not requires_superior(role):
        if superior_id is not None:
            raise InvalidInputError(f"Role {role.value!r} does not take a superior")
    else:
        if superior_id is None:
            raise InvalidInputError(f"Role {role.value!r} requires a superior")
        if await find_actor(session, superior_id) is None:
            raise InvalidInputError(f"Superior {superior_id} not found")

    existing = await session.execute(
        select(func.count()).select_from(Actor).where(Actor.email == email)
    )
    if existing.scalar():
        raise InvalidInputError(f"Email {email!r} is already registered")

    actor = Actor(
        name=name,
        email=email,
        role=role.value,
        superior_id=superior_id,
    )
    session.add(actor)
    await session.flush()

    logger.info(f"Registered {role.value} {actor.id} (superior: {superior_id})")
    return actor


async def list_subordinates(session: AsyncSession, actor_id: uuid.UUID) -> list[Actor]:
    """Return the actors whose superior is ``actor_id``, by name."""
    result = await session.execute(
        select(Actor).where(Actor.superior_id == actor_id).order_by(Actor.name)
    )
    return list(result.scalars().all())


async def list_actors_by_role(session: AsyncSession, role: str | Role) -> list[Actor]:
    """Return all actors with the given role, by name.

    Raises:
        InvalidInputError: If the role is unknown
    """
    try:
        role = parse_role(role)
    except ValueError as e:
        raise InvalidInputError(f"Unknown role: {role!r}") from e

    result = await session.execute(
        select(Actor).where(Actor.role == role.value).order_by(Actor.name)
    )
    return list(result.scalars().all())


def requires_superior(role: str | Role) -> bool:
    """Return True if actors with this role must name a superior."""
    role = parse_role(role)
    return is_tier(role) and role not in ROOT_ROLES

"""Shared FastAPI dependencies: caller resolution and error mapping."""

from collections.abc import Awaitable, Callable
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from pressledger.database import get_db
from pressledger.hierarchy import Role, is_tier
from pressledger.models import Actor
from pressledger.services.actor_directory import find_actor
from pressledger.services.exceptions import LedgerError, NotFoundError


async def get_current_actor(
    db: Annotated[AsyncSession, Depends(get_db)],
    x_actor_id: Annotated[
        UUID | None,
        Header(description="Caller id, set by the upstream authentication proxy"),
    ] = None,
) -> Actor:
    """Resolve the authenticated caller through the actor directory.

    Raises:
        HTTPException: 401 if the header is missing or names no actor.
    """
    if x_actor_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Actor-Id header",
        )
    actor = await find_actor(db, x_actor_id)
    if actor is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown actor",
        )
    return actor


CurrentActor = Annotated[Actor, Depends(get_current_actor)]


def require_roles(*roles: Role) -> Callable[[Actor], Awaitable[Actor]]:
    """Build a dependency that admits only callers with one of ``roles``."""
    allowed = {role.value for role in roles}

    async def dependency(actor: CurrentActor) -> Actor:
        if actor.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to perform this action",
            )
        return actor

    return dependency


async def require_tier_actor(actor: CurrentActor) -> Actor:
    """Admit only callers that sit in the supply hierarchy."""
    if not is_tier(actor.role):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Invalid role for analytics access: {actor.role}",
        )
    return actor


def ledger_http_error(error: LedgerError) -> HTTPException:
    """Translate a ledger error into the HTTP error returned to the caller.

    NotFoundError maps to 404; invalid input and hierarchy violations are
    client errors (400).
    """
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))

"""FastAPI routes for the actor directory."""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from pressledger.api.dependencies import CurrentActor, ledger_http_error, require_roles
from pressledger.database import get_db
from pressledger.hierarchy import Role
from pressledger.models import Actor
from pressledger.services.actor_directory import (
    list_actors_by_role,
    list_subordinates,
    register_actor,
)
from pressledger.services.exceptions import LedgerError

router = APIRouter(prefix="/actors", tags=["actors"])


# --- Pydantic Schemas ---


class ActorResponse(BaseModel):
    """Response schema for an actor."""

    id: UUID = Field(description="Actor UUID")
    name: str = Field(description="Display name")
    email: str = Field(description="Contact address")
    role: str = Field(description="Actor role")
    superior_id: UUID | None = Field(description="Superior one tier up, if any")
    created_at: datetime = Field(description="When the actor was registered")

    model_config = {"from_attributes": True}


class ActorListResponse(BaseModel):
    """Response schema for actor listings."""

    items: list[ActorResponse]
    total: int


class ActorCreateRequest(BaseModel):
    """Request schema for registering an actor."""

    name: str
    email: str
    role: str
    superior_id: UUID | None = None


# --- API Endpoints ---


@router.post("", response_model=ActorResponse, status_code=status.HTTP_201_CREATED)
async def post_actor(
    request: ActorCreateRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    _admin: Annotated[Actor, Depends(require_roles(Role.ADMIN))],
) -> ActorResponse:
    """Register a new actor (admin only).

    Raises:
        HTTPException: 400 on invalid fields, a bad superior, or a duplicate email.
    """
    try:
        actor = await register_actor(
            db, request.name, request.email, request.role, request.superior_id
        )
    except LedgerError as e:
        raise ledger_http_error(e) from e
    return ActorResponse.model_validate(actor)


@router.get("/subordinates", response_model=ActorListResponse)
async def get_subordinates(
    db: Annotated[AsyncSession, Depends(get_db)],
    actor: CurrentActor,
) -> ActorListResponse:
    """List the actors that report directly to the caller."""
    actors = await list_subordinates(db, actor.id)
    return ActorListResponse(
        items=[ActorResponse.model_validate(a) for a in actors],
        total=len(actors),
    )


@router.get("/role/{role}", response_model=ActorListResponse)
async def get_actors_by_role(
    role: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    _caller: CurrentActor,
) -> ActorListResponse:
    """List all actors with a role, e.g. to pick a receiver.

    Raises:
        HTTPException: 400 on an unknown role.
    """
    try:
        actors = await list_actors_by_role(db, role)
    except LedgerError as e:
        raise ledger_http_error(e) from e
    return ActorListResponse(
        items=[ActorResponse.model_validate(a) for a in actors],
        total=len(actors),
    )

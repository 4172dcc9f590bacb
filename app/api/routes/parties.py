"""Party-list party API routes."""

from typing import Annotated
from uuid import UUID

import asyncpg
from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from app.api.deps import require_permission
from app.core.database import get_db
from app.core.responses import success_response
from app.core.validation import HEX_COLOR_PATTERN
from app.services import elections as election_service
from app.services.scope import Actor, Permission

router = APIRouter(prefix="/parties", tags=["Parties"])


class PartyCreate(BaseModel):
    election_id: UUID
    party_number: int = Field(..., ge=1)
    name: str = Field(..., min_length=1, max_length=255)
    name_th: str = Field(..., min_length=1, max_length=255)
    abbreviation: str | None = Field(None, max_length=32)
    color: str = Field(..., pattern=HEX_COLOR_PATTERN.pattern)
    logo_url: str | None = None
    description: str | None = None


class PartyUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    name_th: str | None = Field(None, min_length=1, max_length=255)
    abbreviation: str | None = Field(None, max_length=32)
    color: str | None = Field(None, pattern=HEX_COLOR_PATTERN.pattern)
    logo_url: str | None = None
    description: str | None = None


@router.get("")
async def list_parties(
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
    election_id: UUID | None = Query(None),
):
    parties = await election_service.list_parties(conn, election_id)
    return success_response(data=parties)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_party(
    body: PartyCreate,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
    actor: Annotated[Actor, Depends(require_permission(Permission.PARTY_CREATE))],
):
    party = await election_service.create_party(conn, **body.model_dump())
    return success_response(data=party, message="Party created")


@router.get("/{party_id}")
async def get_party(party_id: UUID, conn: Annotated[asyncpg.Connection, Depends(get_db)]):
    party = await election_service.get_party(conn, party_id)
    return success_response(data=party)


@router.patch("/{party_id}")
async def update_party(
    party_id: UUID,
    body: PartyUpdate,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
    actor: Annotated[Actor, Depends(require_permission(Permission.PARTY_UPDATE))],
):
    party = await election_service.update_party(
        conn, party_id, body.model_dump(exclude_unset=True)
    )
    return success_response(data=party, message="Party updated")


@router.delete("/{party_id}")
async def delete_party(
    party_id: UUID,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
    actor: Annotated[Actor, Depends(require_permission(Permission.PARTY_DELETE))],
):
    await election_service.delete_party(conn, party_id)
    return success_response(message="Party deleted")

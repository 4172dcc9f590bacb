"""Constituency candidate API routes."""

from typing import Annotated
from uuid import UUID

import asyncpg
from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from app.api.deps import require_permission
from app.core.database import get_db
from app.core.responses import success_response
from app.services import elections as election_service
from app.services.scope import Actor, Permission

router = APIRouter(prefix="/candidates", tags=["Candidates"])


class CandidateCreate(BaseModel):
    election_id: UUID
    district_id: str = Field(..., min_length=1)
    party_id: UUID | None = None
    candidate_number: int = Field(..., ge=1)
    title_th: str = Field(..., min_length=1, max_length=64)
    first_name_th: str = Field(..., min_length=1, max_length=255)
    last_name_th: str = Field(..., min_length=1, max_length=255)
    title_en: str | None = None
    first_name_en: str | None = None
    last_name_en: str | None = None
    photo_url: str | None = None


class CandidateUpdate(BaseModel):
    party_id: UUID | None = None
    title_th: str | None = Field(None, min_length=1, max_length=64)
    first_name_th: str | None = Field(None, min_length=1, max_length=255)
    last_name_th: str | None = Field(None, min_length=1, max_length=255)
    title_en: str | None = None
    first_name_en: str | None = None
    last_name_en: str | None = None
    photo_url: str | None = None


@router.get("")
async def list_candidates(
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
    election_id: UUID | None = Query(None),
    district_id: str | None = Query(None),
    party_id: UUID | None = Query(None),
):
    candidates = await election_service.list_candidates(
        conn, election_id=election_id, district_id=district_id, party_id=party_id
    )
    return success_response(data=candidates)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_candidate(
    body: CandidateCreate,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
    actor: Annotated[Actor, Depends(require_permission(Permission.CANDIDATE_CREATE))],
):
    """Create a candidate; regional and province admins only inside their scope."""
    candidate = await election_service.create_candidate(conn, actor, **body.model_dump())
    return success_response(data=candidate, message="Candidate created")


@router.get("/{candidate_id}")
async def get_candidate(
    candidate_id: UUID, conn: Annotated[asyncpg.Connection, Depends(get_db)]
):
    candidate = await election_service.get_candidate(conn, candidate_id)
    return success_response(data=candidate)


@router.patch("/{candidate_id}")
async def update_candidate(
    candidate_id: UUID,
    body: CandidateUpdate,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
    actor: Annotated[Actor, Depends(require_permission(Permission.CANDIDATE_UPDATE))],
):
    candidate = await election_service.update_candidate(
        conn, actor, candidate_id, body.model_dump(exclude_unset=True)
    )
    return success_response(data=candidate, message="Candidate updated")


@router.delete("/{candidate_id}")
async def delete_candidate(
    candidate_id: UUID,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
    actor: Annotated[Actor, Depends(require_permission(Permission.CANDIDATE_DELETE))],
):
    await election_service.delete_candidate(conn, candidate_id)
    return success_response(message="Candidate deleted")

"""Vote batch workflow API routes."""

from typing import Annotated
from uuid import UUID

import asyncpg
from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from app.api.deps import get_current_actor
from app.core.database import get_db
from app.core.responses import success_response
from app.services import vote_batches as batch_service
from app.services.scope import Actor
from app.services.vote_batches import (
    BatchCounts,
    BatchStatus,
    CandidateCount,
    PartyCount,
    ReferendumCount,
)

router = APIRouter(prefix="/batches", tags=["Vote Batches"])


# ============================================
# PYDANTIC MODELS
# ============================================


class PartyCountIn(BaseModel):
    party_id: UUID
    vote_count: int = Field(..., ge=0)


class CandidateCountIn(BaseModel):
    candidate_id: UUID
    vote_count: int = Field(..., ge=0)


class ReferendumCountIn(BaseModel):
    question_id: UUID
    approve_count: int = Field(0, ge=0)
    disapprove_count: int = Field(0, ge=0)
    abstain_count: int = Field(0, ge=0)


class SubmitBatchRequest(BaseModel):
    election_id: UUID
    district_id: str = Field(..., min_length=1)
    party_votes: list[PartyCountIn] = Field(default_factory=list)
    constituency_votes: list[CandidateCountIn] = Field(default_factory=list)
    referendum_votes: list[ReferendumCountIn] = Field(default_factory=list)
    notes: str | None = Field(None, max_length=2000)

    def to_counts(self) -> BatchCounts:
        return BatchCounts(
            party_votes=tuple(
                PartyCount(str(item.party_id), item.vote_count) for item in self.party_votes
            ),
            constituency_votes=tuple(
                CandidateCount(str(item.candidate_id), item.vote_count)
                for item in self.constituency_votes
            ),
            referendum_votes=tuple(
                ReferendumCount(
                    str(item.question_id),
                    item.approve_count,
                    item.disapprove_count,
                    item.abstain_count,
                )
                for item in self.referendum_votes
            ),
            notes=self.notes,
        )


class RejectBatchRequest(BaseModel):
    reason: str = Field(..., max_length=2000)


# ============================================
# ENDPOINTS
# ============================================


@router.get("")
async def list_batches(
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
    actor: Annotated[Actor, Depends(get_current_actor)],
    election_id: UUID | None = Query(None),
    status_filter: BatchStatus | None = Query(None, alias="status"),
    district_id: str | None = Query(None),
):
    """List batches, automatically narrowed to the caller's scope."""
    batches = await batch_service.list_batches(
        conn,
        actor,
        election_id=election_id,
        status=status_filter.value if status_filter else None,
        district_id=district_id,
    )
    return success_response(data=batches)


@router.post("", status_code=status.HTTP_201_CREATED)
async def submit_batch(
    body: SubmitBatchRequest,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
    actor: Annotated[Actor, Depends(get_current_actor)],
):
    """Submit district counts once the election is CLOSED."""
    batch = await batch_service.submit_batch(
        conn, actor, body.election_id, body.district_id, body.to_counts()
    )
    return success_response(data=batch, message="Batch submitted and awaiting approval")


@router.get("/{batch_id}")
async def get_batch(
    batch_id: UUID,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
    actor: Annotated[Actor, Depends(get_current_actor)],
):
    batch = await batch_service.get_batch(conn, actor, batch_id)
    return success_response(data=batch)


@router.post("/{batch_id}/approve")
async def approve_batch(
    batch_id: UUID,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
    actor: Annotated[Actor, Depends(get_current_actor)],
):
    batch = await batch_service.approve_batch(conn, actor, batch_id)
    return success_response(data=batch, message="Batch approved")


@router.post("/{batch_id}/reject")
async def reject_batch(
    batch_id: UUID,
    body: RejectBatchRequest,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
    actor: Annotated[Actor, Depends(get_current_actor)],
):
    batch = await batch_service.reject_batch(conn, actor, batch_id, body.reason)
    return success_response(data=batch, message="Batch rejected")


@router.delete("/{batch_id}")
async def delete_batch(
    batch_id: UUID,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
    actor: Annotated[Actor, Depends(get_current_actor)],
):
    await batch_service.delete_batch(conn, actor, batch_id)
    return success_response(message="Batch deleted")

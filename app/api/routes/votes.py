"""Ballot casting API routes."""

from typing import Annotated
from uuid import UUID

import asyncpg
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from app.api.deps import require_permission
from app.core.database import get_db
from app.core.responses import success_response
from app.services import voting as voting_service
from app.services.scope import Actor, Permission
from app.services.voting import BallotSelections, ReferendumAnswer, ReferendumSelection

router = APIRouter(prefix="/votes", tags=["Voting"])


# ============================================
# PYDANTIC MODELS
# ============================================


class PartyVote(BaseModel):
    party_id: UUID


class ConstituencyVote(BaseModel):
    candidate_id: UUID


class ReferendumVote(BaseModel):
    question_id: UUID
    answer: ReferendumAnswer


class CastBallotRequest(BaseModel):
    """A voter's ballot. Every part is optional; at least one is required."""

    election_id: UUID
    party_vote: PartyVote | None = None
    constituency_vote: ConstituencyVote | None = None
    referendum_votes: list[ReferendumVote] = Field(default_factory=list)

    def to_selections(self) -> BallotSelections:
        return BallotSelections(
            party_id=str(self.party_vote.party_id) if self.party_vote else None,
            candidate_id=(
                str(self.constituency_vote.candidate_id) if self.constituency_vote else None
            ),
            referendum=tuple(
                ReferendumSelection(str(vote.question_id), vote.answer)
                for vote in self.referendum_votes
            ),
        )


# ============================================
# ENDPOINTS
# ============================================


@router.post("/cast", status_code=status.HTTP_201_CREATED)
async def cast_ballot(
    body: CastBallotRequest,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
    actor: Annotated[Actor, Depends(require_permission(Permission.VOTE_CAST))],
):
    """
    Cast the voter's ballots for an election in one atomic operation.

    Selections for ballot types the election does not run are ignored. A voter
    can cast only once per election.
    """
    result = await voting_service.cast_ballot(
        conn, actor.citizen_id, body.election_id, body.to_selections()
    )
    return success_response(data=result, message="Vote cast successfully")


@router.get("/status/{election_id}")
async def vote_status(
    election_id: UUID,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
    actor: Annotated[Actor, Depends(require_permission(Permission.VOTE_CAST))],
):
    vote_status = await voting_service.get_vote_status(conn, actor.citizen_id, election_id)
    return success_response(data=vote_status)

"""Election management API routes."""

from datetime import UTC, datetime
from typing import Annotated
from uuid import UUID

import asyncpg
from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field, field_validator

from app.api.deps import require_permission
from app.core.database import get_db
from app.core.responses import success_response
from app.services import elections as election_service
from app.services.elections import ElectionStatus
from app.services.scope import Actor, Permission

router = APIRouter(prefix="/elections", tags=["Elections"])


# ============================================
# PYDANTIC MODELS
# ============================================


def _aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class ElectionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    name_th: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    start_date: datetime
    end_date: datetime
    has_party_list: bool = True
    has_constituency: bool = True
    has_referendum: bool = False

    @field_validator("start_date", "end_date")
    @classmethod
    def ensure_timezone(cls, v: datetime | None) -> datetime | None:
        return _aware(v)


class ElectionUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    name_th: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    has_party_list: bool | None = None
    has_constituency: bool | None = None
    has_referendum: bool | None = None

    @field_validator("start_date", "end_date")
    @classmethod
    def ensure_timezone(cls, v: datetime | None) -> datetime | None:
        return _aware(v)


class StatusChange(BaseModel):
    status: ElectionStatus


class ReferendumQuestionCreate(BaseModel):
    question_number: int = Field(..., ge=1)
    question_th: str = Field(..., min_length=1)
    question_en: str | None = None
    description_th: str | None = None
    description_en: str | None = None


# ============================================
# ELECTIONS
# ============================================


@router.get("")
async def list_elections(
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
    status_filter: ElectionStatus | None = Query(None, alias="status"),
):
    elections = await election_service.list_elections(
        conn, status=status_filter.value if status_filter else None
    )
    return success_response(data=elections)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_election(
    body: ElectionCreate,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
    actor: Annotated[Actor, Depends(require_permission(Permission.ELECTION_CREATE))],
):
    election = await election_service.create_election(conn, **body.model_dump())
    return success_response(data=election, message="Election created")


@router.get("/{election_id}")
async def get_election(
    election_id: UUID, conn: Annotated[asyncpg.Connection, Depends(get_db)]
):
    election = await election_service.get_election(conn, election_id)
    return success_response(data=election)


@router.patch("/{election_id}")
async def update_election(
    election_id: UUID,
    body: ElectionUpdate,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
    actor: Annotated[Actor, Depends(require_permission(Permission.ELECTION_UPDATE))],
):
    election = await election_service.update_election(
        conn, election_id, body.model_dump(exclude_unset=True)
    )
    return success_response(data=election, message="Election updated")


@router.patch("/{election_id}/status")
async def change_status(
    election_id: UUID,
    body: StatusChange,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
    actor: Annotated[Actor, Depends(require_permission(Permission.ELECTION_MANAGE_STATUS))],
):
    """Advance the election to its next status (DRAFT -> OPEN -> CLOSED -> ARCHIVED)."""
    election = await election_service.change_election_status(conn, election_id, body.status.value)
    return success_response(data=election, message=f"Election is now {body.status.value}")


@router.delete("/{election_id}")
async def delete_election(
    election_id: UUID,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
    actor: Annotated[Actor, Depends(require_permission(Permission.ELECTION_DELETE))],
):
    await election_service.delete_election(conn, election_id)
    return success_response(message="Election deleted")


# ============================================
# REFERENDUM QUESTIONS
# ============================================


@router.get("/{election_id}/referendum-questions")
async def list_referendum_questions(
    election_id: UUID, conn: Annotated[asyncpg.Connection, Depends(get_db)]
):
    questions = await election_service.list_referendum_questions(conn, election_id)
    return success_response(data=questions)


@router.post("/{election_id}/referendum-questions", status_code=status.HTTP_201_CREATED)
async def create_referendum_question(
    election_id: UUID,
    body: ReferendumQuestionCreate,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
    actor: Annotated[Actor, Depends(require_permission(Permission.ELECTION_UPDATE))],
):
    question = await election_service.create_referendum_question(
        conn, election_id, **body.model_dump()
    )
    return success_response(data=question, message="Referendum question created")

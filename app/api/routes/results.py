"""Public election results API routes."""

from typing import Annotated
from uuid import UUID

import asyncpg
from fastapi import APIRouter, Depends, Query

from app.core.database import get_db
from app.core.responses import success_response
from app.services import results as results_service
from app.services import vote_batches as batch_service

router = APIRouter(prefix="/results", tags=["Results"])


@router.get("/{election_id}")
async def election_results(
    election_id: UUID, conn: Annotated[asyncpg.Connection, Depends(get_db)]
):
    """Turnout, party-list, referendum and regional results."""
    results = await results_service.compute_results(conn, election_id)
    return success_response(data=results)


@router.get("/{election_id}/by-district")
async def district_results(
    election_id: UUID,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
    province_id: str | None = Query(None),
):
    """Constituency results per district, optionally for one province."""
    results = await results_service.compute_district_results(conn, election_id, province_id)
    return success_response(data=results)


@router.get("/{election_id}/provinces/{province_id}")
async def province_results(
    election_id: UUID,
    province_id: str,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
):
    summary = await results_service.compute_province_turnout(conn, election_id, province_id)
    return success_response(data=summary)


@router.get("/{election_id}/batches")
async def batch_results(
    election_id: UUID, conn: Annotated[asyncpg.Connection, Depends(get_db)]
):
    """Totals of approved district batches, reported separately from cast votes."""
    summary = await batch_service.summarize_approved_batches(conn, election_id)
    return success_response(data=summary)

"""Geographic hierarchy API routes (regions, provinces, districts)."""

from typing import Annotated

import asyncpg
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from app.api.deps import require_super_admin
from app.core.database import get_db
from app.core.logging_config import get_logger
from app.core.responses import success_response
from app.services import geographic as geo_service
from app.services.scope import Actor

logger = get_logger(__name__)

router = APIRouter(prefix="/geo", tags=["Geographic"])


class VoterCountUpdate(BaseModel):
    voter_count: int = Field(..., ge=0)


@router.get("/regions")
async def list_regions(conn: Annotated[asyncpg.Connection, Depends(get_db)]):
    regions = await geo_service.list_regions(conn)
    return success_response(data=regions)


@router.get("/provinces")
async def list_provinces(
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
    region_id: str | None = Query(None),
):
    provinces = await geo_service.list_provinces(conn, region_id=region_id)
    return success_response(data=provinces)


@router.get("/provinces/{province_id}")
async def get_province(
    province_id: str, conn: Annotated[asyncpg.Connection, Depends(get_db)]
):
    province = await geo_service.get_province(conn, province_id)
    return success_response(data=province)


@router.get("/districts")
async def list_districts(
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
    province_id: str | None = Query(None),
    region_id: str | None = Query(None),
):
    districts = await geo_service.list_districts(
        conn, province_id=province_id, region_id=region_id
    )
    return success_response(data=districts)


@router.get("/districts/{district_id}")
async def get_district(
    district_id: str, conn: Annotated[asyncpg.Connection, Depends(get_db)]
):
    district = await geo_service.get_district(conn, district_id)
    return success_response(data=district)


@router.get("/stats")
async def geo_stats(conn: Annotated[asyncpg.Connection, Depends(get_db)]):
    stats = await geo_service.get_geo_stats(conn)
    return success_response(data=stats)


@router.patch("/districts/{district_id}/voter-count")
async def update_voter_count(
    district_id: str,
    body: VoterCountUpdate,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
    actor: Annotated[Actor, Depends(require_super_admin)],
):
    """Administrative voter count correction (super admin only)."""
    district = await geo_service.update_district_voter_count(conn, district_id, body.voter_count)
    logger.info(f"Voter count of district {district_id} set to {body.voter_count} by {actor.id}")
    return success_response(data=district, message="Voter count updated")

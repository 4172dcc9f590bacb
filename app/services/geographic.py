"""Geographic hierarchy service functions.

Region -> Province -> District (constituency). Reference data is loaded once
and stays immutable for the lifetime of an election, apart from administrative
corrections of a district's voter count.
"""

from typing import Any

import asyncpg

from app.core.database import record_to_dict, records_to_list
from app.core.errors import NotFoundError, ValidationError


def district_id_for(province_id: str, zone_number: int) -> str:
    """Canonical district id, ``<province>-zone-<n>``."""
    return f"{province_id.lower().replace(' ', '-')}-zone-{zone_number}"


# ============================================
# REGIONS
# ============================================


async def list_regions(conn: asyncpg.Connection) -> list[dict[str, Any]]:
    """List all regions with their province counts."""
    rows = await conn.fetch(
        """
        SELECT r.*, COUNT(p.id)::int AS province_count
        FROM regions r
        LEFT JOIN provinces p ON p.region_id = r.id
        GROUP BY r.id
        ORDER BY r.id
        """
    )
    return records_to_list(rows)


# ============================================
# PROVINCES
# ============================================


async def list_provinces(
    conn: asyncpg.Connection, region_id: str | None = None
) -> list[dict[str, Any]]:
    """List provinces, optionally within one region, with district counts."""
    query = """
        SELECT p.*, r.name AS region_name, r.name_th AS region_name_th,
               COUNT(d.id)::int AS district_count
        FROM provinces p
        JOIN regions r ON r.id = p.region_id
        LEFT JOIN districts d ON d.province_id = p.id
    """
    params: list[Any] = []
    if region_id:
        query += " WHERE p.region_id = $1"
        params.append(region_id)
    query += " GROUP BY p.id, r.name, r.name_th ORDER BY p.name_th"

    rows = await conn.fetch(query, *params)
    return records_to_list(rows)


async def get_province(conn: asyncpg.Connection, province_id: str) -> dict[str, Any]:
    """Get a province with its region and its districts ordered by zone number."""
    row = await conn.fetchrow(
        """
        SELECT p.*, r.name AS region_name, r.name_th AS region_name_th
        FROM provinces p
        JOIN regions r ON r.id = p.region_id
        WHERE p.id = $1
        """,
        province_id,
    )
    if not row:
        raise NotFoundError.for_resource("Province")

    province = record_to_dict(row)
    districts = await conn.fetch(
        "SELECT * FROM districts WHERE province_id = $1 ORDER BY zone_number",
        province_id,
    )
    province["districts"] = records_to_list(districts)
    return province


# ============================================
# DISTRICTS
# ============================================


_DISTRICT_SELECT = """
    SELECT d.*, p.name AS province_name, p.name_th AS province_name_th,
           p.region_id, r.name AS region_name
    FROM districts d
    JOIN provinces p ON p.id = d.province_id
    JOIN regions r ON r.id = p.region_id
"""


async def list_districts(
    conn: asyncpg.Connection,
    province_id: str | None = None,
    region_id: str | None = None,
) -> list[dict[str, Any]]:
    """List districts filtered by province and/or region."""
    conditions = []
    params: list[Any] = []

    if province_id:
        params.append(province_id)
        conditions.append(f"d.province_id = ${len(params)}")
    if region_id:
        params.append(region_id)
        conditions.append(f"p.region_id = ${len(params)}")

    query = _DISTRICT_SELECT
    if conditions:
        query += " WHERE " + " AND ".join(conditions)
    query += " ORDER BY p.name_th, d.zone_number"

    rows = await conn.fetch(query, *params)
    return records_to_list(rows)


async def get_district(conn: asyncpg.Connection, district_id: str) -> dict[str, Any]:
    """Get a district with its province and region."""
    row = await conn.fetchrow(_DISTRICT_SELECT + " WHERE d.id = $1", district_id)
    if not row:
        raise NotFoundError.for_resource("District")
    return record_to_dict(row)


async def get_district_location(
    conn: asyncpg.Connection, district_id: str
) -> dict[str, str] | None:
    """
    Resolve the district -> province -> region chain used by scope checks.

    Returns:
        ``{"district_id", "province_id", "region_id"}`` or None if the district
        does not exist.
    """
    row = await conn.fetchrow(
        """
        SELECT d.id AS district_id, d.province_id, p.region_id
        FROM districts d
        JOIN provinces p ON p.id = d.province_id
        WHERE d.id = $1
        """,
        district_id,
    )
    return record_to_dict(row)


async def get_geo_stats(conn: asyncpg.Connection) -> dict[str, int]:
    row = await conn.fetchrow(
        """
        SELECT
            (SELECT COUNT(*) FROM regions)::int AS total_regions,
            (SELECT COUNT(*) FROM provinces)::int AS total_provinces,
            (SELECT COUNT(*) FROM districts)::int AS total_districts,
            (SELECT COALESCE(SUM(voter_count), 0) FROM districts)::bigint AS total_voters
        """
    )
    return dict(row)


async def update_district_voter_count(
    conn: asyncpg.Connection, district_id: str, voter_count: int
) -> dict[str, Any]:
    """Administrative correction of a district's eligible voter count."""
    if voter_count < 0:
        raise ValidationError("voter_count must not be negative")

    row = await conn.fetchrow(
        """
        UPDATE districts SET voter_count = $2, updated_at = NOW()
        WHERE id = $1
        RETURNING *
        """,
        district_id,
        voter_count,
    )
    if not row:
        raise NotFoundError.for_resource("District")
    return record_to_dict(row)


# ============================================
# REFERENCE DATA LOAD
# ============================================


async def load_reference_data(
    conn: asyncpg.Connection,
    regions: list[dict[str, Any]],
    provinces: list[dict[str, Any]],
    districts: list[dict[str, Any]],
) -> dict[str, int]:
    """
    Idempotently upsert regions, provinces and districts in one transaction.

    Districts may omit ``id``; it is then derived from the province id and the
    zone number. Zone numbers must be unique within a province.
    """
    seen_zones: set[tuple[str, int]] = set()
    for district in districts:
        key = (district["province_id"], int(district["zone_number"]))
        if key in seen_zones:
            raise ValidationError(
                f"Duplicate zone {key[1]} for province {key[0]}"
            )
        seen_zones.add(key)

    async with conn.transaction():
        await conn.executemany(
            """
            INSERT INTO regions (id, name, name_th)
            VALUES ($1, $2, $3)
            ON CONFLICT (id) DO UPDATE
            SET name = EXCLUDED.name, name_th = EXCLUDED.name_th
            """,
            [(r["id"], r["name"], r["name_th"]) for r in regions],
        )
        await conn.executemany(
            """
            INSERT INTO provinces (id, code, name, name_th, region_id)
            VALUES ($1, $2, $3, $4, $5)
            ON CONFLICT (id) DO UPDATE
            SET code = EXCLUDED.code, name = EXCLUDED.name,
                name_th = EXCLUDED.name_th, region_id = EXCLUDED.region_id
            """,
            [
                (p["id"], p["code"], p["name"], p["name_th"], p["region_id"])
                for p in provinces
            ],
        )
        await conn.executemany(
            """
            INSERT INTO districts (
                id, province_id, zone_number, name, name_th, zone_description, voter_count
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            ON CONFLICT (province_id, zone_number) DO UPDATE
            SET name = EXCLUDED.name, name_th = EXCLUDED.name_th,
                zone_description = EXCLUDED.zone_description,
                voter_count = EXCLUDED.voter_count,
                updated_at = NOW()
            """,
            [
                (
                    d.get("id") or district_id_for(d["province_id"], int(d["zone_number"])),
                    d["province_id"],
                    int(d["zone_number"]),
                    d["name"],
                    d.get("name_th") or d["name"],
                    d.get("zone_description"),
                    int(d.get("voter_count") or 0),
                )
                for d in districts
            ],
        )

    return {
        "regions": len(regions),
        "provinces": len(provinces),
        "districts": len(districts),
    }

"""Election, party, candidate and referendum question service functions."""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

import asyncpg

from app.core.database import record_to_dict, records_to_list
from app.core.errors import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from app.core.logging_config import get_logger
from app.services.geographic import get_district_location
from app.services.scope import Actor

logger = get_logger(__name__)


class ElectionStatus(str, Enum):
    DRAFT = "DRAFT"
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    ARCHIVED = "ARCHIVED"


# Linear gate: each status may only advance to the next one.
NEXT_STATUS = {
    ElectionStatus.DRAFT: ElectionStatus.OPEN,
    ElectionStatus.OPEN: ElectionStatus.CLOSED,
    ElectionStatus.CLOSED: ElectionStatus.ARCHIVED,
}

ELECTION_FIELDS = (
    "name", "name_th", "description", "start_date", "end_date",
    "has_party_list", "has_constituency", "has_referendum",
)
# Ballot configuration is frozen once the election leaves DRAFT.
DRAFT_ONLY_FIELDS = (
    "start_date", "end_date", "has_party_list", "has_constituency", "has_referendum",
)
PARTY_FIELDS = ("name", "name_th", "abbreviation", "color", "logo_url", "description")
CANDIDATE_FIELDS = (
    "party_id", "title_th", "first_name_th", "last_name_th",
    "title_en", "first_name_en", "last_name_en", "photo_url",
)


def _build_update(
    table: str, record_id: str, updates: dict[str, Any], allowed: tuple[str, ...]
) -> tuple[str, list[Any]]:
    """Build an ``UPDATE ... RETURNING *`` statement from the allowed keys of ``updates``."""
    fields = [key for key in allowed if key in updates]
    if not fields:
        raise ValidationError("No updatable fields supplied")

    set_clauses = [f"{field} = ${i}" for i, field in enumerate(fields, start=2)]
    set_clauses.append("updated_at = NOW()")
    query = f"UPDATE {table} SET {', '.join(set_clauses)} WHERE id = $1 RETURNING *"
    return query, [record_id, *(updates[field] for field in fields)]


# ============================================
# ELECTIONS
# ============================================


async def create_election(
    conn: asyncpg.Connection,
    name: str,
    name_th: str,
    start_date: datetime,
    end_date: datetime,
    description: str | None = None,
    has_party_list: bool = True,
    has_constituency: bool = True,
    has_referendum: bool = False,
) -> dict[str, Any]:
    """Create a new election in DRAFT status."""
    if end_date <= start_date:
        raise ValidationError("end_date must be after start_date")
    if not (has_party_list or has_constituency or has_referendum):
        raise ValidationError("At least one ballot type must be enabled")

    row = await conn.fetchrow(
        """
        INSERT INTO elections (
            name, name_th, description, start_date, end_date, status,
            has_party_list, has_constituency, has_referendum
        )
        VALUES ($1, $2, $3, $4, $5, 'DRAFT', $6, $7, $8)
        RETURNING *
        """,
        name,
        name_th,
        description,
        start_date,
        end_date,
        has_party_list,
        has_constituency,
        has_referendum,
    )
    election = record_to_dict(row)
    logger.info(f"Election created: {election['id']}")
    return election


async def get_election(
    conn: asyncpg.Connection, election_id: UUID | str
) -> dict[str, Any]:
    """Get an election with its parties and referendum questions."""
    row = await conn.fetchrow(
        """
        SELECT e.*,
               (SELECT COUNT(*) FROM candidates c WHERE c.election_id = e.id)::int
                   AS candidate_count,
               (SELECT COUNT(*) FROM ballot_casts b WHERE b.election_id = e.id)::int
                   AS ballots_cast
        FROM elections e
        WHERE e.id = $1
        """,
        str(election_id),
    )
    if not row:
        raise NotFoundError.for_resource("Election")

    election = record_to_dict(row)
    election["parties"] = await list_parties(conn, election_id)
    election["referendum_questions"] = await list_referendum_questions(conn, election_id)
    return election


async def list_elections(
    conn: asyncpg.Connection, status: str | None = None
) -> list[dict[str, Any]]:
    """List elections, most recent first, optionally filtered by status."""
    query = """
        SELECT e.*,
               (SELECT COUNT(*) FROM parties p WHERE p.election_id = e.id)::int AS party_count,
               (SELECT COUNT(*) FROM candidates c WHERE c.election_id = e.id)::int
                   AS candidate_count,
               (SELECT COUNT(*) FROM referendum_questions q WHERE q.election_id = e.id)::int
                   AS referendum_question_count
        FROM elections e
    """
    params: list[Any] = []
    if status:
        query += " WHERE e.status = $1"
        params.append(status)
    query += " ORDER BY e.start_date DESC"

    rows = await conn.fetch(query, *params)
    return records_to_list(rows)


async def update_election(
    conn: asyncpg.Connection, election_id: UUID | str, updates: dict[str, Any]
) -> dict[str, Any]:
    """Update election fields. Ballot configuration and dates are DRAFT-only."""
    async with conn.transaction():
        current = await conn.fetchrow(
            "SELECT * FROM elections WHERE id = $1 FOR UPDATE", str(election_id)
        )
        if not current:
            raise NotFoundError.for_resource("Election")

        if current["status"] != ElectionStatus.DRAFT.value:
            locked = [field for field in DRAFT_ONLY_FIELDS if field in updates]
            if locked:
                raise InvalidStateError(
                    f"Cannot change {', '.join(locked)} after the election left DRAFT"
                )

        start_date = updates.get("start_date", current["start_date"])
        end_date = updates.get("end_date", current["end_date"])
        if end_date <= start_date:
            raise ValidationError("end_date must be after start_date")

        query, params = _build_update("elections", str(election_id), updates, ELECTION_FIELDS)
        row = await conn.fetchrow(query, *params)

    return record_to_dict(row)


async def change_election_status(
    conn: asyncpg.Connection, election_id: UUID | str, new_status: str
) -> dict[str, Any]:
    """
    Advance an election along DRAFT -> OPEN -> CLOSED -> ARCHIVED.

    Raises:
        ValidationError: unknown status value
        NotFoundError: election does not exist
        InvalidStateError: ``new_status`` is not the next status
    """
    try:
        target = ElectionStatus(new_status)
    except ValueError:
        raise ValidationError(f"Invalid status: {new_status}") from None

    async with conn.transaction():
        current = await conn.fetchval(
            "SELECT status FROM elections WHERE id = $1 FOR UPDATE", str(election_id)
        )
        if current is None:
            raise NotFoundError.for_resource("Election")

        expected = NEXT_STATUS.get(ElectionStatus(current))
        if expected is not target:
            raise InvalidStateError(f"Cannot change election status from {current} to {target.value}")

        row = await conn.fetchrow(
            """
            UPDATE elections SET status = $2, updated_at = NOW()
            WHERE id = $1
            RETURNING *
            """,
            str(election_id),
            target.value,
        )

    logger.info(f"Election {election_id} status changed: {current} -> {target.value}")
    return record_to_dict(row)


async def delete_election(conn: asyncpg.Connection, election_id: UUID | str) -> None:
    """Delete an election and everything it owns. Only allowed while DRAFT."""
    async with conn.transaction():
        status = await conn.fetchval(
            "SELECT status FROM elections WHERE id = $1 FOR UPDATE", str(election_id)
        )
        if status is None:
            raise NotFoundError.for_resource("Election")
        if status != ElectionStatus.DRAFT.value:
            raise InvalidStateError("Can only delete elections in DRAFT status")

        await conn.execute("DELETE FROM elections WHERE id = $1", str(election_id))

    logger.info(f"Election deleted: {election_id}")


# ============================================
# PARTIES
# ============================================


async def create_party(
    conn: asyncpg.Connection,
    election_id: UUID | str,
    party_number: int,
    name: str,
    name_th: str,
    color: str,
    abbreviation: str | None = None,
    logo_url: str | None = None,
    description: str | None = None,
) -> dict[str, Any]:
    """Create a party. ``(election_id, party_number)`` is unique."""
    try:
        row = await conn.fetchrow(
            """
            INSERT INTO parties (
                election_id, party_number, name, name_th, abbreviation,
                color, logo_url, description
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            RETURNING *
            """,
            str(election_id),
            party_number,
            name,
            name_th,
            abbreviation,
            color,
            logo_url,
            description,
        )
    except asyncpg.UniqueViolationError:
        raise ConflictError(f"Party number {party_number} already exists in this election") from None
    except asyncpg.ForeignKeyViolationError:
        raise NotFoundError.for_resource("Election") from None
    return record_to_dict(row)


async def list_parties(
    conn: asyncpg.Connection, election_id: UUID | str | None = None
) -> list[dict[str, Any]]:
    """List parties in listing order (party number)."""
    if election_id:
        rows = await conn.fetch(
            "SELECT * FROM parties WHERE election_id = $1 ORDER BY party_number",
            str(election_id),
        )
    else:
        rows = await conn.fetch("SELECT * FROM parties ORDER BY election_id, party_number")
    return records_to_list(rows)


async def get_party(conn: asyncpg.Connection, party_id: UUID | str) -> dict[str, Any]:
    row = await conn.fetchrow("SELECT * FROM parties WHERE id = $1", str(party_id))
    if not row:
        raise NotFoundError.for_resource("Party")
    return record_to_dict(row)


async def update_party(
    conn: asyncpg.Connection, party_id: UUID | str, updates: dict[str, Any]
) -> dict[str, Any]:
    query, params = _build_update("parties", str(party_id), updates, PARTY_FIELDS)
    row = await conn.fetchrow(query, *params)
    if not row:
        raise NotFoundError.for_resource("Party")
    return record_to_dict(row)


async def delete_party(conn: asyncpg.Connection, party_id: UUID | str) -> None:
    """Delete a party that has no recorded votes."""
    try:
        result = await conn.execute("DELETE FROM parties WHERE id = $1", str(party_id))
    except asyncpg.ForeignKeyViolationError:
        raise ConflictError("Party has recorded votes and cannot be deleted") from None
    if result == "DELETE 0":
        raise NotFoundError.for_resource("Party")


# ============================================
# CANDIDATES
# ============================================


async def _check_candidate_scope(
    conn: asyncpg.Connection, actor: Actor, district_id: str
) -> None:
    location = await get_district_location(conn, district_id)
    if location is None:
        raise ValidationError(f"Unknown district: {district_id}")
    if not actor.can_access(location):
        raise ForbiddenError("District is outside your scope")


async def create_candidate(
    conn: asyncpg.Connection,
    actor: Actor,
    election_id: UUID | str,
    district_id: str,
    candidate_number: int,
    title_th: str,
    first_name_th: str,
    last_name_th: str,
    party_id: UUID | str | None = None,
    title_en: str | None = None,
    first_name_en: str | None = None,
    last_name_en: str | None = None,
    photo_url: str | None = None,
) -> dict[str, Any]:
    """
    Create a constituency candidate.

    Regional and province admins may only create candidates in districts
    inside their scope. ``(election_id, district_id, candidate_number)`` is
    unique.
    """
    await _check_candidate_scope(conn, actor, district_id)

    if party_id is not None:
        party_election = await conn.fetchval(
            "SELECT election_id FROM parties WHERE id = $1", str(party_id)
        )
        if party_election is None or str(party_election) != str(election_id):
            raise ValidationError("Party does not belong to this election")

    try:
        row = await conn.fetchrow(
            """
            INSERT INTO candidates (
                election_id, district_id, party_id, candidate_number,
                title_th, first_name_th, last_name_th,
                title_en, first_name_en, last_name_en, photo_url
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
            RETURNING *
            """,
            str(election_id),
            district_id,
            str(party_id) if party_id else None,
            candidate_number,
            title_th,
            first_name_th,
            last_name_th,
            title_en,
            first_name_en,
            last_name_en,
            photo_url,
        )
    except asyncpg.UniqueViolationError:
        raise ConflictError(
            f"Candidate number {candidate_number} already exists in this district"
        ) from None
    except asyncpg.ForeignKeyViolationError:
        raise NotFoundError.for_resource("Election") from None
    return record_to_dict(row)


async def list_candidates(
    conn: asyncpg.Connection,
    election_id: UUID | str | None = None,
    district_id: str | None = None,
    party_id: UUID | str | None = None,
) -> list[dict[str, Any]]:
    """List candidates with party and district names, ordered by candidate number."""
    conditions = []
    params: list[Any] = []
    for column, value in (
        ("c.election_id", election_id),
        ("c.district_id", district_id),
        ("c.party_id", party_id),
    ):
        if value:
            params.append(str(value))
            conditions.append(f"{column} = ${len(params)}")

    query = """
        SELECT c.*, p.name AS party_name, p.color AS party_color,
               d.name AS district_name, d.province_id
        FROM candidates c
        LEFT JOIN parties p ON p.id = c.party_id
        JOIN districts d ON d.id = c.district_id
    """
    if conditions:
        query += " WHERE " + " AND ".join(conditions)
    query += " ORDER BY c.district_id, c.candidate_number"

    rows = await conn.fetch(query, *params)
    return records_to_list(rows)


async def get_candidate(
    conn: asyncpg.Connection, candidate_id: UUID | str
) -> dict[str, Any]:
    row = await conn.fetchrow(
        """
        SELECT c.*, p.name AS party_name, p.color AS party_color,
               d.name AS district_name, d.province_id
        FROM candidates c
        LEFT JOIN parties p ON p.id = c.party_id
        JOIN districts d ON d.id = c.district_id
        WHERE c.id = $1
        """,
        str(candidate_id),
    )
    if not row:
        raise NotFoundError.for_resource("Candidate")
    return record_to_dict(row)


async def update_candidate(
    conn: asyncpg.Connection,
    actor: Actor,
    candidate_id: UUID | str,
    updates: dict[str, Any],
) -> dict[str, Any]:
    """Update a candidate inside the actor's scope."""
    candidate = await get_candidate(conn, candidate_id)
    await _check_candidate_scope(conn, actor, candidate["district_id"])

    if updates.get("party_id") is not None:
        party_election = await conn.fetchval(
            "SELECT election_id FROM parties WHERE id = $1", str(updates["party_id"])
        )
        if party_election is None or str(party_election) != candidate["election_id"]:
            raise ValidationError("Party does not belong to this election")
        updates = {**updates, "party_id": str(updates["party_id"])}

    query, params = _build_update("candidates", str(candidate_id), updates, CANDIDATE_FIELDS)
    row = await conn.fetchrow(query, *params)
    return record_to_dict(row)


async def delete_candidate(conn: asyncpg.Connection, candidate_id: UUID | str) -> None:
    try:
        result = await conn.execute("DELETE FROM candidates WHERE id = $1", str(candidate_id))
    except asyncpg.ForeignKeyViolationError:
        raise ConflictError("Candidate has recorded votes and cannot be deleted") from None
    if result == "DELETE 0":
        raise NotFoundError.for_resource("Candidate")


# ============================================
# REFERENDUM QUESTIONS
# ============================================


async def create_referendum_question(
    conn: asyncpg.Connection,
    election_id: UUID | str,
    question_number: int,
    question_th: str,
    question_en: str | None = None,
    description_th: str | None = None,
    description_en: str | None = None,
) -> dict[str, Any]:
    """Add a question to an election. ``(election_id, question_number)`` is unique."""
    try:
        row = await conn.fetchrow(
            """
            INSERT INTO referendum_questions (
                election_id, question_number, question_th, question_en,
                description_th, description_en
            )
            VALUES ($1, $2, $3, $4, $5, $6)
            RETURNING *
            """,
            str(election_id),
            question_number,
            question_th,
            question_en,
            description_th,
            description_en,
        )
    except asyncpg.UniqueViolationError:
        raise ConflictError(
            f"Question number {question_number} already exists in this election"
        ) from None
    except asyncpg.ForeignKeyViolationError:
        raise NotFoundError.for_resource("Election") from None
    return record_to_dict(row)


async def list_referendum_questions(
    conn: asyncpg.Connection, election_id: UUID | str
) -> list[dict[str, Any]]:
    rows = await conn.fetch(
        "SELECT * FROM referendum_questions WHERE election_id = $1 ORDER BY question_number",
        str(election_id),
    )
    return records_to_list(rows)

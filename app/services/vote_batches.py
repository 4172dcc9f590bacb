"""
Vote batch workflow.

District officials upload aggregate counts for their district once an
election is CLOSED. Each batch moves through a small state machine:

    PENDING --approve--> APPROVED
    PENDING --reject---> REJECTED
    PENDING --delete---> (removed)

APPROVED and REJECTED are terminal. At most one PENDING batch may exist per
(election, district); the partial unique index on ``vote_batches`` enforces
it even when two submissions race.

Batch counts are a reporting channel of their own and never feed the
individual vote tallies.
"""

from dataclasses import dataclass, field
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
    StorageError,
    ValidationError,
)
from app.core.logging_config import get_logger, security_logger
from app.services.scope import (
    Actor,
    DistrictScope,
    NoScope,
    Permission,
    ProvinceScope,
    RegionScope,
    Role,
    Unconstrained,
)

logger = get_logger(__name__)


class BatchStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


@dataclass(frozen=True)
class PartyCount:
    party_id: str
    vote_count: int


@dataclass(frozen=True)
class CandidateCount:
    candidate_id: str
    vote_count: int


@dataclass(frozen=True)
class ReferendumCount:
    question_id: str
    approve_count: int = 0
    disapprove_count: int = 0
    abstain_count: int = 0


@dataclass(frozen=True)
class BatchCounts:
    party_votes: tuple[PartyCount, ...] = field(default_factory=tuple)
    constituency_votes: tuple[CandidateCount, ...] = field(default_factory=tuple)
    referendum_votes: tuple[ReferendumCount, ...] = field(default_factory=tuple)
    notes: str | None = None


def compute_total_votes(counts: BatchCounts) -> int:
    """
    Representative total of a batch.

    Party-list and constituency turnout can legitimately differ, so the batch
    records the larger of the two sums.
    """
    party_total = sum(item.vote_count for item in counts.party_votes)
    candidate_total = sum(item.vote_count for item in counts.constituency_votes)
    return max(party_total, candidate_total)


def validate_counts(counts: BatchCounts) -> None:
    """Counts must be non-negative and each id may appear only once per list."""
    for label, items, key in (
        ("party", counts.party_votes, "party_id"),
        ("candidate", counts.constituency_votes, "candidate_id"),
        ("referendum question", counts.referendum_votes, "question_id"),
    ):
        ids = [getattr(item, key) for item in items]
        if len(ids) != len(set(ids)):
            raise ValidationError(f"Duplicate {label} in batch counts")

    for item in counts.party_votes + counts.constituency_votes:
        if item.vote_count < 0:
            raise ValidationError("Vote counts must not be negative")
    for item in counts.referendum_votes:
        if min(item.approve_count, item.disapprove_count, item.abstain_count) < 0:
            raise ValidationError("Referendum counts must not be negative")

    if not (counts.party_votes or counts.constituency_votes or counts.referendum_votes):
        raise ValidationError("A batch must contain at least one count")


# ============================================
# QUERIES
# ============================================


_BATCH_SELECT = """
    SELECT b.*,
           e.name_th AS election_name_th,
           d.name_th AS district_name_th, d.province_id,
           p.name_th AS province_name_th, p.region_id,
           s.name AS submitted_by_name,
           a.name AS approved_by_name
    FROM vote_batches b
    JOIN elections e ON e.id = b.election_id
    JOIN districts d ON d.id = b.district_id
    JOIN provinces p ON p.id = d.province_id
    JOIN users s ON s.id = b.submitted_by_id
    LEFT JOIN users a ON a.id = b.approved_by_id
"""


async def _fetch_batch(conn: asyncpg.Connection, batch_id: str) -> dict[str, Any]:
    row = await conn.fetchrow(_BATCH_SELECT + " WHERE b.id = $1", batch_id)
    if not row:
        raise NotFoundError.for_resource("Vote batch")
    return record_to_dict(row)


async def _load_counts(conn: asyncpg.Connection, batch: dict[str, Any]) -> dict[str, Any]:
    batch_id = batch["id"]
    batch["party_votes"] = records_to_list(
        await conn.fetch(
            """
            SELECT bp.party_id, bp.vote_count, pt.party_number, pt.name AS party_name
            FROM batch_party_votes bp
            JOIN parties pt ON pt.id = bp.party_id
            WHERE bp.batch_id = $1
            ORDER BY pt.party_number
            """,
            batch_id,
        )
    )
    batch["constituency_votes"] = records_to_list(
        await conn.fetch(
            """
            SELECT bc.candidate_id, bc.vote_count, c.candidate_number
            FROM batch_constituency_votes bc
            JOIN candidates c ON c.id = bc.candidate_id
            WHERE bc.batch_id = $1
            ORDER BY c.candidate_number
            """,
            batch_id,
        )
    )
    batch["referendum_votes"] = records_to_list(
        await conn.fetch(
            """
            SELECT br.question_id, br.approve_count, br.disapprove_count, br.abstain_count,
                   q.question_number
            FROM batch_referendum_votes br
            JOIN referendum_questions q ON q.id = br.question_id
            WHERE br.batch_id = $1
            ORDER BY q.question_number
            """,
            batch_id,
        )
    )
    return batch


async def _log_workflow_action(
    conn: asyncpg.Connection,
    batch_id: str,
    action: str,
    performed_by: str,
    from_status: str | None,
    to_status: str | None,
    notes: str | None = None,
) -> None:
    """Append a workflow action to the batch history."""
    await conn.execute(
        """
        INSERT INTO vote_batch_events (
            batch_id, action, performed_by_id, from_status, to_status, notes
        )
        VALUES ($1, $2, $3, $4, $5, $6)
        """,
        batch_id,
        action,
        performed_by,
        from_status,
        to_status,
        notes,
    )


async def get_batch_history(
    conn: asyncpg.Connection, batch_id: UUID | str
) -> list[dict[str, Any]]:
    rows = await conn.fetch(
        """
        SELECT ev.*, u.name AS performed_by_name
        FROM vote_batch_events ev
        LEFT JOIN users u ON u.id = ev.performed_by_id
        WHERE ev.batch_id = $1
        ORDER BY ev.created_at
        """,
        str(batch_id),
    )
    return records_to_list(rows)


async def _check_counts_belong(
    conn: asyncpg.Connection, election_id: str, district_id: str, counts: BatchCounts
) -> None:
    """Parties and questions must belong to the election, candidates also to the district."""
    checks = (
        (
            [item.party_id for item in counts.party_votes],
            "SELECT COUNT(*) FROM parties WHERE election_id = $1 AND id = ANY($2::uuid[])",
            (),
            "Party",
        ),
        (
            [item.candidate_id for item in counts.constituency_votes],
            """
            SELECT COUNT(*) FROM candidates
            WHERE election_id = $1 AND id = ANY($2::uuid[]) AND district_id = $3
            """,
            (district_id,),
            "Candidate",
        ),
        (
            [item.question_id for item in counts.referendum_votes],
            """
            SELECT COUNT(*) FROM referendum_questions
            WHERE election_id = $1 AND id = ANY($2::uuid[])
            """,
            (),
            "Referendum question",
        ),
    )
    for ids, query, extra, label in checks:
        if not ids:
            continue
        matched = await conn.fetchval(query, election_id, ids, *extra)
        if matched != len(ids):
            raise ValidationError(f"{label} does not belong to this election or district")


# ============================================
# WORKFLOW
# ============================================


async def submit_batch(
    conn: asyncpg.Connection,
    actor: Actor,
    election_id: UUID | str,
    district_id: str,
    counts: BatchCounts,
) -> dict[str, Any]:
    """
    Submit aggregate counts for a district.

    Raises:
        ForbiddenError: caller is not a district official with upload rights, or
            the district is not theirs
        ValidationError: malformed counts or ids outside the election/district
        NotFoundError: election or district does not exist
        InvalidStateError: election is not CLOSED
        ConflictError: a PENDING batch already exists for this district
    """
    if not actor.can(Permission.VOTE_BATCH_UPLOAD):
        security_logger.log_unauthorized_access(
            "vote_batch:submit", actor.id, actor.role.value, "missing vote:batch_upload"
        )
        raise ForbiddenError("You are not allowed to submit vote batches")

    if actor.role is not Role.DISTRICT_OFFICIAL:
        security_logger.log_unauthorized_access(
            "vote_batch:submit", actor.id, actor.role.value, "not a district official"
        )
        raise ForbiddenError("Only district officials submit vote batches")

    if isinstance(actor.scope, DistrictScope) and actor.scope.district_id != district_id:
        security_logger.log_unauthorized_access(
            "vote_batch:submit", actor.id, actor.role.value, "district outside scope"
        )
        raise ForbiddenError("District is outside your scope")

    validate_counts(counts)
    election_id = str(election_id)

    try:
        async with conn.transaction():
            status = await conn.fetchval(
                "SELECT status FROM elections WHERE id = $1 FOR SHARE", election_id
            )
            if status is None:
                raise NotFoundError.for_resource("Election")
            if status != "CLOSED":
                raise InvalidStateError("Batches can only be submitted after the election is CLOSED")

            district_exists = await conn.fetchval(
                "SELECT EXISTS(SELECT 1 FROM districts WHERE id = $1)", district_id
            )
            if not district_exists:
                raise NotFoundError.for_resource("District")

            await _check_counts_belong(conn, election_id, district_id, counts)

            pending = await conn.fetchval(
                """
                SELECT id FROM vote_batches
                WHERE election_id = $1 AND district_id = $2 AND status = 'PENDING'
                """,
                election_id,
                district_id,
            )
            if pending:
                raise ConflictError(
                    "A pending batch already exists for this district; "
                    "wait for review or delete it first"
                )

            batch_id = await conn.fetchval(
                """
                INSERT INTO vote_batches (
                    election_id, district_id, submitted_by_id, status, total_votes, notes
                )
                VALUES ($1, $2, $3, 'PENDING', $4, $5)
                RETURNING id
                """,
                election_id,
                district_id,
                actor.id,
                compute_total_votes(counts),
                counts.notes,
            )
            batch_id = str(batch_id)

            if counts.party_votes:
                await conn.executemany(
                    "INSERT INTO batch_party_votes (batch_id, party_id, vote_count) VALUES ($1, $2, $3)",
                    [(batch_id, item.party_id, item.vote_count) for item in counts.party_votes],
                )
            if counts.constituency_votes:
                await conn.executemany(
                    """
                    INSERT INTO batch_constituency_votes (batch_id, candidate_id, vote_count)
                    VALUES ($1, $2, $3)
                    """,
                    [
                        (batch_id, item.candidate_id, item.vote_count)
                        for item in counts.constituency_votes
                    ],
                )
            if counts.referendum_votes:
                await conn.executemany(
                    """
                    INSERT INTO batch_referendum_votes (
                        batch_id, question_id, approve_count, disapprove_count, abstain_count
                    )
                    VALUES ($1, $2, $3, $4, $5)
                    """,
                    [
                        (
                            batch_id,
                            item.question_id,
                            item.approve_count,
                            item.disapprove_count,
                            item.abstain_count,
                        )
                        for item in counts.referendum_votes
                    ],
                )

            await _log_workflow_action(
                conn, batch_id, "submitted", actor.id, None, BatchStatus.PENDING.value,
                counts.notes,
            )
            batch = await _load_counts(conn, await _fetch_batch(conn, batch_id))
    except asyncpg.UniqueViolationError:
        raise ConflictError("A pending batch already exists for this district") from None
    except (asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
        logger.error(f"Batch submission failed for district {district_id}: {exc}")
        raise StorageError() from exc

    security_logger.log_batch_transition(
        batch_id, "submitted", actor.id, None, BatchStatus.PENDING.value
    )
    return batch


async def _review_batch(
    conn: asyncpg.Connection,
    actor: Actor,
    batch_id: UUID | str,
    to_status: BatchStatus,
    reason: str | None = None,
) -> dict[str, Any]:
    """Shared approve/reject transition: lock, authorize, move out of PENDING."""
    action = "approved" if to_status is BatchStatus.APPROVED else "rejected"
    if not actor.can(Permission.VOTE_BATCH_APPROVE):
        security_logger.log_unauthorized_access(
            f"vote_batch:{action}", actor.id, actor.role.value, "missing vote:batch_approve"
        )
        raise ForbiddenError("You are not allowed to review vote batches")

    batch_id = str(batch_id)
    try:
        async with conn.transaction():
            row = await conn.fetchrow(
                """
                SELECT b.id, b.status, b.district_id, d.province_id, p.region_id
                FROM vote_batches b
                JOIN districts d ON d.id = b.district_id
                JOIN provinces p ON p.id = d.province_id
                WHERE b.id = $1
                FOR UPDATE OF b
                """,
                batch_id,
            )
            if not row:
                raise NotFoundError.for_resource("Vote batch")

            if not actor.can_access(dict(row)):
                security_logger.log_unauthorized_access(
                    f"vote_batch:{action}", actor.id, actor.role.value, "district outside scope"
                )
                raise ForbiddenError("Batch district is outside your scope")

            updated = await conn.fetchval(
                """
                UPDATE vote_batches
                SET status = $2, approved_by_id = $3, rejection_reason = $4,
                    reviewed_at = NOW(), updated_at = NOW()
                WHERE id = $1 AND status = 'PENDING'
                RETURNING id
                """,
                batch_id,
                to_status.value,
                actor.id,
                reason,
            )
            if updated is None:
                raise InvalidStateError(
                    f"Batch has already been processed (status {row['status']})"
                )

            await _log_workflow_action(
                conn, batch_id, action, actor.id,
                BatchStatus.PENDING.value, to_status.value, reason,
            )
            batch = await _load_counts(conn, await _fetch_batch(conn, batch_id))
    except (asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
        logger.error(f"Batch review failed for {batch_id}: {exc}")
        raise StorageError() from exc

    security_logger.log_batch_transition(
        batch_id, action, actor.id, BatchStatus.PENDING.value, to_status.value
    )
    return batch


async def approve_batch(
    conn: asyncpg.Connection, actor: Actor, batch_id: UUID | str
) -> dict[str, Any]:
    """Approve a PENDING batch inside the actor's scope."""
    return await _review_batch(conn, actor, batch_id, BatchStatus.APPROVED)


async def reject_batch(
    conn: asyncpg.Connection, actor: Actor, batch_id: UUID | str, reason: str | None
) -> dict[str, Any]:
    """Reject a PENDING batch inside the actor's scope. A reason is mandatory."""
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A rejection reason is required")
    return await _review_batch(conn, actor, batch_id, BatchStatus.REJECTED, reason)


async def delete_batch(conn: asyncpg.Connection, actor: Actor, batch_id: UUID | str) -> None:
    """Hard-delete a PENDING batch. Only its submitter or a super_admin may do so."""
    batch_id = str(batch_id)
    try:
        async with conn.transaction():
            row = await conn.fetchrow(
                "SELECT submitted_by_id, status FROM vote_batches WHERE id = $1 FOR UPDATE",
                batch_id,
            )
            if not row:
                raise NotFoundError.for_resource("Vote batch")

            if str(row["submitted_by_id"]) != actor.id and actor.role is not Role.SUPER_ADMIN:
                security_logger.log_unauthorized_access(
                    "vote_batch:delete", actor.id, actor.role.value, "not the submitter"
                )
                raise ForbiddenError("Only the submitter or a super admin may delete this batch")

            if row["status"] != BatchStatus.PENDING.value:
                raise InvalidStateError("Only PENDING batches can be deleted")

            await conn.execute("DELETE FROM vote_batches WHERE id = $1", batch_id)
    except (asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
        logger.error(f"Batch deletion failed for {batch_id}: {exc}")
        raise StorageError() from exc

    security_logger.log_batch_transition(
        batch_id, "deleted", actor.id, BatchStatus.PENDING.value, None
    )


# ============================================
# READS
# ============================================


def scope_filter(actor: Actor, first_param: int = 1) -> tuple[str | None, list[Any]]:
    """
    SQL condition narrowing batches to the actor's scope.

    Returns ``(None, [])`` for unconstrained callers and ``("FALSE", [])`` for
    callers whose scope covers nothing.
    """
    scope = actor.scope
    if isinstance(scope, Unconstrained):
        return None, []
    if isinstance(scope, DistrictScope):
        return f"b.district_id = ${first_param}", [scope.district_id]
    if isinstance(scope, ProvinceScope):
        return f"d.province_id = ${first_param}", [scope.province_id]
    if isinstance(scope, RegionScope):
        return f"p.region_id = ${first_param}", [scope.region_id]
    return "FALSE", []


async def list_batches(
    conn: asyncpg.Connection,
    actor: Actor,
    election_id: UUID | str | None = None,
    status: str | None = None,
    district_id: str | None = None,
) -> list[dict[str, Any]]:
    """List batches visible to the actor, newest first."""
    if actor.role is Role.VOTER:
        raise ForbiddenError("Voters cannot list vote batches")
    if isinstance(actor.scope, NoScope):
        return []

    conditions: list[str] = []
    params: list[Any] = []

    scope_condition, scope_params = scope_filter(actor)
    if scope_condition:
        conditions.append(scope_condition)
        params.extend(scope_params)

    for column, value in (
        ("b.election_id", str(election_id) if election_id else None),
        ("b.status", status),
        ("b.district_id", district_id),
    ):
        if value:
            params.append(value)
            conditions.append(f"{column} = ${len(params)}")

    query = _BATCH_SELECT
    if conditions:
        query += " WHERE " + " AND ".join(conditions)
    query += " ORDER BY b.created_at DESC"

    rows = await conn.fetch(query, *params)
    return records_to_list(rows)


async def get_batch(
    conn: asyncpg.Connection, actor: Actor, batch_id: UUID | str
) -> dict[str, Any]:
    """Get a batch with its counts and workflow history."""
    batch = await _fetch_batch(conn, str(batch_id))

    is_submitter = batch["submitted_by_id"] == actor.id
    if not is_submitter and not actor.can_access(batch):
        raise ForbiddenError("Batch district is outside your scope")

    batch = await _load_counts(conn, batch)
    batch["history"] = await get_batch_history(conn, batch["id"])
    return batch


async def summarize_approved_batches(
    conn: asyncpg.Connection, election_id: UUID | str
) -> dict[str, Any]:
    """Sum the counts of every APPROVED batch of an election."""
    election_id = str(election_id)
    exists = await conn.fetchval("SELECT EXISTS(SELECT 1 FROM elections WHERE id = $1)", election_id)
    if not exists:
        raise NotFoundError.for_resource("Election")

    totals = await conn.fetchrow(
        """
        SELECT COUNT(*)::int AS approved_batches,
               COALESCE(SUM(total_votes), 0)::bigint AS total_votes,
               COUNT(DISTINCT district_id)::int AS districts_reported
        FROM vote_batches
        WHERE election_id = $1 AND status = 'APPROVED'
        """,
        election_id,
    )
    party_rows = await conn.fetch(
        """
        SELECT pt.id AS party_id, pt.party_number, pt.name AS party_name, pt.color,
               COALESCE(SUM(bp.vote_count), 0)::bigint AS vote_count
        FROM parties pt
        LEFT JOIN batch_party_votes bp ON bp.party_id = pt.id
            AND bp.batch_id IN (
                SELECT id FROM vote_batches WHERE election_id = $1 AND status = 'APPROVED'
            )
        WHERE pt.election_id = $1
        GROUP BY pt.id
        ORDER BY vote_count DESC, pt.party_number
        """,
        election_id,
    )
    candidate_rows = await conn.fetch(
        """
        SELECT bc.candidate_id, c.district_id, c.candidate_number,
               SUM(bc.vote_count)::bigint AS vote_count
        FROM batch_constituency_votes bc
        JOIN vote_batches b ON b.id = bc.batch_id
        JOIN candidates c ON c.id = bc.candidate_id
        WHERE b.election_id = $1 AND b.status = 'APPROVED'
        GROUP BY bc.candidate_id, c.district_id, c.candidate_number
        ORDER BY c.district_id, vote_count DESC, c.candidate_number
        """,
        election_id,
    )
    referendum_rows = await conn.fetch(
        """
        SELECT br.question_id, q.question_number,
               SUM(br.approve_count)::bigint AS approve_count,
               SUM(br.disapprove_count)::bigint AS disapprove_count,
               SUM(br.abstain_count)::bigint AS abstain_count
        FROM batch_referendum_votes br
        JOIN vote_batches b ON b.id = br.batch_id
        JOIN referendum_questions q ON q.id = br.question_id
        WHERE b.election_id = $1 AND b.status = 'APPROVED'
        GROUP BY br.question_id, q.question_number
        ORDER BY q.question_number
        """,
        election_id,
    )

    return {
        "election_id": election_id,
        **dict(totals),
        "party_votes": records_to_list(party_rows),
        "constituency_votes": records_to_list(candidate_rows),
        "referendum_votes": records_to_list(referendum_rows),
    }

"""
Vote casting engine.

A voter casts every enabled ballot type of an election in one atomic act.
Votes are stored against a one-way voter hash only; the citizen id never
reaches the votes table or the logs.

Dedup is per election: the first statement of the cast transaction inserts a
``ballot_casts(election_id, voter_hash)`` row whose primary key rejects any
second cast by the same voter, concurrent or not.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
import hashlib
import secrets
from typing import Any
from uuid import UUID

import asyncpg

from app.core.config import settings
from app.core.errors import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from app.core.logging_config import get_logger
from app.core.validation import CitizenIdValidator
from app.services import result_stream

logger = get_logger(__name__)


class BallotType(str, Enum):
    PARTY_LIST = "PARTY_LIST"
    CONSTITUENCY = "CONSTITUENCY"
    REFERENDUM = "REFERENDUM"


class ReferendumAnswer(str, Enum):
    APPROVE = "APPROVE"
    DISAPPROVE = "DISAPPROVE"
    ABSTAIN = "ABSTAIN"


@dataclass(frozen=True)
class ReferendumSelection:
    question_id: str
    answer: ReferendumAnswer


@dataclass(frozen=True)
class BallotSelections:
    """What the voter marked on each ballot. Any part may be absent."""

    party_id: str | None = None
    candidate_id: str | None = None
    referendum: tuple[ReferendumSelection, ...] = field(default_factory=tuple)

    def is_empty(self) -> bool:
        return not (self.party_id or self.candidate_id or self.referendum)


# ============================================
# HASHING & RECEIPTS
# ============================================


def create_voter_hash(citizen_id: str, election_id: UUID | str, salt: str | None = None) -> str:
    """sha256 of ``citizen_id:election_id:salt`` as hex."""
    salt = settings.ELECTION_VOTE_SALT if salt is None else salt
    payload = f"{citizen_id}:{election_id}:{salt}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def generate_confirmation_code() -> str:
    """Random 8 character code shown to the voter. Not derived from the vote."""
    return secrets.token_hex(4).upper()


def select_enabled_ballots(
    election: dict[str, Any], selections: BallotSelections
) -> list[BallotType]:
    """
    Ballot types that will actually be cast.

    A selection for a ballot type the election does not run is dropped
    silently.
    """
    enabled = []
    if selections.party_id and election["has_party_list"]:
        enabled.append(BallotType.PARTY_LIST)
    if selections.candidate_id and election["has_constituency"]:
        enabled.append(BallotType.CONSTITUENCY)
    if selections.referendum and election["has_referendum"]:
        enabled.append(BallotType.REFERENDUM)
    return enabled


def _validate_request(citizen_id: str | None, selections: BallotSelections) -> None:
    is_valid, error = CitizenIdValidator.validate(citizen_id)
    if not is_valid:
        raise ValidationError(f"Voter verification required: {error}")

    if selections.is_empty():
        raise ValidationError("At least one ballot selection is required")

    question_ids = [item.question_id for item in selections.referendum]
    if len(question_ids) != len(set(question_ids)):
        raise ValidationError("Each referendum question may be answered only once")


# ============================================
# CASTING
# ============================================


async def _check_targets(
    conn: asyncpg.Connection,
    election_id: str,
    ballot_types: list[BallotType],
    selections: BallotSelections,
) -> None:
    """Every selected party, candidate and question must belong to the election."""
    if BallotType.PARTY_LIST in ballot_types:
        found = await conn.fetchval(
            "SELECT EXISTS(SELECT 1 FROM parties WHERE id = $1 AND election_id = $2)",
            selections.party_id,
            election_id,
        )
        if not found:
            raise ValidationError("Party does not belong to this election")

    if BallotType.CONSTITUENCY in ballot_types:
        found = await conn.fetchval(
            "SELECT EXISTS(SELECT 1 FROM candidates WHERE id = $1 AND election_id = $2)",
            selections.candidate_id,
            election_id,
        )
        if not found:
            raise ValidationError("Candidate does not belong to this election")

    if BallotType.REFERENDUM in ballot_types:
        question_ids = [item.question_id for item in selections.referendum]
        matched = await conn.fetchval(
            """
            SELECT COUNT(*) FROM referendum_questions
            WHERE election_id = $1 AND id = ANY($2::uuid[])
            """,
            election_id,
            question_ids,
        )
        if matched != len(question_ids):
            raise ValidationError("Referendum question does not belong to this election")


async def _insert_votes(
    conn: asyncpg.Connection,
    election_id: str,
    voter_hash: str,
    ballot_types: list[BallotType],
    selections: BallotSelections,
) -> dict[BallotType, str]:
    """Insert the vote rows; returns the first vote id per ballot type."""
    ballot_ids: dict[BallotType, str] = {}
    insert = """
        INSERT INTO votes (
            election_id, ballot_type, voter_hash, party_id, candidate_id,
            referendum_question_id, referendum_answer
        )
        VALUES ($1, $2, $3, $4, $5, $6, $7)
        RETURNING id
    """

    if BallotType.PARTY_LIST in ballot_types:
        vote_id = await conn.fetchval(
            insert, election_id, BallotType.PARTY_LIST.value, voter_hash,
            selections.party_id, None, None, None,
        )
        ballot_ids[BallotType.PARTY_LIST] = str(vote_id)

    if BallotType.CONSTITUENCY in ballot_types:
        vote_id = await conn.fetchval(
            insert, election_id, BallotType.CONSTITUENCY.value, voter_hash,
            None, selections.candidate_id, None, None,
        )
        ballot_ids[BallotType.CONSTITUENCY] = str(vote_id)

    if BallotType.REFERENDUM in ballot_types:
        for item in selections.referendum:
            vote_id = await conn.fetchval(
                insert, election_id, BallotType.REFERENDUM.value, voter_hash,
                None, None, item.question_id, ReferendumAnswer(item.answer).value,
            )
            ballot_ids.setdefault(BallotType.REFERENDUM, str(vote_id))

    return ballot_ids


async def cast_ballot(
    conn: asyncpg.Connection,
    citizen_id: str | None,
    election_id: UUID | str,
    selections: BallotSelections,
) -> dict[str, Any]:
    """
    Cast every enabled, selected ballot of an election for one voter.

    All vote rows of the cast are written in a single transaction together
    with the dedup marker, so either the whole ballot is stored or nothing is.
    Result stream subscribers are notified after the commit without waiting
    for delivery.

    Returns:
        ``{"receipts": [...], "timestamp": ...}`` with one receipt per ballot
        type cast.

    Raises:
        ValidationError: malformed identity, empty selections, every selection
            for a disabled ballot type, a target outside the election, or a
            target deleted before the vote was stored
        NotFoundError: election does not exist
        InvalidStateError: election is not OPEN
        ConflictError: the voter already cast a ballot in this election
        StorageError: the database failed during the transaction
    """
    _validate_request(citizen_id, selections)
    election_id = str(election_id)
    voter_hash = create_voter_hash(citizen_id, election_id)

    try:
        async with conn.transaction():
            election = await conn.fetchrow(
                """
                SELECT id, status, has_party_list, has_constituency, has_referendum
                FROM elections WHERE id = $1
                FOR SHARE
                """,
                election_id,
            )
            if not election:
                raise NotFoundError.for_resource("Election")
            if election["status"] != "OPEN":
                raise InvalidStateError("Election is not open for voting")

            ballot_types = select_enabled_ballots(election, selections)
            if not ballot_types:
                raise ValidationError("None of the selected ballot types is enabled for this election")

            await _check_targets(conn, election_id, ballot_types, selections)

            await conn.execute(
                """
                INSERT INTO ballot_casts (election_id, voter_hash, ballot_types)
                VALUES ($1, $2, $3)
                """,
                election_id,
                voter_hash,
                [ballot_type.value for ballot_type in ballot_types],
            )
            ballot_ids = await _insert_votes(
                conn, election_id, voter_hash, ballot_types, selections
            )
    except asyncpg.UniqueViolationError:
        raise ConflictError("You have already voted in this election") from None
    except asyncpg.ForeignKeyViolationError:
        raise ValidationError("A selected party, candidate or question no longer exists") from None
    except (asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
        logger.error(f"Vote cast failed for election {election_id}: {exc}")
        raise StorageError() from exc

    timestamp = datetime.now(UTC)
    receipts = [
        {
            "ballot_id": ballot_ids[ballot_type],
            "election_id": election_id,
            "ballot_type": ballot_type.value,
            "confirmation_code": generate_confirmation_code(),
            "timestamp": timestamp,
        }
        for ballot_type in ballot_types
    ]

    logger.info(
        f"Ballot cast in election {election_id}: "
        f"{', '.join(ballot_type.value for ballot_type in ballot_types)}"
    )
    result_stream.schedule_vote_update(election_id)

    return {"receipts": receipts, "timestamp": timestamp}


async def get_vote_status(
    conn: asyncpg.Connection, citizen_id: str | None, election_id: UUID | str
) -> dict[str, Any]:
    """Whether the voter has cast a ballot in the election, and which types."""
    is_valid, error = CitizenIdValidator.validate(citizen_id)
    if not is_valid:
        raise ValidationError(f"Voter verification required: {error}")

    row = await conn.fetchrow(
        "SELECT ballot_types, created_at FROM ballot_casts WHERE election_id = $1 AND voter_hash = $2",
        str(election_id),
        create_voter_hash(citizen_id, election_id),
    )
    if not row:
        return {"has_voted": False, "ballot_types": [], "voted_at": None}

    return {
        "has_voted": True,
        "ballot_types": list(row["ballot_types"]),
        "voted_at": row["created_at"],
    }

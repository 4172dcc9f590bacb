"""
Result aggregation.

Every call recomputes from the vote ledger; there are no materialized
counters. The tally helpers at the top of the module are pure and take plain
dicts so they can be reused by the stream snapshot and tested without a
database. Every percentage is a float in [0, 100] and every division by zero
yields 0.0.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import asyncpg

from app.core.database import record_to_dict, records_to_list
from app.core.errors import NotFoundError

APPROVED = "APPROVED"
DISAPPROVED = "DISAPPROVED"
TIE = "TIE"


# ============================================
# PURE TALLIES
# ============================================


def percentage(part: int, whole: int) -> float:
    if not whole:
        return 0.0
    return part / whole * 100


def tally_parties(
    parties: list[dict[str, Any]], counts: dict[str, int]
) -> list[dict[str, Any]]:
    """
    Party-list tally.

    ``parties`` must be in listing order (party number); the sort is stable so
    equal counts keep that order.
    """
    total = sum(counts.get(party["id"], 0) for party in parties)
    results = [
        {
            "party_id": party["id"],
            "party_number": party["party_number"],
            "party_name": party["name"],
            "party_name_th": party["name_th"],
            "party_color": party["color"],
            "vote_count": counts.get(party["id"], 0),
            "percentage": percentage(counts.get(party["id"], 0), total),
        }
        for party in parties
    ]
    return sorted(results, key=lambda result: result["vote_count"], reverse=True)


def referendum_outcome(approve_count: int, disapprove_count: int) -> str:
    if approve_count > disapprove_count:
        return APPROVED
    if approve_count < disapprove_count:
        return DISAPPROVED
    return TIE


def tally_referendum(
    questions: list[dict[str, Any]], counts: dict[tuple[str, str], int]
) -> list[dict[str, Any]]:
    """Per-question tally; ``counts`` is keyed by ``(question_id, answer)``."""
    results = []
    for question in questions:
        approve = counts.get((question["id"], "APPROVE"), 0)
        disapprove = counts.get((question["id"], "DISAPPROVE"), 0)
        abstain = counts.get((question["id"], "ABSTAIN"), 0)
        total = approve + disapprove + abstain
        results.append(
            {
                "question_id": question["id"],
                "question_number": question["question_number"],
                "question_text": question["question_th"],
                "approve_count": approve,
                "disapprove_count": disapprove,
                "abstain_count": abstain,
                "approve_percentage": percentage(approve, total),
                "disapprove_percentage": percentage(disapprove, total),
                "abstain_percentage": percentage(abstain, total),
                "result": referendum_outcome(approve, disapprove),
            }
        )
    return results


def rank_candidates(
    candidates: list[dict[str, Any]], counts: dict[str, int]
) -> tuple[list[dict[str, Any]], dict[str, Any] | None]:
    """
    Rank a district's candidates and pick the winner.

    Order is votes descending, then lowest candidate number. The first ranked
    candidate is the winner; ``is_winner`` is only set when they have votes.
    """
    ranked = sorted(
        candidates,
        key=lambda candidate: (-counts.get(candidate["id"], 0), candidate["candidate_number"]),
    )
    total = sum(counts.get(candidate["id"], 0) for candidate in candidates)

    results = []
    for position, candidate in enumerate(ranked):
        vote_count = counts.get(candidate["id"], 0)
        results.append(
            {
                "candidate_id": candidate["id"],
                "candidate_number": candidate["candidate_number"],
                "candidate_name": (
                    f"{candidate.get('title_th') or ''}{candidate['first_name_th']} "
                    f"{candidate['last_name_th']}"
                ),
                "party_id": candidate.get("party_id"),
                "party_name": candidate.get("party_name"),
                "party_color": candidate.get("party_color"),
                "vote_count": vote_count,
                "percentage": percentage(vote_count, total),
                "is_winner": position == 0 and vote_count > 0,
            }
        )
    return results, (results[0] if results else None)


def summarize_turnout(
    areas: list[dict[str, Any]], key: str, name_key: str
) -> list[dict[str, Any]]:
    """Roll district rows (``total_votes``/``voter_count``) up to ``key``."""
    summary: dict[str, dict[str, Any]] = {}
    for area in areas:
        entry = summary.setdefault(
            area[key],
            {key: area[key], name_key: area[name_key], "total_votes": 0, "eligible_voters": 0},
        )
        entry["total_votes"] += area["total_votes"]
        entry["eligible_voters"] += area["voter_count"]
    for entry in summary.values():
        entry["turnout_percentage"] = percentage(entry["total_votes"], entry["eligible_voters"])
    return list(summary.values())


# ============================================
# QUERIES
# ============================================


async def _get_election(conn: asyncpg.Connection, election_id: str) -> dict[str, Any]:
    row = await conn.fetchrow(
        "SELECT id, name, name_th, status FROM elections WHERE id = $1", election_id
    )
    if not row:
        raise NotFoundError.for_resource("Election")
    return record_to_dict(row)


async def _party_counts(
    conn: asyncpg.Connection, election_id: str
) -> tuple[list[dict[str, Any]], dict[str, int]]:
    parties = records_to_list(
        await conn.fetch(
            """
            SELECT id, party_number, name, name_th, color
            FROM parties WHERE election_id = $1
            ORDER BY party_number
            """,
            election_id,
        )
    )
    rows = await conn.fetch(
        """
        SELECT party_id, COUNT(*)::int AS votes
        FROM votes
        WHERE election_id = $1 AND ballot_type = 'PARTY_LIST' AND party_id IS NOT NULL
        GROUP BY party_id
        """,
        election_id,
    )
    return parties, {str(row["party_id"]): row["votes"] for row in rows}


async def compute_results(conn: asyncpg.Connection, election_id: UUID | str) -> dict[str, Any]:
    """
    Full election results: turnout, party-list, referendum and regional turnout.

    ``total_votes_cast`` counts voters who cast a ballot in this election,
    the turnout denominator is the voter count of every district.
    """
    election_id = str(election_id)
    election = await _get_election(conn, election_id)

    parties, party_counts = await _party_counts(conn, election_id)

    questions = records_to_list(
        await conn.fetch(
            """
            SELECT id, question_number, question_th
            FROM referendum_questions WHERE election_id = $1
            ORDER BY question_number
            """,
            election_id,
        )
    )
    referendum_rows = await conn.fetch(
        """
        SELECT referendum_question_id, referendum_answer, COUNT(*)::int AS votes
        FROM votes
        WHERE election_id = $1 AND ballot_type = 'REFERENDUM'
        GROUP BY referendum_question_id, referendum_answer
        """,
        election_id,
    )
    referendum_counts = {
        (str(row["referendum_question_id"]), row["referendum_answer"]): row["votes"]
        for row in referendum_rows
    }

    total_votes_cast = await conn.fetchval(
        "SELECT COUNT(*) FROM ballot_casts WHERE election_id = $1", election_id
    )
    total_eligible = await conn.fetchval(
        "SELECT COALESCE(SUM(voter_count), 0) FROM districts"
    )
    region_rows = records_to_list(
        await conn.fetch(
            """
            SELECT d.id, d.voter_count, p.region_id, r.name AS region_name,
                   COUNT(v.id)::int AS total_votes
            FROM districts d
            JOIN provinces p ON p.id = d.province_id
            JOIN regions r ON r.id = p.region_id
            LEFT JOIN candidates c ON c.district_id = d.id AND c.election_id = $1
            LEFT JOIN votes v ON v.candidate_id = c.id AND v.ballot_type = 'CONSTITUENCY'
            GROUP BY d.id, p.region_id, r.name
            ORDER BY p.region_id
            """,
            election_id,
        )
    )

    return {
        "election_id": election["id"],
        "election_name": election["name_th"],
        "status": election["status"],
        "last_updated": datetime.now(UTC),
        "total_eligible_voters": total_eligible,
        "total_votes_cast": total_votes_cast,
        "turnout_percentage": percentage(total_votes_cast, total_eligible),
        "party_list_results": tally_parties(parties, party_counts),
        "referendum_results": tally_referendum(questions, referendum_counts),
        "by_region": summarize_turnout(region_rows, "region_id", "region_name"),
    }


async def compute_district_results(
    conn: asyncpg.Connection,
    election_id: UUID | str,
    province_id: str | None = None,
) -> list[dict[str, Any]]:
    """Constituency results per district, optionally limited to one province."""
    election_id = str(election_id)
    await _get_election(conn, election_id)

    query = """
        SELECT d.id, d.name_th, d.zone_number, d.voter_count, d.province_id,
               p.name_th AS province_name, p.region_id
        FROM districts d
        JOIN provinces p ON p.id = d.province_id
    """
    params: list[Any] = []
    if province_id:
        query += " WHERE d.province_id = $1"
        params.append(province_id)
    query += " ORDER BY p.name_th, d.zone_number"
    districts = records_to_list(await conn.fetch(query, *params))

    candidates = records_to_list(
        await conn.fetch(
            """
            SELECT c.id, c.district_id, c.candidate_number, c.party_id,
                   c.title_th, c.first_name_th, c.last_name_th,
                   p.name_th AS party_name, p.color AS party_color
            FROM candidates c
            LEFT JOIN parties p ON p.id = c.party_id
            WHERE c.election_id = $1
            """,
            election_id,
        )
    )
    vote_rows = await conn.fetch(
        """
        SELECT candidate_id, COUNT(*)::int AS votes
        FROM votes
        WHERE election_id = $1 AND ballot_type = 'CONSTITUENCY' AND candidate_id IS NOT NULL
        GROUP BY candidate_id
        """,
        election_id,
    )
    counts = {str(row["candidate_id"]): row["votes"] for row in vote_rows}

    by_district: dict[str, list[dict[str, Any]]] = {}
    for candidate in candidates:
        by_district.setdefault(candidate["district_id"], []).append(candidate)

    results = []
    for district in districts:
        ranked, winner = rank_candidates(by_district.get(district["id"], []), counts)
        total_votes = sum(candidate["vote_count"] for candidate in ranked)
        results.append(
            {
                "district_id": district["id"],
                "district_name": district["name_th"],
                "zone_number": district["zone_number"],
                "province_id": district["province_id"],
                "province_name": district["province_name"],
                "region_id": district["region_id"],
                "voter_count": district["voter_count"],
                "total_votes": total_votes,
                "turnout_percentage": percentage(total_votes, district["voter_count"]),
                "candidates": ranked,
                "winner": winner,
            }
        )
    return results


async def compute_province_turnout(
    conn: asyncpg.Connection, election_id: UUID | str, province_id: str
) -> dict[str, Any]:
    """Province summary: district results plus summed votes and voter counts."""
    province = await conn.fetchrow(
        "SELECT id, name_th, region_id FROM provinces WHERE id = $1", province_id
    )
    if not province:
        raise NotFoundError.for_resource("Province")

    districts = await compute_district_results(conn, election_id, province_id)
    total_votes = sum(district["total_votes"] for district in districts)
    eligible = sum(district["voter_count"] for district in districts)

    return {
        "election_id": str(election_id),
        "province_id": province["id"],
        "province_name": province["name_th"],
        "region_id": province["region_id"],
        "total_votes": total_votes,
        "eligible_voters": eligible,
        "turnout_percentage": percentage(total_votes, eligible),
        "districts": districts,
    }


async def compute_snapshot(conn: asyncpg.Connection, election_id: UUID | str) -> dict[str, Any]:
    """Compact party-list snapshot pushed to result stream subscribers."""
    election_id = str(election_id)
    await _get_election(conn, election_id)
    parties, counts = await _party_counts(conn, election_id)

    return {
        "election_id": election_id,
        "timestamp": datetime.now(UTC),
        "total_votes": sum(counts.values()),
        "party_results": tally_parties(parties, counts),
    }

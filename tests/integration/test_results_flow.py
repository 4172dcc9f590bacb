"""
Integration tests for result aggregation over cast ballots.
"""

import pytest

from app.core.errors import NotFoundError
from app.services import elections as election_service
from app.services import results as results_service
from app.services.results import TIE
from app.services.voting import (
    BallotSelections,
    ReferendumAnswer,
    ReferendumSelection,
    cast_ballot,
)

pytestmark = pytest.mark.integration

BANGKOK = "กรุงเทพมหานคร"
BKK_ZONE_1 = f"{BANGKOK}-zone-1"
BKK_ZONE_2 = f"{BANGKOK}-zone-2"
CMI_ZONE_1 = "เชียงใหม่-zone-1"

UNKNOWN_ELECTION = "00000000-0000-0000-0000-000000000000"


@pytest.fixture
async def voted_election(db_connection, geo, make_election, super_admin):
    """
    Four voters in an OPEN election.

    Party list: Blue 2, Red 2. Bangkok zone 1: candidate 1 has 2 votes,
    candidate 2 has 1. Chiang Mai zone 1: one vote. Bangkok zone 2 has no
    candidates. Referendum: one approve, one disapprove.
    """
    election = await make_election(status="OPEN", has_referendum=True)
    election_id = election["id"]
    blue = await election_service.create_party(
        db_connection, election_id, 1, "Blue", "พรรคฟ้า", "#0000FF"
    )
    red = await election_service.create_party(
        db_connection, election_id, 2, "Red", "พรรคแดง", "#FF0000"
    )

    async def candidate(district_id, number, party):
        return await election_service.create_candidate(
            db_connection, super_admin, election_id, district_id, number,
            "นาย", f"ผู้สมัคร{number}", "ทดสอบ", party_id=party["id"],
        )

    bkk_1 = await candidate(BKK_ZONE_1, 1, blue)
    bkk_2 = await candidate(BKK_ZONE_1, 2, red)
    cmi_1 = await candidate(CMI_ZONE_1, 1, red)
    question = await election_service.create_referendum_question(
        db_connection, election_id, 1, "เห็นชอบหรือไม่"
    )

    def referendum(answer):
        return (ReferendumSelection(question["id"], answer),)

    ballots = {
        "1101700203451": BallotSelections(
            party_id=blue["id"], candidate_id=bkk_1["id"],
            referendum=referendum(ReferendumAnswer.APPROVE),
        ),
        "1101700203452": BallotSelections(
            party_id=blue["id"], candidate_id=bkk_2["id"],
            referendum=referendum(ReferendumAnswer.DISAPPROVE),
        ),
        "1101700203453": BallotSelections(party_id=red["id"], candidate_id=bkk_1["id"]),
        "1101700203454": BallotSelections(party_id=red["id"], candidate_id=cmi_1["id"]),
    }
    for citizen_id, selections in ballots.items():
        await cast_ballot(db_connection, citizen_id, election_id, selections)

    return {"id": election_id, "blue": blue, "red": red, "bkk_1": bkk_1, "question": question}


async def test_compute_results(db_connection, voted_election):
    results = await results_service.compute_results(db_connection, voted_election["id"])

    assert results["status"] == "OPEN"
    assert results["total_votes_cast"] == 4
    assert results["total_eligible_voters"] == 2000
    assert results["turnout_percentage"] == pytest.approx(0.2)

    party_results = results["party_list_results"]
    assert [row["party_number"] for row in party_results] == [1, 2]
    assert [row["vote_count"] for row in party_results] == [2, 2]
    assert [row["percentage"] for row in party_results] == [50.0, 50.0]

    [question] = results["referendum_results"]
    assert question["approve_count"] == 1
    assert question["disapprove_count"] == 1
    assert question["result"] == TIE


async def test_results_by_region(db_connection, voted_election):
    results = await results_service.compute_results(db_connection, voted_election["id"])

    by_region = {row["region_id"]: row for row in results["by_region"]}
    assert by_region["bangkok"]["total_votes"] == 3
    assert by_region["bangkok"]["eligible_voters"] == 1500
    assert by_region["north"]["total_votes"] == 1
    assert by_region["north"]["turnout_percentage"] == pytest.approx(0.2)


async def test_district_results(db_connection, voted_election):
    districts = await results_service.compute_district_results(
        db_connection, voted_election["id"]
    )

    by_id = {district["district_id"]: district for district in districts}
    assert set(by_id) == {BKK_ZONE_1, BKK_ZONE_2, CMI_ZONE_1}

    zone_1 = by_id[BKK_ZONE_1]
    assert zone_1["total_votes"] == 3
    assert zone_1["winner"]["candidate_id"] == voted_election["bkk_1"]["id"]
    assert zone_1["winner"]["is_winner"] is True
    assert [c["vote_count"] for c in zone_1["candidates"]] == [2, 1]

    assert by_id[BKK_ZONE_2]["winner"] is None
    assert by_id[BKK_ZONE_2]["turnout_percentage"] == 0.0


async def test_province_turnout(db_connection, voted_election):
    province = await results_service.compute_province_turnout(
        db_connection, voted_election["id"], BANGKOK
    )

    assert province["total_votes"] == 3
    assert province["eligible_voters"] == 1500
    assert province["turnout_percentage"] == pytest.approx(0.2)
    assert [d["zone_number"] for d in province["districts"]] == [1, 2]


async def test_province_turnout_unknown_province(db_connection, voted_election):
    with pytest.raises(NotFoundError):
        await results_service.compute_province_turnout(
            db_connection, voted_election["id"], "ไม่มีจังหวัดนี้"
        )


async def test_snapshot(db_connection, voted_election):
    snapshot = await results_service.compute_snapshot(db_connection, voted_election["id"])

    assert snapshot["election_id"] == voted_election["id"]
    assert snapshot["total_votes"] == 4
    assert snapshot["party_results"][0]["party_id"] == voted_election["blue"]["id"]


async def test_results_for_election_without_votes(db_connection, geo, make_election):
    election = await make_election(status="OPEN")
    await election_service.create_party(
        db_connection, election["id"], 1, "Blue", "พรรคฟ้า", "#0000FF"
    )

    results = await results_service.compute_results(db_connection, election["id"])

    assert results["total_votes_cast"] == 0
    assert results["turnout_percentage"] == 0.0
    assert results["party_list_results"][0]["percentage"] == 0.0
    assert results["referendum_results"] == []


@pytest.mark.parametrize(
    "compute",
    [
        results_service.compute_results,
        results_service.compute_district_results,
        results_service.compute_snapshot,
    ],
)
async def test_unknown_election(db_connection, compute):
    with pytest.raises(NotFoundError):
        await compute(db_connection, UNKNOWN_ELECTION)

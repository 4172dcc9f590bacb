"""
End-to-end API flow against PostgreSQL: election setup, voting, batch review
and results.
"""

import pytest

from app.services import users as user_service
from app.services.scope import Role

pytestmark = pytest.mark.integration

BANGKOK = "กรุงเทพมหานคร"
BKK_ZONE_1 = f"{BANGKOK}-zone-1"
PASSWORD = "Str0ng!Passw0rd"


async def _official_token(client, conn, role, email, **scope_ids) -> dict[str, str]:
    await user_service.create_official(
        conn, email=email, password=PASSWORD, name=email.split("@")[0], role=role, **scope_ids
    )
    response = await client.post(
        "/auth/official/login", json={"email": email, "password": PASSWORD}
    )
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['data']['access_token']}"}


async def test_election_day_flow(async_client, use_db, geo):
    admin = await _official_token(
        async_client, use_db, Role.SUPER_ADMIN, "admin@election.go.th"
    )

    response = await async_client.post(
        "/elections",
        headers=admin,
        json={
            "name": "General Election",
            "name_th": "การเลือกตั้งทั่วไป",
            "start_date": "2027-03-01T08:00:00+07:00",
            "end_date": "2027-03-01T17:00:00+07:00",
            "has_constituency": False,
        },
    )
    assert response.status_code == 201, response.text
    election_id = response.json()["data"]["id"]

    response = await async_client.post(
        "/parties",
        headers=admin,
        json={
            "election_id": election_id,
            "party_number": 1,
            "name": "Blue",
            "name_th": "พรรคฟ้า",
            "color": "#0000FF",
        },
    )
    assert response.status_code == 201, response.text
    party_id = response.json()["data"]["id"]

    response = await async_client.patch(
        f"/elections/{election_id}/status", headers=admin, json={"status": "OPEN"}
    )
    assert response.json()["data"]["status"] == "OPEN"

    # Voting
    login = await async_client.post("/auth/voter/login", json={"citizen_id": "1101700203451"})
    voter = {"Authorization": f"Bearer {login.json()['data']['access_token']}"}
    ballot = {"election_id": election_id, "party_vote": {"party_id": party_id}}

    response = await async_client.post("/votes/cast", headers=voter, json=ballot)
    assert response.status_code == 201, response.text
    assert [r["ballot_type"] for r in response.json()["data"]["receipts"]] == ["PARTY_LIST"]

    response = await async_client.post("/votes/cast", headers=voter, json=ballot)
    assert response.status_code == 409

    response = await async_client.get(f"/votes/status/{election_id}", headers=voter)
    assert response.json()["data"]["has_voted"] is True

    response = await async_client.get(f"/results/{election_id}")
    assert response.json()["data"]["total_votes_cast"] == 1

    # Batch review
    response = await async_client.patch(
        f"/elections/{election_id}/status", headers=admin, json={"status": "CLOSED"}
    )
    assert response.status_code == 200

    official = await _official_token(
        async_client, use_db, Role.DISTRICT_OFFICIAL, "zone1@election.go.th",
        district_id=BKK_ZONE_1,
    )
    response = await async_client.post(
        "/batches",
        headers=official,
        json={
            "election_id": election_id,
            "district_id": BKK_ZONE_1,
            "party_votes": [{"party_id": party_id, "vote_count": 321}],
        },
    )
    assert response.status_code == 201, response.text
    batch_id = response.json()["data"]["id"]

    response = await async_client.post(f"/batches/{batch_id}/approve", headers=official)
    assert response.status_code == 403

    reviewer = await _official_token(
        async_client, use_db, Role.PROVINCE_ADMIN, "bkk@election.go.th", province_id=BANGKOK
    )
    response = await async_client.post(f"/batches/{batch_id}/approve", headers=reviewer)
    assert response.status_code == 200, response.text
    assert response.json()["data"]["status"] == "APPROVED"

    response = await async_client.get(f"/results/{election_id}/batches")
    summary = response.json()["data"]
    assert summary["approved_batches"] == 1
    assert summary["party_votes"][0]["vote_count"] == 321

"""
Integration tests for official and voter accounts.
"""

import pytest

from app.core.errors import ConflictError, ValidationError
from app.core.security import verify_password
from app.services import users as user_service
from app.services.scope import Role
from app.services.voter_verification import verify_identity

pytestmark = pytest.mark.integration

BANGKOK = "กรุงเทพมหานคร"
BKK_ZONE_1 = f"{BANGKOK}-zone-1"


async def _create(conn, role, email="official@election.go.th", **scope_ids):
    return await user_service.create_official(
        conn,
        email=email,
        password="Str0ng!Passw0rd",
        name="เจ้าหน้าที่",
        role=role,
        **scope_ids,
    )


async def test_create_scoped_official(db_connection, geo):
    user = await _create(db_connection, Role.PROVINCE_ADMIN, province_id=BANGKOK)

    assert user["role"] == "province_admin"
    assert user["scope_province_id"] == BANGKOK
    assert "password_hash" not in user

    stored = await user_service.get_user_by_email(db_connection, "OFFICIAL@election.go.th")
    assert verify_password("Str0ng!Passw0rd", stored["password_hash"])


@pytest.mark.parametrize(
    "role,scope_ids,field",
    [
        (Role.PROVINCE_ADMIN, {}, "province_id"),
        (Role.DISTRICT_OFFICIAL, {"province_id": BANGKOK}, "province_id"),
        (Role.SUPER_ADMIN, {"region_id": "bangkok"}, "region_id"),
        (Role.REGIONAL_ADMIN, {"region_id": "south"}, "region_id"),
    ],
)
async def test_scope_must_match_role(db_connection, geo, role, scope_ids, field):
    with pytest.raises(ValidationError) as exc_info:
        await _create(db_connection, role, **scope_ids)

    assert field in exc_info.value.errors


async def test_voter_role_is_not_an_official(db_connection, geo):
    with pytest.raises(ValidationError):
        await _create(db_connection, Role.VOTER)


async def test_duplicate_email(db_connection, geo):
    await _create(db_connection, Role.DISTRICT_OFFICIAL, district_id=BKK_ZONE_1)

    with pytest.raises(ConflictError):
        async with db_connection.transaction():
            await _create(db_connection, Role.SUPER_ADMIN, email="Official@Election.go.th")


async def test_voter_account_is_created_once(db_connection):
    identity = verify_identity("1101700203451")

    first = await user_service.get_or_create_voter(db_connection, identity)
    second = await user_service.get_or_create_voter(db_connection, identity)

    assert first["id"] == second["id"]
    assert first["role"] == "voter"
    assert (await user_service.get_user_by_citizen_id(db_connection, "1101700203451"))["id"] == first["id"]


async def test_list_users_by_role(db_connection, geo):
    await _create(db_connection, Role.SUPER_ADMIN, email="admin@election.go.th")
    await _create(db_connection, Role.PROVINCE_ADMIN, province_id=BANGKOK)

    users, total = await user_service.list_users(db_connection, role="super_admin")

    assert total == 1
    assert [user["email"] for user in users] == ["admin@election.go.th"]

"""Unit tests for roles, permissions and geographic scope checks."""

import pytest

from app.services.scope import (
    Actor,
    DistrictScope,
    NoScope,
    Permission,
    ProvinceScope,
    RegionScope,
    Role,
    Unconstrained,
    build_scope,
    can_access_district,
    has_permission,
    required_scope_field,
    scope_to_dict,
)

DISTRICT = "กรุงเทพมหานคร-zone-1"
PROVINCE = "กรุงเทพมหานคร"
REGION = "bangkok"


@pytest.mark.parametrize(
    "role,permission,expected",
    [
        (Role.SUPER_ADMIN, Permission.ELECTION_CREATE, True),
        (Role.SUPER_ADMIN, Permission.VOTE_CAST, False),
        (Role.VOTER, Permission.VOTE_CAST, True),
        (Role.VOTER, Permission.VOTE_BATCH_UPLOAD, False),
        (Role.DISTRICT_OFFICIAL, Permission.VOTE_BATCH_UPLOAD, True),
        (Role.DISTRICT_OFFICIAL, Permission.VOTE_BATCH_APPROVE, False),
        (Role.PROVINCE_ADMIN, Permission.VOTE_BATCH_APPROVE, True),
        (Role.REGIONAL_ADMIN, Permission.CANDIDATE_CREATE, True),
        (Role.REGIONAL_ADMIN, Permission.PARTY_CREATE, False),
    ],
)
def test_has_permission_table(role, permission, expected):
    assert has_permission(role, permission) is expected


def test_has_permission_accepts_strings():
    assert has_permission("voter", "vote:cast") is True
    assert has_permission("province_admin", "election:delete") is False


def test_has_permission_is_total():
    """Unknown roles and permissions are denied, never raised."""
    assert has_permission("janitor", Permission.ELECTION_READ) is False
    assert has_permission(Role.SUPER_ADMIN, "election:explode") is False
    assert has_permission(None, "vote:cast") is False


def test_super_admin_accesses_any_district():
    assert can_access_district(Role.SUPER_ADMIN, Unconstrained(), "x", "y", "z") is True
    assert can_access_district(Role.SUPER_ADMIN, NoScope(), None, None, None) is True


def test_voter_never_accesses_district():
    assert can_access_district(Role.VOTER, NoScope(), DISTRICT, PROVINCE, REGION) is False
    assert (
        can_access_district(Role.VOTER, DistrictScope(DISTRICT), DISTRICT, PROVINCE, REGION)
        is False
    )


def test_regional_admin_matches_region_only():
    scope = RegionScope(REGION)
    assert can_access_district(Role.REGIONAL_ADMIN, scope, DISTRICT, PROVINCE, REGION) is True
    assert can_access_district(Role.REGIONAL_ADMIN, scope, DISTRICT, PROVINCE, "north") is False


def test_province_admin_matches_province_only():
    scope = ProvinceScope(PROVINCE)
    assert can_access_district(Role.PROVINCE_ADMIN, scope, DISTRICT, PROVINCE, REGION) is True
    assert (
        can_access_district(Role.PROVINCE_ADMIN, scope, "เชียงใหม่-zone-1", "เชียงใหม่", "north")
        is False
    )


def test_district_official_matches_district_only():
    scope = DistrictScope(DISTRICT)
    assert can_access_district(Role.DISTRICT_OFFICIAL, scope, DISTRICT, PROVINCE, REGION) is True
    assert (
        can_access_district(
            Role.DISTRICT_OFFICIAL, scope, "กรุงเทพมหานคร-zone-2", PROVINCE, REGION
        )
        is False
    )


def test_scope_variant_must_match_role():
    """A province scope held by a regional admin grants nothing."""
    assert (
        can_access_district(
            Role.REGIONAL_ADMIN, ProvinceScope(PROVINCE), DISTRICT, PROVINCE, REGION
        )
        is False
    )
    assert can_access_district(Role.PROVINCE_ADMIN, NoScope(), DISTRICT, PROVINCE, REGION) is False


def test_missing_location_fields_deny():
    assert can_access_district(Role.PROVINCE_ADMIN, ProvinceScope(PROVINCE), DISTRICT, None, REGION) is False


def test_build_scope_reads_only_the_role_field():
    assert build_scope(Role.SUPER_ADMIN, "bangkok") == Unconstrained()
    assert build_scope(Role.REGIONAL_ADMIN, "bangkok", PROVINCE, DISTRICT) == RegionScope("bangkok")
    assert build_scope(Role.PROVINCE_ADMIN, "bangkok", PROVINCE, DISTRICT) == ProvinceScope(PROVINCE)
    assert build_scope(Role.DISTRICT_OFFICIAL, None, None, DISTRICT) == DistrictScope(DISTRICT)
    assert build_scope(Role.PROVINCE_ADMIN, "bangkok", None, None) == NoScope()
    assert build_scope(Role.VOTER, "bangkok", PROVINCE, DISTRICT) == NoScope()
    assert build_scope("unknown") == NoScope()


def test_scope_to_dict():
    assert scope_to_dict(ProvinceScope(PROVINCE)) == {
        "region_id": None,
        "province_id": PROVINCE,
        "district_id": None,
    }
    assert scope_to_dict(Unconstrained()) == {
        "region_id": None,
        "province_id": None,
        "district_id": None,
    }


def test_required_scope_field():
    assert required_scope_field(Role.REGIONAL_ADMIN) == "region_id"
    assert required_scope_field("district_official") == "district_id"
    assert required_scope_field(Role.SUPER_ADMIN) is None


def test_actor_can_access_location():
    actor = Actor(id="a", role=Role.PROVINCE_ADMIN, scope=ProvinceScope(PROVINCE))
    location = {"district_id": DISTRICT, "province_id": PROVINCE, "region_id": REGION}
    assert actor.can_access(location) is True
    assert actor.can(Permission.VOTE_BATCH_APPROVE) is True
    assert actor.can(Permission.USER_CREATE) is False

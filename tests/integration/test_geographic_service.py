"""
Integration tests for the geographic hierarchy.
"""

import pytest

from app.core.errors import NotFoundError, ValidationError
from app.services import geographic as geo_service

pytestmark = pytest.mark.integration

BANGKOK = "กรุงเทพมหานคร"
BKK_ZONE_1 = f"{BANGKOK}-zone-1"
CHIANG_MAI = "เชียงใหม่"


async def test_list_regions_with_province_counts(db_connection, geo):
    regions = {region["id"]: region for region in await geo_service.list_regions(db_connection)}

    assert set(regions) == {"bangkok", "north"}
    assert regions["bangkok"]["province_count"] == 1


async def test_list_provinces_by_region(db_connection, geo):
    provinces = await geo_service.list_provinces(db_connection, region_id="north")

    assert [province["id"] for province in provinces] == [CHIANG_MAI]
    assert provinces[0]["district_count"] == 1
    assert provinces[0]["region_name"] == "North"


async def test_get_province_lists_districts_by_zone(db_connection, geo):
    province = await geo_service.get_province(db_connection, BANGKOK)

    assert [district["zone_number"] for district in province["districts"]] == [1, 2]


async def test_list_districts_filters(db_connection, geo):
    in_bangkok = await geo_service.list_districts(db_connection, province_id=BANGKOK)
    in_north = await geo_service.list_districts(db_connection, region_id="north")

    assert len(in_bangkok) == 2
    assert [district["province_id"] for district in in_north] == [CHIANG_MAI]


async def test_district_location_chain(db_connection, geo):
    location = await geo_service.get_district_location(db_connection, BKK_ZONE_1)

    assert location == {
        "district_id": BKK_ZONE_1,
        "province_id": BANGKOK,
        "region_id": "bangkok",
    }
    assert await geo_service.get_district_location(db_connection, "nowhere-zone-1") is None


async def test_unknown_lookups(db_connection, geo):
    with pytest.raises(NotFoundError):
        await geo_service.get_province(db_connection, "ไม่มีจังหวัดนี้")
    with pytest.raises(NotFoundError):
        await geo_service.get_district(db_connection, "nowhere-zone-1")


async def test_geo_stats(db_connection, geo):
    stats = await geo_service.get_geo_stats(db_connection)

    assert stats == {
        "total_regions": 2,
        "total_provinces": 2,
        "total_districts": 3,
        "total_voters": 2000,
    }


async def test_update_voter_count(db_connection, geo):
    district = await geo_service.update_district_voter_count(db_connection, BKK_ZONE_1, 1234)
    assert district["voter_count"] == 1234

    with pytest.raises(ValidationError):
        await geo_service.update_district_voter_count(db_connection, BKK_ZONE_1, -1)
    with pytest.raises(NotFoundError):
        await geo_service.update_district_voter_count(db_connection, "nowhere-zone-1", 10)


async def test_reference_load_is_idempotent(db_connection, geo):
    await geo_service.load_reference_data(
        db_connection,
        regions=[],
        provinces=[],
        districts=[
            {"province_id": BANGKOK, "zone_number": 1, "name": "Renamed", "voter_count": 900},
        ],
    )

    district = await geo_service.get_district(db_connection, BKK_ZONE_1)
    assert district["name"] == "Renamed"
    assert district["voter_count"] == 900
    assert (await geo_service.get_geo_stats(db_connection))["total_districts"] == 3


async def test_reference_load_rejects_duplicate_zones(db_connection):
    with pytest.raises(ValidationError):
        await geo_service.load_reference_data(
            db_connection,
            regions=[{"id": "bangkok", "name": "Bangkok", "name_th": BANGKOK}],
            provinces=[
                {"id": BANGKOK, "code": "10", "name": "Bangkok", "name_th": BANGKOK, "region_id": "bangkok"}
            ],
            districts=[
                {"province_id": BANGKOK, "zone_number": 1, "name": "A"},
                {"province_id": BANGKOK, "zone_number": 1, "name": "B"},
            ],
        )

    assert (await geo_service.get_geo_stats(db_connection))["total_regions"] == 0

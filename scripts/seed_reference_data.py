"""
Seed regions, provinces and districts, plus optional demo accounts and election.

Province ids are the Thai province names, the same ids the mock identity
provider assigns to voters, so every verified voter maps to a seeded district.

Usage:
    python -m scripts.seed_reference_data
    python -m scripts.seed_reference_data --zones province_zones.json
    python -m scripts.seed_reference_data --admin-email admin@election.go.th \\
        --admin-password 'Str0ng!Passw0rd' --demo-election
"""

import argparse
import asyncio
import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import asyncpg

from app.core.config import settings
from app.core.errors import ConflictError
from app.services import elections as election_service
from app.services.geographic import district_id_for, load_reference_data
from app.services.scope import Actor, Role, Unconstrained
from app.services.users import create_official, get_user_by_email
from app.services.voter_verification import PROVINCES

REGIONS = [
    {"id": "bangkok", "name": "Bangkok", "name_th": "กรุงเทพมหานคร"},
    {"id": "central", "name": "Central", "name_th": "ภาคกลาง"},
    {"id": "north", "name": "North", "name_th": "ภาคเหนือ"},
    {"id": "northeast", "name": "Northeast", "name_th": "ภาคตะวันออกเฉียงเหนือ"},
    {"id": "south", "name": "South", "name_th": "ภาคใต้"},
]

# Thai name -> (province code, English name, region id)
PROVINCE_INFO = {
    "กรุงเทพมหานคร": ("10", "Bangkok", "bangkok"),
    "สมุทรปราการ": ("11", "Samut Prakan", "central"),
    "นนทบุรี": ("12", "Nonthaburi", "central"),
    "ปทุมธานี": ("13", "Pathum Thani", "central"),
    "นครราชสีมา": ("30", "Nakhon Ratchasima", "northeast"),
    "ขอนแก่น": ("40", "Khon Kaen", "northeast"),
    "เชียงใหม่": ("50", "Chiang Mai", "north"),
    "สงขลา": ("90", "Songkhla", "south"),
}

DEMO_PARTIES = [
    (1, "Pheu Thai Party", "พรรคเพื่อไทย", "PTP", "#E3000F"),
    (2, "Move Forward Party", "พรรคก้าวไกล", "MFP", "#FF6600"),
    (3, "Bhumjaithai Party", "พรรคภูมิใจไทย", "BJT", "#00529B"),
    (4, "Palang Pracharath Party", "พรรคพลังประชารัฐ", "PPRP", "#002D62"),
    (5, "Democrat Party", "พรรคประชาธิปัตย์", "DP", "#1E90FF"),
]

DEMO_CANDIDATE_NAMES = [
    ("นาย", "สมชาย", "ใจดี"),
    ("นาง", "สมหญิง", "รักไทย"),
    ("นาย", "วิชัย", "พัฒนา"),
    ("นางสาว", "ปรียา", "สุขใจ"),
    ("นาย", "ประยุทธ์", "มั่นคง"),
]


def build_reference_data(
    zones_file: Path | None = None,
) -> tuple[list[dict[str, Any]], list[dict[str, Any]], list[dict[str, Any]]]:
    """
    Build region, province and district rows.

    ``zones_file`` uses the ``{"data_list": [{"province_code", "province_name",
    "zone_list"}]}`` layout; without it the built-in province list is used.
    """
    if zones_file:
        data = json.loads(zones_file.read_text(encoding="utf-8"))
        entries = [
            (
                item["province_name"],
                str(item["province_code"]),
                item["zone_list"],
            )
            for item in data["data_list"]
        ]
    else:
        entries = [
            (name, PROVINCE_INFO[name][0], [""] * zones) for name, zones in PROVINCES
        ]

    provinces = []
    districts = []
    for name_th, code, zone_list in entries:
        _, name_en, region_id = PROVINCE_INFO.get(name_th, (code, name_th, "central"))
        provinces.append(
            {
                "id": name_th,
                "code": code,
                "name": name_en,
                "name_th": name_th,
                "region_id": region_id,
            }
        )
        for index, description in enumerate(zone_list, start=1):
            districts.append(
                {
                    "id": district_id_for(name_th, index),
                    "province_id": name_th,
                    "zone_number": index,
                    "name": f"{name_en} Zone {index}",
                    "name_th": f"{name_th} เขต {index}",
                    "zone_description": description or None,
                    "voter_count": 0,
                }
            )

    return REGIONS, provinces, districts


async def seed_admin(conn: asyncpg.Connection, email: str, password: str) -> dict[str, Any]:
    existing = await get_user_by_email(conn, email)
    if existing:
        print(f"ℹ️  Super admin {email} already exists")
        return existing

    admin = await create_official(
        conn, email=email, password=password, name="Super Admin", role=Role.SUPER_ADMIN
    )
    print(f"✅ Created super admin {email}")
    return admin


async def seed_demo_election(conn: asyncpg.Connection, admin: dict[str, Any]) -> None:
    """Create an OPEN demo election with parties, a referendum and candidates."""
    name = "General Election 2027"
    existing = await conn.fetchval("SELECT id FROM elections WHERE name = $1", name)
    if existing:
        print(f"ℹ️  Demo election already exists ({existing})")
        return

    election = await election_service.create_election(
        conn,
        name=name,
        name_th="การเลือกตั้งทั่วไป พ.ศ. 2570",
        description="Demo election for testing the system",
        start_date=datetime(2024, 1, 1, tzinfo=UTC),
        end_date=datetime(2027, 12, 31, tzinfo=UTC),
        has_party_list=True,
        has_constituency=True,
        has_referendum=True,
    )

    parties = []
    for number, party_name, name_th, abbreviation, color in DEMO_PARTIES:
        parties.append(
            await election_service.create_party(
                conn,
                election["id"],
                party_number=number,
                name=party_name,
                name_th=name_th,
                color=color,
                abbreviation=abbreviation,
            )
        )

    await election_service.create_referendum_question(
        conn,
        election["id"],
        question_number=1,
        question_th="ท่านเห็นชอบหรือไม่ที่จะให้มีการแก้ไขรัฐธรรมนูญ พ.ศ. 2560",
        question_en="Do you approve the amendment of the 2017 Constitution?",
    )

    actor = Actor(id=admin["id"], role=Role.SUPER_ADMIN, scope=Unconstrained())
    district_ids = await conn.fetch("SELECT id FROM districts ORDER BY id")
    candidate_count = 0
    for row in district_ids:
        for index, party in enumerate(parties):
            title_th, first_name_th, last_name_th = DEMO_CANDIDATE_NAMES[
                (candidate_count + index) % len(DEMO_CANDIDATE_NAMES)
            ]
            await election_service.create_candidate(
                conn,
                actor,
                election["id"],
                district_id=row["id"],
                candidate_number=index + 1,
                title_th=title_th,
                first_name_th=first_name_th,
                last_name_th=last_name_th,
                party_id=party["id"],
            )
        candidate_count += len(parties)

    await election_service.change_election_status(conn, election["id"], "OPEN")

    print(
        f"✅ Created demo election {election['id']} with {len(parties)} parties "
        f"and {candidate_count} candidates"
    )


async def seed(args: argparse.Namespace) -> None:
    regions, provinces, districts = build_reference_data(args.zones)

    conn = await asyncpg.connect(settings.DATABASE_URL)
    try:
        counts = await load_reference_data(conn, regions, provinces, districts)
        print(
            f"✅ Loaded {counts['regions']} regions, {counts['provinces']} provinces, "
            f"{counts['districts']} districts"
        )

        admin = None
        if args.admin_email and args.admin_password:
            try:
                admin = await seed_admin(conn, args.admin_email, args.admin_password)
            except ConflictError as e:
                print(f"❌ {e.message}")

        if args.demo_election:
            if admin is None:
                print("❌ --demo-election needs --admin-email and --admin-password")
            else:
                await seed_demo_election(conn, admin)
    finally:
        await conn.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed election reference data")
    parser.add_argument("--zones", type=Path, help="province_zones.json to load")
    parser.add_argument("--admin-email", help="Create a super admin with this email")
    parser.add_argument("--admin-password", help="Password for the super admin")
    parser.add_argument(
        "--demo-election",
        action="store_true",
        help="Create an OPEN demo election with parties and candidates",
    )

    asyncio.run(seed(parser.parse_args()))

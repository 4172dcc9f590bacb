"""Mock national identity verification.

Stands in for the real ThaiD service: any well-formed 13 digit citizen id is
accepted and a deterministic identity is derived from it, so the same id always
yields the same name and eligible district.
"""

from dataclasses import asdict, dataclass
import hashlib

from app.core.validation import CitizenIdValidator
from app.services.geographic import district_id_for

THAI_FIRST_NAMES = [
    "สมชาย", "สมหญิง", "วิชัย", "วิภา", "ประเสริฐ", "ประภา",
    "สุรชัย", "สุภา", "เกียรติ", "กัลยา", "ณัฐ", "นภา",
]

THAI_LAST_NAMES = [
    "ใจดี", "มั่นคง", "เจริญ", "สุขใจ", "รักไทย", "พัฒนา",
    "ศรีสุข", "วงศ์ไทย", "ทองดี", "แสงทอง", "สว่าง", "มีชัย",
]

# (province name, number of constituencies)
PROVINCES = [
    ("กรุงเทพมหานคร", 33),
    ("นนทบุรี", 8),
    ("ปทุมธานี", 7),
    ("สมุทรปราการ", 8),
    ("เชียงใหม่", 10),
    ("ขอนแก่น", 11),
    ("นครราชสีมา", 16),
    ("สงขลา", 9),
]


@dataclass(frozen=True)
class VerifiedIdentity:
    citizen_id: str
    title_th: str
    first_name_th: str
    last_name_th: str
    first_name_en: str
    last_name_en: str
    gender: str
    birth_date: str
    eligible_province: str
    eligible_district_id: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


def _deterministic_index(seed: str, modulo: int) -> int:
    digest = hashlib.md5(seed.encode("utf-8")).hexdigest()
    return int(digest[:8], 16) % modulo


def verify_identity(citizen_id: str | None) -> VerifiedIdentity | None:
    """
    Verify a citizen id.

    Returns:
        The derived identity, or None when the id is not exactly 13 digits.
    """
    is_valid, _ = CitizenIdValidator.validate(citizen_id)
    if not is_valid:
        return None

    gender = "M" if _deterministic_index(citizen_id + "gender", 2) == 0 else "F"
    if gender == "M":
        title_th = "นาย"
    else:
        title_th = "นาง" if _deterministic_index(citizen_id + "title", 2) == 0 else "นางสาว"

    province, max_zones = PROVINCES[_deterministic_index(citizen_id + "province", len(PROVINCES))]
    zone_number = _deterministic_index(citizen_id + "zone", max_zones) + 1

    birth_year = 1960 + _deterministic_index(citizen_id + "year", 45)
    birth_month = _deterministic_index(citizen_id + "month", 12) + 1
    birth_day = _deterministic_index(citizen_id + "day", 28) + 1

    return VerifiedIdentity(
        citizen_id=citizen_id,
        title_th=title_th,
        first_name_th=THAI_FIRST_NAMES[
            _deterministic_index(citizen_id + "first", len(THAI_FIRST_NAMES))
        ],
        last_name_th=THAI_LAST_NAMES[
            _deterministic_index(citizen_id + "last", len(THAI_LAST_NAMES))
        ],
        first_name_en=f"Firstname{citizen_id[:4]}",
        last_name_en=f"Lastname{citizen_id[4:8]}",
        gender=gender,
        birth_date=f"{birth_year}-{birth_month:02d}-{birth_day:02d}",
        eligible_province=province,
        eligible_district_id=district_id_for(province, zone_number),
    )

"""User service functions."""

from typing import Any
from uuid import UUID

import asyncpg

from app.core.database import record_to_dict, records_to_list
from app.core.errors import ConflictError, ValidationError
from app.core.security import hash_password
from app.services.scope import OFFICIAL_ROLES, Role, required_scope_field
from app.services.voter_verification import VerifiedIdentity

_PUBLIC_COLUMNS = """
    id, email, citizen_id, name, role,
    scope_region_id, scope_province_id, scope_district_id,
    created_at, updated_at
"""

_SCOPE_TABLES = {
    "region_id": "regions",
    "province_id": "provinces",
    "district_id": "districts",
}


async def get_user_by_id(
    conn: asyncpg.Connection, user_id: UUID | str
) -> dict[str, Any] | None:
    """Get user by ID."""
    result = await conn.fetchrow(
        f"SELECT {_PUBLIC_COLUMNS} FROM users WHERE id = $1",
        str(user_id),
    )
    return record_to_dict(result)


async def get_user_by_email(
    conn: asyncpg.Connection, email: str
) -> dict[str, Any] | None:
    """Get user by email, including the password hash for login."""
    result = await conn.fetchrow(
        f"SELECT {_PUBLIC_COLUMNS}, password_hash FROM users WHERE lower(email) = lower($1)",
        email,
    )
    return record_to_dict(result)


async def get_user_by_citizen_id(
    conn: asyncpg.Connection, citizen_id: str
) -> dict[str, Any] | None:
    result = await conn.fetchrow(
        f"SELECT {_PUBLIC_COLUMNS} FROM users WHERE citizen_id = $1",
        citizen_id,
    )
    return record_to_dict(result)


async def get_or_create_voter(
    conn: asyncpg.Connection, identity: VerifiedIdentity
) -> dict[str, Any]:
    """Return the voter account for a verified identity, creating it on first login."""
    result = await conn.fetchrow(
        f"""
        INSERT INTO users (citizen_id, name, role)
        VALUES ($1, $2, 'voter')
        ON CONFLICT (citizen_id) DO UPDATE SET updated_at = users.updated_at
        RETURNING {_PUBLIC_COLUMNS}
        """,
        identity.citizen_id,
        f"{identity.first_name_th} {identity.last_name_th}",
    )
    return record_to_dict(result)


def _validate_scope_for_role(role: Role, scope_ids: dict[str, str | None]) -> None:
    """The scope column required by the role must be set and the others empty."""
    required = required_scope_field(role)
    for field, value in scope_ids.items():
        if field == required and not value:
            raise ValidationError(
                f"{role.value} requires {field}", errors={field: "required"}
            )
        if field != required and value:
            raise ValidationError(
                f"{role.value} must not have {field}", errors={field: "not allowed"}
            )


async def create_official(
    conn: asyncpg.Connection,
    email: str,
    password: str,
    name: str,
    role: Role | str,
    region_id: str | None = None,
    province_id: str | None = None,
    district_id: str | None = None,
) -> dict[str, Any]:
    """
    Create an official account.

    Raises:
        ValidationError: role is not an official role, scope does not match
            the role, or the scope references unknown geo data
        ConflictError: email already registered
    """
    try:
        role = Role(role)
    except ValueError:
        raise ValidationError(f"Unknown role: {role}") from None
    if role not in OFFICIAL_ROLES:
        raise ValidationError("Officials cannot be created with the voter role")

    scope_ids = {
        "region_id": region_id,
        "province_id": province_id,
        "district_id": district_id,
    }
    _validate_scope_for_role(role, scope_ids)

    for field, value in scope_ids.items():
        if value is None:
            continue
        exists = await conn.fetchval(
            f"SELECT EXISTS(SELECT 1 FROM {_SCOPE_TABLES[field]} WHERE id = $1)", value
        )
        if not exists:
            raise ValidationError(f"Unknown {field}: {value}", errors={field: "not found"})

    try:
        result = await conn.fetchrow(
            f"""
            INSERT INTO users (
                email, password_hash, name, role,
                scope_region_id, scope_province_id, scope_district_id
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            RETURNING {_PUBLIC_COLUMNS}
            """,
            email.lower(),
            hash_password(password),
            name,
            role.value,
            region_id,
            province_id,
            district_id,
        )
    except asyncpg.UniqueViolationError:
        raise ConflictError("Email already registered") from None

    return record_to_dict(result)


async def list_users(
    conn: asyncpg.Connection,
    role: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[dict[str, Any]], int]:
    """List users, newest first, with the total count for pagination."""
    where = ""
    params: list[Any] = []
    if role:
        where = " WHERE role = $1"
        params.append(role)

    total = await conn.fetchval(f"SELECT COUNT(*) FROM users{where}", *params)
    rows = await conn.fetch(
        f"""
        SELECT {_PUBLIC_COLUMNS} FROM users{where}
        ORDER BY created_at DESC
        LIMIT ${len(params) + 1} OFFSET ${len(params) + 2}
        """,
        *params,
        limit,
        offset,
    )
    return records_to_list(rows), total

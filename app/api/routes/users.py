"""User management routes."""

from typing import Annotated

import asyncpg
from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field, field_validator

from app.api.deps import require_permission
from app.core.database import get_db
from app.core.errors import ValidationError
from app.core.logging_config import get_logger
from app.core.responses import paginated_response, success_response
from app.core.validation import EmailValidator, PasswordValidator, sanitize_string
from app.services.scope import Actor, Permission, Role
from app.services.users import create_official, list_users

router = APIRouter(prefix="/users", tags=["User Management"])
logger = get_logger(__name__)


class OfficialCreateRequest(BaseModel):
    """Official account creation request."""

    email: str = Field(..., max_length=255)
    password: str = Field(..., min_length=8, max_length=128)
    name: str = Field(..., min_length=1, max_length=255)
    role: Role
    region_id: str | None = None
    province_id: str | None = None
    district_id: str | None = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = sanitize_string(v, max_length=255).lower()
        is_valid, error = EmailValidator.validate(v)
        if not is_valid:
            raise ValueError(error)
        return v

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        is_valid, error = PasswordValidator.validate(v)
        if not is_valid:
            raise ValueError(error)
        return v


@router.get("")
async def get_users(
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
    actor: Annotated[Actor, Depends(require_permission(Permission.USER_READ))],
    role: Role | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
):
    users, total = await list_users(
        conn, role=role.value if role else None, limit=limit, offset=(page - 1) * limit
    )
    return paginated_response(items=users, page=page, limit=limit, total=total)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_user(
    body: OfficialCreateRequest,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
    actor: Annotated[Actor, Depends(require_permission(Permission.USER_CREATE))],
):
    """Create an official account with the scope its role requires."""
    if body.role is Role.VOTER:
        raise ValidationError("Voter accounts are created by identity verification")

    user = await create_official(
        conn,
        email=body.email,
        password=body.password,
        name=body.name,
        role=body.role,
        region_id=body.region_id,
        province_id=body.province_id,
        district_id=body.district_id,
    )
    logger.info(f"Official {user['id']} ({body.role.value}) created by {actor.id}")
    return success_response(data=user, message="User created")

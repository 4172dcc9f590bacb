"""Authentication API routes."""

from typing import Annotated, Any

import asyncpg
from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, Field, field_validator

from app.api.deps import TOKEN_COOKIE, actor_from_user, get_current_user
from app.core.config import settings
from app.core.database import get_db
from app.core.errors import UnauthenticatedError, ValidationError
from app.core.logging_config import get_logger, security_logger
from app.core.rate_limiting import login_rate_limiter
from app.core.responses import success_response
from app.core.security import create_access_token, verify_password
from app.core.validation import sanitize_string
from app.services.scope import scope_to_dict
from app.services.users import get_or_create_voter, get_user_by_email
from app.services.voter_verification import verify_identity

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


class VoterLoginRequest(BaseModel):
    citizen_id: str = Field(..., min_length=1, max_length=32)


class OfficialLoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return sanitize_string(v, max_length=255).lower()


def _set_token_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        TOKEN_COOKIE,
        token,
        httponly=True,
        secure=settings.ENVIRONMENT == "production",
        samesite="lax",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


def _client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None


def _public_user(user: dict[str, Any]) -> dict[str, Any]:
    actor = actor_from_user(user)
    return {
        "id": actor.id,
        "name": actor.name,
        "email": user.get("email"),
        "role": actor.role.value,
        "scope": scope_to_dict(actor.scope),
        "eligible_district_id": actor.eligible_district_id,
    }


@router.post("/voter/login")
async def voter_login(
    body: VoterLoginRequest,
    request: Request,
    response: Response,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
):
    """
    Verify a citizen id with the identity service and sign the voter in.

    The voter account is created on first login. The token carries the
    citizen id so that ballots can be hashed without another lookup.
    """
    ip_address = _client_ip(request)
    allowed, message = login_rate_limiter.check_login_allowed(body.citizen_id, ip_address)
    if not allowed:
        raise UnauthenticatedError(message)

    identity = verify_identity(body.citizen_id)
    if identity is None:
        login_rate_limiter.record_failed_attempt(body.citizen_id, ip_address)
        security_logger.log_login_attempt(
            "voter", "invalid-citizen-id", False, ip_address, "identity verification failed"
        )
        raise ValidationError("Invalid citizen ID format", errors={"citizen_id": "13 digits required"})

    user = await get_or_create_voter(conn, identity)
    login_rate_limiter.record_successful_login(body.citizen_id, ip_address)

    token = create_access_token(
        {
            "sub": user["id"],
            "role": user["role"],
            "citizen_id": identity.citizen_id,
            "eligible_district_id": identity.eligible_district_id,
        }
    )
    _set_token_cookie(response, token)
    security_logger.log_login_attempt("voter", user["id"], True, ip_address)

    return success_response(
        data={
            "user": _public_user(user),
            "identity": {
                "title_th": identity.title_th,
                "first_name_th": identity.first_name_th,
                "last_name_th": identity.last_name_th,
                "eligible_province": identity.eligible_province,
                "eligible_district_id": identity.eligible_district_id,
            },
            "access_token": token,
            "token_type": "bearer",
        }
    )


@router.post("/official/login")
async def official_login(
    body: OfficialLoginRequest,
    request: Request,
    response: Response,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
):
    """Email and password login for officials, rate limited per email and IP."""
    ip_address = _client_ip(request)
    allowed, message = login_rate_limiter.check_login_allowed(body.email, ip_address)
    if not allowed:
        security_logger.log_login_attempt("official", body.email, False, ip_address, "rate limited")
        raise UnauthenticatedError(message)

    user = await get_user_by_email(conn, body.email)
    if not user or not user.get("password_hash") or not verify_password(
        body.password, user["password_hash"]
    ):
        login_rate_limiter.record_failed_attempt(body.email, ip_address)
        security_logger.log_login_attempt(
            "official", body.email, False, ip_address, "invalid credentials"
        )
        raise UnauthenticatedError("Invalid credentials")

    login_rate_limiter.record_successful_login(body.email, ip_address)
    user.pop("password_hash", None)

    public_user = _public_user(user)
    token = create_access_token(
        {"sub": user["id"], "role": user["role"], **public_user["scope"]}
    )
    _set_token_cookie(response, token)
    security_logger.log_login_attempt("official", body.email, True, ip_address)

    return success_response(
        data={"user": public_user, "access_token": token, "token_type": "bearer"}
    )


@router.get("/me")
async def me(current_user: Annotated[dict, Depends(get_current_user)]):
    """Current user with role and scope."""
    return success_response(data=_public_user(current_user))


@router.post("/logout")
async def logout(response: Response):
    response.delete_cookie(TOKEN_COOKIE)
    return success_response(message="Logged out")

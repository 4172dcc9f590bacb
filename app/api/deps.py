"""API dependencies for authentication and authorization."""

from typing import Annotated, Any
from uuid import UUID

import asyncpg
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.database import get_db
from app.core.errors import ForbiddenError, UnauthenticatedError
from app.core.logging_config import security_logger
from app.core.security import decode_access_token
from app.services.scope import Actor, Permission, Role, build_scope
from app.services.users import get_user_by_id
from app.services.voter_verification import verify_identity

TOKEN_COOKIE = "token"

security = HTTPBearer(auto_error=False)


def _extract_token(
    request: Request, credentials: HTTPAuthorizationCredentials | None
) -> str | None:
    """Bearer header first, then the ``token`` cookie."""
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(TOKEN_COOKIE)


async def get_current_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
) -> dict[str, Any]:
    """
    Dependency to get the current authenticated user.

    Validates the JWT and reloads the user so role and scope changes take
    effect without re-login.
    """
    token = _extract_token(request, credentials)
    if not token:
        raise UnauthenticatedError()

    payload = decode_access_token(token)
    if payload is None or payload.get("sub") is None:
        raise UnauthenticatedError("Invalid authentication credentials")

    try:
        user_id = UUID(payload["sub"])
    except ValueError:
        raise UnauthenticatedError("Invalid authentication credentials") from None

    user = await get_user_by_id(conn, user_id)
    if user is None:
        raise UnauthenticatedError("User not found")
    return user


def actor_from_user(user: dict[str, Any]) -> Actor:
    """Build the service-layer caller from a user row."""
    role = Role(user["role"])
    eligible_district_id = None
    if role is Role.VOTER and user.get("citizen_id"):
        identity = verify_identity(user["citizen_id"])
        eligible_district_id = identity.eligible_district_id if identity else None

    return Actor(
        id=str(user["id"]),
        role=role,
        scope=build_scope(
            role,
            user.get("scope_region_id"),
            user.get("scope_province_id"),
            user.get("scope_district_id"),
        ),
        name=user.get("name"),
        citizen_id=user.get("citizen_id"),
        eligible_district_id=eligible_district_id,
    )


async def get_current_actor(
    user: Annotated[dict[str, Any], Depends(get_current_user)],
) -> Actor:
    return actor_from_user(user)


def require_permission(permission: Permission):
    """
    Dependency factory checking the static permission table.

    Usage:
        @router.post("/parties")
        async def create_party(actor: Annotated[Actor, Depends(require_permission(Permission.PARTY_CREATE))]):
            ...
    """

    async def permission_checker(
        request: Request,
        actor: Annotated[Actor, Depends(get_current_actor)],
    ) -> Actor:
        if not actor.can(permission):
            security_logger.log_unauthorized_access(
                resource=f"{request.method} {request.url.path}",
                user_id=actor.id,
                role=actor.role.value,
                reason=f"missing {permission.value}",
            )
            raise ForbiddenError(f"Permission required: {permission.value}")
        return actor

    return permission_checker


async def require_super_admin(
    request: Request,
    actor: Annotated[Actor, Depends(get_current_actor)],
) -> Actor:
    """Dependency for administrative operations outside the permission table."""
    if actor.role is not Role.SUPER_ADMIN:
        security_logger.log_unauthorized_access(
            resource=f"{request.method} {request.url.path}",
            user_id=actor.id,
            role=actor.role.value,
            reason="super_admin required",
        )
        raise ForbiddenError("Super admin access required")
    return actor

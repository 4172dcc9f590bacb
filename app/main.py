"""FastAPI application for the election backend."""

from contextlib import asynccontextmanager
import time
from typing import Any

import asyncpg
from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from app.api.routes import (
    auth,
    batches,
    candidates,
    elections,
    geographic,
    parties,
    results,
    stream,
    users,
    votes,
)
from app.core import database
from app.core.config import settings
from app.core.errors import ElectionError, UnauthenticatedError
from app.core.logging_config import get_logger, setup_logging
from app.core.responses import error_body, error_response_dict, success_response

setup_logging()
logger = get_logger(__name__)

ROUTERS = (
    auth.router,
    users.router,
    geographic.router,
    elections.router,
    parties.router,
    candidates.router,
    votes.router,
    batches.router,
    results.router,
    stream.router,
)

CORS_METHODS = ["GET", "POST", "PATCH", "DELETE", "OPTIONS"]


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if settings.ENVIRONMENT == "production":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the asyncpg pool on startup; tests inject their own connection."""
    logger.info(f"Election backend starting ({settings.ENVIRONMENT})")
    if settings.ENVIRONMENT != "test":
        await database.init_db_pool(settings)
    try:
        yield
    finally:
        if settings.ENVIRONMENT != "test":
            await database.close_db_pool()
        logger.info("Election backend stopped")


app = FastAPI(
    title="Election Backend",
    description="""
    Thai general election backend: voter and official sign-in, ballot casting
    (party list, constituency, referendum), district vote batch review and
    live results.

    Authenticate with `Authorization: Bearer <token>` or the `token` cookie
    set by `/auth/voter/login` and `/auth/official/login`.

    Every route is served under `/v1` and, as the latest version, at the root.
    """,
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(SecurityHeadersMiddleware)
if settings.ENVIRONMENT == "development":
    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=".*",
        allow_credentials=True,
        allow_methods=CORS_METHODS,
        allow_headers=["*"],
    )
else:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=CORS_METHODS,
        allow_headers=["Authorization", "Content-Type", "Accept", "Last-Event-ID"],
    )


# ============================================
# ERROR ENVELOPE
# ============================================


@app.exception_handler(ElectionError)
async def election_error_handler(request: Request, exc: ElectionError):
    response = error_response_dict(error_body(exc.message, exc.errors), exc.status_code)
    if isinstance(exc, UnauthenticatedError):
        response.headers["WWW-Authenticate"] = "Bearer"
    return response


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return error_response_dict(error_body(str(exc.detail)), exc.status_code)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Pydantic failures become ``{"body.field": "message"}`` errors."""
    errors = {
        ".".join(str(part) for part in error["loc"]): error["msg"] for error in exc.errors()
    }
    return error_response_dict(error_body("Validation failed", errors), 422)


@app.exception_handler(asyncpg.PostgresError)
async def database_error_handler(request: Request, exc: asyncpg.PostgresError):
    logger.error(f"Unhandled database error on {request.url.path}: {exc}", exc_info=True)
    return error_response_dict(error_body("Database error occurred"), 500)


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=True)
    return error_response_dict(error_body("An unexpected error occurred"), 500)


# ============================================
# ROUTES
# ============================================


v1_router = APIRouter(prefix="/v1")
for router in ROUTERS:
    v1_router.include_router(router)
app.include_router(v1_router)

for router in ROUTERS:
    app.include_router(router)


async def _database_check() -> dict[str, Any]:
    pool = database.get_pool()
    if pool is None:
        return {"status": "unhealthy", "message": "Database pool not initialized"}
    try:
        async with pool.acquire() as conn:
            await conn.fetchval("SELECT 1")
    except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
        logger.error(f"Health check database failure: {e}")
        return {"status": "unhealthy", "message": str(e)}
    return {
        "status": "healthy",
        "pool": {"size": pool.get_size(), "idle": pool.get_idle_size(), "max": pool.get_max_size()},
    }


@app.get("/health")
async def health_check():
    """200 when PostgreSQL answers, 503 otherwise."""
    checks = {"database": await _database_check()}
    healthy = all(check["status"] == "healthy" for check in checks.values())
    report = {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": time.time(),
        "checks": checks,
    }
    if not healthy:
        return error_response_dict(error_body("Service unhealthy", data=report), 503)
    return success_response(data=report)

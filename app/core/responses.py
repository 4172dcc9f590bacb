"""
Response envelope shared by every endpoint, success or error:
``{"success": bool, "data": ..., "message": str | None, "errors": dict | None}``.
"""

from datetime import date, datetime
from decimal import Decimal
import json
from typing import Any
from uuid import UUID

from fastapi import status
from fastapi.responses import JSONResponse


def _json_default(value: Any) -> Any:
    """Encode asyncpg row values (UUID, timestamps, NUMERIC) for JSON."""
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    raise TypeError(f"{type(value).__name__} is not JSON serializable")


def envelope(
    success: bool,
    data: Any = None,
    message: str | None = None,
    errors: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return {"success": success, "data": data, "message": message, "errors": errors}


def success_response(data: Any = None, message: str | None = None) -> dict[str, Any]:
    return envelope(True, data, message)


def paginated_response(
    items: list, page: int, limit: int, total: int, message: str | None = None
) -> dict[str, Any]:
    """Page of items plus the pagination block."""
    return success_response(
        data={
            "items": items,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": -(-total // limit) if limit else 0,
            },
        },
        message=message,
    )


def error_body(
    message: str, errors: dict[str, Any] | None = None, data: Any = None
) -> dict[str, Any]:
    return envelope(False, data, message, errors)


def error_response_dict(
    body: dict[str, Any], status_code: int = status.HTTP_400_BAD_REQUEST
) -> JSONResponse:
    """JSONResponse for exception handlers, where FastAPI does not encode the body."""
    return JSONResponse(status_code=status_code, content=json.loads(to_json(body)))


def to_json(data: Any) -> str:
    """Serialize a payload, such as a stream snapshot, with the shared encoding."""
    return json.dumps(data, default=_json_default, ensure_ascii=False)

"""Structured logging for the election backend."""

from datetime import UTC, datetime
import json
import logging
import sys
from typing import Any

from app.core.config import settings

# Keys that must never reach a log sink, whatever the caller passes.
REDACTED_FIELDS = frozenset({"citizen_id", "voter_hash", "password", "password_hash"})

_LEVELS = {
    "development": logging.DEBUG,
    "test": logging.WARNING,
    "production": logging.INFO,
}


def redact(fields: dict[str, Any]) -> dict[str, Any]:
    return {
        key: "[redacted]" if key in REDACTED_FIELDS else value
        for key, value in fields.items()
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per line, used in production."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "env": settings.ENVIRONMENT,
            "msg": record.getMessage(),
            "where": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        extra_fields = getattr(record, "extra_fields", None)
        if extra_fields:
            entry.update(redact(extra_fields))

        return json.dumps(entry, ensure_ascii=False, default=str)


class ConsoleFormatter(logging.Formatter):
    """Readable single-line format for development and tests."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)-7s [%(name)s] %(message)s",
            datefmt="%H:%M:%S",
        )


def setup_logging() -> None:
    """Install the stdout handler for the current environment."""
    level = _LEVELS.get(settings.ENVIRONMENT, logging.INFO)
    formatter: logging.Formatter = (
        JSONFormatter() if settings.ENVIRONMENT == "production" else ConsoleFormatter()
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)
    root.addHandler(handler)

    for noisy in ("uvicorn.access", "asyncpg"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class SecurityLogger:
    """
    Audit trail for logins, rejected permission/scope checks and vote batch
    transitions.

    Identifiers are user ids or official emails. Citizen ids and voter hashes
    are redacted if they are ever passed in.
    """

    def __init__(self) -> None:
        self.logger = get_logger("election.security")

    def _emit(self, level: int, message: str, event_type: str, **fields: Any) -> None:
        self.logger.log(
            level, message, extra={"extra_fields": {"event_type": event_type, **fields}}
        )

    def log_login_attempt(
        self,
        login_type: str,
        identifier: str,
        success: bool,
        ip_address: str | None = None,
        reason: str | None = None,
    ) -> None:
        outcome = "succeeded" if success else "failed"
        self._emit(
            logging.INFO if success else logging.WARNING,
            f"{login_type} login {outcome}: {identifier}",
            "login_attempt",
            login_type=login_type,
            identifier=identifier,
            success=success,
            ip_address=ip_address,
            failure_reason=None if success else reason,
        )

    def log_unauthorized_access(
        self,
        resource: str,
        user_id: str | None = None,
        role: str | None = None,
        reason: str | None = None,
    ) -> None:
        self._emit(
            logging.WARNING,
            f"Denied {resource} for {role or 'anonymous'} {user_id or ''}".rstrip(),
            "unauthorized_access",
            resource=resource,
            user_id=user_id,
            role=role,
            reason=reason,
        )

    def log_batch_transition(
        self,
        batch_id: str,
        action: str,
        performed_by: str,
        from_status: str | None,
        to_status: str | None,
    ) -> None:
        self._emit(
            logging.INFO,
            f"Vote batch {batch_id} {action} by {performed_by}",
            "batch_transition",
            batch_id=batch_id,
            action=action,
            performed_by=performed_by,
            from_status=from_status,
            to_status=to_status,
        )


security_logger = SecurityLogger()

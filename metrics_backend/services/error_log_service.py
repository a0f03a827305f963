"""
Error log service: best-effort audit of failed operations.

`record_error` never raises: a failure to write the audit row is logged
and dropped so it cannot mask the error being reported.
"""

import json
import logging
import traceback
import uuid
from dataclasses import dataclass
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from metrics_backend.models.error_log import ErrorLog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditTrail:
    """Who made the failing request, and with what body."""

    request_body: Any = None
    session_id: uuid.UUID | None = None
    user_id: uuid.UUID | None = None
    username: str | None = None

    @classmethod
    def from_auth(cls, auth: Any, request_body: Any = None) -> "AuditTrail":
        if auth is None:
            return cls(request_body=request_body)
        return cls(
            request_body=request_body,
            session_id=auth.session_id,
            user_id=auth.user_id,
            username=auth.username,
        )


def _serialize_body(body: Any) -> str:
    if body is None:
        return "{}"
    try:
        return json.dumps(body, default=str)
    except (TypeError, ValueError):
        return json.dumps(str(body))


def build_error_log(error: BaseException, audit: AuditTrail | None) -> ErrorLog:
    audit = audit or AuditTrail()
    return ErrorLog(
        message=str(error) or error.__class__.__name__,
        name=error.__class__.__name__,
        stack="".join(traceback.format_exception(error)),
        request_body=_serialize_body(audit.request_body),
        session_id=audit.session_id,
        user_id=audit.user_id,
        username=audit.username,
    )


async def record_error(
    db: AsyncSession,
    error: BaseException,
    audit: AuditTrail | None = None,
) -> None:
    """Roll back the current unit of work and persist an ErrorLog row."""
    try:
        await db.rollback()
        db.add(build_error_log(error, audit))
        await db.commit()
    except SQLAlchemyError:
        logger.exception("Failed to write error log for %s", error.__class__.__name__)
        await db.rollback()

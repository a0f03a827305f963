"""
Response envelope helpers & exception handlers.

Every handled outcome is returned with transport status 200; the
logical status travels in the body (`status`, `kind`).  Only unmatched
routes keep their transport-level 404.
"""

import logging
import math
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from metrics_backend.core import database
from metrics_backend.core.errors import ServiceError
from metrics_backend.schemas import HttpResult
from metrics_backend.services.error_log_service import AuditTrail, record_error
from metrics_backend.services.resource_service import (
    Failure,
    NotFound,
    QueriedResources,
    Result,
)
from metrics_backend.services.session_service import AuthContext

logger = logging.getLogger(__name__)

UNEXPECTED_ERROR_MESSAGE = "Unexpected error occurred"


def success(
    data: Any = None,
    *,
    auth: AuthContext | None = None,
    access_token: str = "",
    message: str = "Successful operation",
    total_documents: int = 0,
    pages: int = 0,
) -> HttpResult:
    if data is None:
        items: list[Any] = []
    elif isinstance(data, list):
        items = data
    else:
        items = [data]
    return HttpResult(
        access_token=auth.access_token if auth else access_token,
        data=items,
        kind="success",
        message=message,
        pages=pages,
        status=200,
        total_documents=total_documents,
    )


def error(
    status: int = 500,
    message: str = UNEXPECTED_ERROR_MESSAGE,
    *,
    access_token: str = "",
    trigger_logout: bool = False,
) -> HttpResult:
    return HttpResult(
        access_token=access_token,
        kind="error",
        message=message,
        status=status,
        trigger_logout=trigger_logout,
    )


def from_result(result: Result[Any], auth: AuthContext | None, *, limit: int | None = None) -> HttpResult:
    """Wrap a service `Result` in the envelope."""
    token = auth.access_token if auth else ""
    if isinstance(result, Failure):
        return error(result.status, result.message, access_token=token)
    if isinstance(result, NotFound):
        return success(auth=auth, message=result.message)
    if isinstance(result.data, QueriedResources):
        total = result.data.total_count
        return success(
            result.data.records,
            auth=auth,
            total_documents=total,
            pages=math.ceil(total / limit) if limit else 0,
        )
    return success(result.data, auth=auth)


def _render(result: HttpResult) -> JSONResponse:
    return JSONResponse(status_code=200, content=result.model_dump(mode="json", by_alias=True))


def _rotated_token(request: Request) -> str:
    return getattr(request.state, "access_token", "")


# ── Exception handlers ───────────────────────────────────────────────

def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
        return _render(
            error(
                exc.status,
                exc.message,
                access_token="" if exc.trigger_logout else _rotated_token(request),
                trigger_logout=exc.trigger_logout,
            )
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'] if part != 'body')}: {err['msg']}"
            for err in exc.errors()
        )
        return _render(error(400, f"Validation error: {details}", access_token=_rotated_token(request)))

    @app.exception_handler(PydanticValidationError)
    async def model_validation_handler(request: Request, exc: PydanticValidationError) -> JSONResponse:
        details = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        return _render(error(400, f"Validation error: {details}", access_token=_rotated_token(request)))

    @app.middleware("http")
    async def unexpected_error_middleware(request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            logger.exception("Unhandled error on %s %s", request.method, request.url.path)
            async with database.SessionLocal() as db:
                await record_error(db, exc, AuditTrail(request_body={"path": request.url.path}))
            return _render(error(access_token=_rotated_token(request)))

"""
Username / email registry controller.

`POST ""` seeds the registry row (normally created on first
registration); `POST /check` answers availability for a signed-in user.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from metrics_backend.controllers.envelope import from_result, success
from metrics_backend.controllers.resource_routes import request_body
from metrics_backend.core.database import get_db
from metrics_backend.core.errors import ConflictError
from metrics_backend.models.username_email_set import UsernameEmailSet
from metrics_backend.rbac.dependencies import require_session
from metrics_backend.schemas import CreateUsernameEmailSetRequest, HttpResult, UsernameEmailCheckRequest
from metrics_backend.services import resource_service, username_email_set_service
from metrics_backend.services.error_log_service import AuditTrail
from metrics_backend.services.session_service import AuthContext

router = APIRouter(prefix="/api/v1/username-email-set", tags=["Username/email registry"])


@router.post("", response_model=HttpResult)
async def create_registry(
    body: CreateUsernameEmailSetRequest,
    auth: AuthContext = Depends(require_session),
    db: AsyncSession = Depends(get_db),
):
    if await username_email_set_service.get_registry(db) is not None:
        raise ConflictError("Username/email registry already exists")
    result = await resource_service.create_resource(
        UsernameEmailSet,
        body.schema_.to_columns(),
        db,
        audit=AuditTrail.from_auth(auth, request_body(body)),
    )
    return from_result(result, auth)


@router.post("/check", response_model=HttpResult)
async def check_username_email(
    body: UsernameEmailCheckRequest,
    auth: AuthContext = Depends(require_session),
    db: AsyncSession = Depends(get_db),
):
    taken = await username_email_set_service.is_taken(
        db=db, username=body.fields.username, email=body.fields.email,
    )
    return success(taken, auth=auth)

"""Error log controller: read and prune the audit trail (Admin only)."""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from metrics_backend.controllers.envelope import from_result
from metrics_backend.controllers.resource_routes import get_query_descriptor, request_body
from metrics_backend.core.database import get_db
from metrics_backend.core.query import QueryDescriptor
from metrics_backend.models.error_log import ErrorLog
from metrics_backend.rbac.dependencies import require_roles
from metrics_backend.schemas import DeleteManyRequest, HttpResult
from metrics_backend.services import resource_service
from metrics_backend.services.error_log_service import AuditTrail
from metrics_backend.services.session_service import AuthContext

router = APIRouter(prefix="/api/v1/error-log", tags=["Error log"])

require_admin = require_roles("Admin")


@router.get("", response_model=HttpResult)
async def list_error_logs(
    auth: AuthContext = Depends(require_admin),
    query: QueryDescriptor = Depends(get_query_descriptor),
    db: AsyncSession = Depends(get_db),
):
    result = await resource_service.get_queried_resources(
        ErrorLog, query, db, audit=AuditTrail.from_auth(auth, query.model_dump(mode="json")),
    )
    return from_result(result, auth, limit=query.limit)


@router.delete("/delete-many", response_model=HttpResult)
async def delete_many_error_logs(
    body: DeleteManyRequest,
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await resource_service.delete_many_resources(
        ErrorLog, body.filter, db, audit=AuditTrail.from_auth(auth, request_body(body)),
    )
    return from_result(result, auth)


@router.get("/{resource_id}", response_model=HttpResult)
async def get_error_log(
    resource_id: uuid.UUID,
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await resource_service.get_resource_by_id(
        ErrorLog, resource_id, db, audit=AuditTrail.from_auth(auth),
    )
    return from_result(result, auth)


@router.delete("/{resource_id}", response_model=HttpResult)
async def delete_error_log(
    resource_id: uuid.UUID,
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await resource_service.delete_resource_by_id(
        ErrorLog, resource_id, db, audit=AuditTrail.from_auth(auth),
    )
    return from_result(result, auth)

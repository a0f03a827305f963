"""
User controller.

Any session may list and read users; creating and deleting users
requires Admin or Manager, bulk deletion requires Admin.  The password
hash is never part of a response.
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from metrics_backend.controllers.envelope import from_result
from metrics_backend.controllers.resource_routes import get_query_descriptor, request_body
from metrics_backend.core.database import get_db
from metrics_backend.core.query import QueryDescriptor
from metrics_backend.models.user import User
from metrics_backend.rbac.dependencies import require_roles, require_session
from metrics_backend.schemas import CreateUserRequest, DeleteManyRequest, HttpResult, UpdateRequest, UserUpdate
from metrics_backend.services import resource_service, user_service
from metrics_backend.services.error_log_service import AuditTrail
from metrics_backend.services.session_service import AuthContext
from metrics_backend.services.user_service import PASSWORD_EXCLUDED

router = APIRouter(prefix="/api/v1/user", tags=["Users"])


def _redacted(body: CreateUserRequest | UpdateRequest) -> dict:
    dumped = request_body(body)
    payload = dumped.get("schema") or dumped.get("documentUpdate", {}).get("fields") or {}
    if "password" in payload:
        payload["password"] = "***"
    return dumped


@router.get("", response_model=HttpResult)
async def list_users(
    auth: AuthContext = Depends(require_session),
    query: QueryDescriptor = Depends(get_query_descriptor),
    db: AsyncSession = Depends(get_db),
):
    result = await resource_service.get_queried_resources(
        User,
        query,
        db,
        audit=AuditTrail.from_auth(auth, query.model_dump(mode="json")),
        exclude=PASSWORD_EXCLUDED,
    )
    return from_result(result, auth, limit=query.limit)


@router.post("", response_model=HttpResult)
async def create_user(
    body: CreateUserRequest,
    auth: AuthContext = Depends(require_roles("Admin", "Manager")),
    db: AsyncSession = Depends(get_db),
):
    result = await user_service.create_user(
        body.schema_.to_columns(), db, audit=AuditTrail.from_auth(auth, _redacted(body)),
    )
    return from_result(result, auth)


@router.delete("/delete-many", response_model=HttpResult)
async def delete_many_users(
    body: DeleteManyRequest,
    auth: AuthContext = Depends(require_roles("Admin")),
    db: AsyncSession = Depends(get_db),
):
    result = await resource_service.delete_many_resources(
        User, body.filter, db, audit=AuditTrail.from_auth(auth, request_body(body)),
    )
    return from_result(result, auth)


@router.get("/{resource_id}", response_model=HttpResult)
async def get_user(
    resource_id: uuid.UUID,
    auth: AuthContext = Depends(require_session),
    db: AsyncSession = Depends(get_db),
):
    result = await resource_service.get_resource_by_id(
        User, resource_id, db, audit=AuditTrail.from_auth(auth), exclude=PASSWORD_EXCLUDED,
    )
    return from_result(result, auth)


@router.delete("/{resource_id}", response_model=HttpResult)
async def delete_user(
    resource_id: uuid.UUID,
    auth: AuthContext = Depends(require_roles("Admin", "Manager")),
    db: AsyncSession = Depends(get_db),
):
    result = await resource_service.delete_resource_by_id(
        User, resource_id, db, audit=AuditTrail.from_auth(auth),
    )
    return from_result(result, auth)


@router.patch("/{resource_id}", response_model=HttpResult)
async def update_user(
    resource_id: uuid.UUID,
    body: UpdateRequest,
    auth: AuthContext = Depends(require_session),
    db: AsyncSession = Depends(get_db),
):
    update = body.document_update
    fields = user_service.prepare_update(update, resource_id, auth)
    result = await resource_service.update_resource_by_id(
        User,
        resource_id,
        update.update_kind,
        update.update_operator,
        fields,
        db,
        audit=AuditTrail.from_auth(auth, _redacted(body)),
        exclude=PASSWORD_EXCLUDED,
        update_schema=UserUpdate,
        # hashed by prepare_update after the plain value was validated
        unvalidated=PASSWORD_EXCLUDED,
    )
    return from_result(result, auth)

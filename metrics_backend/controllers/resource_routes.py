"""
Resource router factory.

Every metrics resource exposes the same route set; `build_resource_router`
wires it for one model so each controller only declares what differs:

    GET    ""               queried list
    POST   ""               create            body: {schema: {...}}
    DELETE "/delete-many"   Admin only        body: {filter: {...}}
    GET    "/user"          caller's records  (when owner_field is set)
    GET    "/{resourceId}"
    DELETE "/{resourceId}"
    PATCH  "/{resourceId}"                    body: {documentUpdate: {...}}
"""

import uuid
from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from metrics_backend.core.database import get_db
from metrics_backend.core.query import QueryDescriptor, normalize_query, parse_query_string
from metrics_backend.controllers.envelope import from_result
from metrics_backend.models.base import Base
from metrics_backend.rbac.dependencies import require_roles, require_session
from metrics_backend.schemas import DeleteManyRequest, HttpResult, UpdateRequest
from metrics_backend.services import resource_service
from metrics_backend.services.error_log_service import AuditTrail
from metrics_backend.services.session_service import AuthContext


def get_query_descriptor(request: Request) -> QueryDescriptor:
    """Normalize the request's query string (absent → defaults)."""
    query_string = request.url.query
    return normalize_query(parse_query_string(query_string) if query_string else None)


def request_body(body: BaseModel | None) -> Any:
    return body.model_dump(mode="json", by_alias=True) if body is not None else None


def build_resource_router(
    *,
    prefix: str,
    tag: str,
    model: type[Base],
    create_request: type[BaseModel],
    update_schema: type[BaseModel],
    owner_field: str | None = None,
) -> APIRouter:
    router = APIRouter(prefix=prefix, tags=[tag])

    @router.get("", response_model=HttpResult)
    async def get_queried(
        auth: AuthContext = Depends(require_session),
        query: QueryDescriptor = Depends(get_query_descriptor),
        db: AsyncSession = Depends(get_db),
    ):
        result = await resource_service.get_queried_resources(
            model, query, db, audit=AuditTrail.from_auth(auth, query.model_dump(mode="json")),
        )
        return from_result(result, auth, limit=query.limit)

    @router.post("", response_model=HttpResult)
    async def create(
        body: create_request,  # type: ignore[valid-type]
        auth: AuthContext = Depends(require_session),
        db: AsyncSession = Depends(get_db),
    ):
        values = body.schema_.to_columns()
        if owner_field and values.get(owner_field) is None:
            values[owner_field] = auth.user_id
        result = await resource_service.create_resource(
            model, values, db, audit=AuditTrail.from_auth(auth, request_body(body)),
        )
        return from_result(result, auth)

    @router.delete("/delete-many", response_model=HttpResult)
    async def delete_many(
        body: DeleteManyRequest,
        auth: AuthContext = Depends(require_roles("Admin")),
        db: AsyncSession = Depends(get_db),
    ):
        result = await resource_service.delete_many_resources(
            model, body.filter, db, audit=AuditTrail.from_auth(auth, request_body(body)),
        )
        return from_result(result, auth)

    if owner_field:
        @router.get("/user", response_model=HttpResult)
        async def get_queried_by_user(
            auth: AuthContext = Depends(require_session),
            query: QueryDescriptor = Depends(get_query_descriptor),
            db: AsyncSession = Depends(get_db),
        ):
            result = await resource_service.get_queried_resources(
                model,
                query,
                db,
                audit=AuditTrail.from_auth(auth, query.model_dump(mode="json")),
                scope={owner_field: str(auth.user_id)},
            )
            return from_result(result, auth, limit=query.limit)

    @router.get("/{resource_id}", response_model=HttpResult)
    async def get_by_id(
        resource_id: uuid.UUID,
        auth: AuthContext = Depends(require_session),
        db: AsyncSession = Depends(get_db),
    ):
        result = await resource_service.get_resource_by_id(
            model, resource_id, db, audit=AuditTrail.from_auth(auth),
        )
        return from_result(result, auth)

    @router.delete("/{resource_id}", response_model=HttpResult)
    async def delete_by_id(
        resource_id: uuid.UUID,
        auth: AuthContext = Depends(require_session),
        db: AsyncSession = Depends(get_db),
    ):
        result = await resource_service.delete_resource_by_id(
            model, resource_id, db, audit=AuditTrail.from_auth(auth),
        )
        return from_result(result, auth)

    @router.patch("/{resource_id}", response_model=HttpResult)
    async def update_by_id(
        resource_id: uuid.UUID,
        body: UpdateRequest,
        auth: AuthContext = Depends(require_session),
        db: AsyncSession = Depends(get_db),
    ):
        update = body.document_update
        result = await resource_service.update_resource_by_id(
            model,
            resource_id,
            update.update_kind,
            update.update_operator,
            update.fields,
            db,
            audit=AuditTrail.from_auth(auth, request_body(body)),
            update_schema=update_schema,
        )
        return from_result(result, auth)

    return router

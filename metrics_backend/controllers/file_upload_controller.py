"""
File upload controller.

Files are posted as base64 inside the usual `{schema: {...}}` body and
stored as bytes; the owner is always the caller.
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from metrics_backend.controllers.envelope import from_result
from metrics_backend.controllers.resource_routes import get_query_descriptor, request_body
from metrics_backend.core.config import settings
from metrics_backend.core.database import get_db
from metrics_backend.core.errors import PayloadTooLargeError
from metrics_backend.core.query import QueryDescriptor
from metrics_backend.models.file_upload import FileUpload
from metrics_backend.rbac.dependencies import require_session
from metrics_backend.schemas import CreateFileUploadRequest, FileUploadUpdate, HttpResult, UpdateRequest
from metrics_backend.services import resource_service
from metrics_backend.services.error_log_service import AuditTrail
from metrics_backend.services.session_service import AuthContext

router = APIRouter(prefix="/api/v1/file-upload", tags=["File uploads"])

# upload bodies are not worth keeping in the error log
_UPLOAD_AUDIT_BODY = {"schema": {"uploadedFile": "<omitted>"}}


@router.get("", response_model=HttpResult)
async def list_uploads(
    auth: AuthContext = Depends(require_session),
    query: QueryDescriptor = Depends(get_query_descriptor),
    db: AsyncSession = Depends(get_db),
):
    result = await resource_service.get_queried_resources(
        FileUpload, query, db, audit=AuditTrail.from_auth(auth, query.model_dump(mode="json")),
    )
    return from_result(result, auth, limit=query.limit)


@router.post("", response_model=HttpResult)
async def upload_file(
    body: CreateFileUploadRequest,
    auth: AuthContext = Depends(require_session),
    db: AsyncSession = Depends(get_db),
):
    upload = body.schema_
    file_size = len(upload.uploaded_file)
    if file_size > settings.FILE_UPLOAD_MAX_BYTES:
        raise PayloadTooLargeError()

    values = upload.to_columns()
    values.update(
        uploaded_file=upload.uploaded_file,
        file_size=file_size,
        user_id=auth.user_id,
        username=auth.username,
    )
    result = await resource_service.create_resource(
        FileUpload, values, db, audit=AuditTrail.from_auth(auth, _UPLOAD_AUDIT_BODY),
    )
    return from_result(result, auth)


@router.get("/user", response_model=HttpResult)
async def list_own_uploads(
    auth: AuthContext = Depends(require_session),
    query: QueryDescriptor = Depends(get_query_descriptor),
    db: AsyncSession = Depends(get_db),
):
    result = await resource_service.get_queried_resources(
        FileUpload,
        query,
        db,
        audit=AuditTrail.from_auth(auth, query.model_dump(mode="json")),
        scope={"userId": str(auth.user_id)},
    )
    return from_result(result, auth, limit=query.limit)


@router.get("/{resource_id}", response_model=HttpResult)
async def get_upload(
    resource_id: uuid.UUID,
    auth: AuthContext = Depends(require_session),
    db: AsyncSession = Depends(get_db),
):
    result = await resource_service.get_resource_by_id(
        FileUpload, resource_id, db, audit=AuditTrail.from_auth(auth),
    )
    return from_result(result, auth)


@router.delete("/{resource_id}", response_model=HttpResult)
async def delete_upload(
    resource_id: uuid.UUID,
    auth: AuthContext = Depends(require_session),
    db: AsyncSession = Depends(get_db),
):
    result = await resource_service.delete_resource_by_id(
        FileUpload, resource_id, db, audit=AuditTrail.from_auth(auth),
    )
    return from_result(result, auth)


@router.patch("/{resource_id}", response_model=HttpResult)
async def update_upload(
    resource_id: uuid.UUID,
    body: UpdateRequest,
    auth: AuthContext = Depends(require_session),
    db: AsyncSession = Depends(get_db),
):
    update = body.document_update
    result = await resource_service.update_resource_by_id(
        FileUpload,
        resource_id,
        update.update_kind,
        update.update_operator,
        update.fields,
        db,
        audit=AuditTrail.from_auth(auth, request_body(body)),
        update_schema=FileUploadUpdate,
    )
    return from_result(result, auth)

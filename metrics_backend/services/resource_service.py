"""
Resource service: generic CRUD over any resource model.

Every operation returns a `Result`:

- `Success(data)`: the operation ran; `data` is the payload.
- `NotFound(message)`: the operation ran but matched nothing.
- `Failure(message, error, status)`: the operation failed.  The unit of
  work has been rolled back and an ErrorLog row written.

Errors outside the storage / validation families are not caught here;
they propagate to the HTTP layer.
"""

import logging
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from metrics_backend.core.errors import ConflictError, ServiceError, StorageError
from metrics_backend.core.filters import build_conditions, build_order_by, log_ignored_options
from metrics_backend.core.query import QueryDescriptor, projection_exclusions
from metrics_backend.models.base import Base
from metrics_backend.services.document_update import apply_update
from metrics_backend.services.error_log_service import AuditTrail, record_error

logger = logging.getLogger(__name__)

T = TypeVar("T")
Record = dict[str, Any]


# ── Results ──────────────────────────────────────────────────────────
@dataclass(frozen=True)
class Success(Generic[T]):
    data: T


@dataclass(frozen=True)
class NotFound:
    message: str = "Resource not found"


@dataclass(frozen=True)
class Failure:
    message: str
    error: BaseException | None = None
    status: int = 500


Result = Success[T] | NotFound | Failure


@dataclass(frozen=True)
class QueriedResources:
    records: list[Record] = field(default_factory=list)
    total_count: int = 0


async def _fail(
    db: AsyncSession,
    message: str,
    error: BaseException,
    audit: AuditTrail | None,
) -> Failure:
    if isinstance(error, ServiceError):
        status, message = error.status, error.message
    elif isinstance(error, PydanticValidationError):
        status, message = 400, f"Validation error: {error.error_count()} invalid field(s)"
    elif isinstance(error, IntegrityError):
        status = ConflictError.status
    else:
        status = StorageError.status
    logger.warning("%s: %s", message, error)
    await record_error(db, error, audit)
    return Failure(message=message, error=error, status=status)


_HANDLED = (ServiceError, PydanticValidationError, SQLAlchemyError)


# ── Create ───────────────────────────────────────────────────────────
async def create_resource(
    model: type[Base],
    values: Mapping[str, Any],
    db: AsyncSession,
    *,
    audit: AuditTrail | None = None,
    exclude: frozenset[str] = frozenset(),
) -> Result[Record]:
    try:
        instance = model(**values)
        db.add(instance)
        await db.flush()
        return Success(instance.to_record(exclude))
    except _HANDLED as exc:
        return await _fail(db, "Error creating resource", exc, audit)


# ── Read ─────────────────────────────────────────────────────────────
async def get_resource_by_id(
    model: type[Base],
    resource_id: uuid.UUID,
    db: AsyncSession,
    *,
    audit: AuditTrail | None = None,
    exclude: frozenset[str] = frozenset(),
) -> Result[Record]:
    try:
        instance = await db.get(model, resource_id)
        if instance is None:
            return NotFound()
        return Success(instance.to_record(exclude))
    except _HANDLED as exc:
        return await _fail(db, "Error getting resource by ID", exc, audit)


async def get_resource_by_field(
    model: type[Base],
    filter_: Mapping[str, Any],
    db: AsyncSession,
    *,
    audit: AuditTrail | None = None,
    exclude: frozenset[str] = frozenset(),
) -> Result[Record]:
    """Return the single record matching *filter_*.

    Zero matches and more than one match are both NotFound.
    """
    try:
        stmt = select(model).where(*build_conditions(model, filter_)).limit(2)
        instances = (await db.execute(stmt)).scalars().all()
        if len(instances) != 1:
            return NotFound()
        return Success(instances[0].to_record(exclude))
    except _HANDLED as exc:
        return await _fail(db, "Error getting resource by field", exc, audit)


async def get_queried_resources(
    model: type[Base],
    query: QueryDescriptor,
    db: AsyncSession,
    *,
    audit: AuditTrail | None = None,
    exclude: frozenset[str] = frozenset(),
    scope: Mapping[str, Any] | None = None,
) -> Result[QueriedResources]:
    """Run a normalized query.

    *scope* is an extra filter AND-ed with the caller's (e.g. restricting
    to the caller's own records).  The total is counted only for a new
    query or when the client has no cached total.
    """
    try:
        conditions: list[ColumnElement[bool]] = build_conditions(model, query.filter)
        if scope:
            conditions.extend(build_conditions(model, scope))
        log_ignored_options(query.options.model_dump())

        stmt = (
            select(model)
            .where(*conditions)
            .order_by(*build_order_by(model, query.sort))
            .offset(query.skip)
            .limit(query.limit)
        )
        instances = (await db.execute(stmt)).scalars().all()

        if query.body.new_query_flag or query.body.total_documents == 0:
            count_stmt = select(func.count()).select_from(model).where(*conditions)
            total_count = (await db.execute(count_stmt)).scalar_one()
        else:
            total_count = query.body.total_documents

        hidden = set(exclude) | projection_exclusions(query.projection)
        records = [instance.to_record(hidden) for instance in instances]
        return Success(QueriedResources(records=records, total_count=total_count))
    except _HANDLED as exc:
        return await _fail(db, "Error getting resources", exc, audit)


# ── Update ───────────────────────────────────────────────────────────
async def update_resource_by_id(
    model: type[Base],
    resource_id: uuid.UUID,
    update_kind: str,
    update_operator: str,
    fields: Mapping[str, Any],
    db: AsyncSession,
    *,
    audit: AuditTrail | None = None,
    exclude: frozenset[str] = frozenset(),
    update_schema: type[BaseModel] | None = None,
    unvalidated: frozenset[str] = frozenset(),
) -> Result[Record]:
    """Apply one document update operation to the row *resource_id*.

    When *update_schema* is given, the new value of every column the
    operation touched is validated against it before anything is
    flushed, whichever operator wrote it.  Columns in *unvalidated*
    are skipped; they must be checked by the caller.
    """
    try:
        instance = await db.get(model, resource_id)
        if instance is None:
            return NotFound()
        touched = apply_update(instance, update_kind, update_operator, fields)
        if update_schema is not None:
            update_schema.model_validate(
                {key: getattr(instance, key) for key in touched if key not in unvalidated}
            )
        await db.flush()
        return Success(instance.to_record(exclude))
    except _HANDLED as exc:
        return await _fail(db, "Error updating resource", exc, audit)


# ── Delete ───────────────────────────────────────────────────────────
async def delete_resource_by_id(
    model: type[Base],
    resource_id: uuid.UUID,
    db: AsyncSession,
    *,
    audit: AuditTrail | None = None,
) -> Result[bool]:
    try:
        result = await db.execute(delete(model).where(model.id == resource_id))
        await db.flush()
        if result.rowcount == 0:
            return NotFound()
        return Success(True)
    except _HANDLED as exc:
        return await _fail(db, "Error deleting resource", exc, audit)


async def delete_many_resources(
    model: type[Base],
    filter_: Mapping[str, Any],
    db: AsyncSession,
    *,
    audit: AuditTrail | None = None,
) -> Result[bool]:
    try:
        stmt = delete(model).where(*build_conditions(model, filter_))
        result = await db.execute(stmt.execution_options(synchronize_session=False))
        await db.flush()
        if result.rowcount == 0:
            return NotFound("Some resources not found")
        return Success(True)
    except _HANDLED as exc:
        return await _fail(db, "Error deleting resources", exc, audit)

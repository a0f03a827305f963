"""
User service: creation and update preparation.

Every path that stores a password hashes it first, and no path ever
returns the hash: records are rendered with `PASSWORD_EXCLUDED`.
"""

import uuid
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from metrics_backend.core.errors import ConflictError, ForbiddenError, ValidationError
from metrics_backend.core.security import hash_password
from metrics_backend.models.user import User
from metrics_backend.schemas import DocumentUpdate, UserUpdate
from metrics_backend.services import resource_service, username_email_set_service
from metrics_backend.services.error_log_service import AuditTrail
from metrics_backend.services.resource_service import Result, Success
from metrics_backend.services.session_service import AuthContext

PASSWORD_EXCLUDED = frozenset({"password"})
PRIVILEGED_ROLES = frozenset({"Admin", "Manager"})


async def username_or_email_exists(username: str, email: str, db: AsyncSession) -> bool:
    stmt = select(User.id).where(or_(User.username == username, User.email == email)).limit(1)
    result = await db.execute(stmt)
    return result.scalar_one_or_none() is not None


async def create_user(
    values: dict[str, Any],
    db: AsyncSession,
    *,
    audit: AuditTrail | None = None,
) -> Result[dict[str, Any]]:
    """Create a user and record its username/email in the registry.

    Raises ConflictError when the username or email is already in use.
    """
    if await username_or_email_exists(values["username"], values["email"], db):
        raise ConflictError("Username or email already exists")

    values = {**values, "password": hash_password(values["password"])}
    result = await resource_service.create_resource(User, values, db, audit=audit, exclude=PASSWORD_EXCLUDED)
    if isinstance(result, Success):
        await username_email_set_service.add_username_email(values["username"], values["email"], db)
    return result


def prepare_update(update: DocumentUpdate, resource_id: uuid.UUID, auth: AuthContext) -> dict[str, Any]:
    """
    Validate a user update and return the fields to apply.

    - Callers without Admin/Manager may only update themselves and may
      not touch their roles.
    - A `$rename` writes its targets, so they are checked like any
      other field.
    - A top-level `$set` is validated against `UserUpdate`.
    - A new password is hashed before it reaches the service layer.
    """
    fields = dict(update.fields)
    top_level = {k.split(".")[0] for k in fields}
    if update.update_operator == "$rename":
        top_level |= {str(target).split(".")[0] for target in fields.values()}
    if not PRIVILEGED_ROLES.intersection(auth.roles):
        if resource_id != auth.user_id or "roles" in top_level:
            raise ForbiddenError()

    if update.update_operator == "$set":
        UserUpdate.model_validate({k: v for k, v in fields.items() if "." not in k})
        if fields.get("password"):
            fields["password"] = hash_password(fields["password"])
    elif "password" in top_level:
        raise ValidationError("Validation error: password can only be changed with $set")
    return fields

"""
Username / email registry service.

A single `username_email_sets` row lists every username and email that
has been registered, so availability checks never scan `users`.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from metrics_backend.models.username_email_set import UsernameEmailSet
from metrics_backend.services.document_update import apply_update


async def get_registry(db: AsyncSession) -> UsernameEmailSet | None:
    stmt = select(UsernameEmailSet).order_by(UsernameEmailSet.created_at).limit(1)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def add_username_email(username: str, email: str, db: AsyncSession) -> UsernameEmailSet:
    """Push a newly registered username and email onto the registry."""
    registry = await get_registry(db)
    if registry is None:
        registry = UsernameEmailSet(username=[], email=[])
        db.add(registry)
    apply_update(registry, "array", "$addToSet", {"username": username, "email": email})
    await db.flush()
    return registry


async def is_taken(*, db: AsyncSession, username: str | None = None, email: str | None = None) -> bool:
    registry = await get_registry(db)
    if registry is None:
        return False
    if username is not None:
        return username in (registry.username or [])
    return email is not None and email in (registry.email or [])

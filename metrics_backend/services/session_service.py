"""
Session service: login sessions and per-request token rotation.

Every authenticated request presents the session's current access
token and receives a new one.  The session row keeps exactly one valid
token (`currently_active_token`); presenting any other token deletes
the session, so a replayed or leaked token ends the session for
everyone holding it.

Rotation is a compare-and-swap on the stored token, which makes two
concurrent requests with the same token resolve to one winner.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from jose import JWTError
from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from metrics_backend.core.errors import AuthError, SessionRefreshError
from metrics_backend.core.security import create_access_token, read_claims, verify_signature
from metrics_backend.models.error_log import ErrorLog
from metrics_backend.models.session import AuthSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthContext:
    """Identity of the caller, produced once per request."""

    access_token: str
    user_id: uuid.UUID
    username: str
    roles: tuple[str, ...]
    session_id: uuid.UUID


def _claims(user_id: uuid.UUID, username: str, roles: list[str] | tuple[str, ...], session_id: uuid.UUID) -> dict:
    return {
        "userId": str(user_id),
        "username": username,
        "roles": list(roles),
        "sessionId": str(session_id),
    }


# ── Lifecycle ────────────────────────────────────────────────────────

async def open_session(
    user_id: uuid.UUID,
    username: str,
    roles: list[str],
    address_ip: str,
    user_agent: str,
    db: AsyncSession,
) -> tuple[AuthSession, str]:
    """Create a session row and sign its first access token."""
    session = AuthSession(
        id=uuid.uuid4(),
        user_id=user_id,
        username=username,
        address_ip=address_ip,
        user_agent=user_agent,
    )
    token = create_access_token(_claims(user_id, username, roles, session.id))
    session.currently_active_token = token
    db.add(session)
    await db.flush()
    return session, token


async def get_live_session(session_id: uuid.UUID, db: AsyncSession) -> AuthSession | None:
    """Return the session unless it is missing or past its expiry."""
    stmt = select(AuthSession).where(
        AuthSession.id == session_id,
        AuthSession.expires_at > datetime.now(timezone.utc),
    ).execution_options(populate_existing=True)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def close_session(session_id: uuid.UUID, db: AsyncSession) -> bool:
    """Delete a session (logout).  Returns False if it was already gone."""
    result = await db.execute(delete(AuthSession).where(AuthSession.id == session_id))
    await db.flush()
    return result.rowcount > 0


async def _invalidate(session_id: uuid.UUID, db: AsyncSession) -> None:
    await db.execute(delete(AuthSession).where(AuthSession.id == session_id))
    await db.commit()
    logger.warning("Session %s invalidated after stale token was presented", session_id)


# ── Per-request rotation ─────────────────────────────────────────────

async def rotate_session(
    token: str | None,
    address_ip: str,
    user_agent: str,
    db: AsyncSession,
) -> AuthContext:
    """
    Validate *token* against its session and swap in a fresh one.

    Steps (each failure is terminal, nothing is retried):
      1. Token present.
      2. Signature valid (an expired token is fine).
      3. Claims decodable.
      4. Session exists and has not expired.
      5. Token is the session's current token; otherwise the session
         is deleted.
      6. New token persisted with a compare-and-swap and committed.
    """
    if not token:
        raise AuthError("Access token not found")

    if not verify_signature(token):
        logger.warning("Rejected access token with invalid signature")
        raise AuthError("Access token invalid")

    try:
        claims = read_claims(token)
        session_id = uuid.UUID(str(claims["sessionId"]))
        user_id = uuid.UUID(str(claims["userId"]))
        username = str(claims["username"])
        roles = tuple(claims.get("roles") or ())
    except (JWTError, KeyError, TypeError, ValueError):
        raise AuthError("Error decoding access token")

    try:
        session = await get_live_session(session_id, db)
    except SQLAlchemyError as exc:
        logger.exception("Session lookup failed for %s", session_id)
        raise SessionRefreshError() from exc
    if session is None:
        raise AuthError("Session expired")

    if session.currently_active_token != token:
        try:
            await _invalidate(session_id, db)
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.exception("Failed to invalidate session %s", session_id)
            raise SessionRefreshError() from exc
        raise AuthError("Session invalidated")

    new_token = create_access_token(_claims(user_id, username, roles, session_id))
    stmt = (
        update(AuthSession)
        .where(
            AuthSession.id == session_id,
            AuthSession.currently_active_token == token,
        )
        .values(
            currently_active_token=new_token,
            address_ip=address_ip,
            user_agent=user_agent,
            updated_at=datetime.now(timezone.utc),
        )
        .execution_options(synchronize_session=False)
    )
    try:
        result = await db.execute(stmt)
        if result.rowcount == 0:
            # a concurrent request rotated first
            await _invalidate(session_id, db)
            raise AuthError("Session invalidated")
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("Failed to persist rotated token for session %s", session_id)
        raise SessionRefreshError() from exc

    return AuthContext(
        access_token=new_token,
        user_id=user_id,
        username=username,
        roles=roles,
        session_id=session_id,
    )


# ── Housekeeping ─────────────────────────────────────────────────────

async def purge_expired_records(db: AsyncSession) -> tuple[int, int]:
    """Delete expired sessions and error logs.

    Returns (sessions_deleted, error_logs_deleted).
    """
    now = datetime.now(timezone.utc)
    sessions = await db.execute(delete(AuthSession).where(AuthSession.expires_at <= now))
    error_logs = await db.execute(delete(ErrorLog).where(ErrorLog.expires_at <= now))
    await db.commit()
    return sessions.rowcount, error_logs.rowcount

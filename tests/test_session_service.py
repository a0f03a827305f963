import asyncio
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt
from sqlalchemy import select, update
from sqlalchemy.exc import OperationalError

from metrics_backend.core.config import settings
from metrics_backend.core import enumerations
from metrics_backend.core.errors import AuthError, SessionRefreshError
from metrics_backend.models import AuthSession, ErrorLog
from metrics_backend import main
from metrics_backend.services import session_service


@pytest.fixture
async def opened(session_factory, create_user):
    """An open session: (session_id, first token)."""
    user_id = uuid.UUID(await create_user("erin"))
    async with session_factory() as db:
        session, token = await session_service.open_session(
            user_id, "erin", ["Employee"], "127.0.0.1", "pytest", db,
        )
        await db.commit()
    return session.id, token


async def _stored_token(session_factory, session_id) -> str | None:
    async with session_factory() as db:
        stmt = select(AuthSession.currently_active_token).where(AuthSession.id == session_id)
        return (await db.execute(stmt)).scalar_one_or_none()


async def _rotate(session_factory, token):
    async with session_factory() as db:
        return await session_service.rotate_session(token, "127.0.0.1", "pytest", db)


async def test_missing_token(session_factory):
    with pytest.raises(AuthError, match="Access token not found"):
        await _rotate(session_factory, None)


async def test_invalid_signature_leaves_session_untouched(session_factory, opened):
    session_id, token = opened
    claims = jwt.get_unverified_claims(token)
    forged = jwt.encode(claims, "not-the-secret", algorithm=settings.JWT_ALGORITHM)

    with pytest.raises(AuthError, match="Access token invalid") as exc_info:
        await _rotate(session_factory, forged)

    assert exc_info.value.trigger_logout
    assert await _stored_token(session_factory, session_id) == token


async def test_undecodable_claims(session_factory):
    token = jwt.encode({"sessionId": "nope"}, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
    with pytest.raises(AuthError, match="Error decoding access token"):
        await _rotate(session_factory, token)


async def test_rotation_replaces_stored_token(session_factory, opened):
    session_id, token = opened
    auth = await _rotate(session_factory, token)

    assert auth.access_token != token
    assert auth.session_id == session_id
    assert auth.username == "erin"
    assert auth.roles == ("Employee",)
    assert await _stored_token(session_factory, session_id) == auth.access_token


async def test_sequential_rotations(session_factory, opened):
    session_id, token = opened
    first = await _rotate(session_factory, token)
    second = await _rotate(session_factory, first.access_token)

    assert await _stored_token(session_factory, session_id) == second.access_token


async def test_expired_token_with_good_signature_still_rotates(session_factory, opened, monkeypatch):
    session_id, token = opened
    claims = jwt.get_unverified_claims(token)
    claims["exp"] = int((datetime.now(timezone.utc) - timedelta(minutes=5)).timestamp())
    expired = jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
    async with session_factory() as db:
        await db.execute(
            update(AuthSession).where(AuthSession.id == session_id).values(currently_active_token=expired)
        )
        await db.commit()

    auth = await _rotate(session_factory, expired)
    assert await _stored_token(session_factory, session_id) == auth.access_token


async def test_stale_token_deletes_session(session_factory, opened):
    session_id, token = opened
    await _rotate(session_factory, token)

    with pytest.raises(AuthError, match="Session invalidated"):
        await _rotate(session_factory, token)

    async with session_factory() as db:
        assert await session_service.get_live_session(session_id, db) is None
    with pytest.raises(AuthError, match="Session expired"):
        await _rotate(session_factory, token)


async def test_failed_invalidation_is_a_refresh_error(session_factory, opened, monkeypatch):
    _, token = opened
    await _rotate(session_factory, token)

    async def _broken(*args, **kwargs):
        raise OperationalError("DELETE", {}, Exception("disk I/O error"))

    monkeypatch.setattr(session_service, "_invalidate", _broken)
    with pytest.raises(SessionRefreshError):
        await _rotate(session_factory, token)


async def test_expired_session(session_factory, opened):
    session_id, token = opened
    async with session_factory() as db:
        await db.execute(
            update(AuthSession)
            .where(AuthSession.id == session_id)
            .values(expires_at=datetime.now(timezone.utc) - timedelta(seconds=1))
        )
        await db.commit()

    with pytest.raises(AuthError, match="Session expired"):
        await _rotate(session_factory, token)


async def test_close_session(session_factory, opened):
    session_id, token = opened
    async with session_factory() as db:
        assert await session_service.close_session(session_id, db) is True
        await db.commit()
    async with session_factory() as db:
        assert await session_service.close_session(session_id, db) is False


async def test_purge_expired_records(session_factory, opened):
    session_id, _ = opened
    past = datetime.now(timezone.utc) - timedelta(hours=1)
    async with session_factory() as db:
        db.add(ErrorLog(message="old", name="RuntimeError", expires_at=past))
        db.add(ErrorLog(message="fresh", name="RuntimeError"))
        await db.execute(update(AuthSession).where(AuthSession.id == session_id).values(expires_at=past))
        await db.commit()

    async with session_factory() as db:
        assert await session_service.purge_expired_records(db) == (1, 1)
    async with session_factory() as db:
        remaining = (await db.execute(select(ErrorLog.message))).scalars().all()
    assert remaining == ["fresh"]


async def test_sweep_survives_unexpected_errors(session_factory, monkeypatch):
    calls = []

    async def _purge(db):
        calls.append(db)
        if len(calls) == 1:
            raise RuntimeError("boom")
        if len(calls) == 2:
            return 0, 0
        raise asyncio.CancelledError()

    monkeypatch.setattr(main, "purge_expired_records", _purge)
    with pytest.raises(asyncio.CancelledError):
        await main.sweep_expired_records(0)
    assert len(calls) == 3


def test_enumerations_load_from_package_data():
    enumerations.load_enumerations.cache_clear()
    assert "All Locations" in enumerations.values("allStoreLocations")

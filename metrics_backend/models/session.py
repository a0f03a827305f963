"""
Auth session model: one row per login.

The row is the source of truth for whether an access token is still
usable: only `currently_active_token` is accepted, and the row stops
being visible once `expires_at` has passed.  Expired rows are removed
by the periodic sweep in `session_service.purge_expired_records`.
"""

import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from metrics_backend.core.config import settings
from metrics_backend.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


def _session_expiry() -> datetime:
    return datetime.now(timezone.utc) + timedelta(hours=settings.SESSION_EXPIRE_HOURS)


class AuthSession(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "auth_sessions"

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    username: Mapped[str] = mapped_column(String(20), nullable=False)
    address_ip: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    user_agent: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    currently_active_token: Mapped[str] = mapped_column(Text, nullable=False, default="")
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_session_expiry,
        nullable=False,
    )

    __table_args__ = (
        Index("ix_auth_sessions_expires_at", "expires_at"),
    )

    def __repr__(self) -> str:
        return f"<AuthSession {self.id} user={self.username}>"

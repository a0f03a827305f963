"""
Error log: audit trail for failed operations.

Rows are written best-effort from the service layer and the HTTP
middleware and expire after `ERROR_LOG_EXPIRE_HOURS`.
"""

import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from metrics_backend.core.config import settings
from metrics_backend.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


def _error_log_expiry() -> datetime:
    return datetime.now(timezone.utc) + timedelta(hours=settings.ERROR_LOG_EXPIRE_HOURS)


class ErrorLog(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "error_logs"
    __text_search_fields__ = ("message", "name", "username")

    message: Mapped[str] = mapped_column(Text, nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    stack: Mapped[str] = mapped_column(Text, nullable=False, default="")
    request_body: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    session_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    user_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True, index=True)
    username: Mapped[str | None] = mapped_column(String(20), nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_error_log_expiry,
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<ErrorLog {self.name}: {self.message[:40]}>"

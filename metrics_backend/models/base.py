"""
Declarative base & shared mixins for all models.

Every resource table gets:
- A UUID primary key (generated server-side via `uuid4`).
- `created_at` / `updated_at` timestamps (UTC, auto-managed).

`Base.to_record` renders a row the way the API returns it: camelCase
keys, UUIDs and datetimes as strings, bytes as base64.
"""

import base64
import uuid
from datetime import datetime, timezone
from typing import Any, ClassVar

from pydantic.alias_generators import to_camel
from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """SQLAlchemy declarative base: all models inherit from this."""

    # Columns searched by a `$text` filter.
    __text_search_fields__: ClassVar[tuple[str, ...]] = ()

    def to_record(self, exclude: set[str] | frozenset[str] = frozenset()) -> dict[str, Any]:
        record: dict[str, Any] = {}
        for column in self.__table__.columns:
            key = to_camel(column.key)
            if key in exclude or column.key in exclude:
                continue
            record[key] = _render(getattr(self, column.key))
        return record


def _render(value: Any) -> Any:
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()
    if isinstance(value, bytes):
        return base64.b64encode(value).decode("ascii")
    return value


class TimestampMixin:
    """Adds created_at / updated_at to any model that inherits it."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )


class UUIDPrimaryKeyMixin:
    """Adds a UUID `id` primary key to any model that inherits it."""

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
    )

"""
User model.

Design decisions:
- Roles are a small fixed set (Admin / Employee / Manager) stored as a
  JSON list on the row; no join table is needed.
- `password` holds the bcrypt hash and is never rendered by the API.
- Profile fields are optional so a user can be registered with only
  the credential fields and completed later.
"""

import uuid

from sqlalchemy import JSON, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from metrics_backend.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class User(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "users"
    __text_search_fields__ = ("username", "email", "first_name", "last_name", "city", "job_position")

    username: Mapped[str] = mapped_column(String(20), unique=True, index=True, nullable=False)
    email: Mapped[str] = mapped_column(String(256), unique=True, index=True, nullable=False)
    password: Mapped[str] = mapped_column(String(512), nullable=False)
    roles: Mapped[list[str]] = mapped_column(JSON, default=lambda: ["Employee"], nullable=False)

    # ── Profile ──────────────────────────────────────────────────────
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    address_line: Mapped[str | None] = mapped_column(String(256), nullable=True)
    city: Mapped[str | None] = mapped_column(String(75), nullable=True)
    province: Mapped[str | None] = mapped_column(String(64), nullable=True)
    state: Mapped[str | None] = mapped_column(String(64), nullable=True)
    country: Mapped[str | None] = mapped_column(String(64), nullable=True)
    postal_code: Mapped[str | None] = mapped_column(String(16), nullable=True)
    department: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    job_position: Mapped[str | None] = mapped_column(String(64), nullable=True)
    store_location: Mapped[str | None] = mapped_column(String(32), nullable=True, index=True)
    org_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    parent_org_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    profile_picture_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    file_upload_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<User {self.username}>"

from sqlalchemy import JSON
from sqlalchemy.orm import Mapped, mapped_column

from metrics_backend.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class UsernameEmailSet(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Registry of every username and email ever registered.

    A single row is expected; registration appends to both lists.
    """

    __tablename__ = "username_email_sets"

    username: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    email: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

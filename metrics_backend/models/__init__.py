"""
Models package: import every model so SQLAlchemy's Base.metadata
knows about all tables (critical for `create_all` / Alembic).
"""

from metrics_backend.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from metrics_backend.models.user import User
from metrics_backend.models.session import AuthSession
from metrics_backend.models.file_upload import FileUpload
from metrics_backend.models.metrics import (
    CustomerMetrics,
    FinancialMetrics,
    ProductMetrics,
    RepairMetrics,
)
from metrics_backend.models.error_log import ErrorLog
from metrics_backend.models.username_email_set import UsernameEmailSet

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "User",
    "AuthSession",
    "FileUpload",
    "FinancialMetrics",
    "ProductMetrics",
    "RepairMetrics",
    "CustomerMetrics",
    "ErrorLog",
    "UsernameEmailSet",
]

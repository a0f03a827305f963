"""
Metrics models.

Each metrics kind keeps its yearly → monthly → daily breakdown in a
single JSON column; the surrounding columns are the ones queries
filter on (store location, category, owner).
"""

import uuid
from typing import Any

from sqlalchemy import JSON, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from metrics_backend.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class FinancialMetrics(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "financial_metrics"
    __text_search_fields__ = ("store_location",)

    store_location: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    financial_metrics: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)


class ProductMetrics(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "product_metrics"
    __text_search_fields__ = ("name", "store_location")

    name: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    store_location: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    yearly_metrics: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)


class RepairMetrics(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "repair_metrics"
    __text_search_fields__ = ("metric_category", "store_location")

    metric_category: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    store_location: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    yearly_metrics: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)


class CustomerMetrics(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "customer_metrics"
    __text_search_fields__ = ("store_location",)

    store_location: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    customer_metrics: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)

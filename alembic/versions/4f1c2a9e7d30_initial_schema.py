"""initial schema: users, sessions, metrics, uploads, error logs

Revision ID: 4f1c2a9e7d30
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "4f1c2a9e7d30"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("username", sa.String(length=20), nullable=False),
        sa.Column("email", sa.String(length=256), nullable=False),
        sa.Column("password", sa.String(length=512), nullable=False),
        sa.Column("roles", sa.JSON(), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=True),
        sa.Column("last_name", sa.String(length=100), nullable=True),
        sa.Column("address_line", sa.String(length=256), nullable=True),
        sa.Column("city", sa.String(length=75), nullable=True),
        sa.Column("province", sa.String(length=64), nullable=True),
        sa.Column("state", sa.String(length=64), nullable=True),
        sa.Column("country", sa.String(length=64), nullable=True),
        sa.Column("postal_code", sa.String(length=16), nullable=True),
        sa.Column("department", sa.String(length=64), nullable=True),
        sa.Column("job_position", sa.String(length=64), nullable=True),
        sa.Column("store_location", sa.String(length=32), nullable=True),
        sa.Column("org_id", sa.Integer(), nullable=True),
        sa.Column("parent_org_id", sa.Integer(), nullable=True),
        sa.Column("profile_picture_url", sa.String(length=512), nullable=True),
        sa.Column("file_upload_id", sa.Uuid(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_department", "users", ["department"])
    op.create_index("ix_users_store_location", "users", ["store_location"])

    op.create_table(
        "auth_sessions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("username", sa.String(length=20), nullable=False),
        sa.Column("address_ip", sa.String(length=64), nullable=False),
        sa.Column("user_agent", sa.String(length=512), nullable=False),
        sa.Column("currently_active_token", sa.Text(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_auth_sessions_user_id", "auth_sessions", ["user_id"])
    op.create_index("ix_auth_sessions_expires_at", "auth_sessions", ["expires_at"])

    op.create_table(
        "file_uploads",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("username", sa.String(length=20), nullable=False),
        sa.Column("uploaded_file", sa.LargeBinary(), nullable=False),
        sa.Column("file_extension", sa.String(length=8), nullable=False),
        sa.Column("file_name", sa.String(length=256), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column("file_mime_type", sa.String(length=128), nullable=False),
        sa.Column("file_encoding", sa.String(length=32), nullable=False),
        sa.Column("associated_document_id", sa.Uuid(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_file_uploads_user_id", "file_uploads", ["user_id"])
    op.create_index("ix_file_uploads_associated_document_id", "file_uploads", ["associated_document_id"])

    op.create_table(
        "financial_metrics",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("store_location", sa.String(length=32), nullable=False),
        sa.Column("financial_metrics", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_financial_metrics_store_location", "financial_metrics", ["store_location"])

    op.create_table(
        "product_metrics",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=64), nullable=False),
        sa.Column("store_location", sa.String(length=32), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=True),
        sa.Column("yearly_metrics", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_product_metrics_name", "product_metrics", ["name"])
    op.create_index("ix_product_metrics_store_location", "product_metrics", ["store_location"])
    op.create_index("ix_product_metrics_user_id", "product_metrics", ["user_id"])

    op.create_table(
        "repair_metrics",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("metric_category", sa.String(length=64), nullable=False),
        sa.Column("store_location", sa.String(length=32), nullable=False),
        sa.Column("yearly_metrics", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_repair_metrics_metric_category", "repair_metrics", ["metric_category"])
    op.create_index("ix_repair_metrics_store_location", "repair_metrics", ["store_location"])

    op.create_table(
        "customer_metrics",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("store_location", sa.String(length=32), nullable=False),
        sa.Column("customer_metrics", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_customer_metrics_store_location", "customer_metrics", ["store_location"])

    op.create_table(
        "error_logs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("stack", sa.Text(), nullable=False),
        sa.Column("request_body", sa.Text(), nullable=False),
        sa.Column("session_id", sa.Uuid(), nullable=True),
        sa.Column("user_id", sa.Uuid(), nullable=True),
        sa.Column("username", sa.String(length=20), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_error_logs_user_id", "error_logs", ["user_id"])
    op.create_index("ix_error_logs_expires_at", "error_logs", ["expires_at"])

    op.create_table(
        "username_email_sets",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("username", sa.JSON(), nullable=False),
        sa.Column("email", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    op.drop_table("username_email_sets")
    op.drop_index("ix_error_logs_expires_at", table_name="error_logs")
    op.drop_index("ix_error_logs_user_id", table_name="error_logs")
    op.drop_table("error_logs")
    op.drop_index("ix_customer_metrics_store_location", table_name="customer_metrics")
    op.drop_table("customer_metrics")
    op.drop_index("ix_repair_metrics_store_location", table_name="repair_metrics")
    op.drop_index("ix_repair_metrics_metric_category", table_name="repair_metrics")
    op.drop_table("repair_metrics")
    op.drop_index("ix_product_metrics_user_id", table_name="product_metrics")
    op.drop_index("ix_product_metrics_store_location", table_name="product_metrics")
    op.drop_index("ix_product_metrics_name", table_name="product_metrics")
    op.drop_table("product_metrics")
    op.drop_index("ix_financial_metrics_store_location", table_name="financial_metrics")
    op.drop_table("financial_metrics")
    op.drop_index("ix_file_uploads_associated_document_id", table_name="file_uploads")
    op.drop_index("ix_file_uploads_user_id", table_name="file_uploads")
    op.drop_table("file_uploads")
    op.drop_index("ix_auth_sessions_expires_at", table_name="auth_sessions")
    op.drop_index("ix_auth_sessions_user_id", table_name="auth_sessions")
    op.drop_table("auth_sessions")
    op.drop_index("ix_users_store_location", table_name="users")
    op.drop_index("ix_users_department", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_index("ix_users_username", table_name="users")
    op.drop_table("users")

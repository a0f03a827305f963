"""
Authentication service.

Handles:
- Login: credential check, session creation, first access token
- Registration: self-service account creation with the Employee role
- Logout: session deletion

All business logic lives here; controllers call service methods
and return the result.
"""

import logging
import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from metrics_backend.core.errors import AuthError
from metrics_backend.core.security import verify_password
from metrics_backend.models.metrics import FinancialMetrics
from metrics_backend.models.user import User
from metrics_backend.schemas import RegisterSchema
from metrics_backend.services import session_service, user_service
from metrics_backend.services.error_log_service import AuditTrail
from metrics_backend.services.resource_service import Result

logger = logging.getLogger(__name__)

ALL_LOCATIONS = "All Locations"


async def _get_all_locations_financials(db: AsyncSession) -> FinancialMetrics | None:
    stmt = (
        select(FinancialMetrics)
        .where(FinancialMetrics.store_location == ALL_LOCATIONS)
        .order_by(FinancialMetrics.created_at.desc())
        .limit(1)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


# ── Login ────────────────────────────────────────────────────────────

async def authenticate_user(
    username: str,
    password: str,
    address_ip: str,
    user_agent: str,
    db: AsyncSession,
) -> dict[str, Any]:
    """
    Validate credentials, open a session, and return the first access
    token with the user's record and the all-locations financial
    metrics (None when none exist yet).
    """
    result = await db.execute(select(User).where(User.username == username))
    user = result.scalar_one_or_none()

    if user is None or not verify_password(password, user.password):
        logger.warning("Failed login attempt for username %r", username)
        raise AuthError("Invalid username or password")

    _, access_token = await session_service.open_session(
        user.id, user.username, list(user.roles), address_ip, user_agent, db,
    )
    financials = await _get_all_locations_financials(db)

    return {
        "access_token": access_token,
        "user_document": user.to_record(user_service.PASSWORD_EXCLUDED),
        "financial_metrics_document": financials.to_record() if financials else None,
    }


# ── Registration ─────────────────────────────────────────────────────

async def register_user(schema: RegisterSchema, db: AsyncSession) -> Result[dict[str, Any]]:
    values = schema.to_columns()
    values["roles"] = ["Employee"]
    return await user_service.create_user(
        values,
        db,
        audit=AuditTrail(request_body=schema.model_dump(mode="json", by_alias=True, exclude={"password"})),
    )


# ── Logout ───────────────────────────────────────────────────────────

async def logout(session_id: uuid.UUID, db: AsyncSession) -> bool:
    return await session_service.close_session(session_id, db)

"""
Auth controller: login, registration, logout & availability check.

Login, register and check are PUBLIC (no session dependency).
Logout requires a valid session.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from metrics_backend.controllers.envelope import from_result, success
from metrics_backend.core.database import get_db
from metrics_backend.rbac.dependencies import client_address, require_session
from metrics_backend.schemas import HttpResult, LoginRequest, RegisterRequest, UsernameEmailCheck
from metrics_backend.services import auth_service, username_email_set_service
from metrics_backend.services.resource_service import Success
from metrics_backend.services.session_service import AuthContext

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/login", response_model=HttpResult)
async def login(body: LoginRequest, request: Request, db: AsyncSession = Depends(get_db)):
    """Authenticate with username + password → user record and first access token."""
    credentials = body.schema_
    outcome = await auth_service.authenticate_user(
        credentials.username,
        credentials.password,
        client_address(request),
        request.headers.get("user-agent", ""),
        db,
    )
    return success(
        {
            "userDocument": outcome["user_document"],
            "financialMetricsDocument": outcome["financial_metrics_document"],
        },
        access_token=outcome["access_token"],
    )


@router.post("/register", response_model=HttpResult)
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db)):
    result = await auth_service.register_user(body.schema_, db)
    if isinstance(result, Success):
        return success(True)
    return from_result(result, None)


@router.post("/logout", response_model=HttpResult)
async def logout(
    auth: AuthContext = Depends(require_session),
    db: AsyncSession = Depends(get_db),
):
    """Delete the caller's session; the rotated token is not returned."""
    await auth_service.logout(auth.session_id, db)
    return success(True, message="Logged out")


@router.get("/check", response_model=HttpResult)
async def check(
    username: str | None = None,
    email: str | None = None,
    db: AsyncSession = Depends(get_db),
):
    """Whether a username or email is already taken."""
    lookup = UsernameEmailCheck(username=username, email=email)
    taken = await username_email_set_service.is_taken(db=db, username=lookup.username, email=lookup.email)
    return success(taken)

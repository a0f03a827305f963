"""
RBAC dependencies: session enforcement and role checks.

`require_session` rotates the caller's access token and yields an
`AuthContext`; every /api/v1 route depends on it.

`require_roles` is a *dependency factory*: call it with one or more
role names and it returns a FastAPI dependency that:

1. Resolves the session (via `require_session`).
2. Checks that the caller holds at least one of the roles.
3. Raises 403 on failure, with NO details about which roles would
   have passed.

Usage in a route:
    @router.delete("/delete-many")
    async def delete_many(auth: AuthContext = Depends(require_roles("Admin"))): ...
"""

import logging

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from metrics_backend.core.database import get_db
from metrics_backend.core.errors import ForbiddenError
from metrics_backend.core.security import oauth2_scheme
from metrics_backend.services import session_service
from metrics_backend.services.session_service import AuthContext

logger = logging.getLogger("rbac")


def client_address(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else ""


async def require_session(
    request: Request,
    token: str | None = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> AuthContext:
    auth = await session_service.rotate_session(
        token,
        client_address(request),
        request.headers.get("user-agent", ""),
        db,
    )
    # exception handlers read this to hand the new token back on errors
    request.state.access_token = auth.access_token
    return auth


class require_roles:
    """
    Dependency factory.

    Can be used as:
        Depends(require_roles("Admin"))
        Depends(require_roles("Admin", "Manager"))
    """

    def __init__(self, *roles: str):
        self.allowed_roles = set(roles)

    async def __call__(self, auth: AuthContext = Depends(require_session)) -> AuthContext:
        if not self.allowed_roles.intersection(auth.roles):
            logger.warning(
                "Role check failed for user %s; required one of: %s, held: %s",
                auth.username,
                sorted(self.allowed_roles),
                list(auth.roles),
            )
            raise ForbiddenError()
        return auth

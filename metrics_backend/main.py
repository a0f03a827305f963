"""
FastAPI application factory.

Assembles the app, registers all routers and exception handlers, and
wires up lifecycle events.  Database schema is managed by Alembic, NOT
create_all.
"""

import asyncio
import contextlib
import logging

from fastapi import FastAPI

from metrics_backend.controllers.auth_controller import router as auth_router
from metrics_backend.controllers.envelope import register_exception_handlers
from metrics_backend.controllers.error_log_controller import router as error_log_router
from metrics_backend.controllers.file_upload_controller import router as file_upload_router
from metrics_backend.controllers.metrics_controller import router as metrics_router
from metrics_backend.controllers.user_controller import router as user_router
from metrics_backend.controllers.username_email_set_controller import router as username_email_set_router
from metrics_backend.core import database
from metrics_backend.core.config import settings
from metrics_backend.models import Base  # noqa: F401 (registers all models)
from metrics_backend.services.session_service import purge_expired_records

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


async def sweep_expired_records(interval: float) -> None:
    """Delete expired sessions and error logs every *interval* seconds."""
    while True:
        await asyncio.sleep(interval)
        try:
            async with database.SessionLocal() as session:
                sessions, error_logs = await purge_expired_records(session)
        except Exception:
            logger.exception("Expired-record sweep failed")
            continue
        if sessions or error_logs:
            logger.info("Swept %d expired session(s), %d error log(s)", sessions, error_logs)


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    register_exception_handlers(app)

    # ── Register routers ─────────────────────────────────────────────
    app.include_router(auth_router)
    app.include_router(user_router)
    app.include_router(metrics_router)
    app.include_router(file_upload_router)
    app.include_router(error_log_router)
    app.include_router(username_email_set_router)

    # ── Startup / Shutdown ───────────────────────────────────────────
    @app.on_event("startup")
    async def on_startup() -> None:
        """Start the expired-record sweep.

        NOTE: Database schema is managed by Alembic migrations.
        Run `alembic upgrade head` before starting the app.
        """
        app.state.sweeper = asyncio.create_task(
            sweep_expired_records(settings.EXPIRED_RECORD_SWEEP_SECONDS)
        )
        logger.info("Expired-record sweep every %ss.", settings.EXPIRED_RECORD_SWEEP_SECONDS)

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        sweeper = getattr(app.state, "sweeper", None)
        if sweeper is not None:
            sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweeper
        await database.engine.dispose()
        logger.info("Database engine disposed.")

    # ── Health check ─────────────────────────────────────────────────
    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok"}

    return app


app = create_app()

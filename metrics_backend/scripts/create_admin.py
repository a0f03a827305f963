"""
One-time bootstrap script, creates the first Admin user.

Usage:
    python -m metrics_backend.scripts.create_admin

You only need this ONCE. After the first admin exists, further users
are created via POST /api/v1/user or self-registration.
"""

import asyncio
import getpass

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from metrics_backend.core.config import settings
from metrics_backend.core.security import hash_password
from metrics_backend.models.user import User
from metrics_backend.schemas import PASSWORD_REGEX, USERNAME_REGEX
from metrics_backend.services.username_email_set_service import add_username_email


async def create_admin() -> None:
    engine = create_async_engine(settings.DATABASE_URL, echo=False)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)

    async with session_factory() as session:
        # ── Collect input ────────────────────────────────────────────
        print("\n🔧  Metrics Backend: First Admin Setup\n")
        username = input("  Admin username: ").strip()
        email = input("  Admin email:    ").strip()
        password = getpass.getpass("  Password:       ")
        confirm = getpass.getpass("  Confirm:        ")

        if password != confirm:
            print("\n❌  Passwords do not match.")
            await engine.dispose()
            return

        if not username or not email or not password:
            print("\n❌  All fields are required.")
            await engine.dispose()
            return

        if not USERNAME_REGEX.match(username) or not PASSWORD_REGEX.match(password):
            print("\n❌  Username or password does not meet the requirements.")
            await engine.dispose()
            return

        # ── Check for existing user ──────────────────────────────────
        existing = (
            await session.execute(
                select(User).where(or_(User.username == username, User.email == email))
            )
        ).scalar_one_or_none()

        if existing:
            print(f"\n❌  User '{username}' or email '{email}' already exists.")
            await engine.dispose()
            return

        # ── Create the admin user ────────────────────────────────────
        admin_user = User(
            username=username,
            email=email,
            password=hash_password(password),
            roles=["Admin"],
        )
        session.add(admin_user)
        await add_username_email(username, email, session)
        await session.commit()

        print("\n✅  Admin user created successfully!")
        print(f"    ID:       {admin_user.id}")
        print(f"    Username: {admin_user.username}")
        print("    Role:     Admin")
        print("\n   You can now log in via POST /auth/login\n")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(create_admin())

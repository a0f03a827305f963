"""
Password hashing & JWT helpers.

- Passwords are hashed with bcrypt directly (passlib is unmaintained
  and broken with bcrypt>=4.1).
- Access tokens carry userId, username, roles and sessionId.  They are
  short-lived and rotated on every authenticated request; the session
  row decides whether a token is still the current one.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt

from metrics_backend.core.config import settings

# ── Password hashing ────────────────────────────────────────────────


def hash_password(plain: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # malformed hash in storage
        return False


# ── JWT ──────────────────────────────────────────────────────────────
# auto_error is off so a missing header becomes an envelope, not a 401.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


def create_access_token(data: dict[str, Any], expires_delta: timedelta | None = None) -> str:
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(seconds=settings.ACCESS_TOKEN_EXPIRE_SECONDS))
    # jti keeps two tokens minted in the same second distinct
    to_encode.update({"iat": now, "exp": expire, "jti": uuid.uuid4().hex})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def verify_signature(token: str) -> bool:
    """True when *token* was signed with our key.

    An expired token with a good signature still verifies: expiry is
    handled by the session, not by the token.
    """
    try:
        jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        return True
    except JWTError:
        return False
    return True


def read_claims(token: str) -> dict[str, Any]:
    """Decode the payload without verification.  Raises JWTError."""
    return jwt.get_unverified_claims(token)

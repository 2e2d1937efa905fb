"""
shared/utils/security.py
JWT creation/verification, password hashing, and the scheduler secret check.
"""

import hmac
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from config.settings import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


# ── JWT ───────────────────────────────────────────────────────

def create_access_token(admin_id: str, email: str) -> tuple[str, int]:
    """
    Create a signed JWT access token for a console admin.
    Returns (token, expires_in_seconds).
    """
    now = datetime.now(timezone.utc)
    expires_in = settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60
    payload = {
        "sub": str(admin_id),
        "email": email,
        "role": "admin",
        "jti": str(uuid.uuid4()),
        "iat": now,
        "exp": now + timedelta(seconds=expires_in),
        "type": "access",
    }
    token = jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
    return token, expires_in


def verify_access_token(token: str) -> dict:
    """
    Decode and verify a JWT access token.
    Raises JWTError on invalid/expired token.
    """
    payload = jwt.decode(
        token,
        settings.JWT_SECRET_KEY,
        algorithms=[settings.JWT_ALGORITHM],
    )
    if payload.get("type") != "access":
        raise JWTError("Invalid token type")
    return payload


# ── Password ──────────────────────────────────────────────────

def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


# ── Scheduler secret ──────────────────────────────────────────

def verify_cron_secret(provided: Optional[str], expected: Optional[str] = None) -> bool:
    """Constant-time comparison. With no secret configured nothing matches."""
    expected = settings.CRON_SECRET if expected is None else expected
    if not expected or not provided:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())

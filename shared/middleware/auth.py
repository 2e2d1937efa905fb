"""
shared/middleware/auth.py
FastAPI dependency functions for authentication.
Two kinds of caller exist: console admins (Bearer JWT) and the trusted
scheduler (shared secret). Nothing finer-grained is modelled.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from shared.models.models import Admin
from shared.utils.security import verify_access_token, verify_cron_secret

security = HTTPBearer(auto_error=False)


async def _admin_from_credentials(
    credentials: Optional[HTTPAuthorizationCredentials],
    db: AsyncSession,
) -> Optional[Admin]:
    if not credentials:
        return None
    try:
        payload = verify_access_token(credentials.credentials)
    except JWTError:
        return None

    result = await db.execute(select(Admin).where(Admin.id == _as_uuid(payload.get("sub"))))
    admin = result.scalar_one_or_none()
    if not admin or not admin.is_active:
        return None
    return admin


def _as_uuid(value) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


async def require_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> Admin:
    """Load the authenticated admin from the Authorization header."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    admin = await _admin_from_credentials(credentials, db)
    if not admin:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return admin


@dataclass
class TriggerCaller:
    kind: str                  # "admin" | "scheduler"
    email: Optional[str] = None


def _provided_secret(request: Request) -> Optional[str]:
    header = request.headers.get("X-Cron-Secret")
    if header:
        return header
    auth = request.headers.get("Authorization", "")
    if auth.lower().startswith("bearer "):
        return auth[7:].strip()
    return request.query_params.get("secret")


async def require_admin_or_scheduler(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> TriggerCaller:
    """Admins may trigger jobs by hand; the scheduler proves itself with CRON_SECRET."""
    admin = await _admin_from_credentials(credentials, db)
    if admin:
        return TriggerCaller(kind="admin", email=admin.email)

    if verify_cron_secret(_provided_secret(request)):
        return TriggerCaller(kind="scheduler")

    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

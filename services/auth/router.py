"""
services/auth/router.py
Console login: email + password → JWT access token.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from shared.middleware.auth import require_admin
from shared.models.models import Admin
from shared.schemas.schemas import AdminResponse, LoginRequest, TokenResponse
from shared.utils.security import create_access_token, verify_password

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/login", response_model=TokenResponse)
async def login(
    data: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """Verify admin credentials and issue an access token."""
    result = await db.execute(select(Admin).where(Admin.email == data.email.lower()))
    admin = result.scalar_one_or_none()

    # Same message for unknown email and wrong password
    if not admin or not admin.is_active or not verify_password(data.password, admin.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    admin.last_login_at = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(admin)

    token, expires_in = create_access_token(str(admin.id), admin.email)
    return TokenResponse(
        access_token=token,
        expires_in=expires_in,
        admin=AdminResponse.model_validate(admin),
    )


@router.get("/me", response_model=AdminResponse)
async def get_me(current_admin: Admin = Depends(require_admin)):
    """Return the currently authenticated admin."""
    return AdminResponse.model_validate(current_admin)

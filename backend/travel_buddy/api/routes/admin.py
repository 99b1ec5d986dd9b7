"""Administrator authentication routes.

Endpoints:
    - POST /admin/login: Administrator login (returns a token)
    - GET /admin/me: Current administrator's live account
"""

from typing import Annotated

from core.auth_helper import (
    admin_principal,
    authenticate_admin,
    get_current_admin,
    get_token_service,
)
from core.logging import logger
from core.token_service import TokenService
from db.session import get_db
from fastapi import APIRouter, Depends, HTTPException, status
from models.auth import AdminUser as AdminUserModel
from schemas.auth import (
    AdminLoginRequest,
    AdminProfile,
    LoginResponse,
    PrincipalDescriptor,
)
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/login", response_model=LoginResponse)
async def login_admin(
    credentials: AdminLoginRequest,
    tokens: Annotated[TokenService, Depends(get_token_service)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Authenticate an administrator and issue an admin token.

    Raises:
        HTTPException: 401 if authentication fails, whatever the cause.
    """
    admin = await authenticate_admin(
        db, credentials.admin_username, credentials.password
    )
    if admin is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    principal = admin_principal(admin)
    token = tokens.issue(principal)
    logger.info("Admin {} logged in", admin.admin_username)
    return LoginResponse(
        access_token=token,
        expires_in_ms=tokens.config.lifetime_ms,
        principal=PrincipalDescriptor.of(principal),
    )


@router.get("/me", response_model=AdminProfile)
async def read_admin_me(
    current_admin: Annotated[AdminUserModel, Depends(get_current_admin)],
):
    """Return the authenticated administrator (requires an admin token)."""

    return current_admin

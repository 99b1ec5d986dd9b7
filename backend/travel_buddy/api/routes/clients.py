"""Client authentication routes.

Endpoints:
    - POST /clients/login: Login with username or email (returns a token)
    - GET /clients/profile: Current client's live profile
"""

from typing import Annotated

from core.auth_helper import (
    authenticate_client,
    client_principal,
    get_current_client,
    get_token_service,
)
from core.logging import logger
from core.token_service import TokenService
from db.session import get_db
from fastapi import APIRouter, Depends, HTTPException, status
from models.auth import Client as ClientModel
from schemas.auth import (
    ClientLoginRequest,
    ClientProfile,
    LoginResponse,
    PrincipalDescriptor,
)
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/clients", tags=["clients"])


@router.post("/login", response_model=LoginResponse)
async def login_client(
    credentials: ClientLoginRequest,
    tokens: Annotated[TokenService, Depends(get_token_service)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Authenticate a client and issue an access token.

    Args:
        credentials: ``usernameOrEmail`` and ``password``.
        tokens: Token service used to mint the token.
        db: Async database session (dependency-injected).

    Returns:
        LoginResponse: Bearer token, its lifetime and the principal.

    Raises:
        HTTPException: 401 if authentication fails, whatever the cause.
    """
    client = await authenticate_client(
        db, credentials.username_or_email, credentials.password
    )
    if client is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    principal = client_principal(client)
    token = tokens.issue(principal)
    logger.info("Client {} logged in", client.username)
    return LoginResponse(
        access_token=token,
        expires_in_ms=tokens.config.lifetime_ms,
        principal=PrincipalDescriptor.of(principal),
    )


@router.get("/profile", response_model=ClientProfile)
async def read_client_profile(
    current_client: Annotated[ClientModel, Depends(get_current_client)],
):
    """Return the authenticated client's profile (requires a client token)."""

    return current_client

"""Authentication helpers sitting between the HTTP routes and the token service.

LOGIN FLOW:

1. The client (``/clients/login``) or admin (``/admin/login``) posts
   credentials.
2. ``authenticate_client`` / ``authenticate_admin`` load the account, refuse
   accounts that cannot log in, and verify the password hash.
3. The account is converted to a principal (``client_principal`` /
   ``admin_principal``) and handed to ``TokenService.issue``.

REQUEST FLOW:

1. ``oauth2_scheme`` reads ``Authorization: Bearer <token>``.
2. ``get_current_principal`` verifies the token. Every failure, whatever
   the reason, becomes the same 401 "Invalid or expired token".
3. ``require_client`` / ``require_admin`` restrict the principal kind.
4. ``get_current_client`` / ``get_current_admin`` load the live account
   and re-check it with ``TokenService.validate`` so that disabling or
   locking an account takes effect before the token expires.
"""

from datetime import datetime, timezone
from functools import lru_cache
from typing import Annotated

from config.config import settings
from core.exceptions import TokenError
from core.logging import logger
from core.token_service import TokenService
from db.session import get_db
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from models.auth import AdminUser as AdminUserModel
from models.auth import Client as ClientModel
from pwdlib import PasswordHash
from schemas.auth import AdminPrincipal, ClientPrincipal, PrincipalDescriptor
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

INVALID_TOKEN_DETAIL = "Invalid or expired token"

password_hash = PasswordHash.recommended()

# Checked when no account matches the login name.
DUMMY_PASSWORD_HASH = password_hash.hash("travel-buddy-dummy-password")

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/clients/login", auto_error=False)


def verify_password(plain_password, hashed_password):
    """Verify a plain password against a stored hash.

    Args:
        plain_password: The clear-text password provided by the user.
        hashed_password: The stored password hash to verify against.

    Returns:
        bool: True if the password matches, False otherwise.
    """
    return password_hash.verify(plain_password, hashed_password)


def get_password_hash(password):
    """Hash a plain password using the recommended algorithm."""
    return password_hash.hash(password)


def credentials_exception() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=INVALID_TOKEN_DETAIL,
        headers={"WWW-Authenticate": "Bearer"},
    )


@lru_cache
def get_token_service() -> TokenService:
    """Return the process-wide token service built from settings."""
    return TokenService(settings.token_config())


def client_principal(client: ClientModel) -> ClientPrincipal:
    return ClientPrincipal(
        id=client.id,
        username=client.username,
        email=client.email,
        full_name=client.full_name,
        enabled=bool(client.enabled),
        account_locked=bool(client.account_locked),
    )


def admin_principal(admin: AdminUserModel) -> AdminPrincipal:
    return AdminPrincipal(
        id=admin.id,
        username=admin.admin_username,
        enabled=bool(admin.enabled),
        account_locked=bool(admin.account_locked),
    )


async def get_client_by_login(
    db: AsyncSession, username_or_email: str
) -> ClientModel | None:
    """Load a client by username or, failing that, by email."""
    result = await db.execute(
        select(ClientModel).filter(
            or_(
                ClientModel.username == username_or_email,
                ClientModel.email == username_or_email,
            )
        )
    )
    return result.scalars().first()


async def get_client_by_id(db: AsyncSession, client_id: int) -> ClientModel | None:
    result = await db.execute(select(ClientModel).filter(ClientModel.id == client_id))
    return result.scalars().first()


async def get_admin_by_username(
    db: AsyncSession, admin_username: str
) -> AdminUserModel | None:
    result = await db.execute(
        select(AdminUserModel).filter(AdminUserModel.admin_username == admin_username)
    )
    return result.scalars().first()


async def get_admin_by_id(db: AsyncSession, admin_id: int) -> AdminUserModel | None:
    result = await db.execute(
        select(AdminUserModel).filter(AdminUserModel.id == admin_id)
    )
    return result.scalars().first()


async def authenticate_client(
    db: AsyncSession, username_or_email: str, password: str
) -> ClientModel | None:
    """Authenticate a client by username (or email) and password.

    Args:
        db: Async database session.
        username_or_email: Login name or email address.
        password: The plain-text password to verify.

    Returns:
        ClientModel | None: The client on success; None when the account is
            unknown, cannot log in, or the password does not match.
    """
    client = await get_client_by_login(db, username_or_email)
    if client is None:
        verify_password(password, DUMMY_PASSWORD_HASH)
        logger.debug("Client login failed: not found login={}", username_or_email)
        return None
    if not client.can_login:
        logger.warning(
            "Client login refused: account disabled or locked username={}",
            client.username,
        )
        return None
    if not verify_password(password, client.password):
        logger.warning(
            "Client login failed: invalid password username={}", client.username
        )
        return None

    client.last_login = datetime.now(timezone.utc)
    await db.commit()
    return client


async def authenticate_admin(
    db: AsyncSession, admin_username: str, password: str
) -> AdminUserModel | None:
    """Authenticate an administrator; same rules as :func:`authenticate_client`."""
    admin = await get_admin_by_username(db, admin_username)
    if admin is None:
        verify_password(password, DUMMY_PASSWORD_HASH)
        logger.debug("Admin login failed: not found username={}", admin_username)
        return None
    if not admin.can_login:
        logger.warning(
            "Admin login refused: account disabled or locked username={}",
            admin.admin_username,
        )
        return None
    if not verify_password(password, admin.admin_password):
        logger.warning(
            "Admin login failed: invalid password username={}", admin.admin_username
        )
        return None

    admin.last_login = datetime.now(timezone.utc)
    await db.commit()
    return admin


async def get_current_principal(
    token: Annotated[str | None, Depends(oauth2_scheme)],
    tokens: Annotated[TokenService, Depends(get_token_service)],
) -> PrincipalDescriptor:
    """Verify the bearer token and return the principal it represents.

    Raises:
        HTTPException: 401 with a generic detail for a missing token or any
            verification failure.
    """
    if not token:
        logger.warning("Request without bearer token")
        raise credentials_exception()
    try:
        return tokens.verify(token)
    except TokenError as exc:
        logger.warning("Rejected bearer token reason={}", exc.reason.value)
        raise credentials_exception() from None


async def require_client(
    principal: Annotated[PrincipalDescriptor, Depends(get_current_principal)],
) -> PrincipalDescriptor:
    if not principal.is_client:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Client token required"
        )
    return principal


async def require_admin(
    principal: Annotated[PrincipalDescriptor, Depends(get_current_principal)],
) -> PrincipalDescriptor:
    if not principal.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Admin token required"
        )
    return principal


async def get_current_client(
    token: Annotated[str | None, Depends(oauth2_scheme)],
    principal: Annotated[PrincipalDescriptor, Depends(require_client)],
    tokens: Annotated[TokenService, Depends(get_token_service)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ClientModel:
    """Return the live client account behind a client token.

    Raises:
        HTTPException: 401 if the account no longer exists, no longer matches
            the token subject, or is disabled/locked.
    """
    client = await get_client_by_id(db, principal.id)
    if client is None or not tokens.validate(token, client_principal(client)):
        logger.warning("Client token no longer valid for account id={}", principal.id)
        raise credentials_exception()
    return client


async def get_current_admin(
    token: Annotated[str | None, Depends(oauth2_scheme)],
    principal: Annotated[PrincipalDescriptor, Depends(require_admin)],
    tokens: Annotated[TokenService, Depends(get_token_service)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> AdminUserModel:
    """Return the live admin account behind an admin token."""
    admin = await get_admin_by_id(db, principal.id)
    if admin is None or not tokens.validate(token, admin_principal(admin)):
        logger.warning("Admin token no longer valid for account id={}", principal.id)
        raise credentials_exception()
    return admin

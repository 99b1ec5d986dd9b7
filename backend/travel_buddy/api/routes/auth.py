"""Token introspection route.

Endpoints:
    - GET /auth/token-info: Describe the bearer token (any principal kind)
"""

from datetime import timedelta
from typing import Annotated

from core.auth_helper import (
    credentials_exception,
    get_current_principal,
    get_token_service,
    oauth2_scheme,
)
from core.exceptions import TokenError
from core.token_service import TokenService
from fastapi import APIRouter, Depends
from schemas.auth import PrincipalDescriptor, TokenInfo

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/token-info", response_model=TokenInfo)
async def read_token_info(
    token: Annotated[str | None, Depends(oauth2_scheme)],
    principal: Annotated[PrincipalDescriptor, Depends(get_current_principal)],
    tokens: Annotated[TokenService, Depends(get_token_service)],
):
    """Return the verified principal together with the token's id and expiry.

    The token has already been verified by ``get_current_principal``; the
    derived queries below verify it again independently, so a token that
    expires in between is still answered with 401.
    """
    try:
        token_id = tokens.token_id_of(token)
        email = tokens.extract_email(token)
        expires_at = tokens.extract_expiration(token)
    except TokenError:
        raise credentials_exception() from None

    return TokenInfo(
        principal=principal,
        token_id=token_id,
        email=email,
        expires_at=expires_at,
        remaining_ms=tokens.remaining_lifetime(token) // timedelta(milliseconds=1),
    )

"""Exceptions raised by the token service.

Verification failures are expected outcomes of checking untrusted input:
they all derive from :class:`TokenError` and carry a :class:`TokenErrorReason`
so callers can log the specific cause while answering every one of them with
the same generic "invalid or expired token" response.

:class:`TokenIssueError` is different: it means the signing primitive failed
while minting a token, which points at deployment misconfiguration.
"""

from enum import Enum


class TokenErrorReason(str, Enum):
    """Why a token was rejected."""

    MALFORMED = "malformed"
    INVALID_SIGNATURE = "invalid_signature"
    EXPIRED = "expired"
    UNKNOWN_PRINCIPAL_TYPE = "unknown_principal_type"


class TokenError(Exception):
    """Base class for every token verification failure."""

    reason: TokenErrorReason

    def __init__(self, message: str | None = None):
        super().__init__(message or self.reason.value)


class MalformedTokenError(TokenError):
    """Token is structurally invalid or carries contradictory claims."""

    reason = TokenErrorReason.MALFORMED


class InvalidSignatureError(TokenError):
    """Signature does not match: tampered, forged, or signed with another key."""

    reason = TokenErrorReason.INVALID_SIGNATURE


class ExpiredTokenError(TokenError):
    """Signature is valid but the token is past its expiration time."""

    reason = TokenErrorReason.EXPIRED


class UnknownPrincipalTypeError(TokenError):
    """Signature is valid but the claims identify neither a client nor an admin."""

    reason = TokenErrorReason.UNKNOWN_PRINCIPAL_TYPE


class TokenIssueError(RuntimeError):
    """Signing a new token failed."""

"""Issuance and verification of signed identity tokens.

TOKEN FLOW EXPLAINED:

1. ISSUE (client or admin login):
   - The login routes authenticate credentials first; this module never
     looks at passwords.
   - ``TokenService.issue`` receives a ``ClientPrincipal`` or an
     ``AdminPrincipal`` and builds the claims:
     * sub / iss / aud / iat / exp / jti
     * clientId (client tokens) or adminId (admin tokens), never both
     * client tokens also snapshot email, fullName, enabled, accountLocked
   - The claims are signed with HMAC using the shared secret and returned
     as a compact ``header.payload.signature`` string.

2. VERIFY (every protected request):
   - Structure: three base64url segments, header is a JSON object.
   - Signature: recomputed over ``header.payload`` and compared in constant
     time. Nothing in the payload is read before this succeeds.
   - Expiration: ``exp <= now`` (millisecond precision) is expired.
   - Principal: exactly one of clientId / adminId, issuer and audience
     consistent with it.

3. NO SERVER STATE:
   - Tokens are not stored. They end at ``exp`` or when the secret is
     rotated. A disabled or locked account loses access through
     ``validate``, which checks the live account rather than the snapshot.

``iat`` and ``exp`` are NumericDate values in seconds with a millisecond
fraction so that lifetimes shorter than a second behave exactly.
"""

import json
import math
import re
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from config.config import TokenConfig
from core.exceptions import (
    ExpiredTokenError,
    InvalidSignatureError,
    MalformedTokenError,
    TokenError,
    TokenIssueError,
    UnknownPrincipalTypeError,
)
from core.logging import logger
from jwt.algorithms import get_default_algorithms
from jwt.exceptions import InvalidAlgorithmError, PyJWTError
from jwt.exceptions import InvalidSignatureError as JWTSignatureError
from jwt.utils import base64url_decode, base64url_encode
from schemas.auth import (
    AdminPrincipal,
    ClientPrincipal,
    Principal,
    PrincipalDescriptor,
    PrincipalType,
    TokenClaims,
    VerificationResult,
)

CLIENT_AUDIENCE = "TravelBuddyClients"
ADMIN_AUDIENCE = "TravelBuddyAdministrators"

AUDIENCES = {
    PrincipalType.CLIENT: CLIENT_AUDIENCE,
    PrincipalType.ADMIN: ADMIN_AUDIENCE,
}

_SEGMENT = re.compile(r"[A-Za-z0-9_-]+")
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)
_MAX_EPOCH_MS = 253_402_300_799_999  # 9999-12-31T23:59:59.999Z

# exp/iss/aud are checked by hand after the signature so the order of the
# checks (and the error reported) is fixed.
_DECODE_OPTIONS = {
    "verify_signature": True,
    "verify_exp": False,
    "verify_iat": False,
    "verify_nbf": False,
    "verify_iss": False,
    "verify_aud": False,
}


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_epoch_ms(moment: datetime) -> int:
    """Milliseconds since the Unix epoch, truncated."""
    return (moment - _EPOCH) // _ONE_MS


def from_epoch_ms(value: int) -> datetime:
    return _EPOCH + timedelta(milliseconds=value)


def _numeric_date_ms(claims: dict[str, Any], name: str) -> int:
    value = claims.get(name)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedTokenError(f"{name} claim must be a number")
    if not math.isfinite(value) or not 0 <= value <= _MAX_EPOCH_MS / 1000:
        raise MalformedTokenError(f"{name} claim is out of range")
    return round(value * 1000)


def _audience_matches(audience: Any, expected: str) -> bool:
    if isinstance(audience, list):
        return audience == [expected]
    return audience == expected


class TokenService:
    """Stateless issuer and verifier for client and admin tokens.

    Instances are immutable and safe to share between threads and requests.

    Args:
        config: Signing secret, algorithm, lifetime and issuer.
        clock: Callable returning the current aware datetime. Defaults to
            :func:`utcnow`; tests pass a controllable clock.
    """

    def __init__(
        self, config: TokenConfig, clock: Callable[[], datetime] | None = None
    ):
        self._config = config
        self._clock = clock or utcnow
        self._algorithm = get_default_algorithms()[config.algorithm]
        self._key = self._algorithm.prepare_key(config.secret)

    @property
    def config(self) -> TokenConfig:
        return self._config

    @property
    def lifetime(self) -> timedelta:
        return timedelta(milliseconds=self._config.lifetime_ms)

    def _now_ms(self) -> int:
        return to_epoch_ms(self._clock())

    # ------------------------------------------------------------------
    # Issuance
    # ------------------------------------------------------------------

    def build_claims(self, principal: Principal) -> TokenClaims:
        """Build the claim set for ``principal`` as of the current time.

        Args:
            principal: An authenticated client or admin.

        Returns:
            TokenClaims: Claims with a fresh ``jti`` and
                ``exp = iat + lifetime``.

        Raises:
            TypeError: If ``principal`` is neither principal variant.
        """
        if not isinstance(principal, (ClientPrincipal, AdminPrincipal)):
            raise TypeError(f"Unsupported principal: {type(principal).__name__}")

        issued_at = from_epoch_ms(self._now_ms())
        common = {
            "subject": principal.username,
            "issuer": self._config.issuer,
            "issued_at": issued_at,
            "expires_at": issued_at + self.lifetime,
            "token_id": str(uuid.uuid4()),
            "enabled": principal.enabled,
            "account_locked": principal.account_locked,
        }

        if isinstance(principal, ClientPrincipal):
            return TokenClaims(
                audience=CLIENT_AUDIENCE,
                client_id=principal.id,
                email=principal.email,
                full_name=principal.full_name,
                **common,
            )
        return TokenClaims(audience=ADMIN_AUDIENCE, admin_id=principal.id, **common)

    def issue(self, principal: Principal) -> str:
        """Mint a signed token for an already authenticated principal.

        Args:
            principal: The client or admin the token represents.

        Returns:
            str: Compact ``header.payload.signature`` token.

        Raises:
            TokenIssueError: If the signing primitive fails.
        """
        claims = self.build_claims(principal)
        payload = claims.model_dump(by_alias=True, exclude_none=True)
        payload["iat"] = to_epoch_ms(claims.issued_at) / 1000
        payload["exp"] = to_epoch_ms(claims.expires_at) / 1000

        try:
            token = jwt.encode(
                payload, self._config.secret, algorithm=self._config.algorithm
            )
        except (PyJWTError, TypeError, ValueError) as exc:
            logger.error(
                "Failed to sign token for subject={} type={}",
                claims.subject,
                principal.principal_type.value,
            )
            raise TokenIssueError("Failed to sign token") from exc

        logger.info(
            "Issued {} token subject={} jti={}",
            principal.principal_type.value,
            claims.subject,
            claims.token_id,
        )
        return token

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def _check_structure(self, token: Any) -> tuple[dict[str, Any], bytes]:
        """Split ``token`` and return its header and raw signature bytes."""
        if not isinstance(token, str):
            raise MalformedTokenError("Token must be a string")
        segments = token.split(".")
        if len(segments) != 3:
            raise MalformedTokenError("Token must have three segments")
        if not all(_SEGMENT.fullmatch(segment) for segment in segments):
            raise MalformedTokenError("Token segments must be base64url")

        try:
            header = json.loads(base64url_decode(segments[0]))
            signature = base64url_decode(segments[2])
        except (ValueError, RecursionError) as exc:
            raise MalformedTokenError("Token is not decodable") from exc
        if not isinstance(header, dict):
            raise MalformedTokenError("Token header must be a JSON object")
        return header, signature

    def _check_signature(
        self, token: str, header: dict[str, Any], signature: bytes
    ) -> None:
        signing_input, _, encoded_signature = token.rpartition(".")
        # Decoders ignore the unused trailing bits of the last character, so
        # only the canonical spelling of a signature is accepted.
        if base64url_encode(signature).decode("ascii") != encoded_signature:
            raise InvalidSignatureError("Signature is not canonically encoded")
        if header.get("alg") != self._config.algorithm:
            raise InvalidSignatureError("Unexpected signing algorithm")
        if not self._algorithm.verify(
            signing_input.encode("ascii"), self._key, signature
        ):
            raise InvalidSignatureError("Signature verification failed")

    def _verified_claims(self, token: str) -> dict[str, Any]:
        """Run structure, signature and expiration checks; return the claims."""
        try:
            header, signature = self._check_structure(token)
            self._check_signature(token, header, signature)
            try:
                claims = jwt.decode(
                    token,
                    self._config.secret,
                    algorithms=[self._config.algorithm],
                    options=_DECODE_OPTIONS,
                )
            except (JWTSignatureError, InvalidAlgorithmError) as exc:
                raise InvalidSignatureError(str(exc)) from exc
            except PyJWTError as exc:
                raise MalformedTokenError(str(exc)) from exc

            if _numeric_date_ms(claims, "exp") <= self._now_ms():
                raise ExpiredTokenError("Token has expired")
        except TokenError as exc:
            logger.debug("Token rejected reason={} detail={}", exc.reason.value, exc)
            raise
        return claims

    def _describe(self, claims: dict[str, Any]) -> PrincipalDescriptor:
        client_id = claims.get("clientId")
        admin_id = claims.get("adminId")
        if client_id is not None and admin_id is not None:
            raise MalformedTokenError("Token carries both clientId and adminId")
        if client_id is None and admin_id is None:
            raise UnknownPrincipalTypeError("Token identifies no principal")

        if client_id is not None:
            principal_type, principal_id = PrincipalType.CLIENT, client_id
        else:
            principal_type, principal_id = PrincipalType.ADMIN, admin_id

        if isinstance(principal_id, bool) or not isinstance(principal_id, int):
            raise MalformedTokenError("Principal id must be an integer")
        if claims.get("iss") != self._config.issuer:
            raise MalformedTokenError("Unexpected issuer")
        if not _audience_matches(claims.get("aud"), AUDIENCES[principal_type]):
            raise MalformedTokenError("Audience does not match principal type")

        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject:
            raise MalformedTokenError("Token has no subject")

        return PrincipalDescriptor(
            id=principal_id, principal_type=principal_type, username=subject
        )

    def verify(self, token: str) -> PrincipalDescriptor:
        """Verify ``token`` and return the principal it represents.

        Args:
            token: Compact token string as received from the bearer.

        Returns:
            PrincipalDescriptor: id, principal type and username.

        Raises:
            MalformedTokenError: Structurally invalid or contradictory claims.
            InvalidSignatureError: Tampered, forged or signed with another key.
            ExpiredTokenError: Valid signature, past its expiration.
            UnknownPrincipalTypeError: Neither clientId nor adminId present.
        """
        claims = self._verified_claims(token)
        try:
            return self._describe(claims)
        except TokenError as exc:
            logger.debug("Token rejected reason={} detail={}", exc.reason.value, exc)
            raise

    def verify_result(self, token: str) -> VerificationResult:
        """Like :meth:`verify` but reports failure as a value."""
        try:
            return VerificationResult(principal=self.verify(token))
        except TokenError as exc:
            return VerificationResult(error=exc.reason)

    def is_valid(self, token: str) -> bool:
        return self.verify_result(token).ok

    def validate(self, token: str, principal: Principal) -> bool:
        """Check that ``token`` belongs to ``principal`` and that it may log in.

        The principal's live ``enabled`` / ``account_locked`` state is used,
        not the snapshot embedded in the token.
        """
        result = self.verify_result(token)
        if not result.ok:
            return False
        descriptor = result.principal
        return (
            descriptor.principal_type is principal.principal_type
            and descriptor.username == principal.username
            and principal.can_login
        )

    # ------------------------------------------------------------------
    # Derived queries. Each call re-verifies the token.
    # ------------------------------------------------------------------

    def extract_username(self, token: str) -> str:
        subject = self._verified_claims(token).get("sub")
        if not isinstance(subject, str):
            raise MalformedTokenError("Token has no subject")
        return subject

    def extract_email(self, token: str) -> str | None:
        """Email snapshot of a client token; None for admin tokens."""
        email = self._verified_claims(token).get("email")
        return email if isinstance(email, str) else None

    def extract_full_name(self, token: str) -> str | None:
        full_name = self._verified_claims(token).get("fullName")
        return full_name if isinstance(full_name, str) else None

    def extract_expiration(self, token: str) -> datetime:
        return from_epoch_ms(_numeric_date_ms(self._verified_claims(token), "exp"))

    def extract_user_id(self, token: str) -> int:
        return self.verify(token).id

    def extract_user_type(self, token: str) -> PrincipalType:
        return self.verify(token).principal_type

    def token_id_of(self, token: str) -> str:
        token_id = self._verified_claims(token).get("jti")
        if not isinstance(token_id, str):
            raise MalformedTokenError("Token has no jti")
        return token_id

    def is_expired(self, token: str) -> bool:
        """True when the token is expired or cannot be verified at all."""
        try:
            self._verified_claims(token)
        except TokenError:
            return True
        return False

    def remaining_lifetime(self, token: str) -> timedelta:
        """Time left before expiry; zero for expired or invalid tokens."""
        try:
            claims = self._verified_claims(token)
        except TokenError:
            return timedelta(0)
        remaining = _numeric_date_ms(claims, "exp") - self._now_ms()
        return timedelta(milliseconds=max(remaining, 0))

    def is_account_enabled_in_token(self, token: str) -> bool:
        """The ``enabled`` snapshot taken at issuance; False if unverifiable."""
        try:
            enabled = self._verified_claims(token).get("enabled")
        except TokenError:
            return False
        return enabled if isinstance(enabled, bool) else True

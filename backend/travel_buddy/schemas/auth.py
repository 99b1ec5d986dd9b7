"""Pydantic schemas for authentication.

Includes the principal union carried through token issuance and
verification, the token claim model, and the request/response shapes used
by the login and profile routes.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Union

from core.exceptions import TokenErrorReason
from pydantic import BaseModel, ConfigDict, Field, model_validator


class PrincipalType(str, Enum):
    """Discriminator returned by the verifier."""

    CLIENT = "CLIENT"
    ADMIN = "ADMIN"


class ClientPrincipal(BaseModel):
    """An authenticated end-user account.

    Attributes:
        id: Database id of the client.
        username: Login name, written into the ``sub`` claim.
        email: Email address at the time of issuance.
        full_name: Display name at the time of issuance.
        enabled: Whether the account is active.
        account_locked: Whether the account is temporarily locked.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["client"] = "client"
    id: int
    username: str
    email: str
    full_name: str
    enabled: bool = True
    account_locked: bool = False

    @property
    def principal_type(self) -> PrincipalType:
        return PrincipalType.CLIENT

    @property
    def can_login(self) -> bool:
        return self.enabled and not self.account_locked


class AdminPrincipal(BaseModel):
    """An authenticated administrator account."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["admin"] = "admin"
    id: int
    username: str
    enabled: bool = True
    account_locked: bool = False

    @property
    def principal_type(self) -> PrincipalType:
        return PrincipalType.ADMIN

    @property
    def can_login(self) -> bool:
        return self.enabled and not self.account_locked


Principal = Annotated[
    Union[ClientPrincipal, AdminPrincipal], Field(discriminator="kind")
]


class PrincipalDescriptor(BaseModel):
    """Identity extracted from a verified token."""

    model_config = ConfigDict(frozen=True)

    id: int
    principal_type: PrincipalType
    username: str

    @classmethod
    def of(cls, principal: Principal) -> "PrincipalDescriptor":
        """Describe a principal that has just been authenticated."""
        return cls(
            id=principal.id,
            principal_type=principal.principal_type,
            username=principal.username,
        )

    @property
    def is_client(self) -> bool:
        return self.principal_type is PrincipalType.CLIENT

    @property
    def is_admin(self) -> bool:
        return self.principal_type is PrincipalType.ADMIN


class TokenClaims(BaseModel):
    """Payload of a signed token, built once at issuance.

    Field aliases are the claim names on the wire. Exactly one of
    ``client_id`` / ``admin_id`` is set; client tokens additionally carry a
    snapshot of the account's email, name and status.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    subject: str = Field(alias="sub")
    issuer: str = Field(alias="iss")
    audience: str = Field(alias="aud")
    issued_at: datetime = Field(alias="iat")
    expires_at: datetime = Field(alias="exp")
    token_id: str = Field(alias="jti")
    client_id: int | None = Field(default=None, alias="clientId")
    admin_id: int | None = Field(default=None, alias="adminId")
    email: str | None = None
    full_name: str | None = Field(default=None, alias="fullName")
    enabled: bool | None = None
    account_locked: bool | None = Field(default=None, alias="accountLocked")

    @model_validator(mode="after")
    def _one_principal_id(self) -> "TokenClaims":
        if (self.client_id is None) == (self.admin_id is None):
            raise ValueError("exactly one of clientId/adminId must be set")
        return self


class VerificationResult(BaseModel):
    """Outcome of verifying a token, as a value instead of an exception."""

    principal: PrincipalDescriptor | None = None
    error: TokenErrorReason | None = None

    @property
    def ok(self) -> bool:
        return self.principal is not None


class ClientLoginRequest(BaseModel):
    """Request body for client login; accepts a username or an email."""

    model_config = ConfigDict(populate_by_name=True)

    username_or_email: str = Field(alias="usernameOrEmail", min_length=1)
    password: str = Field(min_length=1)


class AdminLoginRequest(BaseModel):
    """Request body for administrator login."""

    model_config = ConfigDict(populate_by_name=True)

    admin_username: str = Field(alias="adminUsername", min_length=1)
    password: str = Field(min_length=1)


class LoginResponse(BaseModel):
    """Response containing a freshly issued access token."""

    access_token: str
    token_type: str = "bearer"
    expires_in_ms: int
    principal: PrincipalDescriptor


class ClientProfile(BaseModel):
    """Public client representation returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    first_name: str
    last_name: str
    full_name: str
    phone: str | None = None
    address: str | None = None
    enabled: bool
    account_locked: bool
    created_at: datetime | None = None
    last_login: datetime | None = None


class AdminProfile(BaseModel):
    """Public administrator representation returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    admin_username: str
    enabled: bool
    account_locked: bool
    created_at: datetime | None = None
    last_login: datetime | None = None


class TokenInfo(BaseModel):
    """Introspection data for a verified token."""

    principal: PrincipalDescriptor
    token_id: str
    email: str | None = None
    expires_at: datetime
    remaining_ms: int

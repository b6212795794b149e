"""
API request and response models for AssetDesk REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Wire format is camelCase (usernameOrEmail, accessToken, fullName); Python
attributes stay snake_case via the alias generator. Serialize with
model_dump(by_alias=True) -- api/responses.py does this for every envelope.
"""

import re
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from auth.models import Role, TokenClaims, TokenPair, User, UserStatus

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload. code is always "ERROR"; message varies."""

    model_config = ConfigDict(frozen=True)

    code: str = "ERROR"
    message: str


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    success: bool = False
    error: ErrorDetail


class SuccessResponse(BaseModel):
    """Top-level envelope returned on 2xx responses."""

    success: bool = True
    data: Any = None
    message: str = "Operation successful"


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str


# ---------------------------------------------------------------------------
# Auth -- requests
# ---------------------------------------------------------------------------


class LoginRequest(_CamelModel):
    """Request body for POST /api/v1/auth/login."""

    username_or_email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=128)


class RefreshRequest(_CamelModel):
    """Request body for POST /api/v1/auth/refresh."""

    refresh_token: str = Field(min_length=1, max_length=4096)


# ---------------------------------------------------------------------------
# Auth -- responses
# ---------------------------------------------------------------------------


class UserSummary(_CamelModel):
    """The user block embedded in a login response."""

    user_id: int
    username: str
    email: str
    full_name: str
    role: Role

    @classmethod
    def from_user(cls, user: User) -> "UserSummary":
        return cls(
            user_id=user.id,
            username=user.username,
            email=user.email,
            full_name=user.full_name,
            role=user.role,
        )


class TokenPairResponse(_CamelModel):
    """Tokens returned by login and refresh. Both are opaque bearer strings to clients."""

    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int
    refresh_expires_in: int

    @classmethod
    def from_pair(cls, pair: TokenPair) -> "TokenPairResponse":
        return cls(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            expires_in=pair.access_expires_in,
            refresh_expires_in=pair.refresh_expires_in,
        )


class LoginResponse(TokenPairResponse):
    user: UserSummary


class IdentityResponse(_CamelModel):
    """Response for GET /api/v1/auth/me -- the verified token claims."""

    user_id: int
    username: str
    role: Role
    issued_at: str
    expires_at: str

    @classmethod
    def from_claims(cls, claims: TokenClaims) -> "IdentityResponse":
        return cls(
            user_id=claims.user_id,
            username=claims.username,
            role=claims.role,
            issued_at=claims.issued_at.isoformat(),
            expires_at=claims.expires_at.isoformat(),
        )


class SessionInfo(_CamelModel):
    """One live refresh session. The stored hash is never exposed."""

    session_id: int
    created_at: str
    expires_at: str


# ---------------------------------------------------------------------------
# Users -- requests
# ---------------------------------------------------------------------------


class UserCreate(_CamelModel):
    """Request body for POST /api/v1/users (admin only)."""

    username: str = Field(min_length=3, max_length=50)
    email: str = Field(max_length=255)
    password: str = Field(min_length=8, max_length=128)
    full_name: str = Field(min_length=1, max_length=200)
    role: Role
    department: Optional[str] = Field(default=None, max_length=100)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        if not _EMAIL_RE.match(v):
            raise ValueError("Invalid email format")
        return v.lower()

    @field_validator("password")
    @classmethod
    def validate_password_strength(cls, v: str) -> str:
        if not (re.search(r"[a-z]", v) and re.search(r"[A-Z]", v) and re.search(r"\d", v)):
            raise ValueError("Password must contain uppercase, lowercase, and number")
        return v


class UserPatch(_CamelModel):
    """Request body for PATCH /api/v1/users/{user_id} (admin only). All fields optional."""

    role: Optional[Role] = None
    status: Optional[UserStatus] = None
    full_name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    department: Optional[str] = Field(default=None, max_length=100)


# ---------------------------------------------------------------------------
# Users -- responses
# ---------------------------------------------------------------------------


class UserResponse(_CamelModel):
    """Public view of a user record. password_hash is never included."""

    user_id: int
    username: str
    email: str
    full_name: str
    role: Role
    department: Optional[str]
    status: UserStatus
    created_at: str
    updated_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            user_id=user.id,
            username=user.username,
            email=user.email,
            full_name=user.full_name,
            role=user.role,
            department=user.department,
            status=user.status,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class Pagination(_CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int


class UsersPage(_CamelModel):
    """Response data for GET /api/v1/users."""

    users: list[UserResponse]
    pagination: Pagination

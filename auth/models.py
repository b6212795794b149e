"""
auth/models.py -- Domain types for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and services do
the work; these types only own shape.

Role and UserStatus are closed enumerations. A role string arriving from the
database, a request body, or a token claim is parsed into Role at the boundary
(Role(value) raises ValueError on anything else), so nothing inside the core
ever compares free-form role strings.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    admin = "Admin"
    staff = "Staff"


class UserStatus(str, Enum):
    active = "Active"
    inactive = "Inactive"


class TokenKind(str, Enum):
    """Which signing secret and lifetime a token belongs to."""

    access = "access"
    refresh = "refresh"


@dataclass
class User:
    """A user account as held by the credential store.

    password_hash is always a bcrypt hash, never the plaintext. Accounts are
    never hard-deleted; offboarding sets status to Inactive.

    id is None before the record is written to the database.
    """

    username: str
    email: str
    role: Role
    password_hash: str
    full_name: str = ""
    department: str | None = None
    status: UserStatus = UserStatus.active
    id: int | None = None
    created_by: int | None = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""

    @property
    def is_active(self) -> bool:
        return self.status is UserStatus.active


@dataclass(frozen=True)
class TokenClaims:
    """Verified contents of an access or refresh token.

    A snapshot taken at issuance: role and username are not re-read from the
    store on each request, so a role change takes effect when the holder next
    obtains a token (at most access_ttl_seconds later).
    """

    user_id: int
    username: str
    role: Role
    issued_at: datetime
    expires_at: datetime
    kind: TokenKind = TokenKind.access


@dataclass
class RefreshTokenRecord:
    """One row of the refresh-token ledger.

    token_hash is a salted one-way hash of the refresh token; the token itself
    is never stored. Rows are append-only: created at login or rotation and
    never updated afterwards.
    """

    user_id: int
    token_hash: str
    expires_at: str  # ISO 8601
    created_at: str = ""
    id: int | None = None


@dataclass(frozen=True)
class TokenPair:
    """Access + refresh tokens handed to a client after login or rotation."""

    access_token: str
    refresh_token: str
    access_expires_in: int
    refresh_expires_in: int
    refresh_expires_at: datetime


@dataclass(frozen=True)
class LoginResult:
    tokens: TokenPair
    user: User

"""
auth/errors.py -- Failure taxonomy for the auth core.

Each class carries the HTTP status it maps to. api/main.py installs one
exception handler for AuthError that renders the standard failure envelope,
so route and dependency code simply raises.

Messages are deliberately generic. In particular CredentialFailure uses one
message for unknown user, wrong password and inactive account, so a login
response never reveals which of the three applied.

All of these are caller-recoverable (re-authenticate); none is process-fatal.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for auth failures mapped to HTTP responses."""

    status_code: int = 401
    default_message: str = "Unauthorized"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def headers(self) -> dict[str, str] | None:
        if self.status_code == 401:
            return {"WWW-Authenticate": "Bearer"}
        return None


class AuthenticationFailure(AuthError):
    """Missing or malformed Authorization header, bad signature, or expired access token (401)."""

    default_message = "Unauthorized"


class AuthorizationFailure(AuthError):
    """Valid identity whose role is not in the route's allowed set (403)."""

    status_code = 403
    default_message = "Forbidden: insufficient role"


class CredentialFailure(AuthError):
    """Login rejected: unknown user, wrong password, or inactive account (401)."""

    default_message = "Invalid username/email or password"


class RefreshFailure(AuthError):
    """Refresh token invalid, expired, or absent from the ledger (401)."""

    default_message = "Invalid or expired refresh token"

"""
auth/tokens.py -- Signed bearer tokens: issuance and verification.

Security design decisions:
  JWT: python-jose with HS256 (configurable to HS384/HS512). Access and refresh
       tokens carry the same identity claims (sub = user id, username, role)
       but are signed with two distinct secrets and carry a "type" claim, so a
       refresh token can never pass as an access token or the reverse.

  Refresh tokens additionally carry a random "jti". Two refresh tokens issued
       to the same user within the same second are therefore distinct strings,
       which the ledger relies on.

  Expiry: the library's own exp check is disabled and exp is compared against
       the injected clock instead. Production uses utc_now; tests pass a fake
       clock to step past expiry deterministically.

  No oracle: verify() returns None for tampered, expired, malformed and
       wrong-kind tokens alike. The reason is logged for audit, never the
       token text.

Configuration is the immutable AuthConfig passed to the constructor; this
module reads no globals.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from datetime import datetime, timezone

from jose import JWTError, jwt

from auth.models import Role, TokenClaims, TokenKind, TokenPair
from core.config import AuthConfig

logger = logging.getLogger("assetdesk.auth")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """Token Issuer and Token Verifier over one AuthConfig.

    Usage:
        tokens = TokenService(settings.auth_config())
        pair = tokens.issue_pair(user_id=1, username="alice", role=Role.staff)
        claims = tokens.verify(pair.access_token, TokenKind.access)
    """

    def __init__(self, config: AuthConfig, clock: Clock = utc_now) -> None:
        self.config = config
        self._clock = clock

    # ------------------------------------------------------------------
    # Issuance
    # ------------------------------------------------------------------

    def issue_access_token(self, user_id: int, username: str, role: Role) -> str:
        """Sign an access token valid for config.access_ttl_seconds."""
        token, _ = self._issue(TokenKind.access, user_id, username, role)
        return token

    def issue_refresh_token(self, user_id: int, username: str, role: Role) -> str:
        """Sign a refresh token valid for config.refresh_ttl_seconds."""
        token, _ = self._issue(TokenKind.refresh, user_id, username, role)
        return token

    def issue_pair(self, user_id: int, username: str, role: Role) -> TokenPair:
        """Mint an access + refresh pair for one identity snapshot."""
        access, _ = self._issue(TokenKind.access, user_id, username, role)
        refresh, refresh_expires_at = self._issue(TokenKind.refresh, user_id, username, role)
        return TokenPair(
            access_token=access,
            refresh_token=refresh,
            access_expires_in=self.config.access_ttl_seconds,
            refresh_expires_in=self.config.refresh_ttl_seconds,
            refresh_expires_at=refresh_expires_at,
        )

    def _issue(self, kind: TokenKind, user_id: int, username: str, role: Role) -> tuple[str, datetime]:
        issued_at = int(self._clock().timestamp())
        expires_at = issued_at + self._ttl(kind)
        payload = {
            "sub": str(user_id),
            "username": username,
            "role": Role(role).value,
            "type": kind.value,
            "iat": issued_at,
            "exp": expires_at,
        }
        if kind is TokenKind.refresh:
            payload["jti"] = secrets.token_urlsafe(16)
        token = jwt.encode(payload, self._secret(kind), algorithm=self.config.algorithm)
        return token, datetime.fromtimestamp(expires_at, tz=timezone.utc)

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verify(self, token: str, kind: TokenKind) -> TokenClaims | None:
        """Return the token's claims, or None if it is not a valid, unexpired token of this kind."""
        if not token:
            return None
        try:
            payload = jwt.decode(
                token,
                self._secret(kind),
                algorithms=[self.config.algorithm],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            logger.info("Rejected %s token: %s", kind.value, type(exc).__name__)
            return None

        try:
            claims = _claims_from_payload(payload)
        except (KeyError, TypeError, ValueError):
            logger.info("Rejected %s token: malformed claims", kind.value)
            return None

        if claims.kind is not kind:
            logger.info("Rejected %s token: wrong token type %r", kind.value, claims.kind.value)
            return None
        if claims.expires_at <= self._clock():
            logger.info("Rejected %s token for user_id=%s: expired", kind.value, claims.user_id)
            return None
        return claims

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _secret(self, kind: TokenKind) -> str:
        if kind is TokenKind.refresh:
            return self.config.refresh_secret
        return self.config.access_secret

    def _ttl(self, kind: TokenKind) -> int:
        if kind is TokenKind.refresh:
            return self.config.refresh_ttl_seconds
        return self.config.access_ttl_seconds


def _claims_from_payload(payload: dict) -> TokenClaims:
    return TokenClaims(
        user_id=int(payload["sub"]),
        username=str(payload["username"]),
        role=Role(payload["role"]),
        issued_at=datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc),
        expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc),
        kind=TokenKind(payload["type"]),
    )

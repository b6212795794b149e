"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication and authorization.

Per-request state machine:

    Unauthenticated --[valid access token]--> Authenticated --[role allowed]--> Authorized --> handler
          |                                          |
          +-- AuthenticationFailure (401)            +-- AuthorizationFailure (403)

Each failed transition ends the request immediately; the handler never runs.

Authentication Guard (get_current_identity):
  Only `Authorization: Bearer <token>` is accepted. Any other scheme, spacing
  or an absent header is rejected before anything else happens: no token
  verification, no store access. The verified claims are attached to
  request.state.identity. The user record is NOT reloaded per request; the
  claims are a snapshot valid until the access token expires.

Authorization Guard (RequireRoles):
  Exact membership of the identity's role in the route's allowed set. No
  hierarchy. An empty allowed set denies everyone.

Layer rule: may import from fastapi (Depends/Request). No imports from api/.
"""

from collections.abc import Iterable

from fastapi import Depends, Request

from auth.errors import AuthenticationFailure, AuthorizationFailure
from auth.models import Role, TokenClaims, TokenKind
from auth.tokens import TokenService

_SCHEME = "Bearer "


def parse_bearer(header: str | None) -> str | None:
    """Return the token from an exact `Bearer <token>` header value, else None."""
    if not header or not header.startswith(_SCHEME):
        return None
    token = header[len(_SCHEME) :]
    if not token or any(ch.isspace() for ch in token):
        return None
    return token


def get_current_identity(request: Request) -> TokenClaims:
    """Require a valid access token. Raises AuthenticationFailure (401) otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(identity: TokenClaims = Depends(get_current_identity)): ...
    """
    token = parse_bearer(request.headers.get("Authorization"))
    if token is None:
        raise AuthenticationFailure("Missing or invalid authorization header")

    tokens: TokenService = request.app.state.tokens
    claims = tokens.verify(token, TokenKind.access)
    if claims is None:
        raise AuthenticationFailure("Invalid or expired token")

    request.state.identity = claims
    return claims


def is_role_allowed(role: Role | None, allowed_roles: Iterable[Role]) -> bool:
    """Exact-match policy check. Fails closed on a missing role or empty allow-set."""
    if role is None:
        return False
    return role in frozenset(allowed_roles)


class RequireRoles:
    """Dependency class for role-gated routes.

    Usage:
        require_admin = RequireRoles(Role.admin)
        @router.get("/users")
        def route(identity: TokenClaims = Depends(require_admin)): ...
    """

    def __init__(self, *allowed_roles: Role) -> None:
        # Role(...) rejects anything outside the closed set at import time.
        self.allowed_roles = frozenset(Role(r) for r in allowed_roles)

    def __call__(self, identity: TokenClaims = Depends(get_current_identity)) -> TokenClaims:
        if not is_role_allowed(identity.role, self.allowed_roles):
            raise AuthorizationFailure()
        return identity


require_admin = RequireRoles(Role.admin)
require_staff = RequireRoles(Role.admin, Role.staff)

"""
api/routes/v1/auth.py -- Session lifecycle REST endpoints.

Routes:
  POST /api/v1/auth/login      -- password login; returns access + refresh tokens
  POST /api/v1/auth/refresh    -- exchange a refresh token for a new pair
  POST /api/v1/auth/logout     -- acknowledge client-side logout (requires auth)
  GET  /api/v1/auth/me         -- identity from the access token (requires auth)
  GET  /api/v1/auth/sessions   -- caller's live refresh sessions (requires auth)

Security:
  POST /login is rate-limited per client IP (LOGIN_RATE_LIMIT, default 10/minute).
  Login failures share one message whatever the cause; see auth.errors.CredentialFailure.
  Responses that carry tokens send Cache-Control: no-store.
  login and refresh are sync handlers: bcrypt runs in the thread pool, not on the event loop.

Logout does not touch the ledger. The refresh token the client discards stays
valid until its natural expiry; see DESIGN.md for the reasoning.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import (
    IdentityResponse,
    LoginRequest,
    LoginResponse,
    RefreshRequest,
    SessionInfo,
    TokenPairResponse,
    UserSummary,
)
from api.responses import success_response
from auth.dependencies import get_current_identity
from auth.ledger import RefreshTokenLedger
from auth.models import TokenClaims
from auth.service import AuthService
from core.config import get_settings

# Auth policy:
# - POST /api/v1/auth/login:     public -- login endpoint must be unauthenticated
# - POST /api/v1/auth/refresh:   public -- the refresh token itself is the credential
# - POST /api/v1/auth/logout:    requires auth (get_current_identity)
# - GET  /api/v1/auth/me:        requires auth (get_current_identity)
# - GET  /api/v1/auth/sessions:  requires auth (get_current_identity)
router = APIRouter()

_settings = get_settings()


@limiter.limit(_settings.login_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login")
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username or email plus password; return a token pair.

    Include the access token on later requests as: Authorization: Bearer <accessToken>
    """
    service: AuthService = request.app.state.auth_service
    result = service.login(body.username_or_email, body.password)
    tokens = TokenPairResponse.from_pair(result.tokens)
    data = LoginResponse(**tokens.model_dump(), user=UserSummary.from_user(result.user))
    return success_response(data, "Login successful", no_store=True)


@router.post("/auth/refresh")
def refresh(request: Request, body: RefreshRequest) -> JSONResponse:
    """Rotate: a valid refresh token buys a new access + refresh pair.

    Any failure is a 401 and the client must log in again with a password.
    """
    service: AuthService = request.app.state.auth_service
    pair = service.refresh(body.refresh_token)
    return success_response(TokenPairResponse.from_pair(pair), "Token refreshed", no_store=True)


@router.post("/auth/logout")
async def logout(identity: TokenClaims = Depends(get_current_identity)) -> JSONResponse:
    """Acknowledge logout. The client is expected to discard both tokens."""
    return success_response(None, "Logged out")


@router.get("/auth/me")
async def me(identity: TokenClaims = Depends(get_current_identity)) -> JSONResponse:
    """Return the identity carried by the caller's access token."""
    return success_response(IdentityResponse.from_claims(identity))


@router.get("/auth/sessions")
def list_sessions(request: Request, identity: TokenClaims = Depends(get_current_identity)) -> JSONResponse:
    """List the caller's unexpired refresh sessions, newest first."""
    ledger: RefreshTokenLedger = request.app.state.ledger
    sessions = [
        SessionInfo(session_id=r.id, created_at=r.created_at, expires_at=r.expires_at)
        for r in ledger.active_sessions(identity.user_id)
    ]
    return success_response(sessions)

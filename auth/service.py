"""
auth/service.py -- Login and refresh-rotation flows.

AuthService composes the credential store, the token service and the refresh
ledger. It is the only place the three meet; routes call it and translate its
exceptions into responses via the AuthError handler.

Login:   store lookup -> bcrypt verify -> issue pair -> ledger.store (last)
Refresh: verify refresh signature/expiry -> ledger match -> reload user
         -> issue pair from the user's current role -> ledger.store (last)

Both flows are synchronous and CPU-heavy (bcrypt). Routes that call them are
plain `def` handlers so FastAPI runs them in its thread pool instead of on the
event loop.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging

from auth.errors import CredentialFailure, RefreshFailure
from auth.ledger import RefreshTokenLedger
from auth.models import LoginResult, TokenKind, TokenPair, User
from auth.passwords import hash_password, verify_password
from auth.store import UserStore
from auth.tokens import TokenService

logger = logging.getLogger("assetdesk.auth")


class AuthService:
    def __init__(self, store: UserStore, ledger: RefreshTokenLedger, tokens: TokenService) -> None:
        self.store = store
        self.ledger = ledger
        self.tokens = tokens
        self._rounds = tokens.config.bcrypt_rounds
        # Timing equalization: unknown users still cost one bcrypt verify at
        # the same work factor as a real account, so response time does not
        # reveal whether the identifier exists.
        self._dummy_hash = hash_password("assetdesk_timing_dummy", rounds=self._rounds)

    def hash_password(self, plain: str) -> str:
        return hash_password(plain, rounds=self._rounds)

    def authenticate(self, identifier: str, password: str) -> User | None:
        """Return the Active user matching identifier + password, else None.

        Always runs bcrypt, whether or not the user exists.
        """
        user = self.store.find_active_by_username_or_email(identifier)
        if user is None:
            verify_password(password, self._dummy_hash)
            return None
        if not verify_password(password, user.password_hash):
            return None
        return user

    def login(self, identifier: str, password: str) -> LoginResult:
        """Authenticate and open a new session.

        Raises CredentialFailure for unknown user, wrong password or inactive
        account alike.
        """
        user = self.authenticate(identifier, password)
        if user is None:
            logger.info("Login failed for identifier=%r", identifier)
            raise CredentialFailure()

        pair = self.tokens.issue_pair(user_id=user.id, username=user.username, role=user.role)
        self.ledger.store(user.id, pair.refresh_token, pair.refresh_expires_at)
        logger.info("Login succeeded for user_id=%s", user.id)
        return LoginResult(tokens=pair, user=user)

    def refresh(self, refresh_token: str) -> TokenPair:
        """Exchange a live refresh token for a new access/refresh pair.

        The presented token stays in the ledger until it expires; rotation only
        appends. A user deactivated since the token was issued is refused.
        """
        claims = self.tokens.verify(refresh_token, TokenKind.refresh)
        if claims is None:
            raise RefreshFailure()
        if not self.ledger.is_valid(claims.user_id, refresh_token):
            logger.info("Refresh token for user_id=%s not found in ledger", claims.user_id)
            raise RefreshFailure()

        user = self.store.get_by_id(claims.user_id)
        if user is None or not user.is_active:
            logger.info("Refresh refused for missing or inactive user_id=%s", claims.user_id)
            raise RefreshFailure()

        pair = self.tokens.issue_pair(user_id=user.id, username=user.username, role=user.role)
        self.ledger.store(user.id, pair.refresh_token, pair.refresh_expires_at)
        logger.info("Rotated refresh token for user_id=%s", user.id)
        return pair

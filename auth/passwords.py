"""
auth/passwords.py -- One-way salted hashing for passwords and refresh tokens.

bcrypt is used directly (no passlib wrapper). Cost is configurable through
AuthConfig.bcrypt_rounds and never drops below 10.

bcrypt only reads the first 72 bytes of its input. Passwords are capped well
below that at the API layer, but refresh tokens are JWTs several hundred bytes
long whose first 72 bytes are the (constant) header plus the start of the
(per-user constant) payload. Hashing them raw would let any refresh token of
the same user match any other. Inputs longer than 72 bytes are therefore
reduced to base64(SHA-256(input)) first, so every byte contributes. Inputs of
72 bytes or fewer go to bcrypt unchanged, which keeps hashes produced by
other bcrypt implementations verifiable.

Plaintext never reaches a log record from this module.
"""

from __future__ import annotations

import base64
import hashlib

import bcrypt

DEFAULT_ROUNDS = 12
MIN_ROUNDS = 10

_BCRYPT_MAX_BYTES = 72


def _prepare(plain: str) -> bytes:
    raw = plain.encode("utf-8")
    if len(raw) > _BCRYPT_MAX_BYTES:
        return base64.b64encode(hashlib.sha256(raw).digest())
    return raw


def hash_password(plain: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """Return a bcrypt hash of the given plaintext. Do not store plain values."""
    return bcrypt.hashpw(_prepare(plain), bcrypt.gensalt(rounds=max(rounds, MIN_ROUNDS))).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext matches the bcrypt hash.

    bcrypt.checkpw compares in constant time. A malformed or empty hash is
    treated as a mismatch rather than an error.
    """
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(_prepare(plain), hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False

"""
auth/ledger.py -- Refresh Token Ledger: hashed-at-rest session records.

Every refresh token handed to a client is recorded here as a bcrypt hash with
its expiry. A refresh request is honoured only if the presented token matches
one of the user's unexpired hashes.

Why a linear scan: bcrypt hashes are salted, so the same token hashes
differently every time and cannot be looked up by equality. is_valid() fetches
the user's live rows (newest first) and runs bcrypt against each until one
matches. Cost is O(k) in the user's concurrent sessions, which stays small in
practice (one per device).

Rows are append-only. Login and rotation insert; nothing updates. Expired rows
are dead weight that purge_expired() removes; deleting them never changes a
validity outcome because is_valid() already ignores them.

Timestamps are stored as ISO 8601 UTC strings with fixed microsecond precision
so string comparison in SQL matches chronological order.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import Column, Index, Integer, String, Table, Text
from sqlalchemy.engine import Engine

from auth.models import RefreshTokenRecord
from auth.passwords import DEFAULT_ROUNDS, hash_password, verify_password
from auth.store import metadata
from auth.tokens import Clock, utc_now

logger = logging.getLogger("assetdesk.auth")

refresh_tokens_table = Table(
    "refresh_tokens",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False),
    Column("token_hash", Text, nullable=False),  # bcrypt, never the token itself
    Column("expires_at", String(32), nullable=False),
    Column("created_at", String(32), nullable=False),
    Index("ix_refresh_tokens_user_id", "user_id"),
)


def _iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


class RefreshTokenLedger:
    """Persistent, hashed record of issued refresh tokens.

    Usage:
        ledger = RefreshTokenLedger(user_store.engine)
        ledger.store(user.id, pair.refresh_token, pair.refresh_expires_at)
        ledger.is_valid(user.id, presented_token)   # -> bool
    """

    def __init__(self, engine: Engine, rounds: int = DEFAULT_ROUNDS, clock: Clock = utc_now) -> None:
        self.engine = engine
        self._rounds = rounds
        self._clock = clock
        metadata.create_all(self.engine, tables=[refresh_tokens_table])

    def store(self, user_id: int, refresh_token: str, expires_at: datetime) -> int:
        """Hash refresh_token and append a ledger row. Returns the row id.

        The insert is a single statement, so an abandoned login either has
        its row or leaves nothing behind.
        """
        token_hash = hash_password(refresh_token, rounds=self._rounds)
        with self.engine.connect() as conn:
            result = conn.execute(
                refresh_tokens_table.insert().values(
                    user_id=user_id,
                    token_hash=token_hash,
                    expires_at=_iso(expires_at),
                    created_at=_iso(self._clock()),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def active_sessions(self, user_id: int) -> list[RefreshTokenRecord]:
        """Return the user's unexpired ledger rows, newest first."""
        query = (
            refresh_tokens_table.select()
            .where(
                (refresh_tokens_table.c.user_id == user_id)
                & (refresh_tokens_table.c.expires_at > _iso(self._clock()))
            )
            .order_by(refresh_tokens_table.c.created_at.desc(), refresh_tokens_table.c.id.desc())
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_record(r) for r in rows]

    def is_valid(self, user_id: int, refresh_token: str) -> bool:
        """Return True if refresh_token matches one of the user's unexpired hashes."""
        for record in self.active_sessions(user_id):
            if verify_password(refresh_token, record.token_hash):
                return True
        return False

    def purge_expired(self) -> int:
        """Delete rows whose expiry has passed. Returns number of rows removed."""
        with self.engine.connect() as conn:
            result = conn.execute(
                refresh_tokens_table.delete().where(refresh_tokens_table.c.expires_at <= _iso(self._clock()))
            )
            conn.commit()
        if result.rowcount:
            logger.info("Purged %d expired refresh token records", result.rowcount)
        return result.rowcount


def _row_to_record(row) -> RefreshTokenRecord:
    return RefreshTokenRecord(
        id=row.id,
        user_id=row.user_id,
        token_hash=row.token_hash,
        expires_at=row.expires_at,
        created_at=row.created_at,
    )

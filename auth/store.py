"""
auth/store.py -- SQLAlchemy Core persistence for user accounts.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. Route and service code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.
  There is no delete operation. Accounts are deactivated (status=Inactive),
  never removed, so audit references (created_by) stay resolvable.

The engine created here is shared with auth.ledger.RefreshTokenLedger so both
tables live in one database. `metadata` is public for that reason.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, or_, select
from sqlalchemy.engine import Engine

from auth.models import Role, User, UserStatus

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

users_table = Table(
    "users",
    metadata,
    Column("user_id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(50), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("full_name", String(200), nullable=False, server_default=""),
    Column("role", String(16), nullable=False, server_default=Role.staff.value),
    Column("department", String(100)),
    Column("status", String(16), nullable=False, server_default=UserStatus.active.value),
    Column("created_by", Integer),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

# Columns update_user() may touch. Anything else is a programming error.
_MUTABLE_FIELDS = frozenset({"role", "status", "full_name", "department", "password_hash"})


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so ledger reads do not block on login writes."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _identifier_matches(identifier: str):
    """Exact username, or email compared case-insensitively."""
    return or_(users_table.c.username == identifier, func.lower(users_table.c.email) == identifier.lower())


def make_engine(db_url: str) -> Engine:
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Credential store for User accounts.

    Usage:
        store = UserStore("sqlite:///assetdesk.db")
        store.create_user(User(username="admin", email="admin@example.com",
                               role=Role.admin, password_hash=hash_password("...")))
        user = store.find_active_by_username_or_email("admin")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        metadata.create_all(self.engine, tables=[users_table])

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find_active_by_username_or_email(self, identifier: str) -> User | None:
        """Return the Active user whose username or email matches identifier, else None.

        Inactive accounts are invisible here, so login treats them exactly like
        unknown users.
        """
        query = users_table.select().where(
            _identifier_matches(identifier)
            & (users_table.c.status == UserStatus.active.value)
        )
        with self.engine.connect() as conn:
            row = conn.execute(query).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_username_or_email(self, identifier: str) -> User | None:
        """Like find_active_by_username_or_email, but any status. For admin tooling."""
        query = users_table.select().where(_identifier_matches(identifier))
        with self.engine.connect() as conn:
            row = conn.execute(query).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(users_table.select().where(users_table.c.user_id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def has_users(self) -> bool:
        """Return True if at least one user record exists."""
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(users_table)).scalar()
        return (result or 0) > 0

    def list_users(
        self,
        search: str = "",
        role: Role | None = None,
        status: UserStatus | None = None,
        page: int = 1,
        limit: int = 25,
    ) -> tuple[list[User], int]:
        """Return one page of users (newest first) and the total match count.

        search is a case-insensitive substring match on username, email and
        full_name.
        """
        conditions = []
        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(
                    users_table.c.username.ilike(pattern),
                    users_table.c.email.ilike(pattern),
                    users_table.c.full_name.ilike(pattern),
                )
            )
        if role is not None:
            conditions.append(users_table.c.role == role.value)
        if status is not None:
            conditions.append(users_table.c.status == status.value)

        count_query = select(func.count()).select_from(users_table)
        page_query = users_table.select()
        for condition in conditions:
            count_query = count_query.where(condition)
            page_query = page_query.where(condition)
        page_query = (
            page_query.order_by(users_table.c.created_at.desc(), users_table.c.user_id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        with self.engine.connect() as conn:
            total = conn.execute(count_query).scalar() or 0
            rows = conn.execute(page_query).fetchall()
        return [_row_to_user(r) for r in rows], total

    def count_active_admins(self) -> int:
        """Return the number of Active Admin users."""
        query = (
            select(func.count())
            .select_from(users_table)
            .where(
                (users_table.c.role == Role.admin.value) & (users_table.c.status == UserStatus.active.value)
            )
        )
        with self.engine.connect() as conn:
            result = conn.execute(query).scalar()
        return result or 0

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned ID.

        Raises sqlalchemy.exc.IntegrityError if the username or email already
        exists. Callers map that to a conflict response.
        """
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                users_table.insert().values(
                    username=user.username,
                    email=user.email.lower(),
                    password_hash=user.password_hash,
                    full_name=user.full_name,
                    role=Role(user.role).value,
                    department=user.department,
                    status=UserStatus(user.status).value,
                    created_by=user.created_by,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def update_user(self, user_id: int, **fields) -> bool:
        """Update mutable fields on an existing user.

        Accepted fields: role, status, full_name, department, password_hash.
        Returns True if a row was updated, False if user_id was not found.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update user fields: {sorted(unknown)!r}")
        if "role" in fields:
            fields["role"] = Role(fields["role"]).value
        if "status" in fields:
            fields["status"] = UserStatus(fields["status"]).value
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(users_table.update().where(users_table.c.user_id == user_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.user_id,
        username=row.username,
        email=row.email,
        password_hash=row.password_hash,
        full_name=row.full_name or "",
        role=Role(row.role),
        department=row.department,
        status=UserStatus(row.status),
        created_by=row.created_by,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )

"""
auth/store.py -- SQLAlchemy Core persistence layer for users and credentials.

Pattern: Repository + Data Mapper.
CredentialStore is the repository; _row_to_user / _row_to_auth are the mappers.
Service and route code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

Integrity:
  users.email and auth.email are both UNIQUE. A duplicate signup surfaces as
  sqlalchemy.exc.IntegrityError from create_user_with_auth(); AuthService turns
  that into a Conflict outcome.

  create_user_with_auth() writes the users row and the auth row inside one
  engine.begin() transaction, so a failure on either insert leaves neither.

Layer rule: no imports from api/, core/, or cache/.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, ForeignKey, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine

from auth.models import Auth, User

_DEFAULT_DB_URL = "sqlite:///authcore.db"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("first_name", String(50), nullable=False),
    Column("last_name", String(50), nullable=False),
    Column("business_name", String(50)),
    Column("country_code", String(2)),
    Column("status", String(20), nullable=False, server_default="active"),
    Column("verified", Integer, nullable=False, server_default="0"),
    Column("role", String(30), nullable=False, server_default="freelancer"),
    Column("created_at", String(32), nullable=False),
)

_auth = Table(
    "auth",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("last_login_at", String(32)),  # ISO 8601 timestamp of last successful login
)

# Profile columns callers may change through update_user().
_MUTABLE_USER_FIELDS = {"first_name", "last_name", "business_name", "country_code", "status", "verified"}


# ---------------------------------------------------------------------------
# SQLite connection setup
# ---------------------------------------------------------------------------


def _configure_sqlite(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and foreign key enforcement.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CredentialStore:
    """Repository for User and Auth records.

    Usage:
        store = CredentialStore("sqlite:///authcore.db")
        user = store.create_user_with_auth(User(email=..., first_name=..., last_name=...), password_hash)
        auth = store.get_auth_by_email(user.email)
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _configure_sqlite)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_user_with_auth(self, user: User, password_hash: str) -> User:
        """Insert a user and its credential record atomically. Returns the stored User.

        Raises sqlalchemy.exc.IntegrityError if the email already exists. Nothing
        is written in that case.
        """
        user_id = str(uuid.uuid4())
        created_at = _now_iso()
        with self.engine.begin() as conn:
            conn.execute(
                _users.insert().values(
                    id=user_id,
                    email=user.email,
                    first_name=user.first_name,
                    last_name=user.last_name,
                    business_name=user.business_name,
                    country_code=user.country_code,
                    status=user.status,
                    verified=1 if user.verified else 0,
                    role=user.role,
                    created_at=created_at,
                )
            )
            conn.execute(
                _auth.insert().values(
                    user_id=user_id,
                    email=user.email,
                    password_hash=password_hash,
                )
            )
        stored = self.get_user_by_id(user_id)
        if stored is None:
            raise RuntimeError(f"user {user_id} missing after insert")
        return stored

    def update_password(self, user_id: str, password_hash: str) -> bool:
        """Overwrite the stored hash. Returns False if user_id has no credential record."""
        with self.engine.begin() as conn:
            result = conn.execute(_auth.update().where(_auth.c.user_id == user_id).values(password_hash=password_hash))
        return result.rowcount > 0

    def update_last_login(self, auth_id: int) -> None:
        """Stamp the current UTC timestamp as last_login_at for the credential record."""
        with self.engine.begin() as conn:
            conn.execute(_auth.update().where(_auth.c.id == auth_id).values(last_login_at=_now_iso()))

    def update_user(self, user_id: str, **fields) -> bool:
        """Update mutable profile fields on an existing user.

        Accepted fields: first_name, last_name, business_name, country_code,
        status, verified. Unknown keys raise ValueError. verified is passed as
        bool and stored as int.

        Returns True if a row was updated, False if user_id was not found.
        """
        unknown = set(fields) - _MUTABLE_USER_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {unknown!r}")
        if "verified" in fields:
            fields["verified"] = 1 if fields["verified"] else 0
        if not fields:
            return self.get_user_by_id(user_id) is not None
        with self.engine.begin() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_user_by_id(self, user_id: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_auth_by_email(self, email: str) -> Auth | None:
        """Look up a credential record by exact email, with its linked User attached."""
        with self.engine.connect() as conn:
            row = conn.execute(_auth.select().where(_auth.c.email == email)).fetchone()
            if row is None:
                return None
            user_row = conn.execute(_users.select().where(_users.c.id == row.user_id)).fetchone()
        auth = _row_to_auth(row)
        auth.user = _row_to_user(user_row) if user_row is not None else None
        return auth

    def get_auth_by_user_id(self, user_id: str) -> Auth | None:
        with self.engine.connect() as conn:
            row = conn.execute(_auth.select().where(_auth.c.user_id == user_id)).fetchone()
        return _row_to_auth(row) if row is not None else None

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def flush(self) -> None:
        """Delete every credential and user row. Test teardown only."""
        with self.engine.begin() as conn:
            conn.execute(_auth.delete())
            conn.execute(_users.delete())

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            conn.execute(_users.select().limit(1)).fetchall()
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        first_name=row.first_name,
        last_name=row.last_name,
        business_name=row.business_name,
        country_code=row.country_code,
        status=row.status,
        verified=bool(row.verified),
        role=row.role,
        created_at=row.created_at,
    )


def _row_to_auth(row) -> Auth:
    return Auth(
        id=row.id,
        user_id=row.user_id,
        email=row.email,
        password_hash=row.password_hash,
        last_login_at=row.last_login_at,
    )

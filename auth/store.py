"""
auth/store.py -- SQLAlchemy Core persistence layer for users and role assignments.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user is the mapper. Route and directory
code never touches SQL directly.

Schema:
  users       -- one row per account; UNIQUE(username), UNIQUE(email)
  roles       -- the three catalog rows from auth/roles.py, seeded on startup
  user_roles  -- many-to-many link; UNIQUE(user_id, role_id)

Atomicity:
  Every write that touches more than one table runs inside a single
  engine.begin() block: user insert + initial assignments, field update +
  role replacement, assignment removal + user delete. A failure anywhere in
  the block rolls the whole write back, so no reader ever sees a user whose
  roles were deleted but not yet re-inserted.

  Uniqueness checks in the directory are advisory; the UNIQUE constraints
  here are the final authority. Writes that violate them raise
  sqlalchemy.exc.IntegrityError, which the directory translates to
  ConflictError.

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    event,
    func,
    select,
)
from sqlalchemy.engine import Connection, Engine

from auth.models import User
from auth.roles import ROLE_CATALOG

logger = logging.getLogger("gatekeeper.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(50), nullable=False, unique=True),
    Column("email", String(100), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("first_name", String(100), nullable=False, server_default=""),
    Column("last_name", String(100), nullable=False, server_default=""),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32)),
)

_roles = Table(
    "roles",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=False),
    Column("name", String(50), nullable=False, unique=True),
    Column("description", String(200), nullable=False, server_default=""),
)

_user_roles = Table(
    "user_roles",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("role_id", Integer, ForeignKey("roles.id"), nullable=False),
    Column("assigned_at", String(32), nullable=False),
    UniqueConstraint("user_id", "role_id", name="uq_user_roles_user_role"),
)


# ---------------------------------------------------------------------------
# SQLite connection setup
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and foreign key enforcement.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool. foreign_keys is off by default in SQLite.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# Largest value SQLite (and BIGINT elsewhere) can bind. Larger ids cannot name a
# stored row, so they are treated as unknown rather than sent to the driver.
_MAX_ID = 2**63 - 1


def _storable_id(value: int) -> bool:
    return 0 < value <= _MAX_ID


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records and their role assignments.

    Usage:
        store = UserStore("sqlite:///gatekeeper.db")
        uid = store.create_user(User(username="ada", email="ada@example.com", hashed_password=h), [1])
        store.get_role_names(uid)   # ["Admin"]
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_sqlite_pragmas)
        _metadata.create_all(self.engine)
        self._seed_roles()

    def _seed_roles(self) -> None:
        """Insert any catalog role missing from the roles table.

        Idempotent -- safe to call on every startup. Existing rows are left
        untouched, so the catalog ids never move.
        """
        with self.engine.begin() as conn:
            existing = set(conn.execute(select(_roles.c.id)).scalars())
            missing = [r for r in ROLE_CATALOG if int(r.id) not in existing]
            if missing:
                conn.execute(
                    _roles.insert(),
                    [{"id": int(r.id), "name": r.name, "description": r.description} for r in missing],
                )

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def has_users(self) -> bool:
        """Return True if at least one user record exists."""
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return (result or 0) > 0

    def create_user(self, user: User, role_ids: Iterable[int] = ()) -> int:
        """Insert a new user plus its role assignments and return the new ID.

        Both inserts share one transaction. Role ids absent from the roles
        table are skipped. Raises sqlalchemy.exc.IntegrityError if the
        username or email already exists.
        """
        now = _now_iso()
        with self.engine.begin() as conn:
            result = conn.execute(
                _users.insert().values(
                    username=user.username,
                    email=user.email,
                    hashed_password=user.hashed_password,
                    first_name=user.first_name,
                    last_name=user.last_name,
                    is_active=1 if user.is_active else 0,
                    created_at=now,
                )
            )
            user_id = result.inserted_primary_key[0]
            _assign_roles(conn, user_id, role_ids, now)
        return user_id

    def get_by_id(self, user_id: int) -> Optional[User]:
        """Look up a user by primary key. Returns None if not found."""
        if not _storable_id(user_id):
            return None
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_email(self, email: str) -> Optional[User]:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_username(self, username: str) -> Optional[User]:
        """Look up a user by exact username (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self) -> list[User]:
        """Return all users ordered by id."""
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.id)).fetchall()
        return [_row_to_user(r) for r in rows]

    def update_user(self, user_id: int, fields: dict, role_ids: Optional[Iterable[int]] = None) -> bool:
        """Apply a partial update and, optionally, replace the user's roles.

        fields holds column -> value pairs (is_active as bool). updated_at is
        always stamped. When role_ids is not None, every existing assignment
        is removed and role_ids (minus unknown ids) inserted in the same
        transaction; an empty role_ids leaves the user with no roles.

        Returns True if the user exists, False otherwise (nothing is written).
        Raises sqlalchemy.exc.IntegrityError on a username/email collision.
        """
        if not _storable_id(user_id):
            return False
        values = dict(fields)
        if "is_active" in values:
            values["is_active"] = 1 if values["is_active"] else 0
        now = _now_iso()
        values["updated_at"] = now
        with self.engine.begin() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**values))
            if result.rowcount == 0:
                return False
            if role_ids is not None:
                conn.execute(_user_roles.delete().where(_user_roles.c.user_id == user_id))
                _assign_roles(conn, user_id, role_ids, now)
        return True

    def delete_user(self, user_id: int) -> bool:
        """Delete a user and all of its role assignments. Returns False if not found."""
        if not _storable_id(user_id):
            return False
        with self.engine.begin() as conn:
            conn.execute(_user_roles.delete().where(_user_roles.c.user_id == user_id))
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Role assignment queries
    # ------------------------------------------------------------------

    def get_role_names(self, user_id: int) -> list[str]:
        """Return the names of the roles assigned to a user, ordered by role id."""
        if not _storable_id(user_id):
            return []
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(_roles.c.name)
                .select_from(_user_roles.join(_roles, _user_roles.c.role_id == _roles.c.id))
                .where(_user_roles.c.user_id == user_id)
                .order_by(_roles.c.id)
            ).fetchall()
        return [r.name for r in rows]

    def get_role_names_by_user(self) -> dict[int, list[str]]:
        """Return {user_id: [role names]} for every user with at least one role.

        One query for the whole table, so listing users is not N+1.
        """
        result: dict[int, list[str]] = {}
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(_user_roles.c.user_id, _roles.c.name)
                .select_from(_user_roles.join(_roles, _user_roles.c.role_id == _roles.c.id))
                .order_by(_user_roles.c.user_id, _roles.c.id)
            ).fetchall()
        for row in rows:
            result.setdefault(row.user_id, []).append(row.name)
        return result

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Assignment helper (runs on the caller's transaction)
# ---------------------------------------------------------------------------


def _assign_roles(conn: Connection, user_id: int, role_ids: Iterable[int], assigned_at: str) -> None:
    wanted: list[int] = []
    for role_id in role_ids:
        if role_id not in wanted:
            wanted.append(role_id)
    if not wanted:
        return
    known: set[int] = set()
    bindable = [r for r in wanted if _storable_id(r)]
    if bindable:
        known = set(conn.execute(select(_roles.c.id).where(_roles.c.id.in_(bindable))).scalars())
    skipped = [r for r in wanted if r not in known]
    if skipped:
        logger.warning("Skipping unknown role ids %s for user %s", skipped, user_id)
    rows = [{"user_id": user_id, "role_id": r, "assigned_at": assigned_at} for r in wanted if r in known]
    if rows:
        conn.execute(_user_roles.insert(), rows)


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        email=row.email,
        hashed_password=row.hashed_password,
        first_name=row.first_name or "",
        last_name=row.last_name or "",
        is_active=bool(row.is_active),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )

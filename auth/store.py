"""
auth/store.py -- SQLAlchemy Core persistence layer for user records.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user is the mapper. The session manager
and the authorization guard depend on the CredentialStore protocol below, not
on SQL, so any document store offering the same four calls can stand in.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Email and handle uniqueness are enforced by UNIQUE indexes. A violating
  insert surfaces as DuplicateUserError, never as a raw IntegrityError.
  SQLite treats NULLs as distinct in UNIQUE indexes, so any number of users
  may have no handle.

Concurrency:
  Each call opens its own connection; each write is a single statement, which
  SQLite applies atomically. Refresh-token rotation is read-then-write in the
  session manager and accepts last-writer-wins.

Layer rule: no imports from api/, core/, or media/.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import JSON, Column, MetaData, String, Table, Text, create_engine, event, func, or_, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.errors import DuplicateUserError
from auth.models import Plan, Role, User

# ---------------------------------------------------------------------------
# Interface consumed by the core
# ---------------------------------------------------------------------------


class CredentialStore(Protocol):
    def find_user_by_email_or_handle(self, value: str) -> User | None: ...

    def find_user_by_id(self, user_id: str) -> User | None: ...

    def create_user(self, user: User) -> User: ...

    def update_user(self, user_id: str, **patch) -> User | None: ...


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("handle", String(32), unique=True),
    Column("display_name", String(100), nullable=False),
    Column("hashed_password", Text),
    Column("role", String(16), nullable=False, server_default=Role.USER.value),
    Column("plan", String(16), nullable=False, server_default=Plan.FREE.value),
    Column("profile_image_url", Text),
    Column("refresh_tokens", JSON, nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

# Fields update_user() accepts. id, email and created_at are immutable here.
_MUTABLE_FIELDS = {
    "display_name",
    "handle",
    "hashed_password",
    "role",
    "plan",
    "profile_image_url",
    "refresh_tokens",
}


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block during writes."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore("sqlite:///:memory:")
        created = store.create_user(User(email="a@x.com", display_name="A", hashed_password=h))
        store.update_user(created.id, refresh_tokens=[token])
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_users(self) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return (result or 0) > 0

    def find_user_by_id(self, user_id: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_user_by_email_or_handle(self, value: str) -> User | None:
        """Look up a user whose email or handle equals value (case-insensitive)."""
        value = value.strip().lower()
        with self.engine.connect() as conn:
            row = conn.execute(
                _users.select().where(or_(_users.c.email == value, _users.c.handle == value))
            ).fetchone()
        return _row_to_user(row) if row is not None else None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> User:
        """Insert user and return the stored record with id and timestamps filled in.

        Raises DuplicateUserError if the email or handle is already taken.
        """
        now = _now_iso()
        user_id = user.id or uuid.uuid4().hex
        try:
            with self.engine.connect() as conn:
                conn.execute(
                    _users.insert().values(
                        id=user_id,
                        email=user.email.strip().lower(),
                        handle=user.handle.strip().lower() if user.handle else None,
                        display_name=user.display_name,
                        hashed_password=user.hashed_password,
                        role=Role(user.role).value,
                        plan=Plan(user.plan).value,
                        profile_image_url=user.profile_image_url,
                        refresh_tokens=list(user.refresh_tokens),
                        created_at=now,
                        updated_at=now,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise DuplicateUserError() from exc
        return self.find_user_by_id(user_id)  # type: ignore[return-value]

    def update_user(self, user_id: str, **patch) -> User | None:
        """Apply patch to the user and return the updated record, or None if absent.

        Unknown field names raise ValueError rather than being silently dropped.
        """
        unknown = set(patch) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {sorted(unknown)!r}")
        values = dict(patch)
        for key in ("role", "plan"):
            if key in values:
                values[key] = getattr(values[key], "value", values[key])
        if "refresh_tokens" in values:
            values["refresh_tokens"] = list(values["refresh_tokens"])
        values["updated_at"] = _now_iso()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(_users.update().where(_users.c.id == user_id).values(**values))
                conn.commit()
                updated = result.rowcount
        except IntegrityError as exc:
            raise DuplicateUserError() from exc
        if updated == 0:
            return None
        return self.find_user_by_id(user_id)

    def delete_user(self, user_id: str) -> bool:
        """Permanently delete a user. Administrative only; the session core never calls this."""
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
            return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        handle=row.handle,
        display_name=row.display_name,
        hashed_password=row.hashed_password,
        role=Role(row.role),
        plan=Plan(row.plan),
        profile_image_url=row.profile_image_url,
        refresh_tokens=list(row.refresh_tokens or []),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )

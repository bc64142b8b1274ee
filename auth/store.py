"""
auth/store.py -- SQLAlchemy Core persistence layer for User records.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user is the mapper. The authenticator,
the lockout tracker and the routes never touch SQL directly.

The store is constructed explicitly with a database URL and handed to whoever
needs it (app.state in the API, a local variable in the CLI and tests). There
is no module-level connection.

Hashing contract:
  A User whose `password` attribute is set carries a plaintext secret that
  has not been hashed yet. create() and save() hash it into hashed_password
  and clear it. When `password` is None, hashed_password is written back
  untouched, so administrative edits never re-hash an existing hash.

  import_prehashed_users() is the only way to insert a record whose hash was
  produced elsewhere (migrations, seed files). It refuses plaintext.

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, or_, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.errors import DuplicateIdentity, FieldError, ValidationFailed
from auth.models import User
from auth.permissions import default_permissions
from auth.tokens import hash_password, is_bcrypt_hash
from auth.validation import normalize_email, validate_user

logger = logging.getLogger("assetdesk.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(30), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),  # always lower-case
    Column("hashed_password", Text, nullable=False),
    Column("role", String(20), nullable=False, server_default="Employee"),
    Column("permissions", Text, nullable=False, server_default="[]"),  # JSON list
    Column("first_name", String(50), nullable=False),
    Column("last_name", String(50), nullable=False),
    Column("department", String(100)),
    Column("position", String(100)),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("login_attempts", Integer, nullable=False, server_default="0"),
    Column("lock_until", String(32)),  # ISO 8601 UTC, NULL when unlocked
    Column("last_login", String(32)),  # ISO 8601 UTC
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so concurrent readers do not block on writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat()


def _from_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore("sqlite:///assetdesk_auth.db")
        user = store.create(User(username="alice", email="alice@example.com",
                                 password="secret1", first_name="Alice", last_name="Smith"))
        same = store.find_by_email("ALICE@example.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite") and ":memory:" not in db_url and "mode=memory" not in db_url:
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, candidate: User) -> User:
        """Validate, hash and insert a new user. Returns the stored record.

        Raises:
            ValidationFailed:  a field is malformed or the password is missing.
            DuplicateIdentity: the username or email is already taken. Email
                               comparison is case-insensitive.
        """
        validate_user(candidate, require_password=True)
        if not candidate.permissions:
            candidate.permissions = default_permissions(candidate.role)
        self._ensure_unique(candidate.username, candidate.email)

        values = _user_values(candidate)
        values["hashed_password"] = hash_password(candidate.password)
        values["created_at"] = _now_iso()
        user_id = self._insert(values)
        candidate.password = None
        logger.info("Created user %s (role=%s)", candidate.username, candidate.role)
        return self.find_by_id(user_id)

    def save(self, user: User) -> User:
        """Persist changes to an existing user.

        The password is hashed only when user.password holds a new plaintext
        value; otherwise the stored hash is left as it is.
        """
        if user.id is None:
            raise ValueError("save() requires a persisted user; use create() for new records")
        validate_user(user)
        values = _user_values(user)
        if user.password is not None:
            values["hashed_password"] = hash_password(user.password)
        try:
            with self.engine.connect() as conn:
                conn.execute(_users.update().where(_users.c.id == user.id).values(**values))
                conn.commit()
        except IntegrityError as exc:
            raise DuplicateIdentity() from exc
        if user.password is not None:
            user.hashed_password = values["hashed_password"]
            user.password = None
        return user

    def import_prehashed_users(self, users: Iterable[User]) -> int:
        """Bulk-insert users whose passwords are already bcrypt hashes.

        This is a separate administrative path for migrations and seed files.
        Every record must carry hashed_password and no plaintext password;
        anything else is rejected before any row is written. The whole batch
        is inserted in one transaction.

        Returns the number of rows inserted.
        """
        batch: list[dict] = []
        seen_usernames: set[str] = set()
        seen_emails: set[str] = set()
        for user in users:
            if user.password is not None or not user.hashed_password or not is_bcrypt_hash(user.hashed_password):
                raise ValidationFailed(
                    f"Record {user.username!r} must carry a bcrypt hash and no plaintext password",
                    errors=[FieldError("hashed_password", "A bcrypt hash is required")],
                )
            validate_user(user)
            if not user.permissions:
                user.permissions = default_permissions(user.role)
            if user.username in seen_usernames or user.email in seen_emails:
                raise DuplicateIdentity(f"Duplicate record in import batch: {user.username!r}")
            seen_usernames.add(user.username)
            seen_emails.add(user.email)
            self._ensure_unique(user.username, user.email)
            values = _user_values(user)
            values["hashed_password"] = user.hashed_password
            values["created_at"] = _now_iso()
            batch.append(values)
        if not batch:
            return 0
        try:
            with self.engine.connect() as conn:
                conn.execute(_users.insert(), batch)
                conn.commit()
        except IntegrityError as exc:
            raise DuplicateIdentity() from exc
        logger.info("Imported %d pre-hashed user(s)", len(batch))
        return len(batch)

    # ------------------------------------------------------------------
    # Lockout primitives
    # ------------------------------------------------------------------

    def increment_login_attempts(self, user_id: int, threshold: int, lock_until: datetime) -> bool:
        """Add one failed attempt and lock the account if the threshold is reached.

        Returns True when this call set the lock.

        Both statements run in one transaction. The increment is done in SQL
        so concurrent failures are not lost; the lock condition reads the
        incremented column rather than the caller's snapshot, and only sets
        lock_until on an account that is not already locked.
        """
        with self.engine.connect() as conn:
            conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(login_attempts=_users.c.login_attempts + 1)
            )
            result = conn.execute(
                _users.update()
                .where(
                    (_users.c.id == user_id)
                    & (_users.c.login_attempts >= threshold)
                    & (_users.c.lock_until.is_(None))
                )
                .values(lock_until=_to_iso(lock_until))
            )
            conn.commit()
        return result.rowcount > 0

    def restart_login_attempts(self, user_id: int) -> None:
        """Start a fresh failure cycle after an expired lock: one attempt, no lock."""
        with self.engine.connect() as conn:
            conn.execute(_users.update().where(_users.c.id == user_id).values(login_attempts=1, lock_until=None))
            conn.commit()

    def reset_login_attempts(self, user_id: int) -> None:
        with self.engine.connect() as conn:
            conn.execute(_users.update().where(_users.c.id == user_id).values(login_attempts=0, lock_until=None))
            conn.commit()

    def update_last_login(self, user_id: int, when: datetime) -> None:
        with self.engine.connect() as conn:
            conn.execute(_users.update().where(_users.c.id == user_id).values(last_login=_to_iso(when)))
            conn.commit()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_by_email(self, email: str) -> User | None:
        """Look up a user by email, ignoring case. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == normalize_email(email))).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_username(self, username: str) -> User | None:
        """Look up a user by exact username. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username.strip())).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self, active_only: bool = True) -> list[User]:
        """Return users ordered by username."""
        query = _users.select().order_by(_users.c.username)
        if active_only:
            query = query.where(_users.c.is_active == 1)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_user(r) for r in rows]

    def count_active_admins(self) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(
                text("SELECT COUNT(*) FROM users WHERE role = 'Admin' AND is_active = 1")
            ).scalar()
        return result or 0

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True

    def close(self) -> None:
        self.engine.dispose()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _ensure_unique(self, username: str, email: str) -> None:
        with self.engine.connect() as conn:
            row = conn.execute(
                _users.select().where(or_(_users.c.username == username, _users.c.email == email))
            ).fetchone()
        if row is not None:
            raise DuplicateIdentity()

    def _insert(self, values: dict) -> int:
        # The pre-check in _ensure_unique can race with a concurrent insert;
        # the UNIQUE indexes are the final word.
        try:
            with self.engine.connect() as conn:
                result = conn.execute(_users.insert().values(**values))
                conn.commit()
        except IntegrityError as exc:
            raise DuplicateIdentity() from exc
        return result.inserted_primary_key[0]


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _user_values(user: User) -> dict:
    """Column values for the editable fields of a user.

    The hash, the lockout counters and the timestamps are excluded: they are
    written only by create(), the lockout primitives and update_last_login().
    """
    return {
        "username": user.username,
        "email": user.email,
        "role": user.role,
        "permissions": json.dumps(list(user.permissions)),
        "first_name": user.first_name,
        "last_name": user.last_name,
        "department": user.department,
        "position": user.position,
        "is_active": 1 if user.is_active else 0,
    }


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        email=row.email,
        hashed_password=row.hashed_password,
        role=row.role,
        permissions=json.loads(row.permissions) if row.permissions else [],
        first_name=row.first_name,
        last_name=row.last_name,
        department=row.department,
        position=row.position,
        is_active=bool(row.is_active),
        login_attempts=row.login_attempts or 0,
        lock_until=_from_iso(row.lock_until),
        last_login=_from_iso(row.last_login),
        created_at=row.created_at,
    )

"""
auth/store.py -- SQLAlchemy Core persistence layer for users and follows.

Pattern: Repository + Data Mapper. UserStore is the repository and satisfies
the auth.directory.UserDirectory protocol; _row_to_user is the mapper.
Service and route code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

Uniqueness:
  email and username carry named UNIQUE constraints. The database decides
  which of two racing inserts wins; the loser's IntegrityError is translated
  into a UniquenessViolation value. There is no application-level lock.

Atomic update:
  update() runs select + merge + write inside one engine.begin() block and
  writes only the columns the caller supplied. The SELECT uses FOR UPDATE
  where the dialect supports it (PostgreSQL). On SQLite every transaction
  starts with BEGIN IMMEDIATE, so the read already holds the write lock and a
  concurrent update waits for the commit instead of reading a stale row.

Failure policy:
  IntegrityError on users -> UniquenessViolation (returned).
  Any other SQLAlchemyError -> logged, raised as auth.errors.Unexpected.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    LargeBinary,
    MetaData,
    PrimaryKeyConstraint,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    event,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import NotFound, UniquenessViolation, Unexpected
from auth.models import UserId, UserRecord

logger = logging.getLogger("conduit.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(350), nullable=False),
    Column("username", String(25), nullable=False),
    Column("salt", LargeBinary, nullable=False),
    Column("hashed_password", LargeBinary, nullable=False),
    Column("bio", Text, nullable=False, server_default=""),
    Column("image", Text, nullable=False, server_default=""),
    Column("created_at", String(32), nullable=False),
    UniqueConstraint("email", name="uq_users_email"),
    UniqueConstraint("username", name="uq_users_username"),
)

_follows = Table(
    "follows",
    _metadata,
    Column("follower_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("followed_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    PrimaryKeyConstraint("follower_id", "followed_id", name="pk_follows"),
)

# Only these columns may be changed through update().
_UPDATABLE = ("email", "username", "salt", "hashed_password", "bio", "image")


# ---------------------------------------------------------------------------
# SQLite connection setup
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block behind a writer.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _disable_driver_transactions(dbapi_conn, connection_record) -> None:
    """Stop pysqlite from issuing its own deferred BEGIN before DML.

    Transactions are opened by _begin_immediate instead.
    """
    dbapi_conn.isolation_level = None


def _begin_immediate(conn) -> None:
    """Open every transaction holding the database write lock.

    A deferred BEGIN lets two read-modify-write transactions read the same
    row before either writes. IMMEDIATE makes the second one wait.
    """
    conn.exec_driver_sql("BEGIN IMMEDIATE")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@contextmanager
def _storage_errors(action: str) -> Iterator[None]:
    """Translate driver faults into Unexpected, logging the original."""
    try:
        yield
    except SQLAlchemyError as exc:
        logger.exception("Storage failure: %s", action)
        raise Unexpected(f"Failed to {action}", exc) from exc


def _constraint_column(exc: IntegrityError) -> str:
    """Column named in the driver message.

    SQLite reports "UNIQUE constraint failed: users.email"; PostgreSQL names
    the constraint ("uq_users_email"). Both mention the column.
    """
    return "email" if "email" in str(exc.orig).lower() else "username"


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for users and the follow graph.

    Usage:
        store = UserStore("sqlite:///conduit.db")
        user_id = store.insert("alice", "alice@x.com", salt, derived)
        record = store.select_by_id(user_id)
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
            event.listen(self.engine, "connect", _disable_driver_transactions)
            event.listen(self.engine, "begin", _begin_immediate)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logger.warning("Database ping failed", exc_info=True)
            return False
        return True

    # ------------------------------------------------------------------
    # User writes
    # ------------------------------------------------------------------

    def _taken(self, column, value: str, user_id: UserId | None) -> bool:
        query = _users.select().where(column == value)
        if user_id is not None:
            query = query.where(_users.c.id != user_id)
        with self.engine.connect() as conn:
            return conn.execute(query).fetchone() is not None

    def _violation(
        self,
        exc: IntegrityError,
        email: str | None,
        username: str | None,
        user_id: UserId | None = None,
    ) -> UniquenessViolation:
        """Work out which UNIQUE constraint rejected the write.

        A write can collide on both columns, and drivers only report the first
        index they checked, so the username is looked up first. The driver
        message decides only if neither lookup finds the conflicting row.
        """
        if username is not None and self._taken(_users.c.username, username, user_id):
            return UniquenessViolation("username", username)
        if email is not None and self._taken(_users.c.email, email, user_id):
            return UniquenessViolation("email", email)
        if _constraint_column(exc) == "email" and email is not None:
            return UniquenessViolation("email", email)
        return UniquenessViolation("username", username or "")

    def insert(self, username: str, email: str, salt: bytes, hashed_password: bytes) -> UserId | UniquenessViolation:
        """Insert a new user and return its assigned id.

        bio and image start empty. A duplicate email or username returns
        UniquenessViolation and leaves the table untouched.
        """
        with _storage_errors(f"persist user {username}:{email}"):
            try:
                with self.engine.begin() as conn:
                    result = conn.execute(
                        _users.insert().values(
                            username=username,
                            email=email,
                            salt=salt,
                            hashed_password=hashed_password,
                            bio="",
                            image="",
                            created_at=_now_iso(),
                        )
                    )
                    return result.inserted_primary_key[0]
            except IntegrityError as exc:
                return self._violation(exc, email=email, username=username)

    def update(
        self,
        user_id: UserId,
        *,
        email: str | None = None,
        username: str | None = None,
        salt: bytes | None = None,
        hashed_password: bytes | None = None,
        bio: str | None = None,
        image: str | None = None,
    ) -> UserRecord | NotFound | UniquenessViolation:
        """Merge the non-None fields into the stored record in one transaction.

        Fields passed as None keep their stored value. Returns the record as
        written, NotFound if user_id does not exist, or UniquenessViolation if
        the new email/username is taken (the transaction is rolled back).
        """
        changes = {
            "email": email,
            "username": username,
            "salt": salt,
            "hashed_password": hashed_password,
            "bio": bio,
            "image": image,
        }
        with _storage_errors(f"update user {user_id}"):
            try:
                with self.engine.begin() as conn:
                    row = conn.execute(
                        _users.select().where(_users.c.id == user_id).with_for_update()
                    ).fetchone()
                    if row is None:
                        return NotFound("user", f"userId={user_id}")
                    supplied = {name: value for name, value in changes.items() if value is not None}
                    if supplied:
                        conn.execute(_users.update().where(_users.c.id == user_id).values(**supplied))
                    merged = {name: supplied.get(name, getattr(row, name)) for name in _UPDATABLE}
            except IntegrityError as exc:
                return self._violation(exc, email=email, username=username, user_id=user_id)
        merged["salt"] = bytes(merged["salt"])
        merged["hashed_password"] = bytes(merged["hashed_password"])
        return UserRecord(id=user_id, **merged)

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def select_security_by_email(self, email: str) -> UserRecord | NotFound:
        """Look up a user and its credential material by email."""
        with _storage_errors(f"select user with email {email}"):
            with self.engine.connect() as conn:
                row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else NotFound("user", f"email={email}")

    def select_by_id(self, user_id: UserId) -> UserRecord | NotFound:
        """Look up a user by primary key."""
        with _storage_errors(f"select user with userId {user_id}"):
            with self.engine.connect() as conn:
                row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else NotFound("user", f"userId={user_id}")

    def select_by_username(self, username: str) -> UserRecord | NotFound:
        """Look up a user by exact username (case-sensitive)."""
        with _storage_errors(f"select user with username {username}"):
            with self.engine.connect() as conn:
                row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_user(row) if row is not None else NotFound("user", f"username={username}")

    # ------------------------------------------------------------------
    # Follow graph
    # ------------------------------------------------------------------

    def follow(self, follower_id: UserId, followed_id: UserId) -> None:
        """Record that follower_id follows followed_id. Idempotent."""
        with _storage_errors(f"follow {followed_id} by {follower_id}"):
            if self.is_following(follower_id, followed_id):
                return
            try:
                with self.engine.begin() as conn:
                    conn.execute(_follows.insert().values(follower_id=follower_id, followed_id=followed_id))
            except IntegrityError:
                # A concurrent request inserted the same pair first.
                logger.debug("Follow %s -> %s already recorded", follower_id, followed_id)

    def unfollow(self, follower_id: UserId, followed_id: UserId) -> None:
        """Remove the follow edge if present."""
        with _storage_errors(f"unfollow {followed_id} by {follower_id}"):
            with self.engine.begin() as conn:
                conn.execute(
                    _follows.delete().where(
                        (_follows.c.follower_id == follower_id) & (_follows.c.followed_id == followed_id)
                    )
                )

    def is_following(self, follower_id: UserId, followed_id: UserId) -> bool:
        with _storage_errors(f"check follow {followed_id} by {follower_id}"):
            with self.engine.connect() as conn:
                row = conn.execute(
                    _follows.select().where(
                        (_follows.c.follower_id == follower_id) & (_follows.c.followed_id == followed_id)
                    )
                ).fetchone()
        return row is not None

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> UserRecord:
    return UserRecord(
        id=row.id,
        email=row.email,
        username=row.username,
        salt=bytes(row.salt),
        hashed_password=bytes(row.hashed_password),
        bio=row.bio or "",
        image=row.image or "",
    )

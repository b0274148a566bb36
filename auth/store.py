"""
auth/store.py -- SQLAlchemy Core persistence layer for users (the User Directory).

Pattern: Repository + Data Mapper (same as vault/store.py).
UserStore is the repository; _row_to_user is the mapper.
Route and service code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  create_user() pre-checks the username for a friendly AlreadyExists, but the
  UNIQUE constraint on users.username is what actually holds under concurrent
  registrations. An IntegrityError on that constraint is mapped to
  AlreadyExists too; any other integrity failure is a StorageError.

Errors: every SQLAlchemyError that is not a username uniqueness violation is logged
and re-raised as StorageError so backend text never reaches a transport.

Layer rule: no imports from api/, vault/, or service/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.models import User
from core.errors import AlreadyExists, NotFound, StorageError
from core.schema import users as _users

logger = logging.getLogger("keeper.auth.store")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore(create_db_engine("sqlite:///keeper.db"))
        store.create_user(User(id=str(uuid.uuid4()), username="alice", password_hash=hasher.hash("pw")))
        user = store.get_by_username("alice")
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def create_user(self, user: User) -> None:
        """Insert a new user.

        Raises AlreadyExists if the username is taken (pre-check or UNIQUE
        violation), StorageError on any other backend failure.
        """
        try:
            with self.engine.connect() as conn:
                existing = conn.execute(select(_users.c.id).where(_users.c.username == user.username)).first()
                if existing is not None:
                    raise AlreadyExists()
                conn.execute(
                    _users.insert().values(
                        id=user.id,
                        username=user.username,
                        password_hash=user.password_hash,
                        created_at=user.created_at or _now_iso(),
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            if not _violates_username(exc):
                logger.error("create_user failed: %s", exc)
                raise StorageError() from exc
            # Lost a race with a concurrent registration of the same username.
            raise AlreadyExists() from exc
        except SQLAlchemyError as exc:
            logger.error("create_user failed: %s", exc)
            raise StorageError() from exc

    def get_by_username(self, username: str) -> User:
        """Look up a user by exact username (case-sensitive). Raises NotFound if absent."""
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        except SQLAlchemyError as exc:
            logger.error("get_by_username failed: %s", exc)
            raise StorageError() from exc
        if row is None:
            raise NotFound("User not found.")
        return _row_to_user(row)

    def get_by_id(self, user_id: str) -> User:
        """Look up a user by primary key. Raises NotFound if absent."""
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        except SQLAlchemyError as exc:
            logger.error("get_by_id failed: %s", exc)
            raise StorageError() from exc
        if row is None:
            raise NotFound("User not found.")
        return _row_to_user(row)

    def delete_user(self, user_id: str) -> bool:
        """Permanently delete a user record. Returns True if deleted, False if not found.

        Owned credentials go with it via ON DELETE CASCADE. Administrative
        path only -- no transport exposes it.
        """
        try:
            with self.engine.connect() as conn:
                result = conn.execute(_users.delete().where(_users.c.id == user_id))
                conn.commit()
        except SQLAlchemyError as exc:
            logger.error("delete_user failed: %s", exc)
            raise StorageError() from exc
        return result.rowcount > 0

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logger.exception("Database ping failed")
            return False
        return True


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _violates_username(exc: IntegrityError) -> bool:
    # SQLite: "UNIQUE constraint failed: users.username"; PostgreSQL names
    # the constraint "users_username_key".
    return "username" in str(exc.orig).lower()


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        password_hash=row.password_hash,
        created_at=row.created_at,
    )

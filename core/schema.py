"""
core/schema.py -- Relational schema and engine factory shared by all stores.

Both tables live on one MetaData because credentials.owner_id is a foreign
key into users.id. The stores (auth/store.py, vault/store.py) import the Table
objects from here and never define schema themselves.

Schema:
  users(id PK, username UNIQUE NOT NULL, password_hash NOT NULL, created_at)
  credentials(id PK, owner_id FK -> users.id ON DELETE CASCADE, data NOT NULL,
              meta, created_at, updated_at)

The UNIQUE constraint on users.username is the real duplicate guard. The
store's pre-check only exists to produce a friendly error without relying on
an IntegrityError round-trip.

SQLite notes:
  foreign_keys is OFF by default in SQLite and must be enabled per
  connection, otherwise ON DELETE CASCADE and the FK check silently do nothing.
  WAL is set per connection for the same reason (PRAGMAs are not inherited).

Layer rule: core/ is the kernel. No imports from api/, auth/, vault/, or service/.
"""

from __future__ import annotations

from sqlalchemy import Column, ForeignKey, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", String(36), primary_key=True),  # UUID4, generated server-side
    Column("username", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
)

credentials = Table(
    "credentials",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("owner_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("data", Text, nullable=False),
    Column("meta", Text),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32)),
)


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and foreign key enforcement on every new connection."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(db_url: str) -> Engine:
    """Build an Engine for `db_url` and create any missing tables.

    create_all is idempotent, so calling this on every startup is safe.
    """
    connect_args: dict = {}
    is_sqlite = db_url.startswith("sqlite")
    if is_sqlite:
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if is_sqlite:
        event.listen(engine, "connect", _set_sqlite_pragmas)
    metadata.create_all(engine)
    return engine

"""
vault/store.py -- SQLAlchemy Core persistence layer for credentials.

Pattern: Repository + Data Mapper (same as auth/store.py).
CredentialStore is the repository; _row_to_credential is the mapper.

Ownership:
  create() binds a row to the owner_id resolved from the caller's token.
  list_by_owner() filters on owner_id.
  edit() matches on id AND owner_id in the same UPDATE, so there is no
  read-then-write window and no way to touch someone else's row by guessing
  its id. A zero-row update is reported as Unauthorized(reason="not_owner")
  whether the row belongs to someone else or does not exist at all -- callers
  cannot probe for other users' credential ids.

Errors: backend failures (including an FK violation for an owner_id that no
longer exists) are logged and re-raised as StorageError.

Layer rule: no imports from api/, auth/, or service/.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from core.errors import StorageError, Unauthorized
from core.schema import credentials as _credentials
from vault.models import Credential

logger = logging.getLogger("keeper.vault.store")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class CredentialStore:
    """Repository for Credential entities.

    Usage:
        store = CredentialStore(engine)
        cred_id = store.create(owner_id, "login:pass", "example.com")
        store.list_by_owner(owner_id)
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def create(self, owner_id: str, data: str, meta: str = "") -> str:
        """Insert a credential bound to `owner_id` and return its new id."""
        cred_id = str(uuid.uuid4())
        try:
            with self.engine.connect() as conn:
                conn.execute(
                    _credentials.insert().values(
                        id=cred_id,
                        owner_id=owner_id,
                        data=data,
                        meta=meta,
                        created_at=_now_iso(),
                    )
                )
                conn.commit()
        except SQLAlchemyError as exc:
            logger.error("Failed to save credential for owner %s: %s", owner_id, exc)
            raise StorageError() from exc
        return cred_id

    def edit(self, credential_id: str, owner_id: str, data: str, meta: str = "") -> None:
        """Replace data/meta of a credential owned by `owner_id`.

        Raises Unauthorized(reason="not_owner") when no row matches both id
        and owner_id, StorageError on backend failure.
        """
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _credentials.update()
                    .where((_credentials.c.id == credential_id) & (_credentials.c.owner_id == owner_id))
                    .values(data=data, meta=meta, updated_at=_now_iso())
                )
                conn.commit()
        except SQLAlchemyError as exc:
            logger.error("Failed to update credential %s: %s", credential_id, exc)
            raise StorageError() from exc
        if result.rowcount == 0:
            logger.info("Edit rejected: credential %s not owned by %s", credential_id, owner_id)
            raise Unauthorized(Unauthorized.NOT_OWNER, "Credential not found for this user.")

    def list_by_owner(self, owner_id: str) -> list[Credential]:
        """Return every credential owned by `owner_id`, oldest first. Empty list if none."""
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(
                    _credentials.select()
                    .where(_credentials.c.owner_id == owner_id)
                    .order_by(_credentials.c.created_at, _credentials.c.id)
                ).fetchall()
        except SQLAlchemyError as exc:
            logger.error("Failed to retrieve credentials for owner %s: %s", owner_id, exc)
            raise StorageError() from exc
        return [_row_to_credential(r) for r in rows]


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_credential(row) -> Credential:
    return Credential(
        id=row.id,
        owner_id=row.owner_id,
        data=row.data,
        meta=row.meta or "",
        created_at=row.created_at,
        updated_at=row.updated_at,
    )

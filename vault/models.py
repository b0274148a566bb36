"""
vault/models.py -- Domain dataclass for stored secret records.

Pure data container, zero logic. All ownership rules live in vault/store.py
and service/keeper.py.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Credential:
    """An owner-scoped secret record.

    data is the opaque secret payload; meta is a free-form annotation. Neither
    is interpreted or encrypted by the vault -- confidentiality of the content
    is the client's job. repr=False on data keeps secrets out of log lines.
    """

    id: str
    owner_id: str
    data: str = field(repr=False)
    meta: str = ""
    created_at: str | None = None
    updated_at: str | None = None

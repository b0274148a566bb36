"""
auth/models.py -- Domain dataclasses for identity entities.

Pattern: Data class (pure data container, zero logic). Stores and the service
layer do the work.

Layer rule: no imports from api/, vault/, or service/.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class User:
    """A registered identity.

    id is a UUID4 string generated by the service before insert, so it is
    known up front and can be embedded in the first token without a second
    round-trip. username is case-sensitive and immutable once chosen.

    password_hash is a bcrypt hash. repr=False keeps it out of log lines and
    tracebacks that format the dataclass.
    """

    id: str
    username: str
    password_hash: str = field(repr=False)
    created_at: str | None = None

"""
auth/passwords.py -- bcrypt password hashing.

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error.

bcrypt's cost factor makes brute force of low-entropy secrets expensive, and
checkpw compares in constant time. The 72-byte input limit is enforced at the
service layer (ValidationError) before a password ever reaches hash().

Timing equalization: burn() runs a full verify against a dummy hash computed
once per hasher, so a login for an unknown username costs the same as a
login with a wrong password.

Layer rule: no imports from api/, vault/, or service/.
"""

from __future__ import annotations

import logging

import bcrypt

from core.errors import HashingError, MalformedHashError

logger = logging.getLogger("keeper.auth")

MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """One-way hash + verify for user passwords.

    Usage:
        hasher = PasswordHasher(rounds=12)
        stored = hasher.hash("secret123")
        hasher.verify(stored, "secret123")  # True
    """

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds
        self._dummy_hash = self.hash("keeper_timing_dummy")

    def hash(self, password: str) -> str:
        """Return a salted bcrypt hash. Raises HashingError if bcrypt fails."""
        try:
            salt = bcrypt.gensalt(rounds=self.rounds)
            return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")
        except (ValueError, OSError) as exc:
            raise HashingError("bcrypt failed to hash password") from exc

    def verify(self, password_hash: str, password: str) -> bool:
        """Return True if `password` matches `password_hash`.

        A mismatch is False, not an error. A password bcrypt would refuse
        (> 72 bytes) can never have been hashed, so it is also False.
        Raises MalformedHashError if the stored hash is not a bcrypt hash.
        """
        raw = password.encode("utf-8")
        if len(raw) > MAX_PASSWORD_BYTES:
            return False
        try:
            return bcrypt.checkpw(raw, password_hash.encode("utf-8"))
        except ValueError as exc:
            raise MalformedHashError("stored password hash is not a valid bcrypt hash") from exc

    def burn(self, password: str) -> None:
        """Spend one verify's worth of CPU against the dummy hash."""
        self.verify(self._dummy_hash, password)

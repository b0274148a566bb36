"""
core/errors.py -- Error taxonomy shared by every layer of Keeper.

Two groups live here:

  Transport-visible taxonomy (subclasses of KeeperError). These are the only
  errors an HTTP or RPC caller ever learns about. Each carries a stable
  machine-readable `code` and a generic human `message` that never includes
  backend detail.

  Component-internal errors (HashingError, MalformedHashError, SigningError,
  TokenInvalid, TokenExpired). Raised by the password hasher and the token
  service, and wrapped into the taxonomy at the service boundary with
  `raise ... from exc` so tests and logs can still inspect the cause.

Layer rule: core/ is the kernel. No imports from api/, auth/, vault/, or service/.
"""

from __future__ import annotations


class KeeperError(Exception):
    """Base class for every error a transport adapter may report."""

    code: str = "internal_error"
    message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class Unauthorized(KeeperError):
    """Missing, invalid or expired token, or a record the caller does not own.

    `reason` keeps the categories apart internally while the code stays the
    same for every caller:
      missing_token -- no token was presented at all
      invalid_token -- signature, structure, claim or expiry check failed
      not_owner     -- token is fine but the record belongs to someone else
    """

    code = "unauthorized"
    message = "Authentication required."

    MISSING_TOKEN = "missing_token"
    INVALID_TOKEN = "invalid_token"
    NOT_OWNER = "not_owner"

    def __init__(self, reason: str = MISSING_TOKEN, message: str | None = None) -> None:
        self.reason = reason
        super().__init__(message)


class LoginFailed(KeeperError):
    """Unknown username or wrong password. Deliberately indistinguishable."""

    code = "bad_credentials"
    message = "Invalid username or password."


class AlreadyExists(KeeperError):
    code = "already_exists"
    message = "Username is already registered."


class NotFound(KeeperError):
    code = "not_found"
    message = "Record not found."


class ValidationError(KeeperError):
    code = "validation_error"
    message = "Request validation failed."


class InternalError(KeeperError):
    code = "internal_error"
    message = "An unexpected error occurred."


class StorageError(InternalError):
    code = "storage_error"
    message = "Storage backend failure."


# ---------------------------------------------------------------------------
# Component-internal errors
# ---------------------------------------------------------------------------


class HashingError(Exception):
    """bcrypt could not produce a hash."""


class MalformedHashError(Exception):
    """A stored password hash is not a valid bcrypt hash."""


class SigningError(Exception):
    """The token signing key is unusable."""


class TokenInvalid(Exception):
    """Token failed signature, structure or claim validation."""


class TokenExpired(TokenInvalid):
    """Token signature is valid but its exp claim is in the past."""

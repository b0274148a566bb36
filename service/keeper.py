"""
service/keeper.py -- Shared operation logic behind both transports.

KeeperService implements Register, Login, AddCredential, EditCredential and
GetCredentials exactly once. The HTTP adapter (api/routes/keeper.py) and the
RPC adapter (api/routes/rpc.py) only translate requests in and results or
KeeperError subclasses out.

Error policy:
  Taxonomy errors (core.errors.KeeperError subclasses) propagate unchanged.
  Password hasher and token service failures are wrapped into InternalError
  with `raise ... from exc` -- the cause is logged here, never shown to a
  transport caller.

Enumeration resistance [login]:
  Unknown username and wrong password raise the same LoginFailed with the same
  message, and both paths run exactly one bcrypt verify.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from auth.gateway import AuthorizationGateway
from auth.models import User
from auth.passwords import MAX_PASSWORD_BYTES, PasswordHasher
from auth.store import UserStore
from auth.tokens import TokenService
from core.errors import (
    HashingError,
    InternalError,
    LoginFailed,
    MalformedHashError,
    NotFound,
    SigningError,
    Unauthorized,
    ValidationError,
)
from vault.models import Credential
from vault.store import CredentialStore

logger = logging.getLogger("keeper.service")

MAX_USERNAME_LENGTH = 255


@dataclass(frozen=True)
class Registration:
    """Result of a successful register(): the new user id and a fresh token."""

    user_id: str
    username: str
    token: str


def _validate_login_input(username: str, password: str) -> None:
    if not username or not username.strip():
        raise ValidationError("Username must not be empty.")
    if len(username) > MAX_USERNAME_LENGTH:
        raise ValidationError(f"Username must be at most {MAX_USERNAME_LENGTH} characters.")
    if not password:
        raise ValidationError("Password must not be empty.")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")


class KeeperService:
    """The capability set {register, login, add_credential, edit_credential, get_credentials}.

    Built once in the application lifespan and stored on app.state.keeper.
    Holds no per-request state, so one instance serves every request thread.
    """

    def __init__(
        self,
        users: UserStore,
        credentials: CredentialStore,
        hasher: PasswordHasher,
        tokens: TokenService,
        gateway: AuthorizationGateway | None = None,
    ) -> None:
        self.users = users
        self.credentials = credentials
        self.hasher = hasher
        self.tokens = tokens
        self.gateway = gateway or AuthorizationGateway(tokens)

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def register(self, username: str, password: str) -> Registration:
        """Create a user and return its id plus a session token.

        Raises ValidationError, AlreadyExists, StorageError, InternalError.
        """
        _validate_login_input(username, password)
        try:
            password_hash = self.hasher.hash(password)
        except HashingError as exc:
            logger.error("Password hashing failed during registration: %s", exc)
            raise InternalError() from exc

        user = User(id=str(uuid.uuid4()), username=username, password_hash=password_hash)
        self.users.create_user(user)
        logger.info("Registered user %s", user.id)
        return Registration(user_id=user.id, username=username, token=self._issue(user.id))

    def login(self, username: str, password: str) -> str:
        """Return a fresh token for valid credentials.

        Raises LoginFailed for unknown username or wrong password (same
        message either way), ValidationError for an empty payload.
        """
        if not username or not password:
            raise ValidationError("Username and password are required.")
        try:
            user = self.users.get_by_username(username)
        except NotFound:
            # Equalize timing -- do NOT return before running bcrypt.
            self.hasher.burn(password)
            raise LoginFailed() from None

        try:
            matched = self.hasher.verify(user.password_hash, password)
        except MalformedHashError as exc:
            logger.error("Stored password hash for user %s is malformed", user.id)
            raise InternalError() from exc
        if not matched:
            raise LoginFailed()
        return self._issue(user.id)

    # ------------------------------------------------------------------
    # Credentials (token-protected)
    # ------------------------------------------------------------------

    def add_credential(self, token: str | None, data: str, meta: str = "") -> str:
        """Store a credential under the token holder's id and return the new id."""
        owner_id = self._authorize(token)
        cred_id = self.credentials.create(owner_id, data, meta)
        logger.info("Credential %s added for user %s", cred_id, owner_id)
        return cred_id

    def edit_credential(self, token: str | None, credential_id: str, data: str, meta: str = "") -> None:
        """Replace data/meta of a credential the token holder owns.

        Raises Unauthorized(reason="not_owner") for anyone else's credential.
        """
        owner_id = self._authorize(token)
        self.credentials.edit(credential_id, owner_id, data, meta)
        logger.info("Credential %s updated by user %s", credential_id, owner_id)

    def get_credentials(self, token: str | None) -> list[Credential]:
        """Return every credential owned by the token holder."""
        owner_id = self._authorize(token)
        return self.credentials.list_by_owner(owner_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _authorize(self, token: str | None) -> str:
        """Resolve the token to an owner id that still has a user row.

        A correctly signed token for a deleted user is treated like any other
        invalid token.
        """
        owner_id = self.gateway.authorize(token)
        try:
            self.users.get_by_id(owner_id)
        except NotFound:
            logger.info("Token presented for unknown user %s", owner_id)
            raise Unauthorized(Unauthorized.INVALID_TOKEN, "Token is invalid.") from None
        return owner_id

    def _issue(self, owner_id: str) -> str:
        try:
            return self.tokens.issue(owner_id)
        except SigningError as exc:
            logger.error("Token signing failed: %s", exc)
            raise InternalError() from exc

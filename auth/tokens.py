"""
auth/tokens.py -- Signed, time-limited session tokens.

JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
user_id, iat and exp. There is no server-side session table and no revocation
list: a leaked token stays valid until exp. That is an accepted limitation.

Verification raises instead of returning None so callers can tell an expired
token from a forged one. TokenExpired subclasses TokenInvalid, so code that
does not care about the difference catches TokenInvalid and is done.

The user_id claim must parse as a canonical UUID even when the signature
verifies. A token minted by a different key generation, or by code that put
something else in the claim, is rejected here rather than reaching the store.

Layer rule: no imports from api/, vault/, or service/.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt

from core.config import TOKEN_TTL_SECONDS
from core.errors import SigningError, TokenExpired, TokenInvalid

logger = logging.getLogger("keeper.auth")

_ALGORITHM = "HS256"


def is_valid_identifier(value: object) -> bool:
    """Return True if `value` is a UUID string in canonical lowercase form."""
    if not isinstance(value, str):
        return False
    try:
        return str(uuid.UUID(value)) == value
    except ValueError:
        return False


class TokenService:
    """Issues and verifies session tokens.

    Constructed once in the application lifespan with the configured secret
    and handed to the AuthorizationGateway and KeeperService.
    """

    def __init__(self, secret_key: str, expire_seconds: int = TOKEN_TTL_SECONDS) -> None:
        self._secret_key = secret_key
        self.expire_seconds = expire_seconds

    def issue(self, owner_id: str, issued_at: datetime | None = None) -> str:
        """Encode a signed JWT for `owner_id` that expires `expire_seconds` after issue.

        Args:
            owner_id:  User.id the token proves.
            issued_at: Override for the issue time. Defaults to now (UTC).
        """
        if not self._secret_key:
            raise SigningError("signing key is empty")
        issued_at = issued_at or datetime.now(timezone.utc)
        payload = {
            "user_id": owner_id,
            "iat": issued_at,
            "exp": issued_at + timedelta(seconds=self.expire_seconds),
        }
        try:
            return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)
        except JWTError as exc:
            raise SigningError("failed to sign token") from exc

    def verify(self, token: str) -> str:
        """Return the owner_id embedded in `token`.

        Raises:
            TokenExpired: signature fine, exp in the past.
            TokenInvalid: bad signature, garbage input, missing exp, or a
                          user_id claim that is not a canonical UUID.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[_ALGORITHM],
                options={"require_exp": True},
            )
        except ExpiredSignatureError as exc:
            raise TokenExpired("token has expired") from exc
        except JWTError as exc:
            raise TokenInvalid("token failed verification") from exc

        owner_id = payload.get("user_id")
        if not is_valid_identifier(owner_id):
            logger.info("Token carries a malformed user_id claim")
            raise TokenInvalid("user_id in token is not valid")
        return owner_id

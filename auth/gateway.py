"""
auth/gateway.py -- Authorization Gateway: raw token in, owner id out.

Transport adapters extract the token (cookie or Bearer header for HTTP,
explicit `token` field for RPC) and hand it here. Every protected operation
in service/keeper.py goes through authorize() before touching a store.

Outcomes:
  empty / absent token          -> Unauthorized(reason="missing_token"),
                                   TokenService is never called
  TokenInvalid / TokenExpired   -> Unauthorized(reason="invalid_token"),
                                   chained from the original error
  valid                         -> owner_id (a canonical UUID string)

Layer rule: no imports from api/, vault/, or service/.
"""

from __future__ import annotations

import logging

from auth.tokens import TokenService
from core.errors import TokenExpired, TokenInvalid, Unauthorized

logger = logging.getLogger("keeper.auth.gateway")


class AuthorizationGateway:
    def __init__(self, tokens: TokenService) -> None:
        self.tokens = tokens

    def authorize(self, raw_token: str | None) -> str:
        """Return the owner_id proven by `raw_token` or raise Unauthorized."""
        if not raw_token:
            logger.info("Authorization failed: no token presented")
            raise Unauthorized(Unauthorized.MISSING_TOKEN)
        try:
            return self.tokens.verify(raw_token)
        except TokenExpired as exc:
            logger.info("Authorization failed: token expired")
            raise Unauthorized(Unauthorized.INVALID_TOKEN, "Token is invalid.") from exc
        except TokenInvalid as exc:
            logger.info("Authorization failed: %s", exc)
            raise Unauthorized(Unauthorized.INVALID_TOKEN, "Token is invalid.") from exc

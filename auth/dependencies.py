"""
auth/dependencies.py -- Token extraction for the HTTP transport.

Token carriers are checked in priority order:
  1. Cookie "token" -- set by POST /login and POST /register.
  2. Authorization: Bearer <token> header -- API clients that do not keep cookies.

extract_token() only finds the raw string. Verification is the
AuthorizationGateway's job, reached through KeeperService, so the HTTP and
RPC transports share one verification path.

Layer rule: no imports from vault/ or service/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

TOKEN_COOKIE = "token"


def extract_token(request: Request) -> str | None:
    """Return the raw session token carried by the request, or None.

    Use as a FastAPI dependency:
        @router.get("/credentials")
        def route(request: Request, token: str | None = Depends(extract_token)): ...
    """
    token: str | None = request.cookies.get(TOKEN_COOKIE)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:].strip()
    return token or None


def set_token_cookie(response, token: str, max_age: int, secure: bool = False) -> None:
    """Write the session token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": cookie is not sent on cross-site POST -- CSRF mitigation
        for the state-changing credential routes.
    secure: only sent over HTTPS when SECURE_COOKIES=true (set in production).
    max_age: matches the token expiry so both expire together.
    """
    response.set_cookie(
        TOKEN_COOKIE,
        value=token,
        httponly=True,
        samesite="lax",
        secure=secure,
        max_age=max_age,
    )

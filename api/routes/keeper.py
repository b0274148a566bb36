"""
api/routes/keeper.py -- HTTP transport for the Keeper operations.

Routes:
  POST /register          -- create user; 201 + token cookie
  POST /login             -- password login; 202 + token cookie
  POST /logout            -- clear token cookie; 200
  POST /credentials       -- add a credential (requires token); 201
  POST /edit-credentials  -- edit an owned credential (requires token); 200
  GET  /credentials       -- list the caller's credentials (requires token); 200

Every handler is a translation layer over KeeperService (app.state.keeper).
KeeperError subclasses raised by the service are turned into status codes by
the exception handler in api/main.py.

Check order on protected routes:
  1. no token at all          -> 401
  2. body does not parse      -> 422
  3. token fails verification -> 405
Bodies are parsed inside the handler (not as FastAPI body params) so a
missing token is reported before a bad payload.

Security:
  [H2] POST /login and POST /register are rate-limited per IP (LOGIN_RATE_LIMIT).
  [M5] Cache-Control: no-store on every response that carries a token.
  bcrypt and SQLAlchemy calls are blocking, so they run in the threadpool.
"""

from __future__ import annotations

import json
from typing import TypeVar

import pydantic
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from api.limiter import limiter
from api.models import (
    AuthPayload,
    CredentialCreatedResponse,
    CredentialListResponse,
    CredentialPayload,
    CredentialResponse,
    EditCredentialPayload,
    LoginResponse,
    MessageResponse,
    RegisterResponse,
)
from auth.dependencies import TOKEN_COOKIE, extract_token, set_token_cookie
from core.config import get_settings
from core.errors import Unauthorized
from service.keeper import KeeperService

_settings = get_settings()

_Payload = TypeVar("_Payload", bound=pydantic.BaseModel)

router = APIRouter()


async def _read_body(request: Request, model: type[_Payload], status_code: int) -> _Payload:
    """Parse the JSON request body into `model` or raise HTTPException(status_code)."""
    try:
        raw = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise HTTPException(
            status_code=status_code,
            detail={"code": "validation_error", "message": "Request body is not valid JSON."},
        ) from None
    try:
        return model.model_validate(raw)
    except pydantic.ValidationError as exc:
        raise HTTPException(
            status_code=status_code,
            detail={
                "code": "validation_error",
                "message": "Failed to parse payload data.",
                "detail": str(exc.errors(include_url=False, include_context=False)),
            },
        ) from None


def _keeper(request: Request) -> KeeperService:
    return request.app.state.keeper


def _require_token(token: str | None) -> str:
    if not token:
        raise Unauthorized(Unauthorized.MISSING_TOKEN)
    return token


def _token_response(status_code: int, content: dict, token: str, keeper: KeeperService) -> JSONResponse:
    resp = JSONResponse(status_code=status_code, content=content)
    set_token_cookie(resp, token, keeper.tokens.expire_seconds, secure=_settings.secure_cookies)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/register", response_model=RegisterResponse, status_code=201)
@limiter.limit(_settings.login_rate_limit)  # [H2] below @router so the registered endpoint is the limited wrapper
async def register(request: Request) -> JSONResponse:
    """Create a user, then log them straight in.

    409 if the username is taken, 400 on a bad payload, 500 on storage failure.
    """
    body = await _read_body(request, AuthPayload, status_code=400)
    keeper = _keeper(request)
    registration = await run_in_threadpool(keeper.register, body.username, body.password)
    content = RegisterResponse(
        id=registration.user_id,
        username=registration.username,
        token=registration.token,
    ).model_dump()
    return _token_response(201, content, registration.token, keeper)


@router.post("/login", response_model=LoginResponse, status_code=202)
@limiter.limit(_settings.login_rate_limit)  # [H2] brute-force mitigation
async def login(request: Request) -> JSONResponse:
    """Authenticate with username and password; set the token cookie.

    Returns the same 401 "bad_credentials" for wrong username and wrong
    password so the endpoint cannot be used to probe which usernames exist.
    """
    body = await _read_body(request, AuthPayload, status_code=400)
    keeper = _keeper(request)
    token = await run_in_threadpool(keeper.login, body.username, body.password)
    content = LoginResponse(token=token, expires_in=keeper.tokens.expire_seconds).model_dump()
    return _token_response(202, content, token, keeper)


@router.post("/logout", response_model=MessageResponse)
async def logout() -> JSONResponse:
    """Clear the token cookie. The token itself stays valid until it expires."""
    resp = JSONResponse(content=MessageResponse(message="Logged out.").model_dump())
    resp.delete_cookie(TOKEN_COOKIE)
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/credentials", response_model=CredentialCreatedResponse, status_code=201)
async def add_credentials(
    request: Request,
    token: str | None = Depends(extract_token),
) -> CredentialCreatedResponse:
    """Store a new credential under the caller's own id."""
    token = _require_token(token)
    body = await _read_body(request, CredentialPayload, status_code=422)
    cred_id = await run_in_threadpool(_keeper(request).add_credential, token, body.data, body.meta)
    return CredentialCreatedResponse(id=cred_id)


@router.post("/edit-credentials", response_model=MessageResponse)
async def edit_credentials(
    request: Request,
    token: str | None = Depends(extract_token),
) -> MessageResponse:
    """Replace data/meta of a credential the caller owns (403 otherwise)."""
    token = _require_token(token)
    body = await _read_body(request, EditCredentialPayload, status_code=422)
    await run_in_threadpool(_keeper(request).edit_credential, token, body.id, body.data, body.meta)
    return MessageResponse(message="Credential updated.")


@router.get("/credentials", response_model=CredentialListResponse)
async def get_credentials(
    request: Request,
    token: str | None = Depends(extract_token),
) -> CredentialListResponse:
    """List every credential owned by the caller. Empty list if none."""
    token = _require_token(token)
    creds = await run_in_threadpool(_keeper(request).get_credentials, token)
    return CredentialListResponse(credentials=[CredentialResponse.from_domain(c) for c in creds])

"""
api/routes/rpc.py -- JSON-RPC 2.0 transport for the Keeper operations.

Single endpoint:
  POST /rpc   {"jsonrpc": "2.0", "id": ..., "method": ..., "params": {...}}

Methods: Register, Login, AddCredentials, EditCredentials, GetCredentials.
The token travels as an explicit `token` param, never as a cookie.

Two error channels, kept apart on purpose:
  Envelope faults use native JSON-RPC errors (the "error" member):
    -32700 parse error, -32600 invalid request, -32601 method not found,
    -32602 invalid params, -32603 internal error.
  Operation outcomes always come back as a "result" whose `ok` flag tags it:
    {"ok": true, ...payload} or {"ok": false, "error": "<code>", "message": "..."}
  A caller must check `ok` even when the call itself succeeded.

HTTP status is always 200 -- failure is signalled inside the body.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any, Optional, Union

import pydantic
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from api.models import (
    AddCredentialsParams,
    AddCredentialsResult,
    EditCredentialsParams,
    EditCredentialsResult,
    GetCredentialsParams,
    GetCredentialsResult,
    LoginParams,
    LoginResult,
    RegisterParams,
    RegisterResult,
    RpcCredential,
    RpcRequest,
    RpcResult,
)
from core.errors import KeeperError
from service.keeper import KeeperService

logger = logging.getLogger("keeper.rpc")

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

router = APIRouter()


# ---------------------------------------------------------------------------
# Method handlers -- each one maps params onto a single KeeperService call
# ---------------------------------------------------------------------------


def _register(keeper: KeeperService, params: RegisterParams) -> RegisterResult:
    registration = keeper.register(params.user_data.username, params.user_data.password)
    return RegisterResult(user_id=registration.user_id, token=registration.token)


def _login(keeper: KeeperService, params: LoginParams) -> LoginResult:
    return LoginResult(token=keeper.login(params.user_data.username, params.user_data.password))


def _add_credentials(keeper: KeeperService, params: AddCredentialsParams) -> AddCredentialsResult:
    cred_id = keeper.add_credential(params.token, params.credentials.data, params.credentials.meta)
    return AddCredentialsResult(id=cred_id)


def _edit_credentials(keeper: KeeperService, params: EditCredentialsParams) -> EditCredentialsResult:
    keeper.edit_credential(params.token, params.id, params.credentials.data, params.credentials.meta)
    return EditCredentialsResult()


def _get_credentials(keeper: KeeperService, params: GetCredentialsParams) -> GetCredentialsResult:
    creds = keeper.get_credentials(params.token)
    return GetCredentialsResult(credentials=[RpcCredential(id=c.id, data=c.data, meta=c.meta) for c in creds])


# method name -> (params model, result model, handler)
_METHODS: dict[str, tuple[type[pydantic.BaseModel], type[RpcResult], Callable[..., RpcResult]]] = {
    "Register": (RegisterParams, RegisterResult, _register),
    "Login": (LoginParams, LoginResult, _login),
    "AddCredentials": (AddCredentialsParams, AddCredentialsResult, _add_credentials),
    "EditCredentials": (EditCredentialsParams, EditCredentialsResult, _edit_credentials),
    "GetCredentials": (GetCredentialsParams, GetCredentialsResult, _get_credentials),
}


# ---------------------------------------------------------------------------
# Envelope helpers
# ---------------------------------------------------------------------------


def _rpc_error(
    request_id: Optional[Union[int, str]], code: int, message: str, data: Any = None
) -> JSONResponse:
    error: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return JSONResponse(content={"jsonrpc": "2.0", "id": request_id, "error": error})


def _rpc_result(request_id: Optional[Union[int, str]], result: RpcResult) -> JSONResponse:
    return JSONResponse(
        content={"jsonrpc": "2.0", "id": request_id, "result": result.model_dump(by_alias=True)},
    )


def _raw_id(raw: Any) -> Optional[Union[int, str]]:
    if isinstance(raw, dict) and isinstance(raw.get("id"), (int, str)):
        return raw["id"]
    return None


# ---------------------------------------------------------------------------
# Endpoint
# ---------------------------------------------------------------------------


@router.post("/rpc")
async def rpc(request: Request) -> JSONResponse:
    """Dispatch one JSON-RPC 2.0 call to KeeperService."""
    try:
        raw = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return _rpc_error(None, PARSE_ERROR, "Parse error")

    try:
        envelope = RpcRequest.model_validate(raw)
    except pydantic.ValidationError:
        return _rpc_error(_raw_id(raw), INVALID_REQUEST, "Invalid Request")

    entry = _METHODS.get(envelope.method)
    if entry is None:
        return _rpc_error(envelope.id, METHOD_NOT_FOUND, "Method not found")
    params_model, result_model, handler = entry

    try:
        params = params_model.model_validate(envelope.params)
    except pydantic.ValidationError as exc:
        return _rpc_error(
            envelope.id,
            INVALID_PARAMS,
            "Invalid params",
            data=str(exc.errors(include_url=False, include_context=False)),
        )

    keeper: KeeperService = request.app.state.keeper
    try:
        result = await run_in_threadpool(handler, keeper, params)
    except KeeperError as exc:
        logger.info("RPC %s failed: %s", envelope.method, exc.code)
        result = result_model(ok=False, error=exc.code, message=exc.message)
    except Exception:
        # Raw exception text stays in the server log, never in the response.
        logger.exception("Unhandled exception in RPC %s", envelope.method)
        return _rpc_error(envelope.id, INTERNAL_ERROR, "Internal error")
    return _rpc_result(envelope.id, result)

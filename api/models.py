"""
API request and response models for the Keeper HTTP and RPC transports.

These Pydantic v2 models define the wire contract. They are intentionally
separate from the dataclasses in auth/models.py and vault/models.py, which own
the internal domain representation. Route handlers map between the two.

Separation of concerns: auth/ + vault/ models = domain truth; api/ models = wire contract.

RPC section: field names and nesting follow the Keeper RPC schema
(userData / credentials sub-messages). Every RPC result carries `ok`, `error`
and `message` alongside its payload -- errors travel in-band, so callers must
check `ok` even when the JSON-RPC call itself succeeded.
"""

from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from vault.models import Credential

# ---------------------------------------------------------------------------
# HTTP -- request models
# ---------------------------------------------------------------------------


class AuthPayload(BaseModel):
    """Request body for POST /register and POST /login.

    Byte-length limits for bcrypt are enforced in KeeperService; these bounds
    only reject obviously bad input before the service is called.
    """

    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)


class CredentialPayload(BaseModel):
    """Request body for POST /credentials."""

    data: str
    meta: str = ""


class EditCredentialPayload(BaseModel):
    """Request body for POST /edit-credentials."""

    id: str = Field(min_length=1, max_length=36)
    data: str
    meta: str = ""


# ---------------------------------------------------------------------------
# HTTP -- response models
# ---------------------------------------------------------------------------


class RegisterResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    username: str
    token: str


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: str
    token_type: str = "bearer"
    expires_in: int


class CredentialCreatedResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str


class CredentialResponse(BaseModel):
    """One stored credential as returned to its owner."""

    model_config = ConfigDict(frozen=True)

    id: str
    owner_id: str
    data: str
    meta: str

    @classmethod
    def from_domain(cls, cred: Credential) -> "CredentialResponse":
        return cls(id=cred.id, owner_id=cred.owner_id, data=cred.data, meta=cred.meta)


class CredentialListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    credentials: list[CredentialResponse]


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# RPC -- JSON-RPC 2.0 envelope
# ---------------------------------------------------------------------------


class RpcRequest(BaseModel):
    jsonrpc: Literal["2.0"]
    method: str = Field(min_length=1)
    params: dict[str, Any] = Field(default_factory=dict)
    id: Optional[Union[int, str]] = None


# ---------------------------------------------------------------------------
# RPC -- method params
# ---------------------------------------------------------------------------


class _RpcMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class UserData(_RpcMessage):
    username: str
    password: str


class CredentialsData(_RpcMessage):
    data: str
    meta: str = ""


class RegisterParams(_RpcMessage):
    user_data: UserData = Field(alias="userData")


class LoginParams(_RpcMessage):
    user_data: UserData = Field(alias="userData")


class AddCredentialsParams(_RpcMessage):
    token: Optional[str] = None
    credentials: CredentialsData


class EditCredentialsParams(_RpcMessage):
    token: Optional[str] = None
    id: str
    credentials: CredentialsData


class GetCredentialsParams(_RpcMessage):
    token: Optional[str] = None


# ---------------------------------------------------------------------------
# RPC -- method results (tagged: ok=True with payload, or ok=False with error)
# ---------------------------------------------------------------------------


class RpcResult(_RpcMessage):
    ok: bool = True
    error: str = ""
    message: str = ""


class RegisterResult(RpcResult):
    user_id: str = Field(default="", alias="userId")
    token: str = ""


class LoginResult(RpcResult):
    token: str = ""


class AddCredentialsResult(RpcResult):
    id: str = ""


class EditCredentialsResult(RpcResult):
    pass


class RpcCredential(_RpcMessage):
    id: str
    data: str
    meta: str = ""


class GetCredentialsResult(RpcResult):
    credentials: list[RpcCredential] = Field(default_factory=list)

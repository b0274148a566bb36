"""
api/main.py -- FastAPI application entry point for Keeper.

Exposes the credential vault over two transports that share one
KeeperService: plain JSON routes (api/routes/keeper.py) and a JSON-RPC 2.0
endpoint (api/routes/rpc.py).

Run with:  uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan builds the object graph once (engine -> stores -> hasher/tokens ->
gateway -> KeeperService) and disposes the engine on shutdown. Nothing reads
stores or config from module globals at request time.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.keeper import router as keeper_router
from api.routes.rpc import router as rpc_router
from auth.gateway import AuthorizationGateway
from auth.passwords import PasswordHasher
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import get_settings
from core.errors import (
    AlreadyExists,
    KeeperError,
    LoginFailed,
    NotFound,
    Unauthorized,
    ValidationError,
)
from core.schema import create_db_engine
from service.keeper import KeeperService
from vault.store import CredentialStore

VERSION = "0.1.0"

_settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=_settings.log_level.upper(),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("keeper.api")


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


def build_keeper(settings=None) -> KeeperService:
    """Construct the KeeperService object graph from settings.

    Order: engine (creates tables) -> stores -> hasher and token service ->
    gateway -> service. Exposed separately from lifespan so scripts and tests
    can build the same graph without an ASGI server.
    """
    settings = settings or get_settings()
    engine = create_db_engine(settings.database_url)
    tokens = TokenService(settings.secret_key, settings.token_expire_seconds)
    return KeeperService(
        users=UserStore(engine),
        credentials=CredentialStore(engine),
        hasher=PasswordHasher(rounds=settings.bcrypt_rounds),
        tokens=tokens,
        gateway=AuthorizationGateway(tokens),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the KeeperService on startup; dispose the engine on shutdown."""
    logger.info("Keeper API starting up")
    app.state.keeper = build_keeper(_settings)
    logger.info("Keeper initialized (token ttl=%ds)", app.state.keeper.tokens.expire_seconds)

    yield

    app.state.keeper.users.engine.dispose()
    logger.info("Keeper API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Keeper API",
    description="Credential vault: per-user secret records behind signed session tokens.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Register in the order you want the request to encounter them:
# TrustedHost -> CORS -> SlowAPI.
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(keeper_router, tags=["Keeper"])
app.include_router(rpc_router, tags=["RPC"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------

_UNAUTHORIZED_STATUS = {
    Unauthorized.MISSING_TOKEN: 401,
    Unauthorized.INVALID_TOKEN: 405,
    Unauthorized.NOT_OWNER: 403,
}


def status_for(exc: KeeperError) -> int:
    """Map a taxonomy error onto the HTTP status the transport contract promises."""
    if isinstance(exc, Unauthorized):
        return _UNAUTHORIZED_STATUS.get(exc.reason, 401)
    if isinstance(exc, LoginFailed):
        return 401
    if isinstance(exc, AlreadyExists):
        return 409
    if isinstance(exc, NotFound):
        return 404
    if isinstance(exc, ValidationError):
        return 400
    return 500


@app.exception_handler(KeeperError)
async def keeper_error_handler(request: Request, exc: KeeperError) -> JSONResponse:
    """Return the structured envelope for a service-layer error.

    Only exc.code and exc.message (both generic) reach the client. Backend
    detail was already logged where the error was raised.
    """
    response = JSONResponse(
        status_code=status_for(exc),
        content=ErrorResponse(error=ErrorDetail(code=exc.code, message=exc.message)).model_dump(),
    )
    if isinstance(exc, LoginFailed):
        response.headers["Cache-Control"] = "no-store"
    return response


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(
        status_code=429,
        content=ErrorResponse(
            error=ErrorDetail(
                code="rate_limited",
                message="Too many requests.",
                detail=str(exc),
            )
        ).model_dump(),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Route handlers raise HTTPException with a dict detail. When detail is
    already structured, use it directly as the error field rather than
    stringifying it -- str(dict) produces a Python repr, not JSON.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state. No rate limit applied.
# ---------------------------------------------------------------------------


@app.get("/health", include_in_schema=True, tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and database reachability."""
    database_ok = request.app.state.keeper.users.ping()
    return HealthResponse(
        status="healthy" if database_ok else "degraded",
        version=VERSION,
        components={"app": "ok", "database": "ok" if database_ok else "error"},
    )

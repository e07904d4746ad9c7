"""
api/main.py -- FastAPI application entry point for Gatekeeper.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. log_requests          -- one log line per request with status and latency

Lifespan builds the auth core once per process (store, hasher, token issuer,
object store, session manager, guard) and hangs it on app.state. Routes and
dependencies read it from there; nothing is constructed per request.

Error boundary: every failure leaves as the same envelope
  {statusCode, message, errors, data: null, success: false}
AuthCoreError raised by dependencies keeps its own status and message.
Anything unexpected is logged with its traceback and answered with a generic
500 -- no internals reach the client.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import HealthResponse
from api.routes.v1.auth import router as auth_router
from auth.dependencies import AuthorizationGuard
from auth.errors import AuthCoreError, InternalError, ValidationError
from auth.passwords import PasswordHasher
from auth.results import Result
from auth.sessions import SessionManager
from auth.store import UserStore
from auth.tokens import TokenIssuer
from core.config import TokenConfig, get_settings
from media.store import ObjectStore, build_object_store

API_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("gatekeeper.api")

_settings = get_settings()


def wire_services(
    app: FastAPI,
    store: UserStore,
    issuer: TokenIssuer,
    hasher: PasswordHasher,
    object_store: ObjectStore | None,
) -> None:
    """Attach the auth core to app.state. Shared by lifespan and the test fixtures."""
    app.state.user_store = store
    app.state.sessions = SessionManager(store, hasher, issuer, object_store)
    app.state.guard = AuthorizationGuard(store, issuer)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the auth core on startup; dispose the store's engine on shutdown."""
    logger.info("Gatekeeper API starting up")
    store = UserStore(_settings.database_url)
    wire_services(
        app,
        store,
        TokenIssuer(TokenConfig.from_settings(_settings)),
        PasswordHasher(_settings.password_hash_rounds),
        build_object_store(_settings),
    )
    logger.info("Auth initialized (media_backend=%s)", _settings.media_backend)

    yield

    store.close()
    logger.info("Gatekeeper API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Gatekeeper API",
    description="Account registration, password login, and rotating access/refresh tokens.",
    version=API_VERSION,
    lifespan=lifespan,
)

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)


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

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])

if _settings.media_backend == "local" and _settings.media_base_url.startswith("/"):
    app.mount(
        _settings.media_base_url,
        StaticFiles(directory=_settings.media_dir, check_dir=False),
        name="media",
    )


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


def _error_response(error: AuthCoreError) -> JSONResponse:
    return JSONResponse(status_code=error.status_code, content=Result.failure(error).to_envelope())


@app.exception_handler(AuthCoreError)
async def auth_core_error_handler(request: Request, exc: AuthCoreError) -> JSONResponse:
    """Render domain errors raised outside a Result (e.g. by get_current_user)."""
    logger.info("%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.message)
    return _error_response(exc)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies (not JSON, not an object) are validation failures: 400."""
    errors = [
        f"{'.'.join(str(p) for p in e.get('loc', ()))}: {e.get('msg', 'invalid value')}" for e in exc.errors()
    ]
    return _error_response(ValidationError("Request validation failed.", errors=errors))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """404/405 and other framework errors in the same envelope."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "statusCode": exc.status_code,
            "message": str(exc.detail),
            "errors": [],
            "data": None,
            "success": False,
        },
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors.

    The exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(InternalError())


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and whether the user store answers."""
    try:
        request.app.state.user_store.has_users()
        database = "ok"
    except Exception:
        logger.exception("Health check: user store unavailable")
        database = "error"
    return HealthResponse(version=API_VERSION, components={"app": "ok", "database": database})

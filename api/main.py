"""
api/main.py -- FastAPI application entry point for authcore.

Run with:  python main.py serve
           uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware      -- adds CORS headers for allowed browser origins
  2. log_requests        -- one log line per request with latency

Lifespan builds the collaborators of the auth core (credential store, session
cache, password hasher, token codec), wires them into one AuthService on
app.state, and starts the session purge task. Shutdown is symmetric.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.users import router as users_router
from auth.errors import AuthError, ErrorKind
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.store import CredentialStore
from auth.tokens import TokenCodec
from cache.store import SessionCache, create_session_cache
from core.config import Settings, get_settings

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("authcore.api")

_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.conflict: 409,
    ErrorKind.unauthorized: 401,
    ErrorKind.bad_request: 400,
    ErrorKind.not_found: 404,
}


def build_auth_service(settings: Settings, store: CredentialStore, sessions: SessionCache) -> AuthService:
    """Assemble an AuthService from settings and already-open stores."""
    codec = TokenCodec(
        access_secret=settings.access_token_secret,
        refresh_secret=settings.refresh_token_secret,
        access_ttl_seconds=settings.access_token_expire_seconds,
        refresh_ttl_seconds=settings.refresh_token_expire_seconds,
    )
    return AuthService(
        store=store,
        hasher=PasswordHasher(rounds=settings.bcrypt_rounds),
        codec=codec,
        sessions=sessions,
        default_role=settings.default_role,
        revoke_sessions_on_password_reset=settings.revoke_sessions_on_password_reset,
    )


# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(sessions: SessionCache, interval_seconds: int) -> None:
    """Drop expired session entries every interval_seconds.

    Expired entries are already invisible to get(); this only reclaims space.
    CancelledError from task.cancel() during shutdown propagates out of
    asyncio.sleep and unwinds the coroutine.
    """
    while True:
        await asyncio.sleep(interval_seconds)
        removed = sessions.purge_expired()
        if removed:
            logger.info("Purged %d expired sessions", removed)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown.
    """
    settings = get_settings()
    logger.info("authcore API starting up")
    app.state.credential_store = CredentialStore(db_url=settings.database_url)
    logger.info("Credential store initialized")
    app.state.sessions = create_session_cache(settings.session_cache_url)
    logger.info("Session cache initialized (%s)", settings.session_cache_url)
    app.state.auth_service = build_auth_service(settings, app.state.credential_store, app.state.sessions)
    app.state.purge_task = asyncio.create_task(
        _purge_loop(app.state.sessions, settings.session_purge_interval_seconds)
    )

    yield

    app.state.purge_task.cancel()
    app.state.sessions.close()
    app.state.credential_store.close()
    logger.info("authcore API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="authcore API",
    description="Signup, login, rotating token pairs and server-side sessions.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_methods=["GET", "POST", "PATCH"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Every request passes through this coroutine before reaching any route
# handler. Latency is measured around call_next.
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

app.include_router(auth_router, tags=["Auth"])
app.include_router(users_router, tags=["Users"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly.
# ---------------------------------------------------------------------------


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Map an AuthError to its HTTP status by kind. The message is safe to show."""
    return JSONResponse(
        status_code=_STATUS_BY_KIND[exc.kind],
        content=ErrorResponse(error=ErrorDetail(code=exc.kind.value, message=exc.message)).model_dump(),
    )


def _describe_validation_errors(errors) -> str:
    """Render validation errors as "loc: msg" pairs.

    The submitted input is left out: for auth bodies it carries passwords.
    """
    return "; ".join(".".join(str(part) for part in err["loc"]) + ": " + err["msg"] for err in errors)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with a structured error when the request body fails validation."""
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(
            error=ErrorDetail(
                code=ErrorKind.bad_request.value,
                message="Request validation failed.",
                detail=_describe_validation_errors(exc.errors()),
            )
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all HTTP exceptions, including unmatched routes."""
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
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

    The raw exception goes to the log only, never to the response body.
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
# Defined directly in main.py (not in a router) so it is always reachable.
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version and the credential store's status."""
    try:
        database = "ok" if request.app.state.credential_store.ping() else "error"
    except Exception:
        logger.exception("Health check: credential store unreachable")
        database = "error"
    return HealthResponse(version=__version__, components={"app": "ok", "database": database})

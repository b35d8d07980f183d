"""
api/main.py -- FastAPI application entry point for ForsaLearn auth.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. log_requests          -- one log line per request with latency
  2. security_headers      -- nosniff / frame deny / XSS protection headers
  3. CORSMiddleware        -- allows the configured client origin

Rate limits are enforced by the slowapi decorators on the register and login
routes; the shared limiter lives on app.state.limiter.

Lifespan builds the process-wide collaborators from Settings once (store,
token issuer), seeds the first admin when configured, and disposes the engine
on shutdown.
"""

from __future__ import annotations

import logging
import time
import traceback
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorResponse, HealthResponse
from api.routes.admin import router as admin_router
from api.routes.auth import router as auth_router
from api.routes.dashboard import router as dashboard_router
from auth.bootstrap import seed_admin
from auth.errors import AuthError, ValidationFailed
from auth.store import PrincipalStore
from auth.tokens import TokenIssuer
from core.config import get_settings

VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("forsalearn.api")

_settings = get_settings()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the store and token issuer from Settings, seed the admin, tear down on exit."""
    logger.info("ForsaLearn auth API starting up (debug=%s)", _settings.debug)
    app.state.settings = _settings
    app.state.store = PrincipalStore(_settings.database_url)
    app.state.tokens = TokenIssuer.from_settings(_settings)
    seed_admin(app.state.store, _settings)
    logger.info("Auth initialized (%d principals)", app.state.store.count())

    yield

    app.state.store.close()
    logger.info("ForsaLearn auth API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="ForsaLearn Auth API",
    description="Registration, login and role-based access control for ForsaLearn.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=[_settings.client_url],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

# slowapi looks for app.state.limiter by convention.
app.state.limiter = limiter


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-XSS-Protection"] = "1; mode=block"
    return response


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

app.include_router(auth_router, prefix="/api/auth", tags=["Auth"])
app.include_router(admin_router, prefix="/api/admin", tags=["Admin"])
app.include_router(dashboard_router, prefix="/api", tags=["Dashboards"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope ({message, code, ...})
# so clients can parse errors uniformly.
# ---------------------------------------------------------------------------


def _error(status_code: int, body: ErrorResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True, exclude_none=True))


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render an expected domain failure with its own status, code and message."""
    if exc.status_code >= 500:
        logger.error("%s on %s %s", exc.code, request.method, request.url.path)
    return _error(
        exc.status_code,
        ErrorResponse(
            message=exc.message,
            code=exc.code,
            errors=exc.extra.get("errors"),
            is_pending=exc.extra.get("isPending"),
        ),
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a Retry-After hint when a rate limit is exceeded.

    The hint is the number of seconds until the current window resets,
    read back from the limiter storage; 60 when it cannot be determined.
    """
    retry_after = 60
    view_limit = getattr(request.state, "view_rate_limit", None)
    if view_limit is not None:
        reset_at, _remaining = request.app.state.limiter.limiter.get_window_stats(view_limit[0], *view_limit[1])
        retry_after = max(1, int(reset_at - time.time()))
    response = _error(429, ErrorResponse(message=str(exc.detail), code="too_many_requests"))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 listing every failing field of the request body."""
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        ctx_error = (err.get("ctx") or {}).get("error")
        errors.append({"field": ".".join(loc) or "body", "message": str(ctx_error or err.get("msg", ""))})
    return await auth_error_handler(request, ValidationFailed(errors))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render framework HTTP errors (404 unknown route, 405, ...) in the envelope."""
    message = "Route not found" if exc.status_code == 404 else str(exc.detail)
    return _error(exc.status_code, ErrorResponse(message=message, code=f"http_{exc.status_code}"))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The exception is logged in full server-side. The client gets a generic
    message; only in DEBUG mode does the body also carry the stack trace.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    stack = "".join(traceback.format_exception(exc)) if _settings.debug else None
    return _error(500, ErrorResponse(message="Internal server error", code="internal_error", stack=stack))


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py so it is reachable regardless of router
# registration. No rate limit.
# ---------------------------------------------------------------------------


@app.get("/api/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness and whether the credential store answers."""
    database = "ok"
    try:
        request.app.state.store.count()
    except Exception:
        logger.exception("Health check: credential store unavailable")
        database = "error"
    return HealthResponse(version=VERSION, components={"app": "ok", "database": database})

"""
api/main.py -- FastAPI application entry point for Conduit.

Run with:      uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware        -- adds CORS headers for allowed browser origins
  2. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan builds the object graph once at startup -- settings -> UserStore ->
TokenService -> UserService -- and disposes the store's engine on shutdown.
Route handlers reach the service through app.state; nothing else is global.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException

from api.errors import DomainErrorResponse, domain_error_handler, error_content
from api.limiter import limiter
from api.models import HealthResponse
from api.routes.profiles import router as profiles_router
from api.routes.users import router as users_router
from auth.errors import Unexpected
from auth.service import UserService
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import get_settings

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("conduit.api")

# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Wire the auth core from settings; tear it down on shutdown.

    Settings are read here and nowhere else. The services receive frozen
    TokenConfig / KdfConfig values and the store through their constructors.
    """
    settings = get_settings()
    logger.info("Conduit API starting up")
    store = UserStore(settings.database_url)
    tokens = TokenService(settings.token_config(), store)
    app.state.user_store = store
    app.state.user_service = UserService(store, tokens, settings.kdf_config())
    logger.info("Auth initialized (issuer=%s, ttl=%ss)", settings.jwt_issuer, settings.token_expire_seconds)

    yield

    app.state.user_store.close()
    logger.info("Conduit API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Conduit API",
    description="Users, profiles and authentication for the Conduit blogging platform.",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost", "http://localhost:3000", "http://127.0.0.1"],
    allow_methods=["GET", "POST", "PUT", "DELETE"],
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

app.include_router(users_router, prefix="/api", tags=["Users"])
app.include_router(profiles_router, prefix="/api", tags=["Profiles"])

# ---------------------------------------------------------------------------
# Exception handlers
#
# Every handler returns the same {"errors": {"body": [...]}} envelope so
# clients parse failures uniformly.
# ---------------------------------------------------------------------------

app.add_exception_handler(DomainErrorResponse, domain_error_handler)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with Retry-After when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(status_code=429, content=error_content("Too many requests."))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 naming the missing or malformed body fields."""
    fields = [".".join(str(part) for part in err["loc"] if part != "body") for err in exc.errors()]
    return JSONResponse(
        status_code=422,
        content=error_content(f"Json is missing fields: {', '.join(fields)}"),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Render HTTPException with the shared envelope.

    Dependencies raise HTTPException with detail={"body": [...]}; a plain
    string detail is wrapped into the same shape.
    """
    if isinstance(exc.detail, dict):
        content = {"errors": exc.detail}
    else:
        content = error_content(str(exc.detail))
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


@app.exception_handler(Unexpected)
async def unexpected_handler(request: Request, exc: Unexpected) -> JSONResponse:
    """Storage faults. Already logged with traceback where they were wrapped."""
    return JSONResponse(status_code=500, content=error_content("An unexpected error occurred."))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors.

    The raw exception is logged only, never written to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=error_content("An unexpected error occurred."))


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py so it is always reachable. No rate limit --
# load balancer checks must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/api/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness, version, and database reachability."""
    database_ok = request.app.state.user_store.ping()
    return HealthResponse(
        version=VERSION,
        components={"app": "ok", "database": "ok" if database_ok else "error"},
    )

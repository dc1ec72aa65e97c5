"""
api/main.py -- FastAPI application entry point for the SecureToken demo.

The app exists to show the primitive in its canonical role: a stateless
session cookie. There is no session store -- the sealed cookie is the only
record of who is signed in.

Run with:  uvicorn asgi:app --reload

Lifespan builds the Tokener once on startup and parks it on app.state so
route handlers share one immutable instance.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from api.models import ComponentStatus, ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.session import router as session_router
from core.config import get_settings
from core.tokener import get_tokener
from securetoken import RandomnessUnavailable, SecureTokenError, Tokener, TokenExpired

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("securetoken.api")

_VERSION = "1.0.0"
_SELF_CHECK_PAYLOAD = b"securetoken-health"


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the Tokener on startup.

    Settings validation runs here too: a missing TOKEN_KEY in production
    aborts startup rather than failing on the first request.
    """
    logger.info("SecureToken API starting up")
    settings = get_settings()
    app.state.settings = settings
    app.state.tokener = get_tokener()
    logger.info(
        "Tokener initialized (construction=%s, ttl=%ss)",
        settings.token_construction,
        settings.token_ttl_seconds,
    )

    yield

    logger.info("SecureToken API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="SecureToken",
    description="Stateless session cookies sealed with authenticated encryption.",
    version=_VERSION,
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Only method, path, status and latency are logged. Cookies and headers are
# never written out -- they carry session tokens.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms",
        request.method,
        request.url.path,
        response.status_code,
        ms,
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(session_router, prefix="/api/v1", tags=["Session"])
# Web UI router is mounted by asgi.py, not here.


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str(exc.errors()),
            )
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    When detail is already a structured dict, use it directly as the error
    field rather than stringifying it.
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


@app.exception_handler(RandomnessUnavailable)
async def randomness_handler(request: Request, exc: RandomnessUnavailable) -> JSONResponse:
    """Return 503 when a token cannot be sealed for lack of secure randomness.

    The request is refused outright. Issuing a token with a weaker nonce is
    never an option.
    """
    logger.error("Refused %s %s: random source unavailable", request.method, request.url.path)
    return JSONResponse(
        status_code=503,
        content=ErrorResponse(
            error=ErrorDetail(
                code="randomness_unavailable",
                message="Cannot issue tokens right now. Try again later.",
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
# regardless of router registration state.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", response_model=HealthResponse, tags=["Health"])
async def health(request: Request) -> HealthResponse:
    """Report liveness plus a seal/unseal self-check of the Tokener.

    The self-check exercises the random source and the key schedule. It seals
    a fixed payload and unseals it immediately. With a zero ttl the token is
    already stale when it comes back; TokenExpired is only raised after the tag
    verifies, so it still counts as a pass.
    """
    tokener: Tokener = request.app.state.tokener
    try:
        ok = tokener.unseal(tokener.seal(_SELF_CHECK_PAYLOAD)) == _SELF_CHECK_PAYLOAD
    except TokenExpired:
        ok = True
    except SecureTokenError as exc:
        logger.error("Tokener self-check failed: %s", type(exc).__name__)
        ok = False
    return HealthResponse(
        status="healthy" if ok else "degraded",
        version=_VERSION,
        components=ComponentStatus(app="ok", tokener="ok" if ok else "error"),
    )

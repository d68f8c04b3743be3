"""
dineAR Backend — FastAPI Application Factory
=============================================

What:  Creates and configures the FastAPI application instance.
Why:   Centralizes app configuration, middleware registration, route mounting,
       error translation and lifecycle management in one place.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn (uvicorn dinear.main:app) and by the test suite,
       which builds a fresh app per test.

Application Architecture:
    ┌──────────────────────────────────────────────────────────────┐
    │                         FastAPI App                          │
    │                                                              │
    │  Middleware Chain (outermost first):                         │
    │  ┌──────┐ ┌────────┐ ┌─────────┐ ┌────────────┐ ┌──────┐    │
    │  │ CORS │→│ Req ID │→│ Logging │→│ Rate Limit │→│ GZip │    │
    │  └──────┘ └────────┘ └─────────┘ └────────────┘ └──────┘    │
    │                                                              │
    │  Routes:                                                     │
    │  ┌────────────┐ ┌──────────────┐ ┌──────────┐ ┌──────────┐  │
    │  │ /api/auth  │ │ /api/dishes  │ │ /uploads │ │ /health  │  │
    │  └────────────┘ └──────────────┘ └──────────┘ └──────────┘  │
    │                                                              │
    │  Exception Handlers:                                         │
    │  ┌────────────────────────────────────────────────────────┐ │
    │  │ DineARError → status by kind │ framework errors → 400  │ │
    │  │ unknown route → 404          │ anything else → 500     │ │
    │  └────────────────────────────────────────────────────────┘ │
    └──────────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging → configuration check → upload directory → ready
    Shutdown: dispose database engine
"""

import logging
import sys
import traceback
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from dinear import __version__
from dinear.config import settings
from dinear.database import dispose_engine
from dinear.exceptions import DineARError, ErrorKind, RateLimitExceededError, ValidationError
from dinear.middleware.logging import RequestLoggingMiddleware
from dinear.middleware.rate_limit import RateLimitMiddleware, RateLimitStore, build_limiters
from dinear.middleware.request_id import RequestIDMiddleware, request_id_var
from dinear.middleware.security_headers import SecurityHeadersMiddleware
from dinear.routes import auth, dishes, health
from dinear.schemas.common import ErrorResponse
from dinear.services.upload_service import PUBLIC_PREFIX, upload_service

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s on stdout
    (Docker captures stdout). Level comes from LOG_LEVEL.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party libraries log every operation at DEBUG/INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("multipart").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup sequence:
        1. Setup logging
        2. Refuse to start in production with an unsafe JWT secret
        3. Ensure the upload directory exists

    Shutdown sequence:
        1. Dispose database engine (close all pooled connections)
    """
    setup_logging()
    logger.info("=" * 60)
    logger.info("dineAR Backend %s starting up (%s)...", __version__, settings.environment)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        raise

    upload_service.upload_dir.mkdir(parents=True, exist_ok=True)
    logger.info("Upload directory: %s", upload_service.upload_dir)

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("dineAR Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def error_response(
    status_code: int,
    error: str,
    details: Optional[List[Dict[str, str]]] = None,
    retry_after: Optional[int] = None,
    headers: Optional[Dict[str, str]] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    """
    Build the one error shape used by every handler.

    Bodies carry nothing request-specific (no request id, no timestamp), so
    identical failures are byte-identical.
    """
    body = ErrorResponse(error=error, details=details or None, retry_after=retry_after)
    content = body.model_dump(exclude_none=True)
    if extra:
        content.update(extra)
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def _framework_violations(exc: RequestValidationError) -> List[Dict[str, str]]:
    violations = []
    for err in exc.errors():
        # loc starts with the source ("body", "query", "path")
        loc = [str(part) for part in err.get("loc", ())[1:]]
        violations.append({"field": ".".join(loc) or "body", "message": err.get("msg", "Invalid value")})
    return violations


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register global exception handlers for consistent error responses.

    Handler hierarchy:
        DineARError (by kind)   → 400/401/403/404/409/429/500
        RequestValidationError  → 400 Validation failed
        StarletteHTTPException  → its status (404 → "Route not found")
        Exception (fallback)    → 500 Internal server error

    Security: 500 bodies never carry internal details, except the exception
    type and traceback in development.
    """

    @app.exception_handler(DineARError)
    async def handle_dinear_error(request: Request, exc: DineARError):
        rid = request_id_var.get("")
        status_code = exc.status_code

        if exc.kind == ErrorKind.INTERNAL:
            logger.error("[%s] %s: %s | Context: %s", rid, type(exc).__name__, exc.message, exc.context)
        elif exc.kind in (ErrorKind.AUTHENTICATION, ErrorKind.AUTHORIZATION, ErrorKind.RATE_LIMITED):
            # Security events; context holds the reason, never the token
            logger.warning("[%s] %s on %s %s | Context: %s",
                           rid, exc.kind.value, request.method, request.url.path, exc.context)
        else:
            logger.info("[%s] %s: %s", rid, exc.kind.value, exc.message)

        if isinstance(exc, RateLimitExceededError):
            return error_response(
                status_code,
                exc.message,
                retry_after=exc.retry_after,
                headers={"Retry-After": str(exc.retry_after)},
            )
        if isinstance(exc, ValidationError):
            return error_response(status_code, exc.message, details=exc.details)
        return error_response(status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        """Body/query decoding failures, in the same shape as our own validation."""
        return error_response(400, "Validation failed", details=_framework_violations(exc))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            message = "Route not found"
        elif exc.status_code == 405:
            message = "Method not allowed"
        else:
            message = str(exc.detail)
        return error_response(exc.status_code, message, headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, exc, exc_info=True)

        extra = None
        if settings.is_development():
            extra = {
                "type": type(exc).__name__,
                "stack": traceback.format_exception(type(exc), exc, exc.__traceback__),
            }
        return error_response(500, "Internal server error", extra=extra)


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Each call gets its own rate-limit store, so tests start from zero.
    """
    app = FastAPI(
        title="dineAR API",
        description=(
            "Backend for dineAR: restaurant owners photograph dishes, manage them, "
            "and print QR codes that open each dish in a WebXR AR viewer."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Shared State ──────────────────────────────────────────────────────
    app.state.rate_limit_store = RateLimitStore()
    app.state.rate_limiters = build_limiters(app.state.rate_limit_store)

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added runs first: CORS → SecurityHeaders → RequestID → Logging → RateLimit → GZip
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(auth.router)
    app.include_router(dishes.router)
    app.include_router(health.router)

    # StaticFiles checks the directory at construction time
    upload_service.upload_dir.mkdir(parents=True, exist_ok=True)
    app.mount(PUBLIC_PREFIX, StaticFiles(directory=upload_service.upload_dir), name="uploads")

    return app


# ── Application Instance ─────────────────────────────────────────────────
app = create_app()

"""
NoteGenius Backend — FastAPI Application Factory
==================================================

What:  Builds the FastAPI application: middleware, routers, error handlers.
Why:   One place decides how a request travels from the socket to a route
       and how every failure is turned into an HTTP response.
How:   create_app() returns a configured instance; uvicorn serves
       `notegenius.main:app`.

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                     FastAPI App                          │
    │                                                          │
    │  Middleware Chain (outermost first):                     │
    │  RateLimit → RequestID → Logging → SessionRedirect       │
    │            → GZip → CORS                                 │
    │                                                          │
    │  Routers:                                                │
    │  /api/summarize   /api/notes*   /auth/*                  │
    │  / , /auth , /dashboard         /health                  │
    │                                                          │
    │  Exception Handlers:                                     │
    │  Validation→400  Auth→401  NotFound→404  Config→500      │
    │  Database→500    Provider→503  Summarization→503         │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging, configuration report (missing keys are logged; the
              affected endpoints answer with a descriptive 500 later)
    Shutdown: dispose the database engine, close pooled connections
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from notegenius import __version__
from notegenius.config import settings
from notegenius.database import dispose_engine
from notegenius.exceptions import (
    AuthenticationError,
    AuthProviderError,
    CircuitBreakerOpenError,
    ConfigurationError,
    DatabaseError,
    NoteGeniusError,
    NotFoundError,
    SummarizationError,
    ValidationError,
)
from notegenius.middleware.logging import RequestLoggingMiddleware
from notegenius.middleware.rate_limit import RateLimitMiddleware
from notegenius.middleware.request_id import RequestIDMiddleware, request_id_var
from notegenius.middleware.session import SessionRedirectMiddleware
from notegenius.routes import auth, health, notes, pages, summarize

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure the root logger once, before anything else logs.

    Format: 2026-01-01T12:00:00 [INFO] notegenius.services.note_service: ...

    Third-party loggers that narrate every connection or HTTP call are raised
    to WARNING; httpx in particular would otherwise log provider URLs.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    for noisy in ("uvicorn.access", "sqlalchemy.engine", "httpcore", "httpx"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("NoteGenius Backend %s starting up", __version__)

    try:
        settings.validate_required()
    except ConfigurationError as e:
        # Keep serving: /health reports the gap and affected routes return the message
        logger.error("Configuration error: %s", e.message)

    if not settings.db_row_level_security:
        logger.warning("Row-level security role switch is disabled (DB_ROW_LEVEL_SECURITY=false)")

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)

    yield

    logger.info("NoteGenius Backend shutting down")
    await dispose_engine()
    logger.info("Shutdown complete")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_response(
    status_code: int,
    error: str,
    message: str,
    details: dict | None = None,
    headers: dict | None = None,
) -> JSONResponse:
    content = {"error": error, "message": message, "request_id": request_id_var.get("")}
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map the NoteGeniusError hierarchy onto HTTP responses.

    Handler table:
        ValidationError          → 400 (message tells the user what to fix)
        RequestValidationError   → 400 (body or path failed schema validation)
        AuthenticationError      → 401
        NotFoundError            → 404 (missing and not-owned look the same)
        ConfigurationError       → 500 (descriptive: names the missing setting)
        DatabaseError            → 500 (generic; context logged only)
        AuthProviderError        → 503
        CircuitBreakerOpenError  → 503 with Retry-After
        SummarizationError       → 503
        NoteGeniusError          → 500
        Exception                → 500 with stack trace logged

    /api/summarize handles its own errors to keep its {"error": ...} body.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return _error_response(400, "validation_error", exc.message, exc.context)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        # Malformed bodies are client mistakes like any other: 400, not 422
        errors = [
            {
                "field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"),
                "message": err.get("msg", ""),
            }
            for err in exc.errors()
        ]
        message = errors[0]["message"] if errors else "Invalid request"
        logger.warning("[%s] Request validation failed: %s", request_id_var.get(""), errors)
        return _error_response(400, "validation_error", message, {"errors": errors})

    @app.exception_handler(AuthenticationError)
    async def handle_authentication_error(request: Request, exc: AuthenticationError):
        return _error_response(401, "unauthorized", exc.message)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error_response(404, "not_found", exc.message)

    @app.exception_handler(ConfigurationError)
    async def handle_configuration_error(request: Request, exc: ConfigurationError):
        logger.error("[%s] Configuration error: %s", request_id_var.get(""), exc.message)
        return _error_response(500, "configuration_error", exc.message, exc.context)

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error(
            "[%s] Database error: %s | Context: %s",
            request_id_var.get(""),
            exc.message,
            exc.context,
        )
        return _error_response(
            500, "server_error", "An internal error occurred. Please try again later."
        )

    @app.exception_handler(AuthProviderError)
    async def handle_auth_provider_error(request: Request, exc: AuthProviderError):
        logger.error("[%s] Identity provider error: %s", request_id_var.get(""), exc.message)
        return _error_response(503, "auth_provider_unavailable", exc.message)

    @app.exception_handler(CircuitBreakerOpenError)
    async def handle_circuit_breaker(request: Request, exc: CircuitBreakerOpenError):
        logger.warning("[%s] Circuit breaker open: %s", request_id_var.get(""), exc.message)
        return _error_response(
            503,
            "service_unavailable",
            exc.message,
            {"recovery_time": exc.recovery_time},
            headers={"Retry-After": str(exc.recovery_time)},
        )

    @app.exception_handler(SummarizationError)
    async def handle_summarization_error(request: Request, exc: SummarizationError):
        logger.error("[%s] Summarization error: %s", request_id_var.get(""), exc.message)
        headers = {"Retry-After": str(exc.retry_after)} if exc.retry_after else None
        return _error_response(503, "summarization_error", exc.message, headers=headers)

    @app.exception_handler(NoteGeniusError)
    async def handle_notegenius_error(request: Request, exc: NoteGeniusError):
        logger.error("[%s] %s: %s", request_id_var.get(""), type(exc).__name__, exc.message)
        return _error_response(500, "server_error", exc.message)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("[%s] Unexpected error: %s", request_id_var.get(""), exc, exc_info=True)
        return _error_response(
            500,
            "internal_server_error",
            "An unexpected error occurred. Please try again or contact support.",
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="NoteGenius API",
        description=(
            "Personal notes with AI summaries. Sign in through the identity "
            "provider, keep notes in Postgres, summarize them with Google Gemini."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Last added runs first: RateLimit → RequestID → Logging → SessionRedirect → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,  # session cookies
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Total-Count", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(SessionRedirectMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    register_exception_handlers(app)

    app.include_router(summarize.router)
    app.include_router(notes.router)
    app.include_router(auth.router)
    app.include_router(pages.router)
    app.include_router(health.router)

    return app


app = create_app()

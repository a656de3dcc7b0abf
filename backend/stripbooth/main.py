"""
StripBooth Backend — FastAPI Application Factory
=================================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() wires middleware, exception handlers
       and routers; the module-level `app` is what uvicorn serves
       (uvicorn stripbooth.main:app).

Application Architecture:
    ┌────────────────────────────────────────────────────────────┐
    │                       FastAPI App                          │
    │                                                            │
    │  Middleware:  Rate Limit → Request ID → Access Log → GZip  │
    │                                                            │
    │  Routes:                                                   │
    │    /api/orders  /api/projects  /api/templates              │
    │    /api/print-templates  /api/template-slots               │
    │    /api/raffle-*  /api/uploads  /uploads/{key}  /health    │
    │                                                            │
    │  Exception Handlers:                                       │
    │    Validation→400  NotFound→404  Transition/Raffle→409     │
    │    RateLimit→429   Storage/Database→500                    │
    └────────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging → configuration check → storage root
    Shutdown: dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from stripbooth import __version__
from stripbooth.config import settings
from stripbooth.database import dispose_engine
from stripbooth.exceptions import (
    DatabaseError,
    InvalidTransitionError,
    NotFoundError,
    RaffleExhaustedError,
    RateLimitExceededError,
    StorageError,
    StripBoothError,
    ValidationError,
)
from stripbooth.middleware.logging import RequestLoggingMiddleware
from stripbooth.middleware.rate_limit import RateLimitMiddleware
from stripbooth.middleware.request_id import RequestIDMiddleware, request_id_var
from stripbooth.routes import (
    design_templates,
    health,
    orders,
    print_templates,
    projects,
    raffle,
    template_slots,
    uploads,
)

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configures the root logger once at startup.

    Format: 2024-06-01T09:15:02 [INFO] stripbooth.services.template_allocator: ...
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Per-request noise from libraries; our own access log covers requests.
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("=" * 60)
    logger.info("StripBooth Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving: /health reports what is broken.
        logger.error("Configuration error: %s", str(e))

    storage = Path(settings.storage_root)
    storage.mkdir(parents=True, exist_ok=True)
    logger.info("Storage root: %s", storage.resolve())
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("StripBooth Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_response(status_code: int, error: str, message: str, details=None, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "message": message,
            "details": details,
            "request_id": request_id_var.get(""),
        },
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Maps the StripBoothError hierarchy onto HTTP responses.

        ValidationError         → 400 validation_error
        NotFoundError           → 404 not_found
        InvalidTransitionError  → 409 invalid_transition
        RaffleExhaustedError    → 409 raffle_exhausted
        RateLimitExceededError  → 429 rate_limit_exceeded
        StorageError            → 500 storage_error
        DatabaseError           → 500 server_error
        StripBoothError         → 500 server_error
        Exception               → 500 internal_server_error

    Server-side failures are logged with their context; the response body
    only carries the user-facing message.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return _error_response(400, "validation_error", exc.message, exc.context)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error_response(404, "not_found", exc.message, exc.context)

    @app.exception_handler(InvalidTransitionError)
    async def handle_invalid_transition(request: Request, exc: InvalidTransitionError):
        logger.warning("[%s] Rejected transition: %s", request_id_var.get(""), exc.message)
        return _error_response(409, "invalid_transition", exc.message, exc.context)

    @app.exception_handler(RaffleExhaustedError)
    async def handle_raffle_exhausted(request: Request, exc: RaffleExhaustedError):
        return _error_response(409, "raffle_exhausted", exc.message, exc.context)

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        return _error_response(
            429,
            "rate_limit_exceeded",
            exc.message,
            exc.context,
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(StorageError)
    async def handle_storage_error(request: Request, exc: StorageError):
        logger.error("[%s] Storage error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return _error_response(500, "storage_error", exc.message)

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error("[%s] Database error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return _error_response(500, "server_error", "An internal error occurred. Please try again later.")

    @app.exception_handler(StripBoothError)
    async def handle_app_error(request: Request, exc: StripBoothError):
        logger.error("[%s] Application error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return _error_response(500, "server_error", exc.message)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("[%s] Unexpected error: %s", request_id_var.get(""), str(exc), exc_info=True)
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
        title="StripBooth API",
        description=(
            "Order management for a school photo booth: cashier intake, photo "
            "editing projects, print-template packing and raffle draws."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Last added executes first: RateLimit → RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Total-Count", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(orders.router)
    app.include_router(projects.router)
    app.include_router(design_templates.router)
    app.include_router(print_templates.router)
    app.include_router(template_slots.router)
    app.include_router(raffle.router)
    app.include_router(uploads.router)

    return app


app = create_app()

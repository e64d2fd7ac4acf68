"""
VibePlan — FastAPI Application Entry Point

- Async lifespan: selects the storage backend once and closes it at shutdown
- CORS, timeout, and structured-logging middleware
- Uniform JSON rendering of domain errors
- Health-check endpoints (liveness + deep readiness)
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from vibeplan.api.router import router as api_router
from vibeplan.config import Settings, get_settings
from vibeplan.errors import StorageError, VibePlanError
from vibeplan.services.session_service import SessionService
from vibeplan.storage.gateway import build_gateway

REQUEST_TIMEOUT_SECONDS = 30.0

# ---------------------------------------------------------------------------
# Structured logging configuration
# ---------------------------------------------------------------------------


def configure_logging(level: str = "INFO") -> None:
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


logger: structlog.stdlib.BoundLogger = structlog.get_logger("vibeplan")


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the storage backend and attach the session service."""
    settings: Settings = app.state.settings

    # -- Startup --------------------------------------------------------- #
    logger.info(
        "startup_begin",
        environment=settings.ENVIRONMENT,
        log_level=settings.LOG_LEVEL,
    )

    gateway = build_gateway(settings)
    try:
        await gateway.ping()
    except StorageError:
        # Keep serving: every request will surface a retryable 503 until
        # the backend is reachable again.
        logger.error("storage_unreachable_at_startup", backend=gateway.backend)

    app.state.gateway = gateway
    app.state.session_service = SessionService(gateway, settings=settings)
    logger.info("startup_complete", backend=gateway.backend)

    yield

    # -- Shutdown -------------------------------------------------------- #
    logger.info("shutdown_begin")
    await gateway.close()
    logger.info("shutdown_complete")


# ---------------------------------------------------------------------------
# Middleware classes
# ---------------------------------------------------------------------------

class TimeoutMiddleware(BaseHTTPMiddleware):
    """Abort requests that exceed a configurable wall-clock timeout."""

    def __init__(self, app, timeout_seconds: float = REQUEST_TIMEOUT_SECONDS) -> None:
        super().__init__(app)
        self.timeout_seconds = timeout_seconds

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await asyncio.wait_for(
                call_next(request),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "request_timeout",
                method=request.method,
                path=request.url.path,
                timeout=self.timeout_seconds,
            )
            return JSONResponse(
                status_code=504,
                content={"detail": "Request timed out", "code": "timeout", "retryable": True},
            )


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with method, path, status code, and duration."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.exception(
                "request_error",
                method=request.method,
                path=request.url.path,
                duration_ms=round(duration_ms, 2),
            )
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "request_handled",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round(duration_ms, 2),
        )
        return response


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

async def vibeplan_error_handler(request: Request, exc: VibePlanError) -> JSONResponse:
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "request_failed",
        method=request.method,
        path=request.url.path,
        code=exc.code,
        status=exc.status_code,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code, "retryable": exc.retryable},
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    logger.info("request_invalid", path=request.url.path, errors=errors)
    return JSONResponse(
        status_code=422,
        content={
            "detail": "Request payload is invalid.",
            "code": "validation_error",
            "retryable": False,
            "errors": errors,
        },
    )


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title="VibePlan",
        description="Group-preference consensus for shared planning sessions",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
    )
    app.state.settings = settings

    # -- Middleware (applied in reverse order, last added runs first) ------ #

    app.add_middleware(StructuredLoggingMiddleware)
    app.add_middleware(TimeoutMiddleware, timeout_seconds=REQUEST_TIMEOUT_SECONDS)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(VibePlanError, vibeplan_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    # -- Health-check endpoints -------------------------------------------- #

    @app.get("/health", tags=["health"])
    async def health_liveness() -> dict:
        """Lightweight liveness probe."""
        return {"status": "healthy"}

    @app.get("/health/deep", tags=["health"])
    async def health_deep(request: Request) -> dict:
        """Deep readiness probe: pings the active storage backend."""
        gateway = request.app.state.gateway
        result: dict = {
            "status": "healthy",
            "backend": gateway.backend,
            "durable": gateway.is_durable,
            "storage": "connected",
        }
        try:
            await gateway.ping()
        except StorageError as exc:
            logger.error("health_storage_failure", backend=gateway.backend, error=exc.message)
            result["storage"] = f"error: {exc.message}"
            result["status"] = "degraded"
        return result

    # -- API router -------------------------------------------------------- #

    app.include_router(api_router, prefix="/api/v1")
    return app


app = create_app()

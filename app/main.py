"""
Smart Seat Exchange: FastAPI Application Entry Point

- Async lifespan management (DB pool warm-up, probability model loading)
- CORS, timeout, and structured-logging middleware
- Domain-error to HTTP mapping with a single error shape
- Health-check endpoints (liveness + deep readiness)
- Active-request tracking for graceful shutdown
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from app.config import get_settings
from app.database import async_session_factory, engine
from app.exceptions import SeatExchangeError

settings = get_settings()

# ---------------------------------------------------------------------------
# Structured logging configuration
# ---------------------------------------------------------------------------

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    ),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
)

logger: structlog.stdlib.BoundLogger = structlog.get_logger("seat_exchange")

# ---------------------------------------------------------------------------
# In-flight request tracking for graceful shutdown
# ---------------------------------------------------------------------------

DRAIN_TIMEOUT_SECONDS = 15


class _InFlightRequests:
    """Counts requests between middleware entry and response."""

    def __init__(self) -> None:
        self.count = 0

    @asynccontextmanager
    async def track(self) -> AsyncIterator[None]:
        self.count += 1
        try:
            yield
        finally:
            self.count -= 1

    async def drain(self, timeout: float) -> int:
        """Wait for in-flight requests to finish; return how many were left."""
        deadline = time.monotonic() + timeout
        while self.count > 0 and time.monotonic() < deadline:
            await asyncio.sleep(0.25)
        return self.count


in_flight = _InFlightRequests()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage startup and shutdown of long-lived resources."""
    from app.api.exchange import get_matching_service, shutdown_matching_service

    # -- Startup --------------------------------------------------------- #
    logger.info(
        "startup_begin",
        environment=settings.ENVIRONMENT,
        log_level=settings.LOG_LEVEL,
        probability_model=settings.PROBABILITY_MODEL,
        candidate_pool=settings.CANDIDATE_POOL,
    )

    # 1. Database connection pool; only needed when the registry backs the pool.
    if settings.CANDIDATE_POOL == "database":
        try:
            async with engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
            logger.info("database_pool_initialised")
        except Exception:
            logger.exception("database_warmup_failed")

    # 2. Probability model and scoring workers; a bad model artefact fails startup.
    get_matching_service()

    logger.info("startup_complete")

    yield

    # -- Shutdown -------------------------------------------------------- #
    logger.info("shutdown_begin")

    # 1. Drain in-flight requests
    remaining = await in_flight.drain(DRAIN_TIMEOUT_SECONDS)
    if remaining:
        logger.warning("drain_timeout_exceeded", remaining_requests=remaining)

    # 2. Stop scoring workers
    shutdown_matching_service()

    # 3. Dispose DB engine (closes the connection pool)
    await engine.dispose()
    logger.info("database_pool_closed")

    logger.info("shutdown_complete")


# ---------------------------------------------------------------------------
# Middleware classes
# ---------------------------------------------------------------------------

class TimeoutMiddleware(BaseHTTPMiddleware):
    """Abort requests that exceed a configurable wall-clock timeout."""

    def __init__(self, app, timeout_seconds: float = 30.0) -> None:
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
                content={"detail": "Request timed out", "error": "request_timeout"},
            )


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """One ``request_handled`` line per request, tagged with its request id.

    The id comes from ``X-Request-ID`` when the caller sends one and is echoed
    back on the response.  It is bound into structlog's contextvars so every
    log line emitted while serving the request carries it.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = request_id
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start = time.perf_counter()
        async with in_flight.track():
            try:
                response = await call_next(request)
            except Exception:
                logger.exception(
                    "request_error",
                    method=request.method,
                    path=request.url.path,
                    duration_ms=round((time.perf_counter() - start) * 1000, 2),
                )
                raise

        logger.info(
            "request_handled",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        response.headers["x-request-id"] = request_id
        return response


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Smart Seat Exchange",
    description="Acceptance-probability matching for railway seat exchanges",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
)

# -- Middleware (applied in reverse order - last added runs first) ---------- #

app.add_middleware(StructuredLoggingMiddleware)
app.add_middleware(TimeoutMiddleware, timeout_seconds=settings.REQUEST_TIMEOUT_SECONDS)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# -- Domain errors --------------------------------------------------------- #

@app.exception_handler(SeatExchangeError)
async def seat_exchange_error_handler(
    request: Request, exc: SeatExchangeError
) -> JSONResponse:
    log = logger.bind(method=request.method, path=request.url.path, error=exc.code)
    if exc.status_code >= 500:
        log.error("request_failed", message=exc.message)
    else:
        log.info("request_rejected", message=exc.message)

    content: dict = {"detail": exc.message, "error": exc.code}
    field = exc.context.get("field")
    if field:
        content["field"] = field
    return JSONResponse(status_code=exc.status_code, content=content)


# -- Health-check endpoints ------------------------------------------------ #


@app.get("/health", tags=["health"])
async def health_liveness() -> dict:
    """Lightweight liveness probe - always returns healthy if the process is
    running."""
    return {"status": "healthy"}


@app.get("/health/deep", tags=["health"])
async def health_deep() -> dict:
    """Deep readiness probe - verifies the passenger registry and model."""
    from app.api.exchange import get_matching_service

    result: dict = {
        "status": "healthy",
        "database": "connected",
        "model": settings.PROBABILITY_MODEL,
        "candidate_pool": settings.CANDIDATE_POOL,
    }

    if settings.CANDIDATE_POOL == "database":
        try:
            async with async_session_factory() as session:
                await session.execute(text("SELECT 1"))
        except Exception as exc:
            logger.error("health_db_failure", error=str(exc))
            result["database"] = f"error: {exc}"
            result["status"] = "degraded"
    else:
        result["database"] = "not_used"

    try:
        result["model_details"] = get_matching_service().model.describe()
    except Exception as exc:
        logger.error("health_model_failure", error=str(exc))
        result["model"] = f"error: {exc}"
        result["status"] = "degraded"

    return result


# -- API router ------------------------------------------------------------ #

from app.api.router import router as api_router  # noqa: E402

app.include_router(api_router, prefix=settings.API_PREFIX)

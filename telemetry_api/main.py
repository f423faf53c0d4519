"""
Telemetry API - ingestion and query service for numeric telemetry.

Features:
- Batch ingestion with field-level validation and atomic persistence
- Filtered, paginated queries, newest first
- Per-client fixed-window rate limiting
- Structured logging with correlation IDs
- Prometheus metrics
- Health checks (liveness and readiness)
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from . import __version__
from .api.router import router
from .config import Settings, get_settings
from .health import HealthChecker, HEALTHY
from .logging import setup_logging, get_logger
from .metrics import Metrics
from .middleware import (
    CorrelationMiddleware,
    ErrorHandlerMiddleware,
    MetricsMiddleware,
    RateLimitMiddleware,
    RequestGuardMiddleware,
    request_validation_handler,
)
from .rate_limit import FixedWindowRateLimiter
from .storage import TelemetryStore, create_store

SERVICE_NAME = "telemetry-api"

logger = get_logger()


def create_app(
    settings: Settings | None = None,
    store: TelemetryStore | None = None,
    rate_limiter: FixedWindowRateLimiter | None = None,
) -> FastAPI:
    """
    Build the application and the state it owns.

    Args:
        settings: Configuration (defaults to environment settings)
        store: Storage backend (defaults to the configured backend)
        rate_limiter: Admission control (defaults to configured limits)
    """
    settings = settings or get_settings()
    setup_logging(json_output=settings.LOG_JSON)

    store = store or create_store(settings)
    rate_limiter = rate_limiter or FixedWindowRateLimiter(
        permit_limit=settings.RATE_LIMIT_PERMIT_LIMIT,
        window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
        retry_after_seconds=settings.RATE_LIMIT_RETRY_AFTER_SECONDS,
    )
    metrics = Metrics(service_name=SERVICE_NAME, version=__version__)
    health_checker = HealthChecker(
        store,
        timeout_seconds=settings.READINESS_TIMEOUT_SECONDS,
        service_name=SERVICE_NAME,
        version=__version__,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "service_starting",
            version=__version__,
            env=settings.ENV,
            storage_backend=type(store).__name__,
        )
        await store.initialize()
        yield
        logger.info("service_stopping")
        metrics.mark_down()
        await store.close()

    app = FastAPI(
        title="Telemetry API",
        version=__version__,
        description="Telemetry ingestion and query service",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.rate_limiter = rate_limiter
    app.state.metrics = metrics
    app.state.health_checker = health_checker

    # Last added runs first: correlation id, error boundary, metrics,
    # rate limiting, then the body guard.
    app.add_middleware(RequestGuardMiddleware, max_bytes=settings.MAX_REQUEST_BYTES)
    app.add_middleware(RateLimitMiddleware, limiter=rate_limiter, metrics=metrics)
    app.add_middleware(MetricsMiddleware, metrics=metrics)
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(CorrelationMiddleware)

    app.add_exception_handler(RequestValidationError, request_validation_handler)

    app.include_router(router)

    # Mount Prometheus metrics endpoint
    app.mount("/metrics", make_asgi_app(registry=metrics.registry))

    @app.get("/health", tags=["health"])
    @app.get("/health/live", tags=["health"])
    async def health_live():
        """
        Liveness probe.

        Returns 200 while the process is running.
        """
        logger.debug("health_check_liveness")
        return health_checker.liveness()

    @app.get("/health/ready", tags=["health"])
    async def health_ready(request: Request):
        """
        Readiness probe - storage round-trip.

        Returns:
            200: Service is ready to handle traffic
            503: Storage is unreachable or too slow
        """
        logger.debug("health_check_readiness")
        result = await request.app.state.health_checker.readiness()
        status_code = 200 if result["status"] == HEALTHY else 503
        return JSONResponse(status_code=status_code, content=result)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "telemetry_api.main:app",
        host="0.0.0.0",
        port=get_settings().SERVICE_PORT,
    )

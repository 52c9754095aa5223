"""FastAPI application factory and configuration."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Sequence

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse, Response
from opentelemetry.sdk.trace.export import SpanExporter
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest

from promduck import __version__
from promduck.api.middleware import LoggingMiddleware, RequestIDMiddleware
from promduck.api.routers import health_router, remote_router
from promduck.config import Settings, get_settings
from promduck.exceptions import PromDuckError, get_http_status
from promduck.logging_config import log_error
from promduck.metrics import APIMetrics, StorageMetrics
from promduck.storage import DuckDBWarehouse, StorageClient
from promduck.tracing import instrument_app, shutdown_tracing

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Startup opens the DuckDB warehouse and builds the storage client, unless
    writers and readers were injected when the app was created. Shutdown
    closes whatever startup opened.

    Args:
        app: FastAPI application instance

    Yields:
        None
    """
    settings: Settings = app.state.settings
    logger.info(
        "application_starting",
        host=settings.promduck_host,
        port=settings.promduck_port,
        database=settings.database_path,
        table=settings.table_name,
        tracing=settings.tracing_enabled,
        version=__version__,
    )

    owned: list[StorageClient] = []
    try:
        if not app.state.writers and not app.state.readers:
            warehouse = DuckDBWarehouse.from_settings(settings)
            await warehouse.initialize()
            client = StorageClient(
                warehouse,
                timeout_seconds=settings.remote_timeout_seconds,
                metrics=app.state.storage_metrics,
                table_name=settings.table_name,
            )
            owned.append(client)
            app.state.writers = [client]
            app.state.readers = [client]
            logger.info("storage_initialized", storage=client.name)

        logger.info("application_initialized")
    except Exception as e:
        log_error(logger, e, "initialization")
        raise

    yield

    logger.info("application_shutting_down")
    for client in owned:
        try:
            await client.close()
        except Exception as e:
            log_error(logger, e, "shutdown", storage=client.name)
    shutdown_tracing(app.state.tracer_provider)
    logger.info("cleanup_completed")


def create_app(
    settings: Settings | None = None,
    writers: Sequence[StorageClient] | None = None,
    readers: Sequence[StorageClient] | None = None,
    registry: CollectorRegistry | None = None,
    span_exporter: SpanExporter | None = None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        settings: Application settings (defaults to ``get_settings()``)
        writers: Remote write backends; built from settings when omitted
        readers: Remote read backends; built from settings when omitted
        registry: Registry exposed on the telemetry path
        span_exporter: Span exporter overriding the configured one when
            tracing is enabled

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or get_settings()
    registry = registry if registry is not None else CollectorRegistry()

    app = FastAPI(
        title="promduck",
        description="Prometheus remote storage adapter backed by DuckDB",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.registry = registry
    app.state.storage_metrics = StorageMetrics(registry)
    app.state.api_metrics = APIMetrics(registry)
    app.state.writers = list(writers or [])
    app.state.readers = list(readers or [])

    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(remote_router)

    @app.get(settings.telemetry_path, include_in_schema=False)
    async def telemetry() -> Response:
        """Expose adapter metrics in the Prometheus text format."""
        return Response(content=generate_latest(registry), media_type=CONTENT_TYPE_LATEST)

    app.state.tracer_provider = None
    if settings.tracing_enabled:
        app.state.tracer_provider = instrument_app(app, settings, exporter=span_exporter)

    logger.info("application_created", title=app.title, version=app.version)
    return app


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register custom exception handlers.

    Args:
        app: FastAPI application instance
    """

    @app.exception_handler(PromDuckError)
    async def promduck_exception_handler(
        request: Request,
        exc: PromDuckError,
    ) -> JSONResponse:
        """Map promduck errors to their HTTP status."""
        request_id = getattr(request.state, "request_id", "unknown")
        status_code = get_http_status(exc)
        logger.warning(
            "api_exception",
            path=request.url.path,
            status_code=status_code,
            error_type=exc.__class__.__name__,
            detail=exc.message,
            request_id=request_id,
        )
        return JSONResponse(
            status_code=status_code,
            content={
                "detail": exc.message,
                "error_type": exc.__class__.__name__,
                "request_id": request_id,
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        request_id = getattr(request.state, "request_id", "unknown")
        logger.error(
            "unexpected_error",
            path=request.url.path,
            error=str(exc),
            request_id=request_id,
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "Internal server error",
                "request_id": request_id,
            },
        )

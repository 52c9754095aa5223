"""OpenTelemetry tracing for the remote write and read endpoints.

When ``tracing_enabled`` is set, the FastAPI app is instrumented and every
``/write`` and ``/read`` request becomes a server span exported through the
configured exporter. Health and telemetry requests are not traced.
"""

import logging

from fastapi import FastAPI
from opentelemetry import propagate, trace
from opentelemetry.baggage.propagation import W3CBaggagePropagator
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
    OTLPSpanExporter as GRPCSpanExporter,
)
from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
    OTLPSpanExporter as HTTPSpanExporter,
)
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.propagators.composite import CompositePropagator
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SpanExporter,
)
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

from promduck import __version__
from promduck.config import Settings
from promduck.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

GRPC_EXPORTERS = ("otlp", "otlp-grpc")
# jaeger and zipkin collectors accept OTLP over HTTP
HTTP_EXPORTERS = ("otlp-http", "jaeger", "zipkin")
CONSOLE_EXPORTERS = ("stdout", "console")


def create_exporter(exporter_type: str, endpoint: str = "") -> SpanExporter:
    """
    Build a span exporter.

    Args:
        exporter_type: One of otlp, otlp-grpc, otlp-http, jaeger, zipkin,
            stdout, console
        endpoint: Collector endpoint; the exporter default is used when empty

    Raises:
        ConfigurationError: If the exporter type is unknown
    """
    if exporter_type in GRPC_EXPORTERS:
        if endpoint:
            return GRPCSpanExporter(endpoint=endpoint)
        return GRPCSpanExporter(insecure=True)
    if exporter_type in HTTP_EXPORTERS:
        return HTTPSpanExporter(endpoint=endpoint or None)
    if exporter_type in CONSOLE_EXPORTERS:
        return ConsoleSpanExporter()
    raise ConfigurationError(
        f"Unsupported tracing exporter: {exporter_type}", exporter=exporter_type
    )


def init_tracing(settings: Settings, exporter: SpanExporter | None = None) -> TracerProvider:
    """Create the tracer provider and install it with W3C propagation."""
    if exporter is None:
        exporter = create_exporter(settings.tracing_exporter, settings.tracing_endpoint)

    resource = Resource.create(
        {
            "service.name": settings.tracing_service_name,
            "service.version": __version__,
        }
    )
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(exporter))

    trace.set_tracer_provider(provider)
    propagate.set_global_textmap(
        CompositePropagator([TraceContextTextMapPropagator(), W3CBaggagePropagator()])
    )

    logger.info(
        "OpenTelemetry tracing initialized",
        extra={
            "service": settings.tracing_service_name,
            "exporter": settings.tracing_exporter,
            "endpoint": settings.tracing_endpoint,
        },
    )
    return provider


def instrument_app(
    app: FastAPI,
    settings: Settings,
    exporter: SpanExporter | None = None,
) -> TracerProvider:
    """Trace the app's remote endpoints; returns the provider to shut down."""
    provider = init_tracing(settings, exporter)
    FastAPIInstrumentor.instrument_app(
        app,
        tracer_provider=provider,
        excluded_urls=",".join([settings.telemetry_path, "/health", "/docs", "/openapi.json"]),
    )
    return provider


def shutdown_tracing(provider: TracerProvider | None) -> None:
    """Flush pending spans and stop the exporter."""
    if provider is not None:
        provider.shutdown()

"""
OpenTelemetry tracing setup.
"""

import logging

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Tracer

from queuectl import __version__
from queuectl.config import Settings, get_settings

logger = logging.getLogger(__name__)

TRACER_NAME = "queuectl"


def setup_tracing(settings: Settings | None = None) -> Tracer:
    """
    Set up OpenTelemetry tracing for this process.

    Spans are exported over OTLP when ``otel_exporter_otlp_endpoint`` is set,
    and to the console when ``otel_console_export`` is true. Without either,
    spans are recorded but not exported.

    Args:
        settings: Settings to use. Defaults to the cached settings.

    Returns:
        Tracer: The tracer instance.
    """
    settings = settings or get_settings()

    resource = Resource.create(
        {
            "service.name": settings.otel_service_name,
            "service.version": __version__,
        }
    )
    provider = TracerProvider(resource=resource)

    if settings.otel_exporter_otlp_endpoint:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
            OTLPSpanExporter,
        )

        otlp_exporter = OTLPSpanExporter(
            endpoint=settings.otel_exporter_otlp_endpoint,
            insecure=True,
        )
        provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
        logger.info(
            "OTLP span export enabled",
            extra={"endpoint": settings.otel_exporter_otlp_endpoint},
        )

    if settings.otel_console_export:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)
    return trace.get_tracer(TRACER_NAME)


def get_tracer() -> Tracer:
    """
    Get the tracer instance.

    Uses whichever provider is installed; before ``setup_tracing`` runs this
    is OpenTelemetry's no-op provider.

    Returns:
        Tracer: The tracer instance.
    """
    return trace.get_tracer(TRACER_NAME)

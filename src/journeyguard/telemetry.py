"""Optional OpenTelemetry tracing for the JourneyGuard API.

Enabled with ``OTEL_ENABLED=true`` plus ``OTEL_EXPORTER_OTLP_ENDPOINT``; spans
go out over gRPC OTLP. The packages live in the ``otel`` extra, so a missing
install is logged and the API keeps running untraced.
"""

from __future__ import annotations

import logging
from typing import Any

from .config.settings import settings

logger = logging.getLogger(__name__)

_provider: Any = None


def _build_provider() -> Any:
    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor
    from opentelemetry.semconv.resource import ResourceAttributes

    provider = TracerProvider(
        resource=Resource.create(
            {
                ResourceAttributes.SERVICE_NAME: settings.otel_service_name,
                ResourceAttributes.SERVICE_VERSION: settings.app_version,
                ResourceAttributes.DEPLOYMENT_ENVIRONMENT: settings.environment,
            }
        )
    )
    provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otel_endpoint, insecure=True))
    )
    return provider


def init_telemetry(app: Any = None) -> bool:
    """Install the tracer provider and instrument ``app``. Returns True when active."""
    global _provider
    if not settings.otel_enabled:
        logger.info("OpenTelemetry tracing disabled")
        return False
    if not settings.otel_endpoint:
        logger.warning("OTEL_ENABLED is set without OTEL_EXPORTER_OTLP_ENDPOINT; tracing stays off")
        return False

    try:
        from opentelemetry import trace
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

        if _provider is None:
            _provider = _build_provider()
            trace.set_tracer_provider(_provider)
        if app is not None:
            FastAPIInstrumentor.instrument_app(app)
    except ImportError as e:
        logger.error("OpenTelemetry not installed (%s); install journeyguard[otel]", e)
        return False
    except Exception as e:
        logger.error("Failed to initialize OpenTelemetry: %s", e)
        return False

    logger.info(
        "OpenTelemetry tracing to %s as %s", settings.otel_endpoint, settings.otel_service_name
    )
    return True


def shutdown_telemetry() -> None:
    """Flush and stop the provider installed by :func:`init_telemetry`."""
    global _provider
    if _provider is None:
        return
    try:
        _provider.shutdown()
        logger.info("OpenTelemetry tracer provider shut down")
    except Exception as e:
        logger.warning("Error shutting down OpenTelemetry: %s", e)
    finally:
        _provider = None

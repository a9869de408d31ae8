"""
Telemetry module for OpenTelemetry + Application Insights.

Configures distributed tracing for the retrieval and completion pipeline
and records pipeline stage transitions on the request span.
"""

import logging

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

logger = logging.getLogger(__name__)

SERVICE_NAME = "rag-chat-assistant"

_tracer: trace.Tracer | None = None


def setup_telemetry(connection_string: str) -> None:
    """
    Initialize OpenTelemetry with Application Insights exporter.

    Args:
        connection_string: Application Insights connection string.
                          If empty, telemetry is disabled (local dev).
    """
    global _tracer

    resource = Resource.create({"service.name": SERVICE_NAME})
    provider = TracerProvider(resource=resource)

    if connection_string:
        try:
            from azure.monitor.opentelemetry.exporter import (
                AzureMonitorTraceExporter,
            )

            exporter = AzureMonitorTraceExporter(
                connection_string=connection_string
            )
            provider.add_span_processor(BatchSpanProcessor(exporter))
            logger.info("Application Insights telemetry enabled.")
        except ImportError:
            logger.warning(
                "azure-monitor-opentelemetry-exporter not installed. "
                "Telemetry will not be exported."
            )
    else:
        logger.info("No connection string provided. Telemetry export disabled.")

    trace.set_tracer_provider(provider)
    _tracer = trace.get_tracer(SERVICE_NAME)


def get_tracer() -> trace.Tracer:
    """Return the application tracer, initializing a no-op if not set up."""
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer(SERVICE_NAME)
    return _tracer


def record_stage(span: trace.Span, stage):
    """
    Mark the pipeline stage the request is entering.

    Sets `rag.stage` and adds a `stage.<name>` event, so a trace shows the
    full path a request took. Returns `stage` for assignment chaining.
    """
    name = getattr(stage, "value", stage)
    logger.debug("Pipeline stage: %s", name)
    span.set_attribute("rag.stage", name)
    span.add_event(f"stage.{name}")
    return stage


def record_failure(span: trace.Span, stage, exc: BaseException) -> None:
    """Mark the request span failed at `stage` with the raised exception."""
    name = getattr(stage, "value", stage)
    span.set_attribute("rag.failed_stage", name)
    span.set_attribute("rag.stage", "failed")
    span.record_exception(exc)
    span.set_status(Status(StatusCode.ERROR, f"{name}: {type(exc).__name__}"))

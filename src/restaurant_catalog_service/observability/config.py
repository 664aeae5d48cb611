"""OpenTelemetry and logging setup for the catalog service.

Logs are JSON lines by default (``LOG_FORMAT=text`` gives plain lines for local
runs). Every record carries the ``trace_id`` and ``span_id`` of the span that
was active when it was emitted, so log lines can be joined with traces.
"""

import logging
import os
from typing import Any

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.botocore import BotocoreInstrumentor
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from pythonjsonlogger import jsonlogger

logger = logging.getLogger(__name__)

LOG_FIELDS = "%(asctime)s %(name)s %(levelname)s %(trace_id)s %(span_id)s %(message)s"
TEXT_LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s [trace=%(trace_id)s] %(message)s"

_auto_instrumented = False


class TraceContextFilter(logging.Filter):
    """Stamp log records with the active span's trace and span ids.

    Records emitted outside a span get empty strings so formatters can always
    reference the fields.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        context = trace.get_current_span().get_span_context()
        if context.is_valid:
            record.trace_id = format(context.trace_id, "032x")
            record.span_id = format(context.span_id, "016x")
        else:
            record.trace_id = ""
            record.span_id = ""
        return True


def get_service_resource() -> Resource:
    """Create OpenTelemetry resource with service identification.

    Returns:
        Resource with service name, version, environment and store backend
    """
    return Resource.create(
        {
            "service.name": os.getenv("OTEL_SERVICE_NAME", "catalog-svc"),
            "service.version": os.getenv("SERVICE_VERSION", "1.0.0"),
            "deployment.environment": os.getenv("ENVIRONMENT", "development"),
            "catalog.store_backend": os.getenv("STORE_BACKEND", "dynamodb").lower(),
        }
    )


def otlp_endpoint(signal: str) -> str:
    """OTLP/HTTP URL for a signal ("traces" or "metrics")."""
    base = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4318").rstrip("/")
    return f"{base}/v1/{signal}"


def setup_tracing(resource: Resource) -> None:
    """Install a tracer provider exporting spans over OTLP/HTTP."""
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint("traces"))))
    trace.set_tracer_provider(provider)

    logger.info(f"OpenTelemetry tracing exporting to {otlp_endpoint('traces')}")


def setup_metrics(resource: Resource) -> None:
    """Install a meter provider exporting metrics over OTLP/HTTP every minute."""
    interval = int(os.getenv("OTEL_METRIC_EXPORT_INTERVAL", "60000"))
    reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=otlp_endpoint("metrics")),
        export_interval_millis=interval,
    )
    metrics.set_meter_provider(MeterProvider(resource=resource, metric_readers=[reader]))

    logger.info(f"OpenTelemetry metrics exporting to {otlp_endpoint('metrics')} every {interval}ms")


def setup_auto_instrumentation() -> None:
    """Instrument httpx (restaurant directory) and botocore (DynamoDB, EventBridge) once."""
    global _auto_instrumented

    if _auto_instrumented:
        return

    HTTPXClientInstrumentor().instrument()
    BotocoreInstrumentor().instrument()
    _auto_instrumented = True

    logger.info("Auto-instrumentation enabled for httpx and botocore")


def setup_observability(app: Any = None, enable_exporters: bool = True) -> None:
    """Initialize OpenTelemetry with tracing, metrics, and auto-instrumentation.

    Exporters are skipped when ``ENVIRONMENT=test`` or ``OTEL_SDK_DISABLED=true``;
    spans and metrics are then still recorded by local providers.

    Args:
        app: Optional FastAPI application to instrument
        enable_exporters: Whether to enable OTLP exporters
    """
    if os.getenv("ENVIRONMENT", "development") == "test":
        enable_exporters = False
    if os.getenv("OTEL_SDK_DISABLED", "false").lower() == "true":
        enable_exporters = False

    resource = get_service_resource()

    if enable_exporters:
        setup_tracing(resource)
        setup_metrics(resource)
    else:
        trace.set_tracer_provider(TracerProvider(resource=resource))
        metrics.set_meter_provider(MeterProvider(resource=resource))
        logger.info("OpenTelemetry exporters disabled")

    setup_auto_instrumentation()

    if app is not None:
        FastAPIInstrumentor.instrument_app(app, excluded_urls="health")
        logger.info("FastAPI application instrumented")


def build_formatter(log_format: str) -> logging.Formatter:
    """Formatter for ``json`` (default) or ``text`` output."""
    if log_format == "text":
        return logging.Formatter(TEXT_LOG_FORMAT)
    return jsonlogger.JsonFormatter(LOG_FIELDS, timestamp=True)


def configure_logging(log_level: str = "INFO", log_format: str | None = None) -> None:
    """Configure root logging with trace correlation.

    Args:
        log_level: Logging level, overridden by ``LOG_LEVEL``
        log_format: ``json`` or ``text``, defaults to ``LOG_FORMAT`` or ``json``
    """
    level_str = os.getenv("LOG_LEVEL", log_level).upper()
    level = getattr(logging, level_str, logging.INFO)
    log_format = (log_format or os.getenv("LOG_FORMAT", "json")).lower()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(build_formatter(log_format))
    console_handler.addFilter(TraceContextFilter())
    root_logger.addHandler(console_handler)

    # botocore logs every request at DEBUG
    logging.getLogger("botocore").setLevel(max(level, logging.INFO))

    logger.info(f"Logging configured at {level_str} level ({log_format})")

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
import logging
import os

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.resources import DEPLOYMENT_ENVIRONMENT, SERVICE_INSTANCE_ID, SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased

from hirelink_worker.core.config import Settings

logger = logging.getLogger(__name__)

SWEEP_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s trace_id=%(trace_id)s span_id=%(span_id)s %(message)s"
_ZERO_TRACE_ID = "0" * 32
_ZERO_SPAN_ID = "0" * 16
_plain_record_factory = logging.getLogRecordFactory()


def configure_worker_logging() -> None:
    if logging.getLogRecordFactory() is _plain_record_factory:
        logging.setLogRecordFactory(_correlated_record)
    if not logging.getLogger().handlers:
        logging.basicConfig(level=logging.INFO, format=SWEEP_LOG_FORMAT)


def _correlated_record(*args: object, **kwargs: object) -> logging.LogRecord:
    record = _plain_record_factory(*args, **kwargs)
    span_context = trace.get_current_span().get_span_context()
    if span_context.is_valid:
        record.trace_id = f"{span_context.trace_id:032x}"
        record.span_id = f"{span_context.span_id:016x}"
    else:
        record.trace_id = _ZERO_TRACE_ID
        record.span_id = _ZERO_SPAN_ID
    return record


@contextmanager
def worker_telemetry(settings: Settings) -> Iterator[TracerProvider | None]:
    """Install tracing for the sweep loop and flush it when the loop exits.

    Yields None when tracing is disabled.
    """
    if not settings.otel_enabled:
        yield None
        return

    provider = TracerProvider(
        resource=Resource.create(
            {
                SERVICE_NAME: settings.otel_service_name,
                SERVICE_INSTANCE_ID: settings.module_id,
                DEPLOYMENT_ENVIRONMENT: settings.environment,
            }
        ),
        sampler=TraceIdRatioBased(settings.otel_trace_sample_ratio),
    )
    exporter = sweep_span_exporter(settings)
    if exporter is None:
        logger.info("sweep spans stay local service=%s module_id=%s", settings.otel_service_name, settings.module_id)
    else:
        provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)

    instrumentor = HTTPXClientInstrumentor()
    instrumentor.instrument(tracer_provider=provider)
    try:
        yield provider
    finally:
        instrumentor.uninstrument()
        provider.force_flush()
        provider.shutdown()


def sweep_span_exporter(settings: Settings) -> OTLPSpanExporter | None:
    endpoint = settings.otel_exporter_otlp_endpoint or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    if not endpoint:
        return None
    raw_headers = settings.otel_exporter_otlp_headers or os.getenv("OTEL_EXPORTER_OTLP_HEADERS") or ""
    headers = dict(
        (key.strip(), value.strip())
        for key, sep, value in (item.partition("=") for item in raw_headers.split(","))
        if sep and key.strip()
    )
    return OTLPSpanExporter(endpoint=endpoint, headers=headers or None)

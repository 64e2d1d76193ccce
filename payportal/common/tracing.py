"""OpenTelemetry wiring for the portal apps."""

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from payportal.common.config import settings

# Probe and scrape traffic would drown the payment spans.
UNTRACED_URLS = "health,metrics"


def setup_tracing(service_name: str) -> None:
    """Register an OTLP-exporting tracer provider unless tracing is switched off."""

    if not settings.tracing_enabled:
        return
    resource = Resource.create({"service.name": service_name, "service.namespace": "payportal"})
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_endpoint)))
    trace.set_tracer_provider(provider)


def instrument_app(app: FastAPI) -> None:
    if not settings.tracing_enabled:
        return
    FastAPIInstrumentor.instrument_app(app, excluded_urls=UNTRACED_URLS)


def current_trace_id() -> str:
    """Hex id of the active span's trace, or "" outside a recorded span."""

    context = trace.get_current_span().get_span_context()
    if not context.is_valid:
        return ""
    return trace.format_trace_id(context.trace_id)

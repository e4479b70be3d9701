"""OpenTelemetry setup helpers used by each FastAPI service."""

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter

from tutorhub.common.config import settings


_provider_installed = False


def setup_tracing(app: FastAPI, service_name: str) -> None:
    """Register the OTLP tracer provider (once per process) and instrument `app`.

    No-op when `TRACING_ENABLED=false`, which is how tests and local runs
    without a collector keep the exporter thread out of the process.
    """

    global _provider_installed
    if not settings.tracing_enabled:
        return
    if not _provider_installed:
        resource = Resource.create({"service.name": service_name})
        provider = TracerProvider(resource=resource)
        exporter = OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_endpoint)
        provider.add_span_processor(BatchSpanProcessor(exporter))
        trace.set_tracer_provider(provider)
        _provider_installed = True
    FastAPIInstrumentor.instrument_app(app)


def tag_current_span(**attributes: str | None) -> None:
    """Attach domain identifiers (event kind, payment id, ...) to the active span."""

    span = trace.get_current_span()
    if not span.is_recording():
        return
    for key, value in attributes.items():
        if value is not None:
            span.set_attribute(f"tutorhub.{key}", value)

"""OpenTelemetry tracing setup for the Kinkonnect server.

Spans are exported over OTLP/HTTP to any collector (Jaeger, Phoenix, Tempo...).

Environment Variables:
    KINKONNECT_TRACING_ENABLED: Set to 'true' to enable tracing (default: false)
    KINKONNECT_OTLP_ENDPOINT: Collector base URL (default: http://localhost:4318)
    KINKONNECT_SERVICE_NAME: service.name resource attribute (default: kinkonnect)
"""

import os
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import ReadableSpan, SpanProcessor, TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

COMPONENT_ATTRIBUTE = "kinkonnect.component"

# Span name prefix -> component
COMPONENT_PREFIXES = {
    "discovery.": "discovery",
    "graph.": "graph",
    "mutation.": "mutation",
}


def is_tracing_enabled() -> bool:
    """Check if tracing is enabled via environment variable."""
    return os.getenv("KINKONNECT_TRACING_ENABLED", "false").lower() == "true"


def get_otlp_endpoint() -> str:
    """Get the OTLP collector endpoint."""
    return os.getenv("KINKONNECT_OTLP_ENDPOINT", "http://localhost:4318")


def get_service_name() -> str:
    return os.getenv("KINKONNECT_SERVICE_NAME", "kinkonnect")


def component_for(span_name: str) -> str:
    """Map a span name like 'discovery.scan' to its component."""
    for prefix, component in COMPONENT_PREFIXES.items():
        if span_name.startswith(prefix):
            return component
    return "other"


class ComponentSpanProcessor(SpanProcessor):
    """Span processor that tags each span with the component that produced it.

    Mappings:
        - 'discovery.*' spans -> discovery
        - 'graph.*' spans -> graph
        - 'mutation.*' spans -> mutation
        - anything else -> other
    """

    def on_start(self, span: Any, parent_context: Any = None) -> None:
        """Called when a span starts. Sets the component attribute."""
        if not hasattr(span, "name") or not hasattr(span, "set_attribute"):
            return
        span.set_attribute(COMPONENT_ATTRIBUTE, component_for(span.name.lower()))

    def on_end(self, span: ReadableSpan) -> None:
        pass

    def shutdown(self) -> None:
        pass

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return True


_tracer_provider: TracerProvider | None = None


def initialize_tracing() -> TracerProvider | None:
    """Initialize OpenTelemetry tracing.

    Sets up the OTLP exporter and the component span processor.

    Returns:
        TracerProvider if tracing is enabled, None otherwise.
    """
    global _tracer_provider

    if not is_tracing_enabled():
        return None

    if _tracer_provider is not None:
        return _tracer_provider

    exporter = OTLPSpanExporter(endpoint=f"{get_otlp_endpoint()}/v1/traces")

    _tracer_provider = TracerProvider(resource=Resource.create({SERVICE_NAME: get_service_name()}))

    # Tag spans before they reach the exporter
    _tracer_provider.add_span_processor(ComponentSpanProcessor())
    _tracer_provider.add_span_processor(BatchSpanProcessor(exporter))

    trace.set_tracer_provider(_tracer_provider)

    return _tracer_provider


def get_tracer(name: str = "kinkonnect") -> trace.Tracer:
    """Get a tracer instance for manual instrumentation (no-op if tracing disabled)."""
    return trace.get_tracer(name)

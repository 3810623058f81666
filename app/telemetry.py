from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from app import config


def setup_telemetry(app):
    """Initialize OpenTelemetry instrumentation"""

    resource = Resource.create(
        {
            "service.name": config.OTEL_SERVICE_NAME,
            "service.version": config.SERVICE_VERSION,
            "service.instance.id": "instance-1",
        }
    )

    trace.set_tracer_provider(TracerProvider(resource=resource))

    otlp_exporter = OTLPSpanExporter(endpoint=config.OTEL_EXPORTER_OTLP_ENDPOINT, insecure=True)
    trace.get_tracer_provider().add_span_processor(BatchSpanProcessor(otlp_exporter))

    # Inbound webhooks and operator endpoints
    FastAPIInstrumentor.instrument_app(app)

    # Freshchat and generative backend calls
    HTTPXClientInstrumentor().instrument()

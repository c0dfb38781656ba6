import logging

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
    OTLPSpanExporter as OTLPSpanExporterGRPC,
)
from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
    OTLPSpanExporter as OTLPSpanExporterHTTP,
)
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.instrumentation.redis import RedisInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from pseudoidc.config import config

logger = logging.getLogger(__name__)

SERVICE_NAME = "pseudoidc-auth"

tracer_instance: trace.Tracer | None = None


def register_tracer(app: FastAPI) -> trace.Tracer | None:
    global tracer_instance
    if tracer_instance:
        return tracer_instance
    endpoint = config.otel_exporter.otlp_endpoint
    if not endpoint:
        logger.info("Tracing is disabled")
        return None

    resource = Resource.create({"service.name": SERVICE_NAME})
    tracer_provider = TracerProvider(resource=resource)
    otlp_exporter: OTLPSpanExporterHTTP | OTLPSpanExporterGRPC
    if "4317" in endpoint:
        otlp_exporter = OTLPSpanExporterGRPC(endpoint=endpoint)
        logger.info("Using gRPC exporter")
    else:
        if "v1/traces" not in endpoint:
            endpoint = f"{endpoint.rstrip('/')}/v1/traces"
        otlp_exporter = OTLPSpanExporterHTTP(endpoint=endpoint)
        logger.info("Using HTTP exporter")
    tracer_provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
    trace.set_tracer_provider(tracer_provider)

    # the callback URL carries the authorization code
    excluded_urls = ["/_status/check", "/metrics", "/pseudoidc/callback"]
    FastAPIInstrumentor.instrument_app(app, excluded_urls=",".join(excluded_urls))
    RedisInstrumentor().instrument()
    HTTPXClientInstrumentor().instrument()

    tracer_instance = trace.get_tracer(SERVICE_NAME)
    logger.info("Tracing is enabled")
    return tracer_instance

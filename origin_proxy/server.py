from contextlib import asynccontextmanager
from typing import Optional, Sequence

import httpx
from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SpanExporter,
    SpanExportResult,
)
from prometheus_client import CollectorRegistry, Info
from prometheus_fastapi_instrumentator import Instrumentator

from origin_proxy.app_proxy.forwarder import Forwarder
from origin_proxy.app_proxy.route import proxy_app
from origin_proxy.config import ProxySettings
from origin_proxy.vars import OTLP_ENDPOINT, OTLP_HEADERS, SERVICE_NAME


class FilteringSpanExporter(SpanExporter):
    """
    Wrapper exporter that filters out noisy ASGI body spans from streamed responses.
    Every relayed body chunk would otherwise show up as its own span.
    """

    def __init__(self, exporter: SpanExporter):
        self.exporter = exporter

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        filtered_spans = [
            span
            for span in spans
            if not (
                span.attributes
                and span.attributes.get("asgi.event.type") == "http.response.body"
            )
        ]
        if filtered_spans:
            return self.exporter.export(filtered_spans)
        return SpanExportResult.SUCCESS

    def shutdown(self):
        return self.exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000):
        return self.exporter.force_flush(timeout_millis)


trace.set_tracer_provider(
    TracerProvider(resource=Resource.create({"service.name": SERVICE_NAME}))
)
tracer_provider = trace.get_tracer_provider()
if OTLP_ENDPOINT:
    otlp_exporter = OTLPSpanExporter(
        endpoint=OTLP_ENDPOINT,
        # "key=value,key2=value2", parsed by the exporter
        headers=OTLP_HEADERS or None,
    )
    tracer_provider.add_span_processor(
        BatchSpanProcessor(FilteringSpanExporter(otlp_exporter))
    )


def create_app(
    settings: Optional[ProxySettings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Build the proxy application.

    Args:
        settings: Proxy configuration, read from the environment when omitted.
        transport: Optional httpx transport for the upstream client (tests use
            httpx.MockTransport).
    """
    settings = settings or ProxySettings.from_env()
    forwarder = Forwarder(timeout=settings.timeout, transport=transport)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await forwarder.initialize()
        try:
            yield
        finally:
            await forwarder.aclose()

    # No docs or schema routes, those paths belong to the backend
    app = FastAPI(lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)
    app.state.proxy_settings = settings
    app.state.forwarder = forwarder

    registry = CollectorRegistry()
    Instrumentator(registry=registry).instrument(app).expose(app)
    app_info = Info("fastapi_app_info", "Application Info", registry=registry)
    app_info.info({"app_name": SERVICE_NAME})

    FastAPIInstrumentor.instrument_app(app, excluded_urls="metrics")

    # Mounted last so /metrics is served locally instead of proxied
    app.mount("/", proxy_app)
    return app


app = create_app()

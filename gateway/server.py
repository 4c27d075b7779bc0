import logging
from typing import Optional

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_client import CollectorRegistry, Info, start_http_server
from prometheus_fastapi_instrumentator import Instrumentator

from gateway import __version__
from gateway.context import GatewayContext
from gateway.dispatcher.route import router as dispatcher_router
from gateway.status.route import router as status_router
from gateway.vars import OTLP_ENDPOINT, OTLP_HEADERS, SERVICE_NAME

logger = logging.getLogger("uvicorn.error")


def configure_tracing(
    service_name: str = SERVICE_NAME,
    otlp_endpoint: Optional[str] = OTLP_ENDPOINT,
    otlp_headers: str = OTLP_HEADERS,
) -> TracerProvider:
    tracer_provider = TracerProvider(
        resource=Resource.create({"service.name": service_name})
    )
    if otlp_endpoint:
        otlp_exporter = OTLPSpanExporter(
            endpoint=otlp_endpoint,
            headers=(otlp_headers.split(",") if otlp_headers else None),
        )
        tracer_provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
        logger.info(f"Exporting traces to {otlp_endpoint}")
    trace.set_tracer_provider(tracer_provider)
    return tracer_provider


def create_app(
    context: GatewayContext, registry: Optional[CollectorRegistry] = None
) -> FastAPI:
    """
    Build the gateway ASGI app. Both listeners serve the same instance:
    ``GET /status`` reports uptime, every other request is forwarded.
    """
    app = FastAPI(title=SERVICE_NAME, version=__version__)
    app.state.context = context
    app.state.registry = registry or CollectorRegistry()

    Instrumentator(registry=app.state.registry).instrument(app)
    app_info = Info(
        "gateway_app_info", "Application Info", registry=app.state.registry
    )
    app_info.info({"app_name": SERVICE_NAME, "version": __version__})

    FastAPIInstrumentor.instrument_app(app, excluded_urls="")

    app.include_router(status_router)
    app.include_router(dispatcher_router)
    return app


def start_metrics_server(app: FastAPI, port: int, addr: str = "0.0.0.0") -> None:
    """Serve the app's Prometheus registry on its own port so no forwarded path is shadowed."""
    start_http_server(port, addr=addr, registry=app.state.registry)
    logger.info(f"Serving Prometheus metrics on {addr}:{port}")

"""
OpenTelemetry Configuration.

Traces the request path plus the three places a request leaves the
process: the compute provider (httpx), object storage and the job ledger
(SQLAlchemy).
"""

import functools
import inspect
from typing import Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource, SERVICE_NAME, SERVICE_VERSION
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

from tuneforge.core.logging import get_logger

logger = get_logger(__name__)

# Span attributes recorded by @traced live under this prefix
ATTRIBUTE_PREFIX = "tuneforge"


def setup_telemetry(
    service_name: str = "tuneforge",
    service_version: str = "1.0.0",
    environment: str = "development",
    otlp_endpoint: Optional[str] = None,
    console_export: bool = False,
) -> None:
    """
    Install the global tracer provider.

    Args:
        service_name: Name of the service
        service_version: Version of the service
        environment: Deployment environment label
        otlp_endpoint: OTLP collector endpoint (e.g., "http://localhost:4317")
        console_export: Export traces to console (for development)
    """
    resource = Resource.create({
        SERVICE_NAME: service_name,
        SERVICE_VERSION: service_version,
        "deployment.environment": environment,
    })

    provider = TracerProvider(resource=resource)

    if console_export:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    if otlp_endpoint:
        provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True))
        )
        logger.info("OTLP exporter configured", endpoint=otlp_endpoint)

    trace.set_tracer_provider(provider)
    logger.info("Telemetry configured", service=service_name, version=service_version)


def instrument_fastapi(app) -> None:
    """Instrument the app. Must run before the app starts serving."""
    FastAPIInstrumentor.instrument_app(app, excluded_urls="health")
    logger.info("FastAPI instrumented")


def instrument_sqlalchemy(engine) -> None:
    SQLAlchemyInstrumentor().instrument(
        engine=engine.sync_engine,
        enable_commenter=True,
    )
    logger.info("SQLAlchemy instrumented")


def instrument_httpx() -> None:
    """Trace outgoing provider and mail API calls from clients created afterwards."""
    HTTPXClientInstrumentor().instrument()
    logger.info("httpx instrumented")


def get_tracer(name: str = __name__) -> trace.Tracer:
    return trace.get_tracer(name)


def traced(name: Optional[str] = None, record_args: tuple[str, ...] = ()):
    """
    Decorator running a function inside its own span.

    Arguments named in ``record_args`` are copied onto the span when they
    are plain scalars.

    Usage:
        @traced("ledger.record_completion", record_args=("user_id", "job_id"))
        async def record_completion(self, user_id, job_id, status):
            ...
    """
    def decorator(func):
        span_name = name or func.__qualname__
        tracer = get_tracer(func.__module__)
        signature = inspect.signature(func)

        def annotate(span, args, kwargs) -> None:
            span.set_attribute("code.function", func.__qualname__)
            if not record_args:
                return
            bound = signature.bind_partial(*args, **kwargs).arguments
            for arg in record_args:
                value = bound.get(arg)
                if isinstance(value, (str, int, float, bool)):
                    span.set_attribute(f"{ATTRIBUTE_PREFIX}.{arg}", value)

        def record_failure(span, error: Exception) -> None:
            span.record_exception(error)
            span.set_status(trace.Status(trace.StatusCode.ERROR))

        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                with tracer.start_as_current_span(span_name) as span:
                    annotate(span, args, kwargs)
                    try:
                        return await func(*args, **kwargs)
                    except Exception as e:
                        record_failure(span, e)
                        raise
            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            with tracer.start_as_current_span(span_name) as span:
                annotate(span, args, kwargs)
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    record_failure(span, e)
                    raise
        return sync_wrapper

    return decorator

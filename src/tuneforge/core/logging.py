"""
Structured Logging Configuration.

structlog on top of the standard library handlers: console output in
development, one JSON object per line in production. Every event carries
the service name and, inside a request, the request id.
"""

import logging
import sys
import time
import uuid
from typing import Any

import structlog
from structlog.types import EventDict, Processor

# Event keys whose values never reach the log output
REDACTED_KEYS = frozenset({
    "authorization",
    "token",
    "session_token",
    "secret",
    "api_key",
    "provider_key",
    "provider_secret",
})

# Third-party loggers kept at WARNING; the request middleware logs access
QUIET_LOGGERS = (
    "uvicorn.access",
    "sqlalchemy.engine",
    "httpx",
    "httpcore",
    "botocore",
    "aiobotocore",
)


def redact_secrets(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask credential-like values passed as log fields."""
    for key in event_dict.keys() & REDACTED_KEYS:
        event_dict[key] = "***"
    return event_dict


def setup_logging(
    level: str = "INFO",
    json_format: bool = False,
    service: str = "tuneforge",
) -> None:
    """
    Configure structlog and the root logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: Use JSON output (for production)
        service: Value of the ``service`` field on every event
    """
    def add_service(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", service)
        return event_dict

    shared_processors: list[Processor] = [
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_service,
        redact_secrets,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level.upper()))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger, usually ``get_logger(__name__)``."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind fields to every event logged in the current context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


_access_logger = get_logger("tuneforge.access")


async def request_context_middleware(request, call_next):
    """
    HTTP middleware binding a request id to the logs of one request.

    The id is taken from ``X-Request-ID`` when the caller sends one and is
    echoed on the response. Streaming bodies are still being sent when the
    access line is written, so its duration covers the headers only.
    """
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
    started = time.perf_counter()

    bind_context(
        request_id=request_id,
        method=request.method,
        path=request.url.path,
    )

    try:
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        _access_logger.info(
            "Request handled",
            status=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        return response
    finally:
        clear_context()

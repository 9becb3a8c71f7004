"""Core module - exceptions, security, logging, telemetry."""

from .exceptions import (
    TuneForgeException,
    NotFoundError,
    ValidationError,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    PayloadTooLargeError,
    UpstreamError,
    StorageError,
    install_exception_handlers,
)
from .security import (
    decode_session_token,
    session_user_id,
    secret_matches,
    is_safe_identifier,
    owns_artifact_key,
    sanitize_identifier,
    normalize_job_id,
    composite_job_key,
    read_limited_body,
)
from .logging import (
    setup_logging,
    get_logger,
    bind_context,
    clear_context,
)

__all__ = [
    # Exceptions
    "TuneForgeException",
    "NotFoundError",
    "ValidationError",
    "AuthenticationError",
    "AuthorizationError",
    "ConflictError",
    "PayloadTooLargeError",
    "UpstreamError",
    "StorageError",
    "install_exception_handlers",
    # Security
    "decode_session_token",
    "session_user_id",
    "secret_matches",
    "is_safe_identifier",
    "owns_artifact_key",
    "sanitize_identifier",
    "normalize_job_id",
    "composite_job_key",
    "read_limited_body",
    # Logging
    "setup_logging",
    "get_logger",
    "bind_context",
    "clear_context",
]

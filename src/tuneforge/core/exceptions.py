"""TuneForge custom exceptions and error handlers."""

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from tuneforge.core.logging import get_logger

logger = get_logger("tuneforge")

# Upstream bodies are echoed back truncated
UPSTREAM_DETAIL_LIMIT = 500


# ─────────────────────────────────────────────────────────────────────────────
# Custom Exceptions
# ─────────────────────────────────────────────────────────────────────────────

class TuneForgeException(Exception):
    """Base exception for TuneForge."""

    def __init__(
        self,
        message: str,
        code: str = "TUNEFORGE_ERROR",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        self.headers = headers
        super().__init__(message)


class NotFoundError(TuneForgeException):
    """Resource not found, or not visible to the caller.

    The message never names the identifier so that "missing" and
    "belongs to someone else" look the same.
    """

    def __init__(self, resource: str = "Resource"):
        super().__init__(
            message=f"{resource} not found",
            code="NOT_FOUND",
            status_code=status.HTTP_404_NOT_FOUND,
        )


class ValidationError(TuneForgeException):
    """Validation error."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"field": field} if field else {},
        )


class AuthenticationError(TuneForgeException):
    """Authentication failed."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(
            message=message,
            code="AUTHENTICATION_ERROR",
            status_code=status.HTTP_401_UNAUTHORIZED,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(TuneForgeException):
    """Authorization failed."""

    def __init__(self, message: str = "Permission denied"):
        super().__init__(
            message=message,
            code="AUTHORIZATION_ERROR",
            status_code=status.HTTP_403_FORBIDDEN,
        )


class ConflictError(TuneForgeException):
    """Resource already exists."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            code="CONFLICT",
            status_code=status.HTTP_409_CONFLICT,
        )


class PayloadTooLargeError(TuneForgeException):
    """Request body exceeds size limit."""

    def __init__(self, max_size: int):
        super().__init__(
            message="Request body too large",
            code="PAYLOAD_TOO_LARGE",
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            details={"max_size": max_size},
        )


class UpstreamError(TuneForgeException):
    """An external collaborator (compute provider, object storage) failed."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_502_BAD_GATEWAY,
        upstream_body: str | None = None,
        code: str = "UPSTREAM_ERROR",
    ):
        details = {}
        if upstream_body:
            details["upstream"] = upstream_body[:UPSTREAM_DETAIL_LIMIT]
        super().__init__(
            message=message,
            code=code,
            status_code=status_code,
            details=details,
        )


class StorageError(UpstreamError):
    """Object storage operation error."""

    def __init__(self, message: str = "Failed to retrieve artifact"):
        super().__init__(message=message, code="STORAGE_ERROR")


# ─────────────────────────────────────────────────────────────────────────────
# Exception Handlers
# ─────────────────────────────────────────────────────────────────────────────

def install_exception_handlers(app: FastAPI) -> None:
    """Install exception handlers on FastAPI app. Tracebacks stay in the logs."""

    @app.exception_handler(TuneForgeException)
    async def tuneforge_exception_handler(request: Request, exc: TuneForgeException):
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": exc.code,
                "message": exc.message,
                "details": exc.details,
            },
            headers=exc.headers,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": "HTTP_ERROR",
                "message": str(exc.detail),
            },
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning("Request validation failed", errors=len(exc.errors()))
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": "VALIDATION_ERROR",
                "message": "Request validation failed",
                "details": {
                    "fields": [".".join(str(p) for p in err.get("loc", ())) for err in exc.errors()],
                },
            },
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error", error_type=type(exc).__name__)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "INTERNAL_ERROR",
                "message": "Internal server error",
            },
        )

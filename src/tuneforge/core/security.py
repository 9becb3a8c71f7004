"""Security utilities: session tokens, shared secrets, identifier hygiene."""

import re
import secrets
from typing import Any

from jose import JWTError, jwt

from tuneforge.config import SecuritySettings
from tuneforge.core.exceptions import (
    AuthenticationError,
    PayloadTooLargeError,
    ValidationError,
)

# ─────────────────────────────────────────────────────────────────────────────
# Session Tokens
# ─────────────────────────────────────────────────────────────────────────────
#
# Sessions are issued by the external identity provider as signed JWTs. We
# only verify them and read the subject; nothing here mints tokens for
# end users.


def decode_session_token(token: str, security: SecuritySettings) -> dict[str, Any]:
    """Decode and validate a session token."""
    try:
        return jwt.decode(
            token,
            security.session_secret,
            algorithms=[security.algorithm],
        )
    except JWTError:
        raise AuthenticationError("Invalid session")


def session_user_id(token: str, security: SecuritySettings) -> str:
    """Return the verified user id (``sub``) carried by a session token."""
    payload = decode_session_token(token, security)
    subject = payload.get("sub")
    if not subject or not isinstance(subject, str):
        raise AuthenticationError("Invalid session")
    return subject


def secret_matches(presented: str | None, expected: str) -> bool:
    """Constant-time comparison for shared secrets."""
    if not presented:
        return False
    return secrets.compare_digest(presented.encode(), expected.encode())


# ─────────────────────────────────────────────────────────────────────────────
# Identifiers
# ─────────────────────────────────────────────────────────────────────────────

SAFE_ID = re.compile(r"^[A-Za-z0-9_-]+$")
UNSAFE_ID_CHARS = re.compile(r"[^A-Za-z0-9_-]")

MAX_JOB_ID_LENGTH = 64


def is_safe_identifier(value: str) -> bool:
    return bool(SAFE_ID.fullmatch(value))


def sanitize_identifier(value: str) -> str:
    """Replace every character outside ``[A-Za-z0-9_-]`` with ``_``."""
    return UNSAFE_ID_CHARS.sub("_", value)


def normalize_job_id(value: Any, field: str = "jobId") -> str:
    """
    Coerce a client-supplied job id (string or integer) to its string form.

    Raises:
        ValidationError: missing, wrong type, blank, or too long
    """
    if value is None or value == "":
        raise ValidationError(f"Missing required field: {field}", field=field)
    # bool is an int subclass but never a job id
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise ValidationError(f"Invalid {field} type", field=field)
    job_id = str(value).strip()
    if not job_id:
        raise ValidationError(f"Invalid {field}", field=field)
    if len(job_id) > MAX_JOB_ID_LENGTH:
        raise ValidationError(f"{field} is too long", field=field)
    return job_id


def composite_job_key(user_id: str, job_id: str) -> str:
    """
    Build the ``{user}_{job}`` key the provider uses to address a remote job.

    Raises:
        ValidationError: key contains characters outside ``[A-Za-z0-9_-]``
    """
    key = f"{user_id}_{job_id}"
    if not is_safe_identifier(key):
        raise ValidationError("Invalid user or job ID format", field="jobId")
    return key


def owns_artifact_key(user_id: str, key: str) -> bool:
    """True when ``key`` lies under the ``{user_id}/`` prefix of the bucket."""
    if not key.startswith(f"{user_id}/"):
        return False
    return all(part not in ("", ".", "..") for part in key.split("/"))


# ─────────────────────────────────────────────────────────────────────────────
# Request Bodies
# ─────────────────────────────────────────────────────────────────────────────

async def read_limited_body(request, max_size: int) -> bytes:
    """
    Read a request body, refusing anything larger than ``max_size``.

    The declared Content-Length is checked first so oversized uploads are
    rejected before reading; chunked bodies are counted as they arrive.

    Raises:
        PayloadTooLargeError: body exceeds max_size
    """
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > max_size:
        raise PayloadTooLargeError(max_size)

    received = bytearray()
    async for chunk in request.stream():
        received.extend(chunk)
        if len(received) > max_size:
            raise PayloadTooLargeError(max_size)
    return bytes(received)

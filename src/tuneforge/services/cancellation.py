"""Cancellation gateway: authorize and forward remote job cancellation."""

from typing import Any

from tuneforge.core.exceptions import AuthorizationError, ValidationError
from tuneforge.core.logging import get_logger
from tuneforge.core.security import composite_job_key, normalize_job_id
from tuneforge.services.provider import ComputeProvider

logger = get_logger(__name__)


def authorize_cancel(session_user_id: str, user_id: Any, job_id: Any) -> str:
    """
    Check a cancel request against the session and return the composite key.

    In-flight jobs never live in the ledger, so there is nothing to look up:
    the only checks are that the caller targets their own job and that the
    key is safe to put in the provider's query string.

    Raises:
        ValidationError: missing fields, bad jobId type or unsafe characters
        AuthorizationError: ``user_id`` is not the session user
    """
    if not user_id or job_id is None or job_id == "":
        raise ValidationError("Missing userId or jobId")

    if user_id != session_user_id:
        logger.warning(
            "Cancel rejected for foreign user",
            session_user_id=session_user_id,
        )
        raise AuthorizationError("Unauthorized")

    return composite_job_key(user_id, normalize_job_id(job_id))


class CancellationGateway:
    """Forwards authorized cancellations to the compute provider."""

    def __init__(self, provider: ComputeProvider):
        self._provider = provider

    async def cancel(self, session_user_id: str, user_id: Any, job_id: Any) -> Any:
        key = authorize_cancel(session_user_id, user_id, job_id)
        logger.info("Cancelling remote job", user_id=session_user_id, job_key=key)
        return await self._provider.cancel(key)

"""Jobs routes: ledger listing, id prediction and completion signals."""

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends

from tuneforge.api.deps import LedgerDep, SessionUserId, require_webhook_secret
from tuneforge.core.exceptions import ValidationError
from tuneforge.core.logging import get_logger
from tuneforge.core.security import is_safe_identifier, normalize_job_id, owns_artifact_key
from tuneforge.models import JobStatus
from tuneforge.services import CompletionOutcome

router = APIRouter(prefix="/jobs", tags=["jobs"])
logger = get_logger(__name__)

CLIENT_STATUSES = {JobStatus.COMPLETED.value, JobStatus.FAILED.value}
WEBHOOK_STATUSES = {status.value for status in JobStatus}

_COMPLETION_MESSAGES = {
    CompletionOutcome.CREATED: "Job created as completed",
    CompletionOutcome.UPDATED: "Job updated as completed",
    CompletionOutcome.SKIPPED: "Job outcome not stored",
}


def _optional_artifact_key(value: Any) -> str | None:
    """Client-reported keys are only used when they are non-blank strings."""
    if isinstance(value, str) and value.strip():
        return value
    return None


# ─────────────────────────────────────────────────────────────────────────────
# Routes
# ─────────────────────────────────────────────────────────────────────────────

@router.get("")
async def list_jobs(user_id: SessionUserId, ledger: LedgerDep):
    """Completed jobs of the current user, newest first."""
    jobs = await ledger.list_for_user(user_id)
    return {"jobs": [job.to_dict() for job in jobs]}


@router.get("/next-id")
async def predict_next_job_id(user_id: SessionUserId, ledger: LedgerDep):
    """The id the next submission is expected to get. Nothing is reserved."""
    return {"jobId": await ledger.next_job_id(user_id)}


@router.post("/complete")
async def complete_job(
    user_id: SessionUserId,
    ledger: LedgerDep,
    body: Annotated[dict[str, Any], Body()],
):
    """
    Record the outcome of the caller's job.

    ``completed`` creates (or refreshes) the ledger row; ``failed`` is
    acknowledged and never stored. A reported ``r2Key`` must sit under the
    caller's ``{user_id}/`` prefix.
    """
    job_id = normalize_job_id(body.get("jobId"))

    status = body.get("status")
    if not isinstance(status, str) or status not in CLIENT_STATUSES:
        raise ValidationError(
            "Invalid status value. Must be 'completed' or 'failed'",
            field="status",
        )

    artifact_key = _optional_artifact_key(body.get("r2Key"))
    if artifact_key is not None and not owns_artifact_key(user_id, artifact_key):
        raise ValidationError("r2Key must lie under the caller's own prefix", field="r2Key")

    outcome = await ledger.record_completion(user_id, job_id, status, artifact_key)
    return {"success": True, "message": _COMPLETION_MESSAGES[outcome]}


@router.post("/update", dependencies=[Depends(require_webhook_secret)])
async def update_job(
    ledger: LedgerDep,
    body: Annotated[dict[str, Any], Body()],
):
    """
    Job status webhook for the asynchronous updater.

    Accepts the full provider status vocabulary but, like every other
    path, only a ``completed`` signal reaches the ledger.
    """
    user_id = body.get("userId")
    status = body.get("status")
    if not user_id or body.get("jobId") in (None, "") or not status:
        raise ValidationError("Missing required fields")

    if not isinstance(status, str) or status not in WEBHOOK_STATUSES:
        raise ValidationError("Invalid status value", field="status")

    if not isinstance(user_id, str) or not is_safe_identifier(user_id):
        raise ValidationError("Invalid userId format", field="userId")

    job_id = normalize_job_id(body.get("jobId"))

    r2_key = body.get("r2Key")
    if r2_key is not None and _optional_artifact_key(r2_key) is None:
        raise ValidationError("Invalid r2Key", field="r2Key")

    outcome = await ledger.record_completion(user_id, job_id, status, r2_key)
    logger.info(
        "Job update processed",
        user_id=user_id,
        job_id=job_id,
        status=status,
        outcome=outcome.value,
    )
    return {"success": True, "outcome": outcome.value}

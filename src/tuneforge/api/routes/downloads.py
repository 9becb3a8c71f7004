"""Checkpoint download route."""

from fastapi import APIRouter
from fastapi.responses import StreamingResponse

from tuneforge.api.deps import ArtifactStoreDep, LedgerDep, SessionUserId
from tuneforge.core.exceptions import NotFoundError, ValidationError
from tuneforge.core.logging import get_logger
from tuneforge.core.security import sanitize_identifier

router = APIRouter(tags=["downloads"])
logger = get_logger(__name__)


def checkpoint_filename(job_id: str) -> str:
    return f"training-checkpoint-job-{sanitize_identifier(job_id)}.zip"


@router.get("/download")
async def download_checkpoint(
    user_id: SessionUserId,
    ledger: LedgerDep,
    artifacts: ArtifactStoreDep,
    jobId: str | None = None,
):
    """
    Stream the checkpoint archive of one of the caller's completed jobs.

    Only the session user is looked up; an unknown id, another user's job
    and a job without a stored archive all answer the same 404.
    """
    if jobId is None or not jobId.strip():
        raise ValidationError("Missing jobId", field="jobId")

    job = await ledger.find_completed(user_id, jobId)
    if job is None:
        logger.info("Download refused", user_id=user_id)
        raise NotFoundError("Job")

    artifact = await artifacts.open(job.artifact_key)

    headers = {
        "Content-Disposition": f'attachment; filename="{checkpoint_filename(jobId)}"',
        "Cache-Control": "no-store",
    }
    if artifact.content_length is not None:
        headers["Content-Length"] = str(artifact.content_length)

    logger.info("Streaming checkpoint", user_id=user_id, job_id=job.job_id)
    return StreamingResponse(
        artifact.chunks,
        media_type="application/zip",
        headers=headers,
    )

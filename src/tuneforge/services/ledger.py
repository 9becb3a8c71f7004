"""
Job ledger: durable record of successfully completed training jobs.

The ledger never stores in-flight, failed or cancelled work. Because of
that, the number of rows a user owns is also how the next job number is
predicted (``count + 1``). The prediction is not a reservation: two
overlapping submissions from the same user will both be told the same
number, and the provider-confirmed id returned to the client is the one
that counts.
"""

import uuid
from enum import Enum

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from tuneforge.core.logging import get_logger
from tuneforge.core.telemetry import traced
from tuneforge.models import JobStatus, TrainingJob, default_artifact_key

logger = get_logger(__name__)

_UPSERT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class CompletionOutcome(str, Enum):
    """What a completion signal did to the ledger."""
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"


class JobLedger:
    """Queries and writes against the ``training_jobs`` table."""

    def __init__(self, session: AsyncSession):
        self._session = session

    # ─────────────────────────────────────────────────────────────────────
    # Job identifier allocation
    # ─────────────────────────────────────────────────────────────────────

    async def count_for_user(self, user_id: str) -> int:
        result = await self._session.execute(
            select(func.count())
            .select_from(TrainingJob)
            .where(TrainingJob.user_id == user_id)
        )
        return int(result.scalar_one())

    @traced("ledger.next_job_id", record_args=("user_id",))
    async def next_job_id(self, user_id: str) -> str:
        """Predict the id the provider will assign to the user's next job."""
        return str(await self.count_for_user(user_id) + 1)

    # ─────────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────────

    async def list_for_user(self, user_id: str) -> list[TrainingJob]:
        """All ledger rows of a user, newest first."""
        result = await self._session.execute(
            select(TrainingJob)
            .where(TrainingJob.user_id == user_id)
            .order_by(TrainingJob.created_at.desc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def get(self, user_id: str, job_id: str) -> TrainingJob | None:
        result = await self._session.execute(
            select(TrainingJob).where(
                TrainingJob.user_id == user_id,
                TrainingJob.job_id == job_id,
            ).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_completed(self, user_id: str, job_id: str) -> TrainingJob | None:
        """The user's completed job with this id, if any."""
        result = await self._session.execute(
            select(TrainingJob).where(
                TrainingJob.user_id == user_id,
                TrainingJob.job_id == job_id,
                TrainingJob.status == JobStatus.COMPLETED.value,
            ).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    # ─────────────────────────────────────────────────────────────────────
    # Completion recording
    # ─────────────────────────────────────────────────────────────────────

    @traced("ledger.record_completion", record_args=("user_id", "job_id"))
    async def record_completion(
        self,
        user_id: str,
        job_id: str,
        status: JobStatus | str,
        artifact_key: str | None = None,
    ) -> CompletionOutcome:
        """
        Apply a job outcome signal to the ledger.

        Only ``completed`` writes. Repeated completions for the same
        ``(user_id, job_id)`` converge on one row; a supplied artifact key
        replaces the stored one, a missing key keeps it (or falls back to
        the provider's default location on first insert).
        """
        status = JobStatus(status)
        if status is not JobStatus.COMPLETED:
            logger.info(
                "Job outcome not recorded",
                user_id=user_id,
                job_id=job_id,
                status=status.value,
            )
            return CompletionOutcome.SKIPPED

        if artifact_key is not None and not artifact_key.strip():
            artifact_key = None

        existed = await self.get(user_id, job_id) is not None

        insert = self._insert_construct()
        stmt = insert(TrainingJob).values(
            id=str(uuid.uuid4()),
            user_id=user_id,
            job_id=job_id,
            artifact_key=artifact_key or default_artifact_key(user_id, job_id),
            status=JobStatus.COMPLETED.value,
        )
        update_set = {
            "status": JobStatus.COMPLETED.value,
            "updated_at": func.now(),
        }
        if artifact_key:
            update_set["artifact_key"] = stmt.excluded.artifact_key
        stmt = stmt.on_conflict_do_update(
            index_elements=[TrainingJob.user_id, TrainingJob.job_id],
            set_=update_set,
        )

        await self._session.execute(stmt)
        await self._session.commit()

        outcome = CompletionOutcome.UPDATED if existed else CompletionOutcome.CREATED
        logger.info(
            "Job completion recorded",
            user_id=user_id,
            job_id=job_id,
            outcome=outcome.value,
        )
        return outcome

    def _insert_construct(self):
        dialect = self._session.bind.dialect.name
        try:
            return _UPSERT_INSERTS[dialect]
        except KeyError:
            raise RuntimeError(f"Ledger upsert is not supported on {dialect}")

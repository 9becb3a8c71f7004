"""Training job ledger model."""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import String, DateTime, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from tuneforge.db import Base


class JobStatus(str, Enum):
    """Job status vocabulary shared with the compute provider."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


def default_artifact_key(user_id: str, job_id: str) -> str:
    """Location the provider writes checkpoints to when it reports none."""
    return f"{user_id}/{job_id}/checkpoint.zip"


class TrainingJob(Base):
    """
    A training job that finished successfully.

    Rows are only ever written on completion, so the table doubles as the
    source of truth for which job numbers a user has used.
    """

    __tablename__ = "training_jobs"
    __table_args__ = (
        UniqueConstraint("user_id", "job_id", name="uq_training_jobs_user_job"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )

    # Owner and per-user sequence number
    user_id: Mapped[str] = mapped_column(String(255), index=True)
    job_id: Mapped[str] = mapped_column(String(64))

    # Object storage key of the checkpoint archive
    artifact_key: Mapped[str] = mapped_column(String(1024))

    status: Mapped[str] = mapped_column(
        String(20),
        default=JobStatus.COMPLETED.value,
        index=True,
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "jobId": self.job_id,
            "r2Key": self.artifact_key,
            "status": self.status,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<TrainingJob {self.user_id}/{self.job_id} {self.status}>"

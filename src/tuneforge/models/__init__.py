"""Database models."""

from .user import User
from .job import TrainingJob, JobStatus, default_artifact_key

__all__ = [
    "User",
    "TrainingJob",
    "JobStatus",
    "default_artifact_key",
]

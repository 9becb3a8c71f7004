"""TuneForge Services."""

from .ledger import CompletionOutcome, JobLedger
from .provider import ComputeProvider, ProviderTrainingRequest, relay_stream
from .cancellation import CancellationGateway, authorize_cancel
from .artifacts import ArtifactStore, ArtifactStream
from .notifications import SignupNotifier

__all__ = [
    # Ledger
    "CompletionOutcome",
    "JobLedger",
    # Compute provider
    "ComputeProvider",
    "ProviderTrainingRequest",
    "relay_stream",
    "CancellationGateway",
    "authorize_cancel",
    # Object storage (aioboto3)
    "ArtifactStore",
    "ArtifactStream",
    # Notifications
    "SignupNotifier",
]

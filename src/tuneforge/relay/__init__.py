"""Consumer side of the training stream: parsing, staging and the API client."""

from .client import TrainingClient
from .events import StreamEvent, parse_event_line
from .session import SessionBusyError, TrainingSession
from .stage import Stage, StageTracker

__all__ = [
    "SessionBusyError",
    "Stage",
    "StageTracker",
    "StreamEvent",
    "TrainingClient",
    "TrainingSession",
    "parse_event_line",
]

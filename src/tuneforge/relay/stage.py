"""Client-side stage machine for a single training job."""

from collections.abc import Callable
from enum import Enum

from tuneforge.core.logging import get_logger

logger = get_logger(__name__)


class Stage(str, Enum):
    """Where a training job is, as seen by the consumer."""

    IDLE = "idle"
    SUBMITTING = "submitting"
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLING = "cancelling"


TERMINAL_STAGES = frozenset({Stage.COMPLETED, Stage.FAILED})

# Stream status updates may only move a job further along this order
_PROGRESS = {
    Stage.SUBMITTING: 0,
    Stage.PENDING: 1,
    Stage.RUNNING: 2,
    Stage.COMPLETED: 3,
    Stage.FAILED: 3,
}

StageListener = Callable[[Stage, Stage], None]


class StageTracker:
    """
    Holds the current stage and enforces the allowed transitions.

    Listeners are called with ``(previous, current)`` after every change.
    """

    def __init__(self) -> None:
        self._stage = Stage.IDLE
        self._listeners: list[StageListener] = []

    @property
    def stage(self) -> Stage:
        return self._stage

    @property
    def is_active(self) -> bool:
        """True while a job occupies the tracker."""
        return self._stage not in TERMINAL_STAGES and self._stage is not Stage.IDLE

    def add_listener(self, listener: StageListener) -> None:
        self._listeners.append(listener)

    def _move(self, stage: Stage) -> None:
        previous, self._stage = self._stage, stage
        if previous is stage:
            return
        logger.debug("Stage changed", previous=previous.value, stage=stage.value)
        for listener in self._listeners:
            listener(previous, stage)

    def request_submit(self) -> bool:
        """Enter ``submitting``; refused while a job is in flight."""
        if self.is_active:
            return False
        self._move(Stage.SUBMITTING)
        return True

    def apply_status(self, status: str) -> bool:
        """Apply a status reported by the stream. Only forward moves are taken."""
        if not self.is_active or self._stage is Stage.CANCELLING:
            return False
        try:
            target = Stage(status)
        except ValueError:
            return False
        if target not in _PROGRESS or _PROGRESS[target] <= _PROGRESS[self._stage]:
            return False
        self._move(target)
        return True

    def complete(self) -> bool:
        """Force ``completed`` after a clean end of stream."""
        if not self.is_active or self._stage is Stage.CANCELLING:
            return False
        self._move(Stage.COMPLETED)
        return True

    def fail(self) -> bool:
        """Force ``failed`` after a stream error or a reported failure."""
        if self._stage in (Stage.IDLE, Stage.CANCELLING):
            return False
        self._move(Stage.FAILED)
        return True

    def begin_cancel(self) -> bool:
        if self._stage not in (Stage.PENDING, Stage.RUNNING):
            return False
        self._move(Stage.CANCELLING)
        return True

    def reset(self) -> None:
        self._move(Stage.IDLE)

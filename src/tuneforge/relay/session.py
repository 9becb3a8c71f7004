"""
Drives one training job from submission to its completion signal.

The stream is consumed by a single task. Cancellation sets a token that
is checked after every read and also cancels the task, so a read that is
blocked on the network is interrupted too.
"""

import asyncio
from typing import Any, Optional

import httpx

from tuneforge.core.logging import get_logger
from tuneforge.relay.client import TrainingClient
from tuneforge.relay.events import parse_event_line
from tuneforge.relay.stage import Stage, StageTracker

logger = get_logger(__name__)


class SessionBusyError(RuntimeError):
    """A job is already in flight on this session."""


class TrainingSession:
    """
    One user's training session.

    Attributes:
        tracker: Stage machine, shared with any UI listener
        logs: Log lines collected from the current job's stream
        job_id: Id of the current job; the server's ``X-Job-Id`` wins
            over the predicted id
    """

    def __init__(
        self,
        client: TrainingClient,
        user_id: str,
        tracker: Optional[StageTracker] = None,
    ):
        self.client = client
        self.user_id = user_id
        self.tracker = tracker or StageTracker()
        self.logs: list[str] = []
        self.job_id: Optional[str] = None
        self._cancelled = asyncio.Event()
        self._cancel_done = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    async def run(self, config: dict[str, Any]) -> Stage:
        """
        Submit ``config`` and follow the job to its end.

        Returns the final stage. If the submission itself is rejected the
        stage goes back to ``idle`` and the error propagates.
        """
        if not self.tracker.request_submit():
            raise SessionBusyError("A training job is already in progress")

        self._cancelled.clear()
        self.logs = []
        self.job_id = None

        try:
            predicted = await self.client.predict_job_id()
        except httpx.HTTPError:
            self.tracker.reset()
            raise

        self._task = asyncio.create_task(self._consume(config, predicted))
        try:
            await self._task
        except asyncio.CancelledError:
            if not self._cancelled.is_set():
                raise
        finally:
            self._task = None

        if self._cancelled.is_set():
            # the remote cancel may still be in flight
            await self._cancel_done.wait()
        return self.tracker.stage

    async def _consume(self, config: dict[str, Any], predicted: str) -> None:
        opened = False
        reported_failure = False
        try:
            async with self.client.stream_training(config) as response:
                opened = True
                self._adopt_job_id(response.headers.get("X-Job-Id"), predicted)
                self.tracker.apply_status(Stage.PENDING.value)

                async for line in response.aiter_lines():
                    if self._cancelled.is_set():
                        return
                    event = parse_event_line(line)
                    if event is None:
                        continue
                    if event.log is not None:
                        self.logs.append(event.log)
                    if event.status == Stage.FAILED.value:
                        reported_failure = True
                    if event.status is not None:
                        self.tracker.apply_status(event.status)
        except httpx.HTTPError as e:
            if not opened:
                logger.warning("Training submission failed", error=str(e))
                self.tracker.reset()
                raise
            logger.warning("Training stream interrupted", job_id=self.job_id, error=str(e))
            self.tracker.fail()
            return

        if self._cancelled.is_set():
            return

        if reported_failure:
            self.tracker.fail()
            await self._signal(Stage.FAILED.value)
        else:
            self.tracker.complete()
            await self._signal(Stage.COMPLETED.value)

    def _adopt_job_id(self, header_id: Optional[str], predicted: str) -> None:
        if header_id and header_id != predicted:
            logger.warning(
                "Server assigned a different job id than predicted",
                predicted=predicted,
                assigned=header_id,
            )
        self.job_id = header_id or predicted

    async def _signal(self, status: str) -> None:
        try:
            await self.client.mark_job_complete(self.job_id, status)
        except httpx.HTTPError as e:
            logger.error("Completion signal failed", job_id=self.job_id, status=status, error=str(e))

    async def cancel(self) -> Stage:
        """
        Abort the local stream and ask the server to cancel the remote job.

        Both halves are best effort; the stage always ends at ``idle``.
        """
        if not self.tracker.begin_cancel():
            return self.tracker.stage

        self._cancel_done.clear()
        self._cancelled.set()
        if self._task is not None and not self._task.done():
            self._task.cancel()

        try:
            if self.job_id is not None:
                try:
                    await self.client.cancel_training(self.user_id, self.job_id)
                    logger.info("Remote cancellation requested", job_id=self.job_id)
                except httpx.HTTPError as e:
                    logger.warning("Remote cancellation failed", job_id=self.job_id, error=str(e))
        finally:
            self.tracker.reset()
            self._cancel_done.set()
        return self.tracker.stage

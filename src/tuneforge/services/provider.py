"""
Compute provider client.

Forwards training requests to the external compute backend and relays its
streaming response, and forwards cancellation requests addressed by the
``{user}_{job}`` composite key.
"""

from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

import httpx

from tuneforge.config import ProviderSettings
from tuneforge.core.exceptions import UpstreamError
from tuneforge.core.logging import get_logger
from tuneforge.core.telemetry import traced

logger = get_logger(__name__)


def _mapped_status(status_code: int) -> int:
    """Provider error statuses pass through; anything else becomes 502."""
    return status_code if status_code >= 400 else 502


@dataclass(frozen=True)
class ProviderTrainingRequest:
    """Normalized training request in the provider's wire vocabulary."""

    user_id: str
    job_id: str
    full_finetune: bool
    lora_rank: int | None
    base_model: str
    dataset: str
    num_epochs: int

    def to_payload(self) -> dict[str, Any]:
        return {
            "userjob": {
                "user_id": self.user_id,
                "job_id": int(self.job_id),
            },
            "fullfinetune": self.full_finetune,
            "lora_rank": None if self.full_finetune else self.lora_rank,
            "base_model": self.base_model,
            "dataset": self.dataset,
            "num_epochs": self.num_epochs,
        }


class ComputeProvider:
    """Async client for the compute provider's train and cancel endpoints."""

    def __init__(
        self,
        settings: ProviderSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._settings = settings
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(
                connect=settings.connect_timeout,
                read=settings.idle_read_timeout,
                write=settings.connect_timeout,
                pool=settings.connect_timeout,
            ),
            transport=transport,
        )

    def _auth_headers(self) -> dict[str, str]:
        return {
            self._settings.key_header: self._settings.key,
            self._settings.secret_header: self._settings.secret,
        }

    @traced("provider.open_training_stream")
    async def open_training_stream(self, request: ProviderTrainingRequest) -> httpx.Response:
        """
        Start a training run and return the provider's open streaming response.

        The caller owns the returned response and must ``aclose()`` it.

        Raises:
            UpstreamError: provider unreachable or answered with non-2xx
        """
        outgoing = self._client.build_request(
            "POST",
            self._settings.train_url,
            json=request.to_payload(),
            headers={
                "Content-Type": "application/json",
                **self._auth_headers(),
            },
        )

        try:
            response = await self._client.send(outgoing, stream=True)
        except httpx.HTTPError as e:
            logger.error(
                "Compute provider unreachable",
                user_id=request.user_id,
                job_id=request.job_id,
                error_type=type(e).__name__,
            )
            raise UpstreamError("Compute provider unavailable")

        if response.is_success:
            logger.info(
                "Training stream opened",
                user_id=request.user_id,
                job_id=request.job_id,
                status=response.status_code,
            )
            return response

        try:
            body = (await response.aread()).decode("utf-8", errors="replace")
        except httpx.HTTPError:
            body = ""
        finally:
            await response.aclose()

        logger.warning(
            "Compute provider rejected training request",
            user_id=request.user_id,
            job_id=request.job_id,
            status=response.status_code,
        )
        raise UpstreamError(
            "Compute provider error",
            status_code=_mapped_status(response.status_code),
            upstream_body=body,
        )

    @traced("provider.cancel", record_args=("composite_key",))
    async def cancel(self, composite_key: str) -> Any:
        """
        Ask the provider to cancel the remote job addressed by ``composite_key``.

        Returns the provider's JSON answer.

        Raises:
            UpstreamError: provider unreachable or answered with non-2xx
        """
        try:
            response = await self._client.post(
                self._settings.cancel_url,
                params={"user_plus_job_id": composite_key},
                headers=self._auth_headers(),
            )
        except httpx.HTTPError as e:
            logger.error(
                "Compute provider unreachable for cancel",
                job_key=composite_key,
                error_type=type(e).__name__,
            )
            raise UpstreamError("Compute provider unavailable")

        if not response.is_success:
            logger.warning(
                "Compute provider rejected cancel",
                job_key=composite_key,
                status=response.status_code,
            )
            raise UpstreamError(
                "Compute provider error",
                status_code=_mapped_status(response.status_code),
                upstream_body=response.text,
            )

        logger.info("Cancel forwarded to compute provider", job_key=composite_key)
        try:
            return response.json()
        except ValueError:
            raise UpstreamError("Compute provider returned an invalid response")

    async def aclose(self) -> None:
        await self._client.aclose()


async def relay_stream(response: httpx.Response, user_id: str, job_id: str) -> AsyncIterator[bytes]:
    """
    Yield the provider's response body unchanged, then release it.

    A read failure is re-raised so the downstream connection is aborted
    rather than ended cleanly; consumers treat a clean end as success.
    """
    relayed = 0
    try:
        async for chunk in response.aiter_bytes():
            relayed += len(chunk)
            yield chunk
    except httpx.HTTPError as e:
        logger.warning(
            "Training stream interrupted",
            user_id=user_id,
            job_id=job_id,
            error_type=type(e).__name__,
        )
        raise
    finally:
        await response.aclose()
        logger.info("Training stream closed", user_id=user_id, job_id=job_id, bytes=relayed)

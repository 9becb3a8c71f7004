"""HTTP client for the TuneForge API."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Optional

import httpx

from tuneforge.core.logging import get_logger

logger = get_logger(__name__)


class TrainingClient:
    """
    Thin async client over the session-authenticated API.

    Non-2xx answers raise ``httpx.HTTPStatusError``.

    Example:
        async with TrainingClient("http://localhost:8000", token) as client:
            job_id = await client.predict_job_id()
    """

    def __init__(
        self,
        base_url: str,
        session_token: str,
        *,
        api_prefix: str = "/api",
        connect_timeout: float = 10.0,
        read_timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + api_prefix,
            headers={"Authorization": f"Bearer {session_token}"},
            timeout=httpx.Timeout(connect_timeout, read=read_timeout),
            transport=transport,
        )

    async def __aenter__(self) -> "TrainingClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _json(self, method: str, url: str, **kwargs) -> Any:
        response = await self._client.request(method, url, **kwargs)
        response.raise_for_status()
        return response.json()

    async def predict_job_id(self) -> str:
        """Id the server expects to give the next job."""
        data = await self._json("GET", "/jobs/next-id")
        return str(data["jobId"])

    @asynccontextmanager
    async def stream_training(self, config: dict[str, Any]) -> AsyncIterator[httpx.Response]:
        """
        Submit a training run and yield the open streaming response.

        The response is closed when the context exits.
        """
        request = self._client.build_request("POST", "/train", json=config)
        response = await self._client.send(request, stream=True)
        try:
            if response.is_error:
                await response.aread()
                response.raise_for_status()
            yield response
        finally:
            await response.aclose()

    async def list_jobs(self) -> list[dict[str, Any]]:
        data = await self._json("GET", "/jobs")
        return data["jobs"]

    async def cancel_training(self, user_id: str, job_id: str) -> Any:
        return await self._json("POST", "/cancel", json={"userId": user_id, "jobId": job_id})

    async def mark_job_complete(
        self,
        job_id: str,
        status: str,
        r2_key: Optional[str] = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"jobId": job_id, "status": status}
        if r2_key is not None:
            payload["r2Key"] = r2_key
        return await self._json("POST", "/jobs/complete", json=payload)

    async def download_checkpoint(self, job_id: str) -> bytes:
        """Fetch the checkpoint archive of a completed job."""
        response = await self._client.get("/download", params={"jobId": job_id})
        response.raise_for_status()
        logger.info("Checkpoint downloaded", job_id=job_id, size=len(response.content))
        return response.content

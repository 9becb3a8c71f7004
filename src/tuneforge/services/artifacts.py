"""
Async artifact storage on S3-compatible object storage (Cloudflare R2).

Uses aioboto3 for async operations. Checkpoint archives are streamed to the
caller chunk by chunk instead of being buffered in memory.
"""

from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass

import aioboto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from tuneforge.config import ObjectStorageSettings
from tuneforge.core.exceptions import NotFoundError, StorageError
from tuneforge.core.logging import get_logger
from tuneforge.core.telemetry import traced

logger = get_logger(__name__)

_MISSING_KEY_CODES = {"NoSuchKey", "404", "NotFound"}


@dataclass
class ArtifactStream:
    """An opened object: metadata plus a body iterator that must be drained or closed."""

    key: str
    content_length: int | None
    content_type: str | None
    chunks: AsyncIterator[bytes]


class ArtifactStore:
    """Read access to stored training checkpoints."""

    def __init__(self, settings: ObjectStorageSettings):
        self._settings = settings
        self._session = aioboto3.Session()
        self._config = Config(
            signature_version='s3v4',
            retries={'max_attempts': 3, 'mode': 'adaptive'},
        )

    @asynccontextmanager
    async def _get_client(self):
        """Get S3 client context manager."""
        async with self._session.client(
            's3',
            endpoint_url=self._settings.resolved_endpoint,
            region_name=self._settings.region,
            aws_access_key_id=self._settings.access_key_id,
            aws_secret_access_key=self._settings.secret_access_key,
            config=self._config,
        ) as client:
            yield client

    @traced("artifacts.open", record_args=("key",))
    async def open(self, key: str) -> ArtifactStream:
        """
        Open the object at ``key`` for streaming.

        Raises:
            NotFoundError: no object at key
            StorageError: any other storage failure
        """
        stack = AsyncExitStack()
        try:
            client = await stack.enter_async_context(self._get_client())
            response = await client.get_object(Bucket=self._settings.bucket, Key=key)
        except ClientError as e:
            await stack.aclose()
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in _MISSING_KEY_CODES:
                logger.warning("Artifact missing from storage", key=key)
                raise NotFoundError("Job")
            logger.error("Artifact fetch failed", key=key, code=code)
            raise StorageError()
        except BotoCoreError as e:
            await stack.aclose()
            logger.error("Artifact storage unreachable", key=key, error_type=type(e).__name__)
            raise StorageError()

        body = await stack.enter_async_context(response["Body"])

        async def chunks() -> AsyncIterator[bytes]:
            sent = 0
            try:
                async for chunk in body.iter_chunks(self._settings.chunk_size):
                    sent += len(chunk)
                    yield chunk
            finally:
                await stack.aclose()
                logger.info("Artifact stream closed", key=key, bytes=sent)

        return ArtifactStream(
            key=key,
            content_length=response.get("ContentLength"),
            content_type=response.get("ContentType"),
            chunks=chunks(),
        )


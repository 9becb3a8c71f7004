"""
Tests for checkpoint retrieval from object storage
"""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from tuneforge.config import ObjectStorageSettings
from tuneforge.core.exceptions import NotFoundError, StorageError
from tuneforge.services import ArtifactStore


pytestmark = pytest.mark.unit


class FakeBody:
    """Stands in for the aiobotocore streaming body"""

    def __init__(self, data: bytes):
        self.data = data
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.closed = True

    async def iter_chunks(self, chunk_size):
        for start in range(0, len(self.data), chunk_size):
            yield self.data[start:start + chunk_size]


def store_with(get_object) -> ArtifactStore:
    store = ArtifactStore(ObjectStorageSettings(chunk_size=1024))
    client = MagicMock()
    client.get_object = get_object

    @asynccontextmanager
    async def fake_client():
        yield client

    store._get_client = fake_client
    return store


def client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, "GetObject")


class TestArtifactStore:
    """Tests for ArtifactStore.open"""

    def test_default_endpoint_is_r2(self):
        settings = ObjectStorageSettings()

        assert settings.resolved_endpoint == "https://test-account.r2.cloudflarestorage.com"

    @pytest.mark.asyncio
    async def test_streams_object_in_chunks(self):
        body = FakeBody(b"z" * 2500)
        get_object = AsyncMock(return_value={
            "Body": body,
            "ContentLength": 2500,
            "ContentType": "application/zip",
        })
        store = store_with(get_object)

        artifact = await store.open("u1/3/checkpoint.zip")
        chunks = [chunk async for chunk in artifact.chunks]

        get_object.assert_awaited_once_with(Bucket="checkpoints", Key="u1/3/checkpoint.zip")
        assert artifact.content_length == 2500
        assert [len(chunk) for chunk in chunks] == [1024, 1024, 452]
        assert body.closed

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", ["NoSuchKey", "404"])
    async def test_missing_object_is_not_found(self, code):
        store = store_with(AsyncMock(side_effect=client_error(code)))

        with pytest.raises(NotFoundError) as exc_info:
            await store.open("u1/3/checkpoint.zip")

        assert exc_info.value.message == "Job not found"

    @pytest.mark.asyncio
    async def test_other_client_error_is_storage_error(self):
        store = store_with(AsyncMock(side_effect=client_error("AccessDenied")))

        with pytest.raises(StorageError) as exc_info:
            await store.open("u1/3/checkpoint.zip")

        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_unreachable_storage_is_storage_error(self):
        error = EndpointConnectionError(endpoint_url="https://r2.test")
        store = store_with(AsyncMock(side_effect=error))

        with pytest.raises(StorageError):
            await store.open("u1/3/checkpoint.zip")

"""
Tests for the compute provider client and stream relay
"""

import json

import httpx
import pytest

from tuneforge.config import ProviderSettings
from tuneforge.core.exceptions import UpstreamError
from tuneforge.services import ComputeProvider, ProviderTrainingRequest, relay_stream


pytestmark = pytest.mark.unit


def training_request(**overrides) -> ProviderTrainingRequest:
    values = dict(
        user_id="u1",
        job_id="3",
        full_finetune=False,
        lora_rank=8,
        base_model="small",
        dataset="TIG",
        num_epochs=5,
    )
    values.update(overrides)
    return ProviderTrainingRequest(**values)


def make_provider(handler) -> ComputeProvider:
    return ComputeProvider(ProviderSettings(), transport=httpx.MockTransport(handler))


class TestTrainingPayload:
    """Tests for the provider wire format"""

    def test_lora_payload(self):
        assert training_request().to_payload() == {
            "userjob": {"user_id": "u1", "job_id": 3},
            "fullfinetune": False,
            "lora_rank": 8,
            "base_model": "small",
            "dataset": "TIG",
            "num_epochs": 5,
        }

    def test_full_finetune_drops_rank(self):
        payload = training_request(full_finetune=True).to_payload()

        assert payload["fullfinetune"] is True
        assert payload["lora_rank"] is None


class TestOpenTrainingStream:
    """Tests for starting a training run"""

    @pytest.mark.asyncio
    async def test_sends_credentials_and_payload(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, content=b'{"log": "hi"}\n')

        provider = make_provider(handler)
        response = await provider.open_training_stream(training_request())
        body = b"".join([chunk async for chunk in relay_stream(response, "u1", "3")])
        await provider.aclose()

        assert body == b'{"log": "hi"}\n'
        request = seen[0]
        assert str(request.url) == "https://provider.test/train"
        assert request.headers["Modal-Key"] == "provider-key"
        assert request.headers["Modal-Secret"] == "provider-secret"
        assert json.loads(request.content)["userjob"] == {"user_id": "u1", "job_id": 3}

    @pytest.mark.asyncio
    async def test_provider_status_passes_through(self):
        provider = make_provider(lambda request: httpx.Response(503, text="x" * 2000))

        with pytest.raises(UpstreamError) as exc_info:
            await provider.open_training_stream(training_request())
        await provider.aclose()

        error = exc_info.value
        assert error.status_code == 503
        assert error.message == "Compute provider error"
        assert error.details["upstream"] == "x" * 500

    @pytest.mark.asyncio
    async def test_unreachable_provider_is_bad_gateway(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        provider = make_provider(handler)

        with pytest.raises(UpstreamError) as exc_info:
            await provider.open_training_stream(training_request())
        await provider.aclose()

        assert exc_info.value.status_code == 502
        assert exc_info.value.details == {}


class TestRelayStream:
    """Tests for relaying and releasing the provider stream"""

    @pytest.mark.asyncio
    async def test_read_error_is_reraised_and_stream_released(self):
        async def body():
            yield b'{"status": "running"}\n'
            raise httpx.ReadError("connection reset")

        provider = make_provider(lambda request: httpx.Response(200, content=body()))
        response = await provider.open_training_stream(training_request())

        received = []
        with pytest.raises(httpx.ReadError):
            async for chunk in relay_stream(response, "u1", "3"):
                received.append(chunk)
        await provider.aclose()

        assert received == [b'{"status": "running"}\n']
        assert response.is_closed

    @pytest.mark.asyncio
    async def test_idle_read_timeout_is_reraised_and_stream_released(self):
        seen = []

        async def body():
            yield b'{"status": "running"}\n'
            raise httpx.ReadTimeout("no data within read timeout")

        def handler(request):
            seen.append(request)
            return httpx.Response(200, content=body())

        provider = ComputeProvider(
            ProviderSettings(idle_read_timeout=0.5),
            transport=httpx.MockTransport(handler),
        )
        response = await provider.open_training_stream(training_request())

        with pytest.raises(httpx.ReadTimeout):
            async for _ in relay_stream(response, "u1", "3"):
                pass
        await provider.aclose()

        assert seen[0].extensions["timeout"]["read"] == 0.5
        assert response.is_closed

    @pytest.mark.asyncio
    async def test_early_close_releases_stream(self):
        provider = make_provider(lambda request: httpx.Response(200, content=b"a\nb\n"))
        response = await provider.open_training_stream(training_request())

        relay = relay_stream(response, "u1", "3")
        await relay.__anext__()
        await relay.aclose()
        await provider.aclose()

        assert response.is_closed


class TestCancel:
    """Tests for forwarding cancellation"""

    @pytest.mark.asyncio
    async def test_cancel_addresses_composite_key(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"cancelled": True})

        provider = make_provider(handler)
        result = await provider.cancel("u1_3")
        await provider.aclose()

        assert result == {"cancelled": True}
        assert seen[0].method == "POST"
        assert seen[0].url.path == "/cancel"
        assert seen[0].url.params["user_plus_job_id"] == "u1_3"
        assert seen[0].headers["Modal-Key"] == "provider-key"

    @pytest.mark.asyncio
    async def test_cancel_error_status(self):
        provider = make_provider(lambda request: httpx.Response(404, text="no such job"))

        with pytest.raises(UpstreamError) as exc_info:
            await provider.cancel("u1_3")
        await provider.aclose()

        assert exc_info.value.status_code == 404
        assert exc_info.value.details["upstream"] == "no such job"

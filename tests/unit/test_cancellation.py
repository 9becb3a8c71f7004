"""
Tests for cancel authorization
"""

from unittest.mock import AsyncMock

import pytest

from tuneforge.core.exceptions import AuthorizationError, ValidationError
from tuneforge.services import CancellationGateway, authorize_cancel


pytestmark = pytest.mark.unit


class TestAuthorizeCancel:
    """Tests for the checks made before any provider call"""

    def test_own_job(self):
        assert authorize_cancel("u1", "u1", 3) == "u1_3"

    @pytest.mark.parametrize("user_id,job_id", [(None, "3"), ("", "3"), ("u1", None), ("u1", "")])
    def test_missing_fields(self, user_id, job_id):
        with pytest.raises(ValidationError) as exc_info:
            authorize_cancel("u1", user_id, job_id)

        assert exc_info.value.message == "Missing userId or jobId"

    def test_foreign_user(self):
        with pytest.raises(AuthorizationError):
            authorize_cancel("u1", "u2", "3")

    def test_job_id_of_wrong_type(self):
        with pytest.raises(ValidationError):
            authorize_cancel("u1", "u1", {"$gt": 0})


class TestCancellationGateway:
    """Tests for forwarding through the gateway"""

    @pytest.mark.asyncio
    async def test_forwards_composite_key(self):
        provider = AsyncMock()
        provider.cancel.return_value = {"cancelled": True}

        result = await CancellationGateway(provider).cancel("u1", "u1", "3")

        assert result == {"cancelled": True}
        provider.cancel.assert_awaited_once_with("u1_3")

    @pytest.mark.asyncio
    async def test_injection_never_reaches_provider(self):
        provider = AsyncMock()

        with pytest.raises(ValidationError):
            await CancellationGateway(provider).cancel("u1", "u1", "1; rm")

        provider.cancel.assert_not_awaited()

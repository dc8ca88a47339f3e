"""
Unit tests for the pinned generative-AI unit.
"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import respx

from service_gemini_proxy.app.adapters.gemini_client import GeminiClient
from service_gemini_proxy.app.unit import PinnedGeminiUnit
from shared.errors import ConfigurationError, UpstreamError, ValidationError
from shared.upstreams import UpstreamResponse

GEMINI_BASE = "https://gemini.test/v1beta/models"


class TestGeminiClient:
    """Test cases for GeminiClient."""

    @pytest.fixture
    def client(self):
        return GeminiClient(GEMINI_BASE + "/", "gemini-2.5-flash-lite", timeout=5.0)

    def test_operation_url(self, client):
        assert client.operation_url("generateContent") == f"{GEMINI_BASE}/gemini-2.5-flash-lite:generateContent"

    @pytest.mark.asyncio
    async def test_call(self, client):
        body = {"contents": [{"parts": [{"text": "hi"}]}]}

        with respx.mock:
            route = respx.post(f"{GEMINI_BASE}/gemini-2.5-flash-lite:generateContent").mock(
                return_value=httpx.Response(200, json={"candidates": []})
            )

            response = await client.call("gemini-key", "generateContent", body)

        assert response == UpstreamResponse(200, {"candidates": []})
        request = route.calls.last.request
        assert request.headers["x-goog-api-key"] == "gemini-key"
        assert "gemini-key" not in str(request.url)
        assert json.loads(request.content) == body

    @pytest.mark.asyncio
    async def test_call_error_status(self, client):
        with respx.mock:
            respx.post(f"{GEMINI_BASE}/gemini-2.5-flash-lite:generateContent").mock(
                return_value=httpx.Response(429, text="quota exceeded")
            )

            with pytest.raises(UpstreamError) as exc_info:
                await client.call("gemini-key", "generateContent", {})

        assert exc_info.value.status_code == 429
        assert exc_info.value.error == "Gemini API error"
        assert exc_info.value.details == "quota exceeded"

    @pytest.mark.asyncio
    async def test_call_unreachable(self, client):
        with respx.mock:
            respx.post(f"{GEMINI_BASE}/gemini-2.5-flash-lite:generateContent").mock(
                side_effect=httpx.ConnectTimeout("timed out")
            )

            with pytest.raises(UpstreamError) as exc_info:
                await client.call("gemini-key", "generateContent", {})

        assert exc_info.value.status_code == 500
        assert exc_info.value.error == "Upstream service unavailable"


class TestPinnedGeminiUnit:
    """Test cases for PinnedGeminiUnit."""

    @pytest.fixture
    def gemini_client(self):
        client = MagicMock()
        client.call = AsyncMock(return_value=UpstreamResponse(200, {"candidates": []}))
        return client

    @pytest.mark.asyncio
    async def test_handle(self, gemini_client):
        unit = PinnedGeminiUnit("US_PROXY", "gemini-key", gemini_client)

        response = await unit.handle({"endpoint": "validateImage", "requestBody": {"contents": []}})

        assert response.status_code == 200
        gemini_client.call.assert_awaited_once_with("gemini-key", "validateImage", {"contents": []})
        assert unit.calls_handled == 1

    @pytest.mark.asyncio
    async def test_rejects_unknown_operation(self, gemini_client):
        unit = PinnedGeminiUnit("US_PROXY", "gemini-key", gemini_client)

        with pytest.raises(ValidationError) as exc_info:
            await unit.handle({"endpoint": "models/other:generateContent", "requestBody": {}})

        assert exc_info.value.error == "Invalid endpoint"
        gemini_client.call.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_key(self, gemini_client):
        unit = PinnedGeminiUnit("US_PROXY", "", gemini_client)

        with pytest.raises(ConfigurationError):
            await unit.handle({"endpoint": "generateContent", "requestBody": {}})

        gemini_client.call.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_calls_run_one_at_a_time(self):
        in_flight = 0
        peak = 0

        async def slow_call(api_key, operation, request_body):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return UpstreamResponse(200, {})

        gemini_client = MagicMock()
        gemini_client.call = slow_call
        unit = PinnedGeminiUnit("US_PROXY", "gemini-key", gemini_client)

        await asyncio.gather(*[
            unit.handle({"endpoint": "generateContent", "requestBody": {}}) for _ in range(5)
        ])

        assert peak == 1
        assert unit.calls_handled == 5

    def test_lock_created_on_serving_loop(self):
        """A unit built before the server loop starts still serializes calls."""
        in_flight = 0
        peak = 0

        async def slow_call(api_key, operation, request_body):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return UpstreamResponse(200, {})

        gemini_client = MagicMock()
        gemini_client.call = slow_call
        unit = PinnedGeminiUnit("US_PROXY", "gemini-key", gemini_client)
        assert unit._lock is None

        async def serve():
            await asyncio.gather(*[
                unit.handle({"endpoint": "generateContent", "requestBody": {}}) for _ in range(3)
            ])

        asyncio.run(serve())

        assert peak == 1
        assert unit.calls_handled == 3

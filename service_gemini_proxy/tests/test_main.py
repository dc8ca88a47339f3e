"""
Unit tests for the pinned unit service.
"""

import httpx
import pytest
import respx
from fastapi.testclient import TestClient

from service_gemini_proxy.app.main import GeminiProxyService, create_app
from shared.test_helpers import make_config

GENERATE_URL = "https://gemini.test/v1beta/models/gemini-2.5-flash-lite:generateContent"


def unit_config(**overrides):
    return make_config("gemini_proxy", 8020, **overrides)


class TestGeminiProxyService:
    """Test cases for GeminiProxyService."""

    @pytest.fixture
    def client(self):
        return TestClient(create_app(config=unit_config(internal_token="unit-secret")))

    @pytest.fixture
    def headers(self):
        return {"X-Internal-Token": "unit-secret"}

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "gemini_proxy"
        assert data["dependencies"] == {"gemini_api_key": "ok"}

    def test_generate(self, client, headers):
        with respx.mock:
            route = respx.post(GENERATE_URL).mock(
                return_value=httpx.Response(200, json={"candidates": [{"text": "ok"}]})
            )

            response = client.post(
                "/units/US_PROXY/generate",
                json={"endpoint": "generateContent", "requestBody": {"contents": []}},
                headers=headers,
            )

        assert response.status_code == 200
        assert response.json() == {"candidates": [{"text": "ok"}]}
        assert route.calls.last.request.headers["x-goog-api-key"] == "test-gemini-key"

    def test_generate_upstream_error(self, client, headers):
        with respx.mock:
            respx.post(GENERATE_URL).mock(return_value=httpx.Response(400, text="bad request"))

            response = client.post(
                "/units/US_PROXY/generate",
                json={"endpoint": "generateContent", "requestBody": {}},
                headers=headers,
            )

        assert response.status_code == 400
        assert response.json() == {
            "error": "Gemini API error",
            "message": "Upstream responded with status 400",
            "details": "bad request",
        }

    def test_generate_invalid_endpoint(self, client, headers):
        response = client.post(
            "/units/US_PROXY/generate",
            json={"endpoint": "listModels", "requestBody": {}},
            headers=headers,
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid endpoint"}

    def test_unknown_unit(self, client, headers):
        response = client.post(
            "/units/EU_PROXY/generate",
            json={"endpoint": "generateContent", "requestBody": {}},
            headers=headers,
        )

        assert response.status_code == 404

    @pytest.mark.parametrize("supplied", [None, "wrong-secret"])
    def test_internal_token_required(self, client, supplied):
        headers = {"X-Internal-Token": supplied} if supplied else {}

        response = client.post(
            "/units/US_PROXY/generate",
            json={"endpoint": "generateContent", "requestBody": {}},
            headers=headers,
        )

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    def test_internal_token_optional(self):
        client = TestClient(create_app(config=unit_config()))

        with respx.mock:
            respx.post(GENERATE_URL).mock(return_value=httpx.Response(200, json={}))

            response = client.post(
                "/units/US_PROXY/generate",
                json={"endpoint": "generateContent", "requestBody": {}},
            )

        assert response.status_code == 200

    def test_missing_api_key(self):
        service = GeminiProxyService(config=unit_config(gemini_api_key=""))
        client = TestClient(service.app)

        response = client.post(
            "/units/US_PROXY/generate",
            json={"endpoint": "generateContent", "requestBody": {}},
        )

        assert response.status_code == 500
        assert response.json() == {"error": "API key not configured"}

"""
Unit tests for the gateway route table and bearer-token authorization.
"""

import json

import pytest
from fastapi.responses import JSONResponse
from starlette.requests import Request

from service_gateway.app.auth.tokens import TokenService
from service_gateway.app.routing.router import AuthContext, RequestRouter, Route
from shared.errors import AuthFailureReason, AuthenticationError, NotFoundError, ValidationError
from shared.test_helpers import TEST_JWT_SECRET, FakeClock, RawTokenFactory


def build_request(method="GET", path="/api/server-time", headers=None):
    raw_headers = [(name.lower().encode(), value.encode()) for name, value in (headers or {}).items()]
    return Request({
        "type": "http",
        "method": method,
        "path": path,
        "root_path": "",
        "query_string": b"",
        "headers": raw_headers,
        "client": ("203.0.113.7", 51234),
        "server": ("gateway.test", 80),
        "scheme": "http",
    })


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


class TestRequestRouter:
    """Test cases for RequestRouter."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def token_service(self, clock):
        return TokenService(TEST_JWT_SECRET, clock=clock)

    @pytest.fixture
    def raw_tokens(self):
        return RawTokenFactory()

    @pytest.fixture
    def seen(self):
        return []

    @pytest.fixture
    def router(self, token_service, seen):
        async def public(request, auth):
            seen.append(auth)
            return {"public": True}

        async def protected(request, auth):
            seen.append(auth)
            return JSONResponse(status_code=201, content={"deviceId": auth.device_id})

        async def broken(request, auth):
            raise RuntimeError("boom")

        async def rejecting(request, auth):
            raise ValidationError("Missing parameters", "lat and lon are required")

        return RequestRouter(token_service, [
            Route("GET", "/health", public, name="health"),
            Route("GET", "/api/server-time", protected, protected=True, name="server_time"),
            Route("GET", "/broken", broken, name="broken"),
            Route("GET", "/rejecting", rejecting, name="rejecting"),
        ])

    def test_duplicate_route(self, token_service):
        async def handler(request, auth):
            return {}

        with pytest.raises(ValueError):
            RequestRouter(token_service, [
                Route("GET", "/health", handler),
                Route("get", "/health", handler),
            ])

    def test_match_exact(self, router):
        assert router.match("GET", "/health").name == "health"

    @pytest.mark.parametrize("method,path", [
        ("POST", "/health"),
        ("GET", "/health/"),
        ("GET", "/Health"),
        ("GET", "/unknown"),
    ])
    def test_match_miss(self, router, method, path):
        with pytest.raises(NotFoundError) as exc_info:
            router.match(method, path)

        assert exc_info.value.status_code == 404
        assert exc_info.value.error == "Not Found"

    def test_authorize_missing_header(self, router):
        with pytest.raises(AuthenticationError) as exc_info:
            router.authorize(build_request())

        error = exc_info.value
        assert error.reason is AuthFailureReason.MISSING
        assert error.error == "No valid token provided"
        assert error.message == "Authorization header with Bearer token is required"

    def test_authorize_non_bearer_scheme(self, router):
        with pytest.raises(AuthenticationError) as exc_info:
            router.authorize(build_request(headers={"Authorization": "Basic dXNlcjpwYXNz"}))

        assert exc_info.value.reason is AuthFailureReason.MISSING

    def test_authorize_valid(self, router, token_service):
        pair = token_service.issue_pair("device-123", "1.2.0")

        auth = router.authorize(build_request(headers=bearer(pair.access_token)))

        claims = token_service.verify(pair.access_token).claims
        assert auth == AuthContext(device_id="device-123", device_hash=claims["deviceHash"], jti=claims["jti"])

    def test_authorize_expired(self, router, token_service, clock):
        pair = token_service.issue_pair("device-123", "1.2.0")
        clock.advance(3601)

        with pytest.raises(AuthenticationError) as exc_info:
            router.authorize(build_request(headers=bearer(pair.access_token)))

        assert exc_info.value.reason is AuthFailureReason.EXPIRED
        assert exc_info.value.error == "Token expired"
        assert exc_info.value.message == "Please refresh your token"

    @pytest.mark.parametrize("token", ["garbage", "a.b.c"])
    def test_authorize_invalid(self, router, token):
        with pytest.raises(AuthenticationError) as exc_info:
            router.authorize(build_request(headers=bearer(token)))

        assert exc_info.value.error == "Invalid token"
        assert exc_info.value.message == "Authentication failed"

    def test_authorize_rejects_refresh_token(self, router, token_service):
        pair = token_service.issue_pair("device-123", "1.2.0")

        with pytest.raises(AuthenticationError) as exc_info:
            router.authorize(build_request(headers=bearer(pair.refresh_token)))

        assert exc_info.value.reason is AuthFailureReason.WRONG_TYPE
        assert exc_info.value.error == "Invalid token"

    @pytest.mark.parametrize("missing", ["deviceId", "deviceHash"])
    def test_authorize_incomplete_payload(self, router, raw_tokens, clock, missing):
        claims = raw_tokens.access_claims(clock.now)
        del claims[missing]

        with pytest.raises(AuthenticationError) as exc_info:
            router.authorize(build_request(headers=bearer(raw_tokens.encode(claims))))

        assert exc_info.value.error == "Invalid token payload"
        assert exc_info.value.message == "Token missing required information"

    @pytest.mark.asyncio
    async def test_dispatch_public_route(self, router, seen):
        response = await router.dispatch(build_request(path="/health"))

        assert response.status_code == 200
        assert json.loads(response.body) == {"public": True}
        assert seen == [None]

    @pytest.mark.asyncio
    async def test_dispatch_protected_route(self, router, token_service, seen):
        pair = token_service.issue_pair("device-123", "1.2.0")

        response = await router.dispatch(build_request(headers=bearer(pair.access_token)))

        assert response.status_code == 201
        assert json.loads(response.body) == {"deviceId": "device-123"}
        assert seen[0].device_id == "device-123"

    @pytest.mark.asyncio
    async def test_dispatch_protected_route_without_token(self, router, seen):
        with pytest.raises(AuthenticationError):
            await router.dispatch(build_request())

        assert seen == []

    @pytest.mark.asyncio
    async def test_dispatch_unknown_route(self, router):
        with pytest.raises(NotFoundError):
            await router.dispatch(build_request(path="/nope"))

    @pytest.mark.asyncio
    async def test_dispatch_handler_error(self, router):
        """Unexpected handler failures become a generic 500."""
        response = await router.dispatch(build_request(path="/broken"))

        assert response.status_code == 500
        assert json.loads(response.body) == {"error": "Internal server error"}
        assert response.headers["access-control-allow-origin"] == "*"

    @pytest.mark.asyncio
    async def test_dispatch_propagates_gateway_errors(self, router):
        with pytest.raises(ValidationError):
            await router.dispatch(build_request(path="/rejecting"))

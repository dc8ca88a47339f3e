"""
Route handlers for the gateway.

Each handler receives the request and, for protected routes, the verified
``AuthContext``. Input is validated here, after authorization and before any
upstream call.
"""

import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from shared.config import ServiceConfig
from shared.errors import AuthenticationError, ValidationError
from shared.http import read_json_body
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from shared.upstreams import UpstreamKind, UpstreamResponse, is_allowed_operation
from service_gateway.app.auth.tokens import TokenFailure, TokenService
from service_gateway.app.proxy.dispatcher import ProxyDispatcher
from service_gateway.app.routing.router import AuthContext, Route


def relay(upstream: UpstreamResponse) -> JSONResponse:
    return JSONResponse(status_code=upstream.status_code, content=upstream.body)


def format_iso(value: datetime) -> str:
    """Format datetime values as ISO-8601 strings with millisecond precision."""
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class GatewayHandlers:
    """Handlers behind the gateway's static route table."""

    def __init__(self,
                 config: ServiceConfig,
                 token_service: TokenService,
                 dispatcher: ProxyDispatcher,
                 metrics: Optional[MetricsCollector] = None,
                 clock: Callable[[], float] = time.time):
        self.config = config
        self.token_service = token_service
        self.dispatcher = dispatcher
        self.metrics = metrics
        self.clock = clock
        self.logger = get_logger("gateway.handlers")

    def routes(self) -> List[Route]:
        return [
            Route("GET", "/health", self.health, name="health"),
            Route("POST", "/api/auth/token", self.issue_token, name="issue_token"),
            Route("POST", "/api/auth/refresh", self.refresh_token, name="refresh_token"),
            Route("POST", "/api/gemini-proxy", self.gemini_proxy, protected=True, name="gemini_proxy"),
            Route("GET", "/api/kakao-local", self.kakao_local, protected=True, name="kakao_local"),
            Route("GET", "/weather", self.weather, protected=True, name="weather"),
            Route("GET", "/api/config", self.client_config, name="client_config"),
            Route("GET", "/api/server-time", self.server_time, protected=True, name="server_time"),
        ]

    async def health(self, request: Request, auth: Optional[AuthContext]) -> Dict[str, Any]:
        return {"status": "OK", "message": "ReviewAI API Proxy Server is running"}

    async def issue_token(self, request: Request, auth: Optional[AuthContext]) -> Dict[str, Any]:
        body = await read_json_body(request)
        device_id = body.get("deviceId")
        app_version = body.get("appVersion")
        device_info = body.get("deviceInfo")

        if not device_id or not app_version:
            raise ValidationError("Missing required fields", "deviceId and appVersion are required")

        device_id = str(device_id)
        app_version = str(app_version)

        # Plain string comparison: "10.0.0" sorts below "9.0.0"
        min_app_version = self.config.min_app_version
        if app_version < min_app_version:
            self.logger.info("Rejected outdated app version", app_version=app_version, minimum=min_app_version)
            raise ValidationError("App version too old", f"Minimum app version required: {min_app_version}")

        pair = self.token_service.issue_pair(
            device_id,
            app_version,
            str(device_info) if device_info is not None else None,
        )
        self._count_issued("access")
        self._count_issued("refresh")
        return {
            "accessToken": pair.access_token,
            "refreshToken": pair.refresh_token,
            "expiresIn": pair.expires_in,
            "tokenType": pair.token_type,
        }

    async def refresh_token(self, request: Request, auth: Optional[AuthContext]) -> Dict[str, Any]:
        body = await read_json_body(request)
        refresh_token = body.get("refreshToken")
        if not refresh_token or not isinstance(refresh_token, str):
            raise ValidationError("Refresh token is required")

        result = self.token_service.refresh(refresh_token)
        if result.error is TokenFailure.WRONG_TYPE:
            raise ValidationError("Invalid token type")
        if not result.valid:
            raise AuthenticationError(result.error, error="Invalid refresh token", message="Please re-authenticate")

        self._count_issued("access")
        return {
            "accessToken": result.access_token,
            "expiresIn": result.expires_in,
            "tokenType": result.token_type,
        }

    async def gemini_proxy(self, request: Request, auth: Optional[AuthContext]) -> JSONResponse:
        body = await read_json_body(request)
        # Unknown operations are rejected by the dispatcher as "Invalid endpoint"
        if is_allowed_operation(body.get("endpoint")) and "requestBody" not in body:
            raise ValidationError("Missing required fields", "endpoint and requestBody are required")

        upstream = await self.dispatcher.forward(UpstreamKind.GEMINI, auth, body)
        return relay(upstream)

    async def kakao_local(self, request: Request, auth: Optional[AuthContext]) -> JSONResponse:
        query = request.query_params
        if not query.get("query") or not query.get("x") or not query.get("y"):
            raise ValidationError(
                "Missing required parameters",
                "query, x (longitude), and y (latitude) are required",
            )

        params = {
            name: query.get(name)
            for name in ("query", "x", "y", "radius", "page", "size", "category_group_code")
        }
        upstream = await self.dispatcher.forward(UpstreamKind.KAKAO_LOCAL, auth, params)
        return relay(upstream)

    async def weather(self, request: Request, auth: Optional[AuthContext]) -> JSONResponse:
        lat = request.query_params.get("lat")
        lon = request.query_params.get("lon")
        if not lat or not lon:
            raise ValidationError("Missing parameters", "lat and lon are required")

        upstream = await self.dispatcher.forward(UpstreamKind.WEATHER, auth, {"lat": lat, "lon": lon})
        return relay(upstream)

    async def client_config(self, request: Request, auth: Optional[AuthContext]) -> Dict[str, Any]:
        return {
            "adMob": {
                "ios": {
                    "rewarded": self.config.admob_ios_rewarded or "",
                    "banner": self.config.admob_ios_banner or "",
                },
                "android": {
                    "rewarded": self.config.admob_android_rewarded or "",
                    "banner": self.config.admob_android_banner or "",
                },
            },
        }

    async def server_time(self, request: Request, auth: Optional[AuthContext]) -> Dict[str, Any]:
        now = self.clock()
        return {
            "serverTime": format_iso(datetime.fromtimestamp(now, tz=timezone.utc)),
            "timestamp": int(now * 1000),
            "timezone": "UTC",
        }

    def _count_issued(self, token_type: str) -> None:
        if self.metrics is not None:
            self.metrics.increment_counter("tokens_issued_total", token_type=token_type)

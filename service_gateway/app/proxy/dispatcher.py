"""
Outbound dispatch of authorized requests to third-party APIs.
"""

from typing import Any, Dict, Optional

from shared.config import ServiceConfig
from shared.errors import ConfigurationError, ValidationError
from shared.logging import get_logger
from shared.upstreams import UpstreamKind, UpstreamResponse, is_allowed_operation
from service_gateway.app.adapters.kakao_local_client import KakaoLocalClient
from service_gateway.app.adapters.weather_client import WeatherClient
from service_gateway.app.proxy.region_pin import SingletonRegionPin
from service_gateway.app.routing.router import AuthContext

KAKAO_DEFAULTS = {"radius": "1000", "page": "1", "size": "15"}


class ProxyDispatcher:
    """Builds and sends upstream calls with server-held keys."""

    def __init__(self,
                 config: ServiceConfig,
                 kakao_client: KakaoLocalClient,
                 weather_client: WeatherClient,
                 region_pin: SingletonRegionPin):
        self.config = config
        self.kakao_client = kakao_client
        self.weather_client = weather_client
        self.region_pin = region_pin
        self.logger = get_logger("gateway.dispatcher")

    async def forward(self, kind: UpstreamKind, auth: Optional[AuthContext], params: Dict[str, Any]) -> UpstreamResponse:
        """Forward ``params`` to the upstream named by ``kind``."""
        self.logger.info(
            "Forwarding request",
            upstream=kind.value,
            device_id=auth.device_id if auth else None
        )

        if kind is UpstreamKind.GEMINI:
            return await self._forward_gemini(params)
        if kind is UpstreamKind.KAKAO_LOCAL:
            return await self._forward_kakao_local(params)
        if kind is UpstreamKind.WEATHER:
            return await self._forward_weather(params)
        raise ValueError(f"Unknown upstream: {kind}")

    async def _forward_gemini(self, params: Dict[str, Any]) -> UpstreamResponse:
        operation = params.get("endpoint")
        if not is_allowed_operation(operation):
            self.logger.warning("Rejected generative-AI operation", operation=str(operation)[:100])
            raise ValidationError("Invalid endpoint")

        return await self.region_pin.forward({
            "endpoint": operation,
            "requestBody": params.get("requestBody"),
        })

    async def _forward_kakao_local(self, params: Dict[str, Any]) -> UpstreamResponse:
        api_key = self.config.kakao_api_key
        if not api_key:
            self.logger.error("Kakao API key not configured")
            raise ConfigurationError()

        upstream_params = {
            "query": params["query"],
            "x": params["x"],
            "y": params["y"],
            "radius": params.get("radius") or KAKAO_DEFAULTS["radius"],
            "page": params.get("page") or KAKAO_DEFAULTS["page"],
            "size": params.get("size") or KAKAO_DEFAULTS["size"],
            "sort": "distance",
        }
        if params.get("category_group_code"):
            upstream_params["category_group_code"] = params["category_group_code"]

        return await self.kakao_client.search_keyword(api_key, upstream_params)

    async def _forward_weather(self, params: Dict[str, Any]) -> UpstreamResponse:
        api_key = self.config.open_weather_map_api_key
        if not api_key:
            self.logger.error("OpenWeatherMap API key not configured")
            raise ConfigurationError()

        return await self.weather_client.current_weather(api_key, params["lat"], params["lon"])

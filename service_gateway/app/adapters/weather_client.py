"""
OpenWeatherMap current-weather client for Gateway.
"""

from typing import Optional

import httpx

from shared.errors import UpstreamError
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from shared.upstreams import UpstreamKind, UpstreamResponse


class WeatherClient:
    """Client for the OpenWeatherMap current weather API."""

    def __init__(self, base_url: str, timeout: float = 30.0, metrics: Optional[MetricsCollector] = None):
        self.base_url = base_url
        self.timeout = timeout
        self.metrics = metrics
        self.logger = get_logger("gateway.weather_client")

    async def current_weather(self, api_key: str, lat: str, lon: str) -> UpstreamResponse:
        """Fetch current conditions in metric units with Korean descriptions."""
        params = {
            "lat": lat,
            "lon": lon,
            "appid": api_key,
            "units": "metric",
            "lang": "kr",
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(self.base_url, params=params)
        except httpx.HTTPError as exc:
            self._record("unreachable")
            self.logger.error("Weather API unreachable", error=str(exc))
            raise UpstreamError(
                error="Upstream service unavailable",
                message=str(exc) or type(exc).__name__,
            ) from exc

        if response.is_success:
            self._record("success")
            return UpstreamResponse.from_httpx(response)

        self._record("error")
        self.logger.error("OpenWeatherMap API error", status_code=response.status_code, response=response.text)
        raise UpstreamError(
            error="Weather API error",
            message=f"Upstream responded with status {response.status_code}",
            details=response.text,
            status_code=response.status_code,
        )

    def _record(self, outcome: str) -> None:
        if self.metrics is not None:
            self.metrics.record_upstream_call(UpstreamKind.WEATHER.value, outcome)

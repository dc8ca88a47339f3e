"""
Kakao Local keyword search client for Gateway.
"""

from typing import Any, Dict, Optional

import httpx

from shared.errors import UpstreamError
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from shared.upstreams import UpstreamKind, UpstreamResponse


class KakaoLocalClient:
    """Client for the Kakao Local keyword search API."""

    def __init__(self, base_url: str, timeout: float = 30.0, metrics: Optional[MetricsCollector] = None):
        self.base_url = base_url
        self.timeout = timeout
        self.metrics = metrics
        self.logger = get_logger("gateway.kakao_client")

    async def search_keyword(self, api_key: str, params: Dict[str, Any]) -> UpstreamResponse:
        """Run a keyword search sorted by distance from ``(x, y)``."""
        headers = {
            "Authorization": f"KakaoAK {api_key}",
            "Content-Type": "application/json",
        }
        self.logger.info("Calling Kakao Local API", params=params)

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(self.base_url, params=params, headers=headers)
        except httpx.HTTPError as exc:
            self._record("unreachable")
            self.logger.error("Kakao API unreachable", error=str(exc))
            raise UpstreamError(
                error="Upstream service unavailable",
                message=str(exc) or type(exc).__name__,
            ) from exc

        if response.is_success:
            self._record("success")
            return UpstreamResponse.from_httpx(response)

        self._record("error")
        self.logger.error("Kakao API error", status_code=response.status_code, response=response.text)
        raise UpstreamError(
            error="Kakao API error",
            message=f"Upstream responded with status {response.status_code}",
            details=response.text,
            status_code=response.status_code,
        )

    def _record(self, outcome: str) -> None:
        if self.metrics is not None:
            self.metrics.record_upstream_call(UpstreamKind.KAKAO_LOCAL.value, outcome)

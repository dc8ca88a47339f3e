"""
Client for the region-pinned generative-AI unit.
"""

from typing import Any, Dict, Optional

import httpx

from shared.errors import UpstreamError
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from shared.upstreams import UpstreamKind, UpstreamResponse

INTERNAL_TOKEN_HEADER = "X-Internal-Token"


class PinnedUnitClient:
    """Sends generative-AI payloads to a pinned unit and relays its answer.

    The unit shapes its own error bodies, so non-success answers are returned
    as-is rather than raised. Only transport failures raise.
    """

    def __init__(self,
                 timeout: float = 30.0,
                 internal_token: str = "",
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 metrics: Optional[MetricsCollector] = None):
        self.timeout = timeout
        self.internal_token = internal_token
        self.transport = transport
        self.metrics = metrics
        self.logger = get_logger("gateway.pinned_unit_client")

    async def generate(self, base_url: str, unit_name: str, payload: Dict[str, Any]) -> UpstreamResponse:
        url = f"{base_url.rstrip('/')}/units/{unit_name}/generate"
        headers = {}
        if self.internal_token:
            headers[INTERNAL_TOKEN_HEADER] = self.internal_token

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            self._record("unreachable")
            self.logger.error("Pinned unit unreachable", unit=unit_name, url=url, error=str(exc))
            raise UpstreamError(
                error="Upstream service unavailable",
                message=str(exc) or type(exc).__name__,
            ) from exc

        self._record("success" if response.is_success else "error")
        return UpstreamResponse.from_httpx(response)

    def _record(self, outcome: str) -> None:
        if self.metrics is not None:
            self.metrics.record_upstream_call(UpstreamKind.GEMINI.value, outcome)

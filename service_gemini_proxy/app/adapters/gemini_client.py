"""
Gemini generative-language API client.
"""

from typing import Any, Optional

import httpx

from shared.errors import UpstreamError
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from shared.upstreams import UpstreamKind, UpstreamResponse


class GeminiClient:
    """Calls ``{base_url}/{model}:{operation}`` with the server-held key."""

    def __init__(self, base_url: str, model: str, timeout: float = 30.0,
                 metrics: Optional[MetricsCollector] = None):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.metrics = metrics
        self.logger = get_logger("gemini_proxy.gemini_client")

    def operation_url(self, operation: str) -> str:
        return f"{self.base_url}/{self.model}:{operation}"

    async def call(self, api_key: str, operation: str, request_body: Any) -> UpstreamResponse:
        url = self.operation_url(operation)
        # The key travels in a header so it never shows up in logged URLs
        headers = {"Content-Type": "application/json", "x-goog-api-key": api_key}
        self.logger.info("Calling Gemini API", url=url)

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, json=request_body, headers=headers)
        except httpx.HTTPError as exc:
            self._record("unreachable")
            self.logger.error("Gemini API unreachable", error=str(exc))
            raise UpstreamError(
                error="Upstream service unavailable",
                message=str(exc) or type(exc).__name__,
            ) from exc

        if response.is_success:
            self._record("success")
            return UpstreamResponse.from_httpx(response)

        self._record("error")
        self.logger.error("Gemini API error", status_code=response.status_code, response=response.text)
        raise UpstreamError(
            error="Gemini API error",
            message=f"Upstream responded with status {response.status_code}",
            details=response.text,
            status_code=response.status_code,
        )

    def _record(self, outcome: str) -> None:
        if self.metrics is not None:
            self.metrics.record_upstream_call(UpstreamKind.GEMINI.value, outcome)

"""
The pinned generative-AI unit.
"""

import asyncio
from typing import Any, Dict, Optional

from shared.errors import ConfigurationError, ValidationError
from shared.logging import get_logger
from shared.upstreams import UpstreamResponse, is_allowed_operation
from service_gemini_proxy.app.adapters.gemini_client import GeminiClient


class PinnedGeminiUnit:
    """Runs generative-AI calls one at a time under a fixed logical name.

    Calls from every gateway instance queue on one lock, so at most one
    upstream request is in flight from this unit.
    """

    def __init__(self, name: str, api_key: str, client: GeminiClient):
        self.name = name
        self.api_key = api_key
        self.client = client
        self.logger = get_logger("gemini_proxy.unit")
        self._lock: Optional[asyncio.Lock] = None
        self.calls_handled = 0

    async def handle(self, payload: Dict[str, Any]) -> UpstreamResponse:
        operation = payload.get("endpoint")
        if not is_allowed_operation(operation):
            self.logger.warning("Rejected operation", operation=str(operation)[:100])
            raise ValidationError("Invalid endpoint")

        if not self.api_key:
            self.logger.error("GEMINI_API_KEY not configured")
            raise ConfigurationError()

        # Created on first use so it belongs to the serving event loop
        if self._lock is None:
            self._lock = asyncio.Lock()

        async with self._lock:
            self.calls_handled += 1
            return await self.client.call(self.api_key, operation, payload.get("requestBody"))

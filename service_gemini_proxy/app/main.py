"""
Pinned generative-AI unit service.
"""

import hmac
from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.errors import AuthFailureReason, AuthenticationError, NotFoundError
from shared.http import read_json_body
from service_gemini_proxy.app.adapters import GeminiClient
from service_gemini_proxy.app.unit import PinnedGeminiUnit

INTERNAL_TOKEN_HEADER = "X-Internal-Token"


class GeminiProxyService(BaseService):
    """Hosts the single pinned unit for generative-AI calls."""

    def __init__(self, config: Optional[ServiceConfig] = None):
        super().__init__("gemini_proxy", 8020, config=config)

    def _setup_components(self):
        self.gemini_client = GeminiClient(
            self.config.gemini_api_url,
            self.config.gemini_model,
            timeout=self.config.upstream_timeout_seconds,
            metrics=self.metrics,
        )
        self.unit = PinnedGeminiUnit(
            self.config.pinned_unit_name,
            self.config.gemini_api_key,
            self.gemini_client,
        )

    def _setup_routes(self):
        super()._setup_routes()

        @self.app.post("/units/{unit_name}/generate")
        async def generate(unit_name: str, request: Request):
            """Run one generative-AI operation on the pinned unit."""
            if unit_name != self.unit.name:
                raise NotFoundError()
            self._check_internal_token(request)

            payload = await read_json_body(request)
            upstream = await self.unit.handle(payload)
            return JSONResponse(status_code=upstream.status_code, content=upstream.body)

    def _check_internal_token(self, request: Request) -> None:
        expected = self.config.internal_token
        if not expected:
            return

        supplied = request.headers.get(INTERNAL_TOKEN_HEADER)
        if not supplied:
            raise AuthenticationError(AuthFailureReason.MISSING, error="Unauthorized", message=None)
        if not hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8")):
            raise AuthenticationError(AuthFailureReason.INVALID_SIGNATURE, error="Unauthorized", message=None)

    async def _check_dependencies(self):
        return {"gemini_api_key": "ok" if self.config.gemini_api_key else "missing"}


def create_app(config: Optional[ServiceConfig] = None):
    """Create FastAPI application."""
    service = GeminiProxyService(config=config)
    return service.app


if __name__ == "__main__":
    service = GeminiProxyService()
    service.run()

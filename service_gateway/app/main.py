"""
Edge gateway service for the ReviewAI mobile client.
"""

import time
from typing import Any, Callable, Dict, Optional

from fastapi import Request, Response

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.errors import RateLimitError, error_response
from service_gateway.app.adapters import KakaoLocalClient, PinnedUnitClient, WeatherClient
from service_gateway.app.auth import TokenService
from service_gateway.app.domain import GatewayHandlers
from service_gateway.app.proxy import ProxyDispatcher, SingletonRegionPin, UnitDirectory
from service_gateway.app.ratelimit import FixedWindowRateLimiter, RateLimitDecision, RateLimitMiddleware
from service_gateway.app.routing import RequestRouter

ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD"]


class GatewayService(BaseService):
    """API Gateway service implementation."""

    # Every path belongs to the route table, docs included
    expose_docs = False

    def __init__(self,
                 config: Optional[ServiceConfig] = None,
                 redis_client: Optional[Any] = None,
                 pinned_unit_client: Optional[PinnedUnitClient] = None,
                 clock: Callable[[], float] = time.time):
        self._redis_client = redis_client
        self._pinned_unit_client = pinned_unit_client
        self._clock = clock
        super().__init__("gateway", 8000, config=config)

    def _setup_components(self):
        config = self.config
        timeout = config.upstream_timeout_seconds

        self.token_service = TokenService(
            config.jwt_secret,
            issuer=config.token_issuer,
            audience=config.token_audience,
            access_ttl_seconds=config.access_token_ttl_seconds,
            refresh_ttl_seconds=config.refresh_token_ttl_seconds,
            clock=self._clock,
        )
        self.rate_limiter = FixedWindowRateLimiter(
            config.redis_url,
            max_requests=config.rate_limit_max_requests,
            window_seconds=config.rate_limit_window_seconds,
            ttl_grace_seconds=config.rate_limit_ttl_grace_seconds,
            redis_client=self._redis_client,
            clock=self._clock,
        )
        self.rate_limit_middleware = RateLimitMiddleware(self.rate_limiter, client_ip_header=config.client_ip_header)

        self.kakao_client = KakaoLocalClient(config.kakao_local_url, timeout=timeout, metrics=self.metrics)
        self.weather_client = WeatherClient(config.weather_api_url, timeout=timeout, metrics=self.metrics)
        self.pinned_unit_client = self._pinned_unit_client or PinnedUnitClient(
            timeout=timeout,
            internal_token=config.internal_token,
            metrics=self.metrics,
        )
        self.unit_directory = UnitDirectory(
            config.redis_url,
            config.region_endpoints,
            redis_client=self._redis_client,
            clock=self._clock,
        )
        self.region_pin = SingletonRegionPin(
            config.pinned_unit_name,
            config.pinned_unit_location_hint,
            self.unit_directory,
            self.pinned_unit_client,
        )
        self.dispatcher = ProxyDispatcher(config, self.kakao_client, self.weather_client, self.region_pin)
        self.handlers = GatewayHandlers(
            config,
            self.token_service,
            self.dispatcher,
            metrics=self.metrics,
            clock=self._clock,
        )
        self.router = RequestRouter(self.token_service, self.handlers.routes(), metrics=self.metrics)

    def _setup_routes(self):
        """Send every path through the gateway's own route table."""
        @self.app.api_route("/{full_path:path}", methods=ALL_METHODS, include_in_schema=False)
        async def gateway_entry(request: Request) -> Response:
            return await self.router.dispatch(request)

        self.app.state.gateway_service = self

    def _setup_service_middleware(self):
        """Throttle every request before route matching."""

        @self.app.middleware("http")
        async def enforce_rate_limit(request: Request, call_next):
            decision = await self.rate_limit_middleware.check_request(request)
            headers = self._rate_limit_headers(decision)
            if not decision.allowed:
                self.metrics.increment_counter("rate_limit_hits_total")
                headers["Retry-After"] = str(decision.reset_in_seconds)
                return error_response(RateLimitError(), headers=headers)

            response = await call_next(request)
            response.headers.update(headers)
            return response

    def _rate_limit_headers(self, decision: RateLimitDecision) -> Dict[str, str]:
        """Propagate rate limiting metadata via standard headers."""
        return {
            "X-RateLimit-Limit": str(decision.limit),
            "X-RateLimit-Remaining": str(decision.remaining),
            "X-RateLimit-Reset": str(decision.reset_in_seconds),
        }


def create_app(config: Optional[ServiceConfig] = None, **kwargs):
    """Create FastAPI application."""
    service = GatewayService(config=config, **kwargs)
    return service.app


if __name__ == "__main__":
    service = GatewayService()
    service.run()

"""
Static request routing and bearer-token authorization for the gateway.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional, Tuple

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from shared.errors import (
    AuthFailureReason,
    AuthenticationError,
    GatewayException,
    NotFoundError,
    internal_error_response,
)
from shared.logging import get_logger, set_device_context
from shared.metrics import MetricsCollector
from service_gateway.app.auth.tokens import TokenService

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class AuthContext:
    """Identity of the device behind a verified access token."""
    device_id: str
    device_hash: str
    jti: Optional[str] = None


Handler = Callable[[Request, Optional[AuthContext]], Awaitable[Any]]


@dataclass(frozen=True)
class Route:
    method: str
    path: str
    handler: Handler
    protected: bool = False
    name: str = ""


class RequestRouter:
    """Maps exact ``(method, path)`` pairs to handlers."""

    def __init__(self, token_service: TokenService, routes: Iterable[Route],
                 metrics: Optional[MetricsCollector] = None):
        self.token_service = token_service
        self.metrics = metrics
        self.logger = get_logger("gateway.router")
        self._table: Dict[Tuple[str, str], Route] = {}
        for route in routes:
            key = (route.method.upper(), route.path)
            if key in self._table:
                raise ValueError(f"Duplicate route: {route.method} {route.path}")
            self._table[key] = route

    def match(self, method: str, path: str) -> Route:
        route = self._table.get((method.upper(), path))
        if route is None:
            raise NotFoundError()
        return route

    def authorize(self, request: Request) -> AuthContext:
        """Verify the bearer token on ``request`` and derive its auth context."""
        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith(BEARER_PREFIX):
            self._count_validation("missing")
            raise AuthenticationError(
                AuthFailureReason.MISSING,
                error="No valid token provided",
                message="Authorization header with Bearer token is required",
            )

        verification = self.token_service.verify(auth_header[len(BEARER_PREFIX):])
        claims = verification.claims or {}
        failure = verification.error
        # Refresh tokens are not bearer credentials
        if failure is None and claims.get("type") is not None:
            failure = AuthFailureReason.WRONG_TYPE

        if failure is AuthFailureReason.EXPIRED:
            self._count_validation(failure.value)
            raise AuthenticationError(failure, error="Token expired", message="Please refresh your token")
        if failure is not None:
            self._count_validation(failure.value)
            self.logger.warning("Bearer token rejected", reason=failure.value)
            raise AuthenticationError(failure)

        device_id = claims.get("deviceId")
        device_hash = claims.get("deviceHash")
        if not device_id or not device_hash:
            self._count_validation(AuthFailureReason.MALFORMED.value)
            raise AuthenticationError(
                AuthFailureReason.MALFORMED,
                error="Invalid token payload",
                message="Token missing required information",
            )

        self._count_validation("valid")
        set_device_context(device_id)
        return AuthContext(device_id=device_id, device_hash=device_hash, jti=claims.get("jti"))

    async def dispatch(self, request: Request) -> Response:
        """Match, authorize when required, and run the handler."""
        route = self.match(request.method, request.url.path)
        auth = self.authorize(request) if route.protected else None

        try:
            result = await route.handler(request, auth)
        except GatewayException:
            raise
        except Exception as e:
            self.logger.error("Handler failed", route=route.name, error=str(e), exc_info=True)
            return internal_error_response()

        if isinstance(result, Response):
            return result
        return JSONResponse(content=result)

    def _count_validation(self, status: str) -> None:
        if self.metrics is not None:
            self.metrics.increment_counter("token_validations_total", status=status)

"""
Fixed-window rate limiter for the Gateway service.

Each client gets one record ``{count, window_reset_at}`` in the shared Redis
store. The read-modify-write is a plain GET followed by SET: concurrent
requests from one client may both read the same count and undercount by the
number of racers. The limiter is a throttle, not a security boundary, so the
approximation stands.
"""

import math
import time
from typing import Any, Callable, Optional

import redis.asyncio as redis
from fastapi import Request
from pydantic import BaseModel, ValidationError as PydanticValidationError

from shared.logging import get_logger


class RateLimitRecord(BaseModel):
    """Per-client counter for the current window."""
    count: int
    window_reset_at: float


class RateLimitDecision(BaseModel):
    """Result of a rate limit check."""
    allowed: bool
    current_count: int
    limit: int
    remaining: int
    reset_in_seconds: int
    error: Optional[str] = None


class FixedWindowRateLimiter:
    """Distributed fixed-window request counter using Redis."""

    def __init__(self,
                 redis_url: str,
                 max_requests: int = 100,
                 window_seconds: int = 900,
                 ttl_grace_seconds: int = 60,
                 redis_client: Optional[Any] = None,
                 clock: Callable[[], float] = time.time):
        self.redis_url = redis_url
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.ttl_grace_seconds = ttl_grace_seconds
        self.clock = clock
        self.logger = get_logger("gateway.rate_limiter")
        self._redis = redis_client

    async def _get_redis(self):
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url)
        return self._redis

    def _make_key(self, client_id: str) -> str:
        """Generate rate limit key."""
        return f"rate_limit:{client_id}"

    async def _load(self, redis_client, key: str) -> Optional[RateLimitRecord]:
        raw = await redis_client.get(key)
        if raw is None:
            return None
        try:
            return RateLimitRecord.model_validate_json(raw)
        except PydanticValidationError:
            self.logger.warning("Discarding unreadable rate limit record", key=key)
            return None

    async def _store(self, redis_client, key: str, record: RateLimitRecord, ttl: int) -> None:
        await redis_client.set(key, record.model_dump_json(), ex=max(1, ttl))

    def _fail_open(self, error: str) -> RateLimitDecision:
        return RateLimitDecision(
            allowed=True,
            current_count=0,
            limit=self.max_requests,
            remaining=self.max_requests,
            reset_in_seconds=self.window_seconds,
            error=error,
        )

    async def check_rate_limit(self, client_id: str) -> RateLimitDecision:
        """Count one request for ``client_id`` and decide whether it may proceed."""
        try:
            redis_client = await self._get_redis()
        except Exception as e:
            self.logger.error("Rate limit check error", error=str(e))
            return self._fail_open("Redis unavailable")

        key = self._make_key(client_id)
        now = self.clock()

        try:
            record = await self._load(redis_client, key)

            if record is None or now > record.window_reset_at:
                record = RateLimitRecord(count=1, window_reset_at=now + self.window_seconds)
                await self._store(redis_client, key, record, self.window_seconds + self.ttl_grace_seconds)
                return self._decision(True, record, now)

            if record.count >= self.max_requests:
                self.logger.warning(
                    "Rate limit exceeded",
                    client_id=client_id,
                    current_count=record.count,
                    limit=self.max_requests
                )
                return self._decision(False, record, now)

            record.count += 1
            remaining_window = math.ceil(record.window_reset_at - now)
            await self._store(redis_client, key, record, remaining_window + self.ttl_grace_seconds)
            return self._decision(True, record, now)

        except Exception as e:
            self.logger.error("Rate limit check error", error=str(e))
            return self._fail_open("Redis unavailable")

    async def allow(self, client_id: str) -> bool:
        """Whether a request from ``client_id`` is within its window budget."""
        decision = await self.check_rate_limit(client_id)
        return decision.allowed

    def _decision(self, allowed: bool, record: RateLimitRecord, now: float) -> RateLimitDecision:
        return RateLimitDecision(
            allowed=allowed,
            current_count=record.count,
            limit=self.max_requests,
            remaining=max(0, self.max_requests - record.count),
            reset_in_seconds=max(0, math.ceil(record.window_reset_at - now)),
        )

    async def reset_rate_limit(self, client_id: str) -> bool:
        """Reset rate limit for a client."""
        try:
            redis_client = await self._get_redis()
            await redis_client.delete(self._make_key(client_id))

            self.logger.info("Rate limit reset", client_id=client_id)
            return True

        except Exception as e:
            self.logger.error("Rate limit reset error", error=str(e))
            return False


class RateLimitMiddleware:
    """Applies the rate limiter to inbound requests."""

    UNKNOWN_CLIENT = "unknown"

    def __init__(self, rate_limiter: FixedWindowRateLimiter, client_ip_header: str = "CF-Connecting-IP"):
        self.rate_limiter = rate_limiter
        self.client_ip_header = client_ip_header
        self.logger = get_logger("gateway.rate_limit_middleware")

    async def check_request(self, request: Request) -> RateLimitDecision:
        """Check rate limit for request."""
        return await self.rate_limiter.check_rate_limit(self._get_client_id(request))

    def _get_client_id(self, request: Request) -> str:
        """Derive the caller identity from the trusted edge header or the socket peer."""
        client_ip = request.headers.get(self.client_ip_header)
        if client_ip and client_ip.strip():
            return client_ip.strip()

        if request.client and request.client.host:
            return request.client.host
        return self.UNKNOWN_CLIENT

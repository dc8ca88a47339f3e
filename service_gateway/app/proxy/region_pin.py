"""
Singleton region pinning for generative-AI calls.

The generative-AI upstream refuses traffic from some regions. Every gateway
instance therefore forwards those calls to one long-lived unit, addressed by
a fixed logical name and placed in an allowed region. The name-to-unit
binding lives in the shared store so all instances agree on it; the first
instance to bind wins.
"""

import time
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional

import redis.asyncio as redis
from pydantic import BaseModel, ValidationError as PydanticValidationError

from shared.errors import ConfigurationError
from shared.logging import get_logger
from shared.upstreams import UpstreamResponse
from service_gateway.app.adapters.pinned_unit_client import PinnedUnitClient


class PinState(str, Enum):
    UNBOUND = "unbound"
    BOUND = "bound"


class UnitBinding(BaseModel):
    """Where a logical unit name resolves to."""
    name: str
    location_hint: str
    url: str
    bound_at: float


class UnitDirectory:
    """Resolves logical unit names to regional endpoints via the shared store."""

    def __init__(self,
                 redis_url: str,
                 region_endpoints: Mapping[str, str],
                 redis_client: Optional[Any] = None,
                 clock: Callable[[], float] = time.time):
        self.redis_url = redis_url
        self.region_endpoints = dict(region_endpoints)
        self.clock = clock
        self.logger = get_logger("gateway.unit_directory")
        self._redis = redis_client

    async def _get_redis(self):
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url)
        return self._redis

    def _make_key(self, name: str) -> str:
        return f"pinned_unit:{name}"

    def _create_binding(self, name: str, location_hint: str) -> UnitBinding:
        url = self.region_endpoints.get(location_hint)
        if not url:
            raise ConfigurationError(
                "Pinned unit not configured",
                f"No endpoint configured for location hint '{location_hint}'",
            )
        return UnitBinding(name=name, location_hint=location_hint, url=url, bound_at=self.clock())

    async def resolve(self, name: str, location_hint: str) -> UnitBinding:
        """Return the binding for ``name``, creating it on first use."""
        key = self._make_key(name)

        try:
            redis_client = await self._get_redis()
            existing = await self._read(redis_client, key)
            if existing is not None:
                return existing

            binding = self._create_binding(name, location_hint)
            created = await redis_client.set(key, binding.model_dump_json(), nx=True)
            if created:
                self.logger.info("Pinned unit bound", unit=name, location_hint=location_hint, url=binding.url)
                return binding

            # Another instance bound it first
            existing = await self._read(redis_client, key)
            return existing if existing is not None else binding

        except ConfigurationError:
            raise
        except Exception as e:
            # Same name and hint always map to the same configured endpoint
            self.logger.warning("Unit directory unavailable, binding from configuration", unit=name, error=str(e))
            return self._create_binding(name, location_hint)

    async def _read(self, redis_client, key: str) -> Optional[UnitBinding]:
        raw = await redis_client.get(key)
        if raw is None:
            return None
        try:
            return UnitBinding.model_validate_json(raw)
        except PydanticValidationError:
            self.logger.warning("Discarding unreadable unit binding", key=key)
            return None


class SingletonRegionPin:
    """Funnels generative-AI payloads to one region-pinned unit."""

    def __init__(self,
                 name: str,
                 location_hint: str,
                 directory: UnitDirectory,
                 client: PinnedUnitClient):
        self.name = name
        self.location_hint = location_hint
        self.directory = directory
        self.client = client
        self.logger = get_logger("gateway.region_pin")
        self._binding: Optional[UnitBinding] = None

    @property
    def state(self) -> PinState:
        return PinState.BOUND if self._binding is not None else PinState.UNBOUND

    @property
    def binding(self) -> Optional[UnitBinding]:
        return self._binding

    async def bind(self) -> UnitBinding:
        if self._binding is None:
            self._binding = await self.directory.resolve(self.name, self.location_hint)
            self.logger.info("Region pin bound", unit=self.name, url=self._binding.url)
        return self._binding

    async def forward(self, payload: Dict[str, Any]) -> UpstreamResponse:
        """Send ``payload`` to the pinned unit instead of calling the upstream here."""
        binding = await self.bind()
        return await self.client.generate(binding.url, binding.name, payload)

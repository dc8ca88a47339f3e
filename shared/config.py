"""
Shared configuration management for the ReviewAI edge gateway.
"""

from typing import Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="EDGE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Shared key-value store (rate limit records, pinned unit bindings)
    redis_url: str = Field(default="redis://localhost:6379/0")

    # Token signing
    jwt_secret: str = Field(default="")
    token_issuer: str = Field(default="reviewai-api")
    token_audience: str = Field(default="reviewai-app")
    access_token_ttl_seconds: int = Field(default=3600)
    refresh_token_ttl_seconds: int = Field(default=7 * 24 * 3600)
    min_app_version: str = Field(default="1.0.0")

    # Rate limiting
    rate_limit_window_seconds: int = Field(default=15 * 60)
    rate_limit_max_requests: int = Field(default=100)
    rate_limit_ttl_grace_seconds: int = Field(default=60)
    # Caller address header set by the edge proxy
    client_ip_header: str = Field(default="CF-Connecting-IP")

    # Upstream APIs
    gemini_api_key: str = Field(default="")
    gemini_api_url: str = Field(default="https://generativelanguage.googleapis.com/v1beta/models")
    gemini_model: str = Field(default="gemini-2.5-flash-lite")
    kakao_api_key: str = Field(default="")
    kakao_local_url: str = Field(default="https://dapi.kakao.com/v2/local/search/keyword.json")
    open_weather_map_api_key: str = Field(default="")
    weather_api_url: str = Field(default="https://api.openweathermap.org/data/2.5/weather")
    upstream_timeout_seconds: float = Field(default=30.0)

    # Client configuration payload
    admob_ios_rewarded: str = Field(default="")
    admob_ios_banner: str = Field(default="")
    admob_android_rewarded: str = Field(default="")
    admob_android_banner: str = Field(default="")

    # Pinned generative-AI unit
    pinned_unit_name: str = Field(default="US_PROXY")
    pinned_unit_location_hint: str = Field(default="wnam")
    region_endpoints: Dict[str, str] = Field(default_factory=lambda: {"wnam": "http://localhost:8020"})
    internal_token: str = Field(default="")

    # Observability
    metrics_port: Optional[int] = Field(default=None)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)

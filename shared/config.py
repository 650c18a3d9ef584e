"""
Shared configuration management for the Media Catalog Gateway.
"""

from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Upstream credentials; the process refuses to start without it
    auth_token: str = Field(..., min_length=1)

    # Upstream services
    tmdb_base_url: str = Field(default="https://api.themoviedb.org/3")
    tmdb_image_base_url: str = Field(default="https://image.tmdb.org/t/p/w500")
    jikan_base_url: str = Field(default="https://api.jikan.moe/v4")
    upstream_timeout_seconds: float = Field(default=10.0, gt=0)

    # Outbound throttling shared by all sub-fetches of one upstream
    tmdb_throttle_rate: float = Field(default=40.0, gt=0)
    tmdb_throttle_burst: int = Field(default=40, ge=1)
    tmdb_max_concurrency: int = Field(default=20, ge=1)
    jikan_throttle_rate: float = Field(default=2.0, gt=0)
    jikan_throttle_burst: int = Field(default=2, ge=1)
    jikan_max_concurrency: int = Field(default=2, ge=1)

    # Caching
    cache_backend: str = Field(default="redis", pattern="^(redis|memory)$")
    redis_url: str = Field(default="redis://localhost:6379/0")
    cache_ttl_seconds: int = Field(default=3600, ge=1)

    # Inbound rate limiting
    rate_limit_backend: str = Field(default="memory", pattern="^(redis|memory)$")
    tmdb_rate_limit_per_second: int = Field(default=36, ge=1)
    jikan_rate_limit_per_second: int = Field(default=2, ge=1)
    jikan_rate_limit_per_minute: int = Field(default=50, ge=1)

    # Derived artwork
    palette_enabled: bool = Field(default=True)

    # CORS
    allowed_origins: str = Field(default="*")

    @property
    def cors_origins(self) -> List[str]:
        """Allowed origins parsed from the comma separated setting."""
        origins = [origin.strip() for origin in self.allowed_origins.split(",")]
        return [origin for origin in origins if origin] or ["*"]


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str = "catalog"
    port: int = Field(default=3000)
    host: str = "0.0.0.0"


def get_config(service_name: str, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, **overrides)

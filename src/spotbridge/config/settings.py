"""Application settings.

Hey future me - settings are READ-ONLY for the backend. The host's preferences page writes
them (env vars / .env file), we read them once at startup and pass the relevant section
into each component's constructor. No component calls get_settings() on its own - that's
what keeps the caches/executor testable without monkeypatching globals.

Env vars use the SPOTBRIDGE_ prefix and `__` for nesting:
    SPOTBRIDGE_WEBAPI__LOG_REQUESTS=true
    SPOTBRIDGE_STORAGE__IMAGE_CACHE_PATH=/tmp/spotbridge/images
"""

from enum import IntEnum
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Bitrate(IntEnum):
    """Preferred streaming bitrate (values match the playback SDK's enum)."""

    KBPS_160 = 0
    KBPS_320 = 1
    KBPS_96 = 2

    @property
    def kbps(self) -> int:
        return {Bitrate.KBPS_160: 160, Bitrate.KBPS_320: 320, Bitrate.KBPS_96: 96}[self]


class WebApiSettings(BaseModel):
    """Web API access configuration."""

    base_url: str = Field(
        default="https://api.spotify.com/v1/", description="Web API base URL"
    )
    log_requests: bool = Field(
        default=False, description="Log every outbound request URI"
    )
    log_responses: bool = Field(
        default=False, description="Log every raw response body"
    )
    # Spotify doesn't publish a number, 2 req/s sustained has never tripped 429 for us
    requests_per_window: int = Field(default=2, ge=1)
    rate_window_seconds: float = Field(default=1.0, gt=0)
    timeout_seconds: float = Field(default=30.0, gt=0)
    proxy_url: str | None = None
    proxy_username: str | None = None
    proxy_password: str | None = None

    @field_validator("base_url")
    @classmethod
    def _ensure_trailing_slash(cls, value: str) -> str:
        return value if value.endswith("/") else f"{value}/"

    @property
    def proxy(self) -> str | None:
        """Proxy URL with credentials embedded (None when no proxy is configured)."""
        if not self.proxy_url:
            return None
        if not (self.proxy_username and self.proxy_password):
            return self.proxy_url

        scheme, sep, rest = self.proxy_url.partition("://")
        if not sep:
            scheme, rest = "http", self.proxy_url
        return f"{scheme}://{self.proxy_username}:{self.proxy_password}@{rest}"


class PlaybackSettings(BaseModel):
    """Playback preferences (consumed by the SDK playback backend, not by this core)."""

    preferred_bitrate: Bitrate = Bitrate.KBPS_160


class StorageSettings(BaseModel):
    """On-disk locations."""

    image_cache_path: Path = Field(
        default=Path.home() / ".spotbridge" / "images",
        description="Root directory of the downloaded artwork cache",
    )


class ObservabilitySettings(BaseModel):
    """Logging and tracing."""

    log_level: str = "INFO"
    json_format: bool = False
    enable_tracing: bool = False


class Settings(BaseSettings):
    """Root settings object."""

    model_config = SettingsConfigDict(
        env_prefix="SPOTBRIDGE_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    webapi: WebApiSettings = Field(default_factory=WebApiSettings)
    playback: PlaybackSettings = Field(default_factory=PlaybackSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

"""Configuration management using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="HOOKVERIFY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server
    host: str = Field(
        default="0.0.0.0",
        description="Host for the webhook receiver HTTP server",
    )
    port: int = Field(
        default=8090,
        description="Port for the webhook receiver HTTP server",
    )
    exempt_paths: tuple[str, ...] = Field(
        default=("/health", "/metrics"),
        description="Paths excluded from request metrics",
    )
    request_id_header: str = Field(
        default="X-Request-ID",
        description="Header carrying the request correlation id",
    )

    # Transport
    disable_https_check: bool = Field(
        default=False,
        description="Accept webhook deliveries over plain HTTP (development only)",
    )
    https_allow_local: bool = Field(
        default=True,
        description="Accept plain HTTP deliveries from loopback clients",
    )

    # Secrets
    default_receiver_id: str = Field(
        default="default",
        description="Receiver id used when the delivery route carries none",
    )
    webhook_secrets: dict[str, dict[str, dict[str, str]]] = Field(
        default_factory=dict,
        description="Secrets per receiver and id, mapping application key to secret (JSON)",
    )
    webhook_secrets_file: str | None = Field(
        default=None,
        description="Path to a JSON file with the same shape as webhook_secrets",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Minimum log level",
    )
    log_json: bool = Field(
        default=False,
        description="Render logs as JSON lines instead of console output",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()

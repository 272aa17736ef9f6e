"""
Shared configuration management for the PoP Access service.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="ACCESS_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Server side PoP verification
    pop_public_key_path: Optional[str] = Field(default=None)
    pop_key_alias: str = Field(default="clientkey")
    pop_algorithm: str = Field(default="RS256")
    pop_clock_leeway_seconds: int = Field(default=0, ge=0)
    pop_replay_sweep_interval_seconds: float = Field(default=60.0, gt=0)

    # Leaks verification failure detail into 401 bodies. Never enable in production.
    pop_debug_errors: bool = Field(default=False)

    # Client side token issuance
    pop_client_private_key_path: Optional[str] = Field(default=None)
    pop_client_private_key_password: Optional[str] = Field(default=None)
    pop_client_subject: str = Field(default="Client")
    pop_token_ttl_seconds: Optional[int] = Field(default=300, gt=0)
    pop_server_url: str = Field(default="http://localhost:8080/helloworld")


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

"""
Shared configuration management for the Policy Engine Dashboard.
"""

from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="DASHBOARD_",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")
    log_format: str = Field(default="json")

    # Policy engine backend
    api_url: str = Field(
        default="http://localhost:8080",
        validation_alias=AliasChoices("DASHBOARD_API_URL", "API_URL"),
    )
    request_timeout: float = Field(default=10.0)

    # Paging
    page_size: int = Field(default=20)
    dashboard_rule_sample: int = Field(default=100)
    recent_audit_size: int = Field(default=10)

    # Browser-side preview debounce
    preview_debounce_ms: int = Field(default=500)

    # Optional explicit template directory override
    templates_dir: Optional[str] = Field(default=None)


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

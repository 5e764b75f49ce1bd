"""
Configuration management for spquery clients.

Supports configuration via environment variables and .env files.
"""

from enum import Enum
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class MetadataMode(str, Enum):
    """OData metadata levels understood by SharePoint."""
    VERBOSE = "verbose"
    MINIMAL = "minimal"
    NONE = "nometadata"


class ClientConfig(BaseSettings):
    """
    Configuration settings for SharePoint and Graph clients.

    All settings can be configured via environment variables with the SPQUERY_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="SPQUERY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Endpoint settings
    site_url: Optional[str] = Field(
        default=None,
        description="Absolute URL of the SharePoint web used as the default root"
    )
    graph_url: str = Field(
        default="https://graph.microsoft.com",
        description="Microsoft Graph service root"
    )
    graph_version: str = Field(
        default="v1.0",
        description="Microsoft Graph API version segment"
    )

    # Payload settings
    metadata: MetadataMode = Field(
        default=MetadataMode.MINIMAL,
        description="OData metadata level requested from SharePoint"
    )

    # Transport settings
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="HTTP timeout for a single request"
    )

    # Retry settings (throttling only)
    max_retries: int = Field(
        default=3,
        ge=0,
        description="Maximum retries for throttled (429/503) responses"
    )
    retry_delay_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Base delay for exponential backoff when Retry-After is absent"
    )

    # Caching settings
    cache_ttl_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Default lifetime of cached GET responses"
    )

    # Batching settings
    graph_batch_limit: int = Field(
        default=20,
        ge=1,
        description="Maximum number of requests in a single Graph $batch"
    )

    # Logging settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format"
    )

    @property
    def accept_header(self) -> str:
        """Get the SharePoint Accept header for the configured metadata level."""
        return f"application/json;odata={self.metadata.value}"

    @property
    def graph_root(self) -> str:
        """Get the versioned Graph root URL."""
        return f"{self.graph_url.rstrip('/')}/{self.graph_version.strip('/')}"


# Global config instance
_config: Optional[ClientConfig] = None


def get_config() -> ClientConfig:
    """Get or create the global configuration instance."""
    global _config
    if _config is None:
        _config = ClientConfig()
    return _config


def set_config(config: ClientConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config

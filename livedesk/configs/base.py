"""
Base configuration settings.

Common process-level settings (environment, logging, bind address)
inherited by the aggregated Settings class.

Dependencies: pydantic_settings
System role: Foundation for all configuration classes
"""

from pydantic_settings import BaseSettings as PydanticBaseSettings, SettingsConfigDict
from pydantic import Field


class BaseSettings(PydanticBaseSettings):
    """Process-wide settings read from LIVEDESK_* variables or .env."""

    model_config = SettingsConfigDict(
        env_prefix="LIVEDESK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: str = Field(
        default="development",
        description="Deployment environment (development, staging, production)",
    )
    log_level: str = Field(
        default="INFO",
        description="Root log level passed to configure_logging()",
    )
    api_host: str = Field(default="0.0.0.0", description="uvicorn bind host")
    api_port: int = Field(default=8082, description="uvicorn bind port")

"""
Unified application settings.

Aggregates all configuration modules into a single Settings class.
Provides dependency injection factory for FastAPI.

Dependencies: All config modules
System role: Central configuration aggregator for the application
"""

from functools import lru_cache

from livedesk.configs.base import BaseSettings
from livedesk.configs.database import DatabaseSettings
from livedesk.configs.realtime import RealtimeSettings
from livedesk.configs.s3_attachments import S3AttachmentsSettings
from livedesk.configs.webrtc import ClientSettings, WebRTCSettings


class Settings(BaseSettings):
    """Unified application settings aggregating all config modules."""

    # Aggregated settings
    database: DatabaseSettings = DatabaseSettings()
    s3_attachments: S3AttachmentsSettings = S3AttachmentsSettings()
    realtime: RealtimeSettings = RealtimeSettings()
    webrtc: WebRTCSettings = WebRTCSettings()
    client: ClientSettings = ClientSettings()


@lru_cache
def get_settings() -> Settings:
    """
    Get application settings singleton.

    Returns Settings instance, cached for dependency injection.
    Environment variables loaded once at startup.

    Returns:
        Settings: Application settings instance

    Usage:
        from livedesk.configs import get_settings
        settings = get_settings()
    """
    return Settings()

"""
Realtime configuration settings.

Change feed buffering and signaling envelope retention.

Dependencies: pydantic_settings
System role: Change feed and signaling relay configuration
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RealtimeSettings(BaseSettings):
    """Change feed and signal retention configuration."""

    model_config = SettingsConfigDict(
        env_prefix="REALTIME_",
        case_sensitive=False,
        extra="ignore",
    )

    feed_queue_size: int = Field(
        default=256,
        description="Pending events buffered per feed subscriber before dropping",
    )
    signal_ttl_seconds: int = Field(
        default=600,
        description="Signal envelopes older than this are purged",
    )
    signal_purge_interval_seconds: int = Field(
        default=60,
        description="Interval between signal purge runs",
    )

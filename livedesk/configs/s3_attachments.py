"""
S3 attachments bucket configuration.

Settings for chat attachment storage and signed download URLs.

Dependencies: pydantic_settings
System role: S3 attachments bucket configuration
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class S3AttachmentsSettings(BaseSettings):
    """Settings for S3 attachment bucket operations."""

    model_config = SettingsConfigDict(
        env_prefix="S3_ATTACHMENTS_",
        case_sensitive=False,
        extra="ignore",
    )

    bucket: str = Field(
        default="livedesk-dev-complaint-files",
        description="S3 bucket for chat attachments",
    )
    region: str = Field(
        default="ap-south-1",
        description="AWS region for S3 bucket",
    )
    endpoint_url: str | None = Field(
        default=None,
        description="Custom S3 endpoint (MinIO, LocalStack)",
    )
    presigned_url_expiry: int = Field(
        default=3600,
        description="Signed download URL expiry in seconds (default 1 hour)",
    )
    max_upload_bytes: int = Field(
        default=20 * 1024 * 1024,
        description="Largest accepted attachment in bytes",
    )

"""
Attachment schemas.

Dependencies: pydantic
System role: Attachment upload/download API contracts
"""

from enum import Enum

from pydantic import BaseModel, Field


class ContentKind(str, Enum):
    """How a client should render an attachment."""

    IMAGE = "image"
    VIDEO = "video"
    FILE = "file"


class AttachmentResponse(BaseModel):
    """Response schema after an attachment upload."""

    key: str = Field(description="Object key; use as file_url of the file message")
    filename: str = Field(description="Original filename")
    label: str = Field(description="Message text for the file message")
    size: int
    content_type: str


class AttachmentUrlResponse(BaseModel):
    """Response schema with a signed download URL."""

    url: str
    key: str
    expires_at: str = Field(description="ISO timestamp when URL expires")
    content_kind: ContentKind

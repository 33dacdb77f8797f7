"""
Dependency injection container.

Factory functions for FastAPI dependencies: caller identity, services and
shared clients.

Dependencies: livedesk.configs, livedesk.application, livedesk.boundary
System role: DI container for service injection
"""

from functools import lru_cache

from fastapi import Depends, Header, HTTPException, WebSocket, status
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from livedesk.application.services import (
    AttachmentService,
    LiveSessionService,
    MessageService,
    SignalingService,
)
from livedesk.boundary.aws.s3_client import S3AttachmentClient
from livedesk.boundary.db import get_async_db
from livedesk.boundary.realtime.change_feed import ChangeFeed, get_change_feed
from livedesk.configs import Settings, get_settings
from livedesk.models.user import CurrentUser


class ServiceCache:
    """Container for cached client instances."""

    def __init__(self) -> None:
        self._s3_client = None

    @property
    def s3_client(self) -> S3AttachmentClient:
        """Get cached S3 attachment client."""
        if self._s3_client is None:
            settings = get_settings().s3_attachments
            self._s3_client = S3AttachmentClient(
                bucket=settings.bucket,
                region=settings.region,
                endpoint_url=settings.endpoint_url,
            )
        return self._s3_client

    def clear(self) -> None:
        """Clear all cached instances."""
        self._s3_client = None


# Global service cache
_service_cache = ServiceCache()


def get_service_cache() -> ServiceCache:
    """Get service cache singleton."""
    return _service_cache


@lru_cache
def get_settings_dependency() -> Settings:
    """Get settings singleton."""
    return get_settings()


def _build_user(user_id: str | None, role: str | None) -> CurrentUser | None:
    if not user_id or not role:
        return None
    try:
        return CurrentUser(id=user_id, role=role.lower())
    except PydanticValidationError:
        return None


def get_current_user(
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
    x_user_role: str | None = Header(default=None, alias="X-User-Role"),
) -> CurrentUser:
    """
    Caller identity asserted by the identity provider's edge.

    Raises:
        HTTPException(401): Missing or malformed identity headers
    """
    user = _build_user(x_user_id, x_user_role)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Id and X-User-Role (student|admin) headers are required",
        )
    return user


def get_ws_user(websocket: WebSocket) -> CurrentUser | None:
    """Caller identity for WebSocket feeds (user_id / role query parameters)."""
    return _build_user(
        websocket.query_params.get("user_id"),
        websocket.query_params.get("role"),
    )


def get_live_session_service(
    db: AsyncSession = Depends(get_async_db),
    feed: ChangeFeed = Depends(get_change_feed),
) -> LiveSessionService:
    """
    Get live session service instance.

    Args:
        db: Async database session (injected via Depends)
        feed: Process-wide change feed

    Returns:
        LiveSessionService: Session lifecycle service
    """
    return LiveSessionService(db=db, feed=feed)


def get_message_service(
    db: AsyncSession = Depends(get_async_db),
    feed: ChangeFeed = Depends(get_change_feed),
) -> MessageService:
    """Get message service instance."""
    return MessageService(db=db, feed=feed)


def get_signaling_service(
    db: AsyncSession = Depends(get_async_db),
    feed: ChangeFeed = Depends(get_change_feed),
) -> SignalingService:
    """Get signaling service instance."""
    return SignalingService(db=db, feed=feed)


def get_s3_attachment_client() -> S3AttachmentClient:
    """
    Get S3 attachment client.

    Returns:
        S3AttachmentClient: Client for attachment bucket operations
    """
    return get_service_cache().s3_client


def get_attachment_service(
    db: AsyncSession = Depends(get_async_db),
    s3_client: S3AttachmentClient = Depends(get_s3_attachment_client),
    settings: Settings = Depends(get_settings_dependency),
) -> AttachmentService:
    """
    Get attachment service instance.

    Args:
        db: Async database session (injected)
        s3_client: S3AttachmentClient for uploads and signed URLs (injected)
        settings: Application settings (injected)

    Returns:
        AttachmentService: Attachment service
    """
    return AttachmentService(db=db, s3_client=s3_client, settings=settings.s3_attachments)

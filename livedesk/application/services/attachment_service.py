"""
Attachment service.

Uploads shared files to the attachment bucket and signs download URLs.
The returned key becomes the file_url of a follow-up file message.

Dependencies: livedesk.boundary.aws, livedesk.core.attachments
System role: Message Channel attachment handling
"""

import asyncio
import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from livedesk.application.services.base_service import LiveDeskService
from livedesk.boundary.aws.s3_client import S3AttachmentClient
from livedesk.configs.s3_attachments import S3AttachmentsSettings
from livedesk.core.attachments import (
    attachment_label,
    content_kind_for,
    generate_attachment_key,
    key_belongs_to_session,
    validate_filename,
)
from livedesk.core.exceptions import ValidationError
from livedesk.models.attachment import AttachmentResponse, AttachmentUrlResponse, ContentKind
from livedesk.models.user import CurrentUser

logger = logging.getLogger(__name__)


class AttachmentService(LiveDeskService):
    """Attachment upload and download orchestrator."""

    def __init__(
        self,
        db: AsyncSession,
        s3_client: S3AttachmentClient,
        settings: S3AttachmentsSettings,
    ) -> None:
        super().__init__(db)
        self.s3_client = s3_client
        self.settings = settings

    async def upload(
        self,
        session_id: UUID,
        user: CurrentUser,
        filename: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> AttachmentResponse:
        """
        Store a file shared in a session.

        Args:
            session_id: Target session
            user: Uploader (must be a participant)
            filename: Original filename
            data: File contents
            content_type: MIME type

        Returns:
            AttachmentResponse: Object key plus the "Shared file: <name>" label

        Raises:
            ValidationError: Bad filename, empty or oversized file
            SessionNotFoundError / PermissionDeniedError / SessionClosedError
            AttachmentError: If the blob store rejects the upload
        """
        validate_filename(filename)
        if not data:
            raise ValidationError("File is empty", field="file")
        if len(data) > self.settings.max_upload_bytes:
            raise ValidationError(
                f"File exceeds {self.settings.max_upload_bytes} bytes",
                field="file",
                details={"size": len(data)},
            )

        session = await self._load_session(session_id)
        self._require_participant(session, user)
        self._require_open(session)

        key = generate_attachment_key(session_id, filename)
        await asyncio.to_thread(self.s3_client.upload_bytes, key, data, content_type)

        logger.info(
            "Attachment uploaded",
            extra={"session_id": str(session_id), "key": key, "size": len(data)},
        )
        return AttachmentResponse(
            key=key,
            filename=filename,
            label=attachment_label(filename),
            size=len(data),
            content_type=content_type,
        )

    async def get_access_url(
        self,
        session_id: UUID,
        user: CurrentUser,
        key: str,
        expires_in: int | None = None,
    ) -> AttachmentUrlResponse:
        """
        Signed, time-limited download URL for an attachment of the session.

        Raises:
            ValidationError: Key does not belong to the session
            SessionNotFoundError / PermissionDeniedError
            AttachmentError: If signing fails
        """
        if not key_belongs_to_session(key, session_id):
            raise ValidationError("Attachment does not belong to this session", field="key")

        session = await self._load_session(session_id)
        self._require_viewer(session, user)

        url, expires_at = await asyncio.to_thread(
            self.s3_client.generate_presigned_download_url,
            key,
            expires_in or self.settings.presigned_url_expiry,
        )
        return AttachmentUrlResponse(
            url=url,
            key=key,
            expires_at=expires_at.isoformat(),
            content_kind=ContentKind(content_kind_for(key)),
        )

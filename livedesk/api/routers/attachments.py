"""
Attachment API endpoints.

Routes:
- POST /sessions/{id}/attachments - Upload a file (multipart)
- GET /sessions/{id}/attachments/url?key=... - Signed download URL

Dependencies: livedesk.application.services, livedesk.models
System role: Attachment HTTP API
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, File, Query, UploadFile

from livedesk.api.deps.dependencies import get_attachment_service, get_current_user
from livedesk.api.routers.router_utils import handle_live_desk_errors
from livedesk.application.services import AttachmentService
from livedesk.models.attachment import AttachmentResponse, AttachmentUrlResponse
from livedesk.models.user import CurrentUser

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["attachments"])


@router.post("/{session_id}/attachments", response_model=AttachmentResponse, status_code=201)
@handle_live_desk_errors
async def upload_attachment(
    session_id: UUID,
    file: UploadFile = File(...),
    user: CurrentUser = Depends(get_current_user),
    attachment_service: AttachmentService = Depends(get_attachment_service),
) -> AttachmentResponse:
    """
    Upload a file shared in the session.

    The response key is then sent as file_url of a file message.
    """
    data = await file.read()
    return await attachment_service.upload(
        session_id,
        user,
        filename=file.filename or "",
        data=data,
        content_type=file.content_type or "application/octet-stream",
    )


@router.get("/{session_id}/attachments/url", response_model=AttachmentUrlResponse)
@handle_live_desk_errors
async def get_attachment_url(
    session_id: UUID,
    key: str = Query(..., min_length=1),
    expires_in: int | None = Query(default=None, ge=60, le=7 * 24 * 3600),
    user: CurrentUser = Depends(get_current_user),
    attachment_service: AttachmentService = Depends(get_attachment_service),
) -> AttachmentUrlResponse:
    """Signed, time-limited download URL for an attachment."""
    return await attachment_service.get_access_url(session_id, user, key, expires_in)

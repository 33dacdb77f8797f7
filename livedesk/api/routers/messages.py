"""
Chat message API endpoints.

Routes:
- GET /sessions/{id}/messages - Messages, oldest first
- POST /sessions/{id}/messages - Send a message
- POST /sessions/{id}/messages/read - Mark messages from others read

Dependencies: livedesk.application.services, livedesk.models
System role: Message Channel HTTP API
"""

from uuid import UUID

from fastapi import APIRouter, Depends

from livedesk.api.deps.dependencies import get_current_user, get_message_service
from livedesk.api.routers.router_utils import handle_live_desk_errors
from livedesk.application.services import MessageService
from livedesk.models.message import (
    MarkReadResponse,
    MessageListResponse,
    MessageResponse,
    SendMessageRequest,
)
from livedesk.models.user import CurrentUser

router = APIRouter(prefix="/sessions", tags=["messages"])


@router.get("/{session_id}/messages", response_model=MessageListResponse)
@handle_live_desk_errors
async def list_messages(
    session_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    message_service: MessageService = Depends(get_message_service),
) -> MessageListResponse:
    """All messages of the session in created_at order."""
    messages = await message_service.fetch_messages(session_id, user)
    return MessageListResponse(messages=messages, total=len(messages))


@router.post("/{session_id}/messages", response_model=MessageResponse, status_code=201)
@handle_live_desk_errors
async def send_message(
    session_id: UUID,
    request: SendMessageRequest,
    user: CurrentUser = Depends(get_current_user),
    message_service: MessageService = Depends(get_message_service),
) -> MessageResponse:
    """
    Send a message.

    Raises:
        HTTPException(400): Blank text or inconsistent file_url
        HTTPException(403): Caller is not a participant
        HTTPException(409): Session has ended
    """
    return await message_service.send_message(
        session_id,
        user,
        request.message,
        message_type=request.message_type,
        file_url=request.file_url,
    )


@router.post("/{session_id}/messages/read", response_model=MarkReadResponse)
@handle_live_desk_errors
async def mark_messages_read(
    session_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    message_service: MessageService = Depends(get_message_service),
) -> MarkReadResponse:
    """Mark the other participant's messages read."""
    marked = await message_service.mark_read(session_id, user)
    return MarkReadResponse(session_id=session_id, marked=marked)

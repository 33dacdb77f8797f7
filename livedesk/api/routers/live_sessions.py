"""
Live session API endpoints.

Routes:
- POST /sessions - Open a session (student: waiting; admin: active)
- GET /sessions/active - Caller's current session
- GET /sessions/waiting - Queue of waiting sessions (admins)
- GET /sessions/conversations - Caller's sessions with unread counts
- GET /sessions/{id} - Single session
- POST /sessions/{id}/join - Admin joins a waiting session
- POST /sessions/{id}/end - Either participant ends the session

Dependencies: livedesk.application.services, livedesk.models
System role: Session Store HTTP API
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from livedesk.api.deps.dependencies import get_current_user, get_live_session_service
from livedesk.api.routers.router_utils import handle_live_desk_errors
from livedesk.application.services import LiveSessionService
from livedesk.models.session import (
    ConversationListResponse,
    CreateSessionRequest,
    SessionResponse,
)
from livedesk.models.user import CurrentUser

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.post("", response_model=SessionResponse, status_code=201)
@handle_live_desk_errors
async def create_session(
    request: CreateSessionRequest,
    user: CurrentUser = Depends(get_current_user),
    session_service: LiveSessionService = Depends(get_live_session_service),
) -> SessionResponse:
    """
    Open a live session.

    Raises:
        HTTPException(400): Admin omitted target_student_id
        HTTPException(403): Student targeted another student
        HTTPException(409): Student already has an open session
    """
    return await session_service.create_session(
        user,
        complaint_id=request.complaint_id,
        target_student_id=request.target_student_id,
    )


@router.get("/active", response_model=SessionResponse | None)
@handle_live_desk_errors
async def get_active_session(
    user: CurrentUser = Depends(get_current_user),
    session_service: LiveSessionService = Depends(get_live_session_service),
) -> SessionResponse | None:
    """Most recent non-ended session of the caller, or null."""
    return await session_service.fetch_active(user)


@router.get("/waiting", response_model=list[SessionResponse])
@handle_live_desk_errors
async def get_waiting_sessions(
    user: CurrentUser = Depends(get_current_user),
    session_service: LiveSessionService = Depends(get_live_session_service),
) -> list[SessionResponse]:
    """Waiting sessions, oldest first."""
    return await session_service.fetch_waiting(user)


@router.get("/conversations", response_model=ConversationListResponse)
@handle_live_desk_errors
async def list_conversations(
    limit: int | None = Query(default=None, ge=1, le=500),
    user: CurrentUser = Depends(get_current_user),
    session_service: LiveSessionService = Depends(get_live_session_service),
) -> ConversationListResponse:
    """Caller's sessions with last message preview and unread counts."""
    conversations = await session_service.list_conversations(user, limit=limit)
    return ConversationListResponse(conversations=conversations, total=len(conversations))


@router.get("/{session_id}", response_model=SessionResponse)
@handle_live_desk_errors
async def get_session(
    session_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    session_service: LiveSessionService = Depends(get_live_session_service),
) -> SessionResponse:
    """Get session by ID."""
    return await session_service.get_session(session_id, user)


@router.post("/{session_id}/join", response_model=SessionResponse)
@handle_live_desk_errors
async def join_session(
    session_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    session_service: LiveSessionService = Depends(get_live_session_service),
) -> SessionResponse:
    """
    Join a waiting session as admin.

    Raises:
        HTTPException(403): Caller is not an admin
        HTTPException(404): Session not found
        HTTPException(409): Session is no longer waiting
    """
    return await session_service.join_session(session_id, user)


@router.post("/{session_id}/end", response_model=SessionResponse)
@handle_live_desk_errors
async def end_session(
    session_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    session_service: LiveSessionService = Depends(get_live_session_service),
) -> SessionResponse:
    """End a session; ending an ended session returns it unchanged."""
    return await session_service.end_session(session_id, user)

"""
Signaling relay API endpoints.

Routes:
- GET /sessions/{id}/signals - Envelopes in insert order (optional ?since=)
- POST /sessions/{id}/signals - Relay an offer/answer/ICE candidate

Dependencies: livedesk.application.services, livedesk.models
System role: Signaling Relay HTTP API
"""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from livedesk.api.deps.dependencies import get_current_user, get_signaling_service
from livedesk.api.routers.router_utils import handle_live_desk_errors
from livedesk.application.services import SignalingService
from livedesk.models.signal import SignalListResponse, SignalRequest, SignalResponse
from livedesk.models.user import CurrentUser

router = APIRouter(prefix="/sessions", tags=["signals"])


@router.get("/{session_id}/signals", response_model=SignalListResponse)
@handle_live_desk_errors
async def list_signals(
    session_id: UUID,
    since: datetime | None = Query(default=None),
    user: CurrentUser = Depends(get_current_user),
    signaling_service: SignalingService = Depends(get_signaling_service),
) -> SignalListResponse:
    """Envelopes of the session for catch-up after reconnecting."""
    signals = await signaling_service.list_signals(session_id, user, since=since)
    return SignalListResponse(signals=signals, total=len(signals))


@router.post("/{session_id}/signals", response_model=SignalResponse, status_code=201)
@handle_live_desk_errors
async def send_signal(
    session_id: UUID,
    request: SignalRequest,
    user: CurrentUser = Depends(get_current_user),
    signaling_service: SignalingService = Depends(get_signaling_service),
) -> SignalResponse:
    """Relay one signal to the other participant."""
    return await signaling_service.send_signal(
        session_id,
        user,
        request.signal_type,
        request.signal_data,
    )

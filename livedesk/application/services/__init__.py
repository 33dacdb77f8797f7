"""
Application services.

Exports:
  - LiveSessionService: Session lifecycle
  - MessageService: Chat messages and read receipts
  - AttachmentService: Shared file upload and download URLs
  - SignalingService: WebRTC signal relay
"""

from livedesk.application.services.attachment_service import AttachmentService
from livedesk.application.services.live_session_service import LiveSessionService
from livedesk.application.services.message_service import MessageService
from livedesk.application.services.signaling_service import SignalingService

__all__ = [
    "AttachmentService",
    "LiveSessionService",
    "MessageService",
    "SignalingService",
]

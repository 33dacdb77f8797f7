"""
Test suite for MessageService and AttachmentService.

System role: Verification of Message Channel use case orchestration
"""

import uuid
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError
from sqlalchemy.ext.asyncio import AsyncSession

from livedesk.application.services import AttachmentService, LiveSessionService, MessageService
from livedesk.application.services.message_service import validate_outgoing_message
from livedesk.boundary.aws.s3_client import S3AttachmentClient
from livedesk.boundary.db.CRUD import chat_message_crud
from livedesk.boundary.db.models import MessageType
from livedesk.boundary.realtime.change_feed import ChangeFeed
from livedesk.configs.s3_attachments import S3AttachmentsSettings
from livedesk.core.exceptions import (
    AttachmentError,
    PermissionDeniedError,
    SessionClosedError,
    ValidationError,
)
from livedesk.models.feed import ChangeType
from livedesk.models.session import SessionResponse
from livedesk.models.user import CurrentUser


@pytest.fixture
def recording_feed() -> MagicMock:
    return MagicMock(spec=ChangeFeed)


@pytest.fixture
def message_service(test_async_db: AsyncSession, recording_feed: MagicMock) -> MessageService:
    return MessageService(db=test_async_db, feed=recording_feed)


@pytest.fixture
async def active_session(
    test_async_db: AsyncSession, student: CurrentUser, admin: CurrentUser
) -> SessionResponse:
    """Session joined by admin-1."""
    service = LiveSessionService(db=test_async_db)
    session = await service.create_session(student)
    return await service.join_session(session.id, admin)


@pytest.fixture
def attachment_service(test_async_db: AsyncSession, mock_boto_s3: MagicMock) -> AttachmentService:
    s3_client = S3AttachmentClient(bucket="test-bucket", s3_client=mock_boto_s3)
    return AttachmentService(
        db=test_async_db,
        s3_client=s3_client,
        settings=S3AttachmentsSettings(bucket="test-bucket", max_upload_bytes=1024),
    )


@pytest.fixture
def active_session_id() -> uuid.UUID:
    return uuid.uuid4()


class TestValidateOutgoingMessage:
    """Test suite for pre-I/O message validation."""

    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    def test_blank_text_is_rejected(self, active_session_id, text: str) -> None:
        with pytest.raises(ValidationError):
            validate_outgoing_message(active_session_id, text, MessageType.TEXT, None)

    def test_text_is_trimmed(self, active_session_id) -> None:
        assert validate_outgoing_message(active_session_id, "  hi  ", MessageType.TEXT, None) == "hi"

    def test_clients_cannot_send_system_messages(self, active_session_id) -> None:
        with pytest.raises(ValidationError):
            validate_outgoing_message(active_session_id, "Admin has joined", MessageType.SYSTEM, None)

    def test_file_message_needs_key_of_this_session(self, active_session_id) -> None:
        with pytest.raises(ValidationError):
            validate_outgoing_message(active_session_id, "Shared file: a.png", MessageType.FILE, None)
        with pytest.raises(ValidationError):
            validate_outgoing_message(
                active_session_id, "Shared file: a.png", MessageType.FILE,
                "sessions/someone-else/attachments/1-a.png",
            )

    def test_text_message_cannot_carry_file(self, active_session_id) -> None:
        with pytest.raises(ValidationError):
            validate_outgoing_message(
                active_session_id, "hi", MessageType.TEXT,
                f"sessions/{active_session_id}/attachments/1-a.png",
            )


class TestSendMessage:
    """Test suite for MessageService.send_message()."""

    async def test_send_persists_and_publishes(
        self,
        message_service: MessageService,
        recording_feed: MagicMock,
        active_session: SessionResponse,
        student: CurrentUser,
    ) -> None:
        # Act
        message = await message_service.send_message(active_session.id, student, "  Wifi not working ")

        # Assert
        assert message.message == "Wifi not working"
        assert message.sender_id == student.id
        assert message.message_type == MessageType.TEXT
        event = recording_feed.publish.call_args.args[0]
        assert event.change_type == ChangeType.INSERT
        assert event.record["id"] == str(message.id)

    async def test_whitespace_message_never_reaches_store(
        self,
        message_service: MessageService,
        recording_feed: MagicMock,
        test_async_db: AsyncSession,
        active_session: SessionResponse,
        student: CurrentUser,
    ) -> None:
        # Act
        with pytest.raises(ValidationError):
            await message_service.send_message(active_session.id, student, "   ")

        # Assert
        recording_feed.publish.assert_not_called()
        stored = await chat_message_crud.list_for_session(test_async_db, active_session.id)
        assert [m.message_type for m in stored] == [MessageType.SYSTEM]

    async def test_messages_come_back_in_order(
        self,
        message_service: MessageService,
        active_session: SessionResponse,
        student: CurrentUser,
        admin: CurrentUser,
    ) -> None:
        # Arrange
        await message_service.send_message(active_session.id, student, "one")
        await message_service.send_message(active_session.id, admin, "two")
        await message_service.send_message(active_session.id, student, "three")

        # Act
        messages = await message_service.fetch_messages(active_session.id, student)

        # Assert
        texts = [m.message for m in messages]
        assert texts[-3:] == ["one", "two", "three"]
        created = [m.created_at for m in messages]
        assert created == sorted(created)

    async def test_outsider_cannot_send(
        self,
        message_service: MessageService,
        active_session: SessionResponse,
        other_student: CurrentUser,
    ) -> None:
        with pytest.raises(PermissionDeniedError):
            await message_service.send_message(active_session.id, other_student, "hello?")

    async def test_ended_session_rejects_messages(
        self,
        message_service: MessageService,
        test_async_db: AsyncSession,
        active_session: SessionResponse,
        student: CurrentUser,
    ) -> None:
        # Arrange
        await LiveSessionService(db=test_async_db).end_session(active_session.id, student)

        # Act / Assert
        with pytest.raises(SessionClosedError):
            await message_service.send_message(active_session.id, student, "still there?")

    async def test_any_admin_can_read_history(
        self,
        message_service: MessageService,
        active_session: SessionResponse,
        other_admin: CurrentUser,
    ) -> None:
        messages = await message_service.fetch_messages(active_session.id, other_admin)
        assert len(messages) == 1


class TestMarkRead:
    """Test suite for MessageService.mark_read()."""

    async def test_mark_read_publishes_updates_once(
        self,
        message_service: MessageService,
        recording_feed: MagicMock,
        active_session: SessionResponse,
        student: CurrentUser,
        admin: CurrentUser,
    ) -> None:
        # Arrange
        await message_service.send_message(active_session.id, admin, "How can I help?")
        recording_feed.reset_mock()

        # Act
        marked = await message_service.mark_read(active_session.id, student)
        repeated = await message_service.mark_read(active_session.id, student)

        # Assert
        assert marked == 2  # join notice and the admin's message
        assert repeated == 0
        events = [c.args[0] for c in recording_feed.publish.call_args_list]
        assert all(e.change_type == ChangeType.UPDATE for e in events)
        assert all(e.record["read_by"] == student.id for e in events)
        assert len(events) == 2


class TestAttachments:
    """Test suite for AttachmentService."""

    async def test_upload_stores_under_session_prefix(
        self,
        attachment_service: AttachmentService,
        mock_boto_s3: MagicMock,
        active_session: SessionResponse,
        student: CurrentUser,
    ) -> None:
        # Act
        attachment = await attachment_service.upload(
            active_session.id, student, "error.png", b"\x89PNG", "image/png"
        )

        # Assert
        assert attachment.key.startswith(f"sessions/{active_session.id}/attachments/")
        assert attachment.key.endswith("-error.png")
        assert attachment.label == "Shared file: error.png"
        assert attachment.size == 4
        kwargs = mock_boto_s3.put_object.call_args.kwargs
        assert kwargs["Bucket"] == "test-bucket"
        assert kwargs["Key"] == attachment.key
        assert kwargs["ContentType"] == "image/png"

    async def test_uploaded_key_is_accepted_as_file_message(
        self,
        attachment_service: AttachmentService,
        message_service: MessageService,
        active_session: SessionResponse,
        student: CurrentUser,
    ) -> None:
        # Arrange
        attachment = await attachment_service.upload(active_session.id, student, "log.txt", b"trace")

        # Act
        message = await message_service.send_message(
            active_session.id, student, attachment.label, MessageType.FILE, attachment.key
        )

        # Assert
        assert message.file_url == attachment.key
        assert message.message == "Shared file: log.txt"

    @pytest.mark.parametrize("data", [b"", b"x" * 2048])
    async def test_empty_or_oversized_files_are_rejected(
        self,
        attachment_service: AttachmentService,
        mock_boto_s3: MagicMock,
        active_session: SessionResponse,
        student: CurrentUser,
        data: bytes,
    ) -> None:
        with pytest.raises(ValidationError):
            await attachment_service.upload(active_session.id, student, "a.png", data)
        mock_boto_s3.put_object.assert_not_called()

    async def test_s3_failure_surfaces_as_attachment_error(
        self,
        attachment_service: AttachmentService,
        mock_boto_s3: MagicMock,
        active_session: SessionResponse,
        student: CurrentUser,
    ) -> None:
        # Arrange
        mock_boto_s3.put_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject"
        )

        # Act / Assert
        with pytest.raises(AttachmentError):
            await attachment_service.upload(active_session.id, student, "a.png", b"data")

    async def test_access_url_for_session_key(
        self,
        attachment_service: AttachmentService,
        active_session: SessionResponse,
        admin: CurrentUser,
    ) -> None:
        # Arrange
        key = f"sessions/{active_session.id}/attachments/1-shot.png"

        # Act
        result = await attachment_service.get_access_url(active_session.id, admin, key, expires_in=60)

        # Assert
        assert result.url == f"https://signed.example/{key}?expires=60"
        assert result.content_kind.value == "image"
        assert result.expires_at

    async def test_access_url_rejects_foreign_key(
        self,
        attachment_service: AttachmentService,
        active_session: SessionResponse,
        admin: CurrentUser,
    ) -> None:
        with pytest.raises(ValidationError):
            await attachment_service.get_access_url(
                active_session.id, admin, "sessions/other/attachments/1-shot.png"
            )

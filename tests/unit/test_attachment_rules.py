"""
Test suite for attachment naming rules.

System role: Verification of attachment key policy
"""

import uuid

import pytest

from livedesk.core.attachments import (
    attachment_label,
    attachment_prefix,
    content_kind_for,
    generate_attachment_key,
    key_belongs_to_session,
    validate_filename,
)
from livedesk.core.exceptions import ValidationError


class TestValidateFilename:
    """Test suite for filename validation."""

    @pytest.mark.parametrize("filename", ["screenshot.png", "error.LOG", "report.final.pdf"])
    def test_accepts_allowed_files(self, filename: str) -> None:
        validate_filename(filename)

    @pytest.mark.parametrize(
        "filename",
        ["", "../etc/passwd.txt", "dir/file.png", "noextension", "script.exe", "a" * 300 + ".png"],
    )
    def test_rejects_unsafe_or_unknown_files(self, filename: str) -> None:
        """Test traversal, missing extensions and unknown types are rejected."""
        with pytest.raises(ValidationError) as exc_info:
            validate_filename(filename)
        assert exc_info.value.details["field"] == "filename"


class TestAttachmentKeys:
    """Test suite for object key generation."""

    def test_key_format(self) -> None:
        """Test key is prefixed by session and carries a timestamp."""
        # Arrange
        session_id = uuid.uuid4()

        # Act
        key = generate_attachment_key(session_id, "my screen shot!.PNG", timestamp_ms=1700000000000)

        # Assert
        assert key == f"sessions/{session_id}/attachments/1700000000000-myscreenshot.png"

    def test_unsafe_base_name_falls_back(self) -> None:
        key = generate_attachment_key("abc", "!!!.pdf", timestamp_ms=1)
        assert key == "sessions/abc/attachments/1-file.pdf"

    def test_key_belongs_only_to_its_session(self) -> None:
        # Arrange
        mine, theirs = uuid.uuid4(), uuid.uuid4()
        key = generate_attachment_key(mine, "log.txt")

        # Assert
        assert key.startswith(attachment_prefix(mine))
        assert key_belongs_to_session(key, mine)
        assert not key_belongs_to_session(key, theirs)
        assert not key_belongs_to_session(f"{attachment_prefix(mine)}../other.txt", mine)


class TestContentKind:
    """Test suite for rendering hints."""

    @pytest.mark.parametrize(
        "key,kind",
        [("a/b.jpeg", "image"), ("a/b.webm", "video"), ("a/b.pdf", "file"), ("a/b", "file")],
    )
    def test_kind_from_extension(self, key: str, kind: str) -> None:
        assert content_kind_for(key) == kind

    def test_label(self) -> None:
        assert attachment_label("error.png") == "Shared file: error.png"

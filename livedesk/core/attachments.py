"""
Attachment naming rules.

Filename validation, object key generation and content-kind sniffing for
files shared inside a live session.

Dependencies: None
System role: Attachment key policy for the Message Channel
"""

import time
from uuid import UUID

from livedesk.core.exceptions import ValidationError

IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "webp", "gif"}
VIDEO_EXTENSIONS = {"mp4", "webm", "mov"}
DOCUMENT_EXTENSIONS = {"pdf", "txt", "doc", "docx", "log", "zip"}
ALLOWED_EXTENSIONS = IMAGE_EXTENSIONS | VIDEO_EXTENSIONS | DOCUMENT_EXTENSIONS


def file_extension(filename: str) -> str:
    """Lower-cased extension without the dot ('' if none)."""
    if "." not in filename:
        return ""
    return filename.rsplit(".", 1)[-1].lower()


def validate_filename(filename: str) -> None:
    """
    Validate an attachment filename for safety and allowed extensions.

    Args:
        filename: Original filename from user

    Raises:
        ValidationError: If filename is invalid or not allowed
    """
    if not filename or len(filename) > 255:
        raise ValidationError("Invalid filename length", field="filename")

    # Block path traversal
    if ".." in filename or "/" in filename or "\\" in filename:
        raise ValidationError("Invalid filename: path traversal detected", field="filename")

    ext = file_extension(filename)
    if not ext:
        raise ValidationError("File must have an extension", field="filename")

    if ext not in ALLOWED_EXTENSIONS:
        raise ValidationError(
            f"File type '.{ext}' not allowed. Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}",
            field="filename",
        )


def attachment_prefix(session_id: UUID | str) -> str:
    """Key prefix every attachment of a session lives under."""
    return f"sessions/{session_id}/attachments/"


def generate_attachment_key(
    session_id: UUID | str,
    filename: str,
    timestamp_ms: int | None = None,
) -> str:
    """
    Generate a collision-resistant object key.

    Format: sessions/{session_id}/attachments/{timestamp_ms}-{safe_name}.{ext}

    Args:
        session_id: Session UUID
        filename: Original filename from user
        timestamp_ms: Upload time in epoch milliseconds (defaults to now)

    Returns:
        str: Safe object key
    """
    ext = file_extension(filename)
    base_name = filename.rsplit(".", 1)[0] if "." in filename else filename

    # Only alphanumerics, hyphens and underscores survive
    safe_name = "".join(c for c in base_name if c.isalnum() or c in "-_")
    if not safe_name:
        safe_name = "file"

    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)

    suffix = f".{ext}" if ext else ""
    return f"{attachment_prefix(session_id)}{timestamp_ms}-{safe_name}{suffix}"


def key_belongs_to_session(key: str, session_id: UUID | str) -> bool:
    """True if key was generated for this session."""
    return key.startswith(attachment_prefix(session_id)) and ".." not in key


def content_kind_for(key: str) -> str:
    """Rendering hint from the extension: image, video or file."""
    ext = file_extension(key)
    if ext in IMAGE_EXTENSIONS:
        return "image"
    if ext in VIDEO_EXTENSIONS:
        return "video"
    return "file"


def attachment_label(filename: str) -> str:
    """Message text used for a file message."""
    return f"Shared file: {filename}"

"""
Caller identity schema.

Dependencies: pydantic, livedesk.core.session
System role: Identity passed from the auth edge into services
"""

from pydantic import BaseModel, Field

from livedesk.core.session import SessionRole


class CurrentUser(BaseModel):
    """Authenticated caller as asserted by the identity provider."""

    id: str = Field(min_length=1, description="Opaque user id")
    role: SessionRole

    @property
    def is_admin(self) -> bool:
        return self.role == SessionRole.ADMIN

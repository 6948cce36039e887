"""
Canonical message schemas shared by adapters and the routing dispatcher.

Adapters normalize native payloads into CanonicalMessage; the dispatcher
never looks at backend-specific shapes.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.constants.messengers import MessengerType


class AttachmentKind(StrEnum):
    """Coarse attachment type, shared with the CRM file vocabulary."""

    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"
    FILE = "file"

    @classmethod
    def from_native(cls, value: Optional[str]) -> AttachmentKind:
        """Map a backend media type (photo, voice, document, ...) to a coarse kind."""
        value = str(value or "").lower()
        if value in ("photo", "image", "sticker"):
            return cls.IMAGE
        if value in ("voice", "audio"):
            return cls.AUDIO
        if value in ("video", "video_note", "animation"):
            return cls.VIDEO
        return cls.FILE


class Attachment(BaseModel):
    """Single attachment: a downloadable url, or a backend file reference to resolve first."""

    kind: AttachmentKind = AttachmentKind.FILE
    url: Optional[str] = None
    file_ref: Optional[str] = None
    name: Optional[str] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CanonicalMessage(BaseModel):
    """Backend-agnostic inbound message."""

    messenger_type: MessengerType
    chat_id: str
    counterpart_id: Optional[str] = None
    counterpart_name: str = "Unknown"
    text: Optional[str] = None
    attachments: list[Attachment] = Field(default_factory=list)
    message_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)
    outgoing: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not (self.text and self.text.strip()) and not self.attachments


class EmptyMessage(BaseModel):
    """Result of normalizing a payload that carries nothing to relay."""

    messenger_type: MessengerType
    reason: str
    raw: Any = None

    @property
    def is_empty(self) -> bool:
        return True


class DeliveryResult(BaseModel):
    """Outcome of one adapter send."""

    ok: bool
    provider_message_id: Optional[str] = None
    error: Optional[str] = None


class SessionContext(BaseModel):
    """Personal-account session a send or normalize call is bound to."""

    model_config = ConfigDict(frozen=True)

    profile_id: UUID
    session_id: Optional[str] = None
    session_name: Optional[str] = None
    session_string: Optional[str] = Field(default=None, repr=False)


class AdapterContext(BaseModel):
    """Per-call context handed to an adapter. Adapters keep no other per-tenant state."""

    model_config = ConfigDict(frozen=True)

    domain: Optional[str] = None
    credential: Optional[str] = None
    session: Optional[SessionContext] = None

"""Pydantic schemas for messenger profiles and chat connections."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.constants.messengers import TOKEN_REQUIRED_TYPES, MessengerType


class ProfileCreate(BaseModel):
    """Request schema for creating a messenger profile."""

    messenger_type: MessengerType
    name: str = Field(..., min_length=1, max_length=255)
    token: Optional[str] = Field(default=None, max_length=512)
    session_string: Optional[str] = Field(
        default=None,
        description="Telethon StringSession for telegram_user profiles",
    )
    owner_id: Optional[str] = None
    domain: Optional[str] = None
    extra: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_credentials(self) -> ProfileCreate:
        if self.messenger_type in TOKEN_REQUIRED_TYPES and not (
            self.token and self.token.strip()
        ):
            raise ValueError(f"Token is required for {self.messenger_type}")
        return self


class ProfileDomainLink(BaseModel):
    domain: str = Field(..., min_length=1, max_length=255)


class ProfileRead(BaseModel):
    """Profile as returned by the API; secrets are never included."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    owner_id: Optional[str] = None
    messenger_type: MessengerType
    name: str
    domain: Optional[str] = None
    extra: Optional[dict[str, Any]] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class ChatConnectionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    messenger_type: MessengerType
    messenger_chat_id: str
    domain: str
    connector_id: Optional[str] = None
    counterpart_id: Optional[str] = None
    counterpart_name: Optional[str] = None
    profile_id: Optional[UUID] = None
    is_active: bool
    updated_at: datetime


class ConnectorActivate(BaseModel):
    line_id: str = Field(..., min_length=1, max_length=64)
    name: Optional[str] = None


class ConnectorRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    connector_id: str
    messenger_type: MessengerType
    line_id: Optional[str] = None
    is_registered: bool

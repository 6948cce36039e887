"""MessengerProfile model: a bot token or user session owned by a platform user."""

from __future__ import annotations

import uuid

from sqlalchemy import JSON, Boolean, Column, LargeBinary, String
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import relationship

from app.db import Base
from app.models.mixins import TimestampMixin


class MessengerProfile(Base, TimestampMixin):
    """Profile for one messenger backend.

    ``token`` identifies bot-style profiles on the shared webhook URL and is
    therefore stored as-is. Personal-account session strings are Fernet
    encrypted in ``encrypted_session``.
    """

    __tablename__ = "messenger_profiles"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(String(255), nullable=True, index=True)
    messenger_type = Column(String(32), nullable=False)
    name = Column(String(255), nullable=False)
    token = Column(String(512), nullable=True, index=True)
    encrypted_session = Column(LargeBinary, nullable=True)
    extra = Column(JSON().with_variant(JSONB, "postgresql"), nullable=True, default=dict)
    domain = Column(String(255), nullable=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True)

    connections = relationship(
        "ChatConnection",
        back_populates="profile",
        cascade="all, delete-orphan",
    )

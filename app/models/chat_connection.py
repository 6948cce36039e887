"""
ChatConnection model: binding between a messenger chat and a CRM tenant.

One row per (messenger_type, messenger_chat_id). Rows are deactivated, not
deleted, unless the owning profile goes away.
"""

from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Column, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.db import Base
from app.models.mixins import TimestampMixin


class ChatConnection(Base, TimestampMixin):
    __tablename__ = "messenger_chat_connections"

    __table_args__ = (
        UniqueConstraint(
            "messenger_type",
            "messenger_chat_id",
            name="uq_chat_connections_type_chat",
        ),
        Index("ix_chat_connections_domain", "domain"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    messenger_type = Column(String(32), nullable=False)
    messenger_chat_id = Column(String(255), nullable=False)
    domain = Column(String(255), nullable=False)
    connector_id = Column(String(255), nullable=True)
    counterpart_id = Column(String(255), nullable=True)
    counterpart_name = Column(String(255), nullable=True)
    profile_id = Column(
        UUID(as_uuid=True),
        ForeignKey("messenger_profiles.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    is_active = Column(Boolean, nullable=False, default=True)

    profile = relationship("MessengerProfile", back_populates="connections")

"""
Tenant integration models.

TenantIntegration holds the CRM REST credentials for one Bitrix24 domain;
TenantConnector holds the connector id and open line per messenger type.
"""

from __future__ import annotations

import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.db import Base
from app.models.mixins import TimestampMixin


class TenantIntegration(Base, TimestampMixin):
    __tablename__ = "tenant_integrations"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    domain = Column(String(255), nullable=False, unique=True)
    client_endpoint = Column(String(512), nullable=True)
    access_token = Column(String(512), nullable=True)
    refresh_token = Column(String(512), nullable=True)
    token_expires_at = Column(DateTime(timezone=True), nullable=True)
    client_id = Column(String(255), nullable=True)
    client_secret = Column(String(255), nullable=True)
    application_token = Column(String(255), nullable=True)
    # Legacy per-domain MAX bot token, used when a MAX update carries no profile token
    max_token = Column(String(512), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    connectors = relationship(
        "TenantConnector",
        back_populates="integration",
        cascade="all, delete-orphan",
    )

    @property
    def rest_endpoint(self) -> str:
        endpoint = self.client_endpoint or f"https://{self.domain}/rest/"
        return endpoint if endpoint.endswith("/") else endpoint + "/"


class TenantConnector(Base, TimestampMixin):
    __tablename__ = "tenant_connectors"

    __table_args__ = (
        UniqueConstraint(
            "integration_id", "messenger_type", name="uq_tenant_connectors_type"
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    integration_id = Column(
        UUID(as_uuid=True),
        ForeignKey("tenant_integrations.id", ondelete="CASCADE"),
        nullable=False,
    )
    messenger_type = Column(String(32), nullable=False)
    connector_id = Column(String(255), nullable=False, unique=True)
    line_id = Column(String(64), nullable=True)
    is_registered = Column(Boolean, nullable=False, default=False)

    integration = relationship("TenantIntegration", back_populates="connectors")

"""Service for tenant integrations and their per-messenger connectors."""

from __future__ import annotations

import secrets
from typing import Any, List, Optional

from sqlalchemy.orm import Session

from app.constants.messengers import MessengerType
from app.models.tenant_integration import TenantConnector, TenantIntegration


def new_connector_id(messenger_type: MessengerType) -> str:
    return f"{MessengerType(messenger_type).value}_{secrets.token_hex(8)}"


class TenantIntegrationService:
    """Reads connector and line ids for a Bitrix24 domain; creates connectors on demand."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get_integration(self, domain: str) -> Optional[TenantIntegration]:
        return (
            self.db.query(TenantIntegration)
            .filter(TenantIntegration.domain == domain)
            .first()
        )

    def save_integration(self, domain: str, **fields: Any) -> TenantIntegration:
        """Create or update the integration row for ``domain``."""
        integration = self.get_integration(domain)
        if integration is None:
            integration = TenantIntegration(domain=domain)
            self.db.add(integration)
        for key, value in fields.items():
            setattr(integration, key, value)
        self.db.commit()
        self.db.refresh(integration)
        return integration

    def get_connector(
        self, domain: str, messenger_type: MessengerType
    ) -> Optional[TenantConnector]:
        return (
            self.db.query(TenantConnector)
            .join(TenantIntegration)
            .filter(
                TenantIntegration.domain == domain,
                TenantConnector.messenger_type == MessengerType(messenger_type).value,
            )
            .first()
        )

    def get_connector_by_id(self, connector_id: str) -> Optional[TenantConnector]:
        return (
            self.db.query(TenantConnector)
            .filter(TenantConnector.connector_id == connector_id)
            .first()
        )

    def get_or_create_connector(
        self, domain: str, messenger_type: MessengerType
    ) -> Optional[TenantConnector]:
        """Connector for (domain, type); None when the domain has no active integration."""
        connector = self.get_connector(domain, messenger_type)
        if connector is not None:
            return connector
        integration = self.get_integration(domain)
        if integration is None or not integration.is_active:
            return None
        connector = TenantConnector(
            integration_id=integration.id,
            messenger_type=MessengerType(messenger_type).value,
            connector_id=new_connector_id(messenger_type),
        )
        self.db.add(connector)
        self.db.commit()
        self.db.refresh(connector)
        return connector

    def get_or_create_connector_id(
        self, domain: str, messenger_type: MessengerType
    ) -> Optional[str]:
        connector = self.get_or_create_connector(domain, messenger_type)
        return connector.connector_id if connector else None

    def get_line_id(self, connector_id: Optional[str]) -> Optional[str]:
        if not connector_id:
            return None
        connector = self.get_connector_by_id(connector_id)
        return connector.line_id if connector and connector.line_id else None

    def get_domain_for_connector(self, connector_id: str) -> Optional[str]:
        connector = self.get_connector_by_id(connector_id)
        return connector.integration.domain if connector else None

    def set_line(
        self, domain: str, messenger_type: MessengerType, line_id: Optional[str]
    ) -> Optional[TenantConnector]:
        connector = self.get_or_create_connector(domain, messenger_type)
        if connector is None:
            return None
        connector.line_id = line_id
        self.db.commit()
        self.db.refresh(connector)
        return connector

    def mark_registered(self, connector: TenantConnector, registered: bool) -> None:
        connector.is_registered = registered
        self.db.commit()

    def get_messenger_token(
        self, domain: Optional[str], messenger_type: MessengerType
    ) -> Optional[str]:
        """Domain-level messenger credential; only MAX has one."""
        if not domain or MessengerType(messenger_type) != MessengerType.MAX:
            return None
        integration = self.get_integration(domain)
        if integration is None or not integration.is_active:
            return None
        return integration.max_token or None

    def domains_with_max_token(self) -> List[str]:
        rows = (
            self.db.query(TenantIntegration.domain)
            .filter(
                TenantIntegration.is_active.is_(True),
                TenantIntegration.max_token.isnot(None),
                TenantIntegration.max_token != "",
            )
            .order_by(TenantIntegration.domain.asc())
            .all()
        )
        return [row[0] for row in rows]

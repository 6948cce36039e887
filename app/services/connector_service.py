"""Open Lines connector lifecycle for a tenant: register, activate on a line, unregister."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.clients.bitrix import BitrixClient
from app.config import get_settings
from app.constants.messengers import MessengerType
from app.core.exceptions import ConnectorNotFound
from app.models.tenant_integration import TenantConnector
from app.services.chat_connection_service import ChatConnectionService
from app.services.tenant_integration_service import TenantIntegrationService

logger = logging.getLogger(__name__)

MESSAGE_ADD_EVENT = "OnImConnectorMessageAdd"

_CONNECTOR_NAMES = {
    MessengerType.TELEGRAM_BOT: "Telegram bot",
    MessengerType.MAX: "MAX",
    MessengerType.TELEGRAM_USER: "Telegram account",
}


class ConnectorService:
    def __init__(self, db: Session, crm_client: BitrixClient) -> None:
        self.db = db
        self.crm = crm_client
        self.tenants = TenantIntegrationService(db)
        self.connections = ChatConnectionService(db)

    def activate(
        self,
        domain: str,
        messenger_type: MessengerType,
        line_id: str,
        name: Optional[str] = None,
    ) -> TenantConnector:
        """
        Register the connector on first use, activate it on ``line_id`` and
        store the line so inbound messages can be forwarded.

        Raises:
            ConnectorNotFound: the domain has no active integration.
            CrmApiError: the CRM rejected one of the calls.
        """
        messenger_type = MessengerType(messenger_type)
        connector = self.tenants.get_or_create_connector(domain, messenger_type)
        if connector is None:
            raise ConnectorNotFound(
                "Integration not installed", domain=domain, messenger_type=str(messenger_type)
            )

        handler = get_settings().webhook_url() or ""
        if not connector.is_registered:
            self.crm.register_connector(
                domain,
                connector.connector_id,
                name or _CONNECTOR_NAMES[messenger_type],
                handler,
            )
            if handler:
                self.crm.bind_event(domain, MESSAGE_ADD_EVENT, handler)
            self.tenants.mark_registered(connector, True)

        self.crm.activate_connector(domain, connector.connector_id, line_id, active=True)
        connector = self.tenants.set_line(domain, messenger_type, line_id)
        logger.info(
            "Connector %s activated on line %s for %s",
            connector.connector_id,
            line_id,
            domain,
        )
        return connector

    def deactivate(self, domain: str, messenger_type: MessengerType) -> bool:
        """
        Switch the connector off and unregister it. Chats of this type bound
        to the domain are deactivated as well.
        """
        messenger_type = MessengerType(messenger_type)
        connector = self.tenants.get_connector(domain, messenger_type)
        if connector is None:
            return False

        if connector.line_id:
            self.crm.activate_connector(
                domain, connector.connector_id, connector.line_id, active=False
            )
        if connector.is_registered:
            self.crm.unregister_connector(domain, connector.connector_id)
            self.tenants.mark_registered(connector, False)
        self.tenants.set_line(domain, messenger_type, None)
        count = self.connections.deactivate_for_domain(domain, messenger_type)
        logger.info(
            "Connector %s unregistered for %s, %d chat(s) deactivated",
            connector.connector_id,
            domain,
            count,
        )
        return True

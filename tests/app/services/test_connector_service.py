"""Tests for ConnectorService."""

from unittest.mock import MagicMock

import pytest

from app.constants.messengers import MessengerType
from app.core.exceptions import ConnectorNotFound
from app.services.connector_service import MESSAGE_ADD_EVENT, ConnectorService
from app.services.tenant_integration_service import TenantIntegrationService


def test_activate_registers_once_and_stores_line(db, setup_tenant):
    crm = MagicMock()
    svc = ConnectorService(db, crm)

    connector = svc.activate(setup_tenant.domain, MessengerType.MAX, "12")
    svc.activate(setup_tenant.domain, MessengerType.MAX, "13")

    assert crm.register_connector.call_count == 1
    crm.bind_event.assert_called_once_with(
        setup_tenant.domain, MESSAGE_ADD_EVENT, "https://bridge.example.com/webhook"
    )
    assert crm.activate_connector.call_count == 2
    assert connector.is_registered is True
    tenants = TenantIntegrationService(db)
    assert tenants.get_line_id(connector.connector_id) == "13"


def test_activate_without_integration(db):
    with pytest.raises(ConnectorNotFound):
        ConnectorService(db, MagicMock()).activate("nowhere.bitrix24.ru", MessengerType.MAX, "1")


def test_deactivate_clears_line_and_chats(db, setup_bot_connection, setup_bot_connector):
    crm = MagicMock()
    domain = setup_bot_connector.integration.domain

    assert ConnectorService(db, crm).deactivate(domain, MessengerType.TELEGRAM_BOT) is True

    crm.activate_connector.assert_called_once_with(
        domain, setup_bot_connector.connector_id, "7", active=False
    )
    crm.unregister_connector.assert_called_once_with(domain, setup_bot_connector.connector_id)
    db.refresh(setup_bot_connector)
    db.refresh(setup_bot_connection)
    assert setup_bot_connector.line_id is None
    assert setup_bot_connector.is_registered is False
    assert setup_bot_connection.is_active is False


def test_deactivate_unknown(db, setup_tenant):
    assert ConnectorService(db, MagicMock()).deactivate(setup_tenant.domain, MessengerType.MAX) is False

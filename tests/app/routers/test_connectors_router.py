"""Tests for connectors router."""

from unittest.mock import MagicMock

import pytest

from app.core.exceptions import CrmApiError
from app.routers.connectors_router import get_connector_service
from app.services.connector_service import ConnectorService


@pytest.fixture
def crm(client, db):
    crm_client = MagicMock()
    client.app.dependency_overrides[get_connector_service] = lambda: ConnectorService(
        db, crm_client
    )
    return crm_client


def test_activate_connector(client, crm, setup_tenant):
    r = client.post(
        f"/tenants/{setup_tenant.domain}/connectors/max/activate",
        json={"line_id": "12"},
    )
    assert r.status_code == 200
    data = r.json()
    assert data["line_id"] == "12"
    assert data["is_registered"] is True
    assert data["connector_id"].startswith("max_")
    crm.register_connector.assert_called_once()


def test_activate_unknown_tenant(client, crm):
    r = client.post(
        "/tenants/nowhere.bitrix24.ru/connectors/max/activate", json={"line_id": "1"}
    )
    assert r.status_code == 404


def test_activate_crm_error(client, crm, setup_tenant):
    crm.register_connector.side_effect = CrmApiError("denied", code="ACCESS_DENIED")
    r = client.post(
        f"/tenants/{setup_tenant.domain}/connectors/max/activate",
        json={"line_id": "12"},
    )
    assert r.status_code == 502


def test_unregister_connector(client, crm, setup_bot_connector):
    domain = setup_bot_connector.integration.domain
    r = client.delete(f"/tenants/{domain}/connectors/telegram_bot")
    assert r.status_code == 204
    crm.unregister_connector.assert_called_once()
    assert client.delete(f"/tenants/{domain}/connectors/max").status_code == 404

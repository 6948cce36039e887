"""Fixtures for tenant integrations and connectors."""

from datetime import timedelta

import pytest

from app.constants.messengers import MessengerType
from app.models.mixins import utcnow
from app.models.tenant_integration import TenantConnector, TenantIntegration


def make_integration(db, domain, max_token=None, **fields):
    integration = TenantIntegration(
        domain=domain,
        client_endpoint=fields.pop("client_endpoint", f"https://{domain}/rest/"),
        access_token=fields.pop("access_token", "access-token"),
        refresh_token=fields.pop("refresh_token", "refresh-token"),
        token_expires_at=fields.pop("token_expires_at", utcnow() + timedelta(hours=1)),
        client_id="app.client",
        client_secret="app-secret",
        max_token=max_token,
        **fields,
    )
    db.add(integration)
    db.commit()
    db.refresh(integration)
    return integration


def make_connector(db, integration, messenger_type, line_id="7", connector_id=None):
    connector = TenantConnector(
        integration_id=integration.id,
        messenger_type=MessengerType(messenger_type).value,
        connector_id=connector_id or f"{messenger_type}_{integration.domain.split('.')[0]}",
        line_id=line_id,
        is_registered=True,
    )
    db.add(connector)
    db.commit()
    db.refresh(connector)
    return connector


@pytest.fixture(scope="function")
def setup_tenant(db, faker):
    """Integrated portal without any connector yet."""
    return make_integration(db, f"{faker.domain_word()}.bitrix24.ru")


@pytest.fixture(scope="function")
def setup_bot_connector(db, setup_tenant):
    """Bot connector activated on line 7."""
    return make_connector(db, setup_tenant, MessengerType.TELEGRAM_BOT)


@pytest.fixture(scope="function")
def setup_max_tenant(db):
    """Portal holding a domain-level MAX token with an active line."""
    integration = make_integration(db, "alpha.bitrix24.ru", max_token="max-domain-token")
    make_connector(db, integration, MessengerType.MAX, line_id="3")
    return integration

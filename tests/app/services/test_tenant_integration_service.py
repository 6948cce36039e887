"""Tests for TenantIntegrationService."""

from app.constants.messengers import MessengerType
from app.services.tenant_integration_service import TenantIntegrationService


def test_save_integration_upserts(db):
    svc = TenantIntegrationService(db)
    created = svc.save_integration("alpha.bitrix24.ru", access_token="a", max_token="m")
    updated = svc.save_integration("alpha.bitrix24.ru", access_token="b")

    assert updated.id == created.id
    assert updated.access_token == "b"
    assert updated.max_token == "m"


def test_connector_created_on_demand(db, setup_tenant):
    svc = TenantIntegrationService(db)
    connector_id = svc.get_or_create_connector_id(setup_tenant.domain, MessengerType.MAX)

    assert connector_id.startswith("max_")
    assert svc.get_or_create_connector_id(setup_tenant.domain, MessengerType.MAX) == connector_id
    assert svc.get_domain_for_connector(connector_id) == setup_tenant.domain
    assert svc.get_line_id(connector_id) is None


def test_no_connector_for_inactive_integration(db, setup_tenant):
    setup_tenant.is_active = False
    db.commit()
    svc = TenantIntegrationService(db)
    assert svc.get_or_create_connector_id(setup_tenant.domain, MessengerType.MAX) is None


def test_messenger_token_only_for_max(db, setup_max_tenant):
    svc = TenantIntegrationService(db)
    assert svc.get_messenger_token("alpha.bitrix24.ru", MessengerType.MAX) == "max-domain-token"
    assert svc.get_messenger_token("alpha.bitrix24.ru", MessengerType.TELEGRAM_BOT) is None
    assert svc.domains_with_max_token() == ["alpha.bitrix24.ru"]

"""Tests for StoredTokenProvider."""

import logging
from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest

from app.core.exceptions import ConnectorNotFound, CrmApiError
from app.models.mixins import utcnow
from app.services.token_service import StoredTokenProvider
from tests.fixtures.tenant_fixtures import make_integration


def oauth_response(body):
    resp = MagicMock()
    resp.status_code = 200
    resp.json.return_value = body
    return resp


def test_valid_token_is_returned_without_refresh(db, setup_tenant):
    with patch("app.services.token_service.requests.get") as mock_get:
        token = StoredTokenProvider(db).get_valid_token(setup_tenant.domain)
    assert token == "access-token"
    mock_get.assert_not_called()


@patch("app.services.token_service.requests.get")
def test_expired_token_is_refreshed_and_persisted(mock_get, db):
    integration = make_integration(
        db, "beta.bitrix24.ru", token_expires_at=utcnow() - timedelta(minutes=1)
    )
    mock_get.return_value = oauth_response(
        {
            "access_token": "fresh",
            "refresh_token": "fresh-refresh",
            "expires_in": 3600,
            "client_endpoint": "https://beta.bitrix24.ru/rest/",
        }
    )

    token = StoredTokenProvider(db).get_valid_token("beta.bitrix24.ru")

    assert token == "fresh"
    params = mock_get.call_args.kwargs["params"]
    assert params["grant_type"] == "refresh_token"
    assert params["refresh_token"] == "refresh-token"
    db.refresh(integration)
    assert integration.access_token == "fresh"
    assert integration.refresh_token == "fresh-refresh"


@patch("app.services.token_service.requests.get")
def test_refresh_rejected(mock_get, db, setup_tenant, caplog):
    mock_get.return_value = oauth_response({"error": "invalid_grant"})
    with caplog.at_level(logging.ERROR), pytest.raises(CrmApiError) as exc:
        StoredTokenProvider(db).refresh(setup_tenant.domain)
    assert exc.value.code == "refresh_failed"
    assert any(r.name == "app.services.token_service" for r in caplog.records)


def test_unknown_domain(db):
    with pytest.raises(ConnectorNotFound):
        StoredTokenProvider(db).get_endpoint("nowhere.bitrix24.ru")


def test_endpoint_defaults_to_domain_rest(db):
    make_integration(db, "gamma.bitrix24.ru", client_endpoint=None)
    assert (
        StoredTokenProvider(db).get_endpoint("gamma.bitrix24.ru")
        == "https://gamma.bitrix24.ru/rest/"
    )

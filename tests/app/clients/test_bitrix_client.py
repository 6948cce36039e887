"""Tests for BitrixClient."""

import logging
from unittest.mock import MagicMock, patch

import pytest
import requests

from app.clients.bitrix import BitrixClient
from app.core.exceptions import CrmApiError


class FakeTokens:
    def __init__(self):
        self.refreshed = 0

    def get_endpoint(self, domain):
        return f"https://{domain}/rest/"

    def get_valid_token(self, domain):
        return "old-token"

    def refresh(self, domain):
        self.refreshed += 1
        return "new-token"


def response(status=200, body=None):
    resp = MagicMock()
    resp.status_code = status
    resp.ok = status < 400
    resp.json.return_value = body
    return resp


@patch("app.clients.bitrix.requests.post")
def test_send_messages_posts_connector_payload(mock_post):
    mock_post.return_value = response(body={"result": {"SUCCESS": True}})
    client = BitrixClient(FakeTokens())

    result = client.send_messages("alpha.bitrix24.ru", "max_abc", "3", [{"x": 1}])

    assert result == {"result": {"SUCCESS": True}}
    url = mock_post.call_args.args[0]
    payload = mock_post.call_args.kwargs["json"]
    assert url == "https://alpha.bitrix24.ru/rest/imconnector.send.messages.json"
    assert payload == {
        "CONNECTOR": "max_abc",
        "LINE": "3",
        "MESSAGES": [{"x": 1}],
        "auth": "old-token",
    }
    assert mock_post.call_args.kwargs["timeout"] == 30


@patch("app.clients.bitrix.requests.post")
def test_expired_token_refreshes_once_and_retries(mock_post, caplog):
    mock_post.side_effect = [
        response(401, {"error": "expired_token", "error_description": "expired"}),
        response(body={"result": True}),
    ]
    tokens = FakeTokens()

    with caplog.at_level(logging.INFO, logger="app.clients.bitrix"):
        result = BitrixClient(tokens).call(
            "alpha.bitrix24.ru", "imconnector.activate", {}
        )

    assert result == {"result": True}
    assert tokens.refreshed == 1
    assert mock_post.call_args_list[1].kwargs["json"]["auth"] == "new-token"
    assert any(r.name == "app.clients.bitrix" for r in caplog.records)


@patch("app.clients.bitrix.requests.post")
def test_other_errors_are_raised(mock_post):
    mock_post.return_value = response(400, {"error": "ERROR_CONNECTOR_NOT_ACTIVE"})
    tokens = FakeTokens()

    with pytest.raises(CrmApiError) as exc:
        BitrixClient(tokens).call("alpha.bitrix24.ru", "imconnector.send.messages")

    assert exc.value.code == "ERROR_CONNECTOR_NOT_ACTIVE"
    assert tokens.refreshed == 0


@patch("app.clients.bitrix.requests.post")
def test_transport_error(mock_post):
    mock_post.side_effect = requests.ConnectionError("down")

    with pytest.raises(CrmApiError) as exc:
        BitrixClient(FakeTokens()).call("alpha.bitrix24.ru", "event.bind")

    assert exc.value.code == "transport_error"


@patch("app.clients.bitrix.requests.post")
def test_activate_connector_flags(mock_post):
    mock_post.return_value = response(body={"result": True})
    BitrixClient(FakeTokens()).activate_connector(
        "alpha.bitrix24.ru", "max_abc", "3", active=False
    )
    payload = mock_post.call_args.kwargs["json"]
    assert payload["ACTIVE"] == 0
    assert payload["LINE"] == "3"

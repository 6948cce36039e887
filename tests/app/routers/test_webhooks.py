"""Tests for webhook routes."""

from urllib.parse import urlencode

from fastapi.testclient import TestClient


def minimal_telegram_update():
    return {
        "update_id": 123,
        "message": {
            "message_id": 456,
            "from": {"id": 789, "is_bot": False, "first_name": "Test"},
            "chat": {"id": 789, "type": "private"},
            "date": 1609459200,
            "text": "hello",
        },
    }


def test_unknown_source_is_200(client: TestClient):
    resp = client.post("/webhook", json={"hello": "world"})
    assert resp.status_code == 200
    assert resp.json() == {"status": "error", "message": "Unknown source"}


def test_malformed_json_is_400(client: TestClient):
    resp = client.post(
        "/webhook", content=b"{not json", headers={"content-type": "application/json"}
    )
    assert resp.status_code == 400


def test_bot_update_with_unknown_token(client: TestClient):
    resp = client.post(
        "/webhook?bot_token=nobody", json=minimal_telegram_update()
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_form_encoded_crm_event(client: TestClient):
    body = urlencode(
        {
            "event": "ONIMCONNECTORMESSAGEADD",
            "data[CONNECTOR]": "telegram_bot_unknown",
            "data[LINE]": "7",
            "data[MESSAGES][0][chat][id]": "tgbot_1",
            "data[MESSAGES][0][message][id]": "5",
            "data[MESSAGES][0][message][text]": "hi",
        }
    )
    resp = client.post(
        "/webhook",
        content=body,
        headers={"content-type": "application/x-www-form-urlencoded"},
    )
    assert resp.status_code == 200
    assert resp.json() == {
        "status": "ok",
        "action": "crm_to_messenger",
        "processed": 1,
        "delivered": 0,
    }


def test_telegram_user_endpoint_requires_session(client: TestClient):
    resp = client.post(
        "/webhook/telegram-user",
        json={"message": {"id": 1, "from_id": {"user_id": 2}, "message": "hi"}},
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "error"

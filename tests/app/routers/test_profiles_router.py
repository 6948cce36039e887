"""Tests for profiles router."""

from unittest.mock import AsyncMock, patch
from uuid import uuid4


def test_list_profiles(client, setup_bot_profile, setup_user_profile):
    r = client.get("/profiles")
    assert r.status_code == 200
    items = r.json()["items"]
    assert {p["id"] for p in items} == {str(setup_bot_profile.id), str(setup_user_profile.id)}


def test_list_profiles_by_type(client, setup_bot_profile, setup_user_profile):
    r = client.get("/profiles", params={"messenger_type": "telegram_user"})
    assert [p["id"] for p in r.json()["items"]] == [str(setup_user_profile.id)]


@patch(
    "app.services.profile_service.ProfileService._bind_remote",
    new_callable=AsyncMock,
)
def test_create_bot_profile(mock_bind, client, setup_tenant):
    payload = {
        "messenger_type": "telegram_bot",
        "name": "Support bot",
        "token": "123456:secret-token",
        "domain": setup_tenant.domain,
    }
    r = client.post("/profiles", json=payload)
    assert r.status_code == 201
    data = r.json()
    assert data["name"] == "Support bot"
    assert data["domain"] == setup_tenant.domain
    assert "token" not in data
    assert "secret-token" not in r.text
    mock_bind.assert_awaited_once()


def test_create_bot_profile_without_token(client):
    r = client.post("/profiles", json={"messenger_type": "max", "name": "max bot"})
    assert r.status_code == 422


def test_create_personal_profile_hides_session(client):
    payload = {
        "messenger_type": "telegram_user",
        "name": "Me",
        "session_string": "1SessionStringValue",
    }
    r = client.post("/profiles", json=payload)
    assert r.status_code == 201
    assert "1SessionStringValue" not in r.text
    assert "encrypted_session" not in r.json()


def test_get_profile(client, setup_bot_profile):
    r = client.get(f"/profiles/{setup_bot_profile.id}")
    assert r.status_code == 200
    assert r.json()["messenger_type"] == "telegram_bot"


def test_get_profile_not_found(client):
    assert client.get(f"/profiles/{uuid4()}").status_code == 404


def test_link_domain(client, setup_unlinked_bot_profile):
    r = client.post(
        f"/profiles/{setup_unlinked_bot_profile.id}/domain",
        json={"domain": "alpha.bitrix24.ru"},
    )
    assert r.status_code == 200
    assert r.json()["domain"] == "alpha.bitrix24.ru"


def test_delete_profile(client, setup_user_profile):
    r = client.delete(f"/profiles/{setup_user_profile.id}")
    assert r.status_code == 204
    assert client.get(f"/profiles/{setup_user_profile.id}").status_code == 404


def test_delete_profile_not_found(client):
    assert client.delete(f"/profiles/{uuid4()}").status_code == 404

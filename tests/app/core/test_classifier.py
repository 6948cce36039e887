"""Tests for SourceClassifier."""

import pytest

from app.constants.messengers import MessengerType
from app.core.classifier import OriginKind, SourceClassifier


@pytest.fixture
def classifier():
    return SourceClassifier()


def crm_event():
    return {
        "event": "ONIMCONNECTORMESSAGEADD",
        "data": {
            "CONNECTOR": "telegram_bot_abc",
            "LINE": "7",
            "MESSAGES": [{"chat": {"id": "tgbot_1"}, "message": {"text": "hi"}}],
        },
        "auth": {"domain": "alpha.bitrix24.ru"},
    }


def bot_update():
    return {
        "update_id": 1,
        "message": {
            "message_id": 2,
            "date": 1609459200,
            "from": {"id": 3, "is_bot": False, "first_name": "A"},
            "chat": {"id": 3, "type": "private"},
            "text": "hello",
        },
    }


def max_update():
    return {
        "update_type": "message_created",
        "timestamp": 1700000000000,
        "message": {
            "sender": {"user_id": 11, "name": "Bob"},
            "recipient": {"chat_id": 22},
            "body": {"mid": "mid.1", "text": "hi"},
        },
    }


def test_crm_event(classifier):
    origin = classifier.classify(crm_event())
    assert origin.kind == OriginKind.CRM
    assert origin.messenger_type is None


def test_crm_event_wins_over_query_credential(classifier):
    origin = classifier.classify(crm_event(), {"bot_token": "x"})
    assert origin.kind == OriginKind.CRM


def test_bot_token_in_query(classifier):
    origin = classifier.classify(bot_update(), {"bot_token": "123:abc"})
    assert origin.kind == OriginKind.BOT_MESSENGER
    assert origin.messenger_type == MessengerType.TELEGRAM_BOT
    assert origin.credential_hint == "123:abc"


def test_max_token_in_query(classifier):
    origin = classifier.classify(max_update(), {"max_token": "tok"})
    assert origin.messenger_type == MessengerType.MAX
    assert origin.credential_hint == "tok"


def test_bot_update_shape(classifier):
    origin = classifier.classify(bot_update())
    assert origin.kind == OriginKind.BOT_MESSENGER
    assert origin.credential_hint is None


def test_bot_message_without_update_id(classifier):
    payload = bot_update()
    del payload["update_id"]
    assert classifier.classify(payload).kind == OriginKind.BOT_MESSENGER


def test_max_update_shape(classifier):
    origin = classifier.classify(max_update())
    assert origin.kind == OriginKind.PLATFORM_MESSENGER
    assert origin.messenger_type == MessengerType.MAX


def test_personal_update_shape(classifier):
    payload = {
        "profile_id": "0b8f5c2e-8f4e-4d59-9f0e-2f7f8f6b1a11",
        "session_id": "sess-1",
        "message": {"id": 5, "from_id": {"user_id": 9}, "message": "hey"},
    }
    origin = classifier.classify(payload)
    assert origin.kind == OriginKind.PERSONAL_MESSENGER
    assert origin.messenger_type == MessengerType.TELEGRAM_USER


@pytest.mark.parametrize("payload", [{}, {"foo": "bar"}, [], "text", None])
def test_unknown(classifier, payload):
    assert classifier.classify(payload).kind == OriginKind.UNKNOWN

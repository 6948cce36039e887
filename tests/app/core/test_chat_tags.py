"""Tests for CRM chat id tagging."""

import pytest

from app.constants.messengers import MessengerType
from app.core.chat_tags import parse_chat_tag, strip_chat_tag, tag_chat_id


@pytest.mark.parametrize(
    "messenger_type,chat_id,tagged",
    [
        (MessengerType.TELEGRAM_BOT, "123456", "tgbot_123456"),
        (MessengerType.MAX, "98765", "max_98765"),
        (MessengerType.TELEGRAM_USER, "user_42", "tguser_user_42"),
    ],
)
def test_tag_and_parse_are_inverse(messenger_type, chat_id, tagged):
    assert tag_chat_id(messenger_type, chat_id) == tagged
    parsed = parse_chat_tag(tagged)
    assert parsed.messenger_type == messenger_type
    assert parsed.chat_id == chat_id
    assert parsed.legacy is False
    assert strip_chat_tag(messenger_type, tagged) == chat_id


@pytest.mark.parametrize("tagged", ["tg_777", "telegram_777"])
def test_legacy_prefixes_map_to_bot(tagged):
    parsed = parse_chat_tag(tagged)
    assert parsed.messenger_type == MessengerType.TELEGRAM_BOT
    assert parsed.chat_id == "777"
    assert parsed.legacy is True
    assert strip_chat_tag(MessengerType.TELEGRAM_BOT, tagged) == "777"


def test_longest_prefix_wins():
    """tgbot_ must not be read as a shorter legacy prefix."""
    parsed = parse_chat_tag("tgbot_tg_1")
    assert parsed.messenger_type == MessengerType.TELEGRAM_BOT
    assert parsed.chat_id == "tg_1"


def test_untagged_falls_back_to_bot():
    parsed = parse_chat_tag("31337")
    assert parsed.messenger_type == MessengerType.TELEGRAM_BOT
    assert parsed.chat_id == "31337"
    assert parsed.legacy is True


def test_untagged_without_default_is_none():
    assert parse_chat_tag("31337", default=None) is None


def test_legacy_prefix_never_emitted():
    assert not tag_chat_id(MessengerType.TELEGRAM_BOT, "1").startswith("tg_")

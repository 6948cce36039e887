"""Tagging of native chat ids with messenger prefixes on the CRM side."""

from __future__ import annotations

from typing import NamedTuple, Optional

from app.constants.messengers import (
    CHAT_PREFIXES,
    LEGACY_CHAT_PREFIXES,
    MessengerType,
)


class ParsedChatTag(NamedTuple):
    messenger_type: MessengerType
    chat_id: str
    legacy: bool = False


def _known_prefixes() -> list[tuple[str, MessengerType, bool]]:
    prefixes = [(p, t, False) for t, p in CHAT_PREFIXES.items()]
    prefixes += [(p, t, True) for p, t in LEGACY_CHAT_PREFIXES.items()]
    # longest first so "tgbot_" is never read as something shorter
    return sorted(prefixes, key=lambda item: len(item[0]), reverse=True)


def tag_chat_id(messenger_type: MessengerType, chat_id: str) -> str:
    """Return the CRM-side chat id for a native chat id."""
    return f"{CHAT_PREFIXES[MessengerType(messenger_type)]}{chat_id}"


def strip_chat_tag(messenger_type: MessengerType, tagged: str) -> str:
    """Inverse of tag_chat_id. Legacy prefixes are stripped for the bot messenger."""
    messenger_type = MessengerType(messenger_type)
    prefix = CHAT_PREFIXES[messenger_type]
    if tagged.startswith(prefix):
        return tagged[len(prefix):]
    for legacy_prefix, legacy_type in LEGACY_CHAT_PREFIXES.items():
        if legacy_type == messenger_type and tagged.startswith(legacy_prefix):
            return tagged[len(legacy_prefix):]
    return tagged


def parse_chat_tag(
    tagged: str, default: Optional[MessengerType] = MessengerType.TELEGRAM_BOT
) -> Optional[ParsedChatTag]:
    """
    Split a CRM chat id into messenger type and native chat id.

    Untagged ids fall back to ``default`` (the bot messenger, matching chats
    created before prefixes existed). Returns None when ``default`` is None
    and no prefix matches.
    """
    tagged = str(tagged)
    for prefix, messenger_type, legacy in _known_prefixes():
        if tagged.startswith(prefix):
            return ParsedChatTag(messenger_type, tagged[len(prefix):], legacy)
    if default is None:
        return None
    return ParsedChatTag(default, tagged, True)

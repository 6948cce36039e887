"""Messenger types and the CRM chat-id prefixes that identify them."""

from enum import StrEnum


class MessengerType(StrEnum):
    """Supported messenger backends."""

    TELEGRAM_BOT = "telegram_bot"
    MAX = "max"
    TELEGRAM_USER = "telegram_user"


# Prefix written in front of the native chat id on the CRM side.
CHAT_PREFIXES: dict[MessengerType, str] = {
    MessengerType.TELEGRAM_BOT: "tgbot_",
    MessengerType.MAX: "max_",
    MessengerType.TELEGRAM_USER: "tguser_",
}

# Accepted when reading CRM chat ids, never written.
LEGACY_CHAT_PREFIXES: dict[str, MessengerType] = {
    "telegram_": MessengerType.TELEGRAM_BOT,
    "tg_": MessengerType.TELEGRAM_BOT,
}

# Messenger types that must be created with a credential token.
TOKEN_REQUIRED_TYPES = frozenset({MessengerType.TELEGRAM_BOT, MessengerType.MAX})

# Query parameters carrying a profile credential on the shared webhook URL.
CREDENTIAL_QUERY_PARAMS: dict[str, MessengerType] = {
    "bot_token": MessengerType.TELEGRAM_BOT,
    "max_token": MessengerType.MAX,
}

"""Messenger adapters."""

from app.adapters.base import AdapterCapabilities, BaseMessengerAdapter
from app.adapters.max import MaxAdapter
from app.adapters.registry import AdapterRegistry, get_adapter_registry
from app.adapters.telegram_bot import TelegramBotAdapter
from app.adapters.telegram_user import TelegramUserAdapter

__all__ = [
    "AdapterCapabilities",
    "AdapterRegistry",
    "BaseMessengerAdapter",
    "MaxAdapter",
    "TelegramBotAdapter",
    "TelegramUserAdapter",
    "get_adapter_registry",
]

from __future__ import annotations

from typing import Callable, Dict, Optional

from app.adapters.base import BaseMessengerAdapter
from app.adapters.max import MaxAdapter
from app.adapters.telegram_bot import TelegramBotAdapter
from app.adapters.telegram_user import TelegramUserAdapter
from app.constants.messengers import MessengerType


class AdapterRegistry:
    """Read-through cache of adapter instances, one per messenger type."""

    def __init__(self) -> None:
        self._factories: Dict[MessengerType, Callable[[], BaseMessengerAdapter]] = {}
        self._adapters: Dict[MessengerType, BaseMessengerAdapter] = {}

    def register_factory(
        self,
        messenger_type: MessengerType,
        factory: Callable[[], BaseMessengerAdapter],
    ) -> None:
        if messenger_type in self._factories:
            raise ValueError(f"Adapter already registered: {messenger_type}")
        self._factories[messenger_type] = factory

    def register_adapter(self, adapter: BaseMessengerAdapter) -> None:
        self._adapters[adapter.messenger_type] = adapter

    def get(self, messenger_type: MessengerType) -> Optional[BaseMessengerAdapter]:
        messenger_type = MessengerType(messenger_type)
        adapter = self._adapters.get(messenger_type)
        if adapter is None:
            factory = self._factories.get(messenger_type)
            if factory is None:
                return None
            adapter = factory()
            self._adapters[messenger_type] = adapter
        return adapter

    def list_types(self) -> list[MessengerType]:
        return sorted(set(self._factories) | set(self._adapters))


def build_default_registry() -> AdapterRegistry:
    registry = AdapterRegistry()
    registry.register_factory(MessengerType.TELEGRAM_BOT, TelegramBotAdapter)
    registry.register_factory(MessengerType.MAX, MaxAdapter)
    registry.register_factory(MessengerType.TELEGRAM_USER, TelegramUserAdapter)
    return registry


_default_registry: Optional[AdapterRegistry] = None


def get_adapter_registry() -> AdapterRegistry:
    global _default_registry
    if _default_registry is None:
        _default_registry = build_default_registry()
    return _default_registry

"""
Classification of inbound webhook payloads by origin.

Checks run in a fixed order: the CRM connector envelope, then a credential
carried in the request address, then per-messenger payload shapes.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Mapping, Optional

from app.constants.messengers import CREDENTIAL_QUERY_PARAMS, MessengerType

CRM_MESSAGE_EVENT = "ONIMCONNECTORMESSAGEADD"


class OriginKind(StrEnum):
    CRM = "crm"
    BOT_MESSENGER = "bot_messenger"
    PLATFORM_MESSENGER = "platform_messenger"
    PERSONAL_MESSENGER = "personal_messenger"
    UNKNOWN = "unknown"


_KIND_BY_MESSENGER = {
    MessengerType.TELEGRAM_BOT: OriginKind.BOT_MESSENGER,
    MessengerType.MAX: OriginKind.PLATFORM_MESSENGER,
    MessengerType.TELEGRAM_USER: OriginKind.PERSONAL_MESSENGER,
}
_MESSENGER_BY_KIND = {kind: mt for mt, kind in _KIND_BY_MESSENGER.items()}


@dataclass(frozen=True)
class Origin:
    kind: OriginKind
    credential_hint: Optional[str] = None

    @property
    def messenger_type(self) -> Optional[MessengerType]:
        return _MESSENGER_BY_KIND.get(self.kind)

    @classmethod
    def for_messenger(
        cls, messenger_type: MessengerType, credential_hint: Optional[str] = None
    ) -> Origin:
        return cls(_KIND_BY_MESSENGER[messenger_type], credential_hint)


UNKNOWN_ORIGIN = Origin(OriginKind.UNKNOWN)


def _dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


class SourceClassifier:
    """Stateless; ``classify`` never raises."""

    def classify(
        self, payload: Any, query_params: Optional[Mapping[str, str]] = None
    ) -> Origin:
        payload = _dict(payload)
        query_params = query_params or {}

        if self.is_crm_event(payload):
            return Origin(OriginKind.CRM)

        for param, messenger_type in CREDENTIAL_QUERY_PARAMS.items():
            token = query_params.get(param)
            if token:
                return Origin.for_messenger(messenger_type, credential_hint=token)

        if self.is_personal_update(payload):
            return Origin(OriginKind.PERSONAL_MESSENGER)
        if self.is_bot_update(payload):
            return Origin(OriginKind.BOT_MESSENGER)
        if self.is_platform_update(payload):
            return Origin(OriginKind.PLATFORM_MESSENGER)
        return UNKNOWN_ORIGIN

    @staticmethod
    def is_crm_event(payload: dict) -> bool:
        data = _dict(payload.get("data"))
        if "CONNECTOR" in data and "MESSAGES" in data:
            return True
        return str(payload.get("event", "")).upper() == CRM_MESSAGE_EVENT and bool(data)

    @staticmethod
    def is_personal_update(payload: dict) -> bool:
        has_session = bool(payload.get("profile_id") or payload.get("session_id"))
        return has_session and isinstance(payload.get("message"), dict)

    @staticmethod
    def is_bot_update(payload: dict) -> bool:
        if "update_id" in payload:
            return True
        message = _dict(payload.get("message"))
        return (
            "id" in _dict(message.get("from"))
            and "id" in _dict(message.get("chat"))
            and "message_id" in message
        )

    @staticmethod
    def is_platform_update(payload: dict) -> bool:
        message = _dict(payload.get("message"))
        if "recipient" in message:
            return True
        return "user_id" in _dict(message.get("sender"))

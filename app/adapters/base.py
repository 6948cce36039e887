"""
Messenger adapter interface.

Adapters translate between one messenger backend and the canonical message
format. They hold no per-tenant state: every call receives an
AdapterContext carrying the credential, domain and (for session-based
backends) the session to act through.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional, Sequence, Union

from app.constants.messengers import MessengerType
from app.core.exceptions import SessionContextRequired
from app.schemas.canonical import (
    AdapterContext,
    Attachment,
    CanonicalMessage,
    DeliveryResult,
    EmptyMessage,
)

logger = logging.getLogger(__name__)

NormalizedMessage = Union[CanonicalMessage, EmptyMessage]


@dataclass(frozen=True)
class AdapterCapabilities:
    requires_session_context: bool = False
    supports_webhook_registration: bool = False
    # inbound attachments already carry downloadable urls
    supports_file_urls: bool = False


class BaseMessengerAdapter(ABC):
    """Contract for messenger adapters. New backends implement this interface."""

    messenger_type: MessengerType
    capabilities: AdapterCapabilities = AdapterCapabilities()

    def normalize_incoming(
        self, raw_payload: Any, context: Optional[AdapterContext] = None
    ) -> NormalizedMessage:
        """Normalize a native payload. Never raises; malformed input yields EmptyMessage."""
        try:
            return self._normalize(raw_payload, context)
        except Exception as e:
            logger.warning(
                "Malformed %s payload: %s: %s", self.messenger_type, type(e).__name__, e
            )
            return EmptyMessage(
                messenger_type=self.messenger_type,
                reason=f"malformed payload: {type(e).__name__}",
                raw=raw_payload,
            )

    @abstractmethod
    def _normalize(
        self, raw_payload: Any, context: Optional[AdapterContext]
    ) -> NormalizedMessage: ...

    @abstractmethod
    async def _send_text(
        self, context: AdapterContext, chat_id: str, text: str
    ) -> DeliveryResult: ...

    @abstractmethod
    async def _send_attachment(
        self,
        context: AdapterContext,
        chat_id: str,
        attachment: Attachment,
        caption: Optional[str],
    ) -> DeliveryResult: ...

    async def resolve_file_reference(
        self, context: AdapterContext, file_ref: str
    ) -> Optional[str]:
        """Turn an opaque backend file handle into a downloadable url."""
        return None

    async def register_webhook(self, context: AdapterContext, url: str) -> bool:
        raise NotImplementedError(
            f"{self.messenger_type} does not support webhook registration"
        )

    async def unregister_webhook(self, context: AdapterContext, url: str) -> bool:
        raise NotImplementedError(
            f"{self.messenger_type} does not support webhook registration"
        )

    def recipient_id(self, chat_id: str, counterpart_id: Optional[str] = None) -> str:
        """Backend-native send target for a bound chat."""
        return chat_id

    def ensure_context(self, context: Optional[AdapterContext]) -> AdapterContext:
        if context is None:
            context = AdapterContext()
        if self.capabilities.requires_session_context and context.session is None:
            raise SessionContextRequired(
                f"{self.messenger_type} calls need a session context",
                messenger_type=str(self.messenger_type),
            )
        return context

    async def send(
        self,
        context: Optional[AdapterContext],
        chat_id: str,
        text: Optional[str],
        attachments: Sequence[Attachment] = (),
    ) -> DeliveryResult:
        """
        Send once, without retrying.

        Attachments go first and the first one carries ``text`` as its
        caption; text is sent on its own only when there are no attachments.
        """
        context = self.ensure_context(context)
        if not attachments:
            if not text:
                return DeliveryResult(ok=False, error="nothing to send")
            return await self._send_text(context, chat_id, text)

        caption = text or None
        result = DeliveryResult(ok=False, error="nothing to send")
        delivered: Optional[DeliveryResult] = None
        for attachment in attachments:
            result = await self._send_attachment(context, chat_id, attachment, caption)
            caption = None
            if result.ok and delivered is None:
                delivered = result
        return delivered or result

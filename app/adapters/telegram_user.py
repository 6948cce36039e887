"""
Telegram personal-account adapter.

Messages reach us from an external listener that holds the user sessions
open; the listener forwards ``{profile_id, session_id, session_name,
sender_name, message: {...}}``. Sends go through Telethon using the session
carried in the AdapterContext. Chat ids are ``user_<numeric id>``.
"""

from __future__ import annotations

import io
import logging
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from pydantic import ValidationError
from telethon.errors import RPCError

from app.adapters.base import AdapterCapabilities, BaseMessengerAdapter, NormalizedMessage
from app.clients.telegram_sessions import SessionClientProvider
from app.constants.messengers import MessengerType
from app.schemas.canonical import (
    AdapterContext,
    Attachment,
    AttachmentKind,
    CanonicalMessage,
    DeliveryResult,
    EmptyMessage,
    SessionContext,
)
from app.utils.downloads import download_file

logger = logging.getLogger(__name__)

USER_CHAT_PREFIX = "user_"


def peer_user_id(peer: Any) -> Optional[str]:
    """Numeric id from an int, a digit string or a peer dict (user_id/chat_id/channel_id)."""
    if isinstance(peer, bool):
        return None
    if isinstance(peer, int):
        return str(peer)
    if isinstance(peer, str):
        candidate = peer.lstrip("-")
        return peer if candidate.isdigit() else None
    if isinstance(peer, dict):
        for key in ("user_id", "chat_id", "channel_id"):
            if peer.get(key) is not None:
                return peer_user_id(peer[key])
    return None


def _parse_date(value: Any) -> datetime:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return datetime.now(timezone.utc)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            pass
    return datetime.now(timezone.utc)


class TelegramUserAdapter(BaseMessengerAdapter):
    messenger_type = MessengerType.TELEGRAM_USER
    capabilities = AdapterCapabilities(requires_session_context=True)

    def __init__(self, client_provider: Optional[SessionClientProvider] = None) -> None:
        self._clients = client_provider or SessionClientProvider()

    @staticmethod
    def session_from_payload(raw_payload: Any) -> Optional[SessionContext]:
        """Session identity the listener attached to a forwarded update."""
        if not isinstance(raw_payload, dict) or not raw_payload.get("profile_id"):
            return None
        try:
            profile_id = UUID(str(raw_payload["profile_id"]))
        except ValueError:
            return None
        session_id = raw_payload.get("session_id")
        return SessionContext(
            profile_id=profile_id,
            session_id=str(session_id) if session_id is not None else None,
            session_name=raw_payload.get("session_name"),
        )

    def _normalize(
        self, raw_payload: Any, context: Optional[AdapterContext]
    ) -> NormalizedMessage:
        if context is None or context.session is None:
            return EmptyMessage(
                messenger_type=self.messenger_type,
                reason="session context required",
                raw=raw_payload,
            )
        message = raw_payload.get("message") if isinstance(raw_payload, dict) else None
        if not isinstance(message, dict):
            return EmptyMessage(
                messenger_type=self.messenger_type,
                reason="no message in update",
                raw=raw_payload,
            )

        outgoing = bool(message.get("out"))
        from_id = peer_user_id(message.get("from_id"))
        peer_id = peer_user_id(message.get("peer_id"))
        # the other party is the peer for our own messages, the sender otherwise
        counterpart = (peer_id if outgoing else from_id) or from_id or peer_id
        if counterpart is None:
            return EmptyMessage(
                messenger_type=self.messenger_type,
                reason="interlocutor not found",
                raw=raw_payload,
            )
        name = raw_payload.get("sender_name") if not outgoing else None
        session = context.session
        try:
            return CanonicalMessage(
                messenger_type=self.messenger_type,
                chat_id=f"{USER_CHAT_PREFIX}{counterpart}",
                counterpart_id=counterpart,
                counterpart_name=str(name or "Unknown"),
                text=message.get("message") or None,
                attachments=self._extract_attachments(message.get("media")),
                message_id=(
                    str(message["id"]) if message.get("id") is not None else None
                ),
                timestamp=_parse_date(message.get("date") or raw_payload.get("timestamp")),
                outgoing=outgoing,
                metadata={
                    "profile_id": str(session.profile_id),
                    "session_id": session.session_id,
                    "session_name": session.session_name,
                },
            )
        except ValidationError as e:
            return EmptyMessage(
                messenger_type=self.messenger_type,
                reason=f"invalid message fields: {e.error_count()} errors",
                raw=raw_payload,
            )

    @staticmethod
    def _extract_attachments(media: Any) -> list[Attachment]:
        items = media if isinstance(media, list) else [media]
        attachments = []
        for item in items:
            if not isinstance(item, dict) or not item.get("url"):
                continue
            attachments.append(
                Attachment(
                    kind=AttachmentKind.from_native(item.get("type")),
                    url=item["url"],
                    name=item.get("file_name") or item.get("name"),
                )
            )
        return attachments

    @staticmethod
    def _peer(chat_id: str) -> Any:
        raw = chat_id[len(USER_CHAT_PREFIX):] if chat_id.startswith(USER_CHAT_PREFIX) else chat_id
        try:
            return int(raw)
        except ValueError:
            return raw

    async def _send_text(
        self, context: AdapterContext, chat_id: str, text: str
    ) -> DeliveryResult:
        try:
            async with self._clients.open(context.session) as client:
                sent = await client.send_message(self._peer(chat_id), text)
        except (RPCError, ConnectionError, ValueError) as e:
            logger.warning(
                "Telegram user send to %s via session %s failed: %s",
                chat_id,
                context.session.session_id,
                e,
            )
            return DeliveryResult(ok=False, error=str(e))
        return DeliveryResult(ok=True, provider_message_id=str(sent.id))

    async def _send_attachment(
        self,
        context: AdapterContext,
        chat_id: str,
        attachment: Attachment,
        caption: Optional[str],
    ) -> DeliveryResult:
        if not attachment.url:
            return DeliveryResult(ok=False, error="attachment has no url")
        content = await download_file(attachment.url)
        if content is not None:
            upload: Any = io.BytesIO(content)
            upload.name = attachment.name or "file"
        else:
            upload = attachment.url
        try:
            async with self._clients.open(context.session) as client:
                sent = await client.send_file(
                    self._peer(chat_id),
                    file=upload,
                    caption=caption or "",
                    force_document=attachment.kind != AttachmentKind.IMAGE,
                )
        except (RPCError, ConnectionError, ValueError) as e:
            logger.warning(
                "Telegram user file send to %s via session %s failed: %s",
                chat_id,
                context.session.session_id,
                e,
            )
            return DeliveryResult(ok=False, error=str(e))
        return DeliveryResult(ok=True, provider_message_id=str(sent.id))

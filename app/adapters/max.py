"""
MAX platform messenger adapter.

Updates arrive as ``{"update_type": ..., "message": {...}}``. Replies go to
the counterpart user id; images are passed by url, other files are uploaded
first and referenced by token.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from app.adapters.base import AdapterCapabilities, BaseMessengerAdapter, NormalizedMessage
from app.clients.max_api import MaxApiClient, MaxApiError
from app.constants.messengers import MessengerType
from app.core.exceptions import AdapterSendFailure
from app.schemas.canonical import (
    AdapterContext,
    Attachment,
    AttachmentKind,
    CanonicalMessage,
    DeliveryResult,
    EmptyMessage,
)
from app.utils.downloads import download_file

logger = logging.getLogger(__name__)

_KIND_BY_TYPE = {
    "image": AttachmentKind.IMAGE,
    "photo": AttachmentKind.IMAGE,
    "video": AttachmentKind.VIDEO,
    "audio": AttachmentKind.AUDIO,
    "file": AttachmentKind.FILE,
}
_DEFAULT_NAMES = {
    AttachmentKind.IMAGE: "image_{ts}.jpg",
    AttachmentKind.VIDEO: "video_{ts}.mp4",
    AttachmentKind.AUDIO: "audio_{ts}.mp3",
    AttachmentKind.FILE: "file_{ts}",
}


def _timestamp(value: Any) -> datetime:
    """MAX timestamps are unix milliseconds."""
    try:
        millis = int(value)
    except (TypeError, ValueError):
        return datetime.now(timezone.utc)
    try:
        return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return datetime.now(timezone.utc)


class MaxAdapter(BaseMessengerAdapter):
    messenger_type = MessengerType.MAX
    capabilities = AdapterCapabilities(
        supports_webhook_registration=True,
        supports_file_urls=True,
    )

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._transport = transport

    def _client(self, context: AdapterContext) -> MaxApiClient:
        if not context.credential:
            raise AdapterSendFailure(
                "MAX token missing",
                messenger_type=str(self.messenger_type),
                domain=context.domain,
            )
        return MaxApiClient(context.credential, transport=self._transport)

    def _normalize(
        self, raw_payload: Any, context: Optional[AdapterContext]
    ) -> NormalizedMessage:
        message = raw_payload.get("message") if isinstance(raw_payload, dict) else None
        if not isinstance(message, dict):
            return EmptyMessage(
                messenger_type=self.messenger_type,
                reason="no message in update",
                raw=raw_payload,
            )
        sender = message.get("sender") or {}
        recipient = message.get("recipient") or {}
        body = message.get("body") or {}
        if not isinstance(sender, dict) or not isinstance(recipient, dict):
            return EmptyMessage(
                messenger_type=self.messenger_type,
                reason="malformed sender or recipient",
                raw=raw_payload,
            )
        if not isinstance(body, dict):
            body = {}

        user_id = sender.get("user_id")
        chat_id = recipient.get("chat_id") or user_id
        if chat_id is None:
            return EmptyMessage(
                messenger_type=self.messenger_type,
                reason="chat id not found",
                raw=raw_payload,
            )

        full_name = " ".join(
            p for p in (sender.get("first_name"), sender.get("last_name")) if p
        )
        name = full_name or sender.get("name") or sender.get("username") or "User"
        raw_ts = message.get("timestamp") or raw_payload.get("timestamp")

        mid = body.get("mid")
        try:
            return CanonicalMessage(
                messenger_type=self.messenger_type,
                chat_id=str(chat_id),
                counterpart_id=str(user_id) if user_id is not None else None,
                counterpart_name=str(name),
                text=body.get("text"),
                attachments=self._extract_attachments(body.get("attachments"), raw_ts),
                message_id=str(mid) if mid is not None else None,
                timestamp=_timestamp(raw_ts),
                metadata={"update_type": raw_payload.get("update_type")},
            )
        except ValidationError as e:
            return EmptyMessage(
                messenger_type=self.messenger_type,
                reason=f"invalid message fields: {e.error_count()} errors",
                raw=raw_payload,
            )

    @staticmethod
    def _extract_attachments(items: Any, raw_ts: Any) -> list[Attachment]:
        if not isinstance(items, list):
            return []
        ts = raw_ts or int(datetime.now(timezone.utc).timestamp())
        attachments: list[Attachment] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            item_type = item.get("type")
            kind = _KIND_BY_TYPE.get(item_type) if isinstance(item_type, str) else None
            payload = item.get("payload") or {}
            url = payload.get("url") if isinstance(payload, dict) else None
            if kind is None or not url:
                continue
            name = item.get("filename") or _DEFAULT_NAMES[kind].format(ts=ts)
            attachments.append(Attachment(kind=kind, url=url, name=name))
        return attachments

    def recipient_id(self, chat_id: str, counterpart_id: Optional[str] = None) -> str:
        """MAX sends address users; a chat without a known user cannot be reached."""
        if not counterpart_id:
            raise AdapterSendFailure(
                "MAX user id unknown for chat",
                messenger_type=str(self.messenger_type),
                chat_id=chat_id,
            )
        return counterpart_id

    async def _send_text(
        self, context: AdapterContext, chat_id: str, text: str
    ) -> DeliveryResult:
        return await self._deliver(context, chat_id, text, None)

    async def _send_attachment(
        self,
        context: AdapterContext,
        chat_id: str,
        attachment: Attachment,
        caption: Optional[str],
    ) -> DeliveryResult:
        if not attachment.url:
            return DeliveryResult(ok=False, error="attachment has no url")
        if attachment.kind == AttachmentKind.IMAGE:
            item = {"type": "image", "payload": {"url": attachment.url}}
            return await self._deliver(context, chat_id, caption, item)

        content = await download_file(attachment.url)
        if content is None:
            return DeliveryResult(ok=False, error="download failed")
        upload_type = str(attachment.kind)
        try:
            token = await self._client(context).upload(
                content, attachment.name or f"file.{upload_type}", upload_type
            )
        except (MaxApiError, httpx.HTTPError) as e:
            logger.warning("MAX upload for %s failed: %s", chat_id, e)
            return DeliveryResult(ok=False, error=str(e))
        item = {"type": upload_type, "payload": {"token": token}}
        return await self._deliver(context, chat_id, caption, item)

    async def _deliver(
        self,
        context: AdapterContext,
        user_id: str,
        text: Optional[str],
        attachment: Optional[dict[str, Any]],
    ) -> DeliveryResult:
        try:
            data = await self._client(context).send_message(
                user_id, text, [attachment] if attachment else None
            )
        except (MaxApiError, httpx.HTTPError) as e:
            # attachment.not.ready is reported like any other failure
            logger.warning("MAX send to %s failed: %s", user_id, e)
            return DeliveryResult(ok=False, error=str(e))
        sent = data.get("message") or {}
        mid = (sent.get("body") or {}).get("mid") if isinstance(sent, dict) else None
        return DeliveryResult(ok=True, provider_message_id=mid)

    async def register_webhook(self, context: AdapterContext, url: str) -> bool:
        data = await self._client(context).subscribe(url)
        return bool(data.get("success", True))

    async def unregister_webhook(self, context: AdapterContext, url: str) -> bool:
        data = await self._client(context).unsubscribe(url)
        return bool(data.get("success", True))

"""
Telegram bot adapter.

Uses python-telegram-bot for parsing updates and calling the Bot API. The
bot token travels in AdapterContext.credential; Bot instances are cached
per token.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from telegram import Bot, Message, Update
from telegram.error import TelegramError

from app.adapters.base import AdapterCapabilities, BaseMessengerAdapter, NormalizedMessage
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


def _sent(message: Optional[Message]) -> DeliveryResult:
    return DeliveryResult(
        ok=True,
        provider_message_id=(
            str(message.message_id) if message and message.message_id else None
        ),
    )


class TelegramBotAdapter(BaseMessengerAdapter):
    """Telegram Bot API adapter: normalize webhook updates, send through the bot."""

    messenger_type = MessengerType.TELEGRAM_BOT
    capabilities = AdapterCapabilities(supports_webhook_registration=True)

    def __init__(self) -> None:
        self._bots: dict[str, Bot] = {}

    def _get_bot(self, context: AdapterContext) -> Bot:
        token = context.credential
        if not token:
            raise AdapterSendFailure(
                "Bot token missing", messenger_type=str(self.messenger_type)
            )
        bot = self._bots.get(token)
        if bot is None:
            bot = Bot(token=token)
            self._bots[token] = bot
        return bot

    def _normalize(
        self, raw_payload: Any, context: Optional[AdapterContext]
    ) -> NormalizedMessage:
        if not isinstance(raw_payload, dict):
            return EmptyMessage(
                messenger_type=self.messenger_type,
                reason="payload is not an object",
                raw=raw_payload,
            )
        try:
            update = Update.de_json(raw_payload, None)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning("Unparseable Telegram update: %s", e)
            return EmptyMessage(
                messenger_type=self.messenger_type,
                reason=f"unparseable update: {e}",
                raw=raw_payload,
            )
        msg = update.effective_message if update else None
        if msg is None:
            return EmptyMessage(
                messenger_type=self.messenger_type,
                reason="non-message update",
                raw=raw_payload,
            )
        if msg.chat is None:
            return EmptyMessage(
                messenger_type=self.messenger_type,
                reason="chat id not found",
                raw=raw_payload,
            )

        user = update.effective_user or msg.from_user
        if user is not None:
            full_name = " ".join(p for p in (user.first_name, user.last_name) if p)
            name = full_name or user.username or "Unknown"
            counterpart_id = str(user.id)
        else:
            name = "Unknown"
            counterpart_id = None

        return CanonicalMessage(
            messenger_type=self.messenger_type,
            chat_id=str(msg.chat_id),
            counterpart_id=counterpart_id,
            counterpart_name=name,
            text=msg.text or msg.caption,
            attachments=self._extract_attachments(msg),
            message_id=str(msg.message_id),
            timestamp=msg.date,
            metadata={"update_id": update.update_id},
        )

    @staticmethod
    def _extract_attachments(msg: Message) -> list[Attachment]:
        attachments: list[Attachment] = []
        if msg.photo:
            # last size is the largest
            attachments.append(
                Attachment(
                    kind=AttachmentKind.IMAGE,
                    file_ref=msg.photo[-1].file_id,
                    name="photo.jpg",
                )
            )
        if msg.document:
            attachments.append(
                Attachment(
                    kind=AttachmentKind.FILE,
                    file_ref=msg.document.file_id,
                    name=msg.document.file_name or "document",
                )
            )
        if msg.voice:
            attachments.append(
                Attachment(
                    kind=AttachmentKind.AUDIO,
                    file_ref=msg.voice.file_id,
                    name="voice.ogg",
                )
            )
        if msg.audio:
            attachments.append(
                Attachment(
                    kind=AttachmentKind.AUDIO,
                    file_ref=msg.audio.file_id,
                    name=msg.audio.file_name or "audio.mp3",
                )
            )
        if msg.video:
            attachments.append(
                Attachment(
                    kind=AttachmentKind.VIDEO,
                    file_ref=msg.video.file_id,
                    name=msg.video.file_name or "video.mp4",
                )
            )
        return attachments

    async def resolve_file_reference(
        self, context: AdapterContext, file_ref: str
    ) -> Optional[str]:
        """Bot API getFile; PTB returns the full download url in file_path."""
        try:
            tg_file = await self._get_bot(context).get_file(file_ref)
        except TelegramError as e:
            logger.warning("getFile failed for %s: %s", file_ref, e)
            return None
        return tg_file.file_path

    async def _send_text(
        self, context: AdapterContext, chat_id: str, text: str
    ) -> DeliveryResult:
        try:
            sent = await self._get_bot(context).send_message(chat_id=chat_id, text=text)
        except TelegramError as e:
            logger.warning("Telegram sendMessage to %s failed: %s", chat_id, e)
            return DeliveryResult(ok=False, error=str(e))
        return _sent(sent)

    async def _send_attachment(
        self,
        context: AdapterContext,
        chat_id: str,
        attachment: Attachment,
        caption: Optional[str],
    ) -> DeliveryResult:
        if not attachment.url:
            return DeliveryResult(ok=False, error="attachment has no url")
        bot = self._get_bot(context)
        # CRM download links need the portal session, so upload the bytes when we can
        content = await download_file(attachment.url)
        payload: Any = content if content is not None else attachment.url
        try:
            if attachment.kind == AttachmentKind.IMAGE:
                sent = await bot.send_photo(
                    chat_id=chat_id, photo=payload, caption=caption
                )
            else:
                sent = await bot.send_document(
                    chat_id=chat_id,
                    document=payload,
                    caption=caption,
                    filename=attachment.name,
                )
        except TelegramError as e:
            logger.warning(
                "Telegram file send to %s failed (%s): %s",
                chat_id,
                attachment.name,
                e,
            )
            return DeliveryResult(ok=False, error=str(e))
        return _sent(sent)

    async def register_webhook(self, context: AdapterContext, url: str) -> bool:
        return await self._get_bot(context).set_webhook(url=url)

    async def unregister_webhook(self, context: AdapterContext, url: str) -> bool:
        return await self._get_bot(context).delete_webhook()

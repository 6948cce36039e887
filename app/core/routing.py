"""
Two-way routing between the CRM Open Lines connector and messenger backends.

CRM -> messenger: every message in a connector event is relayed in order and
confirmed to the CRM exactly once, whatever happens to its siblings.

Messenger -> CRM: normalize, resolve or bind the chat, check the open line,
forward. Configuration gaps and CRM rejections are answered with a short
notice in the chat.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session

from app.adapters.base import BaseMessengerAdapter
from app.adapters.registry import AdapterRegistry, get_adapter_registry
from app.adapters.telegram_user import TelegramUserAdapter
from app.clients.bitrix import BitrixClient
from app.constants.messengers import MessengerType
from app.constants.notices import (
    CONNECTION_ESTABLISHED_NOTICE,
    LINE_NOT_CONFIGURED_NOTICE,
    NO_TENANT_NOTICE,
    NOT_CONFIGURED_NOTICE,
    RELAY_FAILED_NOTICE,
)
from app.core.chat_tags import parse_chat_tag, tag_chat_id
from app.core.classifier import Origin, OriginKind, SourceClassifier
from app.core.exceptions import (
    AdapterSendFailure,
    ConnectorNotFound,
    CrmApiError,
    LineNotConfigured,
    NoDomainConfigured,
    NoTenantConfigured,
    ProfileNotFound,
    RoutingError,
    SessionContextRequired,
    UnknownSource,
)
from app.models.chat_connection import ChatConnection
from app.schemas.canonical import (
    AdapterContext,
    Attachment,
    AttachmentKind,
    CanonicalMessage,
)
from app.services.delivery_confirmation import DeliveryConfirmation
from app.services.identity_resolver import IdentityResolver, TenantDisambiguator
from app.services.profile_service import ProfileService
from app.services.tenant_integration_service import TenantIntegrationService
from app.utils.markup import clean_crm_markup

logger = logging.getLogger(__name__)


def _error(message: str, **extra: Any) -> dict[str, Any]:
    return {"status": "error", "message": message, **extra}


def crm_file_type(kind: AttachmentKind) -> str:
    """CRM attachment vocabulary matches the coarse kinds one to one."""
    return AttachmentKind(kind).value


def crm_files_to_attachments(files: Any) -> list[Attachment]:
    """Attachments from a CRM message's ``files``; entries without a link are dropped."""
    if isinstance(files, dict):
        files = list(files.values())
    if not isinstance(files, list):
        return []
    attachments = []
    for item in files:
        if not isinstance(item, dict):
            continue
        url = item.get("downloadLink") or item.get("link")
        if not url:
            continue
        attachments.append(
            Attachment(
                kind=AttachmentKind.from_native(item.get("type")),
                url=url,
                name=item.get("name") or item.get("file_name") or "file",
            )
        )
    return attachments


class RoutingDispatcher:
    def __init__(
        self,
        db: Session,
        crm_client: BitrixClient,
        registry: Optional[AdapterRegistry] = None,
        classifier: Optional[SourceClassifier] = None,
        disambiguator: Optional[TenantDisambiguator] = None,
    ) -> None:
        self.db = db
        self.crm = crm_client
        self.registry = registry or get_adapter_registry()
        self.classifier = classifier or SourceClassifier()
        self.tenants = TenantIntegrationService(db)
        self.profiles = ProfileService(db, registry=self.registry)
        self.resolver = IdentityResolver(
            db, disambiguator=disambiguator, profile_service=self.profiles
        )
        self.confirmation = DeliveryConfirmation(crm_client, self.tenants)

    async def dispatch(
        self, payload: Any, query_params: Optional[Mapping[str, str]] = None
    ) -> dict[str, Any]:
        origin = self.classifier.classify(payload, query_params)
        if origin.kind == OriginKind.CRM:
            return await self.crm_to_messenger(payload)
        return await self.messenger_to_crm(origin, payload)

    # CRM -> messenger

    async def crm_to_messenger(self, payload: dict[str, Any]) -> dict[str, Any]:
        data = payload.get("data") if isinstance(payload, dict) else None
        data = data if isinstance(data, dict) else {}
        connector_id = data.get("CONNECTOR")
        messages = data.get("MESSAGES")
        if isinstance(messages, dict):
            messages = list(messages.values())
        if not connector_id or not messages or not isinstance(messages, list):
            return _error("Invalid data")

        auth = payload.get("auth") if isinstance(payload.get("auth"), dict) else {}
        domain = auth.get("domain") or self.tenants.get_domain_for_connector(
            connector_id
        )
        delivered = 0
        for item in messages:
            if not isinstance(item, dict):
                logger.warning("Skipping malformed CRM message: %r", item)
                continue
            if await self._relay_crm_message(domain, connector_id, item):
                delivered += 1
        return {
            "status": "ok",
            "action": "crm_to_messenger",
            "processed": len(messages),
            "delivered": delivered,
        }

    async def _relay_crm_message(
        self, domain: Optional[str], connector_id: str, item: dict[str, Any]
    ) -> bool:
        chat = item.get("chat") if isinstance(item.get("chat"), dict) else {}
        message = item.get("message") if isinstance(item.get("message"), dict) else {}
        chat_tag = str(chat.get("id") or "")
        success = False
        try:
            if not chat_tag:
                raise AdapterSendFailure("Chat id missing", domain=domain)
            parsed = parse_chat_tag(chat_tag)
            adapter = self._adapter(parsed.messenger_type)
            connection = self.resolver.resolve(parsed.messenger_type, parsed.chat_id)
            context = self._context_for(adapter, connection, domain)
            target = adapter.recipient_id(
                parsed.chat_id, connection.counterpart_id if connection else None
            )
            text = clean_crm_markup(message.get("text"))
            attachments = crm_files_to_attachments(message.get("files"))
            success = await self._send_in_order(
                adapter, context, target, text, attachments
            )
            if not success:
                logger.warning(
                    "Relay to %s chat %s for %s failed",
                    parsed.messenger_type,
                    parsed.chat_id,
                    domain,
                )
        except Exception:
            logger.exception(
                "Relay of CRM message %s to %s failed (domain=%s)",
                message.get("id"),
                chat_tag,
                domain,
            )
            success = False
        self.confirmation.confirm(domain, connector_id, item, chat_tag, success)
        return success

    @staticmethod
    async def _send_in_order(
        adapter: BaseMessengerAdapter,
        context: AdapterContext,
        target: str,
        text: str,
        attachments: list[Attachment],
    ) -> bool:
        """One send per attachment, caption on the first; text alone if left over."""
        results = []
        caption: Optional[str] = text or None
        for attachment in attachments:
            result = await adapter.send(context, target, caption, [attachment])
            results.append(result.ok)
            caption = None
        if caption:
            result = await adapter.send(context, target, caption, [])
            results.append(result.ok)
        return any(results)

    def _adapter(self, messenger_type: MessengerType) -> BaseMessengerAdapter:
        adapter = self.registry.get(messenger_type)
        if adapter is None:
            raise AdapterSendFailure(
                f"No adapter for {messenger_type}", messenger_type=str(messenger_type)
            )
        return adapter

    def _context_for(
        self,
        adapter: BaseMessengerAdapter,
        connection: Optional[ChatConnection],
        domain: Optional[str],
    ) -> AdapterContext:
        """Credential or session to act through for a bound chat."""
        profile = connection.profile if connection is not None else None
        domain = connection.domain if connection is not None else domain
        if adapter.capabilities.requires_session_context:
            if profile is None:
                raise SessionContextRequired(
                    "No session bound to chat",
                    messenger_type=str(adapter.messenger_type),
                    domain=domain,
                )
            return AdapterContext(
                domain=domain, session=self.profiles.session_context(profile)
            )
        credential = profile.token if profile is not None and profile.token else None
        if credential is None:
            credential = self.tenants.get_messenger_token(domain, adapter.messenger_type)
        if credential is None:
            raise AdapterSendFailure(
                "No credential for chat",
                messenger_type=str(adapter.messenger_type),
                domain=domain,
            )
        return AdapterContext(domain=domain, credential=credential)

    # messenger -> CRM

    def _inbound_adapter(self, origin: Origin) -> BaseMessengerAdapter:
        messenger_type = origin.messenger_type
        adapter = self.registry.get(messenger_type) if messenger_type else None
        if adapter is None:
            raise UnknownSource("Unknown source", origin=str(origin.kind))
        return adapter

    async def messenger_to_crm(
        self, origin: Origin, payload: Any
    ) -> dict[str, Any]:
        messenger_type = origin.messenger_type
        try:
            adapter = self._inbound_adapter(origin)
        except UnknownSource as e:
            logger.warning("Unknown webhook source: %r", payload)
            return _error(e.message)

        session = None
        if adapter.capabilities.requires_session_context:
            session = TelegramUserAdapter.session_from_payload(payload)
            if session is None:
                return _error("profile_id and session_id are required")
        inbound_context = AdapterContext(
            credential=origin.credential_hint, session=session
        )

        message = adapter.normalize_incoming(payload, inbound_context)
        if message.is_empty:
            reason = getattr(message, "reason", "empty message")
            logger.debug("Nothing to forward from %s: %s", messenger_type, reason)
            return {"status": "ok", "action": "ignored", "reason": reason}
        if message.outgoing:
            return {"status": "ok", "action": "ignored", "reason": "outgoing message"}

        try:
            return await self._forward(adapter, inbound_context, message)
        except RoutingError as e:
            logger.warning(
                "%s message from chat %s not forwarded: %s %s",
                messenger_type,
                message.chat_id,
                e.message,
                e.context,
            )
            return _error(e.message)
        except Exception as e:
            logger.exception(
                "Forwarding %s chat %s failed", messenger_type, message.chat_id
            )
            return _error(str(e))

    async def _forward(
        self,
        adapter: BaseMessengerAdapter,
        inbound_context: AdapterContext,
        message: CanonicalMessage,
    ) -> dict[str, Any]:
        try:
            outcome = self.resolver.resolve_or_bind(
                message,
                credential=inbound_context.credential,
                session=inbound_context.session,
            )
        except ProfileNotFound as e:
            # non-fatal for the messenger: it must not retry
            return {"status": "ok", "message": e.message.lower()}
        except NoDomainConfigured as e:
            await self._notify(adapter, inbound_context, message, NOT_CONFIGURED_NOTICE)
            return _error(e.message)
        except NoTenantConfigured as e:
            await self._notify(adapter, inbound_context, message, NO_TENANT_NOTICE)
            return _error(e.message)
        except ConnectorNotFound as e:
            await self._notify(
                adapter, inbound_context, message, LINE_NOT_CONFIGURED_NOTICE
            )
            return _error(e.message)

        connection = outcome.connection
        reply_context = self._reply_context(adapter, connection, inbound_context)
        if outcome.announce:
            await self._notify(
                adapter,
                reply_context,
                message,
                CONNECTION_ESTABLISHED_NOTICE.format(domain=connection.domain),
                connection,
            )

        try:
            line_id = self._line_for(connection)
        except LineNotConfigured as e:
            await self._notify(
                adapter, reply_context, message, LINE_NOT_CONFIGURED_NOTICE, connection
            )
            return _error(e.message)

        crm_message = await self.build_crm_message(adapter, reply_context, message)
        try:
            result = self.crm.send_messages(
                connection.domain, connection.connector_id, line_id, [crm_message]
            )
        except CrmApiError as e:
            logger.error(
                "CRM rejected %s message from chat %s (domain=%s): %s",
                message.messenger_type,
                message.chat_id,
                connection.domain,
                e,
            )
            result = None
        if not result or not result.get("result"):
            await self._notify(
                adapter, reply_context, message, RELAY_FAILED_NOTICE, connection
            )
            return _error("Failed to send message to CRM")

        return {
            "status": "ok",
            "action": "message_sent",
            "source": str(message.messenger_type),
        }

    def _line_for(self, connection: ChatConnection) -> str:
        line_id = self.tenants.get_line_id(connection.connector_id)
        if not line_id:
            raise LineNotConfigured(
                "Line not configured",
                domain=connection.domain,
                connector_id=connection.connector_id,
            )
        return line_id

    def _reply_context(
        self,
        adapter: BaseMessengerAdapter,
        connection: ChatConnection,
        inbound_context: AdapterContext,
    ) -> AdapterContext:
        try:
            return self._context_for(adapter, connection, connection.domain)
        except RoutingError:
            return inbound_context

    async def build_crm_message(
        self,
        adapter: BaseMessengerAdapter,
        context: AdapterContext,
        message: CanonicalMessage,
    ) -> dict[str, Any]:
        """CRM connector message for ``message``; file handles are resolved to urls."""
        files = []
        for attachment in message.attachments:
            url = attachment.url
            if not url and attachment.file_ref:
                url = await adapter.resolve_file_reference(context, attachment.file_ref)
            if not url:
                logger.warning(
                    "Dropping unresolved %s attachment from chat %s",
                    attachment.kind,
                    message.chat_id,
                )
                continue
            files.append(
                {
                    "url": url,
                    "name": attachment.name or str(attachment.kind),
                    "type": crm_file_type(attachment.kind),
                }
            )

        body: dict[str, Any] = {
            "date": int(message.timestamp.timestamp()),
            "text": message.text or "",
        }
        if message.message_id:
            body["id"] = message.message_id
        if files:
            body["files"] = files
        return {
            "user": {
                "id": message.counterpart_id or message.chat_id,
                "name": message.counterpart_name,
            },
            "message": body,
            "chat": {"id": tag_chat_id(message.messenger_type, message.chat_id)},
        }

    async def _notify(
        self,
        adapter: BaseMessengerAdapter,
        context: AdapterContext,
        message: CanonicalMessage,
        text: str,
        connection: Optional[ChatConnection] = None,
    ) -> None:
        """Best-effort notice to the counterpart; failures are only logged."""
        try:
            target = adapter.recipient_id(
                message.chat_id,
                (connection.counterpart_id if connection else None)
                or message.counterpart_id,
            )
        except AdapterSendFailure as e:
            logger.warning(
                "No notice target for %s chat %s: %s",
                message.messenger_type,
                message.chat_id,
                e.message,
            )
            return
        if adapter.capabilities.requires_session_context and context.session is not None:
            if context.session.session_string is None:
                profile = self.profiles.get_profile(context.session.profile_id)
                if profile is None:
                    return
                context = AdapterContext(
                    domain=context.domain,
                    session=self.profiles.session_context(profile),
                )
        if not context.credential and context.session is None:
            logger.debug(
                "No credential to notify %s chat %s", message.messenger_type, message.chat_id
            )
            return
        try:
            result = await adapter.send(context, target, text, [])
        except Exception:
            logger.exception(
                "Notice to %s chat %s failed", message.messenger_type, message.chat_id
            )
            return
        if not result.ok:
            logger.warning(
                "Notice to %s chat %s not delivered: %s",
                message.messenger_type,
                message.chat_id,
                result.error,
            )

"""Service for messenger profile CRUD, domain linking and remote webhook binding."""

from __future__ import annotations

import logging
from typing import List, Optional
from uuid import UUID

import httpx
from sqlalchemy.orm import Query, Session
from telegram.error import TelegramError

from app.adapters.registry import AdapterRegistry, get_adapter_registry
from app.clients.max_api import MaxApiError
from app.config import get_settings
from app.constants.messengers import MessengerType
from app.core.credentials import decrypt_session_string, encrypt_session_string
from app.core.exceptions import AdapterSendFailure
from app.models.messenger_profile import MessengerProfile
from app.schemas.canonical import AdapterContext, SessionContext
from app.schemas.profile import ProfileCreate
from app.services.chat_connection_service import ChatConnectionService

logger = logging.getLogger(__name__)

# Errors a remote webhook call may raise; none of them block the local change
REMOTE_ERRORS = (
    TelegramError,
    MaxApiError,
    httpx.HTTPError,
    AdapterSendFailure,
    NotImplementedError,
)

_QUERY_PARAM_BY_TYPE = {
    MessengerType.TELEGRAM_BOT: "bot_token",
    MessengerType.MAX: "max_token",
}


class ProfileService:
    """Manages messenger profiles owned by platform users."""

    def __init__(self, db: Session, registry: Optional[AdapterRegistry] = None) -> None:
        self.db = db
        self.registry = registry or get_adapter_registry()
        self.connections = ChatConnectionService(db)

    def get_profile(self, profile_id: UUID) -> Optional[MessengerProfile]:
        return (
            self.db.query(MessengerProfile)
            .filter(MessengerProfile.id == profile_id)
            .first()
        )

    def get_profile_by_token(
        self, messenger_type: MessengerType, token: str
    ) -> Optional[MessengerProfile]:
        return (
            self.db.query(MessengerProfile)
            .filter(
                MessengerProfile.messenger_type == MessengerType(messenger_type).value,
                MessengerProfile.token == token,
                MessengerProfile.is_active.is_(True),
            )
            .first()
        )

    def get_profiles_query(
        self,
        owner_id: Optional[str] = None,
        messenger_type: Optional[MessengerType] = None,
    ) -> Query[MessengerProfile]:
        """Get a query for profiles (for pagination)."""
        query = self.db.query(MessengerProfile)
        if owner_id:
            query = query.filter(MessengerProfile.owner_id == owner_id)
        if messenger_type:
            query = query.filter(
                MessengerProfile.messenger_type == MessengerType(messenger_type).value
            )
        return query.order_by(MessengerProfile.created_at.desc())

    def find_domain_profile(
        self, domain: str, messenger_type: MessengerType
    ) -> Optional[MessengerProfile]:
        """Oldest active profile of a type linked to ``domain``."""
        return (
            self.db.query(MessengerProfile)
            .filter(
                MessengerProfile.domain == domain,
                MessengerProfile.messenger_type == MessengerType(messenger_type).value,
                MessengerProfile.is_active.is_(True),
            )
            .order_by(MessengerProfile.created_at.asc())
            .first()
        )

    def domains_with_active_profiles(self, messenger_type: MessengerType) -> List[str]:
        rows = (
            self.db.query(MessengerProfile.domain)
            .filter(
                MessengerProfile.messenger_type == MessengerType(messenger_type).value,
                MessengerProfile.is_active.is_(True),
                MessengerProfile.domain.isnot(None),
                MessengerProfile.token.isnot(None),
            )
            .distinct()
            .all()
        )
        return sorted(row[0] for row in rows)

    def session_context(self, profile: MessengerProfile) -> SessionContext:
        extra = profile.extra or {}
        session_id = extra.get("session_id")
        return SessionContext(
            profile_id=profile.id,
            session_id=str(session_id) if session_id is not None else None,
            session_name=extra.get("session_name"),
            session_string=decrypt_session_string(profile.encrypted_session),
        )

    def adapter_context(self, profile: MessengerProfile) -> AdapterContext:
        """Context for acting through ``profile`` on its backend."""
        messenger_type = MessengerType(profile.messenger_type)
        adapter = self.registry.get(messenger_type)
        session = None
        if adapter is not None and adapter.capabilities.requires_session_context:
            session = self.session_context(profile)
        return AdapterContext(domain=profile.domain, credential=profile.token, session=session)

    def webhook_url_for(self, profile: MessengerProfile) -> Optional[str]:
        param = _QUERY_PARAM_BY_TYPE.get(MessengerType(profile.messenger_type))
        if param is None or not profile.token:
            return None
        return get_settings().webhook_url(**{param: profile.token})

    async def create_profile(self, data: ProfileCreate) -> MessengerProfile:
        """Create a profile and, where the backend supports it, register its webhook."""
        extra = dict(data.extra or {})
        profile = MessengerProfile(
            owner_id=data.owner_id,
            messenger_type=data.messenger_type.value,
            name=data.name,
            token=data.token.strip() if data.token else None,
            domain=data.domain,
            extra=extra,
            is_active=True,
        )
        if data.session_string:
            profile.encrypted_session = encrypt_session_string(data.session_string)
        self.db.add(profile)
        self.db.commit()
        self.db.refresh(profile)

        await self._bind_remote(profile)
        return profile

    async def _bind_remote(self, profile: MessengerProfile) -> None:
        adapter = self.registry.get(MessengerType(profile.messenger_type))
        url = self.webhook_url_for(profile)
        if adapter is None or url is None:
            return
        if not adapter.capabilities.supports_webhook_registration:
            return
        try:
            await adapter.register_webhook(self.adapter_context(profile), url)
            logger.info("Webhook registered for profile %s", profile.id)
        except REMOTE_ERRORS as e:
            logger.warning("Webhook registration failed for profile %s: %s", profile.id, e)

    def link_domain(self, profile_id: UUID, domain: str) -> Optional[MessengerProfile]:
        profile = self.get_profile(profile_id)
        if profile is None:
            return None
        if profile.domain and profile.domain != domain:
            # chats keep pointing at the old tenant otherwise
            self.connections.deactivate_for_profile(profile.id)
        profile.domain = domain
        self.db.commit()
        self.db.refresh(profile)
        return profile

    async def delete_profile(self, profile_id: UUID) -> bool:
        """
        Delete a profile.

        The remote unbind (webhook removal) is attempted first and only
        logged on failure; connections are deactivated and then removed
        together with the row.
        """
        profile = self.get_profile(profile_id)
        if profile is None:
            return False

        adapter = self.registry.get(MessengerType(profile.messenger_type))
        url = self.webhook_url_for(profile) or ""
        if adapter is not None and adapter.capabilities.supports_webhook_registration:
            try:
                await adapter.unregister_webhook(self.adapter_context(profile), url)
            except REMOTE_ERRORS as e:
                logger.warning(
                    "Remote unbind failed for profile %s (%s): %s",
                    profile.id,
                    profile.messenger_type,
                    e,
                )

        deactivated = self.connections.deactivate_for_profile(profile.id)
        logger.info(
            "Deleting profile %s, %d connection(s) deactivated", profile.id, deactivated
        )
        self.db.delete(profile)
        self.db.commit()
        return True

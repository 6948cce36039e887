"""
Identity resolution between messenger chats and CRM tenants.

A (messenger type, chat id) pair is Unbound until its first inbound message,
Bound once a ChatConnection row exists, kept Active by every later message,
and Deactivated on explicit unlink or profile deletion. Binding is an upsert,
so repeated or racing first contacts converge on one row.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from app.constants.messengers import MessengerType
from app.core.exceptions import (
    AmbiguousTenant,
    ConnectorNotFound,
    NoDomainConfigured,
    NoTenantConfigured,
    ProfileNotFound,
)
from app.models.chat_connection import ChatConnection
from app.models.messenger_profile import MessengerProfile
from app.schemas.canonical import CanonicalMessage, SessionContext
from app.services.chat_connection_service import ChatConnectionService
from app.services.profile_service import ProfileService
from app.services.tenant_integration_service import TenantIntegrationService

logger = logging.getLogger(__name__)


class TenantDisambiguator(Protocol):
    """
    Chooses one tenant domain when several could own a first-contact chat.

    Raising AmbiguousTenant leaves the chat unbound.
    """

    def choose(self, candidates: Sequence[str], message: CanonicalMessage) -> str: ...


class FirstCandidateDisambiguator:
    """Picks the first candidate in the stable (domain ascending) order."""

    def choose(self, candidates: Sequence[str], message: CanonicalMessage) -> str:
        return candidates[0]


@dataclass
class BindingOutcome:
    connection: ChatConnection
    created: bool = False
    # first binding found by enumerating tenants; the counterpart gets told the domain
    announce: bool = False
    profile: Optional[MessengerProfile] = None


class IdentityResolver:
    def __init__(
        self,
        db: Session,
        disambiguator: Optional[TenantDisambiguator] = None,
        profile_service: Optional[ProfileService] = None,
    ) -> None:
        self.db = db
        self.connections = ChatConnectionService(db)
        self.tenants = TenantIntegrationService(db)
        self.profiles = profile_service or ProfileService(db)
        self.disambiguator = disambiguator or FirstCandidateDisambiguator()

    def resolve(
        self, messenger_type: MessengerType, chat_id: str
    ) -> Optional[ChatConnection]:
        """Active binding for the chat, or None. Never writes."""
        return self.connections.get_active(messenger_type, chat_id)

    def resolve_or_bind(
        self,
        message: CanonicalMessage,
        credential: Optional[str] = None,
        session: Optional[SessionContext] = None,
    ) -> BindingOutcome:
        """Pick the binding path for an inbound message and run it."""
        if session is not None:
            return self.bind_by_session(message, session)
        if credential:
            return self.bind_by_credential(message, credential)

        existing = self.resolve(message.messenger_type, message.chat_id)
        if existing is not None:
            self._fill_domain_profile(existing, message.messenger_type)
            return BindingOutcome(connection=self._touch(existing, message))
        if message.messenger_type == MessengerType.MAX:
            return self.bind_by_enumeration(message)
        raise ProfileNotFound(
            "Credential missing",
            messenger_type=str(message.messenger_type),
            chat_id=message.chat_id,
        )

    def bind_by_credential(
        self, message: CanonicalMessage, credential: str
    ) -> BindingOutcome:
        profile = self.profiles.get_profile_by_token(message.messenger_type, credential)
        if profile is None:
            raise ProfileNotFound(
                "Profile not found",
                messenger_type=str(message.messenger_type),
                chat_id=message.chat_id,
            )
        return self._bind_for_profile(message, profile)

    def bind_by_session(
        self, message: CanonicalMessage, session: SessionContext
    ) -> BindingOutcome:
        profile = self.profiles.get_profile(session.profile_id)
        if profile is None or not profile.is_active:
            raise ProfileNotFound(
                "Profile not found",
                messenger_type=str(message.messenger_type),
                profile_id=str(session.profile_id),
            )
        return self._bind_for_profile(message, profile)

    def _bind_for_profile(
        self, message: CanonicalMessage, profile: MessengerProfile
    ) -> BindingOutcome:
        if not profile.domain:
            raise NoDomainConfigured(
                "Domain not configured for this profile",
                messenger_type=str(message.messenger_type),
                chat_id=message.chat_id,
                profile_id=str(profile.id),
            )
        outcome = self.bind(message, profile.domain, profile_id=profile.id)
        outcome.profile = profile
        return outcome

    def bind_by_enumeration(self, message: CanonicalMessage) -> BindingOutcome:
        """
        First contact without a credential: enumerate tenants holding an active
        credential for the messenger type.

        Several candidates cannot be told apart from the message alone; the
        disambiguator's pick is bound and a warning is logged.
        """
        candidates = sorted(
            set(self.tenants.domains_with_max_token())
            | set(self.profiles.domains_with_active_profiles(message.messenger_type))
        )
        if not candidates:
            raise NoTenantConfigured(
                "No tenant configured",
                messenger_type=str(message.messenger_type),
                chat_id=message.chat_id,
            )
        try:
            domain = self.disambiguator.choose(candidates, message)
        except AmbiguousTenant as e:
            logger.warning(
                "No tenant picked for %s chat %s among %s: %s",
                message.messenger_type,
                message.chat_id,
                candidates,
                e.message,
            )
            raise NoTenantConfigured(
                "No tenant configured",
                messenger_type=str(message.messenger_type),
                chat_id=message.chat_id,
            ) from e
        if len(candidates) > 1:
            logger.warning(
                "Ambiguous tenant for %s chat %s: %d candidates %s, bound to %s",
                message.messenger_type,
                message.chat_id,
                len(candidates),
                candidates,
                domain,
            )
        profile = self.profiles.find_domain_profile(domain, message.messenger_type)
        outcome = self.bind(
            message, domain, profile_id=profile.id if profile else None
        )
        outcome.profile = profile
        outcome.announce = outcome.created
        return outcome

    def bind(
        self,
        message: CanonicalMessage,
        domain: str,
        profile_id: Optional[UUID] = None,
    ) -> BindingOutcome:
        """Upsert the binding of ``message``'s chat to ``domain``."""
        connector_id = self.tenants.get_or_create_connector_id(
            domain, message.messenger_type
        )
        if connector_id is None:
            raise ConnectorNotFound(
                "Connector not found",
                domain=domain,
                messenger_type=str(message.messenger_type),
                chat_id=message.chat_id,
            )
        was_active = self.resolve(message.messenger_type, message.chat_id) is not None
        connection = self.connections.upsert(
            message.messenger_type,
            message.chat_id,
            domain=domain,
            connector_id=connector_id,
            counterpart_id=message.counterpart_id,
            counterpart_name=message.counterpart_name,
            profile_id=profile_id,
        )
        if not was_active:
            logger.info(
                "Bound %s chat %s to %s (connector %s)",
                message.messenger_type,
                message.chat_id,
                domain,
                connector_id,
            )
        return BindingOutcome(connection=connection, created=not was_active)

    def _touch(
        self, connection: ChatConnection, message: CanonicalMessage
    ) -> ChatConnection:
        return self.connections.touch(
            connection,
            counterpart_id=message.counterpart_id,
            counterpart_name=message.counterpart_name,
        )

    def _fill_domain_profile(
        self, connection: ChatConnection, messenger_type: MessengerType
    ) -> None:
        """Chats bound without a profile learn it once the domain has one."""
        if connection.profile_id is not None:
            return
        profile = self.profiles.find_domain_profile(connection.domain, messenger_type)
        if profile is not None:
            self.connections.touch(connection, profile_id=profile.id)

    def deactivate(self, messenger_type: MessengerType, chat_id: str) -> bool:
        deactivated = self.connections.deactivate(messenger_type, chat_id)
        if deactivated:
            logger.info("Unlinked %s chat %s", messenger_type, chat_id)
        return deactivated

    def deactivate_for_profile(self, profile_id: UUID) -> int:
        return self.connections.deactivate_for_profile(profile_id)

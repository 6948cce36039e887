"""Tests for IdentityResolver binding paths."""

import logging

import pytest

from app.constants.messengers import MessengerType
from app.core.exceptions import (
    AmbiguousTenant,
    NoDomainConfigured,
    NoTenantConfigured,
    ProfileNotFound,
)
from app.schemas.canonical import CanonicalMessage, SessionContext
from app.services.identity_resolver import IdentityResolver
from tests.fixtures.tenant_fixtures import make_connector, make_integration


def bot_message(chat_id="555", name="Ann Lee"):
    return CanonicalMessage(
        messenger_type=MessengerType.TELEGRAM_BOT,
        chat_id=chat_id,
        counterpart_id=chat_id,
        counterpart_name=name,
        text="hi",
    )


def max_message(chat_id="22", user_id="11", name="Bob"):
    return CanonicalMessage(
        messenger_type=MessengerType.MAX,
        chat_id=chat_id,
        counterpart_id=user_id,
        counterpart_name=name,
        text="hi",
    )


def test_resolve_unbound_is_none(db):
    assert IdentityResolver(db).resolve(MessengerType.TELEGRAM_BOT, "1") is None


def test_bind_by_credential_creates_connector_and_binding(db, setup_bot_profile):
    resolver = IdentityResolver(db)

    outcome = resolver.resolve_or_bind(bot_message(), credential=setup_bot_profile.token)

    assert outcome.created is True
    assert outcome.announce is False
    connection = outcome.connection
    assert connection.domain == setup_bot_profile.domain
    assert connection.profile_id == setup_bot_profile.id
    assert connection.connector_id.startswith("telegram_bot_")
    assert resolver.resolve(MessengerType.TELEGRAM_BOT, "555").id == connection.id


def test_binding_is_idempotent_last_write_wins(db, setup_bot_profile):
    resolver = IdentityResolver(db)
    first = resolver.resolve_or_bind(bot_message(), credential=setup_bot_profile.token)
    second = resolver.resolve_or_bind(
        bot_message(name="Ann L."), credential=setup_bot_profile.token
    )

    assert second.created is False
    assert second.connection.id == first.connection.id
    assert second.connection.counterpart_name == "Ann L."
    assert len(resolver.connections.get_connections_query().all()) == 1


def test_unknown_credential(db, setup_bot_profile):
    with pytest.raises(ProfileNotFound):
        IdentityResolver(db).resolve_or_bind(bot_message(), credential="unknown")


def test_profile_without_domain(db, setup_unlinked_bot_profile):
    with pytest.raises(NoDomainConfigured):
        IdentityResolver(db).resolve_or_bind(
            bot_message(), credential=setup_unlinked_bot_profile.token
        )


def test_bot_message_without_credential_and_binding(db, setup_tenant):
    with pytest.raises(ProfileNotFound):
        IdentityResolver(db).resolve_or_bind(bot_message())


def test_bound_chat_without_credential_uses_binding(db, setup_bot_connection):
    outcome = IdentityResolver(db).resolve_or_bind(bot_message(name="Ann"))
    assert outcome.connection.id == setup_bot_connection.id
    assert outcome.created is False
    assert outcome.connection.counterpart_name == "Ann"


def test_enumeration_single_tenant_announces_once(db, setup_max_tenant):
    resolver = IdentityResolver(db)

    first = resolver.resolve_or_bind(max_message())
    second = resolver.resolve_or_bind(max_message())

    assert first.connection.domain == "alpha.bitrix24.ru"
    assert first.created is True
    assert first.announce is True
    assert second.announce is False
    assert second.connection.id == first.connection.id


def test_enumeration_without_tenants(db):
    with pytest.raises(NoTenantConfigured):
        IdentityResolver(db).resolve_or_bind(max_message())


def test_enumeration_ambiguous_picks_first_domain(db, caplog):
    for domain in ("zeta.bitrix24.ru", "beta.bitrix24.ru"):
        integration = make_integration(db, domain, max_token=f"token-{domain}")
        make_connector(db, integration, MessengerType.MAX)

    with caplog.at_level(logging.WARNING):
        outcome = IdentityResolver(db).resolve_or_bind(max_message())

    assert outcome.connection.domain == "beta.bitrix24.ru"
    assert "Ambiguous tenant" in caplog.text


def test_custom_disambiguator(db):
    for domain in ("zeta.bitrix24.ru", "beta.bitrix24.ru"):
        integration = make_integration(db, domain, max_token=f"token-{domain}")
        make_connector(db, integration, MessengerType.MAX)

    class LastCandidate:
        def choose(self, candidates, message):
            return candidates[-1]

    outcome = IdentityResolver(db, disambiguator=LastCandidate()).resolve_or_bind(
        max_message()
    )
    assert outcome.connection.domain == "zeta.bitrix24.ru"


def test_disambiguator_can_refuse(db):
    for domain in ("zeta.bitrix24.ru", "beta.bitrix24.ru"):
        integration = make_integration(db, domain, max_token=f"token-{domain}")
        make_connector(db, integration, MessengerType.MAX)

    class Refuse:
        def choose(self, candidates, message):
            raise AmbiguousTenant("cannot tell tenants apart")

    resolver = IdentityResolver(db, disambiguator=Refuse())
    with pytest.raises(NoTenantConfigured):
        resolver.resolve_or_bind(max_message())
    assert resolver.resolve(MessengerType.MAX, "22") is None


def test_bind_by_session(db, setup_user_profile):
    message = CanonicalMessage(
        messenger_type=MessengerType.TELEGRAM_USER,
        chat_id="user_42",
        counterpart_id="42",
        counterpart_name="Kate",
        text="hello",
    )
    session = SessionContext(profile_id=setup_user_profile.id, session_id="sess-1")

    outcome = IdentityResolver(db).resolve_or_bind(message, session=session)

    assert outcome.connection.messenger_chat_id == "user_42"
    assert outcome.connection.profile_id == setup_user_profile.id
    assert outcome.profile.id == setup_user_profile.id


def test_deactivate_then_rebind(db, setup_bot_profile):
    resolver = IdentityResolver(db)
    first = resolver.resolve_or_bind(bot_message(), credential=setup_bot_profile.token)

    assert resolver.deactivate(MessengerType.TELEGRAM_BOT, "555") is True
    assert resolver.resolve(MessengerType.TELEGRAM_BOT, "555") is None
    assert resolver.deactivate(MessengerType.TELEGRAM_BOT, "555") is False

    again = resolver.resolve_or_bind(bot_message(), credential=setup_bot_profile.token)
    assert again.created is True
    assert again.connection.id == first.connection.id
    assert again.connection.is_active is True

"""Fixtures for messenger profiles."""

import pytest

from app.constants.messengers import MessengerType
from app.core.credentials import encrypt_session_string
from app.models.messenger_profile import MessengerProfile


def make_profile(db, messenger_type, token=None, domain=None, **fields):
    profile = MessengerProfile(
        messenger_type=MessengerType(messenger_type).value,
        name=fields.pop("name", f"{messenger_type} profile"),
        token=token,
        domain=domain,
        extra=fields.pop("extra", {}),
        is_active=True,
        **fields,
    )
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return profile


@pytest.fixture(scope="function")
def setup_bot_profile(db, faker, setup_tenant):
    """Bot profile linked to the integrated portal."""
    token = f"{faker.random_int(100000, 999999)}:{faker.pystr(min_chars=30, max_chars=30)}"
    return make_profile(
        db, MessengerType.TELEGRAM_BOT, token=token, domain=setup_tenant.domain
    )


@pytest.fixture(scope="function")
def setup_unlinked_bot_profile(db, faker):
    """Bot profile not yet linked to any portal."""
    return make_profile(db, MessengerType.TELEGRAM_BOT, token=faker.sha1())


@pytest.fixture(scope="function")
def setup_user_profile(db, setup_tenant):
    """Personal-account profile with an encrypted session."""
    return make_profile(
        db,
        MessengerType.TELEGRAM_USER,
        domain=setup_tenant.domain,
        encrypted_session=encrypt_session_string("1AbCdEfStringSession"),
        extra={"session_id": "sess-1", "session_name": "Support desk"},
    )

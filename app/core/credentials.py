"""Encryption of personal-account session strings at rest."""

from __future__ import annotations

from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from app.config import get_settings


def _get_fernet() -> Fernet:
    """Get a Fernet instance with the credential master key."""
    settings = get_settings()
    key = settings.credential_master_key or settings.fernet_key
    if not key:
        raise ValueError(
            "CREDENTIAL_MASTER_KEY or FERNET_KEY must be set for session encryption"
        )
    return Fernet(key.encode() if isinstance(key, str) else key)


def encrypt_session_string(session_string: str) -> bytes:
    return _get_fernet().encrypt(session_string.encode("utf-8"))


def decrypt_session_string(encrypted: Optional[bytes]) -> Optional[str]:
    """Decrypt a stored session string. Returns None if missing or unreadable."""
    if not encrypted:
        return None
    try:
        return _get_fernet().decrypt(bytes(encrypted)).decode("utf-8")
    except InvalidToken:
        return None

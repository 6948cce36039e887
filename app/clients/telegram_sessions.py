"""Telethon clients for personal-account sessions."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from telethon import TelegramClient
from telethon.sessions import StringSession

from app.config import get_settings
from app.core.exceptions import SessionContextRequired
from app.schemas.canonical import SessionContext

logger = logging.getLogger(__name__)


class SessionClientProvider:
    """Opens an authorized Telethon client for the session in a SessionContext."""

    def __init__(
        self, api_id: Optional[int] = None, api_hash: Optional[str] = None
    ) -> None:
        settings = get_settings()
        self._api_id = api_id or settings.telegram_api_id
        self._api_hash = api_hash or settings.telegram_api_hash

    def build_client(self, session: SessionContext) -> TelegramClient:
        if not session.session_string:
            raise SessionContextRequired(
                "No stored session for profile",
                profile_id=str(session.profile_id),
            )
        return TelegramClient(
            StringSession(session.session_string), self._api_id, self._api_hash
        )

    @asynccontextmanager
    async def open(self, session: SessionContext) -> AsyncIterator[TelegramClient]:
        client = self.build_client(session)
        await client.connect()
        try:
            if not await client.is_user_authorized():
                raise SessionContextRequired(
                    "Session is not authorized",
                    profile_id=str(session.profile_id),
                    session_id=session.session_id,
                )
            yield client
        finally:
            await client.disconnect()

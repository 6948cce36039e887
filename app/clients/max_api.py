"""
Async client for the MAX platform bot API.

Every call authenticates with the raw bot token in the Authorization
header. Errors come back as JSON bodies with ``code`` and ``message``.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from app.config import get_settings

logger = logging.getLogger(__name__)

UPDATE_TYPES = ["message_created", "bot_started"]


class MaxApiError(Exception):
    def __init__(self, message: str, code: Optional[str] = None, status: int = 0):
        super().__init__(message)
        self.code = code
        self.status = status


def clean_token(token: str) -> str:
    """Drop BOMs and non-printable characters pasted along with the token."""
    return "".join(ch for ch in token if 0x20 <= ord(ch) <= 0x7E).strip()


class MaxApiClient:
    """Thin wrapper over the MAX REST endpoints used by the bridge."""

    def __init__(
        self,
        token: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        settings = get_settings()
        self._token = clean_token(token)
        self._base_url = (base_url or settings.max_api_url).rstrip("/")
        self._timeout = timeout or settings.http_timeout_seconds
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            headers={"Authorization": self._token, "Accept": "application/json"},
            transport=self._transport,
        )

    @staticmethod
    def _decode(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            data = {"message": response.text}
        if response.is_error or (isinstance(data, dict) and data.get("code")):
            data = data if isinstance(data, dict) else {}
            raise MaxApiError(
                data.get("message") or f"HTTP {response.status_code}",
                code=data.get("code"),
                status=response.status_code,
            )
        return data if isinstance(data, dict) else {"result": data}

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        json: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        async with self._client() as client:
            response = await client.request(method, path, params=params, json=json)
        return self._decode(response)

    async def send_message(
        self,
        user_id: str,
        text: Optional[str] = None,
        attachments: Optional[list[dict[str, Any]]] = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"text": text or ""}
        if attachments:
            body["attachments"] = attachments
        return await self.request(
            "POST", "/messages", params={"user_id": user_id}, json=body
        )

    async def upload(self, content: bytes, filename: str, upload_type: str) -> str:
        """Upload file bytes and return the attachment token."""
        slot = await self.request("POST", "/uploads", params={"type": upload_type})
        upload_url = slot.get("url")
        if not upload_url:
            raise MaxApiError("No upload url returned", code="upload.no_url")
        async with self._client() as client:
            response = await client.post(
                upload_url, files={"data": (filename, content)}
            )
        data = self._decode(response)
        # audio/video tokens are issued with the upload slot
        token = data.get("token") or slot.get("token")
        if not token:
            raise MaxApiError("No token in upload response", code="upload.no_token")
        return token

    async def subscribe(self, url: str) -> dict[str, Any]:
        return await self.request(
            "POST", "/subscriptions", json={"url": url, "update_types": UPDATE_TYPES}
        )

    async def unsubscribe(self, url: str) -> dict[str, Any]:
        return await self.request("DELETE", "/subscriptions", params={"url": url})

    async def get_me(self) -> dict[str, Any]:
        return await self.request("GET", "/me")

"""
Bitrix24 REST client for the Open Lines connector methods.

Calls go to ``<client_endpoint><method>.json`` with the tenant's OAuth
access token. An ``expired_token`` answer triggers one token refresh and a
single retry.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

import requests

from app.core.exceptions import CrmApiError

logger = logging.getLogger(__name__)

TIMEOUT_SECONDS = 30

CONNECTOR_ICON_SVG = (
    "data:image/svg+xml;charset=US-ASCII,%3Csvg%20xmlns%3D%22http%3A//www.w3.org/"
    "2000/svg%22%20viewBox%3D%220%200%2070%2071%22%3E%3Cpath%20fill%3D%22%230C99BA"
    "%22%20d%3D%22M35%2010a25%2025%200%201%201%200%2050%2025%2025%200%200%201%200-50z"
    "%22/%3E%3C/svg%3E"
)


class TokenProvider(Protocol):
    """Source of CRM access tokens per tenant domain."""

    def get_endpoint(self, domain: str) -> str: ...

    def get_valid_token(self, domain: str) -> str: ...

    def refresh(self, domain: str) -> str: ...


class BitrixClient:
    """imconnector.* calls against one Bitrix24 portal at a time."""

    def __init__(
        self, token_provider: TokenProvider, timeout: Optional[float] = None
    ) -> None:
        self._tokens = token_provider
        self._timeout = timeout or TIMEOUT_SECONDS

    def call(
        self, domain: str, method: str, params: Optional[dict[str, Any]] = None
    ) -> dict[str, Any]:
        token = self._tokens.get_valid_token(domain)
        try:
            return self._post(domain, method, params or {}, token)
        except CrmApiError as e:
            if not e.is_expired_token:
                raise
            logger.info("Token expired for %s on %s, refreshing", domain, method)
        token = self._tokens.refresh(domain)
        return self._post(domain, method, params or {}, token)

    def _post(
        self, domain: str, method: str, params: dict[str, Any], token: str
    ) -> dict[str, Any]:
        url = f"{self._tokens.get_endpoint(domain)}{method}.json"
        payload = dict(params)
        payload["auth"] = token
        try:
            resp = requests.post(url, json=payload, timeout=self._timeout)
        except requests.RequestException as e:
            raise CrmApiError(
                str(e), code="transport_error", domain=domain, method=method
            ) from e
        try:
            data = resp.json()
        except ValueError:
            data = None
        if isinstance(data, dict) and data.get("error"):
            raise CrmApiError(
                data.get("error_description") or data["error"],
                code=data["error"],
                domain=domain,
                method=method,
            )
        if not resp.ok or not isinstance(data, dict):
            raise CrmApiError(
                f"HTTP {resp.status_code}",
                code=f"http_{resp.status_code}",
                domain=domain,
                method=method,
            )
        return data

    # Connector lifecycle

    def register_connector(
        self, domain: str, connector_id: str, name: str, placement_handler: str
    ) -> dict[str, Any]:
        return self.call(
            domain,
            "imconnector.register",
            {
                "ID": connector_id,
                "NAME": name,
                "ICON": {
                    "DATA_IMAGE": CONNECTOR_ICON_SVG,
                    "COLOR": "#1900ff",
                    "SIZE": "90%",
                    "POSITION": "center",
                },
                "PLACEMENT_HANDLER": placement_handler,
            },
        )

    def activate_connector(
        self, domain: str, connector_id: str, line_id: str, active: bool = True
    ) -> dict[str, Any]:
        return self.call(
            domain,
            "imconnector.activate",
            {"CONNECTOR": connector_id, "LINE": line_id, "ACTIVE": 1 if active else 0},
        )

    def unregister_connector(self, domain: str, connector_id: str) -> dict[str, Any]:
        return self.call(domain, "imconnector.unregister", {"ID": connector_id})

    def bind_event(self, domain: str, event: str, handler: str) -> dict[str, Any]:
        return self.call(domain, "event.bind", {"event": event, "handler": handler})

    # Messages

    def send_messages(
        self,
        domain: str,
        connector_id: str,
        line_id: str,
        messages: list[dict[str, Any]],
    ) -> dict[str, Any]:
        return self._connector_call(
            domain, "imconnector.send.messages", connector_id, line_id, messages
        )

    def send_delivery_status(
        self,
        domain: str,
        connector_id: str,
        line_id: str,
        messages: list[dict[str, Any]],
    ) -> dict[str, Any]:
        return self._connector_call(
            domain, "imconnector.send.status.delivery", connector_id, line_id, messages
        )

    def send_error_status(
        self,
        domain: str,
        connector_id: str,
        line_id: str,
        messages: list[dict[str, Any]],
    ) -> dict[str, Any]:
        return self._connector_call(
            domain, "imconnector.send.status.error", connector_id, line_id, messages
        )

    def _connector_call(
        self,
        domain: str,
        method: str,
        connector_id: str,
        line_id: str,
        messages: list[dict[str, Any]],
    ) -> dict[str, Any]:
        return self.call(
            domain,
            method,
            {"CONNECTOR": connector_id, "LINE": line_id, "MESSAGES": messages},
        )

"""Per-message delivery status reporting back to the CRM."""

from __future__ import annotations

import logging
from typing import Any, Optional

from app.clients.bitrix import BitrixClient
from app.core.exceptions import CrmApiError, DeliveryConfirmationFailure
from app.services.tenant_integration_service import TenantIntegrationService

logger = logging.getLogger(__name__)


def status_message(crm_message: dict[str, Any], chat_tag: str) -> dict[str, Any]:
    message = crm_message.get("message") or {}
    return {
        "im": crm_message.get("im") or "0",
        "message": {"id": [message.get("id")]},
        "chat": {"id": chat_tag},
    }


class DeliveryConfirmation:
    """Reports delivered/failed status for one CRM message. Never raises."""

    def __init__(
        self, crm_client: BitrixClient, tenants: TenantIntegrationService
    ) -> None:
        self.crm = crm_client
        self.tenants = tenants

    def confirm(
        self,
        domain: Optional[str],
        connector_id: str,
        crm_message: dict[str, Any],
        chat_tag: str,
        success: bool,
    ) -> bool:
        """Return True when the status call was made and accepted."""
        try:
            return self._report(domain, connector_id, crm_message, chat_tag, success)
        except DeliveryConfirmationFailure as e:
            logger.error(
                "Delivery confirmation failed for %s chat %s (success=%s): %s %s",
                domain,
                chat_tag,
                success,
                e.message,
                e.context,
            )
        except Exception:
            logger.exception(
                "Delivery confirmation for %s chat %s (success=%s) crashed",
                domain,
                chat_tag,
                success,
            )
        return False

    def _report(
        self,
        domain: Optional[str],
        connector_id: str,
        crm_message: dict[str, Any],
        chat_tag: str,
        success: bool,
    ) -> bool:
        line_id = self.tenants.get_line_id(connector_id)
        if not line_id or not domain:
            logger.debug(
                "No line for connector %s, skipping delivery status", connector_id
            )
            return False
        messages = [status_message(crm_message, chat_tag)]
        try:
            if success:
                self.crm.send_delivery_status(domain, connector_id, line_id, messages)
            else:
                self.crm.send_error_status(domain, connector_id, line_id, messages)
        except CrmApiError as e:
            raise DeliveryConfirmationFailure(
                e.message, code=e.code, connector_id=connector_id
            ) from e
        return True

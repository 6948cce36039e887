"""
Command to handle the unified webhook endpoint.

Reads a JSON or form-encoded body, classifies its origin and hands it to the
routing dispatcher. Routing problems never surface as HTTP errors: the
response is always a ``{"status": ...}`` dict so that neither the CRM nor the
messenger backends retry deliveries.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from fastapi import HTTPException, Request
from sqlalchemy.orm import Session

from app.adapters.registry import AdapterRegistry
from app.clients.bitrix import BitrixClient
from app.core.classifier import Origin
from app.core.routing import RoutingDispatcher
from app.services.token_service import StoredTokenProvider
from app.utils.form_parsing import parse_nested_form

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


class WebhookCommand:
    """Parses an inbound webhook request and dispatches it."""

    def __init__(
        self,
        db: Session,
        crm_client: Optional[BitrixClient] = None,
        registry: Optional[AdapterRegistry] = None,
    ) -> None:
        self.db = db
        self.crm_client = crm_client or BitrixClient(StoredTokenProvider(db))
        self.dispatcher = RoutingDispatcher(db, self.crm_client, registry=registry)
        self.logger = logging.getLogger(__name__)

    async def read_payload(self, request: Request) -> Any:
        """
        Decode the request body.

        Raises:
            HTTPException: 400 when the body is neither valid JSON nor a form.
        """
        content_type = request.headers.get("content-type", "").lower()
        if content_type.startswith(FORM_CONTENT_TYPES):
            form = await request.form()
            return parse_nested_form(form.multi_items())

        body = await request.body()
        if not body:
            return {}
        try:
            return json.loads(body)
        except ValueError as e:
            self.logger.warning("Webhook body is not valid JSON: %s", e)
            raise HTTPException(status_code=400, detail="Malformed request body")

    async def execute(self, request: Request) -> dict[str, Any]:
        """
        Execute the webhook: decode, classify, route.

        Returns:
            dict: the dispatcher's result, always carrying ``status``.
        """
        payload = await self.read_payload(request)
        query_params = dict(request.query_params)
        try:
            return await self.dispatcher.dispatch(payload, query_params)
        except Exception as e:
            self.logger.exception("Webhook dispatch failed")
            return {"status": "error", "message": str(e)}

    async def execute_for_origin(
        self, request: Request, origin: Origin
    ) -> dict[str, Any]:
        """Route a body whose origin is fixed by the endpoint it arrived on."""
        payload = await self.read_payload(request)
        try:
            return await self.dispatcher.messenger_to_crm(origin, payload)
        except Exception as e:
            self.logger.exception("Webhook dispatch failed for %s", origin.kind)
            return {"status": "error", "message": str(e)}

"""
Webhook routes for the CRM connector and messenger backends.

Every source posts to ``/webhook``; the origin is worked out from the body
and query string. The personal-account listener has its own path.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.commands.webhooks.webhook_command import WebhookCommand
from app.constants.messengers import MessengerType
from app.core.classifier import Origin
from app.db import get_db

router = APIRouter(prefix="/webhook", tags=["webhooks"])


@router.post("")
async def webhook(
    request: Request,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Unified entry point for CRM events and messenger updates."""
    return await WebhookCommand(db).execute(request)


@router.post("/telegram-user")
async def telegram_user_webhook(
    request: Request,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Messages forwarded by the personal-account session listener."""
    origin = Origin.for_messenger(MessengerType.TELEGRAM_USER)
    return await WebhookCommand(db).execute_for_origin(request, origin)

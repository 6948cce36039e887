"""Webhook command handlers."""

from app.commands.webhooks.webhook_command import WebhookCommand

__all__ = ["WebhookCommand"]

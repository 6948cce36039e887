"""OAuth access tokens for Bitrix24 portals, read from tenant_integrations."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import requests
from sqlalchemy.orm import Session

from app.config import get_settings
from app.core.exceptions import ConnectorNotFound, CrmApiError
from app.models.tenant_integration import TenantIntegration

logger = logging.getLogger(__name__)

TIMEOUT_SECONDS = 30


def _as_aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class StoredTokenProvider:
    """TokenProvider backed by the tenant_integrations table."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.settings = get_settings()

    def _integration(self, domain: str) -> TenantIntegration:
        integration = (
            self.db.query(TenantIntegration)
            .filter(TenantIntegration.domain == domain)
            .first()
        )
        if integration is None:
            raise ConnectorNotFound(f"No integration for domain {domain}", domain=domain)
        return integration

    def get_endpoint(self, domain: str) -> str:
        return self._integration(domain).rest_endpoint

    def is_expired(self, integration: TenantIntegration) -> bool:
        expires_at = _as_aware(integration.token_expires_at)
        if not integration.access_token or expires_at is None:
            return True
        margin = timedelta(seconds=self.settings.bitrix_token_refresh_margin_seconds)
        return expires_at < datetime.now(timezone.utc) + margin

    def get_valid_token(self, domain: str) -> str:
        integration = self._integration(domain)
        if self.is_expired(integration) and integration.refresh_token:
            return self.refresh(domain)
        if not integration.access_token:
            raise CrmApiError("Access token not found", code="no_token", domain=domain)
        return integration.access_token

    def refresh(self, domain: str) -> str:
        """Exchange the stored refresh token for a new access token and persist it."""
        integration = self._integration(domain)
        if not integration.refresh_token:
            raise CrmApiError(
                f"No refresh token available for domain: {domain}",
                code="no_refresh_token",
                domain=domain,
            )
        params = {
            "grant_type": "refresh_token",
            "client_id": integration.client_id or self.settings.bitrix_client_id,
            "client_secret": integration.client_secret
            or self.settings.bitrix_client_secret,
            "refresh_token": integration.refresh_token,
        }
        try:
            resp = requests.get(
                self.settings.bitrix_oauth_url, params=params, timeout=TIMEOUT_SECONDS
            )
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            logger.error("Token refresh failed for %s: %s", domain, e)
            raise CrmApiError(
                f"Token refresh error: {e}", code="refresh_failed", domain=domain
            ) from e
        if not isinstance(data, dict) or data.get("error") or "access_token" not in data:
            detail = None
            if isinstance(data, dict):
                detail = data.get("error_description") or data.get("error")
            logger.error(
                "Token refresh rejected for %s (HTTP %s): %s",
                domain,
                resp.status_code,
                detail,
            )
            raise CrmApiError(
                f"Token refresh error: {detail or 'invalid token response'}",
                code="refresh_failed",
                domain=domain,
            )

        integration.access_token = data["access_token"]
        integration.refresh_token = data.get("refresh_token") or integration.refresh_token
        integration.token_expires_at = datetime.now(timezone.utc) + timedelta(
            seconds=int(data.get("expires_in", 3600))
        )
        if data.get("client_endpoint"):
            integration.client_endpoint = data["client_endpoint"]
        self.db.commit()
        logger.info(
            "Token refreshed for %s, expires at %s",
            domain,
            integration.token_expires_at.isoformat(),
        )
        return integration.access_token

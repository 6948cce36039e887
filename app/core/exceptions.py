"""Errors raised while classifying, resolving and relaying messages."""

from __future__ import annotations

from typing import Optional


class RoutingError(Exception):
    """Base class for routing failures. ``message`` is safe to return to callers."""

    def __init__(self, message: str, **context: object) -> None:
        super().__init__(message)
        self.message = message
        self.context = context


class UnknownSource(RoutingError):
    pass


class ProfileNotFound(RoutingError):
    pass


class NoDomainConfigured(RoutingError):
    """Profile exists but is not linked to a tenant domain."""


class NoTenantConfigured(RoutingError):
    """No tenant holds an active credential for the messenger type."""


class AmbiguousTenant(RoutingError):
    """Several tenants matched; only used for logging the heuristic pick."""


class ConnectorNotFound(RoutingError):
    pass


class LineNotConfigured(RoutingError):
    pass


class SessionContextRequired(RoutingError):
    pass


class AdapterSendFailure(RoutingError):
    pass


class DeliveryConfirmationFailure(RoutingError):
    pass


class CrmApiError(RoutingError):
    """Error returned by the CRM REST API."""

    def __init__(
        self, message: str, code: Optional[str] = None, **context: object
    ) -> None:
        super().__init__(message, **context)
        self.code = code

    @property
    def is_expired_token(self) -> bool:
        return self.code in ("expired_token", "invalid_token")

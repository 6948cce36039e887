from app.services.chat_connection_service import ChatConnectionService
from app.services.connector_service import ConnectorService
from app.services.identity_resolver import IdentityResolver
from app.services.profile_service import ProfileService
from app.services.tenant_integration_service import TenantIntegrationService

__all__ = [
    "ChatConnectionService",
    "ConnectorService",
    "IdentityResolver",
    "ProfileService",
    "TenantIntegrationService",
]

from app.models.chat_connection import ChatConnection
from app.models.messenger_profile import MessengerProfile
from app.models.tenant_integration import TenantConnector, TenantIntegration

__all__ = [
    "ChatConnection",
    "MessengerProfile",
    "TenantConnector",
    "TenantIntegration",
]

"""Gateway clients: token lifecycle, notification verification and the API facade."""

from pesapal_gateway.clients.gateway_client import PesapalClient
from pesapal_gateway.clients.notification_verifier import GateDecision, NotificationVerifier
from pesapal_gateway.clients.token_manager import TokenLifecycleManager

__all__ = [
    "GateDecision",
    "NotificationVerifier",
    "PesapalClient",
    "TokenLifecycleManager",
]

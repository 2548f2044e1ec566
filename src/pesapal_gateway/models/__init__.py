"""Domain models for the Pesapal gateway client."""

from pesapal_gateway.models.exceptions import (
    ConfigurationError,
    ErrorKind,
    GatewayError,
    PesapalError,
    SignatureError,
    TokenDecryptionError,
    ValidationError,
)
from pesapal_gateway.models.notifications import (
    InboundNotification,
    NotificationRegistration,
)
from pesapal_gateway.models.orders import OrderRequest, TransactionStatus
from pesapal_gateway.models.token import AccessToken

__all__ = [
    "AccessToken",
    "ConfigurationError",
    "ErrorKind",
    "GatewayError",
    "InboundNotification",
    "NotificationRegistration",
    "OrderRequest",
    "PesapalError",
    "SignatureError",
    "TokenDecryptionError",
    "TransactionStatus",
    "ValidationError",
]

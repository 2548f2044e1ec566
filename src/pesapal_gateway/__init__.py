"""Async client for the Pesapal v3 payments API."""

from pesapal_gateway.clients import (
    GateDecision,
    NotificationVerifier,
    PesapalClient,
    TokenLifecycleManager,
)
from pesapal_gateway.config import PesapalSettings, load_settings
from pesapal_gateway.models import (
    ConfigurationError,
    ErrorKind,
    GatewayError,
    InboundNotification,
    OrderRequest,
    PesapalError,
    SignatureError,
    TokenDecryptionError,
    TransactionStatus,
    ValidationError,
)

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "ErrorKind",
    "GateDecision",
    "GatewayError",
    "InboundNotification",
    "NotificationVerifier",
    "OrderRequest",
    "PesapalClient",
    "PesapalError",
    "PesapalSettings",
    "SignatureError",
    "TokenDecryptionError",
    "TokenLifecycleManager",
    "TransactionStatus",
    "ValidationError",
    "load_settings",
]

"""Custom exceptions for the Pesapal gateway client."""

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Error category carried by every PesapalError."""

    CONFIGURATION = "configuration"
    VALIDATION = "validation"
    GATEWAY = "gateway"
    SIGNATURE = "signature"
    TOKEN_DECRYPTION = "token_decryption"


class PesapalError(Exception):
    """
    Base exception for all client errors.

    Every subclass is tagged with an ErrorKind so callers can branch on
    ``error.kind`` instead of isinstance chains.

    Attributes:
        kind: Error category
        message: Human readable description
        status_code: HTTP status from the gateway (None if never reached)
        body: Parsed JSON error payload, or the raw response text
    """

    kind: ErrorKind = ErrorKind.GATEWAY

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(kind={self.kind.value!r}, message={self.message!r}, "
            f"status_code={self.status_code!r})"
        )


class ConfigurationError(PesapalError):
    """
    Raised when required settings are missing or invalid.

    This is a FATAL error raised at client construction. It is never retried.
    """

    kind = ErrorKind.CONFIGURATION


class ValidationError(PesapalError):
    """
    Raised when order, registration or lookup input is invalid.

    Always raised before any network call, so the gateway was never reached.

    Examples:
    - Non-numeric or non-positive amount
    - Missing billing info or notification id
    - Empty notification URL or tracking id
    """

    kind = ErrorKind.VALIDATION


class GatewayError(PesapalError):
    """
    Raised when the gateway rejects a request or cannot be reached.

    This is a RETRYABLE error. The request executor retries it up to the
    configured number of attempts before surfacing it with the last status
    code and response body attached.

    Examples:
    - Gateway returns 4xx/5xx
    - Network timeout or connection error
    - Token response without a token
    """

    kind = ErrorKind.GATEWAY


class SignatureError(PesapalError):
    """
    Raised when an inbound notification signature is missing or forged.

    This is a TERMINAL error. It is never retried.
    """

    kind = ErrorKind.SIGNATURE


class TokenDecryptionError(PesapalError):
    """
    Raised when a stored token cannot be decrypted.

    Usually indicates a misconfigured encryption key or a corrupted cache
    entry rather than a gateway problem.
    """

    kind = ErrorKind.TOKEN_DECRYPTION

"""Signature verification for inbound IPN notifications."""

import hashlib
import hmac
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog

from pesapal_gateway.models.notifications import (
    SIGNATURE_HEADER,
    InboundNotification,
    get_header,
)

logger = structlog.get_logger(__name__)

INVALID_SIGNATURE_BODY = {"error": "Invalid IPN signature"}
HEX_SIGNATURE = re.compile(r"[0-9a-fA-F]+")


def _as_bytes(raw_body: bytes | bytearray | memoryview | str) -> bytes:
    if isinstance(raw_body, str):
        return raw_body.encode("utf-8")
    if isinstance(raw_body, (bytes, bytearray, memoryview)):
        return bytes(raw_body)
    raise TypeError(f"raw body must be bytes or str, got {type(raw_body).__name__}")


@dataclass(frozen=True)
class GateDecision:
    """Accept/reject outcome of the notification gate."""

    accepted: bool
    status_code: int = 200
    body: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def accept(cls) -> "GateDecision":
        return cls(accepted=True)

    @classmethod
    def reject(cls) -> "GateDecision":
        return cls(accepted=False, status_code=401, body=dict(INVALID_SIGNATURE_BODY))


class NotificationVerifier:
    """
    Verifies the ``x-pesapal-signature`` header of inbound notifications.

    The signature is the hex HMAC-SHA256 of the exact raw request body keyed
    with the consumer secret. Both sides are decoded to bytes and compared
    with ``hmac.compare_digest``.

    ``verify`` never raises: a missing, malformed or mismatched signature is
    simply False.
    """

    def __init__(self, secret: str):
        if not secret:
            raise ValueError("secret cannot be empty")
        self._key = secret.encode("utf-8")

    def compute_signature(self, raw_body: bytes | str) -> str:
        """Hex HMAC-SHA256 of ``raw_body``."""
        return hmac.new(self._key, _as_bytes(raw_body), hashlib.sha256).hexdigest()

    def verify(self, headers: Mapping[str, Any], raw_body: bytes | str) -> bool:
        """Return True only if the signature header matches the body."""
        try:
            signature = get_header(headers, SIGNATURE_HEADER)
        except (AttributeError, TypeError):
            logger.warning("ipn_headers_malformed")
            return False

        if not signature:
            logger.warning("ipn_signature_missing")
            return False

        try:
            signature = signature.strip()
            if not HEX_SIGNATURE.fullmatch(signature):
                raise ValueError("signature is not hex")
            provided = bytes.fromhex(signature)
            expected = hmac.new(self._key, _as_bytes(raw_body), hashlib.sha256).digest()
        except (AttributeError, TypeError, ValueError):
            logger.warning("ipn_signature_malformed")
            return False

        valid = hmac.compare_digest(provided, expected)
        if not valid:
            logger.warning("ipn_signature_invalid")
        return valid

    def verify_notification(self, notification: InboundNotification) -> bool:
        return self.verify(notification.headers, notification.raw_body)

    def gate(self, headers: Mapping[str, Any], raw_body: bytes | str) -> GateDecision:
        """
        Pure accept/reject decision for a request pipeline.

        Rejections carry status 401 and ``{"error": "Invalid IPN signature"}``.
        """
        if self.verify(headers, raw_body):
            return GateDecision.accept()
        return GateDecision.reject()

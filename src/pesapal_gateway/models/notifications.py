"""Inbound IPN notification models."""

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pesapal_gateway.models.exceptions import ValidationError

SIGNATURE_HEADER = "x-pesapal-signature"

TRACKING_ID_FIELDS = ("OrderTrackingId", "orderTrackingId", "order_tracking_id")
STATUS_FIELDS = ("OrderNotificationType", "orderNotificationType", "status")
MERCHANT_REFERENCE_FIELDS = ("OrderMerchantReference", "orderMerchantReference", "merchant_reference")


def get_header(headers: Mapping[str, Any], name: str) -> str | None:
    """Case-insensitive header lookup over a plain mapping."""
    wanted = name.lower()
    for key, value in headers.items():
        if isinstance(key, str) and key.lower() == wanted:
            return value
    return None


def _first_present(payload: Mapping[str, Any], names: tuple[str, ...]) -> Any:
    for name in names:
        value = payload.get(name)
        if value not in (None, ""):
            return value
    return None


@dataclass(frozen=True)
class NotificationRegistration:
    """IPN registration returned by the gateway."""

    ipn_id: str
    url: str
    name: str | None = None
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_response(cls, data: Mapping[str, Any]) -> "NotificationRegistration":
        return cls(
            ipn_id=data.get("ipn_id", ""),
            url=data.get("url", ""),
            name=data.get("ipn_notification_name") or data.get("notification_name"),
            raw=dict(data),
        )


@dataclass(frozen=True)
class InboundNotification:
    """
    Raw IPN request as received by the webhook endpoint.

    The body is kept as the exact bytes received; the signature is computed
    over those bytes, never over a re-serialized payload.
    """

    headers: Mapping[str, Any]
    raw_body: bytes

    @classmethod
    def from_request(cls, headers: Mapping[str, Any], body: bytes | str) -> "InboundNotification":
        if isinstance(body, str):
            body = body.encode("utf-8")
        return cls(headers=dict(headers), raw_body=bytes(body))

    @property
    def signature(self) -> str | None:
        return get_header(self.headers, SIGNATURE_HEADER)

    def payload(self) -> dict[str, Any]:
        """
        Parse the JSON body.

        Raises:
            ValidationError: If the body is not a JSON object
        """
        try:
            data = json.loads(self.raw_body)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ValidationError(f"Malformed IPN body: {e}") from e

        if not isinstance(data, dict):
            raise ValidationError("Malformed IPN body: expected a JSON object")
        return data

    @property
    def tracking_id(self) -> str | None:
        value = _first_present(self.payload(), TRACKING_ID_FIELDS)
        return str(value) if value is not None else None

    @property
    def status(self) -> Any:
        return _first_present(self.payload(), STATUS_FIELDS)

    @property
    def merchant_reference(self) -> str | None:
        return _first_present(self.payload(), MERCHANT_REFERENCE_FIELDS)

    def acknowledgement(self, status: int = 200) -> dict[str, Any]:
        """
        Response body the webhook returns to the gateway.

        The gateway expects this shape even when the notification was
        rejected locally; ``status`` is 200 on success and 500 otherwise.
        """
        try:
            notification_type = self.status
            tracking_id = self.tracking_id
            merchant_reference = self.merchant_reference
        except ValidationError:
            notification_type = tracking_id = merchant_reference = None

        return {
            "orderNotificationType": notification_type,
            "orderTrackingId": tracking_id,
            "orderMerchantReference": merchant_reference,
            "status": status,
        }

"""Order and transaction status models."""

import math
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pesapal_gateway.models.exceptions import ValidationError

DEFAULT_CURRENCY = "KES"
DEFAULT_BRANCH = "Main Branch"


def parse_amount(amount: Any) -> float:
    """
    Parse an order amount.

    Accepts numbers and numeric strings ("1200.50").

    Raises:
        ValidationError: If the amount is not a finite positive number
    """
    if isinstance(amount, bool):
        raise ValidationError("Amount must be a valid number")

    try:
        value = float(amount.strip() if isinstance(amount, str) else amount)
    except (TypeError, ValueError) as e:
        raise ValidationError("Amount must be a valid number") from e

    if not math.isfinite(value) or value <= 0:
        raise ValidationError("Amount must be a finite positive number")

    return value


def generate_order_id() -> str:
    return f"ORDER-{int(time.time() * 1000)}"


@dataclass(frozen=True)
class OrderRequest:
    """
    Validated order ready for submission.

    ``billing_info`` is passed through to the gateway as ``billing_address``
    (email_address, phone_number, first_name, last_name, line_1, city,
    country_code, ...).
    """

    notification_id: str
    amount: float
    description: str
    billing_info: Mapping[str, Any]
    currency: str = DEFAULT_CURRENCY
    id: str = field(default_factory=generate_order_id)
    callback_url: str | None = None
    cancellation_url: str | None = None
    branch: str = DEFAULT_BRANCH

    @classmethod
    def from_fields(
        cls,
        notification_id: str | None = None,
        amount: Any = None,
        description: str | None = None,
        billing_info: Mapping[str, Any] | None = None,
        currency: str | None = None,
        id: str | None = None,
        callback_url: str | None = None,
        cancellation_url: str | None = None,
        branch: str | None = None,
    ) -> "OrderRequest":
        """
        Validate raw order fields and apply defaults.

        Raises:
            ValidationError: If a required field is missing or amount is invalid
        """
        required = {
            "notification_id": notification_id,
            "amount": amount,
            "description": description,
            "billing_info": billing_info,
        }
        missing = [name for name, value in required.items() if value is None or value == ""]
        if missing:
            raise ValidationError(f"Missing required order parameters: {', '.join(missing)}")

        if not isinstance(billing_info, Mapping):
            raise ValidationError("billing_info must be a mapping")

        return cls(
            notification_id=notification_id,
            amount=parse_amount(amount),
            description=description,
            billing_info=dict(billing_info),
            currency=currency or DEFAULT_CURRENCY,
            id=id or generate_order_id(),
            callback_url=callback_url,
            cancellation_url=cancellation_url,
            branch=branch or DEFAULT_BRANCH,
        )

    def to_payload(self, callback_base_url: str) -> dict[str, Any]:
        """Build the SubmitOrderRequest body."""
        return {
            "id": self.id,
            "currency": self.currency,
            "amount": self.amount,
            "description": self.description,
            "callback_url": self.callback_url or f"{callback_base_url}/payment-complete",
            "cancellation_url": self.cancellation_url or f"{callback_base_url}/cancel",
            "notification_id": self.notification_id,
            "branch": self.branch,
            "billing_address": dict(self.billing_info),
        }


@dataclass(frozen=True)
class TransactionStatus:
    """Transaction status record. Passthrough data; not interpreted by the client."""

    tracking_id: str
    status_code: int | str | None
    status_description: str | None
    payment_method: str | None
    merchant_reference: str | None = None
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_response(cls, tracking_id: str, data: Mapping[str, Any]) -> "TransactionStatus":
        return cls(
            tracking_id=tracking_id,
            status_code=data.get("status_code"),
            status_description=data.get("payment_status_description"),
            payment_method=data.get("payment_method"),
            merchant_reference=data.get("merchant_reference"),
            raw=dict(data),
        )

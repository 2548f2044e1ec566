"""Pesapal v3 API client facade."""

from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

import structlog

from pesapal_gateway.clients.notification_verifier import NotificationVerifier
from pesapal_gateway.clients.token_manager import TokenLifecycleManager
from pesapal_gateway.config import PesapalSettings, load_settings
from pesapal_gateway.infrastructure.cache import TokenCache
from pesapal_gateway.infrastructure.http import RequestSpec, RetryingRequestExecutor
from pesapal_gateway.models.exceptions import SignatureError, ValidationError
from pesapal_gateway.models.notifications import InboundNotification
from pesapal_gateway.models.orders import OrderRequest, TransactionStatus
from pesapal_gateway.models.token import utcnow

REGISTER_IPN_PATH = "/URLSetup/RegisterIPN"
SUBMIT_ORDER_PATH = "/Transactions/SubmitOrderRequest"
TRANSACTION_STATUS_PATH = "/Transactions/GetTransactionStatus"

DEFAULT_IPN_NAME = "DefaultIPN"


class PesapalClient:
    """
    Client for the Pesapal v3 payments API.

    Composes the token manager, the retrying request executor and the
    notification verifier. Settings are validated once, here.

    Example:
        >>> async with PesapalClient(
        ...     consumer_key="...",
        ...     consumer_secret="...",
        ...     callback_base_url="https://shop.example.com",
        ... ) as pesapal:
        ...     ipn = await pesapal.register_notification_endpoint("https://shop.example.com/ipn")
        ...     order = await pesapal.submit_order(
        ...         notification_id=ipn["ipn_id"],
        ...         amount="1200.50",
        ...         description="2 shirts",
        ...         billing_info={"email_address": "jane@example.com"},
        ...     )
        ...     redirect_to = order["redirect_url"]
    """

    def __init__(
        self,
        settings: PesapalSettings | None = None,
        *,
        logger: Any = None,
        executor: RetryingRequestExecutor | None = None,
        token_cache: TokenCache | None = None,
        clock: Callable[[], datetime] = utcnow,
        **overrides: Any,
    ):
        """
        Initialize the client.

        Args:
            settings: Pre-built settings; when omitted they are loaded from
                ``overrides`` and PESAPAL_* environment variables
            logger: structlog-compatible logger (defaults to the module logger)
            executor: Request executor (built from settings if omitted)
            token_cache: Token cache passed to the token manager
            clock: Returns the current UTC time
            **overrides: Settings fields (consumer_key, consumer_secret, ...)

        Raises:
            ConfigurationError: If required settings are missing or invalid
        """
        if settings is not None and overrides:
            raise TypeError("Pass either settings or keyword overrides, not both")

        self.settings = settings or load_settings(**overrides)
        self.logger = logger or structlog.get_logger(__name__)
        self.executor = executor or RetryingRequestExecutor.from_settings(
            self.settings, logger=self.logger
        )
        self.tokens = TokenLifecycleManager(
            self.settings,
            self.executor,
            cache=token_cache,
            clock=clock,
            logger=self.logger,
        )
        self.verifier = NotificationVerifier(self.settings.consumer_secret)
        self._registrations: TokenCache | None = TokenCache() if self.settings.use_cache else None

        self.logger.info(
            "pesapal_client_initialized",
            env=self.settings.env,
            base_url=self.settings.base_url,
            use_cache=self.settings.use_cache,
            encrypt_tokens=self.settings.encrypt_tokens,
        )

    async def close(self) -> None:
        await self.executor.close()

    async def ensure_valid_token(self) -> str:
        return await self.tokens.ensure_valid_token()

    async def request_token(self) -> str:
        return await self.tokens.request_token()

    async def register_notification_endpoint(
        self, url: str, name: str = DEFAULT_IPN_NAME
    ) -> dict[str, Any]:
        """
        Register an IPN URL with the gateway.

        Args:
            url: Webhook URL that receives payment notifications
            name: Display name for the registration

        Returns:
            Gateway response, unmodified (contains ``ipn_id``)

        Raises:
            ValidationError: If url is not a non-empty string
            GatewayError: If the gateway rejects the request after all retries
        """
        if not isinstance(url, str) or not url.strip():
            raise ValidationError("Invalid notification URL")

        token = await self.tokens.ensure_valid_token()
        data = await self.executor.execute(
            RequestSpec(
                method="POST",
                path=REGISTER_IPN_PATH,
                json={
                    "url": url,
                    "ipn_notification_type": "POST",
                    "ipn_notification_name": name,
                },
                bearer_token=token,
            )
        )

        ipn_id = data.get("ipn_id") if isinstance(data, Mapping) else None
        if self._registrations is not None and ipn_id:
            self._registrations.set(url, ipn_id)

        self.logger.info("ipn_registered", ipn_id=ipn_id, url=url, name=name)
        return data

    def get_registered_notification_id(self, url: str) -> str | None:
        """IPN id previously registered for ``url`` by this client, if cached."""
        if self._registrations is None:
            return None
        return self._registrations.get(url)

    async def submit_order(
        self, order: OrderRequest | None = None, **fields: Any
    ) -> dict[str, Any]:
        """
        Submit a payment order.

        Accepts either a prepared OrderRequest or the raw fields
        (notification_id, amount, description, billing_info, currency, id,
        callback_url, cancellation_url, branch).

        Returns:
            Gateway response; ``redirect_url`` is where the customer pays

        Raises:
            ValidationError: If required fields are missing or amount is invalid
            GatewayError: If the gateway rejects the request after all retries
        """
        if order is None:
            order = OrderRequest.from_fields(**fields)
        elif fields:
            raise TypeError("Pass either an OrderRequest or order fields, not both")

        token = await self.tokens.ensure_valid_token()
        data = await self.executor.execute(
            RequestSpec(
                method="POST",
                path=SUBMIT_ORDER_PATH,
                json=order.to_payload(self.settings.callback_base_url),
                bearer_token=token,
            )
        )

        self.logger.info(
            "order_submitted",
            order_id=order.id,
            amount=order.amount,
            currency=order.currency,
            order_tracking_id=data.get("order_tracking_id") if isinstance(data, Mapping) else None,
        )
        return data

    async def get_transaction_status(self, tracking_id: str) -> TransactionStatus:
        """
        Look up the status of a transaction.

        Raises:
            ValidationError: If tracking_id is not a non-empty string
            GatewayError: If the gateway rejects the request after all retries
        """
        if not isinstance(tracking_id, str) or not tracking_id.strip():
            raise ValidationError("Invalid order tracking ID")

        token = await self.tokens.ensure_valid_token()
        data = await self.executor.execute(
            RequestSpec(
                method="GET",
                path=TRANSACTION_STATUS_PATH,
                params={"orderTrackingId": tracking_id},
                bearer_token=token,
            )
        )

        status = TransactionStatus.from_response(tracking_id, data if isinstance(data, Mapping) else {})
        self.logger.info(
            "transaction_status_retrieved",
            order_tracking_id=tracking_id,
            status_code=status.status_code,
            status_description=status.status_description,
        )
        return status

    async def handle_notification(
        self, headers: Mapping[str, Any], raw_body: bytes | str
    ) -> TransactionStatus:
        """
        Verify an inbound IPN and fetch the status it refers to.

        Args:
            headers: Request headers as received
            raw_body: Exact request body bytes as received

        Raises:
            SignatureError: If the signature is missing or does not match
            ValidationError: If the body has no order tracking id
            GatewayError: If the status lookup fails after all retries
        """
        notification = InboundNotification.from_request(headers, raw_body)

        if not self.verifier.verify_notification(notification):
            raise SignatureError("Invalid IPN signature", status_code=401)

        tracking_id = notification.tracking_id
        if not tracking_id:
            raise ValidationError("IPN body does not contain an order tracking id")

        self.logger.info(
            "ipn_received",
            order_tracking_id=tracking_id,
            notification_type=notification.status,
        )
        return await self.get_transaction_status(tracking_id)

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

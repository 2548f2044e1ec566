"""Example: obtain a token, register an IPN URL and submit an order.

Reads credentials from PESAPAL_* environment variables (or a .env file):

    PESAPAL_CONSUMER_KEY=...
    PESAPAL_CONSUMER_SECRET=...
    PESAPAL_CALLBACK_BASE_URL=https://your-webapp.example.com
    PESAPAL_ENV=sandbox
    PESAPAL_DEBUG=true
"""

import asyncio

from pesapal_gateway import GatewayError, PesapalClient, PesapalError, ValidationError, load_settings
from pesapal_gateway.logging_config import configure_logging_from_settings


async def create_order() -> None:
    settings = load_settings(encrypt_tokens=True)
    configure_logging_from_settings(settings)

    async with PesapalClient(settings) as pesapal:
        try:
            token = await pesapal.ensure_valid_token()
            print(f"✅ Access token obtained ({len(token)} chars)")

            ipn = await pesapal.register_notification_endpoint(
                f"{settings.callback_base_url}/ipn",
                "MainStoreIPN",
            )
            print(f"✅ IPN registered: {ipn.get('ipn_id')}")

            order = await pesapal.submit_order(
                notification_id=ipn["ipn_id"],
                amount=1200.5,
                description="Purchase of 2 shirts",
                billing_info={
                    "email_address": "customer@example.com",
                    "phone_number": "0712345678",
                    "first_name": "Jane",
                    "last_name": "Doe",
                    "line_1": "Mikocheni",
                    "city": "Dar es Salaam",
                    "country_code": "TZ",
                },
                currency="TZS",
                branch="Main Branch",
            )
            print(f"✅ Order submitted: {order.get('order_tracking_id')}")
            print(f"Redirect the customer to: {order.get('redirect_url')}")

        except ValidationError as e:
            print(f"❌ Invalid order: {e}")
            # Never reached the gateway - fix the input

        except GatewayError as e:
            print(f"❌ Gateway rejected the request (status={e.status_code}): {e.body}")
            # Already retried - surface to the operator

        except PesapalError as e:
            print(f"❌ {e.kind.value} error: {e}")


if __name__ == "__main__":
    asyncio.run(create_order())

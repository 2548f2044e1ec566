"""Unit tests for the IPN signature FastAPI dependency."""

import json
from typing import Annotated

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from conftest import TEST_SECRET, sign
from pesapal_gateway.api.dependencies import require_valid_signature
from pesapal_gateway.clients.notification_verifier import NotificationVerifier
from pesapal_gateway.models.notifications import InboundNotification

BODY = json.dumps(
    {
        "OrderTrackingId": "track-1",
        "OrderNotificationType": "IPNCHANGE",
        "OrderMerchantReference": "ORDER-1",
    }
).encode("utf-8")


@pytest.fixture
def client() -> TestClient:
    app = FastAPI()
    verified = Depends(require_valid_signature(NotificationVerifier(TEST_SECRET)))

    @app.post("/ipn")
    async def ipn(notification: Annotated[InboundNotification, verified]):
        return notification.acknowledgement()

    return TestClient(app)


class TestRequireValidSignature:
    """Tests for the webhook gate."""

    def test_valid_signature_reaches_handler(self, client) -> None:
        response = client.post(
            "/ipn",
            content=BODY,
            headers={"x-pesapal-signature": sign(BODY), "content-type": "application/json"},
        )

        assert response.status_code == 200
        assert response.json() == {
            "orderNotificationType": "IPNCHANGE",
            "orderTrackingId": "track-1",
            "orderMerchantReference": "ORDER-1",
            "status": 200,
        }

    def test_forged_signature_rejected(self, client) -> None:
        response = client.post(
            "/ipn",
            content=BODY,
            headers={"x-pesapal-signature": sign(BODY, "attacker-secret")},
        )

        assert response.status_code == 401
        assert response.json() == {"detail": "Invalid IPN signature"}

    def test_missing_signature_rejected(self, client) -> None:
        response = client.post("/ipn", content=BODY)

        assert response.status_code == 401
        assert response.json() == {"detail": "Invalid IPN signature"}

    def test_signature_covers_raw_bytes(self, client) -> None:
        reserialized = json.dumps(json.loads(BODY), indent=2).encode("utf-8")

        response = client.post(
            "/ipn",
            content=reserialized,
            headers={"x-pesapal-signature": sign(BODY)},
        )

        assert response.status_code == 401

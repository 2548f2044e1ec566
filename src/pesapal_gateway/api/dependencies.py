"""FastAPI dependencies for IPN webhook endpoints.

Example::

    verifier = NotificationVerifier(settings.consumer_secret)
    VerifiedIPN = Annotated[InboundNotification, Depends(require_valid_signature(verifier))]

    @app.post("/ipn")
    async def ipn(notification: VerifiedIPN):
        status = await pesapal.get_transaction_status(notification.tracking_id)
        return notification.acknowledgement()
"""

from collections.abc import Awaitable, Callable

import structlog
from fastapi import HTTPException, Request

from pesapal_gateway.clients.notification_verifier import NotificationVerifier
from pesapal_gateway.models.notifications import InboundNotification

logger = structlog.get_logger(__name__)


def require_valid_signature(
    verifier: NotificationVerifier,
) -> Callable[[Request], Awaitable[InboundNotification]]:
    """Build a dependency that rejects unsigned or forged IPN requests with 401.

    Args:
        verifier: Verifier holding the shared secret

    Returns:
        Dependency resolving to the verified InboundNotification
    """

    async def dependency(request: Request) -> InboundNotification:
        body = await request.body()
        decision = verifier.gate(request.headers, body)

        if not decision.accepted:
            logger.warning(
                "ipn_request_rejected",
                path=request.url.path,
                client=request.client.host if request.client else None,
            )
            raise HTTPException(
                status_code=decision.status_code,
                detail=decision.body["error"],
            )

        return InboundNotification.from_request(dict(request.headers), body)

    return dependency

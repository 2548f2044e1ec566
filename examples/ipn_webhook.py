"""Example: FastAPI webhook receiving Pesapal IPN calls.

Run with:

    uvicorn examples.ipn_webhook:app --port 8000
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from pesapal_gateway import GatewayError, PesapalClient, SignatureError, ValidationError
from pesapal_gateway.logging_config import configure_logging_from_settings, get_logger
from pesapal_gateway.models.notifications import InboundNotification

pesapal = PesapalClient()
configure_logging_from_settings(pesapal.settings)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info("ipn_webhook_started", env=pesapal.settings.env)

    yield

    await pesapal.close()
    logger.info("ipn_webhook_shutdown_complete")


app = FastAPI(title="Pesapal IPN webhook", lifespan=lifespan)


@app.post("/ipn")
async def ipn(request: Request) -> JSONResponse:
    body = await request.body()
    notification = InboundNotification.from_request(dict(request.headers), body)

    try:
        status = await pesapal.handle_notification(request.headers, body)
    except SignatureError:
        return JSONResponse(status_code=401, content={"error": "Invalid IPN signature"})
    except (ValidationError, GatewayError) as e:
        logger.error("ipn_processing_failed", error=str(e), kind=e.kind.value)
        return JSONResponse(status_code=500, content=notification.acknowledgement(500))

    logger.info(
        "payment_status_updated",
        order_tracking_id=status.tracking_id,
        status_description=status.status_description,
    )
    return JSONResponse(content=notification.acknowledgement(200))

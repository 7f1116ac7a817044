# app/api/webhooks/payments.py
"""
Payment provider webhook.

The provider POSTs the outcome of a payment intent here. The raw body is
verified against the signature header first; only then is the event applied
to the order.
"""

from fastapi import APIRouter, Depends, Header, Request

from app.api.deps import get_payment_gateway, get_payment_service
from app.domain.errors import ValidationFailed
from app.services.payments import PaymentGateway, PaymentService
from infrastructure.logger import logger

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/payments")
async def payment_webhook(
    request: Request,
    signature: str = Header(default="", alias="Stripe-Signature"),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    payments: PaymentService = Depends(get_payment_service),
):
    if gateway is None:
        raise ValidationFailed("Payments are not configured")

    body = await request.body()
    event = gateway.construct_event(body, signature)

    logger.info("payment_webhook_received", event_type=event.get("type"), event_id=event.get("id"))
    await payments.handle_event(event)

    return {"received": True}

# app/services/payments.py
"""
💳 PAYMENTS

Card orders are paid through a hosted provider with a Stripe-style REST API:

1. checkout creates a payment intent, the Mini App confirms it with the
   returned ``client_secret``
2. the provider calls POST /api/webhooks/payments with the outcome
3. the webhook signature is checked before anything is trusted

Signature header format: ``t=<unix time>,v1=<hex hmac>``, where the HMAC is
SHA-256 over ``"<t>.<raw body>"`` keyed with the webhook secret.
"""

import hashlib
import hmac
import json
import time
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

import aiohttp
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain import lifecycle
from app.domain.errors import DomainError, ValidationFailed
from app.services.notifications import NotificationService
from config.settings import config
from infrastructure.database.models import NotificationType, Order, OrderStatus, PaymentStatus, User
from infrastructure.database.repositories import OrderRepository
from infrastructure.logger import logger

SIGNATURE_INVALID = "Webhook signature verification failed"


class PaymentProviderError(DomainError):
    """The provider answered with an error or could not be reached."""
    status_code = 502


@dataclass(frozen=True)
class PaymentIntent:
    id: str
    client_secret: Optional[str]


def sign_payload(secret: str, timestamp: int, payload: bytes) -> str:
    signed = f"{timestamp}.".encode() + payload
    return hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()


def parse_signature_header(header: str) -> tuple:
    """``"t=1,v1=ab,v1=cd"`` -> ``(1, ["ab", "cd"])``."""
    timestamp = None
    signatures = []
    for part in (header or "").split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError:
                timestamp = None
        elif key == "v1" and value:
            signatures.append(value)
    return timestamp, signatures


# ==========================================
# PROVIDER ADAPTER
# ==========================================

class PaymentGateway:

    def __init__(
        self,
        api_url: str = None,
        secret_key: str = None,
        webhook_secret: str = None,
        currency: str = None,
        tolerance: int = None,
    ):
        self.api_url = (api_url or config.payment_api_url).rstrip("/")
        self.secret_key = secret_key if secret_key is not None else config.payment_secret_key
        self.webhook_secret = webhook_secret if webhook_secret is not None else config.payment_webhook_secret
        self.currency = currency or config.payment_currency
        self.tolerance = tolerance if tolerance is not None else config.payment_signature_tolerance

    async def create_intent(self, order: Order, customer: User) -> PaymentIntent:
        """Create a payment intent for the order total (in minor units)."""
        amount = int((Decimal(str(order.total_amount)) * 100).to_integral_value())
        form = {
            "amount": str(amount),
            "currency": self.currency,
            "description": f"Order #{order.order_number}",
            "metadata[order_id]": str(order.id),
            "metadata[order_number]": order.order_number,
            "metadata[customer_id]": str(customer.id),
        }
        headers = {"Authorization": f"Bearer {self.secret_key}"}

        try:
            async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=15)) as http:
                async with http.post(f"{self.api_url}/payment_intents", data=form, headers=headers) as response:
                    body = await response.json(content_type=None)
                    if response.status >= 400:
                        message = (body or {}).get("error", {}).get("message", "payment provider error")
                        raise PaymentProviderError(message)
        except aiohttp.ClientError as e:
            raise PaymentProviderError(str(e)) from e

        logger.info("payment_intent_created", order_id=str(order.id), payment_intent_id=body["id"])
        return PaymentIntent(id=body["id"], client_secret=body.get("client_secret"))

    def construct_event(self, payload: bytes, signature_header: str, now: float = None) -> dict:
        """Verify the signature and return the decoded event."""
        timestamp, signatures = parse_signature_header(signature_header)
        if timestamp is None or not signatures or not self.webhook_secret:
            raise ValidationFailed(SIGNATURE_INVALID)

        expected = sign_payload(self.webhook_secret, timestamp, payload)
        if not any(hmac.compare_digest(expected, candidate) for candidate in signatures):
            logger.warning("invalid_webhook_signature", provided_signature=signatures[0][:8] + "***")
            raise ValidationFailed(SIGNATURE_INVALID)

        now = time.time() if now is None else now
        if self.tolerance and abs(now - timestamp) > self.tolerance:
            logger.warning("webhook_signature_expired", timestamp=timestamp)
            raise ValidationFailed(SIGNATURE_INVALID)

        try:
            return json.loads(payload)
        except ValueError as e:
            raise ValidationFailed("Invalid webhook payload") from e


# ==========================================
# WEBHOOK HANDLING
# ==========================================

class PaymentService:

    def __init__(self, session: AsyncSession, notifications: NotificationService):
        self.session = session
        self.orders = OrderRepository(session)
        self.notifications = notifications

    async def handle_event(self, event: dict):
        event_type = event.get("type")
        intent = (event.get("data") or {}).get("object") or {}

        if event_type == "payment_intent.succeeded":
            await self._payment_succeeded(intent)
        elif event_type == "payment_intent.payment_failed":
            await self._payment_failed(intent)
        else:
            logger.info("payment_event_ignored", event_type=event_type)

    async def _load_order(self, intent: dict) -> Optional[Order]:
        order_id = (intent.get("metadata") or {}).get("order_id")
        order = None
        if order_id:
            try:
                order = await self.orders.get_with_relations(uuid.UUID(str(order_id)), for_update=True)
            except ValueError:
                order = None
        if order is None:
            logger.error("payment_order_not_found", payment_intent_id=intent.get("id"))
        return order

    async def _payment_succeeded(self, intent: dict):
        order = await self._load_order(intent)
        if order is None:
            return

        order.payment_status = PaymentStatus.PAID
        if OrderStatus(order.status) == OrderStatus.PENDING:
            lifecycle.transition(order, OrderStatus.PAID)
        await self.session.commit()

        logger.info("payment_succeeded", order_id=str(order.id))
        await self.notifications.notify(
            order.customer_id,
            order.id,
            NotificationType.PAYMENT_SUCCESS,
            title="Payment Successful",
            message=f"Payment of {order.total_amount} UZS received for order #{order.order_number}",
        )

    async def _payment_failed(self, intent: dict):
        order = await self._load_order(intent)
        if order is None:
            return

        order.payment_status = PaymentStatus.FAILED
        await self.session.commit()

        logger.info("payment_failed", order_id=str(order.id))
        await self.notifications.notify(
            order.customer_id,
            order.id,
            NotificationType.PAYMENT_FAILED,
            title="Payment Failed",
            message=f"Payment failed for order #{order.order_number}. Please try again.",
        )

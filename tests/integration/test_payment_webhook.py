"""POST /api/webhooks/payments"""
import json
import time

from sqlalchemy import select

from app.services.payments import sign_payload
from infrastructure.database.models import Notification, Order, OrderStatus, PaymentMethod, PaymentStatus


def intent_event(event_type, order_id, intent_id="pi_test_1"):
    return {
        "id": "evt_1",
        "type": event_type,
        "data": {"object": {"id": intent_id, "metadata": {"order_id": str(order_id)}}},
    }


async def post_event(client, event, secret="whsec_test"):
    body = json.dumps(event).encode()
    timestamp = int(time.time())
    signature = f"t={timestamp},v1={sign_payload(secret, timestamp, body)}"
    return await client.post(
        "/api/webhooks/payments",
        content=body,
        headers={"Stripe-Signature": signature, "Content-Type": "application/json"},
    )


async def load_order(session_maker, order_id):
    async with session_maker() as session:
        return await session.get(Order, order_id)


async def test_payment_succeeded_marks_order_paid(client, place_order, session_maker):
    order = await place_order(payment_method=PaymentMethod.CARD)

    response = await post_event(client, intent_event("payment_intent.succeeded", order.id))

    assert response.status_code == 200
    assert response.json() == {"received": True}

    stored = await load_order(session_maker, order.id)
    assert stored.status == OrderStatus.PAID
    assert stored.payment_status == PaymentStatus.PAID

    async with session_maker() as session:
        titles = (await session.scalars(select(Notification.title).order_by(Notification.created_at))).all()
    assert titles[-1] == "Payment Successful"


async def test_payment_succeeded_for_confirmed_order_keeps_status(client, place_order, session_maker):
    order = await place_order(
        payment_method=PaymentMethod.CARD,
        statuses=(OrderStatus.PAID, OrderStatus.CONFIRMED),
    )

    await post_event(client, intent_event("payment_intent.succeeded", order.id))

    stored = await load_order(session_maker, order.id)
    assert stored.status == OrderStatus.CONFIRMED
    assert stored.payment_status == PaymentStatus.PAID


async def test_payment_failed_marks_payment_failed(client, place_order, session_maker):
    order = await place_order(payment_method=PaymentMethod.CARD)

    response = await post_event(client, intent_event("payment_intent.payment_failed", order.id))

    assert response.status_code == 200
    stored = await load_order(session_maker, order.id)
    assert stored.status == OrderStatus.PENDING
    assert stored.payment_status == PaymentStatus.FAILED


async def test_bad_signature_is_rejected_and_ignored(client, place_order, session_maker):
    order = await place_order(payment_method=PaymentMethod.CARD)

    response = await post_event(client, intent_event("payment_intent.succeeded", order.id), secret="whsec_wrong")

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Webhook signature verification failed"}
    stored = await load_order(session_maker, order.id)
    assert stored.payment_status == PaymentStatus.PENDING


async def test_missing_signature_is_rejected(client, seed):
    response = await client.post("/api/webhooks/payments", json={"type": "payment_intent.succeeded"})
    assert response.status_code == 400


async def test_unknown_order_is_acknowledged(client, seed):
    response = await post_event(client, intent_event("payment_intent.succeeded", "not-a-uuid"))
    assert response.json() == {"received": True}


async def test_other_event_types_are_acknowledged(client, place_order, session_maker):
    order = await place_order(payment_method=PaymentMethod.CARD)

    response = await post_event(client, intent_event("charge.refunded", order.id))

    assert response.json() == {"received": True}
    stored = await load_order(session_maker, order.id)
    assert stored.payment_status == PaymentStatus.PENDING

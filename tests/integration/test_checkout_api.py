"""POST /api/orders"""
import uuid
from decimal import Decimal

from sqlalchemy import func, select

from infrastructure.database.models import Delivery, MenuItem, Notification, Order


def order_payload(seed, items=None, payment_method="cash", address_id=None):
    return {
        "items": items if items is not None else [{"menu_item_id": str(seed.plov.id), "quantity": 2}],
        "address_id": str(address_id or seed.address.id),
        "payment_method": payment_method,
        "delivery_notes": "Ring twice",
    }


async def count(session_maker, model):
    async with session_maker() as session:
        return await session.scalar(select(func.count()).select_from(model))


async def test_cash_checkout_creates_order_delivery_and_notification(client, seed, as_user, session_maker, publisher, telegram):
    response = await client.post("/api/orders", json=order_payload(seed), headers=as_user(seed.customer))

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Order created successfully"
    assert body["data"]["payment"] is None

    order = body["data"]["order"]
    assert order["status"] == "pending"
    assert order["payment_status"] == "pending"
    assert order["payment_method"] == "cash"
    assert Decimal(order["subtotal"]) == Decimal("25000")
    assert Decimal(order["delivery_fee"]) == Decimal("5000")
    assert Decimal(order["total_amount"]) == Decimal("30000")
    assert order["order_number"].startswith("ORD-")
    assert order["delivery_notes"] == "Ring twice"
    assert order["estimated_delivery_time"] is not None

    [item] = order["items"]
    assert item["quantity"] == 2
    assert Decimal(item["unit_price"]) == Decimal("12500")
    assert Decimal(item["subtotal"]) == Decimal("25000")

    delivery = order["delivery"]
    assert delivery["status"] == "pending"
    assert delivery["delivery_partner_id"] is None
    assert Decimal(delivery["dropoff_latitude"]) == Decimal("41.311081")
    assert Decimal(delivery["dropoff_longitude"]) == Decimal("69.279797")

    async with session_maker() as session:
        notification = await session.scalar(select(Notification))
    assert notification.type.value == "order_created"
    assert str(notification.order_id) == order["id"]
    assert notification.title == "Order Created"

    assert publisher.rooms("notification") == [f"user_{seed.customer.id}"]
    assert telegram.sent[0][0] == seed.customer.telegram_id


async def test_price_is_snapshotted_at_checkout(client, seed, as_user, session_maker):
    response = await client.post("/api/orders", json=order_payload(seed), headers=as_user(seed.customer))
    order_id = response.json()["data"]["order"]["id"]

    async with session_maker() as session:
        plov = await session.get(MenuItem, seed.plov.id)
        plov.price = Decimal("99999.00")
        await session.commit()

    response = await client.get(f"/api/orders/{order_id}", headers=as_user(seed.customer))
    item = response.json()["data"]["order"]["items"][0]
    assert Decimal(item["unit_price"]) == Decimal("12500")


async def test_below_minimum_is_rejected_and_nothing_is_saved(client, seed, as_user, session_maker):
    items = [{"menu_item_id": str(seed.lagman.id), "quantity": 1}]

    response = await client.post("/api/orders", json=order_payload(seed, items=items), headers=as_user(seed.customer))

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Minimum order amount is 15000 UZS"}
    assert await count(session_maker, Order) == 0
    assert await count(session_maker, Delivery) == 0
    assert await count(session_maker, Notification) == 0


async def test_items_add_up_towards_minimum(client, seed, as_user):
    items = [
        {"menu_item_id": str(seed.lagman.id), "quantity": 1},
        {"menu_item_id": str(seed.plov.id), "quantity": 1},
    ]

    response = await client.post("/api/orders", json=order_payload(seed, items=items), headers=as_user(seed.customer))

    assert response.status_code == 201
    assert Decimal(response.json()["data"]["order"]["subtotal"]) == Decimal("22500")


async def test_unavailable_item_is_rejected(client, seed, as_user, session_maker):
    items = [
        {"menu_item_id": str(seed.plov.id), "quantity": 2},
        {"menu_item_id": str(seed.samsa.id), "quantity": 1},
    ]

    response = await client.post("/api/orders", json=order_payload(seed, items=items), headers=as_user(seed.customer))

    assert response.status_code == 400
    assert response.json()["message"] == "Samsa is currently unavailable"
    assert await count(session_maker, Order) == 0


async def test_unknown_item_is_not_found(client, seed, as_user):
    missing = uuid.uuid4()
    items = [{"menu_item_id": str(missing), "quantity": 2}]

    response = await client.post("/api/orders", json=order_payload(seed, items=items), headers=as_user(seed.customer))

    assert response.status_code == 404
    assert response.json()["message"] == f"Menu item {missing} not found"


async def test_someone_elses_address_is_not_found(client, seed, as_user, session_maker):
    response = await client.post(
        "/api/orders",
        json=order_payload(seed, address_id=seed.foreign_address.id),
        headers=as_user(seed.customer),
    )

    assert response.status_code == 404
    assert response.json()["message"] == "Delivery address not found"
    assert await count(session_maker, Order) == 0


async def test_empty_basket_and_zero_quantity_fail_validation(client, seed, as_user):
    empty = await client.post("/api/orders", json=order_payload(seed, items=[]), headers=as_user(seed.customer))
    zero = await client.post(
        "/api/orders",
        json=order_payload(seed, items=[{"menu_item_id": str(seed.plov.id), "quantity": 0}]),
        headers=as_user(seed.customer),
    )

    assert empty.status_code == 400
    assert empty.json()["success"] is False
    assert zero.status_code == 400
    assert "quantity" in zero.json()["message"]


async def test_delivery_partner_cannot_check_out(client, seed, as_user):
    response = await client.post("/api/orders", json=order_payload(seed), headers=as_user(seed.partner))
    assert response.status_code == 403
    assert response.json()["message"] == "Access denied"


async def test_card_checkout_returns_payment_intent(client, seed, as_user, gateway):
    response = await client.post(
        "/api/orders",
        json=order_payload(seed, payment_method="card"),
        headers=as_user(seed.customer),
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["payment"] == {"client_secret": "pi_secret_test", "payment_intent_id": "pi_test_1"}
    assert data["order"]["payment_intent_id"] == "pi_test_1"
    assert str(gateway.intents[0][0]) == data["order"]["id"]


async def test_payment_provider_failure_rolls_back_checkout(client, seed, as_user, gateway, session_maker):
    gateway.fail = True

    response = await client.post(
        "/api/orders",
        json=order_payload(seed, payment_method="card"),
        headers=as_user(seed.customer),
    )

    assert response.status_code == 502
    assert response.json() == {"success": False, "message": "card declined"}
    assert await count(session_maker, Order) == 0
    assert await count(session_maker, Delivery) == 0

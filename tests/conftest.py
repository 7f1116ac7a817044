"""
Shared fixtures.

Each test gets its own SQLite file database. Transactions open with
BEGIN IMMEDIATE so concurrent writers queue on the database lock the way
they queue on row locks in PostgreSQL.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("CUSTOMER_BOT_TOKEN", "100001:customer-test-token")
os.environ.setdefault("DELIVERY_BOT_TOKEN", "100002:delivery-test-token")
os.environ.setdefault("PAYMENT_WEBHOOK_SECRET", "whsec_test")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DEBUG", "false")

from decimal import Decimal
from types import SimpleNamespace

import pytest
from fastapi import Depends, Header
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.api.app import create_app
from app.api.deps import get_current_user
from app.domain.errors import Unauthorized
from app.domain.schemas import CreateOrderIn, OrderItemIn
from app.services.deliveries import DeliveryService
from app.services.notifications import NotificationService
from app.services.orders import OrderService
from app.services.payments import PaymentGateway, PaymentIntent, PaymentProviderError
from infrastructure.database.base import Base, get_db_session
from infrastructure.database.models import (
    Address,
    Category,
    MenuItem,
    PaymentMethod,
    User,
    UserRole,
)
from infrastructure.database.repositories import UserRepository
from infrastructure.realtime import LocalPublisher

WEBHOOK_SECRET = "whsec_test"
DEMO_EMAIL = "demo_delivery@example.com"


# ==========================================
# FAKES
# ==========================================

class RecordingPublisher(LocalPublisher):
    """In-process fan-out that also remembers everything published."""

    def __init__(self):
        super().__init__()
        self.events = []

    async def publish(self, room, event, payload):
        self.events.append((room, event, payload))
        await super().publish(room, event, payload)

    def rooms(self, event=None):
        return [room for room, name, _ in self.events if event is None or name == event]

    def has_listeners(self, room):
        return bool(self._queues.get(room))


class FakeTelegram:
    def __init__(self):
        self.sent = []

    async def send(self, user, title, message, order_id=None):
        self.sent.append((user.telegram_id, title, message, order_id))


class FailingTelegram:
    async def send(self, user, title, message, order_id=None):
        raise RuntimeError("telegram is down")


class FakeGateway(PaymentGateway):
    """Real signature checks, no network."""

    def __init__(self, fail: bool = False):
        super().__init__(secret_key="sk_test", webhook_secret=WEBHOOK_SECRET, currency="uzs")
        self.fail = fail
        self.intents = []

    async def create_intent(self, order, customer):
        if self.fail:
            raise PaymentProviderError("card declined")
        intent = PaymentIntent(id=f"pi_test_{len(self.intents) + 1}", client_secret="pi_secret_test")
        self.intents.append((order.id, intent))
        return intent


# ==========================================
# DATABASE
# ==========================================

@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        connect_args={"timeout": 30},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def seed(session_maker):
    """Users, an address and a small menu."""
    async with session_maker() as session:
        customer = User(telegram_id="1001", first_name="Aziza", role=UserRole.CUSTOMER)
        other_customer = User(telegram_id="1002", first_name="Bekzod", role=UserRole.CUSTOMER)
        partner = User(telegram_id="2001", first_name="Dilshod", last_name="K", role=UserRole.DELIVERY)
        rival = User(telegram_id="2002", first_name="Farrukh", role=UserRole.DELIVERY)
        demo = User(telegram_id="2999", email=DEMO_EMAIL, first_name="Demo", role=UserRole.DELIVERY)
        admin = User(telegram_id="3001", first_name="Admin", role=UserRole.ADMIN)
        session.add_all([customer, other_customer, partner, rival, demo, admin])
        await session.flush()

        address = Address(
            user_id=customer.id,
            street_address="12 Amir Temur St",
            city="Tashkent",
            latitude=Decimal("41.31108100"),
            longitude=Decimal("69.27979700"),
            is_default=True,
        )
        foreign_address = Address(user_id=other_customer.id, street_address="5 Navoi St", city="Tashkent")

        category = Category(name="Mains", sort_order=1)
        session.add_all([address, foreign_address, category])
        await session.flush()

        plov = MenuItem(category_id=category.id, name="Plov", price=Decimal("12500.00"))
        lagman = MenuItem(category_id=category.id, name="Lagman", price=Decimal("10000.00"))
        samsa = MenuItem(category_id=category.id, name="Samsa", price=Decimal("4000.00"), is_available=False)
        session.add_all([plov, lagman, samsa])
        await session.commit()

        return SimpleNamespace(
            customer=customer,
            other_customer=other_customer,
            partner=partner,
            rival=rival,
            demo=demo,
            admin=admin,
            address=address,
            foreign_address=foreign_address,
            category=category,
            plov=plov,
            lagman=lagman,
            samsa=samsa,
        )


# ==========================================
# SERVICES
# ==========================================

@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def telegram():
    return FakeTelegram()


@pytest.fixture
def failing_telegram():
    return FailingTelegram()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def services(session_maker, publisher, telegram, gateway):
    """Build services on a caller-owned session: ``services.orders(session)``."""

    def notifications(session):
        return NotificationService(session, publisher=publisher, sender=telegram)

    return SimpleNamespace(
        notifications=notifications,
        orders=lambda session: OrderService(session, notifications(session), payments=gateway),
        deliveries=lambda session: DeliveryService(session, notifications(session), publisher=publisher),
    )


# ==========================================
# HTTP
# ==========================================

@pytest.fixture
def as_user():
    """Headers that authenticate a request as ``user``."""
    return lambda user: {"X-Test-User": user.telegram_id}


def _build_app(session_maker, publisher, telegram, gateway, override_auth=True):
    app = create_app(publisher=publisher, telegram=telegram, payments=gateway, manage_database=False)

    async def test_session():
        async with session_maker() as session:
            yield session

    async def test_current_user(
        x_test_user: str = Header(default=""),
        session: AsyncSession = Depends(get_db_session),
    ):
        user = await UserRepository(session).get_by_telegram_id(x_test_user)
        if user is None:
            raise Unauthorized("User not found or inactive")
        return user

    app.dependency_overrides[get_db_session] = test_session
    if override_auth:
        app.dependency_overrides[get_current_user] = test_current_user
    return app


@pytest.fixture
def api_app(session_maker, publisher, telegram, gateway, seed):
    return _build_app(session_maker, publisher, telegram, gateway)


@pytest.fixture
async def client(api_app):
    async with AsyncClient(transport=ASGITransport(app=api_app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def unauthenticated_client(session_maker, publisher, telegram, gateway, seed):
    app = _build_app(session_maker, publisher, telegram, gateway, override_auth=False)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# ==========================================
# ORDERS
# ==========================================

@pytest.fixture
def place_order(session_maker, services, seed):
    """Check out ``quantity`` x Plov for the seeded customer, then walk the order through ``statuses``."""

    async def _place(quantity=2, payment_method=PaymentMethod.CASH, statuses=()):
        async with session_maker() as session:
            data = CreateOrderIn(
                items=[OrderItemIn(menu_item_id=seed.plov.id, quantity=quantity)],
                address_id=seed.address.id,
                payment_method=payment_method,
            )
            order, _ = await services.orders(session).create_order(seed.customer, data)
            for status in statuses:
                order = await services.orders(session).update_status(seed.admin, order.id, status)
            return order

    return _place

"""Who may listen to a real-time room, and who the bot filters let through."""
import asyncio
import uuid
from types import SimpleNamespace

from app.bot.filters.role import HasRole
from infrastructure.database.models import UserRole


class OpenStream:
    """
    Drives the ASGI app by hand: an SSE body never ends, so a regular
    client would wait forever for it.
    """

    def __init__(self, app, path, headers):
        self.app = app
        self.path = path
        self.headers = headers
        self.messages = asyncio.Queue()
        self.gone = asyncio.Event()
        self._requested = False
        self._task = None

    async def receive(self):
        if not self._requested:
            self._requested = True
            return {"type": "http.request", "body": b"", "more_body": False}
        await self.gone.wait()
        return {"type": "http.disconnect"}

    async def send(self, message):
        await self.messages.put(message)

    async def next_message(self):
        return await asyncio.wait_for(self.messages.get(), timeout=5)

    async def __aenter__(self):
        scope = {
            "type": "http",
            "asgi": {"version": "3.0"},
            "http_version": "1.1",
            "method": "GET",
            "scheme": "http",
            "path": self.path,
            "raw_path": self.path.encode(),
            "root_path": "",
            "query_string": b"",
            "headers": [(k.lower().encode(), v.encode()) for k, v in self.headers.items()],
            "client": ("testclient", 50000),
            "server": ("test", 80),
        }
        self._task = asyncio.create_task(self.app(scope, self.receive, self.send))
        return self

    async def __aexit__(self, *exc):
        self.gone.set()
        await asyncio.wait_for(self._task, timeout=5)


async def wait_for_listener(publisher, room):
    for _ in range(100):
        if publisher.has_listeners(room):
            return
        await asyncio.sleep(0.01)
    raise AssertionError(f"nobody subscribed to {room}")


async def test_user_room_streams_events_without_holding_a_connection(api_app, engine, seed, as_user, publisher):
    room = f"user_{seed.customer.id}"
    baseline = engine.pool.checkedout()

    async with OpenStream(api_app, f"/api/events/{room}", as_user(seed.customer)) as stream:
        start = await stream.next_message()
        assert start["status"] == 200
        assert (await stream.next_message())["body"] == b"retry: 3000\n\n"

        await wait_for_listener(publisher, room)
        assert engine.pool.checkedout() == baseline

        await publisher.publish(room, "notification", {"title": "Order Confirmed"})
        frame = await stream.next_message()
        assert frame["body"].decode() == 'event: notification\ndata: {"title": "Order Confirmed"}\n\n'

    assert not publisher.has_listeners(room)


async def test_order_room_releases_the_connection_after_the_access_check(
    api_app, engine, seed, as_user, publisher, place_order
):
    order = await place_order()
    room = f"order_{order.id}"
    baseline = engine.pool.checkedout()

    async with OpenStream(api_app, f"/api/events/{room}", as_user(seed.customer)) as stream:
        assert (await stream.next_message())["status"] == 200
        await stream.next_message()
        await wait_for_listener(publisher, room)

        assert engine.pool.checkedout() == baseline


async def test_unknown_room_is_not_found(client, seed, as_user):
    response = await client.get("/api/events/lobby", headers=as_user(seed.customer))
    assert response.status_code == 404
    assert response.json()["message"] == "Unknown room"


async def test_cannot_listen_to_another_users_room(client, seed, as_user):
    response = await client.get(f"/api/events/user_{seed.other_customer.id}", headers=as_user(seed.customer))
    assert response.status_code == 403


async def test_cannot_listen_to_a_stranger_order(client, seed, as_user, place_order):
    order = await place_order()

    response = await client.get(f"/api/events/order_{order.id}", headers=as_user(seed.other_customer))

    assert response.status_code == 404
    assert response.json()["message"] == "Order not found"


async def test_listening_requires_auth(unauthenticated_client):
    response = await unauthenticated_client.get(f"/api/events/user_{uuid.uuid4()}")
    assert response.status_code == 401


# ==========================================
# BOT ROLE FILTER
# ==========================================

def telegram_event(telegram_id):
    return SimpleNamespace(from_user=SimpleNamespace(id=int(telegram_id)))


async def test_filter_passes_partner_with_loaded_user(seed, session_maker):
    async with session_maker() as session:
        result = await HasRole(UserRole.DELIVERY)(telegram_event(seed.partner.telegram_id), session)

    assert result["user"].id == seed.partner.id


async def test_filter_rejects_other_roles_and_strangers(seed, session_maker):
    partner_only = HasRole(UserRole.DELIVERY)
    async with session_maker() as session:
        assert await partner_only(telegram_event(seed.customer.telegram_id), session) is False
        assert await partner_only(telegram_event(999999), session) is False


async def test_filter_without_roles_accepts_any_registered_user(seed, session_maker):
    async with session_maker() as session:
        result = await HasRole()(telegram_event(seed.admin.telegram_id), session)
    assert result["user"].role == UserRole.ADMIN

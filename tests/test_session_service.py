import asyncio

import pytest

from fakes import FakeHub, RecordingPolicy, notification_payload

from gymhub.services.connection_manager import ConnectionManager, HubEvent
from gymhub.services.credentials import SessionCredentials
from gymhub.services.notification_store import NotificationStore
from gymhub.services.session_service import AuthenticationRequiredError, SessionService


class SpyManager(ConnectionManager):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.calls = []

    def off_all_handlers(self):
        self.calls.append("off_all_handlers")
        super().off_all_handlers()

    async def stop_connection(self):
        self.calls.append("stop_connection")
        await super().stop_connection()


def _session(hub, recent_ids=200):
    credentials = SessionCredentials()
    manager = SpyManager(credentials, transport_factory=hub, policy=RecordingPolicy())
    return SessionService(manager, credentials, recent_ids=recent_ids)


def test_pushed_notifications_newest_first_with_unread_count():
    async def scenario():
        hub = FakeHub()
        svc = _session(hub)

        assert await svc.login("user-1", "token-abc")
        assert svc.is_connected

        transport = hub.current
        transport.push("ReceiveNotification", notification_payload("booking-1", "booking"))
        transport.push("ReceiveNotification", notification_payload("order-1", "order"))
        transport.push("ReceiveNotification", notification_payload("message-1", "message"))

        store = svc.notifications
        assert [n.type.value for n in store.notifications] == ["message", "order", "booking"]
        assert store.unread_count == 3

        store.mark_as_read("message-1")
        assert store.unread_count == 2

    asyncio.run(scenario())


def test_login_uses_credentials_for_token_factory():
    async def scenario():
        hub = FakeHub()
        svc = _session(hub)

        await svc.login("user-7", "secret-token")

        assert hub.current.tokens == ["secret-token"]
        assert hub.current.invocations == [("RegisterUser", ("user-7",))]

    asyncio.run(scenario())


def test_login_requires_credentials():
    async def scenario():
        hub = FakeHub()
        svc = _session(hub)

        with pytest.raises(AuthenticationRequiredError):
            await svc.login("", "token")
        with pytest.raises(AuthenticationRequiredError):
            await svc.login("user-1", "")
        assert hub.transports == []

    asyncio.run(scenario())


def test_login_failure_is_reported_as_disconnected():
    async def scenario():
        hub = FakeHub(["fail_start"])
        svc = _session(hub)

        connected = await svc.login("user-1", "token")

        assert connected is False
        assert svc.is_connected is False

    asyncio.run(scenario())


def test_redelivered_notification_is_skipped():
    async def scenario():
        hub = FakeHub()
        svc = _session(hub)
        await svc.login("user-1", "token")

        hub.current.push("ReceiveNotification", notification_payload("n1"))
        hub.current.push("ReceiveNotification", notification_payload("n1"))
        hub.current.push("ReceiveNotification", notification_payload("n2"))

        assert [n.id for n in svc.notifications.notifications] == ["n2", "n1"]

    asyncio.run(scenario())


def test_recent_id_window_is_bounded():
    async def scenario():
        hub = FakeHub()
        svc = _session(hub, recent_ids=2)
        await svc.login("user-1", "token")

        for notification_id in ["a", "b", "c", "a"]:
            hub.current.push("ReceiveNotification", notification_payload(notification_id))

        assert [n.id for n in svc.notifications.notifications] == ["a", "c", "b", "a"]

    asyncio.run(scenario())


def test_subscriber_gets_event_payload_as_is():
    async def scenario():
        hub = FakeHub()
        svc = _session(hub)
        bookings = []
        svc.subscribe(HubEvent.BOOKING_UPDATED, bookings.append)
        await svc.login("user-1", "token")

        hub.current.push("BookingUpdated", {"bookingId": "b-9", "status": "confirmed"})
        hub.current.push("OrderUpdated", {"orderId": "o-1"})

        assert bookings == [{"bookingId": "b-9", "status": "confirmed"}]

    asyncio.run(scenario())


def test_logout_detaches_handlers_before_stopping():
    async def scenario():
        hub = FakeHub()
        svc = _session(hub)
        await svc.login("user-1", "token")
        transport = hub.current
        transport.push("ReceiveNotification", notification_payload("n1"))

        await svc.logout()

        assert svc.manager.calls[:2] == ["off_all_handlers", "stop_connection"]
        assert svc.is_connected is False
        assert transport.stopped
        assert svc.notifications.notifications == ()
        assert svc.credentials.get_token() == ""
        assert svc.credentials.get_user_id() == ""

        transport.push("ReceiveNotification", notification_payload("late"))
        assert svc.notifications.notifications == ()

    asyncio.run(scenario())


def test_new_login_starts_with_empty_store():
    async def scenario():
        hub = FakeHub()
        store = NotificationStore()
        credentials = SessionCredentials()
        svc = SessionService(
            ConnectionManager(credentials, transport_factory=hub, policy=RecordingPolicy()),
            credentials,
            notifications=store,
        )
        await svc.login("user-1", "token")
        hub.current.push("ReceiveNotification", notification_payload("n1"))
        await svc.logout()

        await svc.login("user-2", "token-2")

        assert store.notifications == ()
        assert hub.current.invocations == [("RegisterUser", ("user-2",))]

    asyncio.run(scenario())


def test_login_as_other_user_replaces_connection():
    async def scenario():
        hub = FakeHub()
        svc = _session(hub)
        await svc.login("user-1", "token-1")
        first = hub.current
        first.push("ReceiveNotification", notification_payload("old-1"))

        assert await svc.login("user-2", "token-2")

        assert svc.manager.calls[:2] == ["off_all_handlers", "stop_connection"]
        assert first.stopped
        assert len(hub.transports) == 2
        assert hub.current.invocations == [("RegisterUser", ("user-2",))]
        assert hub.current.tokens == ["token-2"]
        assert svc.credentials.get_user_id() == "user-2"
        assert svc.notifications.notifications == ()

        first.push("ReceiveNotification", notification_payload("old-2"))
        hub.current.push("ReceiveNotification", notification_payload("new-1"))
        assert [n.id for n in svc.notifications.notifications] == ["new-1"]

    asyncio.run(scenario())

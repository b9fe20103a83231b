from fakes import make_notification

from gymhub.services.notification_store import (
    NotificationStore,
    badge_label,
    connection_status_text,
)


def _assert_unread_invariant(store):
    assert store.unread_count == sum(1 for n in store.notifications if not n.is_read)


def test_add_notification_prepends_newest_first():
    store = NotificationStore()

    store.add_notification(make_notification("a"))
    store.add_notification(make_notification("b"))

    assert [n.id for n in store.notifications] == ["b", "a"]
    assert store.unread_count == 2


def test_capacity_keeps_fifty_most_recent_in_reverse_order():
    store = NotificationStore()

    for i in range(60):
        store.add_notification(make_notification(str(i)))

    ids = [n.id for n in store.notifications]
    assert len(ids) == 50
    assert ids == [str(i) for i in range(59, 9, -1)]


def test_custom_capacity():
    store = NotificationStore(capacity=3)
    for i in range(5):
        store.add_notification(make_notification(str(i)))

    assert [n.id for n in store.notifications] == ["4", "3", "2"]


def test_no_deduplication_in_store():
    store = NotificationStore()
    store.add_notification(make_notification("same"))
    store.add_notification(make_notification("same"))

    assert len(store) == 2
    assert store.unread_count == 2


def test_mark_as_read_and_unknown_id():
    store = NotificationStore()
    store.add_notification(make_notification("a"))
    store.add_notification(make_notification("b"))

    store.mark_as_read("a")
    assert store.unread_count == 1
    assert [n.is_read for n in store.notifications] == [False, True]

    store.mark_as_read("missing")
    assert store.unread_count == 1


def test_mark_all_as_read():
    store = NotificationStore()
    for i in range(4):
        store.add_notification(make_notification(str(i)))

    store.mark_all_as_read()

    assert store.unread_count == 0
    assert all(n.is_read for n in store.notifications)


def test_snapshot_not_mutated_by_mark_as_read():
    store = NotificationStore()
    store.add_notification(make_notification("a"))
    before = store.notifications

    store.mark_as_read("a")

    assert before[0].is_read is False
    assert store.notifications[0].is_read is True


def test_unread_invariant_over_mixed_operations():
    store = NotificationStore(capacity=5)
    operations = [
        ("add", "1"), ("add", "2"), ("read", "1"), ("add", "3"), ("clear", "2"),
        ("add", "4"), ("add", "5"), ("add", "6"), ("add", "7"), ("read", "7"),
        ("read_all", None), ("add", "8"), ("clear", "missing"), ("add", "9"),
    ]

    for op, arg in operations:
        if op == "add":
            store.add_notification(make_notification(arg))
        elif op == "read":
            store.mark_as_read(arg)
        elif op == "read_all":
            store.mark_all_as_read()
        else:
            store.clear_notification(arg)
        _assert_unread_invariant(store)
        assert len(store) <= 5

    assert store.unread_count == 2


def test_clear_notification():
    store = NotificationStore()
    store.add_notification(make_notification("a"))
    store.add_notification(make_notification("b"))

    store.clear_notification("a")

    assert [n.id for n in store.notifications] == ["b"]


def test_clear_all_is_idempotent():
    store = NotificationStore()
    store.add_notification(make_notification("a"))

    store.clear_all_notifications()
    assert store.notifications == ()
    assert store.unread_count == 0

    store.clear_all_notifications()
    assert store.notifications == ()
    assert store.unread_count == 0


def test_badge_label():
    assert badge_label(0) == ""
    assert badge_label(1) == "1"
    assert badge_label(99) == "99"
    assert badge_label(100) == "99+"


def test_connection_status_text():
    assert connection_status_text(True, False) == "You're all caught up!"
    assert connection_status_text(False, False) == "Connecting..."
    assert connection_status_text(False, True) == "Reconnecting to notification service..."
    assert connection_status_text(True, True) == ""

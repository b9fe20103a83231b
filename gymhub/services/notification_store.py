# gymhub/services/notification_store.py
from typing import List, Tuple

from gymhub.domain.schemas import Notification
from gymhub.utils.settings import NOTIFICATION_CAPACITY
from gymhub.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationStore:
    """
    Session notification list, newest first.
    - bounded by capacity, oldest entries fall off the tail
    - unread_count derived from the list on every read
    - no de-duplication by id here
    """

    def __init__(self, capacity: int = NOTIFICATION_CAPACITY):
        self.capacity = capacity
        self._items: List[Notification] = []

    @property
    def notifications(self) -> Tuple[Notification, ...]:
        return tuple(self._items)

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self._items if not n.is_read)

    def __len__(self) -> int:
        return len(self._items)

    def add_notification(self, notification: Notification) -> None:
        self._items.insert(0, notification)
        if len(self._items) > self.capacity:
            dropped = len(self._items) - self.capacity
            del self._items[self.capacity:]
            logger.debug(f"Notification store over capacity, dropped {dropped} oldest")

    def mark_as_read(self, notification_id: str) -> None:
        self._items = [
            n.model_copy(update={"is_read": True}) if n.id == notification_id else n
            for n in self._items
        ]

    def mark_all_as_read(self) -> None:
        self._items = [n.model_copy(update={"is_read": True}) for n in self._items]

    def clear_notification(self, notification_id: str) -> None:
        self._items = [n for n in self._items if n.id != notification_id]

    def clear_all_notifications(self) -> None:
        self._items = []


def badge_label(unread_count: int) -> str:
    if unread_count <= 0:
        return ""
    if unread_count > 99:
        return "99+"
    return str(unread_count)


def connection_status_text(is_connected: bool, has_notifications: bool) -> str:
    if not has_notifications:
        return "You're all caught up!" if is_connected else "Connecting..."
    if not is_connected:
        return "Reconnecting to notification service..."
    return ""

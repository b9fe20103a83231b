# gymhub/services/session_service.py
from collections import deque
from typing import Any, Callable, Dict

from gymhub.domain.schemas import Notification
from gymhub.services.cart_store import CartStore
from gymhub.services.connection_manager import (
    ConnectionManager,
    ConnectionStartError,
    HubEvent,
)
from gymhub.services.hub_transport import ConnectionState
from gymhub.services.credentials import SessionCredentials
from gymhub.services.notification_store import NotificationStore
from gymhub.utils.settings import RECENT_NOTIFICATION_IDS
from gymhub.utils.logging import get_logger

logger = get_logger(__name__)


class AuthenticationRequiredError(ValueError):
    pass


#events other than ReceiveNotification, logged and forwarded as-is
_LOGGED_EVENTS = {
    HubEvent.NEW_MESSAGE: "New message received",
    HubEvent.BOOKING_UPDATED: "Booking updated",
    HubEvent.DIET_PLAN_UPDATED: "Diet plan updated",
    HubEvent.WORKOUT_PLAN_UPDATED: "Workout plan updated",
    HubEvent.PROGRESS_UPDATED: "Progress updated",
    HubEvent.CLASS_UPDATED: "Class updated",
    HubEvent.MEMBERSHIP_UPDATED: "Membership updated",
    HubEvent.ORDER_UPDATED: "Order updated",
}


class SessionService:
    """
    State container of one logged in user session.
    login -> start hub connection and wire events into the notification store
    logout -> drop handlers, stop the connection, forget the session notifications
    """

    def __init__(
        self,
        manager: ConnectionManager,
        credentials: SessionCredentials,
        notifications: NotificationStore | None = None,
        cart: CartStore | None = None,
        recent_ids: int = RECENT_NOTIFICATION_IDS,
    ):
        self.manager = manager
        self.credentials = credentials
        self.notifications = notifications or NotificationStore()
        self.cart = cart or CartStore()
        self._recent_ids: deque = deque(maxlen=recent_ids)
        self._subscribers: Dict[HubEvent, Callable[[Any], None]] = {}

    @property
    def is_connected(self) -> bool:
        return self.manager.is_connected()

    def subscribe(self, event: HubEvent, handler: Callable[[Any], None]) -> None:
        """Extra consumer for a non-notification event (e.g. refresh a booking view)."""
        self._subscribers[event] = handler

    async def login(self, user_id: str, token: str) -> bool:
        if not user_id or not token:
            raise AuthenticationRequiredError("User id and token are required")

        previous_user = self.credentials.get_user_id()
        if previous_user or self.manager.get_connection_state() != ConnectionState.DISCONNECTED:
            #hub registration is per user, so the old connection has to go
            logger.info(f"Ending session of {previous_user or 'unknown user'} before login of {user_id}")
            await self._teardown()

        self.credentials.set(user_id, token)
        self.notifications.clear_all_notifications()
        self._recent_ids.clear()

        try:
            await self.manager.start_connection(user_id)
        except ConnectionStartError as e:
            logger.error(f"Failed to connect to notification hub: {e}")
            return False

        self.manager.on_notification(self._on_notification)
        for event in _LOGGED_EVENTS:
            self.manager.on(event, self._make_logging_handler(event))
        return True

    async def logout(self) -> None:
        await self._teardown()

    async def _teardown(self) -> None:
        self.manager.off_all_handlers()
        await self.manager.stop_connection()
        self.notifications.clear_all_notifications()
        self._recent_ids.clear()
        self.credentials.clear()

    def _on_notification(self, notification: Notification) -> None:
        if notification.id in self._recent_ids:
            logger.info(f"Skipping re-delivered notification {notification.id}")
            return
        self._recent_ids.append(notification.id)
        self.notifications.add_notification(notification)
        logger.info(f"Notification {notification.id} ({notification.type.value}): {notification.title}")

    def _make_logging_handler(self, event: HubEvent) -> Callable[[Any], None]:
        def handler(data: Any) -> None:
            logger.info(f"{_LOGGED_EVENTS[event]}: {data}")
            subscriber = self._subscribers.get(event)
            if subscriber is not None:
                subscriber(data)

        return handler

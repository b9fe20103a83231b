# gymhub/services/connection_manager.py
import asyncio
from enum import Enum
from functools import partial
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError
from tenacity import RetryCallState

from gymhub.domain.schemas import Notification
from gymhub.services.credentials import CredentialProvider
from gymhub.services.hub_transport import (
    ConnectionState,
    HubTransport,
    TokenFactory,
    WebSocketHubTransport,
)
from gymhub.utils.retry import reconnect_wait
from gymhub.utils.settings import (
    HUB_URL,
    HUB_MAX_RECONNECT_ATTEMPTS,
    HUB_INITIAL_RETRY_DELAY,
    HUB_MAX_RETRY_DELAY,
)
from gymhub.utils.logging import get_logger

logger = get_logger(__name__)

REGISTER_USER = "RegisterUser"

TransportFactory = Callable[[str, TokenFactory], HubTransport]
Handler = Callable[[Any], None]


class HubEvent(str, Enum):
    """Server push events; the value is the hub method name."""

    NOTIFICATION = "ReceiveNotification"
    NEW_MESSAGE = "NewMessage"
    BOOKING_UPDATED = "BookingUpdated"
    DIET_PLAN_UPDATED = "DietPlanUpdated"
    WORKOUT_PLAN_UPDATED = "WorkoutPlanUpdated"
    PROGRESS_UPDATED = "ProgressUpdated"
    CLASS_UPDATED = "ClassUpdated"
    MEMBERSHIP_UPDATED = "MembershipUpdated"
    ORDER_UPDATED = "OrderUpdated"


class ConnectionStartError(RuntimeError):
    pass


class ReconnectPolicy:
    """
    Delay before reconnect attempt n (0-based) is min(initial * 2^n, max) seconds.
    After max_attempts failed retries there is no next delay.
    """

    def __init__(
        self,
        max_attempts: int = HUB_MAX_RECONNECT_ATTEMPTS,
        initial_delay: float = HUB_INITIAL_RETRY_DELAY,
        max_delay: float = HUB_MAX_RETRY_DELAY,
    ):
        self.max_attempts = max_attempts
        self._wait = reconnect_wait(initial_delay, max_delay)

    def next_retry_delay(self, previous_retry_count: int) -> Optional[float]:
        if previous_retry_count >= self.max_attempts:
            return None
        retry_state = RetryCallState(retry_object=None, fn=None, args=(), kwargs={})
        retry_state.attempt_number = previous_retry_count + 1
        return self._wait(retry_state)


class ConnectionManager:
    """
    Owns the one hub connection of a logged in session.

    - start_connection: transport start + RegisterUser handshake, errors raised as ConnectionStartError
    - unexpected drop: Reconnecting, retried with ReconnectPolicy, then Disconnected for good
    - stop_connection: drops all handlers first, always safe, errors only logged
    - one handler per HubEvent, registering again replaces the old one
    """

    def __init__(
        self,
        credentials: CredentialProvider,
        transport_factory: TransportFactory = WebSocketHubTransport,
        hub_url: str = HUB_URL,
        policy: ReconnectPolicy | None = None,
    ):
        self.credentials = credentials
        self.transport_factory = transport_factory
        self.hub_url = hub_url
        self.policy = policy or ReconnectPolicy()
        self.reconnect_attempts = 0

        self._state = ConnectionState.DISCONNECTED
        self._transport: HubTransport | None = None
        self._handlers: Dict[HubEvent, Handler] = {}
        self._user_id: str | None = None
        #bumped on every start/stop, stale connects compare against it
        self._generation = 0
        self._reconnect_task: asyncio.Task | None = None

    # introspection
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    def get_connection_state(self) -> ConnectionState:
        return self._state

    # lifecycle
    async def start_connection(self, user_id: str) -> None:
        if self._state == ConnectionState.CONNECTED:
            logger.info("Hub already connected")
            return

        if not user_id:
            raise ConnectionStartError("Cannot start hub connection without a user id")

        self._cancel_reconnect()
        self._generation += 1
        generation = self._generation
        self._user_id = user_id
        self._state = ConnectionState.CONNECTING

        try:
            transport = await self._connect(user_id)
        except Exception as e:
            logger.error(f"Error starting hub connection: {e}")
            if generation == self._generation:
                self._state = ConnectionState.DISCONNECTED
            raise ConnectionStartError(f"Could not connect to notification hub: {e}") from e

        if generation != self._generation:
            #stop_connection (or a newer start) won the race
            logger.info("Hub connection was stopped while starting, discarding it")
            await self._safe_stop(transport)
            return

        self._transport = transport
        self._state = ConnectionState.CONNECTED
        self.reconnect_attempts = 0
        logger.info(f"Hub connected and registered user {user_id}")

    async def stop_connection(self) -> None:
        self.off_all_handlers()
        self._generation += 1
        self._cancel_reconnect()
        self._state = ConnectionState.DISCONNECTED
        transport, self._transport = self._transport, None

        if transport is None:
            return

        for event in HubEvent:
            transport.off(event.value)
        try:
            await transport.stop()
            logger.info("Hub connection stopped")
        except Exception as e:
            logger.error(f"Error stopping hub connection: {e}")

    # handlers
    def on(self, event: HubEvent, handler: Handler) -> None:
        if event in self._handlers:
            logger.debug(f"Replacing handler for {event.value}")
        self._handlers[event] = handler

    def off(self, event: HubEvent) -> None:
        self._handlers.pop(event, None)

    def off_all_handlers(self) -> None:
        self._handlers.clear()

    def on_notification(self, handler: Callable[[Notification], None]) -> None:
        self.on(HubEvent.NOTIFICATION, handler)

    def on_new_message(self, handler: Handler) -> None:
        self.on(HubEvent.NEW_MESSAGE, handler)

    def on_booking_update(self, handler: Handler) -> None:
        self.on(HubEvent.BOOKING_UPDATED, handler)

    def on_diet_plan_update(self, handler: Handler) -> None:
        self.on(HubEvent.DIET_PLAN_UPDATED, handler)

    def on_workout_plan_update(self, handler: Handler) -> None:
        self.on(HubEvent.WORKOUT_PLAN_UPDATED, handler)

    def on_progress_update(self, handler: Handler) -> None:
        self.on(HubEvent.PROGRESS_UPDATED, handler)

    def on_class_update(self, handler: Handler) -> None:
        self.on(HubEvent.CLASS_UPDATED, handler)

    def on_membership_update(self, handler: Handler) -> None:
        self.on(HubEvent.MEMBERSHIP_UPDATED, handler)

    def on_order_update(self, handler: Handler) -> None:
        self.on(HubEvent.ORDER_UPDATED, handler)

    # internals
    async def _connect(self, user_id: str) -> HubTransport:
        transport = self.transport_factory(self.hub_url, self.credentials.get_token)

        for event in HubEvent:
            transport.on(event.value, partial(self._dispatch, event))
        transport.on_close(partial(self._handle_close, transport))
        transport.on_reconnecting(partial(self._handle_transport_reconnecting, transport))
        transport.on_reconnected(partial(self._handle_transport_reconnected, transport))

        try:
            await transport.start()
            await transport.invoke(REGISTER_USER, user_id)
        except BaseException:
            await self._safe_stop(transport)
            raise
        return transport

    def _dispatch(self, event: HubEvent, *args: Any) -> None:
        handler = self._handlers.get(event)
        if handler is None:
            return

        payload = args[0] if args else None
        if event is HubEvent.NOTIFICATION:
            try:
                payload = Notification.model_validate(payload)
            except ValidationError as e:
                logger.warning(f"Dropping malformed notification: {e}")
                return

        try:
            handler(payload)
        except Exception:
            logger.exception(f"Handler for {event.value} failed")

    def _handle_close(self, transport: HubTransport, error: Optional[BaseException] = None) -> None:
        if transport is not self._transport:
            return

        self._transport = None
        logger.warning(f"Hub connection lost: {error}")
        self._state = ConnectionState.RECONNECTING
        self._reconnect_task = asyncio.get_running_loop().create_task(
            self._reconnect(self._generation)
        )

    def _handle_transport_reconnecting(
        self, transport: HubTransport, error: Optional[BaseException] = None
    ) -> None:
        if transport is not self._transport:
            return
        logger.warning(f"Hub reconnecting: {error}")
        self._state = ConnectionState.RECONNECTING

    def _handle_transport_reconnected(
        self, transport: HubTransport, connection_id: Optional[str] = None
    ) -> None:
        if transport is not self._transport:
            return
        logger.info(f"Hub reconnected: {connection_id}")
        self._reconnect_task = asyncio.get_running_loop().create_task(
            self._reregister(transport, self._generation)
        )

    async def _reregister(self, transport: HubTransport, generation: int) -> None:
        try:
            await transport.invoke(REGISTER_USER, self._user_id)
        except Exception as e:
            logger.error(f"RegisterUser after reconnect failed: {e}")
            #closing fires on_close, which starts our own reconnect loop
            await self._safe_stop(transport)
            return

        if generation == self._generation and transport is self._transport:
            self._state = ConnectionState.CONNECTED
            self.reconnect_attempts = 0

    async def _reconnect(self, generation: int) -> None:
        retry_count = 0
        while True:
            delay = self.policy.next_retry_delay(retry_count)
            if delay is None:
                logger.error(f"Hub reconnect gave up after {retry_count} attempts")
                self._state = ConnectionState.DISCONNECTED
                return

            logger.warning(
                f"Hub reconnect attempt {retry_count + 1}/{self.policy.max_attempts} in {delay:.1f}s"
            )
            await asyncio.sleep(delay)
            if generation != self._generation:
                return

            self.reconnect_attempts = retry_count + 1
            try:
                transport = await self._connect(self._user_id)
            except Exception as e:
                logger.warning(f"Hub reconnect attempt {retry_count + 1} failed: {e}")
                retry_count += 1
                continue

            if generation != self._generation:
                await self._safe_stop(transport)
                return

            self._transport = transport
            self._state = ConnectionState.CONNECTED
            self.reconnect_attempts = 0
            logger.info("Hub reconnected")
            return

    def _cancel_reconnect(self) -> None:
        task, self._reconnect_task = self._reconnect_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _safe_stop(self, transport: HubTransport) -> None:
        try:
            await transport.stop()
        except Exception as e:
            logger.error(f"Error stopping hub transport: {e}")

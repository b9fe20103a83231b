# gymhub/services/hub_transport.py
import asyncio
import itertools
import json
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlencode, urlsplit, urlunsplit

import requests
import websockets
from websockets.exceptions import ConnectionClosed

from gymhub.utils.retry import http_retry
from gymhub.utils.settings import HUB_NEGOTIATE_TIMEOUT
from gymhub.utils.logging import get_logger

logger = get_logger(__name__)

RECORD_SEPARATOR = "\x1e"

#hub message types (json hub protocol)
INVOCATION = 1
COMPLETION = 3
PING = 6
CLOSE = 7

TokenFactory = Callable[[], str]
EventHandler = Callable[..., None]


class ConnectionState(str, Enum):
    DISCONNECTED = "Disconnected"
    CONNECTING = "Connecting"
    CONNECTED = "Connected"
    RECONNECTING = "Reconnecting"


class HubProtocolError(RuntimeError):
    pass


class _ServerClosed(Exception):
    def __init__(self, error: Optional[BaseException]):
        super().__init__(error)
        self.error = error


def _frame(message: Dict[str, Any]) -> str:
    return json.dumps(message) + RECORD_SEPARATOR


def _split_records(frame: str) -> List[str]:
    return [r for r in frame.split(RECORD_SEPARATOR) if r]


class HubTransport(ABC):
    """
    Push-hub client primitive: one connection, no reconnect logic of its own
    unless a subclass adds it (then it reports through on_reconnecting/on_reconnected).
    """

    def __init__(self, url: str, token_factory: TokenFactory):
        self.url = url
        self.token_factory = token_factory
        self.state = ConnectionState.DISCONNECTED
        self._handlers: Dict[str, EventHandler] = {}
        self._close_callbacks: List[Callable[[Optional[BaseException]], None]] = []
        self._reconnecting_callbacks: List[Callable[[Optional[BaseException]], None]] = []
        self._reconnected_callbacks: List[Callable[[Optional[str]], None]] = []

    def on(self, event: str, handler: EventHandler) -> None:
        self._handlers[event] = handler

    def off(self, event: str) -> None:
        self._handlers.pop(event, None)

    def on_close(self, callback: Callable[[Optional[BaseException]], None]) -> None:
        self._close_callbacks.append(callback)

    def on_reconnecting(self, callback: Callable[[Optional[BaseException]], None]) -> None:
        self._reconnecting_callbacks.append(callback)

    def on_reconnected(self, callback: Callable[[Optional[str]], None]) -> None:
        self._reconnected_callbacks.append(callback)

    def _dispatch(self, event: str, arguments: List[Any]) -> None:
        handler = self._handlers.get(event)
        if handler is None:
            logger.debug(f"No handler for hub event {event}")
            return
        try:
            handler(*arguments)
        except Exception:
            logger.exception(f"Handler for hub event {event} failed")

    def _fire_close(self, error: Optional[BaseException]) -> None:
        for callback in list(self._close_callbacks):
            callback(error)

    @abstractmethod
    async def start(self) -> None: ...

    @abstractmethod
    async def stop(self) -> None: ...

    @abstractmethod
    async def invoke(self, method: str, *args: Any) -> Any: ...


class WebSocketHubTransport(HubTransport):
    """
    Hub client over websockets, json hub protocol:
    negotiate (http) -> websocket -> handshake -> invocation/completion/ping/close records.
    """

    def __init__(
        self,
        url: str,
        token_factory: TokenFactory,
        timeout: int = HUB_NEGOTIATE_TIMEOUT,
        keepalive_interval: float = 15.0,
        connect=websockets.connect,
    ):
        super().__init__(url, token_factory)
        self.timeout = timeout
        self.keepalive_interval = keepalive_interval
        self._connect = connect
        self._ws = None
        self._reader: asyncio.Task | None = None
        self._keepalive_task: asyncio.Task | None = None
        self._pending: Dict[str, asyncio.Future] = {}
        self._ids = itertools.count(1)

    @http_retry()
    def negotiate(self, token: str) -> dict:
        url = f"{self.url.rstrip('/')}/negotiate?negotiateVersion=1"
        logger.info(f"Hub negotiate POST {url}")

        headers = {"Authorization": f"Bearer {token}"} if token else {}
        resp = requests.post(url, headers=headers, timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def websocket_url(self, connection_token: str, token: str) -> str:
        parts = urlsplit(self.url)
        scheme = "wss" if parts.scheme in ("https", "wss") else "ws"
        query = {"id": connection_token}
        if token:
            query["access_token"] = token
        return urlunsplit((scheme, parts.netloc, parts.path, urlencode(query), ""))

    async def start(self) -> None:
        if self.state != ConnectionState.DISCONNECTED:
            raise HubProtocolError(f"Cannot start a hub connection in state {self.state.value}")

        self.state = ConnectionState.CONNECTING
        try:
            #token factory called on every connect attempt
            token = self.token_factory()
            negotiation = await asyncio.to_thread(self.negotiate, token)
            if negotiation.get("error"):
                raise HubProtocolError(f"Negotiation failed: {negotiation['error']}")

            connection_token = negotiation.get("connectionToken") or negotiation.get("connectionId")
            if not connection_token:
                raise HubProtocolError("Negotiation response has no connection token")

            self._ws = await self._connect(self.websocket_url(connection_token, token))
            await self._ws.send(_frame({"protocol": "json", "version": 1}))

            frame = await self._ws.recv()
            if isinstance(frame, bytes):
                frame = frame.decode("utf-8")
            records = _split_records(frame)
            if not records:
                raise HubProtocolError("Empty handshake response")

            handshake = json.loads(records[0])
            if not isinstance(handshake, dict):
                raise HubProtocolError("Handshake response is not an object")
            if handshake.get("error"):
                raise HubProtocolError(f"Handshake rejected: {handshake['error']}")
        except BaseException:
            self.state = ConnectionState.DISCONNECTED
            await self._close_socket()
            raise

        self.state = ConnectionState.CONNECTED
        logger.info(f"Hub connected {self.url}")

        #records that arrived in the same frame as the handshake
        try:
            for record in records[1:]:
                self._handle_record(record)
        except _ServerClosed as closed:
            self._reader = asyncio.create_task(self._finish(closed.error))
            return
        except (ValueError, HubProtocolError) as exc:
            logger.error(f"Malformed hub message: {exc}")
            self._reader = asyncio.create_task(self._finish(exc))
            return

        self._reader = asyncio.create_task(self._read_loop())
        self._keepalive_task = asyncio.create_task(self._keepalive())

    async def stop(self) -> None:
        if self._ws is not None:
            await self._ws.close()
        reader = self._reader
        if reader is not None and reader is not asyncio.current_task():
            await reader
        self.state = ConnectionState.DISCONNECTED

    async def invoke(self, method: str, *args: Any) -> Any:
        if self.state != ConnectionState.CONNECTED or self._ws is None:
            raise HubProtocolError(f"Cannot invoke '{method}' while {self.state.value}")

        invocation_id = str(next(self._ids))
        future = asyncio.get_running_loop().create_future()
        self._pending[invocation_id] = future
        try:
            await self._ws.send(
                _frame({
                    "type": INVOCATION,
                    "invocationId": invocation_id,
                    "target": method,
                    "arguments": list(args),
                })
            )
        except BaseException:
            self._pending.pop(invocation_id, None)
            raise
        return await future

    def _handle_record(self, record: str) -> None:
        message = json.loads(record)
        if not isinstance(message, dict):
            raise HubProtocolError(f"Hub record is not an object: {record[:100]}")
        kind = message.get("type")

        if kind == INVOCATION:
            self._dispatch(message.get("target", ""), message.get("arguments") or [])
        elif kind == COMPLETION:
            future = self._pending.pop(str(message.get("invocationId")), None)
            if future is None or future.done():
                return
            if message.get("error"):
                future.set_exception(HubProtocolError(message["error"]))
            else:
                future.set_result(message.get("result"))
        elif kind == PING:
            pass
        elif kind == CLOSE:
            error = HubProtocolError(message["error"]) if message.get("error") else None
            raise _ServerClosed(error)
        else:
            logger.debug(f"Ignoring hub message type {kind}")

    async def _read_loop(self) -> None:
        error: Optional[BaseException] = None
        try:
            async for frame in self._ws:
                if isinstance(frame, bytes):
                    frame = frame.decode("utf-8")
                for record in _split_records(frame):
                    self._handle_record(record)
        except _ServerClosed as closed:
            error = closed.error
        except ConnectionClosed as exc:
            error = exc
        except (ValueError, HubProtocolError) as exc:
            logger.error(f"Malformed hub message: {exc}")
            error = exc
        await self._finish(error)

    async def _keepalive(self) -> None:
        while True:
            await asyncio.sleep(self.keepalive_interval)
            try:
                await self._ws.send(_frame({"type": PING}))
            except (ConnectionClosed, AttributeError):
                return

    async def _finish(self, error: Optional[BaseException]) -> None:
        self.state = ConnectionState.DISCONNECTED

        if self._keepalive_task is not None:
            self._keepalive_task.cancel()
            self._keepalive_task = None

        for future in self._pending.values():
            if not future.done():
                future.set_exception(error or HubProtocolError("Hub connection closed"))
        self._pending.clear()

        await self._close_socket()

        if error is not None:
            logger.warning(f"Hub connection closed with error: {error}")
        else:
            logger.info("Hub connection closed")
        self._fire_close(error)

    async def _close_socket(self) -> None:
        ws, self._ws = self._ws, None
        if ws is None:
            return
        try:
            await ws.close()
        except Exception as exc:
            logger.debug(f"Ignoring error while closing websocket: {exc}")

"""Realtime channel client with bounded reconnection."""

import asyncio
import inspect
import json
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

import websockets
from websockets.exceptions import WebSocketException

from campus_site.domain.events import ChangeEvent, Connected, parse_message

_logger = logging.getLogger(__name__)

EventListener = Callable[[ChangeEvent], None]
ReconnectListener = Callable[[], Awaitable[None]]


@dataclass
class RealtimeConnection:
    """Receives change events from the server and dispatches them by name.

    After a dropped connection it retries up to ``max_attempts`` times with a
    fixed ``retry_delay``. Events broadcast while disconnected are lost, so
    reconnect listeners are invoked to let subscribers re-fetch snapshots.
    """

    url: str
    max_attempts: int = 5
    retry_delay: float = 1.0
    connect: Callable[[str], object] = websockets.connect
    is_connected: bool = False
    _listeners: dict[str, list[EventListener]] = field(
        default_factory=lambda: defaultdict(list)
    )
    _reconnect_listeners: list[ReconnectListener] = field(default_factory=list)
    _closed: bool = False
    _websocket: object | None = None

    def add_listener(self, event_name: str, listener: EventListener) -> None:
        self._listeners[event_name].append(listener)

    def remove_listener(self, event_name: str, listener: EventListener) -> None:
        listeners = self._listeners.get(event_name, [])
        if listener in listeners:
            listeners.remove(listener)

    def add_reconnect_listener(self, listener: ReconnectListener) -> None:
        self._reconnect_listeners.append(listener)

    def remove_reconnect_listener(self, listener: ReconnectListener) -> None:
        if listener in self._reconnect_listeners:
            self._reconnect_listeners.remove(listener)

    async def run(self) -> None:
        """Stay connected until closed or out of retry attempts."""
        failures = 0
        connected_before = False
        while not self._closed:
            try:
                async with self.connect(self.url) as websocket:
                    self._websocket = websocket
                    failures = 0
                    self.is_connected = True
                    _logger.info("Connected to realtime channel: %s", self.url)
                    if connected_before:
                        await self._notify_reconnected()
                    connected_before = True
                    async for raw in websocket:
                        self.dispatch_raw(raw)
            except (OSError, WebSocketException) as exc:
                _logger.warning("Realtime connection error: %s", exc)
            finally:
                self._websocket = None
                self.is_connected = False
            if self._closed:
                break
            failures += 1
            if failures > self.max_attempts:
                _logger.error(
                    "Realtime updates offline after %s attempts", self.max_attempts
                )
                break
            await asyncio.sleep(self.retry_delay)

    def dispatch_raw(self, raw: str | bytes) -> None:
        """Decode a wire message and dispatch it."""
        try:
            message = json.loads(raw)
        except ValueError:
            _logger.warning("Ignoring malformed realtime message")
            return
        self.dispatch(message)

    def dispatch(self, message: object) -> None:
        """Route a decoded message to the listeners of its event name."""
        event = parse_message(message)
        if event is None:
            _logger.debug("Ignoring unknown realtime message")
            return
        if isinstance(event, Connected):
            _logger.info("Realtime handshake: %s", event.message)
            return
        for listener in list(self._listeners.get(event.event_name, [])):
            listener(event)

    async def close(self) -> None:
        """Stop reconnecting and close the socket."""
        self._closed = True
        websocket = self._websocket
        if websocket is not None:
            await websocket.close()

    async def _notify_reconnected(self) -> None:
        for listener in list(self._reconnect_listeners):
            result = listener()
            if inspect.isawaitable(result):
                await result

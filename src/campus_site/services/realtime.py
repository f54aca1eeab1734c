"""Realtime hub broadcasting change events over WebSockets.

The hub is an in-memory registry for a single process deployment. Delivery is
fire-and-forget: a client that is not connected when an event is broadcast
never sees it and must re-fetch the HTTP snapshot.
"""

import json
import logging

from fastapi import WebSocket

from campus_site.domain.errors import ChannelError
from campus_site.domain.events import Connected

_logger = logging.getLogger(__name__)


class RealtimeHub:
    """Tracks connected WebSockets and fans messages out to all of them."""

    def __init__(self) -> None:
        self._connections: set[WebSocket] = set()

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def connect(self, websocket: WebSocket) -> None:
        """Accept a client, register it and send the handshake."""
        await websocket.accept()
        self._connections.add(websocket)
        _logger.info("Realtime client connected: total=%s", self.connection_count)
        await websocket.send_json(Connected().to_message())

    async def disconnect(self, websocket: WebSocket) -> None:
        """Forget a client; nothing is queued for it."""
        if websocket in self._connections:
            self._connections.discard(websocket)
            _logger.info(
                "Realtime client disconnected: total=%s", self.connection_count
            )

    async def broadcast(self, message: dict[str, object]) -> int:
        """Send a message to every connected client; return how many got it."""
        try:
            text = json.dumps(message)
        except (TypeError, ValueError) as exc:
            raise ChannelError(f"Cannot encode event {message.get('event')}") from exc

        delivered = 0
        dropped: list[WebSocket] = []
        for websocket in list(self._connections):
            try:
                await websocket.send_text(text)
            except Exception:  # noqa: BLE001
                dropped.append(websocket)
            else:
                delivered += 1

        for websocket in dropped:
            _logger.warning("Dropping unreachable realtime client")
            await self.disconnect(websocket)
        return delivered

    async def close(self) -> None:
        """Close every open connection."""
        for websocket in list(self._connections):
            try:
                await websocket.close()
            except RuntimeError:
                _logger.debug("Realtime client already closed")
            self._connections.discard(websocket)

"""WebSocket endpoint for the realtime channel."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

if TYPE_CHECKING:
    from campus_site.containers import AppContainer

router = APIRouter(tags=["realtime"])
_logger = logging.getLogger(__name__)


@router.websocket("/ws")
async def realtime_channel(websocket: WebSocket) -> None:
    """Join the broadcast channel; only pings are answered."""
    container: AppContainer = websocket.app.state.container
    hub = container.realtime_hub
    try:
        await hub.connect(websocket)
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except ValueError:
                _logger.debug("Ignoring non-JSON realtime message")
                continue
            if isinstance(message, dict) and message.get("event") == "ping":
                await websocket.send_json(
                    {
                        "event": "pong",
                        "data": {"timestamp": datetime.now(tz=UTC).isoformat()},
                        "clientToken": None,
                    }
                )
    except WebSocketDisconnect:
        _logger.debug("Realtime client closed the connection")
    finally:
        await hub.disconnect(websocket)

"""Change notifier emitting events after successful writes."""

import logging
from dataclasses import dataclass
from typing import Protocol

from campus_site.domain.errors import ChannelError
from campus_site.domain.events import (
    ChangeEvent,
    RecordCreated,
    RecordDeleted,
    RecordUpdated,
)
from campus_site.domain.records import CollectionSpec

_logger = logging.getLogger(__name__)


class Broadcaster(Protocol):
    """Anything that can fan a message out to connected clients."""

    async def broadcast(self, message: dict[str, object]) -> int:
        """Deliver a message and return the number of recipients."""


@dataclass
class ChangeNotifier:
    """Turns store writes into broadcast change events."""

    broadcaster: Broadcaster

    async def emit(self, event: ChangeEvent) -> None:
        """Broadcast an event; channel failures are logged and swallowed."""
        try:
            delivered = await self.broadcaster.broadcast(event.to_message())
        except ChannelError:
            _logger.exception("Broadcast failed: event=%s", event.event_name)
            return
        _logger.info(
            "Broadcast %s: id=%s clients=%s",
            event.event_name,
            event.record_id,
            delivered,
        )

    async def record_created(
        self,
        collection: CollectionSpec,
        record: dict[str, object],
        client_token: str | None = None,
    ) -> None:
        await self.emit(
            RecordCreated(
                collection=collection, record=record, client_token=client_token
            )
        )

    async def record_updated(
        self, collection: CollectionSpec, record: dict[str, object]
    ) -> None:
        await self.emit(RecordUpdated(collection=collection, record=record))

    async def record_deleted(self, collection: CollectionSpec, record_id: str) -> None:
        await self.emit(RecordDeleted(collection=collection, record_id=record_id))

"""Client-side collection state kept in sync with the realtime channel.

A ``CollectionSync`` holds the local view of one collection. It loads an
HTTP snapshot, applies realtime events as they arrive and lets the user
create records optimistically:

* a created record is inserted at once as *pending* under a temporary id;
* the confirming ``created`` event (or the HTTP response, whichever comes
  first) replaces it with the server record, which is then *confirmed*;
* if the HTTP request fails the pending record is *rolled back* (removed).

All event handlers are idempotent, so snapshot and events may arrive in any
order without producing duplicate records.
"""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Protocol
from uuid import uuid4

from campus_site.client.api_client import ApiError
from campus_site.client.connection import EventListener, ReconnectListener
from campus_site.domain.events import (
    CREATED,
    DELETED,
    UPDATED,
    ChangeEvent,
    RecordCreated,
    RecordDeleted,
    RecordUpdated,
)
from campus_site.domain.records import CollectionSpec
from campus_site.services.uploads import ImageUpload

_logger = logging.getLogger(__name__)

TEMP_ID_PREFIX = "temp-"
DEFAULT_MATCH_WINDOW = timedelta(seconds=10)


class RecordSource(Protocol):
    """HTTP side of the records API."""

    async def list_records(self, collection: str) -> list[dict[str, object]]:
        """Return the collection snapshot."""

    async def create_record(
        self,
        collection: str,
        fields: dict[str, object],
        image: ImageUpload | None = None,
        client_token: str | None = None,
    ) -> dict[str, object]:
        """Create a record and return its server payload."""


class EventSource(Protocol):
    """Realtime side: subscribe to named events and reconnections."""

    def add_listener(self, event_name: str, listener: EventListener) -> None:
        """Register an event listener."""

    def remove_listener(self, event_name: str, listener: EventListener) -> None:
        """Unregister an event listener."""

    def add_reconnect_listener(self, listener: ReconnectListener) -> None:
        """Register a callback run after the connection is restored."""

    def remove_reconnect_listener(self, listener: ReconnectListener) -> None:
        """Unregister a reconnect callback."""


class EntryState(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"


@dataclass
class SyncEntry:
    """One record in local state, optionally awaiting confirmation."""

    data: dict[str, object]
    state: EntryState = EntryState.CONFIRMED
    client_token: str | None = None
    submitted: dict[str, object] = field(default_factory=dict)
    submitted_at: datetime | None = None

    @property
    def id(self) -> str:
        return str(self.data.get("id"))

    @property
    def pending(self) -> bool:
        return self.state is EntryState.PENDING


class CollectionSync:
    """Local, realtime-synchronized view of a single collection."""

    def __init__(  # noqa: PLR0913
        self,
        collection: CollectionSpec,
        source: RecordSource,
        events: EventSource | None = None,
        *,
        match_window: timedelta = DEFAULT_MATCH_WINDOW,
        clock=lambda: datetime.now(tz=UTC),
    ) -> None:
        self.collection = collection
        self.source = source
        self.events = events
        self.match_window = match_window
        self.clock = clock
        self.entries: list[SyncEntry] = []
        self.loading = True
        self.error: str | None = None
        self._closed = False
        self._generation = 0
        self._buffers: dict[int, list[ChangeEvent]] = {}
        self._handlers: dict[str, EventListener] = {
            collection.event_name(CREATED): self.handle_event,
            collection.event_name(UPDATED): self.handle_event,
            collection.event_name(DELETED): self.handle_event,
        }

    @property
    def records(self) -> list[dict[str, object]]:
        """Return the current records, pending ones included."""
        return [entry.data for entry in self.entries]

    async def mount(self) -> None:
        """Subscribe to realtime events, then load the snapshot."""
        if self.events is not None:
            for event_name, handler in self._handlers.items():
                self.events.add_listener(event_name, handler)
            self.events.add_reconnect_listener(self.refresh)
        await self.refresh()

    def close(self) -> None:
        """Unsubscribe; later events and responses are ignored."""
        self._closed = True
        if self.events is not None:
            for event_name, handler in self._handlers.items():
                self.events.remove_listener(event_name, handler)
            self.events.remove_reconnect_listener(self.refresh)

    async def refresh(self) -> None:
        """Fetch the snapshot; failures leave an error and empty data.

        Events that arrive while the fetch is in flight are buffered and
        replayed on top of the snapshot. When refreshes overlap, each keeps
        its own buffer and only the most recently started one commits.
        """
        if self._closed:
            return
        self._generation += 1
        generation = self._generation
        buffered: list[ChangeEvent] = []
        self._buffers[generation] = buffered
        self.loading = True
        self.error = None
        try:
            snapshot = await self.source.list_records(self.collection.name)
        except ApiError as exc:
            _logger.warning("Failed to load %s: %s", self.collection.name, exc)
            if generation == self._generation and not self._closed:
                self.error = f"Failed to load {self.collection.name}. Please try again."
                self.entries = [entry for entry in self.entries if entry.pending]
            return
        finally:
            del self._buffers[generation]
            if generation == self._generation:
                self.loading = False
        if self._closed:
            return
        if generation != self._generation:
            _logger.debug("Discarding superseded %s snapshot", self.collection.name)
            return

        pending = [entry for entry in self.entries if entry.pending]
        self.entries = pending + [SyncEntry(data=dict(row)) for row in snapshot]
        for event in buffered:
            self._apply(event)
        _logger.info("Loaded %s %s", len(snapshot), self.collection.name)

    def handle_event(self, event: ChangeEvent) -> None:
        """Apply one realtime event to local state."""
        if self._closed or event.collection.name != self.collection.name:
            return
        for buffered in self._buffers.values():
            buffered.append(event)
        self._apply(event)

    async def create(
        self, fields: dict[str, object], image: ImageUpload | None = None
    ) -> dict[str, object]:
        """Insert a pending record, then create it on the server."""
        token = uuid4().hex
        entry = SyncEntry(
            data={"id": f"{TEMP_ID_PREFIX}{token}", **fields, "pending": True},
            state=EntryState.PENDING,
            client_token=token,
            submitted=dict(fields),
            submitted_at=self.clock(),
        )
        self.entries.insert(0, entry)
        try:
            record = await self.source.create_record(
                self.collection.name, fields, image=image, client_token=token
            )
        except ApiError as exc:
            self._roll_back(entry)
            self.error = f"Failed to create {self.collection.event_prefix}: {exc}"
            raise
        if entry.pending and not self._closed:
            self._confirm(entry, record)
        return record

    def _apply(self, event: ChangeEvent) -> None:
        if isinstance(event, RecordCreated):
            self._apply_created(event)
        elif isinstance(event, RecordUpdated):
            index = self._index_of(event.record_id)
            if index is not None:
                self.entries[index] = SyncEntry(data=dict(event.record))
        elif isinstance(event, RecordDeleted):
            self.entries = [
                entry
                for entry in self.entries
                if entry.pending or entry.id != event.record_id
            ]

    def _apply_created(self, event: RecordCreated) -> None:
        pending = self._match_pending(event)
        if pending is not None:
            self._confirm(pending, event.record)
            return
        if self._index_of(event.record_id) is not None:
            return
        self.entries.insert(0, SyncEntry(data=dict(event.record)))

    def _confirm(self, entry: SyncEntry, record: dict[str, object]) -> None:
        """Swap a pending entry for its server record, dropping duplicates."""
        entry.state = EntryState.CONFIRMED
        if self._index_of(str(record.get("id"))) is not None:
            self.entries = [item for item in self.entries if item is not entry]
            return
        entry.data = dict(record)

    def _roll_back(self, entry: SyncEntry) -> None:
        entry.state = EntryState.ROLLED_BACK
        self.entries = [item for item in self.entries if item is not entry]

    def _match_pending(self, event: RecordCreated) -> SyncEntry | None:
        """Find the pending entry an incoming record confirms.

        A client token echoed by the server is authoritative. Without one,
        fall back to identical submitted fields created within the window.
        """
        candidates = [entry for entry in self.entries if entry.pending]
        if event.client_token is not None:
            for entry in candidates:
                if entry.client_token == event.client_token:
                    return entry
            return None
        created_at = _parse_datetime(event.record.get("createdAt"))
        for entry in candidates:
            if not _same_fields(entry.submitted, event.record):
                continue
            if created_at is None or entry.submitted_at is None:
                return entry
            if abs(created_at - entry.submitted_at) <= self.match_window:
                return entry
        return None

    def _index_of(self, record_id: str) -> int | None:
        for index, entry in enumerate(self.entries):
            if not entry.pending and entry.id == record_id:
                return index
        return None


def _same_fields(submitted: dict[str, object], record: dict[str, object]) -> bool:
    return all(
        str(record.get(name, "")).strip() == str(value).strip()
        for name, value in submitted.items()
    )


def _parse_datetime(raw: object) -> datetime | None:
    if not isinstance(raw, str) or not raw:
        return None
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)

"""Change events broadcast over the realtime channel.

Each event kind is its own frozen dataclass with a fixed schema. On the wire
every message is a JSON object ``{"event": name, "data": ..., "clientToken": ...}``
where ``name`` is ``<prefix>_created``, ``<prefix>_updated``, ``<prefix>_deleted``
or ``connected``.
"""

from dataclasses import dataclass
from datetime import UTC, datetime

from campus_site.domain.records import CollectionSpec, collection_for_prefix

CREATED = "created"
UPDATED = "updated"
DELETED = "deleted"
CONNECTED = "connected"


@dataclass(frozen=True)
class RecordCreated:
    """A record was inserted; carries the post-write wire payload."""

    collection: CollectionSpec
    record: dict[str, object]
    client_token: str | None = None
    operation = CREATED

    @property
    def event_name(self) -> str:
        return self.collection.event_name(self.operation)

    @property
    def record_id(self) -> str:
        return str(self.record["id"])

    def to_message(self) -> dict[str, object]:
        return {
            "event": self.event_name,
            "data": self.record,
            "clientToken": self.client_token,
        }


@dataclass(frozen=True)
class RecordUpdated:
    """A record was changed; carries the post-write wire payload."""

    collection: CollectionSpec
    record: dict[str, object]
    operation = UPDATED

    @property
    def event_name(self) -> str:
        return self.collection.event_name(self.operation)

    @property
    def record_id(self) -> str:
        return str(self.record["id"])

    def to_message(self) -> dict[str, object]:
        return {"event": self.event_name, "data": self.record, "clientToken": None}


@dataclass(frozen=True)
class RecordDeleted:
    """A record was removed; only its identifier survives."""

    collection: CollectionSpec
    record_id: str
    operation = DELETED

    @property
    def event_name(self) -> str:
        return self.collection.event_name(self.operation)

    def to_message(self) -> dict[str, object]:
        return {
            "event": self.event_name,
            "data": {"id": self.record_id},
            "clientToken": None,
        }


@dataclass(frozen=True)
class Connected:
    """Handshake sent to a client right after it joins the channel."""

    message: str = "Connected to real-time updates"
    timestamp: datetime | None = None
    event_name = CONNECTED

    def to_message(self) -> dict[str, object]:
        sent_at = self.timestamp or datetime.now(tz=UTC)
        return {
            "event": CONNECTED,
            "data": {"message": self.message, "timestamp": sent_at.isoformat()},
            "clientToken": None,
        }


ChangeEvent = RecordCreated | RecordUpdated | RecordDeleted


def parse_message(message: object) -> ChangeEvent | Connected | None:
    """Parse a wire message into its event variant; unknown shapes yield None."""
    if not isinstance(message, dict):
        return None
    name = message.get("event")
    data = message.get("data")
    if not isinstance(name, str) or not isinstance(data, dict):
        return None
    if name == CONNECTED:
        raw_timestamp = data.get("timestamp")
        timestamp = (
            datetime.fromisoformat(raw_timestamp)
            if isinstance(raw_timestamp, str) and raw_timestamp
            else None
        )
        return Connected(message=str(data.get("message", "")), timestamp=timestamp)
    prefix, _, operation = name.rpartition("_")
    collection = collection_for_prefix(prefix)
    if collection is None or "id" not in data:
        return None
    if operation == CREATED:
        token = message.get("clientToken")
        return RecordCreated(
            collection=collection,
            record=data,
            client_token=token if isinstance(token, str) else None,
        )
    if operation == UPDATED:
        return RecordUpdated(collection=collection, record=data)
    if operation == DELETED:
        return RecordDeleted(collection=collection, record_id=str(data["id"]))
    return None

"""Domain models for site records and the collections that hold them."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class CollectionSpec:
    """Describes one record collection and its wire naming."""

    name: str
    event_prefix: str
    required_fields: tuple[str, ...]
    optional_fields: tuple[str, ...] = ()
    has_image: bool = False
    order_by: str = "created_at"

    @property
    def fields(self) -> tuple[str, ...]:
        """Return every writable field name, required ones first."""
        return self.required_fields + self.optional_fields

    def event_name(self, operation: str) -> str:
        """Return the realtime event name for an operation on this collection."""
        return f"{self.event_prefix}_{operation}"


INQUIRIES = CollectionSpec(
    name="inquiries",
    event_prefix="inquiry",
    required_fields=("name", "email", "program", "grade", "message"),
    optional_fields=("phone", "timestamp"),
    order_by="timestamp",
)

ANNOUNCEMENTS = CollectionSpec(
    name="announcements",
    event_prefix="announcement",
    required_fields=("title", "date", "description"),
    has_image=True,
)

SCHOOLS = CollectionSpec(
    name="schools",
    event_prefix="school",
    required_fields=("name",),
    optional_fields=("description", "location"),
    has_image=True,
)

COLLECTIONS: dict[str, CollectionSpec] = {
    spec.name: spec for spec in (INQUIRIES, ANNOUNCEMENTS, SCHOOLS)
}


def collection_for_prefix(prefix: str) -> CollectionSpec | None:
    """Return the collection whose events start with ``prefix``."""
    for spec in COLLECTIONS.values():
        if spec.event_prefix == prefix:
            return spec
    return None


@dataclass(frozen=True)
class Record:
    """A persisted record; ``image`` is a bare filename, never a URL."""

    id: str
    collection: str
    created_at: datetime
    updated_at: datetime
    fields: dict[str, object] = field(default_factory=dict)
    image: str | None = None


def image_url(public_origin: str, filename: str | None) -> str | None:
    """Derive the absolute URL for an uploaded image filename."""
    if not filename:
        return None
    return f"{public_origin.rstrip('/')}/uploads/{filename}"


def record_payload(record: Record, public_origin: str) -> dict[str, object]:
    """Serialize a record to its JSON wire shape."""
    payload: dict[str, object] = {"id": record.id, **record.fields}
    spec = COLLECTIONS.get(record.collection)
    if spec is not None and spec.has_image:
        payload["image"] = record.image
        payload["imageUrl"] = image_url(public_origin, record.image)
    payload["createdAt"] = record.created_at.isoformat()
    payload["updatedAt"] = record.updated_at.isoformat()
    return payload

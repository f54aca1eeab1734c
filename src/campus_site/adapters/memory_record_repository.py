"""In-process record repository for local runs without Supabase."""

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from uuid import uuid4

from campus_site.domain.records import COLLECTIONS, Record
from campus_site.services.records import RecordRepository


@dataclass
class InMemoryRecordRepository(RecordRepository):
    """Keeps records in dictionaries keyed by collection and id."""

    records: dict[str, dict[str, Record]] = field(default_factory=dict)
    _sequence: dict[str, int] = field(default_factory=dict)

    def insert(self, collection: str, payload: dict[str, object]) -> Record:
        """Create a record with a fresh UUID."""
        now = datetime.now(tz=UTC)
        values = dict(payload)
        image = values.pop("image", None)
        record = Record(
            id=str(uuid4()),
            collection=collection,
            created_at=now,
            updated_at=now,
            fields=values,
            image=str(image) if image else None,
        )
        self.records.setdefault(collection, {})[record.id] = record
        self._sequence[record.id] = len(self._sequence)
        return record

    def list_all(self, collection: str) -> list[Record]:
        """Return records newest first, ties broken by insertion order."""
        order_by = COLLECTIONS[collection].order_by
        return sorted(
            self.records.get(collection, {}).values(),
            key=lambda record: (
                _sort_time(record, order_by),
                self._sequence[record.id],
            ),
            reverse=True,
        )

    def get(self, collection: str, record_id: str) -> Record | None:
        return self.records.get(collection, {}).get(record_id)

    def update(
        self, collection: str, record_id: str, payload: dict[str, object]
    ) -> Record | None:
        current = self.get(collection, record_id)
        if current is None:
            return None
        values = dict(payload)
        image = values.pop("image", None)
        updated = replace(
            current,
            fields={**current.fields, **values},
            image=str(image) if image else current.image,
            updated_at=datetime.now(tz=UTC),
        )
        self.records[collection][record_id] = updated
        return updated

    def delete(self, collection: str, record_id: str) -> Record | None:
        return self.records.get(collection, {}).pop(record_id, None)


def _sort_time(record: Record, order_by: str) -> datetime:
    """Return the sort column as a datetime, falling back to ``created_at``."""
    if order_by == "created_at":
        return record.created_at
    raw = record.fields.get(order_by)
    if not isinstance(raw, str):
        return record.created_at
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return record.created_at
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)

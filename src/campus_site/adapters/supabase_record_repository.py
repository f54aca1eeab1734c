"""Supabase implementation of the record repository."""

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from campus_site.domain.errors import StoreError
from campus_site.domain.records import COLLECTIONS, Record
from campus_site.services.records import RecordRepository


@dataclass
class SupabaseRecordRepository(RecordRepository):
    """Supabase-backed repository; each collection is a table of the same name."""

    client: Client

    def insert(self, collection: str, payload: dict[str, object]) -> Record:
        """Insert a row and return the stored record."""
        try:
            response = self.client.table(collection).insert(payload).execute()
        except (APIError, httpx.HTTPError) as exc:
            raise StoreError(f"Failed to create {collection} record") from exc
        if not response.data:
            raise StoreError(f"Failed to create {collection} record")
        return _parse_record(collection, response.data[0])

    def list_all(self, collection: str) -> list[Record]:
        """Return every row, newest first by the collection's sort column."""
        try:
            response = (
                self.client.table(collection)
                .select("*")
                .order(COLLECTIONS[collection].order_by, desc=True)
                .execute()
            )
        except (APIError, httpx.HTTPError) as exc:
            raise StoreError(f"Failed to list {collection}") from exc
        return [_parse_record(collection, row) for row in response.data or []]

    def get(self, collection: str, record_id: str) -> Record | None:
        """Return a row by id, if present."""
        if not _is_uuid(record_id):
            return None
        try:
            response = (
                self.client.table(collection)
                .select("*")
                .eq("id", record_id)
                .limit(1)
                .execute()
            )
        except (APIError, httpx.HTTPError) as exc:
            raise StoreError(f"Failed to fetch {collection} record") from exc
        if not response.data:
            return None
        return _parse_record(collection, response.data[0])

    def update(
        self, collection: str, record_id: str, payload: dict[str, object]
    ) -> Record | None:
        """Update a row and refresh its ``updated_at`` stamp."""
        if not _is_uuid(record_id):
            return None
        try:
            response = (
                self.client.table(collection)
                .update({**payload, "updated_at": datetime.now(tz=UTC).isoformat()})
                .eq("id", record_id)
                .execute()
            )
        except (APIError, httpx.HTTPError) as exc:
            raise StoreError(f"Failed to update {collection} record") from exc
        if not response.data:
            return None
        return _parse_record(collection, response.data[0])

    def delete(self, collection: str, record_id: str) -> Record | None:
        """Delete a row and return it."""
        if not _is_uuid(record_id):
            return None
        try:
            response = (
                self.client.table(collection).delete().eq("id", record_id).execute()
            )
        except (APIError, httpx.HTTPError) as exc:
            raise StoreError(f"Failed to delete {collection} record") from exc
        if not response.data:
            return None
        return _parse_record(collection, response.data[0])


def _is_uuid(value: str) -> bool:
    try:
        UUID(value)
    except ValueError:
        return False
    return True


def _parse_timestamp(raw: object) -> datetime:
    if isinstance(raw, str) and raw:
        return datetime.fromisoformat(raw)
    return datetime.now(tz=UTC)


def _parse_record(collection: str, row: dict[str, object]) -> Record:
    """Parse a table row into a domain record."""
    spec = COLLECTIONS[collection]
    image = row.get("image")
    return Record(
        id=str(row["id"]),
        collection=collection,
        created_at=_parse_timestamp(row.get("created_at")),
        updated_at=_parse_timestamp(row.get("updated_at")),
        fields={name: row.get(name) for name in spec.fields if name in row},
        image=str(image) if image else None,
    )

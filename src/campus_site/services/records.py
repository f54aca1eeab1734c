"""Record persistence services with change notification.

Repository and image store calls are blocking, so they run in worker
threads and only suspend the request that made them.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

from campus_site.domain.errors import NotFoundError, ValidationError
from campus_site.domain.records import (
    INQUIRIES,
    CollectionSpec,
    Record,
    record_payload,
)
from campus_site.services.notifier import ChangeNotifier
from campus_site.services.uploads import ImageStore, ImageUpload

_logger = logging.getLogger(__name__)


class RecordRepository(Protocol):
    """Persistence interface for site records."""

    def insert(self, collection: str, payload: dict[str, object]) -> Record:
        """Create a record and return it with its assigned id."""

    def list_all(self, collection: str) -> list[Record]:
        """Return every record in a collection, newest first."""

    def get(self, collection: str, record_id: str) -> Record | None:
        """Return a record by id, if present."""

    def update(
        self, collection: str, record_id: str, payload: dict[str, object]
    ) -> Record | None:
        """Replace a subset of fields and return the updated record."""

    def delete(self, collection: str, record_id: str) -> Record | None:
        """Remove a record and return what was removed."""


@dataclass
class RecordService:
    """Application service for one collection.

    Every successful write is followed by a broadcast of the post-write
    record before the call returns, so an HTTP response never precedes
    the matching realtime event.
    """

    collection: CollectionSpec
    repository: RecordRepository
    notifier: ChangeNotifier
    image_store: ImageStore | None
    public_origin: str

    async def list_records(self) -> list[dict[str, object]]:
        """Return all records as wire payloads, newest first."""
        records = await asyncio.to_thread(self.repository.list_all, self.name)
        return [self._payload(record) for record in records]

    async def get_record(self, record_id: str) -> dict[str, object]:
        """Return one record or raise ``NotFoundError``."""
        record = await asyncio.to_thread(self.repository.get, self.name, record_id)
        if record is None:
            raise NotFoundError(self.name, record_id)
        return self._payload(record)

    async def create_record(
        self,
        fields: dict[str, object],
        image: ImageUpload | None = None,
        client_token: str | None = None,
    ) -> dict[str, object]:
        """Validate, persist and broadcast a new record."""
        values = self._clean_fields(fields)
        missing = [
            name for name in self.collection.required_fields if not values.get(name)
        ]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        if self.collection is INQUIRIES and not values.get("timestamp"):
            values["timestamp"] = datetime.now(tz=UTC).isoformat()

        filename: str | None = None
        if self.collection.has_image:
            if image is None:
                raise ValidationError("Image file is required")
            filename = await self._store_image(image)
            values["image"] = filename

        try:
            record = await asyncio.to_thread(self.repository.insert, self.name, values)
        except Exception:
            if filename:
                await self._discard_image(filename)
            raise
        _logger.info("Created %s record: id=%s", self.name, record.id)

        payload = self._payload(record)
        await self.notifier.record_created(self.collection, payload, client_token)
        return payload

    async def update_record(
        self,
        record_id: str,
        fields: dict[str, object],
        image: ImageUpload | None = None,
    ) -> dict[str, object]:
        """Apply a partial update and broadcast the result."""
        existing = await asyncio.to_thread(self.repository.get, self.name, record_id)
        if existing is None:
            raise NotFoundError(self.name, record_id)
        values = self._clean_fields(fields)
        blank = [
            name
            for name in self.collection.required_fields
            if name in values and not values[name]
        ]
        if blank:
            raise ValidationError(
                f"Required fields cannot be empty: {', '.join(blank)}"
            )

        filename: str | None = None
        if image is not None and self.collection.has_image:
            filename = await self._store_image(image)
            values["image"] = filename

        try:
            record = await asyncio.to_thread(
                self.repository.update, self.name, record_id, values
            )
        except Exception:
            if filename:
                await self._discard_image(filename)
            raise
        if record is None:
            if filename:
                await self._discard_image(filename)
            raise NotFoundError(self.name, record_id)
        if filename and existing.image:
            await self._discard_image(existing.image)
        _logger.info("Updated %s record: id=%s", self.name, record.id)

        payload = self._payload(record)
        await self.notifier.record_updated(self.collection, payload)
        return payload

    async def delete_record(self, record_id: str) -> dict[str, object]:
        """Remove a record and broadcast its id."""
        record = await asyncio.to_thread(
            self.repository.delete, self.name, record_id
        )
        if record is None:
            raise NotFoundError(self.name, record_id)
        if record.image:
            await self._discard_image(record.image)
        _logger.info("Deleted %s record: id=%s", self.name, record.id)

        await self.notifier.record_deleted(self.collection, record.id)
        return {"id": record.id}

    @property
    def name(self) -> str:
        return self.collection.name

    def _clean_fields(self, fields: dict[str, object]) -> dict[str, object]:
        """Keep known fields only, stripping surrounding whitespace."""
        cleaned: dict[str, object] = {}
        for name in self.collection.fields:
            if name not in fields or fields[name] is None:
                continue
            value = fields[name]
            cleaned[name] = value.strip() if isinstance(value, str) else value
        return cleaned

    async def _store_image(self, image: ImageUpload) -> str:
        if self.image_store is None:
            raise ValidationError(f"{self.name} does not accept image uploads")
        return await asyncio.to_thread(self.image_store.save, image)

    async def _discard_image(self, filename: str) -> None:
        if self.image_store is not None:
            await asyncio.to_thread(self.image_store.delete, filename)

    def _payload(self, record: Record) -> dict[str, object]:
        return record_payload(record, self.public_origin)

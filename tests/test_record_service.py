"""Tests for record services and change notification."""

import asyncio
import time
from pathlib import Path

import pytest

from campus_site.adapters.memory_record_repository import InMemoryRecordRepository
from campus_site.domain.errors import NotFoundError, StoreError, ValidationError
from campus_site.domain.records import ANNOUNCEMENTS, INQUIRIES, SCHOOLS
from campus_site.services.notifier import ChangeNotifier
from campus_site.services.records import RecordService
from campus_site.services.uploads import LocalImageStore
from tests.conftest import RecordingBroadcaster, png_upload


def _service(collection, tmp_path: Path, repository=None):
    broadcaster = RecordingBroadcaster()
    service = RecordService(
        collection=collection,
        repository=repository or InMemoryRecordRepository(),
        notifier=ChangeNotifier(broadcaster),
        image_store=LocalImageStore(tmp_path / "uploads")
        if collection.has_image
        else None,
        public_origin="http://site.test",
    )
    return service, broadcaster


def test_create_school_broadcasts_post_write_record(tmp_path) -> None:
    service, broadcaster = _service(SCHOOLS, tmp_path)

    data = asyncio.run(
        service.create_record(
            {"name": "Main Campus"}, image=png_upload(), client_token="tok"
        )
    )

    assert data["name"] == "Main Campus"
    assert str(data["imageUrl"]).startswith("http://site.test/uploads/")
    assert str(data["imageUrl"]).endswith(str(data["image"]))
    assert (tmp_path / "uploads" / str(data["image"])).exists()
    assert broadcaster.messages == [
        {"event": "school_created", "data": data, "clientToken": "tok"}
    ]


def test_create_assigns_unique_ids(tmp_path) -> None:
    service, _ = _service(INQUIRIES, tmp_path)
    fields = {
        "name": "Ana",
        "email": "ana@example.com",
        "program": "Primary",
        "grade": "3",
        "message": "Hello",
    }

    ids = {asyncio.run(service.create_record(fields))["id"] for _ in range(20)}

    assert len(ids) == 20


def test_create_inquiry_defaults_timestamp(tmp_path) -> None:
    service, _ = _service(INQUIRIES, tmp_path)

    data = asyncio.run(
        service.create_record(
            {
                "name": "Ana",
                "email": "ana@example.com",
                "program": "Primary",
                "grade": "3",
                "message": "Hello",
                "unknown": "dropped",
            }
        )
    )

    assert data["timestamp"]
    assert "unknown" not in data
    assert "imageUrl" not in data


def test_create_missing_field_writes_nothing(tmp_path) -> None:
    repository = InMemoryRecordRepository()
    service, broadcaster = _service(ANNOUNCEMENTS, tmp_path, repository)

    with pytest.raises(ValidationError, match="title"):
        asyncio.run(
            service.create_record(
                {"date": "July 2025", "description": "Opening"}, image=png_upload()
            )
        )

    assert repository.list_all("announcements") == []
    assert broadcaster.messages == []
    assert list((tmp_path / "uploads").iterdir()) == []


def test_create_requires_image_for_image_collections(tmp_path) -> None:
    service, broadcaster = _service(SCHOOLS, tmp_path)

    with pytest.raises(ValidationError, match="Image file is required"):
        asyncio.run(service.create_record({"name": "Main Campus"}))

    assert broadcaster.messages == []


def test_create_removes_image_when_store_fails(tmp_path) -> None:
    class FailingRepository(InMemoryRecordRepository):
        def insert(self, collection, payload):
            raise StoreError("database unavailable")

    service, broadcaster = _service(SCHOOLS, tmp_path, FailingRepository())

    with pytest.raises(StoreError):
        asyncio.run(service.create_record({"name": "Main"}, image=png_upload()))

    assert list((tmp_path / "uploads").iterdir()) == []
    assert broadcaster.messages == []


def test_update_replaces_fields_and_image(tmp_path) -> None:
    service, broadcaster = _service(SCHOOLS, tmp_path)
    created = asyncio.run(service.create_record({"name": "Old"}, image=png_upload()))

    updated = asyncio.run(
        service.update_record(
            str(created["id"]), {"name": "New"}, image=png_upload("new.png")
        )
    )

    assert updated["id"] == created["id"]
    assert updated["name"] == "New"
    assert updated["image"] != created["image"]
    assert not (tmp_path / "uploads" / str(created["image"])).exists()
    assert updated["updatedAt"] >= created["updatedAt"]
    assert broadcaster.messages[-1] == {
        "event": "school_updated",
        "data": updated,
        "clientToken": None,
    }


def test_update_rejects_blank_required_field(tmp_path) -> None:
    service, _ = _service(SCHOOLS, tmp_path)
    created = asyncio.run(service.create_record({"name": "Main"}, image=png_upload()))

    with pytest.raises(ValidationError):
        asyncio.run(service.update_record(str(created["id"]), {"name": "  "}))


def test_update_and_delete_unknown_ids_raise_not_found(tmp_path) -> None:
    service, broadcaster = _service(ANNOUNCEMENTS, tmp_path)

    with pytest.raises(NotFoundError):
        asyncio.run(service.update_record("missing", {"title": "x"}))
    with pytest.raises(NotFoundError):
        asyncio.run(service.delete_record("missing"))
    with pytest.raises(NotFoundError):
        asyncio.run(service.get_record("missing"))

    assert broadcaster.messages == []


def test_delete_broadcasts_id_and_removes_image(tmp_path) -> None:
    service, broadcaster = _service(ANNOUNCEMENTS, tmp_path)
    created = asyncio.run(
        service.create_record(
            {"title": "Opening", "date": "July 2025", "description": "Welcome"},
            image=png_upload(),
        )
    )

    result = asyncio.run(service.delete_record(str(created["id"])))

    assert result == {"id": created["id"]}
    assert asyncio.run(service.list_records()) == []
    assert not (tmp_path / "uploads" / str(created["image"])).exists()
    assert broadcaster.messages[-1] == {
        "event": "announcement_deleted",
        "data": {"id": created["id"]},
        "clientToken": None,
    }


def test_list_returns_newest_first(tmp_path) -> None:
    service, _ = _service(SCHOOLS, tmp_path)
    for name in ("First", "Second", "Third"):
        asyncio.run(service.create_record({"name": name}, image=png_upload()))

    names = [row["name"] for row in asyncio.run(service.list_records())]

    assert names == ["Third", "Second", "First"]


def test_slow_store_write_does_not_stall_other_requests(tmp_path) -> None:
    class SlowRepository(InMemoryRecordRepository):
        def insert(self, collection, payload):
            time.sleep(0.3)
            return super().insert(collection, payload)

    service, _ = _service(INQUIRIES, tmp_path, SlowRepository())
    fields = {
        "name": "Ana",
        "email": "ana@example.com",
        "program": "Primary",
        "grade": "3",
        "message": "Hello",
    }

    async def scenario() -> int:
        ticks = 0
        create = asyncio.create_task(service.create_record(fields))
        while not create.done():
            await asyncio.sleep(0.01)
            ticks += 1
        await create
        return ticks

    assert asyncio.run(scenario()) > 5


def test_inquiries_list_by_submission_timestamp(tmp_path) -> None:
    service, _ = _service(INQUIRIES, tmp_path)
    base = {
        "email": "ana@example.com",
        "program": "Primary",
        "grade": "3",
        "message": "Hello",
    }
    for name, timestamp in (
        ("Middle", "2026-01-02T00:00:00+00:00"),
        ("Newest", "2026-01-03T00:00:00+00:00"),
        ("Oldest", "2026-01-01T00:00:00+00:00"),
    ):
        fields = {**base, "name": name, "timestamp": timestamp}
        asyncio.run(service.create_record(fields))

    names = [row["name"] for row in asyncio.run(service.list_records())]

    assert names == ["Newest", "Middle", "Oldest"]

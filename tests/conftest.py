"""Shared test fixtures."""

import json
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from campus_site.adapters.memory_record_repository import InMemoryRecordRepository
from campus_site.client.api_client import ApiError
from campus_site.config import Settings
from campus_site.containers import AppContainer, build_container
from campus_site.domain.events import ChangeEvent
from campus_site.services.uploads import ImageUpload

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def png_upload(filename: str = "campus.png") -> ImageUpload:
    return ImageUpload(filename=filename, content_type="image/png", content=PNG_BYTES)


@dataclass
class RecordingBroadcaster:
    """Broadcaster that records every message it is asked to send."""

    messages: list[dict[str, object]] = field(default_factory=list)

    async def broadcast(self, message: dict[str, object]) -> int:
        self.messages.append(message)
        return 1


@dataclass(eq=False)
class FakeWebSocket:
    """Minimal stand-in for a server-side WebSocket."""

    sent: list[dict[str, object]] = field(default_factory=list)
    accepted: bool = False
    closed: bool = False
    fail_sends: bool = False

    async def accept(self) -> None:
        self.accepted = True

    async def send_json(self, data: dict[str, object]) -> None:
        self.sent.append(data)

    async def send_text(self, text: str) -> None:
        if self.fail_sends:
            raise RuntimeError("socket closed")
        self.sent.append(json.loads(text))

    async def close(self) -> None:
        self.closed = True


@dataclass
class FakeRecordSource:
    """Record source with a scripted snapshot and create behavior."""

    snapshot: list[dict[str, object]] = field(default_factory=list)
    created: list[dict[str, object]] = field(default_factory=list)
    fail_list: bool = False
    fail_create: bool = False
    next_record: dict[str, object] | None = None
    calls: list[tuple[str, dict[str, object], str | None]] = field(
        default_factory=list
    )

    async def list_records(self, collection: str) -> list[dict[str, object]]:
        if self.fail_list:
            raise ApiError("list failed", 500)
        return [dict(row) for row in self.snapshot]

    async def create_record(
        self,
        collection: str,
        fields: dict[str, object],
        image: ImageUpload | None = None,
        client_token: str | None = None,
    ) -> dict[str, object]:
        self.calls.append((collection, fields, client_token))
        if self.fail_create:
            raise ApiError("create failed", 400)
        record = self.next_record or {
            "id": f"rec-{len(self.created) + 1}",
            **fields,
            "createdAt": "2026-01-01T00:00:00+00:00",
        }
        self.created.append(record)
        return record


@dataclass
class FakeEventSource:
    """Event source that lets tests push events to subscribers."""

    listeners: dict[str, list] = field(default_factory=dict)
    reconnect_listeners: list = field(default_factory=list)

    def add_listener(self, event_name: str, listener) -> None:
        self.listeners.setdefault(event_name, []).append(listener)

    def remove_listener(self, event_name: str, listener) -> None:
        self.listeners.get(event_name, []).remove(listener)

    def add_reconnect_listener(self, listener) -> None:
        self.reconnect_listeners.append(listener)

    def remove_reconnect_listener(self, listener) -> None:
        self.reconnect_listeners.remove(listener)

    def push(self, event: ChangeEvent) -> None:
        for listener in list(self.listeners.get(event.event_name, [])):
            listener(event)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        store_backend="memory",
        public_origin="http://testserver",
        uploads_dir=str(tmp_path / "uploads"),
    )


@pytest.fixture
def repository() -> InMemoryRecordRepository:
    return InMemoryRecordRepository()


@pytest.fixture
def container(
    settings: Settings, repository: InMemoryRecordRepository
) -> AppContainer:
    return build_container(settings, repository=repository)

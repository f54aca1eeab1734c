"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

from supabase import create_client

from campus_site.adapters.memory_record_repository import InMemoryRecordRepository
from campus_site.adapters.supabase_record_repository import SupabaseRecordRepository
from campus_site.config import Settings
from campus_site.domain.records import COLLECTIONS
from campus_site.services.notifier import ChangeNotifier
from campus_site.services.realtime import RealtimeHub
from campus_site.services.records import RecordRepository, RecordService
from campus_site.services.uploads import ImageStore, LocalImageStore


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    realtime_hub: RealtimeHub
    notifier: ChangeNotifier
    image_store: ImageStore
    record_services: dict[str, RecordService]
    close_resources: Callable[[], Awaitable[None]]

    def records(self, collection: str) -> RecordService:
        """Return the service for a collection name."""
        return self.record_services[collection]


def build_repository(settings: Settings) -> RecordRepository:
    """Create the record repository selected by ``store_backend``."""
    if settings.store_backend == "memory":
        return InMemoryRecordRepository()
    if settings.store_backend != "supabase":
        raise ValueError(f"Unknown store backend: {settings.store_backend}")
    if not settings.supabase_url or not settings.supabase_service_key:
        raise ValueError(
            "SUPABASE_URL and SUPABASE_SERVICE_KEY are required for the supabase store"
        )
    client = create_client(settings.supabase_url, settings.supabase_service_key)
    return SupabaseRecordRepository(client)


def build_container(
    settings: Settings | None = None,
    repository: RecordRepository | None = None,
) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    resolved_repository = repository or build_repository(resolved_settings)
    realtime_hub = RealtimeHub()
    notifier = ChangeNotifier(realtime_hub)
    image_store = LocalImageStore(
        root=Path(resolved_settings.uploads_dir),
        max_bytes=resolved_settings.max_upload_bytes,
    )
    record_services = {
        name: RecordService(
            collection=spec,
            repository=resolved_repository,
            notifier=notifier,
            image_store=image_store if spec.has_image else None,
            public_origin=resolved_settings.public_origin,
        )
        for name, spec in COLLECTIONS.items()
    }

    async def close_resources() -> None:
        await realtime_hub.close()

    return AppContainer(
        settings=resolved_settings,
        realtime_hub=realtime_hub,
        notifier=notifier,
        image_store=image_store,
        record_services=record_services,
        close_resources=close_resources,
    )

"""JSON file-based storage backend."""

import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from multifeed.errors import PersistenceFailure
from multifeed.models import ContentItem, FeedDescriptor, Source, SourceKind, payload_from_dict
from multifeed.store.base import Store

logger = logging.getLogger(__name__)


def _generate_id() -> str:
    """Generate a short unique ID."""
    return uuid.uuid4().hex[:12]


def _datetime_to_str(dt: datetime | None) -> str | None:
    """Convert datetime to ISO format string."""
    return dt.isoformat() if dt else None


def _str_to_datetime(s: str | None) -> datetime | None:
    """Parse ISO format string to datetime."""
    return datetime.fromisoformat(s) if s else None


def _source_to_dict(source: Source) -> dict[str, Any]:
    """Serialize a Source to a dictionary."""
    return {
        "id": source.id,
        "kind": source.kind.value,
        "url": source.url,
        "title": source.title,
        "description": source.description,
        "avatar_url": source.avatar_url,
        "metadata": source.metadata,
        "created_at": _datetime_to_str(source.created_at),
        "last_fetched_at": _datetime_to_str(source.last_fetched_at),
        "fetch_error": source.fetch_error,
        "fetch_count": source.fetch_count,
        "is_active": source.is_active,
    }


def _dict_to_source(d: dict[str, Any]) -> Source:
    """Deserialize a dictionary to a Source."""
    return Source(
        id=d["id"],
        kind=SourceKind(d["kind"]),
        url=d["url"],
        title=d["title"],
        description=d.get("description"),
        avatar_url=d.get("avatar_url"),
        metadata=d.get("metadata", {}),
        created_at=_str_to_datetime(d["created_at"]),
        last_fetched_at=_str_to_datetime(d.get("last_fetched_at")),
        fetch_error=d.get("fetch_error"),
        fetch_count=d.get("fetch_count", 0),
        is_active=d.get("is_active", True),
    )


def _item_to_dict(item: ContentItem) -> dict[str, Any]:
    """Serialize a ContentItem to a dictionary."""
    return {
        "id": item.id,
        "source_id": item.source_id,
        "native_id": item.native_id,
        "title": item.title,
        "url": item.url,
        "published_at": _datetime_to_str(item.published_at),
        "payload": item.payload.to_dict(),
        "ingested_at": _datetime_to_str(item.ingested_at),
        "updated_at": _datetime_to_str(item.updated_at),
    }


def _dict_to_item(d: dict[str, Any]) -> ContentItem:
    """Deserialize a dictionary to a ContentItem."""
    return ContentItem(
        id=d["id"],
        source_id=d["source_id"],
        native_id=d["native_id"],
        title=d["title"],
        url=d["url"],
        published_at=_str_to_datetime(d.get("published_at")),
        payload=payload_from_dict(d["payload"]),
        ingested_at=_str_to_datetime(d["ingested_at"]),
        updated_at=_str_to_datetime(d.get("updated_at")),
    )


class FileStore(Store):
    """JSON file-backed store. Simple, inspectable, good for testing."""

    def __init__(self, data_dir: str):
        self.data_dir = Path(data_dir).expanduser()
        self.sources_file = self.data_dir / "sources.json"
        self.items_file = self.data_dir / "items.json"
        self.subscriptions_file = self.data_dir / "subscriptions.json"

        self._sources: dict[str, Source] = {}
        self._items: dict[str, ContentItem] = {}
        self._subscriptions: list[tuple[str, str]] = []
        self._load()

    def _load(self) -> None:
        """Load data from JSON files."""
        if self.sources_file.exists():
            data = json.loads(self.sources_file.read_text())
            self._sources = {s["id"]: _dict_to_source(s) for s in data}

        if self.items_file.exists():
            data = json.loads(self.items_file.read_text())
            self._items = {i["id"]: _dict_to_item(i) for i in data}

        if self.subscriptions_file.exists():
            data = json.loads(self.subscriptions_file.read_text())
            self._subscriptions = [(s["user_id"], s["source_id"]) for s in data]

    def _save(self) -> None:
        """Persist data to JSON files."""
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)

            sources_data = [_source_to_dict(s) for s in self._sources.values()]
            self.sources_file.write_text(json.dumps(sources_data, indent=2))

            items_data = [_item_to_dict(i) for i in self._items.values()]
            self.items_file.write_text(json.dumps(items_data, indent=2))

            subscriptions_data = [{"user_id": u, "source_id": s} for u, s in self._subscriptions]
            self.subscriptions_file.write_text(json.dumps(subscriptions_data, indent=2))
        except OSError as e:
            logger.error(f"Failed to write store files in {self.data_dir}: {e}")
            raise PersistenceFailure(str(e)) from e

    # Sources

    def add_source(self, descriptor: FeedDescriptor) -> Source:
        """Add a new source. Returns the created Source with ID."""
        # Check for duplicate canonical key
        if self.find_source_by_canonical_key(descriptor.kind, descriptor.feed_url):
            raise PersistenceFailure(
                f"Source {descriptor.kind.value} {descriptor.feed_url} already exists"
            )

        source_id = _generate_id()
        source = Source.from_descriptor(source_id, descriptor, datetime.now(timezone.utc))
        self._sources[source_id] = source
        self._save()
        return source

    def update_source(self, source_id: str, descriptor: FeedDescriptor) -> Source:
        source = self._sources.get(source_id)
        if source is None:
            raise PersistenceFailure(f"Source not found: {source_id}")

        source.title = descriptor.title
        source.description = descriptor.description
        source.avatar_url = descriptor.avatar_url
        source.metadata = {**source.metadata, "resolver": descriptor.resolver, **descriptor.metadata}
        source.is_active = True
        self._save()
        return source

    def get_source(self, source_id: str) -> Source | None:
        """Get a source by ID."""
        return self._sources.get(source_id)

    def find_source_by_canonical_key(self, kind: SourceKind, url: str) -> Source | None:
        for source in self._sources.values():
            if source.canonical_key == (kind, url):
                return source
        return None

    def list_sources(self, active_only: bool = False) -> list[Source]:
        """List all sources."""
        sources = [s for s in self._sources.values() if s.is_active or not active_only]
        return sorted(sources, key=lambda s: s.created_at)

    def record_sync_success(self, source_id: str, fetched_at: datetime) -> None:
        if source_id in self._sources:
            source = self._sources[source_id]
            source.last_fetched_at = fetched_at
            source.fetch_error = None
            source.fetch_count += 1
            self._save()

    def record_sync_error(self, source_id: str, error: str, fetched_at: datetime) -> None:
        if source_id in self._sources:
            source = self._sources[source_id]
            source.last_fetched_at = fetched_at
            source.fetch_error = error
            self._save()

    # Subscriptions

    def subscribe(self, user_id: str, source_id: str) -> None:
        if (user_id, source_id) not in self._subscriptions:
            self._subscriptions.append((user_id, source_id))
            self._save()

    def list_active_sources_for_user(self, user_id: str) -> list[Source]:
        source_ids = {s for u, s in self._subscriptions if u == user_id}
        return [s for s in self.list_sources(active_only=True) if s.id in source_ids]

    # Content items

    def find_content_item(self, source_id: str, native_id: str) -> ContentItem | None:
        """Get an item by source_id and native_id."""
        for item in self._items.values():
            if item.source_id == source_id and item.native_id == native_id:
                return item
        return None

    def insert_content_item(
        self,
        source_id: str,
        native_id: str,
        fields: dict[str, Any],
        ingested_at: datetime,
    ) -> ContentItem:
        if self.find_content_item(source_id, native_id):
            raise PersistenceFailure(f"Item {native_id} already exists for source {source_id}")

        item = ContentItem(
            id=_generate_id(),
            source_id=source_id,
            native_id=native_id,
            title=fields["title"],
            url=fields["url"],
            published_at=fields.get("published_at"),
            payload=fields["payload"],
            ingested_at=ingested_at,
        )
        self._items[item.id] = item
        self._save()
        return item

    def update_content_item(self, item_id: str, fields: dict[str, Any], updated_at: datetime) -> None:
        item = self._items.get(item_id)
        if item is None:
            raise PersistenceFailure(f"Item not found: {item_id}")

        item.title = fields["title"]
        item.url = fields["url"]
        item.published_at = fields.get("published_at")
        item.payload = fields["payload"]
        item.updated_at = updated_at
        self._save()

    def list_content_items(
        self,
        source_id: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[ContentItem]:
        """Get items with optional filters."""
        items = [i for i in self._items.values() if source_id is None or i.source_id == source_id]
        items.sort(
            key=lambda i: i.published_at or datetime.min.replace(tzinfo=timezone.utc),
            reverse=True,
        )
        return items[offset:offset + limit]

    def count_content_items(self, source_id: str | None = None) -> int:
        """Count items matching the filters."""
        return sum(1 for i in self._items.values() if source_id is None or i.source_id == source_id)

    # Lifecycle

    def close(self) -> None:
        """Close the store (no-op for file store)."""
        pass

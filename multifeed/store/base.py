"""Abstract base class for storage backends."""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from multifeed.models import ContentItem, FeedDescriptor, Source, SourceKind


class UpsertResult(str, Enum):
    """What upsert_content_item did with an item."""
    ADDED = "added"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


class Store(ABC):
    """Abstract persistence layer for sources, subscriptions and content items.

    Write failures raise PersistenceFailure.
    """

    # Sources
    @abstractmethod
    def add_source(self, descriptor: FeedDescriptor) -> Source:
        """Add a new source. Returns the created Source with ID."""
        pass

    @abstractmethod
    def update_source(self, source_id: str, descriptor: FeedDescriptor) -> Source:
        """Refresh a source's title, description, avatar and metadata."""
        pass

    @abstractmethod
    def get_source(self, source_id: str) -> Source | None:
        """Get a source by ID."""
        pass

    @abstractmethod
    def find_source_by_canonical_key(self, kind: SourceKind, url: str) -> Source | None:
        """Get a source by its (kind, canonical feed URL) key."""
        pass

    @abstractmethod
    def list_sources(self, active_only: bool = False) -> list[Source]:
        """List all sources, oldest first."""
        pass

    @abstractmethod
    def record_sync_success(self, source_id: str, fetched_at: datetime) -> None:
        """Record a successful fetch: clears the error, bumps the fetch count."""
        pass

    @abstractmethod
    def record_sync_error(self, source_id: str, error: str, fetched_at: datetime) -> None:
        """Record a failed fetch and its error message."""
        pass

    def upsert_source(self, descriptor: FeedDescriptor) -> tuple[Source, bool]:
        """Add a source, or refresh the existing one with the same canonical key.

        Returns the source and whether it was newly created.
        """
        existing = self.find_source_by_canonical_key(descriptor.kind, descriptor.feed_url)
        if existing is None:
            return self.add_source(descriptor), True
        return self.update_source(existing.id, descriptor), False

    # Subscriptions
    @abstractmethod
    def subscribe(self, user_id: str, source_id: str) -> None:
        """Subscribe a user to a source. Subscribing twice is a no-op."""
        pass

    @abstractmethod
    def list_active_sources_for_user(self, user_id: str) -> list[Source]:
        """Active sources a user is subscribed to, oldest first."""
        pass

    # Content items
    @abstractmethod
    def find_content_item(self, source_id: str, native_id: str) -> ContentItem | None:
        """Get an item by source_id and platform-native ID."""
        pass

    @abstractmethod
    def insert_content_item(
        self,
        source_id: str,
        native_id: str,
        fields: dict[str, Any],
        ingested_at: datetime,
    ) -> ContentItem:
        """Insert a new item. Raises PersistenceFailure on a duplicate key."""
        pass

    @abstractmethod
    def update_content_item(self, item_id: str, fields: dict[str, Any], updated_at: datetime) -> None:
        """Overwrite an item's mutable fields (title, url, published_at, payload)."""
        pass

    @abstractmethod
    def list_content_items(
        self,
        source_id: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[ContentItem]:
        """Get items, newest first, optionally for one source."""
        pass

    @abstractmethod
    def count_content_items(self, source_id: str | None = None) -> int:
        """Count items, optionally for one source."""
        pass

    def upsert_content_item(
        self,
        source_id: str,
        native_id: str,
        fields: dict[str, Any],
        now: datetime | None = None,
    ) -> UpsertResult:
        """Find by (source_id, native_id), then insert or update changed fields."""
        now = now or datetime.now(timezone.utc)
        existing = self.find_content_item(source_id, native_id)
        if existing is None:
            self.insert_content_item(source_id, native_id, fields, now)
            return UpsertResult.ADDED

        current = existing.mutable_fields()
        changed = {key: value for key, value in fields.items() if current.get(key) != value}
        if not changed:
            return UpsertResult.UNCHANGED

        self.update_content_item(existing.id, {**current, **changed}, now)
        return UpsertResult.UPDATED

    # Lifecycle
    @abstractmethod
    def close(self) -> None:
        """Close the store and release resources."""
        pass

    def __enter__(self) -> "Store":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

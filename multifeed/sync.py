"""Sync engine.

Pulls each source's feed through its registered handler, filters the
parsed items, and upserts them by platform-native ID. Sources are
synced one at a time in input order; a failing source becomes a failed
SyncOutcome and never stops the rest of a batch.

Usage:
    engine = SyncEngine(store, registry, config)
    summary = await engine.sync_sources(store.list_sources(active_only=True))
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable

from multifeed.config import Config
from multifeed.content import ContentExtractor
from multifeed.errors import (
    MultifeedError,
    PersistenceFailure,
    SourceNotFound,
    UnsupportedPlatform,
)
from multifeed.models import ArticlePayload, Source, SourceKind, SyncOutcome, SyncSummary
from multifeed.sources.base import RawItem
from multifeed.sources.registry import HandlerRegistry
from multifeed.store.base import Store, UpsertResult

logger = logging.getLogger(__name__)

ItemCallback = Callable[[RawItem, UpsertResult], Any]
SourceCallback = Callable[[Source, SyncOutcome], Awaitable[None] | None]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class AddSourceResult:
    """Outcome of resolving and registering a user-submitted URL."""
    success: bool
    source: Source | None = None
    created: bool = False
    kind: SourceKind | None = None
    error: str | None = None
    requires_manual_feed: bool = False


class SyncEngine:
    """Syncs sources into the store using the registry's handlers."""

    def __init__(
        self,
        store: Store,
        registry: HandlerRegistry,
        config: Config | None = None,
        extractor: ContentExtractor | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.registry = registry
        self.config = config or Config()
        self.extractor = extractor
        self.clock = clock

    # =========================================================================
    # Adding sources
    # =========================================================================

    async def add_source(self, url: str, user_id: str | None = None) -> AddSourceResult:
        """Detect, resolve and persist a source, then subscribe the user.

        Resolving a URL that maps to an existing canonical key returns
        the existing source.
        """
        url = url.strip()
        detection = await self.registry.detect_source_type(url)
        if not detection.detected:
            return AddSourceResult(success=False, error="Not a recognized URL")

        if detection.handler is None:
            return AddSourceResult(
                success=False,
                kind=detection.kind,
                error=f"Unsupported source type: {detection.kind.value}",
            )

        try:
            descriptor = await detection.handler.resolve(url)
        except UnsupportedPlatform as e:
            logger.info(f"Platform {e.platform} cannot be resolved automatically: {url}")
            return AddSourceResult(
                success=False,
                kind=detection.kind,
                error=e.reason,
                requires_manual_feed=True,
            )

        if descriptor is None:
            return AddSourceResult(
                success=False,
                kind=detection.kind,
                error=f"Could not resolve {url}. Try the direct feed URL.",
            )

        try:
            source, created = self.store.upsert_source(descriptor)
            if user_id:
                self.store.subscribe(user_id, source.id)
        except PersistenceFailure as e:
            logger.error(f"Failed to save source {descriptor.feed_url}: {e}")
            return AddSourceResult(success=False, kind=descriptor.kind, error=str(e))

        logger.info(f"{'Added' if created else 'Found existing'} source {source.id}: {source.title} ({source.kind.value})")
        return AddSourceResult(success=True, source=source, created=created, kind=source.kind)

    # =========================================================================
    # Syncing
    # =========================================================================

    def select_items(self, items: list[RawItem], full_sync: bool, now: datetime) -> list[RawItem]:
        """Items to ingest from a parsed feed.

        Recent mode keeps items published within the trailing window and
        caps their number; items without a timestamp are kept only in
        full mode.
        """
        items = [item for item in items if item.url and item.title]
        if full_sync:
            return items

        cutoff = now - timedelta(hours=self.config.recent_window_hours)
        items = [item for item in items if item.published_at and item.published_at >= cutoff]
        return items[: self.config.max_items_per_sync]

    async def sync_source(
        self,
        source: Source,
        *,
        full_sync: bool = False,
        on_item: ItemCallback | None = None,
    ) -> SyncOutcome:
        """Sync one source. Never raises; failures become a failed SyncOutcome."""
        handler = self.registry.get_handler(source.kind)
        if handler is None:
            logger.warning(f"No handler found for source type: {source.kind.value}")
            return SyncOutcome.failure(f"Unsupported source type: {source.kind.value}")

        now = self.clock()
        try:
            feed = await handler.fetch_feed(source)
        except MultifeedError as e:
            logger.warning(f"Failed to fetch {source.url}: {e}")
            self._record_error(source, str(e), now)
            return SyncOutcome.failure(str(e))
        except Exception as e:
            logger.exception(f"Unexpected error fetching {source.url}")
            self._record_error(source, str(e), now)
            return SyncOutcome.failure(f"Unexpected error: {e}")

        items = self.select_items(feed.items, full_sync, now)
        added = 0
        updated = 0

        try:
            for item in items:
                fields = await self._item_fields(source, item)
                result = self.store.upsert_content_item(source.id, item.native_id, fields, now)
                if result == UpsertResult.ADDED:
                    added += 1
                elif result == UpsertResult.UPDATED:
                    updated += 1
                if on_item is not None:
                    on_item(item, result)
            self.store.record_sync_success(source.id, now)
        except PersistenceFailure as e:
            logger.error(f"Failed to store items for {source.url}: {e}")
            self._record_error(source, str(e), now)
            return SyncOutcome(success=False, items_added=added, items_updated=updated, error=str(e))
        except Exception as e:
            logger.exception(f"Unexpected error storing items for {source.url}")
            self._record_error(source, str(e), now)
            return SyncOutcome(
                success=False,
                items_added=added,
                items_updated=updated,
                error=f"Unexpected error: {e}",
            )

        logger.info(
            f"Synced {source.title}: {added} added, {updated} updated "
            f"({len(items)} of {len(feed.items)} items, {'full' if full_sync else 'recent'})"
        )
        return SyncOutcome(success=True, items_added=added, items_updated=updated)

    async def sync_sources(
        self,
        sources: list[Source],
        *,
        full_sync: bool = False,
        on_source_complete: SourceCallback | None = None,
    ) -> SyncSummary:
        """Sync sources one after another, in order, and aggregate the outcomes."""
        summary = SyncSummary()
        for source in sources:
            outcome = await self.sync_source(source, full_sync=full_sync)
            summary.record(outcome)
            if on_source_complete is not None:
                pending = on_source_complete(source, outcome)
                if pending is not None:
                    await pending

        logger.info(
            f"Sync complete: {summary.successful_syncs}/{summary.total_sources} sources, "
            f"{summary.total_items_added} added, {summary.total_items_updated} updated"
        )
        return summary

    async def sync_user(
        self,
        user_id: str,
        *,
        full_sync: bool = False,
        source_id: str | None = None,
    ) -> SyncSummary:
        """Sync a user's active sources, or just one of them.

        Raises:
            SourceNotFound: If source_id is not one of the user's sources.
        """
        sources = self.store.list_active_sources_for_user(user_id)
        if source_id is not None:
            sources = [s for s in sources if s.id == source_id]
            if not sources:
                raise SourceNotFound(source_id)
        return await self.sync_sources(sources, full_sync=full_sync)

    async def _item_fields(self, source: Source, item: RawItem) -> dict[str, Any]:
        payload = item.payload
        if self.extractor is not None and self.config.extract_full_content and isinstance(payload, ArticlePayload):
            existing = self.store.find_content_item(source.id, item.native_id)
            if existing is None:
                extracted = await self.extractor.extract(item.url, featured_image_url=payload.media_url)
                if extracted and extracted.content:
                    payload = replace(payload, content=extracted.content, excerpt=extracted.excerpt or payload.excerpt)
            elif isinstance(existing.payload, ArticlePayload):
                # Keep the body extracted on first ingest
                payload = replace(payload, content=existing.payload.content, excerpt=existing.payload.excerpt)

        return {
            "title": item.title,
            "url": item.url,
            "published_at": item.published_at,
            "payload": payload,
        }

    def _record_error(self, source: Source, error: str, now: datetime) -> None:
        try:
            self.store.record_sync_error(source.id, error, now)
        except Exception as e:
            logger.error(f"Failed to record sync error for {source.id}: {e}")

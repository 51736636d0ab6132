"""Tests for the sync engine."""

import sqlite3
from datetime import timedelta

import pytest

from conftest import NOW, article, rss_descriptor
from multifeed.config import Config
from multifeed.content import ContentExtractor, ExtractedContent
from multifeed.errors import NetworkError, PersistenceFailure, SourceNotFound, UnsupportedPlatform
from multifeed.models import SourceKind
from multifeed.sources import ParsedFeed
from multifeed.sync import SyncEngine


FEED_URL = "https://example.com/feed.xml"


@pytest.fixture
def engine(store, registry):
    return SyncEngine(store, registry, Config(), clock=lambda: NOW)


@pytest.fixture
def source(store):
    return store.add_source(rss_descriptor(FEED_URL))


def three_day_feed() -> ParsedFeed:
    return ParsedFeed(title="Example", items=[
        article("a", NOW - timedelta(hours=1)),
        article("b", NOW - timedelta(hours=30)),
        article("c", NOW - timedelta(hours=48)),
    ])


class RecordingExtractor(ContentExtractor):
    def __init__(self):
        self.calls: list[str] = []

    async def extract(self, url, featured_image_url=None):
        self.calls.append(url)
        return ExtractedContent(
            title=None,
            content="<article>Full text</article>",
            excerpt="Full text",
            byline=None,
            length=9,
        )


class TestSyncSource:
    @pytest.mark.asyncio
    async def test_resync_is_idempotent(self, engine, handler, store, source):
        handler.feeds[FEED_URL] = three_day_feed()

        first = await engine.sync_source(source, full_sync=True)
        assert first.success
        assert first.items_added == 3

        second = await engine.sync_source(source, full_sync=True)
        assert second.success
        assert second.items_added == 0
        assert second.items_updated == 0
        assert store.count_content_items(source_id=source.id) == 3

    @pytest.mark.asyncio
    async def test_changed_item_keeps_identity(self, engine, handler, store, source):
        handler.feeds[FEED_URL] = three_day_feed()
        await engine.sync_source(source, full_sync=True)
        original = store.find_content_item(source.id, "a")

        handler.feeds[FEED_URL] = ParsedFeed(title="Example", items=[
            article("a", NOW - timedelta(hours=1), title="Corrected headline"),
            article("b", NOW - timedelta(hours=30)),
            article("c", NOW - timedelta(hours=48)),
        ])
        outcome = await engine.sync_source(source, full_sync=True)

        assert outcome.items_added == 0
        assert outcome.items_updated == 1
        updated = store.find_content_item(source.id, "a")
        assert updated.id == original.id
        assert updated.title == "Corrected headline"
        assert store.count_content_items(source_id=source.id) == 3

    @pytest.mark.asyncio
    async def test_recent_mode_keeps_last_day(self, engine, handler, store, source):
        handler.feeds[FEED_URL] = three_day_feed()

        outcome = await engine.sync_source(source)
        assert outcome.items_added == 1
        assert store.find_content_item(source.id, "a") is not None
        assert store.find_content_item(source.id, "b") is None

    @pytest.mark.asyncio
    async def test_full_mode_keeps_everything(self, engine, handler, source):
        handler.feeds[FEED_URL] = three_day_feed()

        outcome = await engine.sync_source(source, full_sync=True)
        assert outcome.items_added == 3

    @pytest.mark.asyncio
    async def test_undated_items_only_in_full_mode(self, engine, handler, source):
        handler.feeds[FEED_URL] = ParsedFeed(title="Example", items=[article("undated", None)])

        assert (await engine.sync_source(source)).items_added == 0
        assert (await engine.sync_source(source, full_sync=True)).items_added == 1

    @pytest.mark.asyncio
    async def test_recent_mode_caps_items(self, store, registry, handler, source):
        engine = SyncEngine(store, registry, Config(max_items_per_sync=5), clock=lambda: NOW)
        handler.feeds[FEED_URL] = ParsedFeed(title="Example", items=[
            article(str(i), NOW - timedelta(minutes=i)) for i in range(8)
        ])

        assert (await engine.sync_source(source)).items_added == 5
        assert (await engine.sync_source(source, full_sync=True)).items_added == 3

    @pytest.mark.asyncio
    async def test_items_without_url_or_title_skipped(self, engine, handler, source):
        untitled = article("x", NOW)
        untitled.title = ""
        handler.feeds[FEED_URL] = ParsedFeed(title="Example", items=[untitled, article("y", NOW)])

        assert (await engine.sync_source(source, full_sync=True)).items_added == 1

    @pytest.mark.asyncio
    async def test_success_bookkeeping(self, engine, handler, store, source):
        handler.feeds[FEED_URL] = three_day_feed()
        await engine.sync_source(source)

        synced = store.get_source(source.id)
        assert synced.last_fetched_at == NOW
        assert synced.fetch_error is None
        assert synced.fetch_count == 1

    @pytest.mark.asyncio
    async def test_fetch_error_recorded(self, engine, handler, store, source):
        handler.feeds[FEED_URL] = NetworkError(FEED_URL, "Timed out fetching feed")

        outcome = await engine.sync_source(source)
        assert not outcome.success
        assert outcome.error == "Timed out fetching feed"

        failed = store.get_source(source.id)
        assert failed.fetch_error == "Timed out fetching feed"
        assert failed.fetch_count == 0

    @pytest.mark.asyncio
    async def test_unexpected_error_does_not_raise(self, engine, handler, store, source):
        handler.feeds[FEED_URL] = KeyError("entries")

        outcome = await engine.sync_source(source)
        assert not outcome.success
        assert "Unexpected error" in outcome.error
        assert store.get_source(source.id).fetch_error is not None

    @pytest.mark.asyncio
    async def test_unsupported_kind(self, engine, store):
        social = store.add_source(rss_descriptor("https://twitter.com/jack"))
        social.kind = SourceKind.TWITTER

        outcome = await engine.sync_source(social)
        assert not outcome.success
        assert outcome.error == "Unsupported source type: twitter"

    @pytest.mark.asyncio
    async def test_persistence_failure_becomes_outcome(self, engine, handler, store, source, monkeypatch):
        handler.feeds[FEED_URL] = three_day_feed()

        def broken_insert(*args, **kwargs):
            raise PersistenceFailure("disk full")

        monkeypatch.setattr(store, "insert_content_item", broken_insert)
        outcome = await engine.sync_source(source, full_sync=True)

        assert not outcome.success
        assert outcome.error == "disk full"
        assert store.get_source(source.id).fetch_error == "disk full"

    @pytest.mark.asyncio
    async def test_on_item_callback(self, engine, handler, source):
        handler.feeds[FEED_URL] = three_day_feed()
        seen = []

        await engine.sync_source(source, full_sync=True, on_item=lambda item, result: seen.append((item.native_id, result.value)))
        assert seen == [("a", "added"), ("b", "added"), ("c", "added")]


class TestSyncSources:
    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_batch(self, engine, handler, store):
        sources = [
            store.add_source(rss_descriptor(f"https://site{i}.example.com/feed.xml", f"Site {i}"))
            for i in range(3)
        ]
        handler.feeds[sources[0].url] = ParsedFeed(title="0", items=[article("a", NOW)])
        handler.feeds[sources[1].url] = NetworkError(sources[1].url)
        handler.feeds[sources[2].url] = ParsedFeed(title="2", items=[article("b", NOW), article("c", NOW)])

        completed = []
        summary = await engine.sync_sources(
            sources,
            on_source_complete=lambda source, outcome: completed.append((source.id, outcome.success)),
        )

        assert summary.total_sources == 3
        assert summary.successful_syncs == 2
        assert summary.failed_syncs == 1
        assert summary.total_items_added == 3
        assert completed == [(sources[0].id, True), (sources[1].id, False), (sources[2].id, True)]
        assert store.get_source(sources[1].id).fetch_error is not None
        assert store.get_source(sources[2].id).fetch_count == 1

    @pytest.mark.asyncio
    async def test_store_error_does_not_stop_batch(self, engine, handler, store, monkeypatch):
        sources = [
            store.add_source(rss_descriptor(f"https://site{i}.example.com/feed.xml", f"Site {i}"))
            for i in range(3)
        ]
        for i, s in enumerate(sources):
            handler.feeds[s.url] = ParsedFeed(title=str(i), items=[article(f"item-{i}", NOW)])

        find = store.find_content_item

        def locked_for_second(source_id, native_id):
            if source_id == sources[1].id:
                raise sqlite3.OperationalError("database is locked")
            return find(source_id, native_id)

        monkeypatch.setattr(store, "find_content_item", locked_for_second)
        summary = await engine.sync_sources(sources)

        assert summary.successful_syncs == 2
        assert summary.failed_syncs == 1
        assert store.count_content_items(source_id=sources[2].id) == 1
        assert "database is locked" in store.get_source(sources[1].id).fetch_error

    @pytest.mark.asyncio
    async def test_partial_failure_counts_stored_items(self, engine, handler, store, source, monkeypatch):
        handler.feeds[FEED_URL] = three_day_feed()
        insert = store.insert_content_item
        calls = []

        def fail_after_first(*args, **kwargs):
            calls.append(args)
            if len(calls) > 1:
                raise PersistenceFailure("disk full")
            return insert(*args, **kwargs)

        monkeypatch.setattr(store, "insert_content_item", fail_after_first)
        summary = await engine.sync_sources([source], full_sync=True)

        assert summary.failed_syncs == 1
        assert summary.total_items_added == 1
        assert store.count_content_items(source_id=source.id) == 1

    @pytest.mark.asyncio
    async def test_async_callback_awaited(self, engine, handler, source):
        handler.feeds[FEED_URL] = three_day_feed()
        completed = []

        async def on_complete(source, outcome):
            completed.append(outcome.items_added)

        await engine.sync_sources([source], on_source_complete=on_complete)
        assert completed == [1]

    @pytest.mark.asyncio
    async def test_sync_user(self, engine, handler, store, source):
        other = store.add_source(rss_descriptor("https://other.example.com/feed.xml", "Other"))
        store.subscribe("alice", source.id)
        handler.feeds[FEED_URL] = three_day_feed()

        summary = await engine.sync_user("alice", full_sync=True)
        assert summary.total_sources == 1
        assert summary.total_items_added == 3
        assert store.count_content_items(source_id=other.id) == 0

    @pytest.mark.asyncio
    async def test_sync_user_unknown_source(self, engine, store, source):
        store.subscribe("alice", source.id)
        with pytest.raises(SourceNotFound):
            await engine.sync_user("alice", source_id="missing")


class TestAddSource:
    @pytest.mark.asyncio
    async def test_add_and_subscribe(self, engine, handler, store):
        handler.descriptors[FEED_URL] = rss_descriptor(FEED_URL)

        result = await engine.add_source(FEED_URL, user_id="alice")
        assert result.success
        assert result.created
        assert result.source.url == FEED_URL
        assert [s.id for s in store.list_active_sources_for_user("alice")] == [result.source.id]

    @pytest.mark.asyncio
    async def test_same_canonical_key_reuses_source(self, engine, handler, store):
        handler.descriptors[FEED_URL] = rss_descriptor(FEED_URL)

        first = await engine.add_source(FEED_URL, user_id="alice")
        second = await engine.add_source(FEED_URL, user_id="bob")
        assert not second.created
        assert second.source.id == first.source.id
        assert len(store.list_sources()) == 1
        assert [s.id for s in store.list_active_sources_for_user("bob")] == [first.source.id]

    @pytest.mark.asyncio
    async def test_social_platform_unsupported(self, engine):
        result = await engine.add_source("https://twitter.com/jack")
        assert not result.success
        assert result.kind == SourceKind.TWITTER
        assert result.error == "Unsupported source type: twitter"

    @pytest.mark.asyncio
    async def test_unresolvable(self, engine, handler):
        handler.descriptors[FEED_URL] = None

        result = await engine.add_source(FEED_URL)
        assert not result.success
        assert "Could not resolve" in result.error

    @pytest.mark.asyncio
    async def test_platform_without_feed(self, engine, handler):
        handler.descriptors[FEED_URL] = UnsupportedPlatform("spotify", "Spotify does not provide public RSS feeds.")

        result = await engine.add_source(FEED_URL)
        assert not result.success
        assert result.requires_manual_feed
        assert result.error == "Spotify does not provide public RSS feeds."

    @pytest.mark.asyncio
    async def test_unrecognized_url(self, engine):
        result = await engine.add_source("https://example.com/feed.xml?unknown")
        assert not result.success
        assert result.error == "Not a recognized URL"


class TestContentExtraction:
    @pytest.mark.asyncio
    async def test_extracts_once(self, store, registry, handler, source):
        extractor = RecordingExtractor()
        engine = SyncEngine(store, registry, Config(extract_full_content=True), extractor=extractor, clock=lambda: NOW)
        handler.feeds[FEED_URL] = ParsedFeed(title="Example", items=[article("a", NOW)])

        first = await engine.sync_source(source)
        assert first.items_added == 1
        assert store.find_content_item(source.id, "a").payload.content == "<article>Full text</article>"

        second = await engine.sync_source(source)
        assert second.items_added == 0
        assert second.items_updated == 0
        assert extractor.calls == ["https://example.com/posts/a"]

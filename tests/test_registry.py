"""Tests for handler registration and URL detection order."""

import pytest

from conftest import FakeHandler, rss_descriptor
from multifeed.errors import NetworkError
from multifeed.models import SourceKind
from multifeed.sources import HandlerRegistry, create_registry
from multifeed.sources.base import DetectionResult


class RaisingHandler(FakeHandler):
    @property
    def name(self) -> str:
        return "raising"

    async def detect_url(self, url):
        raise NetworkError(url)


class ClaimingHandler(FakeHandler):
    """Claims every URL it is asked about and records the calls."""

    def __init__(self, name, kinds):
        super().__init__(kinds)
        self._name = name
        self.asked: list[str] = []

    @property
    def name(self) -> str:
        return self._name

    async def detect_url(self, url):
        self.asked.append(url)
        return DetectionResult(detected=True, kind=self.kinds[0])


class TestRegistration:
    def test_kinds_map_to_handler(self):
        registry = HandlerRegistry()
        handler = FakeHandler([SourceKind.RSS, SourceKind.WEBSITE])
        registry.register(handler)

        assert registry.get_handler(SourceKind.WEBSITE) is handler
        assert registry.is_supported(SourceKind.RSS)
        assert not registry.is_supported(SourceKind.TWITTER)
        assert registry.handlers == [handler]

    def test_unregister(self):
        registry = HandlerRegistry()
        handler = FakeHandler()
        registry.register(handler)
        registry.unregister(handler)

        assert registry.get_handler(SourceKind.RSS) is None
        assert registry.handlers == []

    def test_builtin_order(self, fetcher):
        registry = create_registry(fetcher)
        assert [h.name for h in registry.handlers] == ["youtube", "podcast", "rss"]
        assert registry.get_handler(SourceKind.YOUTUBE_VIDEO).name == "youtube"
        assert registry.get_handler(SourceKind.WEBSITE).name == "rss"
        assert registry.get_handler(SourceKind.TWITTER) is None


class TestDetection:
    @pytest.mark.asyncio
    async def test_classified_handler_asked_first(self):
        registry = HandlerRegistry()
        rss = ClaimingHandler("rss", [SourceKind.RSS])
        youtube = ClaimingHandler("youtube", [SourceKind.YOUTUBE_CHANNEL])
        catch_all = ClaimingHandler("website", [SourceKind.WEBSITE])
        for handler in (rss, youtube, catch_all):
            registry.register(handler)

        result = await registry.detect_source_type("https://www.youtube.com/@creator")
        assert result.handler is youtube
        assert rss.asked == []

    @pytest.mark.asyncio
    async def test_catch_all_keeps_last_place(self):
        registry = HandlerRegistry()
        podcast = ClaimingHandler("podcast", [SourceKind.PODCAST])
        rss = ClaimingHandler("rss", [SourceKind.RSS])
        registry.register(podcast)
        registry.register(rss)

        result = await registry.detect_source_type("https://example.com/feed.xml")
        assert result.handler is podcast
        assert rss.asked == []

    @pytest.mark.asyncio
    async def test_raising_handler_skipped(self):
        registry = HandlerRegistry()
        fallback = FakeHandler()
        fallback.descriptors["https://example.com/blog"] = rss_descriptor()
        registry.register(RaisingHandler([SourceKind.PODCAST]))
        registry.register(fallback)

        result = await registry.detect_source_type("https://example.com/blog")
        assert result.detected
        assert result.handler is fallback

    @pytest.mark.asyncio
    async def test_social_kind_has_no_handler(self, registry):
        result = await registry.detect_source_type("https://www.instagram.com/someone/")
        assert result.detected
        assert result.kind == SourceKind.INSTAGRAM
        assert result.handler is None

    @pytest.mark.asyncio
    async def test_nothing_claims_url(self, registry):
        result = await registry.detect_source_type("https://example.com/blog")
        assert not result.detected
        assert result.handler is None

    @pytest.mark.asyncio
    async def test_hints_merged_into_metadata(self):
        registry = HandlerRegistry()
        registry.register(ClaimingHandler("rss", [SourceKind.RSS]))

        result = await registry.detect_source_type("https://example.com/feed.xml")
        assert result.metadata.get("feed") is True

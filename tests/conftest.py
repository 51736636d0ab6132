"""Shared fixtures: temporary stores and an offline fetcher."""

import tempfile
from datetime import datetime, timezone

import pytest

from multifeed.errors import MultifeedError
from multifeed.fetcher import FeedFetcher, FetchResponse
from multifeed.models import ArticlePayload, FeedDescriptor, Source, SourceKind
from multifeed.sources import DetectionResult, HandlerRegistry, ParsedFeed, RawItem, SourceHandler
from multifeed.store import FileStore, SQLiteStore


NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeFetcher(FeedFetcher):
    """FeedFetcher that serves canned responses instead of hitting the network.

    Unknown URLs get a 404. A registered exception is raised instead of
    returning a response.
    """

    def __init__(self):
        super().__init__()
        self.pages: dict[str, FetchResponse | MultifeedError] = {}
        self.requests: list[tuple[str, str]] = []

    def add(
        self,
        url: str,
        text: str,
        status: int = 200,
        final_url: str | None = None,
        content_type: str = "text/html",
    ) -> None:
        self.pages[url] = FetchResponse(
            status=status,
            text=text,
            url=url,
            final_url=final_url or url,
            headers={"content-type": content_type},
        )

    def fail(self, url: str, error: MultifeedError) -> None:
        self.pages[url] = error

    async def fetch(self, url, *, headers=None, timeout=None, follow_redirects=True, mode="feed"):
        self.requests.append((url, mode))
        page = self.pages.get(url)
        if isinstance(page, MultifeedError):
            raise page
        if page is None:
            return FetchResponse(status=404, text="", url=url, final_url=url)
        return page

    def requested(self, url: str) -> bool:
        return any(requested == url for requested, _ in self.requests)


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def sqlite_store():
    """Create a temporary SQLite store."""
    with tempfile.TemporaryDirectory() as tmpdir:
        store = SQLiteStore(f"{tmpdir}/test.db")
        yield store
        store.close()


@pytest.fixture
def file_store():
    """Create a temporary file store."""
    with tempfile.TemporaryDirectory() as tmpdir:
        store = FileStore(tmpdir)
        yield store
        store.close()


@pytest.fixture(params=["sqlite", "file"])
def store(request, sqlite_store, file_store):
    """Parameterized fixture that runs tests against both stores."""
    if request.param == "sqlite":
        return sqlite_store
    return file_store


def rss_descriptor(url: str = "https://example.com/feed.xml", title: str = "Example Feed") -> FeedDescriptor:
    return FeedDescriptor(
        kind=SourceKind.RSS,
        feed_url=url,
        title=title,
        resolver="rss",
        description="A test feed",
    )


def article(native_id: str, published_at: datetime | None, title: str | None = None) -> RawItem:
    return RawItem(
        native_id=native_id,
        url=f"https://example.com/posts/{native_id}",
        title=title or f"Post {native_id}",
        published_at=published_at,
        payload=ArticlePayload(content=f"<p>Body of {native_id}</p>", excerpt=f"Body of {native_id}"),
    )


class FakeHandler(SourceHandler):
    """Handler serving canned feeds (or errors) keyed by source URL."""

    def __init__(self, kinds: list[SourceKind] | None = None):
        self._kinds = kinds or [SourceKind.RSS]
        self.feeds: dict[str, ParsedFeed | Exception] = {}
        self.descriptors: dict[str, FeedDescriptor | Exception | None] = {}

    @property
    def name(self) -> str:
        return "fake"

    @property
    def kinds(self) -> list[SourceKind]:
        return self._kinds

    def is_valid_url(self, url: str) -> bool:
        return url in self.descriptors

    async def detect_url(self, url: str) -> DetectionResult:
        if not self.is_valid_url(url):
            return DetectionResult.miss()
        return DetectionResult(detected=True, kind=self._kinds[0])

    async def resolve(self, url: str) -> FeedDescriptor | None:
        descriptor = self.descriptors[url]
        if isinstance(descriptor, Exception):
            raise descriptor
        return descriptor

    async def fetch_feed(self, source: Source) -> ParsedFeed:
        feed = self.feeds[source.url]
        if isinstance(feed, Exception):
            raise feed
        return feed


@pytest.fixture
def handler():
    return FakeHandler()


@pytest.fixture
def registry(handler):
    registry = HandlerRegistry()
    registry.register(handler)
    return registry

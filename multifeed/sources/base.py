"""Base protocol for source handlers.

A source handler owns one family of platforms (RSS/websites, YouTube,
podcasts). It provides:
1. detect_url / is_valid_url - structural and light network detection
2. resolve - turn a user URL into a canonical FeedDescriptor
3. fetch_feed - fetch and parse a Source's feed into RawItems

The sync engine does the filtering, diffing and persistence; handlers
never touch the store.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from urllib.parse import urlparse

from multifeed.models import FeedDescriptor, Payload, Source, SourceKind


# =============================================================================
# Data Models
# =============================================================================


@dataclass
class DetectionResult:
    """Result of detecting which handler owns a URL."""

    detected: bool
    kind: SourceKind | None = None
    handler: "SourceHandler | None" = None
    transformed_url: str | None = None  # e.g. a YouTube channel URL turned into its feed URL
    suggested_title: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def miss(cls) -> "DetectionResult":
        return cls(detected=False)


@dataclass
class RawItem:
    """A content item parsed from a feed, returned by handler.fetch_feed()."""

    native_id: str  # Platform-assigned ID (video ID, GUID/link, audio URL)
    url: str
    title: str
    published_at: datetime | None
    payload: Payload


@dataclass
class ParsedFeed:
    """A fetched and parsed feed."""

    title: str
    items: list[RawItem] = field(default_factory=list)
    description: str | None = None
    link: str | None = None
    image_url: str | None = None


# =============================================================================
# Protocol
# =============================================================================


class SourceHandler(ABC):
    """Interface every platform handler implements.

    Example:
        class MyHandler(SourceHandler):
            @property
            def name(self) -> str:
                return "mysite"

            @property
            def kinds(self) -> list[SourceKind]:
                return [SourceKind.WEBSITE]

            def is_valid_url(self, url: str) -> bool:
                return "mysite.com" in url

            async def detect_url(self, url: str) -> DetectionResult:
                ...

            async def resolve(self, url: str) -> FeedDescriptor | None:
                ...

            async def fetch_feed(self, source: Source) -> ParsedFeed:
                ...
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Resolver discriminator, e.g. "rss", "youtube", "podcast"."""
        pass

    @property
    @abstractmethod
    def kinds(self) -> list[SourceKind]:
        """Source kinds this handler syncs."""
        pass

    @abstractmethod
    def is_valid_url(self, url: str) -> bool:
        """Cheap structural check, no network I/O."""
        pass

    @abstractmethod
    async def detect_url(self, url: str) -> DetectionResult:
        """Detect whether this handler owns the URL.

        May fetch the URL; may raise NetworkError, which the registry
        logs and treats as a miss.
        """
        pass

    @abstractmethod
    async def resolve(self, url: str) -> FeedDescriptor | None:
        """Resolve a user URL to a canonical feed.

        Returns None when the URL cannot be resolved. Never raises for
        network or parse problems.

        Raises:
            UnsupportedPlatform: If the platform structurally has no feed.
        """
        pass

    @abstractmethod
    async def fetch_feed(self, source: Source) -> ParsedFeed:
        """Fetch and parse the source's feed.

        Raises:
            NetworkError: If the feed could not be fetched.
            ParseFailure: If the body is not a usable feed.
        """
        pass

    def favicon_url(self, url: str) -> str | None:
        parsed = urlparse(url)
        if not parsed.netloc:
            return None
        return f"https://www.google.com/s2/favicons?domain={parsed.scheme}://{parsed.netloc}&sz=128"

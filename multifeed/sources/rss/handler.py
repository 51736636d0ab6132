"""RSS/Atom feed and website handler.

The catch-all handler: registered last, it claims feed-shaped URLs and
any other http(s) URL as a website whose feed is auto-discovered.
"""

import logging
from urllib.parse import urlparse

import feedparser

from multifeed.classifier import RSS_PATTERNS, normalize_host
from multifeed.errors import NetworkError, ParseFailure
from multifeed.extraction import strip_tags
from multifeed.fetcher import FeedFetcher, FetchResponse
from multifeed.models import ArticlePayload, FeedDescriptor, Source, SourceKind
from multifeed.sources.base import DetectionResult, ParsedFeed, RawItem, SourceHandler
from multifeed.sources.rss.parsing import (
    entry_html,
    extract_media,
    generate_entry_id,
    make_excerpt,
    parse_date,
    reading_time,
    word_count,
)
from multifeed.sources.rss.validation import discover_feed_url, validate_feed

logger = logging.getLogger(__name__)


def is_feed_shaped(url: str) -> bool:
    path = urlparse(url.lower()).path
    return any(pattern.search(path) for pattern in RSS_PATTERNS)


def domain_title(url: str) -> str:
    return normalize_host(url) or url


def parse_feed_document(response: FetchResponse) -> feedparser.FeedParserDict:
    """Parse a fetched body with feedparser.

    Raises:
        NetworkError: On a non-2xx status.
        ParseFailure: If the body is not a feed.
    """
    if not response.ok:
        raise NetworkError(response.url, f"HTTP {response.status} fetching {response.url}")

    feed = feedparser.parse(response.text)
    if feed.bozo and not feed.entries and not feed.feed.get("title"):
        raise ParseFailure(f"Invalid feed at {response.url}: {feed.get('bozo_exception')}")
    if not feed.version and not feed.entries:
        raise ParseFailure(f"No feed found at {response.url}")
    return feed


class RSSHandler(SourceHandler):
    """Handler for RSS and Atom feeds, newsletters and websites."""

    def __init__(self, fetcher: FeedFetcher, discover: bool = True):
        self.fetcher = fetcher
        self.discover = discover

    @property
    def name(self) -> str:
        return "rss"

    @property
    def kinds(self) -> list[SourceKind]:
        return [SourceKind.RSS, SourceKind.NEWSLETTER, SourceKind.WEBSITE]

    def is_valid_url(self, url: str) -> bool:
        parsed = urlparse(url)
        return parsed.scheme in ("http", "https") and bool(parsed.netloc)

    async def detect_url(self, url: str) -> DetectionResult:
        if not self.is_valid_url(url):
            return DetectionResult.miss()

        if is_feed_shaped(url):
            return DetectionResult(
                detected=True,
                kind=SourceKind.RSS,
                transformed_url=url,
                suggested_title=domain_title(url),
            )

        if self.discover:
            feed_url = await self._discover(url)
            if feed_url:
                return DetectionResult(
                    detected=True,
                    kind=SourceKind.RSS,
                    transformed_url=feed_url,
                    suggested_title=domain_title(url),
                )

        return DetectionResult(
            detected=True,
            kind=SourceKind.WEBSITE,
            suggested_title=domain_title(url),
        )

    async def _discover(self, url: str) -> str | None:
        """Feed URL for an HTML page, or the URL itself if it serves a feed."""
        response = await self.fetcher.fetch(url, mode="html")
        if not response.ok:
            return None
        if validate_feed(response.text).is_feed:
            return response.final_url
        return discover_feed_url(response.text, response.final_url)

    async def resolve(self, url: str) -> FeedDescriptor | None:
        try:
            feed_url = url
            if not is_feed_shaped(url) and self.discover:
                feed_url = await self._discover(url)
                if not feed_url:
                    logger.info(f"No feed discovered for {url}")
                    return None

            response = await self.fetcher.fetch(feed_url, mode="feed")
        except NetworkError as e:
            logger.warning(f"Failed to resolve {url}: {e}")
            return None

        if not response.ok:
            logger.info(f"Feed {feed_url} returned HTTP {response.status}")
            return None

        validation = validate_feed(response.text, response.content_type)
        if not validation.is_feed:
            logger.info(f"{feed_url} is not a feed")
            return None

        return FeedDescriptor(
            kind=SourceKind.RSS,
            feed_url=response.final_url,
            title=validation.title or domain_title(url),
            description=validation.description,
            avatar_url=self.favicon_url(url),
            resolver=self.name,
            metadata={
                "site_url": url,
                "is_podcast": validation.is_podcast,
            },
        )

    async def fetch_feed(self, source: Source) -> ParsedFeed:
        response = await self.fetcher.fetch(source.url, mode="feed")
        feed = parse_feed_document(response)

        items = []
        for entry in feed.entries:
            html = entry_html(entry)
            media = extract_media(entry)

            author = entry.get("author", "")
            if not author and entry.get("authors"):
                author = entry.authors[0].get("name", "")

            payload = ArticlePayload(
                content=html or None,
                excerpt=make_excerpt(html),
                author=author or None,
                # Audio enclosures on plain feeds are not featured media
                media_type="none" if media["media_type"] == "audio" else media["media_type"],
                media_url=media["media_url"],
                thumbnail_url=media["thumbnail_url"],
                media_duration=media["media_duration"],
                reading_time=reading_time(html) if html else None,
                word_count=word_count(html) if html else None,
            )

            items.append(RawItem(
                native_id=generate_entry_id(entry, source.url),
                url=entry.get("link", ""),
                title=strip_tags(entry.get("title", "")),
                published_at=parse_date(entry),
                payload=payload,
            ))

        feed_info = feed.feed
        image_url = None
        if feed_info.get("image"):
            image_url = feed_info.image.get("href") or feed_info.image.get("url")
        elif feed_info.get("icon"):
            image_url = feed_info.icon

        return ParsedFeed(
            title=strip_tags(feed_info.get("title", "")) or domain_title(source.url),
            description=strip_tags(feed_info.get("description", feed_info.get("subtitle", ""))) or None,
            link=feed_info.get("link"),
            image_url=image_url,
            items=items,
        )

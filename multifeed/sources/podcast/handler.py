"""Podcast handler.

Resolves directory-platform URLs (Apple, Spotify, Amazon, YouTube) and
plain podcast RSS feeds, and parses episodes with their audio
enclosures and iTunes fields.
"""

import logging
from typing import Any

from multifeed.classifier import classify, is_youtube_url
from multifeed.errors import UnsupportedPlatform
from multifeed.extraction import strip_tags
from multifeed.fetcher import FeedFetcher
from multifeed.models import EpisodePayload, FeedDescriptor, PodcastPlatform, Source, SourceKind
from multifeed.sources.base import DetectionResult, ParsedFeed, RawItem, SourceHandler
from multifeed.sources.podcast.platforms import PodcastResolver, detect_podcast_platform, is_podcast_url
from multifeed.sources.rss.handler import domain_title, parse_feed_document
from multifeed.sources.rss.parsing import (
    entry_html,
    entry_image,
    make_excerpt,
    parse_date,
    parse_duration,
    parse_int,
)
from multifeed.sources.rss.validation import validate_feed
from multifeed.sources.youtube.feed import parse_youtube_feed
from multifeed.sources.youtube.handler import YouTubeHandler

logger = logging.getLogger(__name__)


def audio_enclosure(entry: dict[str, Any]) -> str | None:
    """URL of the first audio enclosure (or audio media:content) of an entry."""
    for enclosure in entry.get("enclosures", []):
        url = enclosure.get("href") or enclosure.get("url")
        if url and (enclosure.get("type") or "").lower().startswith("audio/"):
            return url
    for content in entry.get("media_content", []):
        if content.get("url") and (content.get("type") or "").lower().startswith("audio/"):
            return content["url"]
    return None


def is_explicit(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in ("yes", "true", "explicit")


def parse_episode_entry(entry: dict[str, Any], feed_image: str | None = None) -> RawItem | None:
    """Convert a podcast feed entry to a RawItem, or None without audio."""
    audio_url = audio_enclosure(entry)
    if not audio_url:
        return None

    html = entry_html(entry)
    author = entry.get("itunes_author") or entry.get("author")

    payload = EpisodePayload(
        audio_url=audio_url,
        author=author or None,
        description=make_excerpt(entry.get("itunes_summary") or entry.get("summary") or html),
        show_notes=html or None,
        image_url=entry_image(entry) or feed_image,
        duration_seconds=parse_duration(entry.get("itunes_duration")),
        episode_number=parse_int(entry.get("itunes_episode")),
        season_number=parse_int(entry.get("itunes_season")),
        explicit=is_explicit(entry.get("itunes_explicit")),
    )

    title = strip_tags(entry.get("itunes_title") or entry.get("title", ""))
    return RawItem(
        native_id=audio_url,
        url=entry.get("link") or audio_url,
        title=title,
        published_at=parse_date(entry),
        payload=payload,
    )


def episodes_from_videos(feed: ParsedFeed) -> ParsedFeed:
    """Map a parsed YouTube feed to episodes whose audio URL is the watch page."""
    items = []
    for item in feed.items:
        video = item.payload
        items.append(RawItem(
            native_id=item.url,
            url=item.url,
            title=item.title,
            published_at=item.published_at,
            payload=EpisodePayload(
                audio_url=item.url,
                author=video.channel_name,
                description=make_excerpt(video.description),
                show_notes=video.description,
                image_url=video.thumbnail_url,
                duration_seconds=video.duration_seconds,
            ),
        ))
    return ParsedFeed(title=feed.title, items=items, description=feed.description, link=feed.link)


class PodcastHandler(SourceHandler):
    """Handler for podcasts from RSS feeds and directory platforms."""

    def __init__(self, fetcher: FeedFetcher, youtube: YouTubeHandler | None = None):
        self.fetcher = fetcher
        self.resolver = PodcastResolver(fetcher, youtube=youtube)

    @property
    def name(self) -> str:
        return "podcast"

    @property
    def kinds(self) -> list[SourceKind]:
        return [SourceKind.PODCAST]

    def is_valid_url(self, url: str) -> bool:
        return is_podcast_url(url)

    async def detect_url(self, url: str) -> DetectionResult:
        platform = detect_podcast_platform(url)
        if platform in (PodcastPlatform.SPOTIFY, PodcastPlatform.APPLE, PodcastPlatform.AMAZON):
            return DetectionResult(
                detected=True,
                kind=SourceKind.PODCAST,
                metadata={"platform": platform.value},
            )

        if platform == PodcastPlatform.YOUTUBE:
            # Only a channel's podcasts tab is a podcast
            hints = classify(url).hints
            if not hints.get("podcasts_tab"):
                return DetectionResult.miss()
            return DetectionResult(
                detected=True,
                kind=SourceKind.PODCAST,
                metadata={"platform": platform.value, "handle": hints["handle"]},
            )

        if not self.is_valid_url(url) and platform != PodcastPlatform.RSS:
            return DetectionResult.miss()

        response = await self.fetcher.fetch(url, mode="feed")
        if not response.ok:
            return DetectionResult.miss()

        validation = validate_feed(response.text, response.content_type)
        if not validation.is_podcast:
            return DetectionResult.miss()

        return DetectionResult(
            detected=True,
            kind=SourceKind.PODCAST,
            transformed_url=response.final_url,
            suggested_title=validation.title or domain_title(url),
            metadata={"platform": PodcastPlatform.RSS.value},
        )

    async def resolve(self, url: str) -> FeedDescriptor | None:
        """Resolve a podcast URL to its feed.

        Raises:
            UnsupportedPlatform: If the platform publishes no feed and the
                user has to supply the RSS URL by hand.
        """
        result = await self.resolver.resolve(url)
        if result.requires_manual_feed:
            raise UnsupportedPlatform(result.platform.value, result.error or "Podcast feed must be added manually")
        if not result.success or not result.feed_url:
            logger.info(f"Podcast resolution failed for {url}: {result.error}")
            return None

        return FeedDescriptor(
            kind=SourceKind.PODCAST,
            feed_url=result.feed_url,
            title=result.title or domain_title(url),
            description=result.description,
            avatar_url=result.image_url,
            resolver=self.name,
            metadata={
                "platform": result.platform.value,
                "author": result.author,
                "is_podcast": result.is_podcast,
            },
        )

    async def fetch_feed(self, source: Source) -> ParsedFeed:
        response = await self.fetcher.fetch(source.url, mode="feed")
        feed = parse_feed_document(response)

        if is_youtube_url(source.url):
            return episodes_from_videos(parse_youtube_feed(feed, source.url))

        feed_info = feed.feed
        feed_image = None
        if feed_info.get("image"):
            feed_image = feed_info.image.get("href") or feed_info.image.get("url")

        items = []
        for entry in feed.entries:
            item = parse_episode_entry(entry, feed_image)
            if item is None:
                logger.debug(f"Skipping entry without audio in {source.url}")
                continue
            items.append(item)

        return ParsedFeed(
            title=strip_tags(feed_info.get("title", "")) or domain_title(source.url),
            description=strip_tags(feed_info.get("subtitle", feed_info.get("description", ""))) or None,
            link=feed_info.get("link"),
            image_url=feed_image,
            items=items,
        )

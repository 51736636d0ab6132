"""Resolution of podcast URLs from directory platforms.

Spotify and Amazon Music publish no feeds, so they resolve to an
explicit "add the RSS feed manually" result. Apple exposes its feed
URLs through the public iTunes lookup API. YouTube podcasts reuse the
channel podcast-tab detection of the YouTube handler.
"""

import logging
import re
from typing import TYPE_CHECKING
from urllib.parse import quote

from multifeed.classifier import is_podcast_host, is_youtube_url, normalize_host
from multifeed.errors import NetworkError, ParseFailure
from multifeed.fetcher import FeedFetcher
from multifeed.models import PodcastPlatform, PodcastPlatformResult
from multifeed.sources.rss.validation import validate_feed

if TYPE_CHECKING:
    from multifeed.sources.youtube.handler import YouTubeHandler

logger = logging.getLogger(__name__)


APPLE_ID_PATTERN = re.compile(r"podcasts\.apple\.com/[a-z]{2}/podcast/[^/]+/id(\d+)")
SPOTIFY_SHOW_PATTERN = re.compile(r"open\.spotify\.com/show/([a-zA-Z0-9]+)")

ITUNES_LOOKUP_URL = "https://itunes.apple.com/lookup?id={id}&entity=podcast"
SPOTIFY_OEMBED_URL = "https://open.spotify.com/oembed?url={url}"

SPOTIFY_UNSUPPORTED = (
    "Spotify does not provide public RSS feeds. "
    "Find the podcast's RSS feed on its website or another directory and add that instead."
)
AMAZON_UNSUPPORTED = (
    "Amazon Music does not provide public RSS feeds. "
    "Find the podcast's RSS feed on its website or another directory and add that instead."
)


def detect_podcast_platform(url: str) -> PodcastPlatform:
    """Platform a podcast URL belongs to, from host and path only."""
    host = normalize_host(url)
    path = url.lower()

    if host == "open.spotify.com":
        return PodcastPlatform.SPOTIFY
    if host == "podcasts.apple.com":
        return PodcastPlatform.APPLE
    if host.startswith("music.amazon.") and "/podcasts/" in path:
        return PodcastPlatform.AMAZON
    if is_youtube_url(url):
        return PodcastPlatform.YOUTUBE
    if is_podcast_host(url):
        return PodcastPlatform.RSS
    if path.endswith((".xml", ".rss")) or "/feed" in path or "/rss" in path:
        return PodcastPlatform.RSS
    return PodcastPlatform.UNKNOWN


def is_podcast_url(url: str) -> bool:
    """True for directory platforms, known podcast hosts or podcast-looking URLs."""
    platform = detect_podcast_platform(url)
    if platform in (PodcastPlatform.SPOTIFY, PodcastPlatform.APPLE, PodcastPlatform.AMAZON):
        return True
    if is_podcast_host(url):
        return True
    return "podcast" in url.lower()


class PodcastResolver:
    """Resolve a podcast URL from any supported platform to its feed."""

    def __init__(self, fetcher: FeedFetcher, youtube: "YouTubeHandler | None" = None):
        self.fetcher = fetcher
        self.youtube = youtube

    async def resolve(
        self,
        url: str,
        youtube_resolver: "YouTubeHandler | None" = None,
    ) -> PodcastPlatformResult:
        """Resolve a URL; never raises for network or parse problems."""
        platform = detect_podcast_platform(url)
        logger.info(f"Resolving podcast URL {url} (platform: {platform.value})")

        try:
            match platform:
                case PodcastPlatform.APPLE:
                    return await self.resolve_apple(url)
                case PodcastPlatform.SPOTIFY:
                    return await self.resolve_spotify(url)
                case PodcastPlatform.AMAZON:
                    return self.resolve_amazon(url)
                case PodcastPlatform.YOUTUBE:
                    return await self.resolve_youtube(url, youtube_resolver or self.youtube)
                case _:
                    return await self.resolve_rss(url)
        except (NetworkError, ParseFailure) as e:
            logger.warning(f"Podcast resolution failed for {url}: {e}")
            return PodcastPlatformResult(success=False, platform=platform, error=str(e))

    async def resolve_apple(self, url: str) -> PodcastPlatformResult:
        match = APPLE_ID_PATTERN.search(url)
        if not match:
            return PodcastPlatformResult(
                success=False,
                platform=PodcastPlatform.APPLE,
                error="Could not find a podcast ID in the Apple Podcasts URL",
            )

        podcast_id = match.group(1)
        response, data = await self.fetcher.fetch_json(ITUNES_LOOKUP_URL.format(id=podcast_id))
        if data is None:
            return PodcastPlatformResult(
                success=False,
                platform=PodcastPlatform.APPLE,
                error=f"Apple lookup failed with HTTP {response.status}",
            )

        results = data.get("results") or []
        if not results:
            return PodcastPlatformResult(
                success=False,
                platform=PodcastPlatform.APPLE,
                error="Podcast not found in Apple Podcasts",
            )

        podcast = results[0]
        feed_url = podcast.get("feedUrl")
        if not feed_url:
            return PodcastPlatformResult(
                success=False,
                platform=PodcastPlatform.APPLE,
                title=podcast.get("trackName") or podcast.get("collectionName"),
                error="This podcast has no public RSS feed",
                requires_manual_feed=True,
            )

        return PodcastPlatformResult(
            success=True,
            platform=PodcastPlatform.APPLE,
            feed_url=feed_url,
            title=podcast.get("trackName") or podcast.get("collectionName"),
            description=podcast.get("description"),
            image_url=podcast.get("artworkUrl600") or podcast.get("artworkUrl100"),
            author=podcast.get("artistName"),
        )

    async def resolve_spotify(self, url: str) -> PodcastPlatformResult:
        """Spotify never resolves; the oEmbed title is reported when reachable."""
        title = None
        if SPOTIFY_SHOW_PATTERN.search(url):
            try:
                _, data = await self.fetcher.fetch_json(SPOTIFY_OEMBED_URL.format(url=quote(url, safe="")))
                if data:
                    title = data.get("title")
            except (NetworkError, ParseFailure) as e:
                logger.info(f"Spotify oEmbed unavailable for {url}: {e}")

        return PodcastPlatformResult(
            success=False,
            platform=PodcastPlatform.SPOTIFY,
            title=title,
            error=SPOTIFY_UNSUPPORTED,
            requires_manual_feed=True,
        )

    def resolve_amazon(self, url: str) -> PodcastPlatformResult:
        return PodcastPlatformResult(
            success=False,
            platform=PodcastPlatform.AMAZON,
            error=AMAZON_UNSUPPORTED,
            requires_manual_feed=True,
        )

    async def resolve_youtube(self, url: str, youtube: "YouTubeHandler | None") -> PodcastPlatformResult:
        if youtube is None:
            return PodcastPlatformResult(
                success=False,
                platform=PodcastPlatform.YOUTUBE,
                error="YouTube resolution is not available",
            )

        info = await youtube.resolve_channel(url)
        if info is None:
            return PodcastPlatformResult(
                success=False,
                platform=PodcastPlatform.YOUTUBE,
                error="Could not resolve YouTube channel. Try the channel URL directly.",
            )

        primary = info.primary_playlist
        if primary is not None:
            title = primary.title if primary.title != "Podcast" else info.channel_name
            feed_url = primary.feed_url
        else:
            title = info.channel_name
            feed_url = info.feed_url

        return PodcastPlatformResult(
            success=True,
            platform=PodcastPlatform.YOUTUBE,
            feed_url=feed_url,
            title=title,
            description=info.description,
            image_url=info.avatar_url,
            author=info.channel_name,
            is_podcast=info.has_podcasts,
        )

    async def resolve_rss(self, url: str) -> PodcastPlatformResult:
        response = await self.fetcher.fetch(url, mode="feed")
        if not response.ok:
            return PodcastPlatformResult(
                success=False,
                platform=PodcastPlatform.RSS,
                error=f"HTTP {response.status} fetching {url}",
            )

        validation = validate_feed(response.text, response.content_type)
        if not validation.is_feed:
            return PodcastPlatformResult(
                success=False,
                platform=PodcastPlatform.RSS,
                error="URL does not point to a valid RSS feed",
            )

        return PodcastPlatformResult(
            success=True,
            platform=PodcastPlatform.RSS,
            feed_url=response.final_url,
            title=validation.title,
            description=validation.description,
            is_podcast=validation.is_podcast,
        )

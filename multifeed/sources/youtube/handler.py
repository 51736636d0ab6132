"""YouTube handler that scrapes public pages, no Data API key needed.

Supports:
- Channels: youtube.com/channel/UC..., youtube.com/@handle, /c/name, /user/name
- Feeds: youtube.com/feeds/videos.xml?channel_id=... or ?playlist_id=...
- Playlists: youtube.com/playlist?list=PL...
- Single videos: youtube.com/watch?v=..., youtu.be/... (subscribes to the owning channel)
"""

import asyncio
import logging
from dataclasses import dataclass, replace

from multifeed.classifier import YOUTUBE_HOSTS, classify, extract_handle, normalize_host
from multifeed.errors import NetworkError
from multifeed.extraction import first_match, first_value
from multifeed.fetcher import FeedFetcher
from multifeed.models import ChannelInfo, FeedDescriptor, Source, SourceKind
from multifeed.sources.base import DetectionResult, ParsedFeed, RawItem, SourceHandler
from multifeed.sources.rss.handler import parse_feed_document
from multifeed.sources.rss.parsing import parse_int
from multifeed.sources.youtube.feed import channel_feed_url, parse_youtube_feed, playlist_feed_url, watch_url
from multifeed.sources.youtube.podcasts import detect_channel_podcasts
from multifeed.sources.youtube.strategies import (
    AVATAR_STRATEGIES,
    CHANNEL_ID_STRATEGIES,
    CHANNEL_NAME_STRATEGIES,
    DESCRIPTION_STRATEGIES,
    FEED_TITLE_STRATEGIES,
    VIDEO_LENGTH_STRATEGIES,
    VIDEO_LIKE_STRATEGIES,
    VIDEO_OWNER_STRATEGIES,
    VIDEO_VIEW_STRATEGIES,
)

logger = logging.getLogger(__name__)


def channel_page_url(url: str) -> str | None:
    """Canonical page to scrape for a channel-identifying URL."""
    hints = classify(url).hints
    if hints.get("channel_id"):
        return f"https://www.youtube.com/channel/{hints['channel_id']}"
    if hints.get("handle"):
        return f"https://www.youtube.com/@{hints['handle']}"
    if hints.get("username"):
        legacy = "user" if "/user/" in url else "c"
        return f"https://www.youtube.com/{legacy}/{hints['username']}"
    return None


@dataclass
class VideoDetails:
    """Statistics scraped from a watch page. Values the page lacks stay None."""
    video_id: str
    duration_seconds: int | None = None
    view_count: int | None = None
    like_count: int | None = None


def parse_video_details(video_id: str, html: str) -> VideoDetails:
    return VideoDetails(
        video_id=video_id,
        duration_seconds=parse_int(first_value(VIDEO_LENGTH_STRATEGIES, html)),
        view_count=parse_int(first_value(VIDEO_VIEW_STRATEGIES, html)),
        like_count=parse_int(first_value(VIDEO_LIKE_STRATEGIES, html)),
    )


def merge_video_details(item: RawItem, details: VideoDetails) -> RawItem:
    """Overlay scraped statistics on a feed item, keeping feed values the page lacks."""
    video = item.payload
    payload = replace(
        video,
        duration_seconds=details.duration_seconds or video.duration_seconds,
        view_count=details.view_count if details.view_count is not None else video.view_count,
        like_count=details.like_count if details.like_count is not None else video.like_count,
    )
    return replace(item, payload=payload)


class YouTubeHandler(SourceHandler):
    """Handler for YouTube channels, playlists and single videos."""

    def __init__(self, fetcher: FeedFetcher, video_details: bool = True):
        self.fetcher = fetcher
        self.video_details_enabled = video_details

    @property
    def name(self) -> str:
        return "youtube"

    @property
    def kinds(self) -> list[SourceKind]:
        return [SourceKind.YOUTUBE_CHANNEL, SourceKind.YOUTUBE_VIDEO]

    def is_valid_url(self, url: str) -> bool:
        return normalize_host(url) in YOUTUBE_HOSTS

    async def detect_url(self, url: str) -> DetectionResult:
        if not self.is_valid_url(url):
            return DetectionResult.miss()

        classification = classify(url)
        try:
            feed_url = await self.feed_url_for(url)
        except NetworkError as e:
            logger.warning(f"Could not transform YouTube URL {url}: {e}")
            feed_url = None

        kind = classification.kind if classification.kind in self.kinds else SourceKind.YOUTUBE_CHANNEL
        return DetectionResult(
            detected=True,
            kind=kind,
            transformed_url=feed_url,
            metadata=dict(classification.hints),
        )

    async def feed_url_for(self, url: str) -> str | None:
        """Feed URL for any YouTube URL, scraping the page when needed."""
        hints = classify(url).hints
        if hints.get("feed"):
            return url
        if hints.get("playlist_id"):
            return playlist_feed_url(hints["playlist_id"])
        if hints.get("channel_id"):
            return channel_feed_url(hints["channel_id"])
        if hints.get("video_id"):
            channel_id = await self.video_owner(hints["video_id"])
            return channel_feed_url(channel_id) if channel_id else None

        page_url = channel_page_url(url) or url
        response = await self.fetcher.fetch(page_url, mode="html")
        if not response.ok:
            return None
        channel_id = first_value(CHANNEL_ID_STRATEGIES, response.text)
        return channel_feed_url(channel_id) if channel_id else None

    # =========================================================================
    # Resolution
    # =========================================================================

    async def resolve(self, url: str) -> FeedDescriptor | None:
        hints = classify(url).hints

        if hints.get("video_id"):
            return await self.resolve_from_video(hints["video_id"])

        if hints.get("playlist_id"):
            return await self._resolve_playlist(hints["playlist_id"])

        info = await self.resolve_channel(url)
        if info is None:
            return None
        return self._channel_descriptor(info, SourceKind.YOUTUBE_CHANNEL)

    async def resolve_channel(self, url: str, detect_podcasts: bool = True) -> ChannelInfo | None:
        """Scrape a channel page into a ChannelInfo.

        Only a missing channel ID is fatal; avatar, description, name
        and podcast detection degrade to empty values.
        """
        page_url = channel_page_url(url)
        if page_url is None:
            logger.info(f"Not a channel URL: {url}")
            return None

        try:
            response = await self.fetcher.fetch(page_url, mode="html")
        except NetworkError as e:
            logger.warning(f"Failed to fetch channel page {page_url}: {e}")
            return None

        if not response.ok:
            logger.info(f"Channel page {page_url} returned HTTP {response.status}")
            return None

        html = response.text
        match = first_match(CHANNEL_ID_STRATEGIES, html)
        if match is None:
            logger.warning(f"Could not resolve channel ID for {url}")
            return None
        channel_id = match.value

        original_handle = extract_handle(url)
        final_handle = extract_handle(response.final_url)
        was_redirected = bool(
            original_handle and final_handle and original_handle.lower() != final_handle.lower()
        )
        if was_redirected:
            logger.info(f"Handle @{original_handle} redirected to @{final_handle}")

        info = ChannelInfo(
            channel_id=channel_id,
            final_url=response.final_url,
            channel_name=await self._channel_name(channel_id, html),
            description=first_value(DESCRIPTION_STRATEGIES, html),
            avatar_url=first_value(AVATAR_STRATEGIES, html),
            original_handle=original_handle,
            final_handle=final_handle,
            was_redirected=was_redirected,
        )

        if detect_podcasts:
            info.podcast_playlists = await detect_channel_podcasts(
                self.fetcher, html, channel_id, final_handle
            )
            info.has_podcasts = bool(info.podcast_playlists)

        return info

    async def resolve_from_video(self, video_id: str) -> FeedDescriptor | None:
        """Resolve a single video to its owning channel's feed."""
        channel_id = await self.video_owner(video_id)
        if channel_id is None:
            return None

        info = await self.resolve_channel(f"https://www.youtube.com/channel/{channel_id}", detect_podcasts=False)
        if info is None:
            info = ChannelInfo(channel_id=channel_id, final_url=watch_url(video_id))

        descriptor = self._channel_descriptor(info, SourceKind.YOUTUBE_VIDEO)
        descriptor.metadata["video_id"] = video_id
        return descriptor

    async def video_owner(self, video_id: str) -> str | None:
        """Channel ID owning a video, scraped from the watch page."""
        url = watch_url(video_id)
        try:
            response = await self.fetcher.fetch(url, mode="html")
        except NetworkError as e:
            logger.warning(f"Failed to fetch video page {url}: {e}")
            return None
        if not response.ok:
            return None

        match = first_match(VIDEO_OWNER_STRATEGIES, response.text)
        if match is None:
            logger.warning(f"Could not find owning channel of video {video_id}")
            return None
        return match.value

    async def video_details(self, video_id: str) -> VideoDetails:
        """Duration, views and likes from the watch page. Fetch failures give empty details."""
        url = watch_url(video_id)
        try:
            response = await self.fetcher.fetch(url, mode="html")
        except NetworkError as e:
            logger.warning(f"Failed to fetch video page {url}: {e}")
            return VideoDetails(video_id)
        if not response.ok:
            logger.info(f"Video page {url} returned HTTP {response.status}")
            return VideoDetails(video_id)
        return parse_video_details(video_id, response.text)

    async def add_video_details(self, items: list[RawItem]) -> list[RawItem]:
        """Fetch every item's watch page concurrently and merge in its statistics."""
        details = await asyncio.gather(*(self.video_details(item.payload.video_id) for item in items))
        return [merge_video_details(item, found) for item, found in zip(items, details)]

    async def _channel_name(self, channel_id: str, html: str) -> str | None:
        """Channel title from the channel feed, else from the page."""
        try:
            response = await self.fetcher.fetch(channel_feed_url(channel_id), mode="feed")
            if response.ok:
                title = first_value(FEED_TITLE_STRATEGIES, response.text)
                if title:
                    return title
        except NetworkError as e:
            logger.warning(f"Failed to fetch feed for channel {channel_id}: {e}")
        return first_value(CHANNEL_NAME_STRATEGIES, html)

    async def _resolve_playlist(self, playlist_id: str) -> FeedDescriptor | None:
        feed_url = playlist_feed_url(playlist_id)
        try:
            response = await self.fetcher.fetch(feed_url, mode="feed")
        except NetworkError as e:
            logger.warning(f"Failed to fetch playlist feed {feed_url}: {e}")
            return None
        if not response.ok:
            return None

        return FeedDescriptor(
            kind=SourceKind.YOUTUBE_CHANNEL,
            feed_url=feed_url,
            title=first_value(FEED_TITLE_STRATEGIES, response.text) or f"Playlist {playlist_id}",
            resolver=self.name,
            metadata={"playlist_id": playlist_id},
        )

    def _channel_descriptor(self, info: ChannelInfo, kind: SourceKind) -> FeedDescriptor:
        return FeedDescriptor(
            kind=kind,
            feed_url=info.feed_url,
            title=info.channel_name or (f"@{info.final_handle}" if info.final_handle else info.channel_id),
            description=info.description,
            avatar_url=info.avatar_url,
            resolver=self.name,
            metadata={
                "channel_id": info.channel_id,
                "handle": info.final_handle,
                "original_handle": info.original_handle,
                "final_url": info.final_url,
                "was_redirected": info.was_redirected,
                "has_podcasts": info.has_podcasts,
                "podcast_playlists": [p.to_dict() for p in info.podcast_playlists],
            },
        )

    # =========================================================================
    # Fetching
    # =========================================================================

    async def fetch_feed(self, source: Source) -> ParsedFeed:
        feed_url = source.url
        if "/feeds/videos.xml" not in feed_url:
            feed_url = await self.feed_url_for(feed_url)
            if feed_url is None:
                raise NetworkError(source.url, f"Could not transform YouTube URL: {source.url}")

        response = await self.fetcher.fetch(feed_url, mode="feed")
        parsed = parse_youtube_feed(parse_feed_document(response), feed_url)
        if self.video_details_enabled and parsed.items:
            parsed.items = await self.add_video_details(parsed.items)
        return parsed

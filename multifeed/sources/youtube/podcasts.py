"""Podcast tab detection for YouTube channels.

YouTube can render an empty "Podcasts" tab on any channel, so the tab
title alone proves nothing. Detection fetches the channel's /podcasts
sub-page and requires playlist renderers without any "no content"
marker. When the sub-page is inconclusive, a playlist ID embedded in
the main page's tab metadata is used as a single placeholder playlist.
"""

import logging
import re

from multifeed.errors import NetworkError
from multifeed.extraction import ExtractionStrategy, first_value
from multifeed.fetcher import FeedFetcher
from multifeed.models import PodcastPlaylist
from multifeed.sources.youtube.strategies import PODCAST_TITLE_STRATEGIES

logger = logging.getLogger(__name__)


PODCAST_TAB_TITLES = [
    "Podcasts",
    "Pódcasts",
    "Balados",
    "Podcast",
    "Подкасты",
    "ポッドキャスト",
    "播客",
]

_TAB_TITLES = "|".join(re.escape(title) for title in PODCAST_TAB_TITLES)

TAB_TITLE_PATTERN = re.compile(rf'"title"\s*:\s*"(?:{_TAB_TITLES})"')
TAB_URL_PATTERN = re.compile(r'"url"\s*:\s*"/(?:@[\w.-]+|channel/UC[\w-]+|c/[\w.-]+|user/[\w.-]+)/podcasts"')

NEGATIVE_MARKERS = [
    "This channel doesn't have any content",
    "This channel doesn\\u0027t have any content",
    "This channel has no playlists",
    "This channel doesn't have any podcasts",
    "This channel doesn\\u0027t have any podcasts",
    "This page isn't available",
    "This page isn\\u0027t available",
    "404 Not Found",
]

PLAYLIST_RENDERER_MARKERS = [
    '"gridPlaylistRenderer"',
    '"playlistRenderer"',
    '"compactPlaylistRenderer"',
    "LOCKUP_CONTENT_TYPE_PODCAST",
    "LOCKUP_CONTENT_TYPE_PLAYLIST",
]

_RENDERER_START = re.compile(
    r'"(?:gridPlaylistRenderer|playlistRenderer|compactPlaylistRenderer|lockupViewModel)"\s*:\s*\{'
)
PLAYLIST_ID_PATTERN = re.compile(r'"(?:playlistId|contentId)"\s*:\s*"((?:PL|OLAK5uy_|UU|FL|VL)[\w-]{10,})"')

VIDEO_COUNT_STRATEGIES = [
    ExtractionStrategy("video_count", r'"videoCount"\s*:\s*"?(\d[\d,.]*)"?'),
    ExtractionStrategy(
        "video_count_text",
        r'"videoCountText"\s*:\s*\{\s*"(?:simpleText|runs)"\s*:\s*(?:\[\s*\{\s*"text"\s*:\s*)?"(\d[\d,.]*)',
    ),
    ExtractionStrategy(
        "episode_count_text",
        r'"(?:text|content)"\s*:\s*"(\d[\d,.]*)\s+(?:episodes?|videos?|episodios?|épisodes?)"',
        flags=re.IGNORECASE,
    ),
]

TAB_PLAYLIST_STRATEGIES = [
    ExtractionStrategy("podcasts_tab_endpoint", r'/podcasts"[^{}]*?"playlistId"\s*:\s*"(PL[\w-]+)"'),
    ExtractionStrategy("podcasts_tab_title", rf'"title"\s*:\s*"(?:{_TAB_TITLES})"[^{{}}]*?"playlistId"\s*:\s*"(PL[\w-]+)"'),
]

PLACEHOLDER_TITLE = "Podcast"

# Chunk size scanned after a renderer start when no later renderer bounds it
_MAX_RENDERER_CHUNK = 6000


def has_podcast_tab(html: str) -> bool:
    """True if the channel page advertises a podcasts tab (in any locale)."""
    return bool(TAB_TITLE_PATTERN.search(html) or TAB_URL_PATTERN.search(html))


def has_negative_markers(html: str) -> bool:
    return any(marker in html for marker in NEGATIVE_MARKERS)


def has_playlist_markers(html: str) -> bool:
    return any(marker in html for marker in PLAYLIST_RENDERER_MARKERS)


def _parse_count(value: str | None) -> int:
    if not value:
        return 0
    digits = re.sub(r"[^\d]", "", value)
    return int(digits) if digits else 0


def _renderer_chunks(html: str) -> list[str]:
    starts = [m.start() for m in _RENDERER_START.finditer(html)]
    chunks = []
    for i, start in enumerate(starts):
        end = starts[i + 1] if i + 1 < len(starts) else start + _MAX_RENDERER_CHUNK
        chunks.append(html[start:min(end, start + _MAX_RENDERER_CHUNK)])
    return chunks


def sort_playlists(playlists: list[PodcastPlaylist]) -> list[PodcastPlaylist]:
    """Most episodes first; ties broken by playlist ID."""
    return sorted(playlists, key=lambda p: (-p.video_count, p.playlist_id))


def extract_podcast_playlists(html: str) -> list[PodcastPlaylist]:
    """All playlists on a podcasts sub-page, deduplicated and ordered.

    The first playlist in the result is the channel's primary podcast.
    """
    found: dict[str, PodcastPlaylist] = {}
    for chunk in _renderer_chunks(html):
        match = PLAYLIST_ID_PATTERN.search(chunk)
        if not match:
            continue
        playlist_id = match.group(1)
        title = first_value(PODCAST_TITLE_STRATEGIES, chunk) or PLACEHOLDER_TITLE
        count = _parse_count(first_value(VIDEO_COUNT_STRATEGIES, chunk))

        existing = found.get(playlist_id)
        if existing is None:
            found[playlist_id] = PodcastPlaylist(playlist_id=playlist_id, title=title, video_count=count)
        else:
            if count > existing.video_count:
                existing.video_count = count
            if existing.title == PLACEHOLDER_TITLE and title != PLACEHOLDER_TITLE:
                existing.title = title

    return sort_playlists(list(found.values()))


def tab_fallback_playlist(html: str) -> PodcastPlaylist | None:
    """Single placeholder playlist embedded in the main page's tab metadata."""
    playlist_id = first_value(TAB_PLAYLIST_STRATEGIES, html)
    if not playlist_id:
        return None
    return PodcastPlaylist(playlist_id=playlist_id, title=PLACEHOLDER_TITLE, video_count=0)


def evaluate_podcasts(main_html: str, podcasts_html: str | None) -> list[PodcastPlaylist]:
    """Decide which podcast playlists a channel really has.

    podcasts_html is None when the sub-page could not be fetched.
    Returns an empty list when the channel has no podcasts.
    """
    if not has_podcast_tab(main_html):
        return []

    if podcasts_html is not None:
        if has_negative_markers(podcasts_html):
            return []
        if has_playlist_markers(podcasts_html):
            playlists = extract_podcast_playlists(podcasts_html)
            if playlists:
                return playlists

    fallback = tab_fallback_playlist(main_html)
    return [fallback] if fallback else []


def podcasts_page_url(channel_id: str, handle: str | None = None) -> str:
    if handle:
        return f"https://www.youtube.com/@{handle}/podcasts"
    return f"https://www.youtube.com/channel/{channel_id}/podcasts"


async def detect_channel_podcasts(
    fetcher: FeedFetcher,
    main_html: str,
    channel_id: str,
    handle: str | None = None,
) -> list[PodcastPlaylist]:
    """Confirm a channel's podcasts tab against its sub-page."""
    if not has_podcast_tab(main_html):
        return []

    url = podcasts_page_url(channel_id, handle)
    podcasts_html = None
    try:
        response = await fetcher.fetch(url, mode="html")
        if response.ok:
            podcasts_html = response.text
        else:
            logger.info(f"Podcasts page {url} returned HTTP {response.status}")
    except NetworkError as e:
        logger.warning(f"Failed to fetch podcasts page {url}: {e}")

    playlists = evaluate_podcasts(main_html, podcasts_html)
    logger.debug(f"Channel {channel_id}: {len(playlists)} podcast playlist(s)")
    return playlists

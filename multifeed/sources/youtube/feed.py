"""Parsing of YouTube's public Atom video feeds."""

import re
from typing import Any

import feedparser

from multifeed.classifier import extract_video_id
from multifeed.extraction import strip_tags
from multifeed.models import VideoPayload
from multifeed.sources.base import ParsedFeed, RawItem
from multifeed.sources.rss.parsing import parse_date, parse_int, youtube_thumbnail


def channel_feed_url(channel_id: str) -> str:
    return f"https://www.youtube.com/feeds/videos.xml?channel_id={channel_id}"


def playlist_feed_url(playlist_id: str) -> str:
    return f"https://www.youtube.com/feeds/videos.xml?playlist_id={playlist_id}"


def watch_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"


def video_id_for(entry: dict[str, Any]) -> str | None:
    """Video ID from yt:videoId, the entry ID ("yt:video:<id>"), or the link."""
    if entry.get("yt_videoid"):
        return entry["yt_videoid"]
    if entry.get("id"):
        match = re.search(r"video:([\w-]+)", entry["id"])
        if match:
            return match.group(1)
    if entry.get("link"):
        return extract_video_id(entry["link"])
    return None


def best_thumbnail(entry: dict[str, Any], video_id: str) -> str:
    """Widest media:thumbnail, else the standard maxresdefault image."""
    thumbnails = [t for t in entry.get("media_thumbnail", []) if t.get("url")]
    if thumbnails:
        widest = max(thumbnails, key=lambda t: parse_int(t.get("width")) or 0)
        return widest["url"]
    return youtube_thumbnail(video_id)


def parse_video_entry(entry: dict[str, Any], feed_title: str | None = None) -> RawItem | None:
    """Convert one feed entry to a RawItem, or None if it has no video ID."""
    video_id = video_id_for(entry)
    if not video_id:
        return None

    duration = None
    if entry.get("media_content"):
        duration = parse_int(entry["media_content"][0].get("duration"))

    statistics = entry.get("media_statistics") or {}

    payload = VideoPayload(
        video_id=video_id,
        channel_id=entry.get("yt_channelid"),
        channel_name=entry.get("author") or feed_title,
        description=entry.get("summary") or None,
        thumbnail_url=best_thumbnail(entry, video_id),
        duration_seconds=duration,
        view_count=parse_int(statistics.get("views")),
    )

    return RawItem(
        native_id=video_id,
        url=entry.get("link") or watch_url(video_id),
        title=strip_tags(entry.get("title", "")),
        published_at=parse_date(entry),
        payload=payload,
    )


def parse_youtube_feed(feed: feedparser.FeedParserDict, source_url: str) -> ParsedFeed:
    """Build a ParsedFeed of VideoPayload items from a parsed YouTube feed."""
    feed_title = feed.feed.get("title") or None
    items = []
    for entry in feed.entries:
        item = parse_video_entry(entry, feed_title)
        if item is not None:
            items.append(item)

    return ParsedFeed(
        title=feed_title or "YouTube channel",
        link=feed.feed.get("link") or source_url,
        items=items,
    )

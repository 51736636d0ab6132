"""Helpers for turning feedparser entries into RawItems."""

import hashlib
import math
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

from multifeed.extraction import strip_tags, truncate


EXCERPT_LENGTH = 300
WORDS_PER_MINUTE = 250

VIDEO_EMBED_HOSTS = ("youtube.com", "youtu.be", "vimeo.com", "dailymotion.com")


def parse_date(entry: dict[str, Any]) -> datetime | None:
    """Parse a date from a feed entry, as an aware UTC datetime."""
    for field in ["published_parsed", "updated_parsed", "created_parsed"]:
        if field in entry and entry[field]:
            try:
                return datetime(*entry[field][:6], tzinfo=timezone.utc)
            except (TypeError, ValueError):
                pass

    for field in ["published", "updated", "created"]:
        if field in entry and entry[field]:
            try:
                parsed = parsedate_to_datetime(entry[field])
            except (TypeError, ValueError):
                continue
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed.astimezone(timezone.utc)

    return None


def generate_entry_id(entry: dict[str, Any], feed_url: str) -> str:
    """Stable native ID for a feed entry: GUID, then link, then a title hash."""
    if entry.get("id"):
        return entry["id"]
    if entry.get("link"):
        return entry["link"]
    title = entry.get("title", "")
    content = f"{feed_url}:{title}"
    return hashlib.sha256(content.encode()).hexdigest()[:16]


def entry_html(entry: dict[str, Any]) -> str:
    """Richest HTML body available: content:encoded, then summary."""
    if entry.get("content"):
        return entry["content"][0].get("value", "")
    if entry.get("summary"):
        return entry["summary"]
    if entry.get("description"):
        return entry["description"]
    return ""


def make_excerpt(text: str | None) -> str | None:
    if not text:
        return None
    clean = strip_tags(text)
    if not clean:
        return None
    if len(clean) > EXCERPT_LENGTH:
        return truncate(clean, EXCERPT_LENGTH - 3, "...")
    return clean


def word_count(text: str) -> int:
    return len(strip_tags(text).split())


def reading_time(text: str) -> int:
    """Estimated reading time in minutes at 250 words per minute."""
    return math.ceil(word_count(text) / WORDS_PER_MINUTE)


def parse_duration(value: Any) -> int | None:
    """Parse an itunes:duration value ("3600", "1:02:03", "62:03") to seconds."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return int(value)

    value = str(value).strip()
    if re.fullmatch(r"\d+", value):
        return int(value)

    parts = value.split(":")
    try:
        numbers = [int(p) for p in parts]
    except ValueError:
        return None

    if len(numbers) == 3:
        return numbers[0] * 3600 + numbers[1] * 60 + numbers[2]
    if len(numbers) == 2:
        return numbers[0] * 60 + numbers[1]
    return None


def parse_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def _first(values: Any) -> dict[str, Any]:
    if isinstance(values, list):
        return values[0] if values else {}
    return values or {}


def entry_image(entry: dict[str, Any]) -> str | None:
    """itunes:image (exposed by feedparser as entry.image.href)."""
    image = entry.get("image")
    if isinstance(image, dict):
        return image.get("href") or image.get("url")
    if isinstance(image, str):
        return image
    return None


def extract_media(entry: dict[str, Any]) -> dict[str, Any]:
    """Featured media of an article entry.

    Tried in order: media:content, enclosure, itunes:image,
    media:thumbnail, then iframe/video/img tags inside the body.
    """
    media: dict[str, Any] = {"media_type": "none", "media_url": None, "thumbnail_url": None, "media_duration": None}
    thumbnail = _first(entry.get("media_thumbnail")).get("url")

    content = _first(entry.get("media_content"))
    if content.get("url"):
        mime = (content.get("type") or "").lower()
        medium = (content.get("medium") or "").lower()
        if mime.startswith("video/") or medium == "video":
            media.update(media_type="video", media_url=content["url"], thumbnail_url=thumbnail,
                         media_duration=parse_int(content.get("duration")))
        elif mime.startswith("image/") or medium == "image":
            media.update(media_type="image", media_url=content["url"])
        elif mime.startswith("audio/"):
            media.update(media_type="audio", media_url=content["url"])
        if media["media_type"] != "none":
            return media

    enclosure = _first(entry.get("enclosures"))
    enclosure_url = enclosure.get("href") or enclosure.get("url")
    if enclosure_url:
        mime = (enclosure.get("type") or "").lower()
        if mime.startswith("video/"):
            media.update(media_type="video", media_url=enclosure_url, thumbnail_url=thumbnail)
            return media
        if mime.startswith("image/"):
            media.update(media_type="image", media_url=enclosure_url)
            return media
        if mime.startswith("audio/"):
            media.update(media_type="audio", media_url=enclosure_url, thumbnail_url=entry_image(entry))
            return media

    image = entry_image(entry)
    if image:
        media.update(media_type="image", media_url=image)
        return media

    if thumbnail:
        media.update(media_type="image", media_url=thumbnail)
        return media

    html = entry_html(entry)
    iframe = re.search(r'<iframe[^>]+src="([^"]+)"', html)
    if iframe and any(host in iframe.group(1) for host in VIDEO_EMBED_HOSTS):
        src = iframe.group(1)
        media.update(media_type="video", media_url=src)
        video_id = re.search(r"(?:youtube\.com/embed/|youtu\.be/)([^?&\"]+)", src)
        if video_id:
            media["thumbnail_url"] = youtube_thumbnail(video_id.group(1))
        return media

    video = re.search(r'<video[^>]+src="([^"]+)"', html)
    if video:
        media.update(media_type="video", media_url=video.group(1))
        return media

    img = re.search(r'<img[^>]+src="([^">]+)"', html)
    if img:
        media.update(media_type="image", media_url=img.group(1))

    return media


def youtube_thumbnail(video_id: str) -> str:
    return f"https://img.youtube.com/vi/{video_id}/maxresdefault.jpg"

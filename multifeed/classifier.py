"""URL Classifier - structural source-kind detection with no network I/O.

Patterns are tried from most to least specific. A URL that matches no
platform falls through to the generic website kind with matched=False,
which routes it to the RSS handler.
"""

import re
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import parse_qs, urlparse

from multifeed.models import SourceKind


YOUTUBE_HOSTS = ("youtube.com", "m.youtube.com", "music.youtube.com", "youtu.be")

VIDEO_ID_PATTERNS = [
    re.compile(r"youtube\.com/watch\?(?:.*&)?v=([\w-]{11})"),
    re.compile(r"youtu\.be/([\w-]{11})"),
    re.compile(r"youtube\.com/(?:shorts|embed|live|v)/([\w-]{11})"),
]

CHANNEL_ID_URL = re.compile(r"youtube\.com/channel/(UC[\w-]+)")
HANDLE_URL = re.compile(r"youtube\.com/@([\w.-]+)")
LEGACY_URL = re.compile(r"youtube\.com/(?:c|user)/([\w.-]+)")

TWITTER_PATTERNS = [re.compile(r"twitter\.com/(\w+)"), re.compile(r"(?:^|[/.])x\.com/(\w+)")]
INSTAGRAM_PATTERNS = [re.compile(r"instagram\.com/([\w.]+)"), re.compile(r"instagr\.am/([\w.]+)")]
TIKTOK_PATTERNS = [re.compile(r"tiktok\.com/@([\w.]+)"), re.compile(r"vm\.tiktok\.com/")]

PODCAST_PLATFORM_PATTERNS = [
    ("spotify", re.compile(r"open\.spotify\.com/(?:show|episode)/")),
    ("apple", re.compile(r"podcasts\.apple\.com/")),
    ("amazon", re.compile(r"music\.amazon\.[a-z.]+/podcasts/")),
]

RSS_PATTERNS = [
    re.compile(r"\.rss$"),
    re.compile(r"\.xml$"),
    re.compile(r"/feed/?$"),
    re.compile(r"/rss/?$"),
    re.compile(r"/atom/?$"),
    re.compile(r"(?:feed|rss|atom)\.xml"),
]


PODCAST_HOSTS = (
    "anchor.fm",
    "buzzsprout.com",
    "transistor.fm",
    "simplecast.com",
    "megaphone.fm",
    "art19.com",
    "podbean.com",
    "spreaker.com",
    "libsyn.com",
    "soundcloud.com",
    "audioboom.com",
    "overcast.fm",
    "pocketcasts.com",
    "castbox.fm",
    "stitcher.com",
    "ivoox.com",
)


@dataclass
class Classification:
    """Result of classifying a URL.

    matched is False for the generic fallback (a classification miss).
    """
    matched: bool
    kind: SourceKind
    hints: dict[str, Any] = field(default_factory=dict)


def normalize_host(url: str) -> str:
    """Lowercased host without a leading www."""
    host = urlparse(url).netloc.lower()
    if host.startswith("www."):
        host = host[4:]
    return host


def _ensure_scheme(url: str) -> str:
    url = url.strip()
    if not re.match(r"^[a-zA-Z][\w+.-]*://", url):
        url = f"https://{url}"
    return url


def is_youtube_url(url: str) -> bool:
    host = normalize_host(_ensure_scheme(url))
    return host in YOUTUBE_HOSTS


def is_podcast_host(url: str) -> bool:
    """True for hosts that only serve podcasts (including their subdomains)."""
    host = normalize_host(_ensure_scheme(url))
    return any(host == h or host.endswith(f".{h}") for h in PODCAST_HOSTS)


def extract_video_id(url: str) -> str | None:
    """Video ID from a watch, short, embed or youtu.be URL."""
    for pattern in VIDEO_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def extract_handle(url: str) -> str | None:
    """Channel handle (without @) from a youtube.com/@handle URL."""
    match = HANDLE_URL.search(url)
    return match.group(1) if match else None


def _classify_youtube(url: str) -> Classification:
    parsed = urlparse(url)
    query = parse_qs(parsed.query)

    video_id = extract_video_id(url)
    if video_id:
        return Classification(True, SourceKind.YOUTUBE_VIDEO, {"video_id": video_id})

    if parsed.path.startswith("/feeds/videos.xml"):
        hints: dict[str, Any] = {"feed": True}
        if "channel_id" in query:
            hints["channel_id"] = query["channel_id"][0]
        if "playlist_id" in query:
            hints["playlist_id"] = query["playlist_id"][0]
        return Classification(True, SourceKind.YOUTUBE_CHANNEL, hints)

    match = CHANNEL_ID_URL.search(url)
    if match:
        return Classification(True, SourceKind.YOUTUBE_CHANNEL, {"channel_id": match.group(1)})

    handle = extract_handle(url)
    if handle:
        hints = {"handle": handle}
        if re.search(r"/@[\w.-]+/podcasts", parsed.path):
            # The podcasts tab subscribes to the channel's podcast, not its uploads
            hints["podcasts_tab"] = True
            return Classification(True, SourceKind.PODCAST, hints)
        return Classification(True, SourceKind.YOUTUBE_CHANNEL, hints)

    match = LEGACY_URL.search(url)
    if match:
        return Classification(True, SourceKind.YOUTUBE_CHANNEL, {"username": match.group(1)})

    if parsed.path.startswith("/playlist") and "list" in query:
        return Classification(True, SourceKind.YOUTUBE_CHANNEL, {"playlist_id": query["list"][0]})

    return Classification(True, SourceKind.YOUTUBE_CHANNEL, {})


def _first_group(patterns: list[re.Pattern], url: str) -> tuple[bool, str | None]:
    for pattern in patterns:
        match = pattern.search(url)
        if match:
            return True, match.group(1) if match.groups() else None
    return False, None


def classify(url: str) -> Classification:
    """Classify a raw URL into a source kind from its structure alone."""
    url = _ensure_scheme(url)
    host = normalize_host(url)
    lowered = url.lower()

    if host in YOUTUBE_HOSTS:
        return _classify_youtube(url)

    for kind, patterns in (
        (SourceKind.TWITTER, TWITTER_PATTERNS),
        (SourceKind.INSTAGRAM, INSTAGRAM_PATTERNS),
        (SourceKind.TIKTOK, TIKTOK_PATTERNS),
    ):
        matched, username = _first_group(patterns, lowered)
        if matched:
            hints = {"username": username} if username else {}
            return Classification(True, kind, hints)

    for platform, pattern in PODCAST_PLATFORM_PATTERNS:
        if pattern.search(lowered):
            return Classification(True, SourceKind.PODCAST, {"platform": platform})

    if is_podcast_host(url):
        return Classification(True, SourceKind.PODCAST, {"platform": "rss"})

    path = urlparse(lowered).path
    if any(pattern.search(path) for pattern in RSS_PATTERNS):
        return Classification(True, SourceKind.RSS, {"feed": True})

    return Classification(False, SourceKind.WEBSITE, {})

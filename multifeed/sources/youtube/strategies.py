"""Ordered extraction strategies for YouTube channel and video pages.

Every list runs from the most structurally specific marker to the
loosest one. YouTube markup is undocumented and changes without notice;
each strategy is tested on its own against fixture HTML.
"""

import re

from multifeed.extraction import (
    ExtractionStrategy,
    decode_entities,
    https_url,
    meta_content,
    unescape_json_string,
)


CHANNEL_ID = r"UC[0-9A-Za-z_-]+"


def _avatar_url(value: str) -> str:
    return https_url(unescape_json_string(value))


def _json_description(value: str) -> str | None:
    text = unescape_json_string(value).replace("\r", "")
    return re.sub(r"\s+", " ", text).strip() or None


def _json_text(value: str) -> str | None:
    return decode_entities(unescape_json_string(value)).strip() or None


CHANNEL_ID_STRATEGIES = [
    ExtractionStrategy("external_id", rf'"externalId"\s*:\s*"({CHANNEL_ID})"'),
    ExtractionStrategy(
        "canonical_link",
        rf'<link[^>]+rel=["\']canonical["\'][^>]+href=["\']https?://(?:www\.)?youtube\.com/channel/({CHANNEL_ID})["\']',
        flags=re.IGNORECASE,
    ),
    ExtractionStrategy("browse_id", rf'"browseId"\s*:\s*"({CHANNEL_ID})"[^}}]*"canonicalBaseUrl"'),
    ExtractionStrategy("vanity_channel_url", rf'"channelId"\s*:\s*"({CHANNEL_ID})"[^}}]*"vanityChannelUrl"'),
    ExtractionStrategy("header_channel_id", rf'"header"[^}}]*"channelId"\s*:\s*"({CHANNEL_ID})"'),
    ExtractionStrategy("bare_channel_id", rf'"channelId"\s*:\s*"({CHANNEL_ID})"'),
]

# Owning channel of a single video page
VIDEO_OWNER_STRATEGIES = [
    ExtractionStrategy(
        "owner_channel_name",
        rf'"ownerChannelName"\s*:\s*"[^"]*"[^}}]*"externalChannelId"\s*:\s*"({CHANNEL_ID})"'
        rf'|"externalChannelId"\s*:\s*"({CHANNEL_ID})"[^}}]*"ownerChannelName"',
        group=None,
    ),
    ExtractionStrategy(
        "owner_urls",
        rf'"channelId"\s*:\s*"({CHANNEL_ID})"[^}}]*"ownerUrls"'
        rf'|"ownerUrls"[^}}]*"channelId"\s*:\s*"({CHANNEL_ID})"',
        group=None,
    ),
    ExtractionStrategy("external_channel_id", rf'"externalChannelId"\s*:\s*"({CHANNEL_ID})"'),
    ExtractionStrategy("any_channel_id", rf'"channelId"\s*:\s*"({CHANNEL_ID})"'),
]

AVATAR_STRATEGIES = [
    ExtractionStrategy(
        "json_avatar",
        r'"avatar"\s*:\s*\{\s*"thumbnails"\s*:\s*\[\s*\{\s*"url"\s*:\s*"([^"]+)"',
        transform=_avatar_url,
    ),
    meta_content("og:image"),
]

DESCRIPTION_STRATEGIES = [
    meta_content("og:description"),
    meta_content("description", attr="name"),
    ExtractionStrategy("json_description", r'"description"\s*:\s*"([^"]{10,500})"', transform=_json_description),
]

# Title shapes inside one playlist renderer, most specific first
PODCAST_TITLE_STRATEGIES = [
    ExtractionStrategy("simple_text_title", r'"title"\s*:\s*\{\s*"simpleText"\s*:\s*"((?:[^"\\]|\\.)+)"', transform=_json_text),
    ExtractionStrategy("runs_title", r'"title"\s*:\s*\{\s*"runs"\s*:\s*\[\s*\{\s*"text"\s*:\s*"((?:[^"\\]|\\.)+)"', transform=_json_text),
    ExtractionStrategy("content_title", r'"title"\s*:\s*\{\s*"content"\s*:\s*"((?:[^"\\]|\\.)+)"', transform=_json_text),
]

FEED_TITLE_STRATEGIES = [
    ExtractionStrategy("feed_title", r"<feed[^>]*>[\s\S]*?<title>([^<]+)</title>", transform=lambda v: decode_entities(v).strip()),
]

CHANNEL_NAME_STRATEGIES = [
    meta_content("og:title"),
    ExtractionStrategy("json_channel_title", r'"channelMetadataRenderer"\s*:\s*\{\s*"title"\s*:\s*"((?:[^"\\]|\\.)+)"', transform=_json_text),
]

# Statistics embedded in a watch page's player response
VIDEO_LENGTH_STRATEGIES = [
    ExtractionStrategy("length_seconds", r'"lengthSeconds"\s*:\s*"(\d+)"'),
]

VIDEO_VIEW_STRATEGIES = [
    ExtractionStrategy("view_count", r'"viewCount"\s*:\s*"(\d+)"'),
]

VIDEO_LIKE_STRATEGIES = [
    ExtractionStrategy("like_count", r'"likeCount"\s*:\s*"?(\d+)"?'),
    ExtractionStrategy("likes", r'"likes"\s*:\s*"?(\d+)"?'),
    ExtractionStrategy("likes_count", r'"likesCount"\s*:\s*"?(\d+)"?'),
]

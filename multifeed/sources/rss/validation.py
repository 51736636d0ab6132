"""Structural feed validation and feed auto-discovery.

Works on raw text with regexes so that a body can be classified as a
feed (and as a podcast feed) without a full parse.
"""

import re
from dataclasses import dataclass
from urllib.parse import urljoin

from multifeed.extraction import (
    ExtractionStrategy,
    decode_entities,
    first_value,
    meta_content,
    strip_tags,
    truncate,
    unwrap_cdata,
)


DESCRIPTION_LIMIT = 500

ATOM_NAMESPACE = "http://www.w3.org/2005/Atom"

PODCAST_MARKERS = [
    re.compile(r"<enclosure[^>]+type=[\"']audio", re.IGNORECASE),
    re.compile(r"<itunes:"),
    re.compile(r"<podcast:"),
    re.compile(r"<media:content[^>]+type=[\"']audio", re.IGNORECASE),
]

XML_CONTENT_TYPES = ("xml", "rss", "atom")


def _clean_title(value: str) -> str | None:
    return decode_entities(unwrap_cdata(value.strip())).strip() or None


def _clean_description(value: str) -> str | None:
    text = strip_tags(unwrap_cdata(value.strip()))
    return truncate(text, DESCRIPTION_LIMIT) or None


TITLE_STRATEGIES = [
    ExtractionStrategy("title_element", r"<title[^>]*>([\s\S]*?)</title>",
                       transform=_clean_title, flags=re.IGNORECASE),
]

DESCRIPTION_STRATEGIES = [
    meta_content("og:description"),
    ExtractionStrategy("description_element", r"<description[^>]*>([\s\S]*?)</description>",
                       transform=_clean_description, flags=re.IGNORECASE),
    ExtractionStrategy("subtitle_element", r"<subtitle[^>]*>([\s\S]*?)</subtitle>",
                       transform=_clean_description, flags=re.IGNORECASE),
]


@dataclass
class FeedValidation:
    """Outcome of validating a body as a feed."""
    is_feed: bool
    is_podcast: bool = False
    title: str | None = None
    description: str | None = None
    content_type: str | None = None

    def to_dict(self) -> dict:
        return {
            "is_rss": self.is_feed,
            "is_podcast": self.is_podcast,
            "title": self.title,
            "description": self.description,
            "content_type": self.content_type,
        }


def has_feed_root(text: str) -> bool:
    """True if the body has an RSS, Atom or RDF root, or channel with items."""
    if re.search(r"<rss[\s>]", text, re.IGNORECASE):
        return True
    if re.search(r"<feed[\s>]", text, re.IGNORECASE) and ATOM_NAMESPACE in text:
        return True
    if re.search(r"<rdf:RDF", text, re.IGNORECASE):
        return True
    has_channel = re.search(r"<channel[\s>]", text, re.IGNORECASE)
    has_items = re.search(r"<(?:item|entry)[\s>]", text, re.IGNORECASE)
    return bool(has_channel and has_items)


def has_podcast_markers(text: str) -> bool:
    return any(pattern.search(text) for pattern in PODCAST_MARKERS)


def is_xml_content_type(content_type: str) -> bool:
    lowered = content_type.lower()
    return any(marker in lowered for marker in XML_CONTENT_TYPES)


def validate_feed(text: str, content_type: str | None = None) -> FeedValidation:
    """Classify a fetched body as not-a-feed, a feed, or a podcast feed."""
    if not text or not has_feed_root(text):
        return FeedValidation(is_feed=False, content_type=content_type)

    description = first_value(DESCRIPTION_STRATEGIES, text)
    return FeedValidation(
        is_feed=True,
        is_podcast=has_podcast_markers(text),
        title=first_value(TITLE_STRATEGIES, text),
        description=truncate(description, DESCRIPTION_LIMIT) if description else None,
        content_type=content_type,
    )


# =============================================================================
# Auto-discovery
# =============================================================================


ALTERNATE_FEED_TYPES = ("application/rss+xml", "application/atom+xml")

COMMON_FEED_PATHS = ["/feed", "/rss", "/atom.xml", "/feed.xml", "/rss.xml"]

# rel may hold several space-separated values
ALTERNATE_REL = re.compile(r'\brel=["\'][^"\']*\balternate\b[^"\']*["\']', re.IGNORECASE)


def discover_feed_url(html: str, page_url: str) -> str | None:
    """Find a <link rel="alternate"> feed URL in an HTML page.

    RSS links are preferred over Atom. Relative hrefs are resolved
    against page_url.
    """
    for feed_type in ALTERNATE_FEED_TYPES:
        escaped = re.escape(feed_type)
        for tag in re.findall(r"<link\b[^>]*>", html, re.IGNORECASE):
            if not re.search(rf'type=["\']{escaped}["\']', tag, re.IGNORECASE):
                continue
            if not ALTERNATE_REL.search(tag):
                continue
            href = re.search(r'href=["\']([^"\']+)["\']', tag, re.IGNORECASE)
            if href:
                return urljoin(page_url, decode_entities(href.group(1)))
    return None

"""Full-article content extraction for plain RSS items.

Feeds often ship only a teaser; the extractor fetches the article page
and keeps its readable body. When the feed already advertises a
featured image, the first matching image in the body is dropped so the
reader does not show it twice.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from difflib import SequenceMatcher
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup
from readability import Document

from multifeed.errors import NetworkError
from multifeed.fetcher import FeedFetcher
from multifeed.sources.rss.parsing import make_excerpt

logger = logging.getLogger(__name__)


IMAGE_EXTENSION = re.compile(r"\.(jpg|jpeg|png|gif|webp|svg)$", re.IGNORECASE)
SIZE_VARIANT = re.compile(r"[-_](thumb|small|medium|large|\d+x\d+)\.(jpg|jpeg|png|gif|webp)", re.IGNORECASE)

# Minimum lengths for a fuzzy image match to count
MIN_FILENAME_LENGTH = 5
MIN_CONTAINED_LENGTH = 20
FILENAME_SIMILARITY = 0.8


@dataclass
class ExtractedContent:
    """Readable body of an article page."""
    title: str | None
    content: str | None
    excerpt: str | None
    byline: str | None
    length: int = 0


class ContentExtractor(ABC):
    """Collaborator that turns an article URL into clean HTML."""

    @abstractmethod
    async def extract(self, url: str, featured_image_url: str | None = None) -> ExtractedContent | None:
        """Extract the article at url, or None if it cannot be read."""
        pass


def _image_filename(url: str) -> str:
    filename = urlparse(urljoin("http://example.com", url)).path.rsplit("/", 1)[-1]
    return IMAGE_EXTENSION.sub("", filename).lower()


def _normalize_image_url(url: str) -> str:
    path = urlparse(urljoin("http://example.com", url)).path.lower()
    return SIZE_VARIANT.sub(r".\2", path)


def is_same_image(src: str, srcset: str, featured_url: str) -> bool:
    """Fuzzy match of an <img> against the featured image URL."""
    featured = _normalize_image_url(featured_url)
    featured_name = _image_filename(featured_url)

    if src:
        normalized = _normalize_image_url(src)
        name = _image_filename(src)
        if normalized == featured:
            return True
        if featured_name and featured_name == name and len(featured_name) > MIN_FILENAME_LENGTH:
            return True
        if (normalized in featured or featured in normalized) and min(len(normalized), len(featured)) > MIN_CONTAINED_LENGTH:
            return True
        if (
            featured_name and name and len(featured_name) > MIN_FILENAME_LENGTH
            and SequenceMatcher(None, featured_name, name).ratio() > FILENAME_SIMILARITY
        ):
            return True

    for candidate in srcset.split(","):
        candidate = candidate.strip().split(" ")[0]
        if not candidate:
            continue
        normalized = _normalize_image_url(candidate)
        if normalized == featured or normalized in featured or featured in normalized:
            return True

    return False


def remove_featured_image(html: str, featured_image_url: str) -> str:
    """Drop the first image matching the featured image (and its empty wrapper)."""
    soup = BeautifulSoup(html, "html.parser")
    for img in soup.find_all("img"):
        src = img.get("src") or ""
        srcset = img.get("srcset") or ""
        if not src and not srcset:
            continue
        if not is_same_image(src, srcset, featured_image_url):
            continue

        parent = img.parent
        if parent is not None and parent.name not in ("body", "[document]") and (
            not parent.get_text(strip=True) or len(parent.find_all(recursive=False)) == 1
        ):
            parent.decompose()
        else:
            img.decompose()
        break
    return str(soup)


class ReadabilityExtractor(ContentExtractor):
    """Extractor backed by readability-lxml."""

    def __init__(self, fetcher: FeedFetcher):
        self.fetcher = fetcher

    async def extract(self, url: str, featured_image_url: str | None = None) -> ExtractedContent | None:
        try:
            response = await self.fetcher.fetch(url, mode="html")
        except NetworkError as e:
            logger.warning(f"Error fetching content from {url}: {e}")
            return None

        if not response.ok:
            logger.warning(f"Failed to fetch {url}: HTTP {response.status}")
            return None

        return self.parse(response.text, url, featured_image_url)

    def parse(self, html: str, url: str, featured_image_url: str | None = None) -> ExtractedContent | None:
        """Run readability on a fetched page."""
        try:
            document = Document(html, url=url)
            content = document.summary(html_partial=True)
            title = document.short_title() or None
        except (ValueError, RuntimeError) as e:
            logger.error(f"Error in readability parsing for {url}: {e}")
            return None

        if featured_image_url and content:
            content = remove_featured_image(content, featured_image_url)

        text = BeautifulSoup(content or "", "html.parser").get_text(" ", strip=True)
        page = BeautifulSoup(html, "html.parser")
        author = page.find("meta", attrs={"name": "author"})

        return ExtractedContent(
            title=title,
            content=content or None,
            excerpt=make_excerpt(text),
            byline=author.get("content") if author else None,
            length=len(text),
        )

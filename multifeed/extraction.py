"""Named extraction strategies for scraping undocumented page markup.

Each strategy wraps a single regex. Resolvers keep ordered lists of
strategies, most specific first, and stop at the first match:

    CHANNEL_ID_STRATEGIES = [
        ExtractionStrategy("external_id", r'"externalId"\\s*:\\s*"(UC[\\w-]+)"'),
        ExtractionStrategy("bare_channel_id", r'"channelId"\\s*:\\s*"(UC[\\w-]+)"'),
    ]
    match = first_match(CHANNEL_ID_STRATEGIES, html)
"""

import html as html_lib
import logging
import re
from dataclasses import dataclass, field
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass
class StrategyMatch:
    """A successful extraction and the strategy that produced it."""
    value: str
    strategy: str


@dataclass
class ExtractionStrategy:
    """One named regex extraction with an optional post-processing step.

    extract() returns None when the pattern does not match or when the
    transform rejects the captured value by returning None or "".
    With group=None the first participating group is used, for patterns
    that alternate between field orders.
    """
    name: str
    pattern: str
    group: int | None = 1
    transform: Callable[[str], str | None] | None = None
    flags: int = 0
    _compiled: re.Pattern = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._compiled = re.compile(self.pattern, self.flags)

    def extract(self, text: str) -> str | None:
        if not text:
            return None
        match = self._compiled.search(text)
        if not match:
            return None
        if self.group is None:
            value = next((g for g in match.groups() if g), None)
        else:
            value = match.group(self.group)
        if value is None:
            return None
        if self.transform is not None:
            value = self.transform(value)
        return value or None


def first_match(strategies: list[ExtractionStrategy], text: str) -> StrategyMatch | None:
    """Run strategies in order and return the first hit."""
    for strategy in strategies:
        value = strategy.extract(text)
        if value is not None:
            logger.debug(f"Extraction strategy '{strategy.name}' matched")
            return StrategyMatch(value=value, strategy=strategy.name)
    return None


def first_value(strategies: list[ExtractionStrategy], text: str) -> str | None:
    match = first_match(strategies, text)
    return match.value if match else None


# =============================================================================
# Text helpers
# =============================================================================


_JSON_ESCAPES = {
    "\\n": "\n",
    "\\t": "\t",
    '\\"': '"',
    "\\/": "/",
    "\\\\": "\\",
}


def unescape_json_string(value: str) -> str:
    """Decode the escapes found inside a JSON string literal scraped from HTML."""
    value = re.sub(r"\\u([0-9a-fA-F]{4})", lambda m: chr(int(m.group(1), 16)), value)
    return re.sub(r'\\[nt"/\\]', lambda m: _JSON_ESCAPES[m.group(0)], value)


def unwrap_cdata(value: str) -> str:
    match = re.match(r"^\s*<!\[CDATA\[(.*?)\]\]>\s*$", value, re.DOTALL)
    return match.group(1) if match else value


def decode_entities(value: str) -> str:
    """Decode HTML entities (named, decimal and hex)."""
    return html_lib.unescape(value)


def strip_tags(value: str) -> str:
    """Remove HTML tags and collapse whitespace."""
    text = re.sub(r"<[^>]+>", " ", value)
    text = decode_entities(text).replace("\xa0", " ")
    return re.sub(r"\s+", " ", text).strip()


def truncate(value: str, limit: int, suffix: str = "") -> str:
    if len(value) <= limit:
        return value
    return value[:limit].rstrip() + suffix


def https_url(url: str) -> str:
    """Normalize a protocol-relative URL (//host/path) to https."""
    if url.startswith("//"):
        return f"https:{url}"
    return url


def _meta_value(tag: str) -> str | None:
    match = re.search(r'content=(?:"([^"]*)"|\'([^\']*)\')', tag, re.IGNORECASE)
    if not match:
        return None
    value = match.group(1) if match.group(1) is not None else match.group(2)
    return decode_entities(value).strip() or None


def meta_content(name: str, attr: str = "property") -> ExtractionStrategy:
    """Strategy for the content of <meta {attr}="{name}">, in any attribute order."""
    escaped = re.escape(name)
    return ExtractionStrategy(
        f"meta_{name}",
        rf'<meta\b[^>]*\b{attr}=["\']{escaped}["\'][^>]*>',
        group=0,
        transform=_meta_value,
        flags=re.IGNORECASE,
    )

"""RSS/Atom feed and website handler.

Supports:
- RSS 2.0, Atom and RDF feeds
- Website URLs, via <link rel="alternate"> feed discovery
"""

from multifeed.sources.rss.handler import RSSHandler
from multifeed.sources.rss.validation import FeedValidation, discover_feed_url, validate_feed

__all__ = ["RSSHandler", "FeedValidation", "discover_feed_url", "validate_feed"]

"""Handler registry.

The registry is built once at startup with create_registry() and passed
to the sync engine, CLI and API. Registration order is detection
priority: platform-specific handlers first, the RSS handler last as the
catch-all.
"""

import logging

from multifeed.classifier import classify
from multifeed.config import Config
from multifeed.errors import MultifeedError
from multifeed.fetcher import FeedFetcher
from multifeed.models import SourceKind
from multifeed.sources.base import DetectionResult, SourceHandler

logger = logging.getLogger(__name__)


class HandlerRegistry:
    """Maps source kinds to handlers and detects URLs in priority order."""

    def __init__(self):
        self._handlers: list[SourceHandler] = []
        self._handlers_by_kind: dict[SourceKind, SourceHandler] = {}

    def register(self, handler: SourceHandler) -> None:
        """Register a handler for all of its kinds."""
        for kind in handler.kinds:
            self._handlers_by_kind[kind] = handler
        if handler not in self._handlers:
            self._handlers.append(handler)
        logger.info(f"Registered handler: {handler.name} ({', '.join(k.value for k in handler.kinds)})")

    def unregister(self, handler: SourceHandler) -> None:
        for kind in handler.kinds:
            if self._handlers_by_kind.get(kind) is handler:
                del self._handlers_by_kind[kind]
        if handler in self._handlers:
            self._handlers.remove(handler)

    @property
    def handlers(self) -> list[SourceHandler]:
        """All registered handlers in priority order."""
        return list(self._handlers)

    @property
    def supported_kinds(self) -> list[SourceKind]:
        return list(self._handlers_by_kind)

    def get_handler(self, kind: SourceKind) -> SourceHandler | None:
        """Get the handler responsible for a source kind."""
        return self._handlers_by_kind.get(kind)

    def is_supported(self, kind: SourceKind) -> bool:
        return kind in self._handlers_by_kind

    async def detect_source_type(self, url: str) -> DetectionResult:
        """Detect the source kind and owning handler for a URL.

        The classifier picks a candidate first. When it matches a kind
        with a registered handler, that handler is asked before the rest.
        Otherwise handlers are tried in registration order. A handler
        that raises is logged and skipped.
        """
        classification = classify(url)

        candidates = list(self._handlers)
        if classification.matched:
            preferred = self.get_handler(classification.kind)
            if preferred is None:
                # Classified, but nothing syncs this kind (social platforms)
                return DetectionResult(
                    detected=True,
                    kind=classification.kind,
                    metadata=dict(classification.hints),
                )
            # The catch-all keeps its place at the end so podcast feeds are still claimed first
            if preferred is not candidates[-1]:
                candidates.remove(preferred)
                candidates.insert(0, preferred)

        for handler in candidates:
            try:
                result = await handler.detect_url(url)
            except MultifeedError as e:
                logger.warning(f"Error in {handler.name} detection for {url}: {e}")
                continue
            if result.detected:
                result.handler = handler
                result.metadata = {**classification.hints, **result.metadata}
                return result

        return DetectionResult.miss()


def create_registry(fetcher: FeedFetcher, config: Config | None = None) -> HandlerRegistry:
    """Create a registry with the built-in handlers.

    Order: YouTube, Podcast, RSS (catch-all last).
    """
    # Import here to avoid circular imports
    from multifeed.sources.podcast import PodcastHandler
    from multifeed.sources.rss import RSSHandler
    from multifeed.sources.youtube import YouTubeHandler

    config = config or Config()
    youtube = YouTubeHandler(fetcher, video_details=config.extra.get("youtube_video_details", True))

    registry = HandlerRegistry()
    registry.register(youtube)
    registry.register(PodcastHandler(fetcher, youtube=youtube))
    registry.register(RSSHandler(fetcher, discover=config.extra.get("discover_feeds", True)))
    return registry

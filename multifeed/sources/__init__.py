"""Source handlers for multifeed.

Each platform family (RSS/websites, YouTube, podcasts) is a handler in
its own package. Handlers are registered explicitly by create_registry()
in priority order; nothing registers itself at import time.

See multifeed/sources/base.py for the SourceHandler protocol.
"""

from multifeed.sources.base import (
    SourceHandler,
    DetectionResult,
    ParsedFeed,
    RawItem,
)
from multifeed.sources.registry import HandlerRegistry, create_registry

__all__ = [
    "SourceHandler",
    "DetectionResult",
    "ParsedFeed",
    "RawItem",
    "HandlerRegistry",
    "create_registry",
]

"""Exception types shared across multifeed modules.

Resolvers stop these at their boundary and return None or a failed
result; the sync engine turns whatever reaches it into a SyncOutcome.
"""


class MultifeedError(Exception):
    """Base class for all multifeed errors."""


class NetworkError(MultifeedError):
    """Timeout, DNS or connection failure while fetching a URL.

    Attributes:
        url: The URL that could not be fetched.
    """

    def __init__(self, url: str, message: str | None = None):
        super().__init__(message or f"Failed to fetch {url}")
        self.url = url


class ResolutionFailure(MultifeedError):
    """A URL could not be turned into a fetchable feed.

    Attributes:
        reason: Human-readable explanation shown to the user.
    """

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class UnsupportedPlatform(ResolutionFailure):
    """The platform exposes no public feed (Spotify, Amazon Music)."""

    def __init__(self, platform: str, reason: str):
        super().__init__(reason)
        self.platform = platform


class ParseFailure(MultifeedError):
    """A fetched body could not be parsed as the expected format."""


class PersistenceFailure(MultifeedError):
    """The store could not read or write its data."""


class ConfigError(MultifeedError):
    """The configuration names something that does not exist."""


class SourceNotFound(MultifeedError):
    """No source with the given ID exists for the caller."""

    def __init__(self, source_id: str):
        super().__init__(f"Source not found: {source_id}")
        self.source_id = source_id


__all__ = [
    "MultifeedError",
    "NetworkError",
    "ResolutionFailure",
    "UnsupportedPlatform",
    "ParseFailure",
    "PersistenceFailure",
    "ConfigError",
    "SourceNotFound",
]

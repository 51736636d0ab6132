"""multifeed - resolve and sync content from RSS, YouTube and podcast sources."""

__version__ = "0.1.0"

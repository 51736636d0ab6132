"""Configuration management for multifeed."""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from multifeed.store import Store, StoreType, create_store

if TYPE_CHECKING:
    from multifeed.fetcher import FeedFetcher


DEFAULT_CONFIG_PATH = "~/.multifeed/config.json"
DEFAULT_DATA_PATH = "~/.multifeed/data.db"

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
FEED_USER_AGENT = "Multifeed RSS Reader/1.0"


@dataclass
class Config:
    """Application configuration."""

    store_type: StoreType = StoreType.SQLITE
    store_path: str = DEFAULT_DATA_PATH
    fetch_timeout_seconds: float = 10.0
    browser_user_agent: str = BROWSER_USER_AGENT
    feed_user_agent: str = FEED_USER_AGENT
    recent_window_hours: int = 24
    max_items_per_sync: int = 25
    extract_full_content: bool = False
    log_level: str = "INFO"
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def load(cls, path: str = DEFAULT_CONFIG_PATH) -> "Config":
        """Load config from a JSON file, or return defaults if not found."""
        config_path = Path(path).expanduser()

        if not config_path.exists():
            return cls()

        try:
            data = json.loads(config_path.read_text())
            return cls(
                store_type=StoreType(data.get("store_type", "sqlite")),
                store_path=data.get("store_path", DEFAULT_DATA_PATH),
                fetch_timeout_seconds=float(data.get("fetch_timeout_seconds", 10.0)),
                browser_user_agent=data.get("browser_user_agent", BROWSER_USER_AGENT),
                feed_user_agent=data.get("feed_user_agent", FEED_USER_AGENT),
                recent_window_hours=int(data.get("recent_window_hours", 24)),
                max_items_per_sync=int(data.get("max_items_per_sync", 25)),
                extract_full_content=bool(data.get("extract_full_content", False)),
                log_level=data.get("log_level", "INFO"),
                extra=data.get("extra", {}),
            )
        except (json.JSONDecodeError, KeyError, ValueError, TypeError):
            return cls()

    def save(self, path: str = DEFAULT_CONFIG_PATH) -> None:
        """Save config to a JSON file."""
        config_path = Path(path).expanduser()
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "store_type": self.store_type.value,
            "store_path": self.store_path,
            "fetch_timeout_seconds": self.fetch_timeout_seconds,
            "browser_user_agent": self.browser_user_agent,
            "feed_user_agent": self.feed_user_agent,
            "recent_window_hours": self.recent_window_hours,
            "max_items_per_sync": self.max_items_per_sync,
            "extract_full_content": self.extract_full_content,
            "log_level": self.log_level,
            "extra": self.extra,
        }
        config_path.write_text(json.dumps(data, indent=2))

    def create_store(self) -> Store:
        """Create a store instance from this config."""
        return create_store(self.store_type, self.store_path)

    def create_fetcher(self) -> "FeedFetcher":
        """Create a fetcher using this config's timeout and user agents."""
        from multifeed.fetcher import FeedFetcher

        return FeedFetcher(
            timeout=self.fetch_timeout_seconds,
            browser_user_agent=self.browser_user_agent,
            feed_user_agent=self.feed_user_agent,
        )

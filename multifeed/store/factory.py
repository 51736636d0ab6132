"""Opens the storage backend named in the configuration."""

import logging
from enum import Enum
from pathlib import Path

from multifeed.errors import ConfigError
from multifeed.store.base import Store

logger = logging.getLogger(__name__)


class StoreType(str, Enum):
    """Storage backends selectable by `store_type` in config.json."""
    SQLITE = "sqlite"
    FILE = "file"


def file_store_dir(path: str) -> Path:
    """Directory for the JSON-file backend.

    A path with a suffix is a database file (the sqlite default); the
    file backend then keeps its JSON next to it, in a directory named
    after the file's stem.
    """
    resolved = Path(path).expanduser()
    if resolved.suffix:
        return resolved.with_suffix("")
    return resolved


def create_store(store_type: StoreType | str, path: str) -> Store:
    """Open a store.

    Args:
        store_type: A StoreType or its config-file string ("sqlite", "file").
        path: The database file, or the data directory for the file backend.

    Raises:
        ConfigError: If store_type names no known backend.
    """
    # Import here to avoid circular imports
    from multifeed.store.sqlite import SQLiteStore
    from multifeed.store.file import FileStore

    try:
        store_type = StoreType(store_type)
    except ValueError as e:
        raise ConfigError(f"Unknown store type: {store_type}") from e

    logger.info(f"Opening {store_type.value} store at {path}")
    match store_type:
        case StoreType.SQLITE:
            return SQLiteStore(path)
        case StoreType.FILE:
            return FileStore(str(file_store_dir(path)))

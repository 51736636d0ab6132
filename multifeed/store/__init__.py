"""Store module - persistence layer for multifeed."""

from multifeed.store.base import Store, UpsertResult
from multifeed.store.sqlite import SQLiteStore
from multifeed.store.file import FileStore
from multifeed.store.factory import StoreType, create_store

__all__ = ["Store", "UpsertResult", "SQLiteStore", "FileStore", "StoreType", "create_store"]

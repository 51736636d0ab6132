"""SQLite storage backend."""

import json
import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from multifeed.errors import PersistenceFailure
from multifeed.models import ContentItem, FeedDescriptor, Source, SourceKind, payload_from_dict
from multifeed.store.base import Store

logger = logging.getLogger(__name__)


SCHEMA = """
CREATE TABLE IF NOT EXISTS sources (
    id TEXT PRIMARY KEY,
    kind TEXT NOT NULL,
    url TEXT NOT NULL,
    title TEXT NOT NULL,
    description TEXT,
    avatar_url TEXT,
    metadata JSON,
    created_at TEXT NOT NULL,
    last_fetched_at TEXT,
    fetch_error TEXT,
    fetch_count INTEGER DEFAULT 0,
    is_active INTEGER DEFAULT 1,
    UNIQUE(kind, url)
);

CREATE TABLE IF NOT EXISTS subscriptions (
    user_id TEXT NOT NULL,
    source_id TEXT NOT NULL REFERENCES sources(id),
    created_at TEXT NOT NULL,
    PRIMARY KEY (user_id, source_id)
);

CREATE TABLE IF NOT EXISTS content_items (
    id TEXT PRIMARY KEY,
    source_id TEXT NOT NULL REFERENCES sources(id),
    native_id TEXT NOT NULL,
    content_kind TEXT NOT NULL,
    title TEXT NOT NULL,
    url TEXT NOT NULL,
    published_at TEXT,
    payload JSON NOT NULL,
    ingested_at TEXT NOT NULL,
    updated_at TEXT,
    UNIQUE(source_id, native_id)
);

CREATE INDEX IF NOT EXISTS idx_items_published ON content_items(published_at DESC);
CREATE INDEX IF NOT EXISTS idx_items_source ON content_items(source_id);
CREATE INDEX IF NOT EXISTS idx_subscriptions_user ON subscriptions(user_id);
"""


def _generate_id() -> str:
    """Generate a short unique ID."""
    return uuid.uuid4().hex[:12]


def _datetime_to_str(dt: datetime | None) -> str | None:
    """Convert datetime to ISO format string."""
    return dt.isoformat() if dt else None


def _str_to_datetime(s: str | None) -> datetime | None:
    """Parse ISO format string to datetime."""
    return datetime.fromisoformat(s) if s else None


def _row_to_source(row: sqlite3.Row) -> Source:
    """Convert a database row to a Source."""
    return Source(
        id=row["id"],
        kind=SourceKind(row["kind"]),
        url=row["url"],
        title=row["title"],
        description=row["description"],
        avatar_url=row["avatar_url"],
        metadata=json.loads(row["metadata"]) if row["metadata"] else {},
        created_at=_str_to_datetime(row["created_at"]),
        last_fetched_at=_str_to_datetime(row["last_fetched_at"]),
        fetch_error=row["fetch_error"],
        fetch_count=row["fetch_count"] or 0,
        is_active=bool(row["is_active"]),
    )


def _row_to_item(row: sqlite3.Row) -> ContentItem:
    """Convert a database row to a ContentItem."""
    return ContentItem(
        id=row["id"],
        source_id=row["source_id"],
        native_id=row["native_id"],
        title=row["title"],
        url=row["url"],
        published_at=_str_to_datetime(row["published_at"]),
        payload=payload_from_dict(json.loads(row["payload"])),
        ingested_at=_str_to_datetime(row["ingested_at"]),
        updated_at=_str_to_datetime(row["updated_at"]),
    )


class SQLiteStore(Store):
    """SQLite-backed store. Good for production single-user."""

    def __init__(self, db_path: str):
        self.db_path = Path(db_path).expanduser()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        # check_same_thread=False allows use from multiple threads (FastAPI)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self) -> None:
        """Create tables if not exist."""
        self._conn.executescript(SCHEMA)
        self._conn.commit()

    def _write(self, sql: str, params: tuple) -> sqlite3.Cursor:
        """Execute and commit one write, converting driver errors."""
        try:
            cursor = self._conn.execute(sql, params)
            self._conn.commit()
            return cursor
        except sqlite3.Error as e:
            self._conn.rollback()
            logger.error(f"SQLite write failed: {e}")
            raise PersistenceFailure(str(e)) from e

    def _read(self, sql: str, params: tuple | list = (), convert: Callable[[sqlite3.Row], Any] | None = None) -> list:
        """Run a query and convert its rows, converting driver and decode errors."""
        try:
            rows = self._conn.execute(sql, params).fetchall()
            return [convert(row) for row in rows] if convert else rows
        except (sqlite3.Error, ValueError, KeyError) as e:
            logger.error(f"SQLite read failed: {e}")
            raise PersistenceFailure(str(e)) from e

    # Sources

    def add_source(self, descriptor: FeedDescriptor) -> Source:
        """Add a new source. Returns the created Source with ID."""
        source_id = _generate_id()
        now = datetime.now(timezone.utc)
        source = Source.from_descriptor(source_id, descriptor, now)

        self._write(
            """
            INSERT INTO sources (id, kind, url, title, description, avatar_url, metadata, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                source.id,
                source.kind.value,
                source.url,
                source.title,
                source.description,
                source.avatar_url,
                json.dumps(source.metadata),
                _datetime_to_str(now),
            ),
        )
        return source

    def update_source(self, source_id: str, descriptor: FeedDescriptor) -> Source:
        existing = self.get_source(source_id)
        if existing is None:
            raise PersistenceFailure(f"Source not found: {source_id}")

        metadata = {**existing.metadata, "resolver": descriptor.resolver, **descriptor.metadata}
        self._write(
            """
            UPDATE sources
            SET title = ?, description = ?, avatar_url = ?, metadata = ?, is_active = 1
            WHERE id = ?
            """,
            (
                descriptor.title,
                descriptor.description,
                descriptor.avatar_url,
                json.dumps(metadata),
                source_id,
            ),
        )
        return self.get_source(source_id)

    def get_source(self, source_id: str) -> Source | None:
        """Get a source by ID."""
        sources = self._read("SELECT * FROM sources WHERE id = ?", (source_id,), _row_to_source)
        return sources[0] if sources else None

    def find_source_by_canonical_key(self, kind: SourceKind, url: str) -> Source | None:
        sources = self._read(
            "SELECT * FROM sources WHERE kind = ? AND url = ?",
            (kind.value, url),
            _row_to_source,
        )
        return sources[0] if sources else None

    def list_sources(self, active_only: bool = False) -> list[Source]:
        """List all sources."""
        where = "WHERE is_active = 1" if active_only else ""
        return self._read(f"SELECT * FROM sources {where} ORDER BY created_at, rowid", (), _row_to_source)

    def record_sync_success(self, source_id: str, fetched_at: datetime) -> None:
        self._write(
            """
            UPDATE sources
            SET last_fetched_at = ?, fetch_error = NULL, fetch_count = fetch_count + 1
            WHERE id = ?
            """,
            (_datetime_to_str(fetched_at), source_id),
        )

    def record_sync_error(self, source_id: str, error: str, fetched_at: datetime) -> None:
        self._write(
            "UPDATE sources SET last_fetched_at = ?, fetch_error = ? WHERE id = ?",
            (_datetime_to_str(fetched_at), error, source_id),
        )

    # Subscriptions

    def subscribe(self, user_id: str, source_id: str) -> None:
        self._write(
            """
            INSERT INTO subscriptions (user_id, source_id, created_at)
            VALUES (?, ?, ?)
            ON CONFLICT(user_id, source_id) DO NOTHING
            """,
            (user_id, source_id, _datetime_to_str(datetime.now(timezone.utc))),
        )

    def list_active_sources_for_user(self, user_id: str) -> list[Source]:
        return self._read(
            """
            SELECT s.* FROM sources s
            JOIN subscriptions sub ON sub.source_id = s.id
            WHERE sub.user_id = ? AND s.is_active = 1
            ORDER BY s.created_at, s.rowid
            """,
            (user_id,),
            _row_to_source,
        )

    # Content items

    def find_content_item(self, source_id: str, native_id: str) -> ContentItem | None:
        """Get an item by source_id and native_id."""
        items = self._read(
            "SELECT * FROM content_items WHERE source_id = ? AND native_id = ?",
            (source_id, native_id),
            _row_to_item,
        )
        return items[0] if items else None

    def insert_content_item(
        self,
        source_id: str,
        native_id: str,
        fields: dict[str, Any],
        ingested_at: datetime,
    ) -> ContentItem:
        item = ContentItem(
            id=_generate_id(),
            source_id=source_id,
            native_id=native_id,
            title=fields["title"],
            url=fields["url"],
            published_at=fields.get("published_at"),
            payload=fields["payload"],
            ingested_at=ingested_at,
        )
        self._write(
            """
            INSERT INTO content_items (
                id, source_id, native_id, content_kind, title, url,
                published_at, payload, ingested_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                item.id,
                item.source_id,
                item.native_id,
                item.content_kind.value,
                item.title,
                item.url,
                _datetime_to_str(item.published_at),
                json.dumps(item.payload.to_dict()),
                _datetime_to_str(item.ingested_at),
            ),
        )
        return item

    def update_content_item(self, item_id: str, fields: dict[str, Any], updated_at: datetime) -> None:
        payload = fields["payload"]
        self._write(
            """
            UPDATE content_items
            SET title = ?, url = ?, published_at = ?, payload = ?, content_kind = ?, updated_at = ?
            WHERE id = ?
            """,
            (
                fields["title"],
                fields["url"],
                _datetime_to_str(fields.get("published_at")),
                json.dumps(payload.to_dict()),
                payload.kind.value,
                _datetime_to_str(updated_at),
                item_id,
            ),
        )

    def list_content_items(
        self,
        source_id: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[ContentItem]:
        """Get items with optional filters."""
        where = "WHERE source_id = ?" if source_id is not None else ""
        params: list = [source_id] if source_id is not None else []
        params.extend([limit, offset])

        return self._read(
            f"""
            SELECT * FROM content_items
            {where}
            ORDER BY published_at DESC
            LIMIT ? OFFSET ?
            """,
            params,
            _row_to_item,
        )

    def count_content_items(self, source_id: str | None = None) -> int:
        """Count items matching the filters."""
        if source_id is None:
            rows = self._read("SELECT COUNT(*) FROM content_items")
        else:
            rows = self._read("SELECT COUNT(*) FROM content_items WHERE source_id = ?", (source_id,))
        return rows[0][0]

    # Lifecycle

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

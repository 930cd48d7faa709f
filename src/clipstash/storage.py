import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path

from clipstash import schema
from clipstash.blobs import BlobStore
from clipstash.config import DB_PATH, INLINE_PAYLOAD_LIMIT, MAX_ENTRIES
from clipstash.errors import MigrationError, StorageError
from clipstash.migrations import MigrationReport, read_version, run_migrations, write_version
from clipstash.models import ClipboardItem, ContentType

logger = logging.getLogger(__name__)


@dataclass
class MaintenanceResult:
    expired: int = 0
    trimmed: int = 0


class StorageManager:
    """SQLite-backed clipboard history.

    A single lock guards the connection, so callers on any thread see one
    logical operation at a time and never a half-applied write.
    """

    def __init__(
        self,
        db_path: str | Path | None = None,
        blob_store: BlobStore | None = None,
        inline_limit: int = INLINE_PAYLOAD_LIMIT,
    ):
        self._db_path = str(db_path) if db_path else str(DB_PATH)
        self._blob_store = blob_store
        self._lock = threading.Lock()
        self.migration_reports: list[MigrationReport] = []

        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to open database {self._db_path}: {exc}") from exc
        self._conn.row_factory = sqlite3.Row
        self._setup_schema(inline_limit)

    @property
    def blob_store(self) -> BlobStore | None:
        return self._blob_store

    def _setup_schema(self, inline_limit: int) -> None:
        try:
            self._conn.execute("PRAGMA journal_mode=WAL")
            version = read_version(self._conn)
            if version == 0:
                for statement in schema.initial_statements():
                    self._conn.execute(statement)
                write_version(self._conn, schema.CURRENT_VERSION)
                self._conn.commit()
            elif version < schema.CURRENT_VERSION:
                self.migration_reports = run_migrations(
                    self._conn, version, blob_store=self._blob_store, inline_limit=inline_limit
                )
            elif version > schema.CURRENT_VERSION:
                raise MigrationError(
                    f"Database schema v{version} is newer than supported v{schema.CURRENT_VERSION}"
                )
            else:
                for statement in schema.CREATE_INDEXES:
                    self._conn.execute(statement)
                self._conn.commit()
        except sqlite3.Error as exc:
            self._conn.close()
            raise MigrationError(f"Failed to initialize schema: {exc}") from exc
        except MigrationError:
            self._conn.close()
            raise

    @contextmanager
    def _access(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                yield self._conn
            except sqlite3.Error as exc:
                if self._conn.in_transaction:
                    self._conn.rollback()
                raise StorageError(str(exc)) from exc

    def schema_version(self) -> int:
        with self._access() as conn:
            return read_version(conn)

    def add_item(self, item: ClipboardItem) -> str:
        with self._access() as conn:
            conn.execute(
                f"INSERT INTO items ({schema.ITEM_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    item.id,
                    item.content,
                    item.content_type.value,
                    item.content_hash,
                    int(item.timestamp.timestamp()),
                    item.source_app,
                    item.payload,
                    int(item.is_favorite),
                    item.preview,
                ),
            )
            conn.commit()
        return item.id

    def get_item(self, item_id: str) -> ClipboardItem | None:
        with self._access() as conn:
            row = conn.execute(f"SELECT {schema.ITEM_COLUMNS} FROM items WHERE id = ?", (item_id,)).fetchone()
        return self._row_to_item(row) if row else None

    def get_recent(self, limit: int | None = None, favorites_only: bool = False) -> list[ClipboardItem]:
        sql = f"SELECT {schema.ITEM_COLUMNS} FROM items"
        if favorites_only:
            sql += " WHERE is_favorite = 1"
        sql += " ORDER BY timestamp DESC, rowid DESC LIMIT ?"
        with self._access() as conn:
            rows = conn.execute(sql, (-1 if limit is None else limit,)).fetchall()
        return [self._row_to_item(r) for r in rows]

    def get_all(self) -> list[ClipboardItem]:
        return self.get_recent()

    def get_favorites(self) -> list[ClipboardItem]:
        return self.get_recent(favorites_only=True)

    def item_exists(self, content_hash: str) -> bool:
        with self._access() as conn:
            row = conn.execute("SELECT 1 FROM items WHERE content_hash = ? LIMIT 1", (content_hash,)).fetchone()
        return row is not None

    def find_by_hash(self, content_hash: str) -> ClipboardItem | None:
        with self._access() as conn:
            row = conn.execute(
                f"SELECT {schema.ITEM_COLUMNS} FROM items WHERE content_hash = ?", (content_hash,)
            ).fetchone()
        return self._row_to_item(row) if row else None

    def touch(self, item_id: str, when: datetime | None = None) -> bool:
        """Refresh an item's recency without creating a new row."""
        now = when or datetime.now()
        with self._access() as conn:
            cursor = conn.execute("UPDATE items SET timestamp = ? WHERE id = ?", (int(now.timestamp()), item_id))
            conn.commit()
        return cursor.rowcount > 0

    def toggle_favorite(self, item_id: str) -> bool:
        """Flip the favorite flag and return the new value (False if missing)."""
        with self._access() as conn:
            row = conn.execute("SELECT is_favorite FROM items WHERE id = ?", (item_id,)).fetchone()
            if row is None:
                return False
            new_value = not bool(row["is_favorite"])
            conn.execute("UPDATE items SET is_favorite = ? WHERE id = ?", (int(new_value), item_id))
            conn.commit()
        return new_value

    def delete_item(self, item_id: str) -> bool:
        with self._access() as conn:
            row = conn.execute("SELECT content_type, content_hash FROM items WHERE id = ?", (item_id,)).fetchone()
            if row is None:
                return False
            conn.execute("DELETE FROM items WHERE id = ?", (item_id,))
            conn.commit()
        self._delete_blobs([row])
        return True

    def delete_older_than(self, days: int, now: datetime | None = None) -> int:
        """Delete non-favorite items captured more than `days` days ago."""
        cutoff = (now or datetime.now()) - timedelta(days=days)
        where = "timestamp < ? AND is_favorite = 0"
        return self._delete_where(where, (int(cutoff.timestamp()),))

    def purge_old(self, keep_count: int | None = None) -> int:
        """Trim history to keep_count items, evicting the oldest non-favorites."""
        keep = keep_count if keep_count is not None else MAX_ENTRIES
        with self._access() as conn:
            favorites = conn.execute("SELECT COUNT(*) AS cnt FROM items WHERE is_favorite = 1").fetchone()["cnt"]
            rows = conn.execute(
                """SELECT id, content_type, content_hash FROM items
                   WHERE is_favorite = 0
                   ORDER BY timestamp DESC, rowid DESC
                   LIMIT -1 OFFSET ?""",
                (max(keep - favorites, 0),),
            ).fetchall()
            if rows:
                conn.executemany("DELETE FROM items WHERE id = ?", [(r["id"],) for r in rows])
                conn.commit()
        self._delete_blobs(rows)
        return len(rows)

    def clear_history(self) -> int:
        """Delete everything except favorites."""
        return self._delete_where("is_favorite = 0", ())

    def clear_all(self) -> None:
        with self._access() as conn:
            conn.execute("DELETE FROM items")
            conn.commit()
        if self._blob_store is not None:
            try:
                self._blob_store.delete_all()
            except OSError:
                logger.warning("Failed to clear blob directory", exc_info=True)

    def count(self) -> int:
        with self._access() as conn:
            return conn.execute("SELECT COUNT(*) AS cnt FROM items").fetchone()["cnt"]

    def count_favorites(self) -> int:
        with self._access() as conn:
            return conn.execute("SELECT COUNT(*) AS cnt FROM items WHERE is_favorite = 1").fetchone()["cnt"]

    def load_payload(self, item: ClipboardItem) -> bytes | None:
        """Return the full-fidelity payload, from the row or the blob store."""
        if item.payload is not None:
            return item.payload
        if item.content_type != ContentType.IMAGE or self._blob_store is None:
            return None
        return self._blob_store.get(self._blob_store.locator_for(item.content_hash))

    def run_maintenance(
        self, retention_days: int | None = None, keep_count: int | None = None, vacuum: bool = True
    ) -> MaintenanceResult:
        result = MaintenanceResult()
        if retention_days:
            result.expired = self.delete_older_than(retention_days)
        result.trimmed = self.purge_old(keep_count)
        if vacuum:
            with self._access() as conn:
                conn.execute("VACUUM")
        logger.info("Maintenance removed %d expired and %d excess items", result.expired, result.trimmed)
        return result

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def _delete_where(self, where: str, params: tuple) -> int:
        with self._access() as conn:
            rows = conn.execute(f"SELECT id, content_type, content_hash FROM items WHERE {where}", params).fetchall()
            if rows:
                conn.executemany("DELETE FROM items WHERE id = ?", [(r["id"],) for r in rows])
                conn.commit()
        self._delete_blobs(rows)
        return len(rows)

    def _delete_blobs(self, rows: list[sqlite3.Row]) -> None:
        if self._blob_store is None:
            return
        for row in rows:
            if row["content_type"] == ContentType.IMAGE.value:
                self._blob_store.remove(row["content_hash"])

    @staticmethod
    def _row_to_item(row: sqlite3.Row) -> ClipboardItem:
        payload = row["payload"]
        return ClipboardItem(
            id=row["id"],
            content=row["summary"],
            content_type=ContentType(row["content_type"]),
            content_hash=row["content_hash"],
            timestamp=datetime.fromtimestamp(row["timestamp"]),
            source_app=row["source_app"],
            payload=bytes(payload) if payload is not None else None,
            is_favorite=bool(row["is_favorite"]),
        )

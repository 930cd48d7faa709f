"""Ordered schema migrations.

Each migration runs inside a single transaction that also stamps the new
version, so an interrupted run leaves the database at the last committed
version and can simply be retried. Files are only removed after commit.

To add a migration, bump ``schema.CURRENT_VERSION`` and append a
``Migration`` to ``MIGRATIONS``.
"""

import logging
import sqlite3
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from clipstash import schema
from clipstash.blobs import BlobStore
from clipstash.config import INLINE_PAYLOAD_LIMIT, MAX_SUMMARY_LENGTH
from clipstash.errors import BlobStoreError, MigrationError
from clipstash.models import ClipboardItem, ContentType
from clipstash.utils import clip_summary

logger = logging.getLogger(__name__)


@dataclass
class MigrationReport:
    from_version: int
    to_version: int
    migrated: int = 0
    failed: int = 0


@dataclass
class MigrationContext:
    conn: sqlite3.Connection
    blob_store: BlobStore | None = None
    inline_limit: int = INLINE_PAYLOAD_LIMIT
    cleanup: list[Path] = field(default_factory=list)


@dataclass(frozen=True)
class Migration:
    from_version: int
    to_version: int
    apply: Callable[[MigrationContext, MigrationReport], None]


class _RowError(Exception):
    pass


def read_version(conn: sqlite3.Connection) -> int:
    """Return the on-disk schema version, 0 for an empty database."""
    tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
    if "schema_version" in tables:
        row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
        if row is not None and row[0] is not None:
            return int(row[0])
    if "items" in tables:
        # Early databases created the items table before versioning existed.
        return 1
    return 0


def write_version(conn: sqlite3.Connection, version: int) -> None:
    conn.execute(schema.CREATE_VERSION_TABLE)
    conn.execute("DELETE FROM schema_version")
    conn.execute("INSERT INTO schema_version (version) VALUES (?)", (version,))


def migrations_needed(from_version: int, to_version: int = schema.CURRENT_VERSION) -> list[Migration]:
    needed = [m for m in MIGRATIONS if m.from_version >= from_version and m.to_version <= to_version]
    return sorted(needed, key=lambda m: m.from_version)


def run_migrations(
    conn: sqlite3.Connection,
    from_version: int,
    blob_store: BlobStore | None = None,
    inline_limit: int = INLINE_PAYLOAD_LIMIT,
) -> list[MigrationReport]:
    if from_version > schema.CURRENT_VERSION:
        raise MigrationError(
            f"Database schema v{from_version} is newer than supported v{schema.CURRENT_VERSION}"
        )

    reports = []
    version = from_version
    for migration in migrations_needed(from_version):
        if migration.from_version != version:
            raise MigrationError(f"No migration path from v{version} to v{migration.to_version}")

        logger.info("Running migration v%d -> v%d", migration.from_version, migration.to_version)
        ctx = MigrationContext(conn, blob_store=blob_store, inline_limit=inline_limit)
        report = MigrationReport(migration.from_version, migration.to_version)
        try:
            conn.execute("BEGIN")
            migration.apply(ctx, report)
            write_version(conn, migration.to_version)
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise MigrationError(
                f"Migration v{migration.from_version} -> v{migration.to_version} failed: {exc}"
            ) from exc
        except Exception:
            conn.rollback()
            raise

        for path in ctx.cleanup:
            try:
                path.unlink(missing_ok=True)
            except OSError:
                logger.warning("Failed to remove legacy blob %s", path, exc_info=True)

        logger.info(
            "Migration v%d -> v%d complete: %d items migrated, %d failed",
            report.from_version, report.to_version, report.migrated, report.failed,
        )
        reports.append(report)
        version = migration.to_version

    if version < schema.CURRENT_VERSION:
        raise MigrationError(f"No migration path from v{version} to v{schema.CURRENT_VERSION}")
    return reports


# v1 -> v2 ------------------------------------------------------------------

_V2_TABLE = schema.CREATE_ITEMS_TABLE.replace("CREATE TABLE IF NOT EXISTS items", "CREATE TABLE IF NOT EXISTS items_v2")


def _migrate_v1_to_v2(ctx: MigrationContext, report: MigrationReport) -> None:
    conn = ctx.conn
    conn.execute(_V2_TABLE)
    conn.execute("DELETE FROM items_v2")

    rows = conn.execute(
        """SELECT id, content, content_type, content_hash, timestamp, source_app, blob_path, is_favorite
           FROM items"""
    ).fetchall()

    for row in rows:
        try:
            item = _convert_v1_row(ctx, row)
            conn.execute(
                f"INSERT INTO items_v2 ({schema.ITEM_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
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
            report.migrated += 1
        except (_RowError, ValueError, OSError, sqlite3.IntegrityError, BlobStoreError) as exc:
            report.failed += 1
            logger.warning("Failed to migrate item %s: %s", row["id"] if row["id"] else "unknown", exc)

    conn.execute("DROP TABLE items")
    conn.execute("ALTER TABLE items_v2 RENAME TO items")
    for statement in schema.CREATE_INDEXES:
        conn.execute(statement)


def _convert_v1_row(ctx: MigrationContext, row: sqlite3.Row) -> ClipboardItem:
    item_id, content, type_raw, content_hash = row["id"], row["content"], row["content_type"], row["content_hash"]
    if not item_id or content is None or not type_raw or not content_hash:
        raise _RowError("missing required column")

    content_type = ContentType(type_raw)
    payload = None
    if content_type == ContentType.IMAGE:
        payload = _load_v1_image(ctx, row["blob_path"], content_hash)
        summary = content
    else:
        payload = content.encode("utf-8")
        summary = clip_summary(content, MAX_SUMMARY_LENGTH)

    return ClipboardItem(
        id=item_id,
        content=summary,
        content_type=content_type,
        content_hash=content_hash,
        timestamp=datetime.fromtimestamp(row["timestamp"] or 0),
        source_app=row["source_app"],
        payload=payload,
        is_favorite=bool(row["is_favorite"]),
    )


def _load_v1_image(ctx: MigrationContext, blob_path: str | None, content_hash: str) -> bytes | None:
    store = ctx.blob_store
    if not blob_path or store is None:
        return None

    legacy = store.path_for(blob_path)
    if not legacy.is_file():
        logger.debug("Legacy blob %s missing, migrating without payload", blob_path)
        return None

    data = legacy.read_bytes()
    if not store.exists(store.thumbnail_locator_for(content_hash)):
        try:
            store.put_thumbnail(data, content_hash)
        except BlobStoreError as exc:
            logger.debug("No thumbnail for %s: %s", content_hash, exc)

    if len(data) <= ctx.inline_limit:
        ctx.cleanup.append(legacy)
        return data

    canonical = store.locator_for(content_hash)
    if legacy != store.path_for(canonical):
        store.put(data, content_hash)
        ctx.cleanup.append(legacy)
    return None


MIGRATIONS: list[Migration] = [
    Migration(1, 2, _migrate_v1_to_v2),
]

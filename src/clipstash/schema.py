"""Database schema definitions for the current version."""

CURRENT_VERSION = 2

CREATE_ITEMS_TABLE = """
CREATE TABLE IF NOT EXISTS items (
    id           TEXT PRIMARY KEY,
    summary      TEXT NOT NULL,
    content_type TEXT NOT NULL CHECK(content_type IN ('text', 'richText', 'url', 'image', 'fileURL')),
    content_hash TEXT NOT NULL UNIQUE,
    timestamp    INTEGER NOT NULL,
    source_app   TEXT,
    payload      BLOB,
    is_favorite  INTEGER NOT NULL DEFAULT 0,
    preview      TEXT
)
"""

CREATE_INDEXES = (
    "CREATE INDEX IF NOT EXISTS idx_timestamp ON items(timestamp DESC)",
    "CREATE INDEX IF NOT EXISTS idx_content_hash ON items(content_hash)",
    "CREATE INDEX IF NOT EXISTS idx_favorite ON items(is_favorite DESC, timestamp DESC)",
)

CREATE_VERSION_TABLE = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
)
"""

ITEM_COLUMNS = "id, summary, content_type, content_hash, timestamp, source_app, payload, is_favorite, preview"


def initial_statements() -> list[str]:
    return [CREATE_ITEMS_TABLE, CREATE_VERSION_TABLE, *CREATE_INDEXES]

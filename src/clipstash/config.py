import os
from pathlib import Path

DATA_DIR = Path(os.environ.get("CLIPSTASH_DATA_DIR", Path.home() / ".local" / "share" / "clipstash"))
DB_PATH = DATA_DIR / "clipstash.db"
BLOB_DIR = DATA_DIR / "blobs"
LOG_PATH = DATA_DIR / "clipstash.log"

POLL_INTERVAL = 0.5  # seconds between clipboard checks
MAINTENANCE_INTERVAL = 3600  # seconds between retention sweeps
MAX_TEXT_SIZE = 1_000_000  # 1MB text limit
MAX_IMAGE_SIZE = 10 * 1024 * 1024  # 10MB image limit
PREVIEW_LENGTH = 100  # characters in the single-line preview
MAX_SUMMARY_LENGTH = 2000  # characters kept in the searchable summary
INLINE_PAYLOAD_LIMIT = 512 * 1024  # images up to this size live in the row
THUMBNAIL_SIZE = 80  # pixels, longest edge


def _parse_int(name: str, default: int, lower: int, upper: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return max(lower, min(upper, value))


def _parse_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    return default


def _parse_excluded_apps() -> frozenset[str]:
    raw = os.environ.get("CLIPSTASH_EXCLUDED_APPS", "")
    return frozenset(name.strip() for name in raw.split(",") if name.strip())


MAX_ENTRIES = _parse_int("CLIPSTASH_MAX_ENTRIES", 500, 10, 10_000)  # count-based trim
RETENTION_DAYS = _parse_int("CLIPSTASH_RETENTION_DAYS", 30, 0, 3650)  # 0 keeps forever
FUZZY_SEARCH = _parse_bool("CLIPSTASH_FUZZY_SEARCH", True)
EXCLUDED_APPS = _parse_excluded_apps()

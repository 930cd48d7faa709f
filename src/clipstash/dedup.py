import logging
from dataclasses import dataclass

from clipstash.errors import StorageError
from clipstash.storage import StorageManager
from clipstash.utils import compute_hash

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DedupResult:
    is_new: bool
    content_hash: str

    @property
    def is_duplicate(self) -> bool:
        return not self.is_new


class Deduplicator:
    """Decides whether a payload is already in history, by SHA-256 hash."""

    def __init__(self, storage: StorageManager):
        self._storage = storage

    @staticmethod
    def hash_content(content: str, data: bytes | None = None) -> str:
        # Binary payloads (images, rich formats) define identity when present.
        return compute_hash(data if data is not None else content)

    def check(self, content: str, data: bytes | None = None) -> DedupResult:
        content_hash = self.hash_content(content, data)
        try:
            exists = self._storage.item_exists(content_hash)
        except StorageError:
            # Fail open.
            logger.warning("Duplicate check failed for %s, treating as new", content_hash[:12], exc_info=True)
            return DedupResult(is_new=True, content_hash=content_hash)
        return DedupResult(is_new=not exists, content_hash=content_hash)

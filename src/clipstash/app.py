import logging
import threading
from collections.abc import Iterable
from pathlib import Path

from clipstash.blobs import BlobStore
from clipstash.config import (
    BLOB_DIR,
    DB_PATH,
    EXCLUDED_APPS,
    FUZZY_SEARCH,
    MAINTENANCE_INTERVAL,
    MAX_ENTRIES,
    POLL_INTERVAL,
    RETENTION_DAYS,
)
from clipstash.errors import StorageError
from clipstash.models import ClipboardItem
from clipstash.monitor import ClipboardMonitor, NewItemCallback
from clipstash.pasteboard import Pasteboard
from clipstash.search import SearchEngine, SearchResult
from clipstash.storage import MaintenanceResult, StorageManager

logger = logging.getLogger(__name__)


class ClipstashService:
    """Builds the stores, monitor and search engine and owns their lifecycle."""

    def __init__(
        self,
        pasteboard: Pasteboard | None = None,
        db_path: str | Path = DB_PATH,
        blob_dir: str | Path = BLOB_DIR,
        retention_days: int = RETENTION_DAYS,
        max_entries: int = MAX_ENTRIES,
        fuzzy_search: bool = FUZZY_SEARCH,
        excluded_apps: Iterable[str] = EXCLUDED_APPS,
        poll_interval: float = POLL_INTERVAL,
        maintenance_interval: float = MAINTENANCE_INTERVAL,
        on_new_item: NewItemCallback | None = None,
    ):
        self._retention_days = retention_days
        self._max_entries = max_entries
        self._maintenance_interval = maintenance_interval
        self._stop_event = threading.Event()
        self._maintenance_thread: threading.Thread | None = None

        self.blob_store = BlobStore(blob_dir)
        self.storage = StorageManager(db_path, blob_store=self.blob_store)
        self.search_engine = SearchEngine(fuzzy_matching_enabled=fuzzy_search)
        self.monitor: ClipboardMonitor | None = None
        if pasteboard is not None:
            self.monitor = ClipboardMonitor(
                pasteboard,
                self.storage,
                blob_store=self.blob_store,
                on_new_item=on_new_item,
                poll_interval=poll_interval,
                max_entries=max_entries,
                excluded_apps=excluded_apps,
            )

    def search(self, query: str, limit: int | None = None) -> list[SearchResult]:
        results = self.search_engine.search(query, self.storage.get_all())
        return results[:limit] if limit is not None else results

    def prepare_paste(self, item_id: str) -> tuple[ClipboardItem, bytes | None] | None:
        """Fetch an item for pasting and keep the resulting clipboard write out of history."""
        item = self.storage.get_item(item_id)
        if item is None:
            return None
        payload = self.storage.load_payload(item)
        self.storage.touch(item_id)
        if self.monitor is not None:
            self.monitor.suppress_next_change()
        return item, payload

    def run_maintenance(self) -> MaintenanceResult:
        return self.storage.run_maintenance(self._retention_days or None, self._max_entries)

    def start(self) -> None:
        self._stop_event.clear()
        try:
            self.run_maintenance()
        except StorageError:
            logger.exception("Startup maintenance failed")
        if self.monitor is not None:
            self.monitor.start()
        self._maintenance_thread = threading.Thread(
            target=self._maintenance_loop, name="clipstash-maintenance", daemon=True
        )
        self._maintenance_thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        if self.monitor is not None:
            self.monitor.stop()
        if self._maintenance_thread is not None:
            self._maintenance_thread.join()
            self._maintenance_thread = None

    def run_forever(self) -> None:
        self.start()
        try:
            while not self._stop_event.wait(1.0):
                pass
        except KeyboardInterrupt:
            logger.info("Interrupted, shutting down")
        finally:
            self.stop()
            self.close()

    def close(self) -> None:
        self.storage.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        self.close()
        return False

    def _maintenance_loop(self) -> None:
        while not self._stop_event.wait(self._maintenance_interval):
            try:
                self.run_maintenance()
            except StorageError:
                logger.exception("Scheduled maintenance failed")

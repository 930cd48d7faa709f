import logging
import threading
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from enum import Enum

from clipstash.blobs import BlobStore
from clipstash.classifier import classify, classify_string
from clipstash.config import INLINE_PAYLOAD_LIMIT, MAX_ENTRIES, MAX_SUMMARY_LENGTH, MAX_TEXT_SIZE, POLL_INTERVAL
from clipstash.dedup import Deduplicator
from clipstash.errors import BlobFormatError, PayloadTooLargeError, StorageError
from clipstash.models import ClipboardContent, ClipboardItem, ContentType
from clipstash.pasteboard import Pasteboard
from clipstash.storage import StorageManager
from clipstash.utils import clip_summary

logger = logging.getLogger(__name__)

NewItemCallback = Callable[[ClipboardItem], None]


class MonitorState(str, Enum):
    IDLE = "idle"
    ARMED = "armed"


class ClipboardMonitor:
    """Polls the clipboard change counter and records new content.

    Ticks run on a scheduler thread and only compare the counter. Reading,
    classifying, hashing and writing happen on a single worker thread, so a
    slow write never delays the next tick and two cycles never overlap.
    """

    def __init__(
        self,
        pasteboard: Pasteboard,
        storage: StorageManager,
        deduplicator: Deduplicator | None = None,
        blob_store: BlobStore | None = None,
        on_new_item: NewItemCallback | None = None,
        poll_interval: float = POLL_INTERVAL,
        max_entries: int = MAX_ENTRIES,
        excluded_apps: Iterable[str] = (),
        max_text_size: int = MAX_TEXT_SIZE,
        inline_limit: int = INLINE_PAYLOAD_LIMIT,
    ):
        self._pasteboard = pasteboard
        self._storage = storage
        self._deduplicator = deduplicator or Deduplicator(storage)
        self._blob_store = blob_store
        self._listeners: list[NewItemCallback] = [on_new_item] if on_new_item else []
        self._poll_interval = poll_interval
        self._max_entries = max_entries
        self._excluded_apps = frozenset(excluded_apps)
        self._max_text_size = max_text_size
        self._inline_limit = inline_limit

        self._flag_lock = threading.Lock()
        self._last_change_count = pasteboard.change_count()
        self._suppress_next = False

        self._state = MonitorState.IDLE
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._executor: ThreadPoolExecutor | None = None

    @property
    def state(self) -> MonitorState:
        return self._state

    def add_listener(self, callback: NewItemCallback) -> None:
        self._listeners.append(callback)

    def start(self) -> None:
        if self._state == MonitorState.ARMED:
            return
        self.sync_change_count()
        self._stop_event.clear()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="clipstash-capture")
        self._thread = threading.Thread(target=self._run, name="clipstash-poll", daemon=True)
        self._state = MonitorState.ARMED
        self._thread.start()
        logger.info("Clipboard monitoring started (polling every %ss)", self._poll_interval)

    def stop(self) -> None:
        if self._state == MonitorState.IDLE:
            return
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join()
        if self._executor is not None:
            self._executor.shutdown(wait=True)
        self._thread = None
        self._executor = None
        self._state = MonitorState.IDLE
        logger.info("Clipboard monitoring stopped")

    def suppress_next_change(self) -> None:
        """Ignore the next clipboard change, e.g. one caused by pasting from history."""
        with self._flag_lock:
            self._suppress_next = True

    def sync_change_count(self) -> None:
        with self._flag_lock:
            self._last_change_count = self._pasteboard.change_count()

    def poll(self) -> bool:
        """Return True if the clipboard changed since the last poll and should be read."""
        current = self._pasteboard.change_count()
        with self._flag_lock:
            if current == self._last_change_count:
                return False
            self._last_change_count = current
            if self._suppress_next:
                self._suppress_next = False
                logger.debug("Skipping self-inflicted clipboard change %d", current)
                return False
        return True

    def check_clipboard(self) -> bool:
        """Run one full detection cycle synchronously."""
        try:
            if not self.poll():
                return False
            return self.process_change() is not None
        except Exception:
            logger.exception("Error reading clipboard")
            return False

    def process_change(self) -> ClipboardItem | None:
        snapshot = self._pasteboard.snapshot()
        if snapshot.is_empty:
            logger.debug("Clipboard is empty")
            return None
        if snapshot.source_app and snapshot.source_app in self._excluded_apps:
            logger.debug("Ignoring clipboard change from excluded app %s", snapshot.source_app)
            return None

        content = classify(snapshot)
        if content is None:
            logger.debug("Could not extract content from clipboard")
            return None
        content = self._apply_limits(content)
        if content is None:
            return None

        result = self._deduplicator.check(content.content, content.data)
        if result.is_duplicate:
            logger.debug("Skipping duplicate clipboard content %s", result.content_hash[:12])
            return None

        item = self._build_item(content, result.content_hash, snapshot.source_app)
        if item is None:
            return None

        try:
            self._storage.add_item(item)
        except StorageError:
            logger.exception("Failed to save clipboard item")
            if item.content_type == ContentType.IMAGE:
                self._discard_orphaned_blobs(item.content_hash)
            return None
        logger.info("Saved clipboard item: %s from %s", item.content_type.display_name, item.source_app or "unknown")

        try:
            self._storage.purge_old(self._max_entries)
        except StorageError:
            logger.exception("Failed to trim clipboard history")

        self._notify(item)
        return item

    def _run(self) -> None:
        while not self._stop_event.wait(self._poll_interval):
            self._tick()

    def _tick(self) -> None:
        try:
            changed = self.poll()
        except Exception:
            logger.exception("Error polling clipboard")
            return
        if changed and self._executor is not None:
            self._executor.submit(self._process_safely)

    def _process_safely(self) -> None:
        try:
            self.process_change()
        except Exception:
            logger.exception("Error reading clipboard")

    def _apply_limits(self, content: ClipboardContent) -> ClipboardContent | None:
        """Return content that fits the size limits, or None to skip the cycle.

        Rich text whose RTF or HTML bytes exceed the text limit is kept as
        its plain-text form.
        """
        if content.content_type == ContentType.IMAGE:
            size = len(content.data or b"")
            limit = self._blob_store.max_size if self._blob_store else self._inline_limit
            if size > limit:
                logger.warning("Image too large (%d bytes), skipping", size)
                return None
            return content

        size = len(content.content.encode("utf-8"))
        if size > self._max_text_size:
            logger.warning("Text too large (%d bytes), skipping", size)
            return None
        if content.data is not None and len(content.data) > self._max_text_size:
            logger.warning("Rich text payload too large (%d bytes), keeping plain text", len(content.data))
            return ClipboardContent(content.content, classify_string(content.content))
        return content

    def _discard_orphaned_blobs(self, content_hash: str) -> None:
        if self._blob_store is None:
            return
        try:
            referenced = self._storage.item_exists(content_hash)
        except StorageError:
            logger.warning("Could not check references for %s, keeping its blobs", content_hash[:12])
            return
        if not referenced:
            self._blob_store.remove(content_hash)

    def _build_item(self, content: ClipboardContent, content_hash: str, source_app: str | None) -> ClipboardItem | None:
        if content.content_type != ContentType.IMAGE:
            payload = content.data if content.data is not None else content.content.encode("utf-8")
            return ClipboardItem(
                content=clip_summary(content.content, MAX_SUMMARY_LENGTH),
                content_type=content.content_type,
                content_hash=content_hash,
                source_app=source_app,
                payload=payload,
            )

        data = content.data or b""
        payload = data if len(data) <= self._inline_limit else None
        if self._blob_store is not None:
            try:
                self._blob_store.put_thumbnail(data, content_hash)
            except BlobFormatError:
                logger.warning("Could not generate thumbnail for %s", content_hash[:12])
            except OSError:
                logger.warning("Failed to save thumbnail for %s", content_hash[:12], exc_info=True)

            if payload is None:
                try:
                    self._blob_store.put(data, content_hash)
                except (PayloadTooLargeError, OSError):
                    logger.exception("Failed to save image blob")
                    return None

        return ClipboardItem(
            content=content.content,
            content_type=ContentType.IMAGE,
            content_hash=content_hash,
            source_app=source_app,
            payload=payload,
        )

    def _notify(self, item: ClipboardItem) -> None:
        for callback in self._listeners:
            try:
                callback(item)
            except Exception:
                logger.exception("New item listener failed")

import io
from datetime import datetime

import pytest
from PIL import Image

from clipstash.blobs import BlobStore
from clipstash.models import ClipboardItem, ContentType
from clipstash.pasteboard import PasteboardSnapshot
from clipstash.storage import StorageManager
from clipstash.utils import compute_hash


@pytest.fixture
def storage():
    mgr = StorageManager(db_path=":memory:")
    yield mgr
    mgr.close()


@pytest.fixture
def blob_store(tmp_path):
    return BlobStore(tmp_path / "blobs")


@pytest.fixture
def blob_storage(blob_store):
    """A store wired to a blob directory, for tests that touch image files."""
    mgr = StorageManager(db_path=":memory:", blob_store=blob_store)
    yield mgr
    mgr.close()


@pytest.fixture
def make_item():
    """Factory fixture to create ClipboardItem instances for testing."""

    def _make_item(
        content: str = "hello world",
        content_type: ContentType = ContentType.TEXT,
        content_hash: str | None = None,
        timestamp: datetime | None = None,
        source_app: str | None = None,
        payload: bytes | None = None,
        is_favorite: bool = False,
    ) -> ClipboardItem:
        return ClipboardItem(
            content=content,
            content_type=content_type,
            content_hash=content_hash or compute_hash(content),
            timestamp=timestamp or datetime.now().replace(microsecond=0),
            source_app=source_app,
            payload=payload,
            is_favorite=is_favorite,
        )

    return _make_item


def make_png(width: int = 100, height: int = 50, color=(255, 0, 0)) -> bytes:
    out = io.BytesIO()
    Image.new("RGB", (width, height), color).save(out, format="PNG")
    return out.getvalue()


def make_tiff(width: int = 100, height: int = 50, color=(255, 0, 0)) -> bytes:
    out = io.BytesIO()
    Image.new("RGB", (width, height), color).save(out, format="TIFF")
    return out.getvalue()


class FakePasteboard:
    """In-memory stand-in for the system clipboard."""

    def __init__(self):
        self.count = 0
        self.current = PasteboardSnapshot()

    def change_count(self) -> int:
        return self.count

    def snapshot(self) -> PasteboardSnapshot:
        return self.current

    def copy(self, **fields) -> None:
        self.count += 1
        self.current = PasteboardSnapshot(**fields)


@pytest.fixture
def pasteboard():
    return FakePasteboard()

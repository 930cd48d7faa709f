import logging
import os
import tempfile
from pathlib import Path

from clipstash.config import MAX_IMAGE_SIZE, THUMBNAIL_SIZE
from clipstash.errors import BlobFormatError, PayloadTooLargeError
from clipstash.utils import create_thumbnail

logger = logging.getLogger(__name__)

THUMBNAIL_DIR_NAME = "thumbnails"
THUMBNAIL_SUFFIX = "_thumb.png"


class BlobStore:
    """Full-resolution image files and their thumbnails, named by content hash.

    Locators are paths relative to the store root, e.g. ``<hash>.png`` or
    ``thumbnails/<hash>_thumb.png``.
    """

    def __init__(self, root: str | Path, max_size: int = MAX_IMAGE_SIZE, thumbnail_size: int = THUMBNAIL_SIZE):
        self._root = Path(root)
        self._max_size = max_size
        self._thumbnail_size = thumbnail_size
        self._thumb_dir = self._root / THUMBNAIL_DIR_NAME
        self._thumb_dir.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._root

    @property
    def max_size(self) -> int:
        return self._max_size

    @staticmethod
    def locator_for(key: str) -> str:
        return f"{key}.png"

    @staticmethod
    def thumbnail_locator_for(key: str) -> str:
        return f"{THUMBNAIL_DIR_NAME}/{key}{THUMBNAIL_SUFFIX}"

    def path_for(self, locator: str) -> Path:
        path = (self._root / locator).resolve()
        if self._root.resolve() not in path.parents:
            raise ValueError(f"Locator escapes blob directory: {locator}")
        return path

    def check_size(self, data: bytes) -> None:
        if len(data) > self._max_size:
            raise PayloadTooLargeError(len(data), self._max_size)

    def put(self, data: bytes, key: str) -> str:
        self.check_size(data)
        locator = self.locator_for(key)
        self._write(self.path_for(locator), data)
        return locator

    def put_thumbnail(self, data: bytes, key: str) -> str:
        self.check_size(data)
        thumb = create_thumbnail(data, self._thumbnail_size)
        if thumb is None:
            raise BlobFormatError(f"Could not decode image for thumbnail {key}")
        locator = self.thumbnail_locator_for(key)
        self._write(self.path_for(locator), thumb)
        return locator

    def get(self, locator: str) -> bytes | None:
        path = self.path_for(locator)
        if not path.is_file():
            return None
        return path.read_bytes()

    def get_thumbnail(self, key: str) -> bytes | None:
        return self.get(self.thumbnail_locator_for(key))

    def exists(self, locator: str) -> bool:
        return self.path_for(locator).is_file()

    def delete(self, locator: str) -> bool:
        path = self.path_for(locator)
        if not path.exists():
            return False
        path.unlink()
        return True

    def remove(self, key: str) -> None:
        """Delete the blob and thumbnail stored under key, if any."""
        for locator in (self.locator_for(key), self.thumbnail_locator_for(key)):
            try:
                self.delete(locator)
            except OSError:
                logger.warning("Failed to delete blob %s", locator, exc_info=True)

    def delete_all(self) -> None:
        for directory in (self._root, self._thumb_dir):
            for path in directory.iterdir():
                if path.is_file():
                    path.unlink()

    def total_size(self) -> int:
        total = 0
        for directory in (self._root, self._thumb_dir):
            for path in directory.iterdir():
                if path.is_file():
                    total += path.stat().st_size
        return total

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        # Temp file in the same directory, then rename: no partial file is ever visible.
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

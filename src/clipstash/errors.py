"""Error types raised by the clipstash core."""


class ClipstashError(Exception):
    """Base class for all clipstash errors."""


class StorageError(ClipstashError):
    """The database could not be read or written."""


class MigrationError(StorageError):
    """A schema migration could not be applied. Fatal at startup."""


class BlobStoreError(ClipstashError):
    """Base class for blob store failures."""


class PayloadTooLargeError(BlobStoreError):
    def __init__(self, size: int, limit: int):
        super().__init__(f"Payload too large: {size} bytes (max: {limit} bytes)")
        self.size = size
        self.limit = limit


class BlobFormatError(BlobStoreError):
    """The payload could not be decoded as an image."""

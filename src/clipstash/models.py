import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from clipstash.config import PREVIEW_LENGTH
from clipstash.utils import extract_filename, truncate_text


class ContentType(str, Enum):
    TEXT = "text"
    RICH_TEXT = "richText"
    URL = "url"
    IMAGE = "image"
    FILE_URL = "fileURL"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    ContentType.TEXT: "Text",
    ContentType.RICH_TEXT: "Rich Text",
    ContentType.URL: "URL",
    ContentType.IMAGE: "Image",
    ContentType.FILE_URL: "File",
}


@dataclass(frozen=True)
class ClipboardContent:
    """One classified clipboard payload, before it has a hash or an id."""

    content: str
    content_type: ContentType
    data: bytes | None = None


def _now() -> datetime:
    return datetime.now().replace(microsecond=0)


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class ClipboardItem:
    content: str
    content_type: ContentType
    content_hash: str
    timestamp: datetime = field(default_factory=_now)
    source_app: str | None = None
    payload: bytes | None = None
    is_favorite: bool = False
    id: str = field(default_factory=_new_id)

    @property
    def preview(self) -> str:
        return _PREVIEW_BUILDERS[self.content_type](self)

    @property
    def is_truncated(self) -> bool:
        if self.content_type in (ContentType.TEXT, ContentType.RICH_TEXT, ContentType.URL):
            return len(self.content) > PREVIEW_LENGTH
        return False

    @property
    def display_filename(self) -> str | None:
        if self.content_type != ContentType.FILE_URL:
            return None
        return extract_filename(self.content)


def _text_preview(item: ClipboardItem) -> str:
    return truncate_text(item.content, PREVIEW_LENGTH)


def _image_preview(item: ClipboardItem) -> str:
    return "[Image]"


def _file_preview(item: ClipboardItem) -> str:
    return item.display_filename or item.content


_PREVIEW_BUILDERS = {
    ContentType.TEXT: _text_preview,
    ContentType.RICH_TEXT: _text_preview,
    ContentType.URL: _text_preview,
    ContentType.IMAGE: _image_preview,
    ContentType.FILE_URL: _file_preview,
}

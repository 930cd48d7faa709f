"""Turns a raw clipboard snapshot into one classified payload.

A single copy can expose several overlapping representations (Finder puts a
plain-text path next to the file reference, editors put plain text next to
RTF), so the checks run in a fixed order and the first hit wins: files, rich
text, image, plain string.
"""

from datetime import datetime
from urllib.parse import urlparse

from clipstash.models import ClipboardContent, ContentType
from clipstash.pasteboard import PasteboardSnapshot
from clipstash.utils import FILE_SCHEME, extract_filename, get_image_dimensions, normalize_png, to_file_url

RTF_OVERHEAD_THRESHOLD = 500  # bytes of RTF beyond the plain text
RTF_FORMATTING_MARKERS = ("\\b ", "\\i ", "\\ul", "\\cf", "\\f1", "\\fs", "\\highlight")


def classify(snapshot: PasteboardSnapshot, now: datetime | None = None) -> ClipboardContent | None:
    if snapshot.file_urls:
        return _classify_files(snapshot.file_urls)

    rich = _classify_rich_text(snapshot)
    if rich is not None:
        return rich

    image = snapshot.png or snapshot.tiff
    if image:
        return _classify_image(image, now or datetime.now())

    if snapshot.text:
        return ClipboardContent(snapshot.text, classify_string(snapshot.text))

    return None


def classify_string(text: str) -> ContentType:
    stripped = text.strip()
    if stripped and not any(ch.isspace() for ch in stripped):
        parsed = urlparse(stripped)
        if parsed.scheme in ("http", "https") and parsed.netloc:
            return ContentType.URL
    if text.startswith(FILE_SCHEME):
        return ContentType.FILE_URL
    return ContentType.TEXT


def has_rich_formatting(rtf: bytes, plain_text: str) -> bool:
    """Whether the RTF carries formatting beyond a plain-text wrapper."""
    rtf_text = rtf.decode("ascii", errors="ignore")
    if any(marker in rtf_text for marker in RTF_FORMATTING_MARKERS):
        return True
    return len(rtf) - len(plain_text.encode("utf-8")) > RTF_OVERHEAD_THRESHOLD


def format_file_urls(paths: list[str]) -> str:
    if len(paths) == 1:
        return to_file_url(paths[0])
    names = ", ".join(extract_filename(p) for p in paths)
    return f"[{len(paths)} files: {names}]"


def _classify_files(paths: list[str]) -> ClipboardContent:
    return ClipboardContent(format_file_urls(paths), ContentType.FILE_URL)


def _classify_rich_text(snapshot: PasteboardSnapshot) -> ClipboardContent | None:
    if not snapshot.text:
        return None
    if snapshot.rtf and has_rich_formatting(snapshot.rtf, snapshot.text):
        return ClipboardContent(snapshot.text, ContentType.RICH_TEXT, snapshot.rtf)
    if snapshot.html:
        return ClipboardContent(snapshot.text, ContentType.RICH_TEXT, snapshot.html)
    return None


def _classify_image(data: bytes, now: datetime) -> ClipboardContent:
    png = normalize_png(data)
    dimensions = get_image_dimensions(png)
    size = f"{dimensions[0]}×{dimensions[1]}" if dimensions else "unknown size"
    content = f"[Image {size} copied at {now:%Y-%m-%d %H:%M:%S}]"
    return ClipboardContent(content, ContentType.IMAGE, png)

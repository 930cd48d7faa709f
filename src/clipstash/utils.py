import hashlib
import io
import logging
from pathlib import PurePosixPath
from urllib.parse import unquote

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

FILE_SCHEME = "file://"


def compute_hash(data: str | bytes) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def truncate_text(text: str, max_len: int) -> str:
    single_line = " ".join(text.split())
    if len(single_line) <= max_len:
        return single_line
    return single_line[: max_len - 1] + "…"


def clip_summary(text: str, max_len: int) -> str:
    """Cut text to max_len characters, keeping line breaks."""
    if len(text) <= max_len:
        return text
    return text[: max_len - 1] + "…"


def extract_filename(path: str) -> str:
    """Return the human-readable last component of a path or file:// URL."""
    clean = path[len(FILE_SCHEME):] if path.startswith(FILE_SCHEME) else path
    clean = unquote(clean).rstrip("/")
    return PurePosixPath(clean).name or clean


def to_file_url(path: str) -> str:
    if path.startswith(FILE_SCHEME):
        return path
    return PurePosixPath(path).as_uri() if path.startswith("/") else FILE_SCHEME + path


def get_image_dimensions(data: bytes) -> tuple[int, int] | None:
    if not data:
        return None
    try:
        with Image.open(io.BytesIO(data)) as image:
            width, height = image.size
    except (UnidentifiedImageError, OSError):
        return None
    if width <= 0 or height <= 0:
        return None
    return width, height


def normalize_png(data: bytes) -> bytes:
    """Re-encode image bytes as PNG so identical pixels hash identically.

    Returns the input unchanged when it can't be decoded.
    """
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.load()
            out = io.BytesIO()
            image.save(out, format="PNG")
    except (UnidentifiedImageError, OSError, ValueError):
        logger.debug("Could not decode image payload (%d bytes), keeping original", len(data))
        return data
    return out.getvalue()


def scaled_size(width: int, height: int, max_size: int) -> tuple[int, int]:
    ratio = min(max_size / width, max_size / height, 1.0)
    return max(1, round(width * ratio)), max(1, round(height * ratio))


def create_thumbnail(data: bytes, max_size: int) -> bytes | None:
    """Create a PNG thumbnail whose longest edge is at most max_size.

    Args:
        data: Source image bytes in any format Pillow can read
        max_size: Maximum width/height in pixels

    Returns:
        Thumbnail bytes, or None if the source could not be decoded
    """
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.load()
            size = scaled_size(image.width, image.height, max_size)
            thumb = image.resize(size, Image.Resampling.LANCZOS) if size != image.size else image.copy()
    except (UnidentifiedImageError, OSError, ValueError, ZeroDivisionError):
        return None

    if thumb.mode not in ("RGB", "RGBA", "L", "LA"):
        thumb = thumb.convert("RGBA")
    out = io.BytesIO()
    thumb.save(out, format="PNG", optimize=True)
    return out.getvalue()

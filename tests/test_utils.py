import io

from PIL import Image

from clipstash.utils import (
    clip_summary,
    compute_hash,
    create_thumbnail,
    extract_filename,
    get_image_dimensions,
    normalize_png,
    scaled_size,
    to_file_url,
    truncate_text,
)
from conftest import make_png, make_tiff


class TestComputeHash:
    def test_string_input(self):
        h = compute_hash("hello")
        assert isinstance(h, str)
        assert len(h) == 64  # SHA-256 hex digest

    def test_bytes_input(self):
        h = compute_hash(b"hello")
        assert isinstance(h, str)
        assert len(h) == 64

    def test_same_content_same_hash(self):
        assert compute_hash("test") == compute_hash("test")

    def test_different_content_different_hash(self):
        assert compute_hash("abc") != compute_hash("xyz")

    def test_single_byte_difference(self):
        assert compute_hash(b"payload-0") != compute_hash(b"payload-1")

    def test_string_and_bytes_same_hash(self):
        assert compute_hash("hello") == compute_hash(b"hello")

    def test_known_digest(self):
        assert compute_hash("") == "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"


class TestTruncateText:
    def test_short_text_unchanged(self):
        assert truncate_text("hello", 60) == "hello"

    def test_long_text_truncated(self):
        result = truncate_text("a" * 150, 100)
        assert len(result) == 100
        assert result.endswith("…")

    def test_multiline_collapsed(self):
        result = truncate_text("hello\nworld\nfoo", 60)
        assert result == "hello world foo"

    def test_exact_length_not_truncated(self):
        text = "a" * 100
        assert truncate_text(text, 100) == text


class TestClipSummary:
    def test_keeps_newlines(self):
        assert clip_summary("a\nb", 10) == "a\nb"

    def test_truncates_with_ellipsis(self):
        result = clip_summary("x" * 50, 10)
        assert len(result) == 10
        assert result.endswith("…")


class TestFilenames:
    def test_file_url(self):
        assert extract_filename("file:///Users/test/report.pdf") == "report.pdf"

    def test_percent_encoded(self):
        assert extract_filename("file:///Users/test/My%20Notes.txt") == "My Notes.txt"

    def test_plain_path(self):
        assert extract_filename("/tmp/data.csv") == "data.csv"

    def test_directory_trailing_slash(self):
        assert extract_filename("file:///Users/test/Projects/") == "Projects"

    def test_summary_without_slashes(self):
        assert extract_filename("[2 files: a.txt, b.txt]") == "[2 files: a.txt, b.txt]"

    def test_to_file_url_from_path(self):
        assert to_file_url("/Users/test/My Notes.txt") == "file:///Users/test/My%20Notes.txt"

    def test_to_file_url_passthrough(self):
        assert to_file_url("file:///a/b") == "file:///a/b"


class TestImages:
    def test_dimensions(self):
        assert get_image_dimensions(make_png(1920, 1080)) == (1920, 1080)

    def test_dimensions_invalid(self):
        assert get_image_dimensions(b"not an image") is None

    def test_dimensions_empty(self):
        assert get_image_dimensions(b"") is None

    def test_normalize_png_and_tiff_agree(self):
        assert normalize_png(make_png(20, 10)) == normalize_png(make_tiff(20, 10))

    def test_normalize_invalid_passthrough(self):
        assert normalize_png(b"garbage") == b"garbage"

    def test_scaled_size_keeps_aspect(self):
        assert scaled_size(800, 400, 80) == (80, 40)

    def test_scaled_size_never_upscales(self):
        assert scaled_size(20, 10, 80) == (20, 10)

    def test_create_thumbnail(self):
        thumb = create_thumbnail(make_png(400, 200), 80)
        with Image.open(io.BytesIO(thumb)) as image:
            assert image.size == (80, 40)
            assert image.format == "PNG"

    def test_create_thumbnail_invalid(self):
        assert create_thumbnail(b"garbage", 80) is None

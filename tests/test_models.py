import pytest

from clipstash.models import _DISPLAY_NAMES, _PREVIEW_BUILDERS, ClipboardItem, ContentType


@pytest.mark.parametrize("content_type", list(ContentType))
def test_every_type_has_preview_and_name(content_type):
    assert content_type in _PREVIEW_BUILDERS
    assert content_type in _DISPLAY_NAMES


def test_enum_values_match_schema():
    assert {t.value for t in ContentType} == {"text", "richText", "url", "image", "fileURL"}


class TestPreview:
    def test_short_text(self, make_item):
        assert make_item("hello").preview == "hello"

    def test_long_text_truncated(self, make_item):
        item = make_item("word " * 50)
        assert len(item.preview) == 100
        assert item.preview.endswith("…")
        assert item.is_truncated is True

    def test_multiline_collapsed(self, make_item):
        assert make_item("one\n  two\tthree").preview == "one two three"

    def test_image(self, make_item):
        item = make_item("[Image 10×10 copied at 2026-01-01 00:00:00]", content_type=ContentType.IMAGE)
        assert item.preview == "[Image]"
        assert item.is_truncated is False

    def test_file_shows_filename(self, make_item):
        item = make_item("file:///Users/me/Quarterly%20Report.pdf", content_type=ContentType.FILE_URL)
        assert item.preview == "Quarterly Report.pdf"
        assert item.display_filename == "Quarterly Report.pdf"

    def test_display_filename_only_for_files(self, make_item):
        assert make_item("file:///tmp/a.txt").display_filename is None


class TestClipboardItem:
    def test_ids_are_unique(self, make_item):
        assert make_item("a").id != make_item("a").id

    def test_default_timestamp_whole_seconds(self):
        item = ClipboardItem(content="x", content_type=ContentType.TEXT, content_hash="h")
        assert item.timestamp.microsecond == 0
        assert item.is_favorite is False
        assert item.payload is None

    def test_display_names(self):
        assert ContentType.RICH_TEXT.display_name == "Rich Text"
        assert ContentType.FILE_URL.display_name == "File"

from datetime import datetime

from clipstash.classifier import classify, classify_string, format_file_urls, has_rich_formatting
from clipstash.models import ContentType
from clipstash.pasteboard import PasteboardSnapshot
from clipstash.utils import normalize_png
from conftest import make_png, make_tiff

NOW = datetime(2026, 2, 3, 14, 5, 9)

PLAIN_RTF = b"{\\rtf1\\ansi hello}"
BOLD_RTF = b"{\\rtf1\\ansi {\\b hello}}"


class TestClassifyString:
    def test_plain_text(self):
        assert classify_string("hello world") == ContentType.TEXT

    def test_http_url(self):
        assert classify_string("https://example.com/path?q=1") == ContentType.URL

    def test_url_with_surrounding_whitespace(self):
        assert classify_string("  http://example.com \n") == ContentType.URL

    def test_url_inside_sentence_is_text(self):
        assert classify_string("see https://example.com for details") == ContentType.TEXT

    def test_other_scheme_is_text(self):
        assert classify_string("ftp://example.com") == ContentType.TEXT

    def test_file_url(self):
        assert classify_string("file:///Users/test/a.txt") == ContentType.FILE_URL


class TestPrecedence:
    def test_empty_snapshot(self):
        assert classify(PasteboardSnapshot()) is None

    def test_files_beat_text(self):
        snap = PasteboardSnapshot(text="/Users/test/a.txt", file_urls=["/Users/test/a.txt"])
        result = classify(snap)
        assert result.content_type == ContentType.FILE_URL
        assert result.content == "file:///Users/test/a.txt"

    def test_rich_text_beats_image(self):
        snap = PasteboardSnapshot(text="hello", rtf=BOLD_RTF, png=make_png())
        assert classify(snap).content_type == ContentType.RICH_TEXT

    def test_image_beats_plain_text(self):
        snap = PasteboardSnapshot(text="caption", png=make_png())
        assert classify(snap).content_type == ContentType.IMAGE

    def test_plain_text(self):
        result = classify(PasteboardSnapshot(text="just text"))
        assert result.content_type == ContentType.TEXT
        assert result.content == "just text"
        assert result.data is None


class TestRichText:
    def test_formatting_marker_detected(self):
        assert has_rich_formatting(BOLD_RTF, "hello") is True

    def test_plain_wrapper_not_rich(self):
        assert has_rich_formatting(PLAIN_RTF, "hello") is False

    def test_large_overhead_is_rich(self):
        rtf = b"{\\rtf1\\ansi" + b"{\\fonttbl x}" * 60 + b" hello}"
        assert has_rich_formatting(rtf, "hello") is True

    def test_plain_rtf_falls_through_to_text(self):
        result = classify(PasteboardSnapshot(text="hello", rtf=PLAIN_RTF))
        assert result.content_type == ContentType.TEXT

    def test_rtf_payload_kept(self):
        result = classify(PasteboardSnapshot(text="hello", rtf=BOLD_RTF))
        assert result.content == "hello"
        assert result.data == BOLD_RTF

    def test_html(self):
        html = b"<b>hello</b>"
        result = classify(PasteboardSnapshot(text="hello", html=html))
        assert result.content_type == ContentType.RICH_TEXT
        assert result.data == html

    def test_rich_without_text_ignored(self):
        assert classify(PasteboardSnapshot(rtf=BOLD_RTF)) is None


class TestFiles:
    def test_single_file(self):
        assert format_file_urls(["/tmp/My Notes.txt"]) == "file:///tmp/My%20Notes.txt"

    def test_multiple_files(self):
        summary = format_file_urls(["/a/one.txt", "/b/two.pdf", "/c/three.png"])
        assert summary == "[3 files: one.txt, two.pdf, three.png]"


class TestImages:
    def test_description(self):
        result = classify(PasteboardSnapshot(png=make_png(640, 480)), now=NOW)
        assert result.content == "[Image 640×480 copied at 2026-02-03 14:05:09]"
        assert result.content_type == ContentType.IMAGE

    def test_tiff_normalized_to_png(self):
        result = classify(PasteboardSnapshot(tiff=make_tiff(32, 16)), now=NOW)
        assert result.data.startswith(b"\x89PNG")
        assert result.data == normalize_png(make_png(32, 16))

    def test_png_and_tiff_share_identity(self):
        from_png = classify(PasteboardSnapshot(png=make_png(32, 16)), now=NOW)
        from_tiff = classify(PasteboardSnapshot(tiff=make_tiff(32, 16)), now=NOW)
        assert from_png.data == from_tiff.data

    def test_undecodable_image(self):
        result = classify(PasteboardSnapshot(png=b"corrupt"), now=NOW)
        assert result.content == "[Image unknown size copied at 2026-02-03 14:05:09]"
        assert result.data == b"corrupt"

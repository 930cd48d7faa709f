"""Clipboard access.

The core only talks to the ``Pasteboard`` protocol. ``MacPasteboard`` is the
AppKit implementation used when running as a daemon on macOS.
"""

from dataclasses import dataclass, field
from typing import Protocol


@dataclass
class PasteboardSnapshot:
    """Every representation the clipboard offers for the current change."""

    text: str | None = None
    file_urls: list[str] = field(default_factory=list)
    rtf: bytes | None = None
    html: bytes | None = None
    png: bytes | None = None
    tiff: bytes | None = None
    source_app: str | None = None

    @property
    def is_empty(self) -> bool:
        return not (self.text or self.file_urls or self.rtf or self.html or self.png or self.tiff)


class Pasteboard(Protocol):
    def change_count(self) -> int: ...

    def snapshot(self) -> PasteboardSnapshot: ...


class MacPasteboard:
    def __init__(self):
        from AppKit import NSPasteboard, NSWorkspace

        self._pasteboard = NSPasteboard.generalPasteboard()
        self._workspace = NSWorkspace.sharedWorkspace()

    def change_count(self) -> int:
        return int(self._pasteboard.changeCount())

    def snapshot(self) -> PasteboardSnapshot:
        from AppKit import (
            NSFilenamesPboardType,
            NSPasteboardTypeHTML,
            NSPasteboardTypePNG,
            NSPasteboardTypeRTF,
            NSPasteboardTypeString,
            NSPasteboardTypeTIFF,
        )

        pb = self._pasteboard
        types = pb.types() or []
        snap = PasteboardSnapshot(source_app=self._frontmost_app())

        if NSFilenamesPboardType in types:
            filenames = pb.propertyListForType_(NSFilenamesPboardType)
            snap.file_urls = [str(name) for name in filenames or []]
        if NSPasteboardTypeString in types:
            text = pb.stringForType_(NSPasteboardTypeString)
            snap.text = str(text) if text is not None else None
        snap.rtf = self._data(NSPasteboardTypeRTF, types)
        snap.html = self._data(NSPasteboardTypeHTML, types)
        snap.png = self._data(NSPasteboardTypePNG, types)
        snap.tiff = self._data(NSPasteboardTypeTIFF, types)
        return snap

    def _data(self, pb_type, types) -> bytes | None:
        if pb_type not in types:
            return None
        data = self._pasteboard.dataForType_(pb_type)
        return bytes(data) if data is not None else None

    def _frontmost_app(self) -> str | None:
        app = self._workspace.frontmostApplication()
        if app is None:
            return None
        name = app.localizedName()
        return str(name) if name else None

"""Convert renderer markup into (text, tags) segments for a tkinter Text widget."""

from __future__ import annotations

from html.parser import HTMLParser
from typing import List, Optional, Tuple


Segment = Tuple[str, Tuple[str, ...]]

_STYLE_BY_TAG = {
    "strong": "bold",
    "em": "italic",
    "del": "strike",
    "code": "code",
    "blockquote": "quote",
    "pre": "code_block",
}
_STYLE_BY_CLASS = {
    "language-tag": "lang",
    "image-caption": "caption",
}
_VOID_TAGS = {"br", "img"}
_BLOCK_START = {"ul", "blockquote", "pre"}
_BLOCK_END = {"li", "blockquote", "pre"}


class MarkupSegments(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.segments: List[Segment] = []
        self._stack: List[Tuple[str, Optional[str], bool]] = []
        self._skip = 0

    def handle_starttag(self, tag, attrs):
        attr_map = dict(attrs)
        css = attr_map.get("class") or ""
        if tag == "br":
            self._emit("\n")
            return
        if tag == "img":
            self._ensure_newline()
            self._emit(f"[image] {attr_map.get('src') or ''}\n", extra=("image",))
            return
        if tag == "button":
            self._skip += 1
            return
        if tag in _BLOCK_START or css == "code-block":
            self._ensure_newline()
        if tag == "li":
            self._emit("• ")
        style = _STYLE_BY_CLASS.get(css) or _STYLE_BY_TAG.get(tag)
        newline_after = tag in _BLOCK_END or css in ("code-header", "image-caption")
        self._stack.append((tag, style, newline_after))

    def handle_endtag(self, tag):
        if tag in _VOID_TAGS:
            return
        if tag == "button":
            self._skip = max(0, self._skip - 1)
            return
        while self._stack:
            open_tag, _, newline_after = self._stack.pop()
            if newline_after:
                self._emit("\n")
            if open_tag == tag:
                break

    def handle_data(self, data):
        if self._skip or not data:
            return
        self._emit(data)

    def _emit(self, text: str, extra: Tuple[str, ...] = ()) -> None:
        tags = tuple(style for _, style, _ in self._stack if style) + extra
        self.segments.append((text, tags))

    def _ensure_newline(self) -> None:
        if self.segments and not self.segments[-1][0].endswith("\n"):
            self._emit("\n")


def to_segments(markup: str) -> List[Segment]:
    parser = MarkupSegments()
    parser.feed(markup)
    parser.close()
    return parser.segments


def to_plain_text(markup: str) -> str:
    return "".join(text for text, _ in to_segments(markup))

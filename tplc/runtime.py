"""
Run-time helpers for compiled templates.

This module is copied verbatim into every generated package as `_utils.py`,
so it must not import anything from `tplc` itself.

Rendering functions write into any object with a `write(str)` method
(`io.StringIO`, an open text file, `HtmlBuffer`). Interpolated values are
HTML-escaped unless they are wrapped in `Html` or provide their own
`to_html(out)` / `__html__()` rendering.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, List, Protocol, runtime_checkable


class Writer(Protocol):
    """Output sink of a rendering function."""

    def write(self, text: str, /) -> Any: ...


@runtime_checkable
class ToHtml(Protocol):
    """Value that knows how to render itself as (already safe) HTML."""

    def to_html(self, out: Writer) -> None: ...


# Content block passed to a template: renders into the given writer
Content = Callable[[Writer], None]

_ESCAPES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#x27;",
}
_SPECIAL = re.compile(r"[&<>\"']")


def write_escaped_text(out: Writer, text: str) -> None:
    """Write `text` escaping `& < > " '`; unescaped runs are written whole."""
    start = 0
    for match in _SPECIAL.finditer(text):
        if match.start() > start:
            out.write(text[start:match.start()])
        out.write(_ESCAPES[match.group(0)])
        start = match.end()
    if start < len(text):
        out.write(text[start:])


def escape(text: str) -> str:
    """Return `text` with the five HTML special characters escaped."""
    return _SPECIAL.sub(lambda m: _ESCAPES[m.group(0)], text)


def write_escaped(out: Writer, value: Any) -> None:
    """Write an interpolated value, escaped unless it renders itself."""
    to_html = getattr(value, "to_html", None)
    if callable(to_html):
        to_html(out)
        return
    html = getattr(value, "__html__", None)
    if callable(html):
        out.write(html())
        return
    write_escaped_text(out, str(value))


def write_raw(out: Writer, value: Any) -> None:
    """Write an interpolated value without escaping."""
    out.write(str(value))


@dataclass(frozen=True)
class Html:
    """Wrap a value whose text is already valid HTML."""
    value: Any

    def to_html(self, out: Writer) -> None:
        out.write(str(self.value))

    def __str__(self) -> str:
        return str(self.value)


class HtmlBuffer:
    """
    Collects rendered output; itself renders unescaped.

    Useful to render a template once and interpolate the result elsewhere.
    """

    def __init__(self) -> None:
        self._parts: List[str] = []

    def write(self, text: str) -> int:
        self._parts.append(text)
        return len(text)

    def getvalue(self) -> str:
        return "".join(self._parts)

    def to_html(self, out: Writer) -> None:
        out.write(self.getvalue())

    def __str__(self) -> str:
        return self.getvalue()


def to_buffer(value: Any) -> HtmlBuffer:
    """Render a value (escaped as in templates) into a new buffer."""
    buffer = HtmlBuffer()
    write_escaped(buffer, value)
    return buffer


def render(template: Callable[..., None], *args: Any, **kwargs: Any) -> str:
    """Call a rendering function and return its output as a string."""
    buffer = HtmlBuffer()
    template(buffer, *args, **kwargs)
    return buffer.getvalue()


@dataclass(frozen=True)
class StaticFile:
    """
    A static asset compiled into the generated package.

    Attributes:
        content: File bytes
        name: Public file name (contains a content hash unless opted out)
        mime: Mime type
    """
    content: bytes
    name: str
    mime: str


__all__ = [
    "Writer",
    "ToHtml",
    "Content",
    "Html",
    "HtmlBuffer",
    "StaticFile",
    "escape",
    "write_escaped",
    "write_escaped_text",
    "write_raw",
    "to_buffer",
    "render",
]

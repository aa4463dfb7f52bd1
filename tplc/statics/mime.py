"""
Встроенная таблица mime-типов по расширению файла.

Таблица неизменяема (MappingProxyType) и общая для всего процесса.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

DEFAULT_MIME = "application/octet-stream"

MIME_TYPES: Mapping[str, str] = MappingProxyType({
    "avif": "image/avif",
    "bmp": "image/bmp",
    "css": "text/css",
    "csv": "text/csv",
    "eot": "application/vnd.ms-fontobject",
    "gif": "image/gif",
    "htm": "text/html",
    "html": "text/html",
    "ico": "image/x-icon",
    "jpeg": "image/jpeg",
    "jpg": "image/jpeg",
    "js": "application/javascript",
    "json": "application/json",
    "jsonp": "application/javascript",
    "map": "application/json",
    "mjs": "application/javascript",
    "mp3": "audio/mpeg",
    "mp4": "video/mp4",
    "otf": "font/otf",
    "pdf": "application/pdf",
    "png": "image/png",
    "svg": "image/svg+xml",
    "ttf": "font/ttf",
    "txt": "text/plain",
    "wasm": "application/wasm",
    "webm": "video/webm",
    "webp": "image/webp",
    "woff": "font/woff",
    "woff2": "font/woff2",
    "xml": "application/xml",
})


def mime_for(ext: str) -> str:
    """Mime-тип для расширения (без точки, регистр не важен)."""
    return MIME_TYPES.get(ext.lower(), DEFAULT_MIME)


__all__ = ["DEFAULT_MIME", "MIME_TYPES", "mime_for"]

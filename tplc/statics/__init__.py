"""
Статические файлы: индекс с адресацией по содержимому и генерация `statics.py`.
"""

from __future__ import annotations

from .codegen import generate_statics
from .indexer import StaticAsset, StaticIndexer, StylesheetPreprocessor, checksum_token, logical_name
from .mime import DEFAULT_MIME, MIME_TYPES, mime_for
from .sass import LibsassPreprocessor

__all__ = [
    "StaticAsset",
    "StaticIndexer",
    "StylesheetPreprocessor",
    "LibsassPreprocessor",
    "generate_statics",
    "checksum_token",
    "logical_name",
    "DEFAULT_MIME",
    "MIME_TYPES",
    "mime_for",
]

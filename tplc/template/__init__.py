"""
Разбор файлов шаблонов в неизменяемое AST.
"""

from __future__ import annotations

from .nodes import TemplateFile
from .parser import (
    MAX_NESTING,
    TEMPLATE_EXTENSIONS,
    TemplateParser,
    is_template_file,
    parse_template,
    parse_template_file,
)

__all__ = [
    "TemplateFile",
    "TemplateParser",
    "MAX_NESTING",
    "TEMPLATE_EXTENSIONS",
    "is_template_file",
    "parse_template",
    "parse_template_file",
]

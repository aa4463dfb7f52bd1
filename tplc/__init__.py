"""
tplc — компилятор шаблонов в функции отрисовки на Python.

Шаблоны разбираются и проверяются во время сборки; во время работы
программы остаются только обычные модули Python.
"""

from __future__ import annotations

from .engine import Builder, BuildResult, build_from_config, compile_templates
from .errors import (
    CollaboratorError,
    ConfigError,
    DuplicateNameError,
    IoError,
    ParseError,
    TplcError,
)
from .statics import StaticIndexer

__all__ = [
    "Builder",
    "BuildResult",
    "StaticIndexer",
    "compile_templates",
    "build_from_config",
    "TplcError",
    "IoError",
    "ParseError",
    "DuplicateNameError",
    "CollaboratorError",
    "ConfigError",
]

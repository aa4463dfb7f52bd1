"""
Base exceptions for user-facing errors.

All expected errors of a build (bad template syntax, unreadable files,
name collisions, stylesheet failures) inherit from TplcError and are
displayed to the user as clean messages (without stack traces).

Programming errors and bugs should NOT inherit from TplcError —
they will propagate with full tracebacks.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class TplcError(Exception):
    """
    Base class for all user-facing errors of the template compiler.

    Debug and display text are identical, the underlying cause
    is available through `cause` (the `__cause__` chain).
    """

    def __repr__(self) -> str:
        return str(self)

    @property
    def cause(self) -> Optional[BaseException]:
        return self.__cause__


class IoError(TplcError):
    """Ошибка чтения или записи файла."""

    def __init__(self, message: str, path: Path | str):
        self.path = Path(path)
        super().__init__(f"{message}: {path}")


class ParseError(TplcError):
    """
    Нарушение грамматики шаблона или выражения.

    Содержит файл, строку, колонку (обе начиная с 1), смещение в байтах
    UTF-8 и сообщение о том, что ожидалось в этой позиции.
    """

    def __init__(
        self,
        message: str,
        *,
        file: str = "",
        line: int = 1,
        column: int = 1,
        offset: int = 0,
        excerpt: str = "",
    ):
        self.message = message
        self.file = file
        self.line = line
        self.column = column
        self.offset = offset
        self.excerpt = excerpt
        where = f"{file}:{line}:{column}" if file else f"{line}:{column}"
        text = f"{where}: {message}"
        if excerpt:
            text += "\n" + excerpt
        super().__init__(text)


class DuplicateNameError(TplcError):
    """Два шаблона или два статических файла получили одно и то же имя."""

    def __init__(self, kind: str, name: str, first: str, second: str):
        self.kind = kind
        self.name = name
        self.first = first
        self.second = second
        super().__init__(
            f"Duplicate {kind} name '{name}': {first} and {second}"
        )


class CollaboratorError(TplcError):
    """Сбой внешнего препроцессора стилей (scss → css)."""

    def __init__(self, message: str, path: Path | str):
        self.path = Path(path)
        super().__init__(f"Stylesheet preprocessor failed for {path}: {message}")


class ConfigError(TplcError):
    """Некорректный файл конфигурации tplc.yaml."""
    pass


__all__ = [
    "TplcError",
    "IoError",
    "ParseError",
    "DuplicateNameError",
    "CollaboratorError",
    "ConfigError",
]

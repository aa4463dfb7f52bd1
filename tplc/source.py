"""
Исходный текст шаблона с позиционной информацией.

Хранит текст файла и умеет переводить смещение (индекс символа)
в номер строки, колонку и байтовое смещение UTF-8 для диагностики.
"""

from __future__ import annotations

import bisect
from dataclasses import dataclass, field
from typing import List

from .errors import ParseError


@dataclass(frozen=True)
class SourceText:
    """
    Текст шаблона вместе с именем файла.

    Attributes:
        text: Содержимое файла (уже декодированное из UTF-8)
        file: Путь к файлу для сообщений об ошибках
    """
    text: str
    file: str = ""
    _line_starts: List[int] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        starts = [0]
        for i, ch in enumerate(self.text):
            if ch == "\n":
                starts.append(i + 1)
        object.__setattr__(self, "_line_starts", starts)

    def __len__(self) -> int:
        return len(self.text)

    def location(self, position: int) -> tuple[int, int]:
        """Возвращает (строка, колонка), обе начиная с 1."""
        position = max(0, min(position, len(self.text)))
        line_index = bisect.bisect_right(self._line_starts, position) - 1
        return line_index + 1, position - self._line_starts[line_index] + 1

    def byte_offset(self, position: int) -> int:
        return len(self.text[:position].encode("utf-8"))

    def line_text(self, line: int) -> str:
        start = self._line_starts[line - 1]
        end = self.text.find("\n", start)
        if end < 0:
            end = len(self.text)
        return self.text[start:end].rstrip("\r")

    def error(self, message: str, position: int) -> ParseError:
        """
        Создаёт ParseError для указанной позиции.

        К сообщению прикладывается строка исходника с указателем `^`
        под проблемной колонкой.
        """
        line, column = self.location(position)
        excerpt = f"{line:>4}:{self.line_text(line)}\n     {' ' * (column - 1)}^"
        return ParseError(
            message,
            file=self.file,
            line=line,
            column=column,
            offset=self.byte_offset(position),
            excerpt=excerpt,
        )


__all__ = ["SourceText"]

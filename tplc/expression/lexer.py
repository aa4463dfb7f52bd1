"""
Лексер встроенного языка выражений.

Выражения встроены в текст шаблона и не имеют явного конца, поэтому
лексер не токенизирует строку целиком, а выдаёт один токен с заданной
позиции исходного текста. Где закончится выражение, решает парсер.

Типы токенов:
- WHITESPACE: пробелы и переводы строк (парсер сам решает, допустимы ли они)
- INT, FLOAT, STRING: литералы
- NAME, KEYWORD: идентификаторы и ключевые слова
- OP: операторы и разделители
- UNKNOWN, EOF
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Pattern, Tuple


@dataclass(frozen=True)
class Token:
    """
    Токен выражения.

    Attributes:
        type: Тип токена
        value: Текст токена как он записан в исходнике
        position: Смещение начала токена в тексте шаблона
    """
    type: str
    value: str
    position: int

    @property
    def end(self) -> int:
        return self.position + len(self.value)

    def is_op(self, *values: str) -> bool:
        return self.type == "OP" and self.value in values

    def is_keyword(self, *values: str) -> bool:
        return self.type == "KEYWORD" and self.value in values

    def __repr__(self) -> str:
        return f"Token({self.type}, '{self.value}', pos={self.position})"


class ExpressionLexer:
    """
    Лексер выражений, работающий «по требованию» с произвольной позиции.
    """

    # Спецификация токенов: (regex_pattern, token_type); порядок важен
    TOKEN_SPECS: List[Tuple[str, str]] = [
        (r'\s+', 'WHITESPACE'),

        # Числа (float проверяем раньше int; "1..5" это диапазон, а не float)
        (r'\d[\d_]*\.\d[\d_]*(?:[eE][+-]?\d+)?|\d[\d_]*[eE][+-]?\d+', 'FLOAT'),
        (r'0[xX][0-9a-fA-F_]+|0[oO][0-7_]+|0[bB][01_]+|\d[\d_]*', 'INT'),

        # Строки в двойных и одинарных кавычках с экранированием
        (r'"(?:[^"\\]|\\.)*"', 'STRING'),
        (r"'(?:[^'\\]|\\.)*'", 'STRING'),

        (r'[^\W\d]\w*', 'NAME'),

        # Многосимвольные операторы раньше односимвольных
        (r'\.\.=|\.\.|::|=>|==|!=|<=|>=|&&|\|\|', 'OP'),
        (r'[<>+\-*/%!=.,:()\[\]{}|]', 'OP'),
    ]

    KEYWORDS = {
        'and', 'or', 'not', 'in', 'if', 'else', 'let', 'for', 'match',
        'true', 'false', 'True', 'False', 'None',
    }

    _compiled: List[Tuple[Pattern[str], str]] = [
        (re.compile(pattern, re.DOTALL), token_type) for pattern, token_type in TOKEN_SPECS
    ]

    def __init__(self, text: str):
        self.text = text
        self.length = len(text)

    def token_at(self, position: int) -> Token:
        """
        Возвращает токен, начинающийся ровно в позиции `position`.

        Незакрытая строка возвращается как UNKNOWN с текстом до конца строки,
        чтобы парсер мог выдать понятную ошибку.
        """
        if position >= self.length:
            return Token('EOF', '', self.length)

        for pattern, token_type in self._compiled:
            match = pattern.match(self.text, position)
            if match:
                value = match.group(0)
                if token_type == 'NAME' and value in self.KEYWORDS:
                    token_type = 'KEYWORD'
                return Token(token_type, value, position)

        return Token('UNKNOWN', self.text[position], position)

    def skip_whitespace(self, position: int) -> int:
        """Позиция первого непробельного символа начиная с `position`."""
        while position < self.length and self.text[position].isspace():
            position += 1
        return position


__all__ = ["Token", "ExpressionLexer"]

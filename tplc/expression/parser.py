"""
Парсер встроенных выражений с рекурсивным спуском.

Выражения не имеют собственного терминатора: парсер начинает с заданной
позиции текста шаблона и останавливается там, где заканчивается грамматика,
возвращая позицию конца разобранного выражения.

Грамматика:
expression → range
range      → or_expr ((".." | "..=") or_expr)?
or_expr    → and_expr (("or" | "||") and_expr)*
and_expr   → cmp_expr (("and" | "&&") cmp_expr)*
cmp_expr   → add_expr (("==" | "!=" | "<" | "<=" | ">" | ">=") add_expr)*
add_expr   → mul_expr (("+" | "-") mul_expr)*
mul_expr   → unary (("*" | "/" | "%") unary)*
unary      → ("not" | "!" | "-") unary | postfix
postfix    → primary ("." NAME | "." NAME args | args | "[" expression "]")*
primary    → literal | path | "(" ... ")" | "[" ... "]"
path       → NAME ("::" NAME)*

Цепочка (после голого `@`) — это postfix без пробелов между звеньями;
выражение, начинающееся с `(`, заканчивается на парной `)`.
"""

from __future__ import annotations

import keyword
from typing import Dict, List, Optional, Tuple

from .lexer import ExpressionLexer, Token
from .nodes import (
    Attribute,
    Binary,
    BindingPattern,
    Call,
    Expression,
    Group,
    Index,
    ListExpr,
    Literal,
    LiteralPattern,
    MethodCall,
    Name,
    OrPattern,
    Path,
    Pattern,
    Range,
    StructPattern,
    TupleExpr,
    TuplePattern,
    Unary,
    ValuePattern,
    VariantPattern,
    WildcardPattern,
)
from ..source import SourceText

# Максимальная глубина вложенности скобок/унарных операторов в одном выражении
MAX_EXPRESSION_DEPTH = 32

# Уровни приоритета бинарных операторов, от низшего к высшему.
# Запись в шаблоне: оператор Python.
_BINARY_LEVELS: List[Dict[str, str]] = [
    {"or": "or", "||": "or"},
    {"and": "and", "&&": "and"},
    {"==": "==", "!=": "!=", "<": "<", "<=": "<=", ">": ">", ">=": ">="},
    {"+": "+", "-": "-"},
    {"*": "*", "/": "/", "%": "%"},
]

_SIMPLE_ESCAPES = {
    "n": "\n", "r": "\r", "t": "\t", "0": "\0",
    "\\": "\\", '"': '"', "'": "'",
}


class ExpressionParser:
    """
    Парсер выражений и образцов поверх текста шаблона.

    Один экземпляр может разбирать несколько выражений одного шаблона;
    каждый вызов публичного метода независим.
    """

    def __init__(self, source: SourceText):
        self.source = source
        self.lexer = ExpressionLexer(source.text)
        self._pos = 0
        self._skip_ws = True
        self._depth = 0

    # ------------------------------------------------------------------ #
    # Публичные точки входа
    # ------------------------------------------------------------------ #

    def parse_expression(self, position: int) -> Tuple[Expression, int]:
        """
        Разбирает полное выражение (с операторами и пробелами).

        Returns:
            (узел выражения, позиция сразу после выражения)

        Raises:
            ParseError: При синтаксической ошибке
        """
        self._reset(position, skip_ws=True)
        return self._parse_expression(), self._pos

    def parse_chain(self, position: int) -> Tuple[Expression, int]:
        """
        Разбирает цепочку после `@`: первичное выражение и самую длинную
        последовательность звеньев `.name`, `.name(...)`, `(...)`, `[...]`
        без пробелов между ними.
        """
        self._reset(position, skip_ws=False)
        token = self._peek()
        if token.is_op("("):
            # Выражение в скобках закрыто парной скобкой, продолжения нет
            return self._parse_primary(), self._pos
        return self._parse_postfix(), self._pos

    def parse_pattern(self, position: int) -> Tuple[Pattern, int]:
        """Разбирает образец деструктуризации (для @for, @match, @if let)."""
        self._reset(position, skip_ws=True)
        return self._parse_pattern(), self._pos

    def parse_path(self, position: int) -> Tuple[Tuple[str, ...], int]:
        """Разбирает путь NAME(::NAME)* без пробелов (имя вызываемого шаблона)."""
        self._reset(position, skip_ws=False)
        return self._parse_path_parts(), self._pos

    # ------------------------------------------------------------------ #
    # Выражения
    # ------------------------------------------------------------------ #

    def _parse_expression(self) -> Expression:
        start = self._parse_binary(0)
        token = self._peek()
        if token.is_op("..", "..="):
            self._advance()
            end = self._parse_binary(0)
            return Range(start, end, inclusive=token.value == "..=", position=start.position)
        return start

    def _parse_binary(self, level: int) -> Expression:
        if level >= len(_BINARY_LEVELS):
            return self._parse_unary()

        operators = _BINARY_LEVELS[level]
        left = self._parse_binary(level + 1)
        while True:
            token = self._peek()
            if token.type not in ("OP", "KEYWORD") or token.value not in operators:
                return left
            self._advance()
            right = self._parse_binary(level + 1)
            left = Binary(operators[token.value], left, right, position=left.position)

    def _parse_unary(self) -> Expression:
        token = self._peek()
        if token.is_keyword("not") or token.is_op("!", "-"):
            self._advance()
            self._enter(token)
            try:
                operand = self._parse_unary()
            finally:
                self._depth -= 1
            op = "-" if token.value == "-" else "not"
            return Unary(op, operand, position=token.position)
        return self._parse_postfix()

    def _parse_postfix(self) -> Expression:
        expr = self._parse_primary()
        while True:
            token = self._peek()
            if token.is_op("."):
                name_token = self.lexer.token_at(token.end)
                if name_token.type != "NAME":
                    if not self._skip_ws:
                        # "@name.": точка уже относится к тексту
                        return expr
                    raise self._error("Expected field or method name after '.'", name_token.position)
                self._check_identifier(name_token)
                self._pos = name_token.end
                if self._peek().is_op("("):
                    args = self._parse_args("(", ")")
                    expr = MethodCall(expr, name_token.value, args, position=expr.position)
                else:
                    expr = Attribute(expr, name_token.value, position=expr.position)
            elif token.is_op("("):
                args = self._parse_args("(", ")")
                expr = Call(expr, args, position=expr.position)
            elif token.is_op("["):
                self._advance()
                with_ws = self._nested()
                try:
                    index = self._parse_expression()
                    self._expect_op("]", "Expected ']' after index expression")
                finally:
                    self._restore(with_ws)
                expr = Index(expr, index, position=expr.position)
            else:
                return expr

    def _parse_primary(self) -> Expression:
        token = self._peek()

        if token.type == "INT":
            self._advance()
            return Literal(self._int_value(token), position=token.position)
        if token.type == "FLOAT":
            self._advance()
            return Literal(float(token.value.replace("_", "")), position=token.position)
        if token.type == "STRING":
            self._advance()
            return Literal(self._decode_string(token), position=token.position)
        if token.is_keyword("true", "True"):
            self._advance()
            return Literal(True, position=token.position)
        if token.is_keyword("false", "False"):
            self._advance()
            return Literal(False, position=token.position)
        if token.is_keyword("None"):
            self._advance()
            return Literal(None, position=token.position)

        if token.type == "NAME":
            parts = self._parse_path_parts()
            if len(parts) == 1:
                return Name(parts[0], position=token.position)
            return Path(parts, position=token.position)

        if token.is_op("("):
            return self._parse_parenthesized(token)

        if token.is_op("["):
            items = self._parse_args("[", "]")
            return ListExpr(items, position=token.position)

        if token.type == "UNKNOWN" and token.value in "\"'":
            raise self._error("Unterminated string literal", token.position)
        raise self._error("Expected expression", token.position)

    def _parse_parenthesized(self, open_token: Token) -> Expression:
        self._advance()
        self._enter(open_token)
        with_ws = self._nested()
        try:
            if self._peek().is_op(")"):
                self._advance()
                return TupleExpr((), position=open_token.position)

            first = self._parse_expression()
            if not self._peek().is_op(","):
                self._expect_op(")", "Expected ')' to close the parenthesized expression")
                return Group(first, position=open_token.position)

            items = [first]
            while self._peek().is_op(","):
                self._advance()
                if self._peek().is_op(")"):
                    break
                items.append(self._parse_expression())
            self._expect_op(")", "Expected ',' or ')' in tuple")
            return TupleExpr(tuple(items), position=open_token.position)
        finally:
            self._restore(with_ws)
            self._depth -= 1

    def _parse_args(self, opening: str, closing: str) -> Tuple[Expression, ...]:
        """Разбирает список через запятую между `opening` и `closing`."""
        open_token = self._expect_op(opening, f"Expected '{opening}'")
        self._enter(open_token)
        with_ws = self._nested()
        try:
            items: List[Expression] = []
            while not self._peek().is_op(closing):
                items.append(self._parse_expression())
                if self._peek().is_op(","):
                    self._advance()
                    continue
                if not self._peek().is_op(closing):
                    raise self._error(f"Expected ',' or '{closing}'", self._peek().position)
            self._advance()
            return tuple(items)
        finally:
            self._restore(with_ws)
            self._depth -= 1

    def _parse_path_parts(self) -> Tuple[str, ...]:
        token = self._peek()
        if token.type != "NAME":
            raise self._error("Expected name", token.position)
        self._check_identifier(token)
        self._advance()
        parts = [token.value]
        while True:
            sep = self.lexer.token_at(self._pos)
            if not sep.is_op("::"):
                break
            name_token = self.lexer.token_at(sep.end)
            if name_token.type != "NAME":
                raise self._error("Expected name after '::'", name_token.position)
            self._check_identifier(name_token)
            parts.append(name_token.value)
            self._pos = name_token.end
        return tuple(parts)

    # ------------------------------------------------------------------ #
    # Образцы
    # ------------------------------------------------------------------ #

    def _parse_pattern(self) -> Pattern:
        first = self._parse_single_pattern()
        if not self._peek().is_op("|"):
            return first
        alternatives = [first]
        while self._peek().is_op("|"):
            self._advance()
            alternatives.append(self._parse_single_pattern())
        return OrPattern(tuple(alternatives), position=first.position)

    def _parse_single_pattern(self) -> Pattern:
        token = self._peek()

        if token.type == "NAME" and token.value == "_":
            self._advance()
            return WildcardPattern(position=token.position)

        if token.is_op("-"):
            self._advance()
            number = self._peek()
            if number.type not in ("INT", "FLOAT"):
                raise self._error("Expected number after '-' in pattern", number.position)
            value = self._parse_primary()
            return LiteralPattern(-value.value, position=token.position)  # type: ignore[attr-defined]

        if token.type in ("INT", "FLOAT", "STRING") or token.is_keyword("true", "True", "false", "False", "None"):
            literal = self._parse_primary()
            return LiteralPattern(literal.value, position=token.position)  # type: ignore[attr-defined]

        if token.is_op("("):
            return self._parse_tuple_pattern(token)

        if token.type == "NAME":
            parts = self._parse_path_parts()
            following = self._peek()
            if following.is_op("("):
                # Позиционные образцы классов Python и так сопоставляют префикс, `..` опускается
                items, _ = self._parse_pattern_list("(", ")")
                return VariantPattern(parts, items, position=token.position)
            if following.is_op("{"):
                return self._parse_struct_pattern(parts, token)
            if len(parts) > 1:
                return ValuePattern(parts, position=token.position)
            return BindingPattern(parts[0], position=token.position)

        raise self._error("Expected pattern", token.position)

    def _parse_tuple_pattern(self, open_token: Token) -> Pattern:
        items, rest_index = self._parse_pattern_list("(", ")")
        if len(items) == 1 and rest_index is None and not self._trailing_comma:
            return items[0]
        return TuplePattern(items, rest_index=rest_index, position=open_token.position)

    def _parse_pattern_list(
        self, opening: str, closing: str
    ) -> Tuple[Tuple[Pattern, ...], Optional[int]]:
        open_token = self._expect_op(opening, f"Expected '{opening}'")
        self._enter(open_token)
        try:
            items: List[Pattern] = []
            rest_index: Optional[int] = None
            self._trailing_comma = False
            while not self._peek().is_op(closing):
                if self._peek().is_op(".."):
                    if rest_index is not None:
                        raise self._error("Only one '..' is allowed in a pattern", self._peek().position)
                    self._advance()
                    rest_index = len(items)
                else:
                    items.append(self._parse_pattern())
                self._trailing_comma = False
                if self._peek().is_op(","):
                    self._advance()
                    self._trailing_comma = True
                    continue
                if not self._peek().is_op(closing):
                    raise self._error(f"Expected ',' or '{closing}' in pattern", self._peek().position)
            self._advance()
            return tuple(items), rest_index
        finally:
            self._depth -= 1

    def _parse_struct_pattern(self, parts: Tuple[str, ...], start: Token) -> Pattern:
        open_token = self._expect_op("{", "Expected '{'")
        self._enter(open_token)
        try:
            fields: List[Tuple[str, Pattern]] = []
            has_rest = False
            while not self._peek().is_op("}"):
                if self._peek().is_op(".."):
                    self._advance()
                    has_rest = True
                    if not self._peek().is_op("}"):
                        raise self._error("Expected '}' after '..' in struct pattern", self._peek().position)
                    break
                name_token = self._peek()
                if name_token.type != "NAME":
                    raise self._error("Expected field name in struct pattern", name_token.position)
                self._check_identifier(name_token)
                self._advance()
                if self._peek().is_op(":"):
                    self._advance()
                    fields.append((name_token.value, self._parse_pattern()))
                else:
                    fields.append((name_token.value, BindingPattern(name_token.value, position=name_token.position)))
                if self._peek().is_op(","):
                    self._advance()
                    continue
                if not self._peek().is_op("}"):
                    raise self._error("Expected ',' or '}' in struct pattern", self._peek().position)
            self._advance()
            return StructPattern(parts, tuple(fields), has_rest=has_rest, position=start.position)
        finally:
            self._depth -= 1

    # ------------------------------------------------------------------ #
    # Литералы
    # ------------------------------------------------------------------ #

    def _int_value(self, token: Token) -> int:
        digits = token.value.replace("_", "")
        if digits[:2].lower() in ("0x", "0o", "0b"):
            return int(digits, 0)
        return int(digits, 10)

    def _decode_string(self, token: Token) -> str:
        """Раскрывает escape-последовательности строкового литерала."""
        body = token.value[1:-1]
        out: List[str] = []
        i = 0
        while i < len(body):
            ch = body[i]
            if ch != "\\":
                out.append(ch)
                i += 1
                continue
            esc = body[i + 1]
            escape_pos = token.position + 1 + i
            if esc in _SIMPLE_ESCAPES:
                out.append(_SIMPLE_ESCAPES[esc])
                i += 2
            elif esc == "x":
                digits = body[i + 2:i + 4]
                if len(digits) != 2 or not _is_hex(digits):
                    raise self._error("Invalid '\\x' escape in string literal", escape_pos)
                out.append(chr(int(digits, 16)))
                i += 4
            elif esc == "u" and body[i + 2:i + 3] == "{":
                close = body.find("}", i + 3)
                digits = body[i + 3:close] if close > 0 else ""
                if not digits or not _is_hex(digits) or int(digits, 16) > 0x10FFFF:
                    raise self._error("Invalid '\\u{...}' escape in string literal", escape_pos)
                out.append(chr(int(digits, 16)))
                i = close + 1
            else:
                raise self._error(f"Unknown escape sequence '\\{esc}' in string literal", escape_pos)
        return "".join(out)

    # ------------------------------------------------------------------ #
    # Вспомогательные методы для работы с токенами
    # ------------------------------------------------------------------ #

    def _reset(self, position: int, *, skip_ws: bool) -> None:
        self._pos = position
        self._skip_ws = skip_ws
        self._depth = 0
        self._trailing_comma = False

    def _peek(self) -> Token:
        """Возвращает текущий токен без продвижения позиции."""
        position = self.lexer.skip_whitespace(self._pos) if self._skip_ws else self._pos
        return self.lexer.token_at(position)

    def _advance(self) -> Token:
        """Потребляет текущий токен и возвращает его."""
        token = self._peek()
        self._pos = token.end
        return token

    def _expect_op(self, value: str, message: str) -> Token:
        token = self._peek()
        if not token.is_op(value):
            raise self._error(message, token.position)
        return self._advance()

    def _nested(self) -> bool:
        """Внутри скобок пробелы разрешены всегда; возвращает прежний режим."""
        previous = self._skip_ws
        self._skip_ws = True
        return previous

    def _restore(self, skip_ws: bool) -> None:
        self._skip_ws = skip_ws

    def _enter(self, token: Token) -> None:
        self._depth += 1
        if self._depth > MAX_EXPRESSION_DEPTH:
            raise self._error("Expression is nested too deeply", token.position)

    def _check_identifier(self, token: Token) -> None:
        if keyword.iskeyword(token.value):
            raise self._error(f"'{token.value}' is a reserved word and cannot be used as a name", token.position)

    def _error(self, message: str, position: int):
        return self.source.error(message, position)


def _is_hex(text: str) -> bool:
    return all(c in "0123456789abcdefABCDEF" for c in text)


def parse_expression_text(text: str) -> Expression:
    """
    Удобная функция: разбирает строку как одно полное выражение.

    Raises:
        ParseError: При синтаксической ошибке или лишнем тексте после выражения
    """
    source = SourceText(text)
    parser = ExpressionParser(source)
    expr, end = parser.parse_expression(0)
    end = parser.lexer.skip_whitespace(end)
    if end != len(text):
        raise source.error("Unexpected text after expression", end)
    return expr


__all__ = ["ExpressionParser", "MAX_EXPRESSION_DEPTH", "parse_expression_text"]

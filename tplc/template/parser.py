"""
Парсер файлов шаблонов.

Разбирает преамбулу (импорты и объявление параметров) и тело шаблона:
литеральный текст вперемешку с конструкциями, начинающимися с `@`.
Выражения внутри конструкций разбирает ExpressionParser, работающий
по тому же исходному тексту.

Конструкции тела:
    @@  @{  @}                  экранированные `@`, `{`, `}`
    @expr  @(expr)              интерполяция с экранированием
    @!expr  @!(expr)            интерполяция без экранирования
    @if COND {..} [@else if COND {..}]* [@else {..}]
    @for PATTERN in EXPR {..}
    @match EXPR { PATTERN [if GUARD] => {..} [,] ... }
    @:name(ARGS) [{..}]*        вызов шаблона с блоками-аргументами
    @* ... *@  @// ...          комментарии
"""

from __future__ import annotations

import keyword
import re
from pathlib import Path, PurePosixPath
from typing import List, Optional, Tuple

from ..errors import IoError, ParseError
from ..expression.nodes import Expression
from ..expression.parser import ExpressionParser
from ..source import SourceText
from .nodes import (
    Block,
    Body,
    Call,
    CallArg,
    Comment,
    Condition,
    Expr,
    For,
    If,
    LetCondition,
    Match,
    MatchArm,
    Node,
    Param,
    TemplateFile,
    Text,
)

# Максимальная глубина вложенности блоков
MAX_NESTING = 64

# Расширения файлов, которые компилируются в шаблоны
TEMPLATE_EXTENSIONS = ("html", "xml", "svg")

# Префикс, зарезервированный для имён в сгенерированном коде
RESERVED_PREFIX = "_tplc"

_KEYWORD_RE = re.compile(r"(if|for|match)\s")
_IMPORT_RE = re.compile(r"@((?:import|from)\s[^\r\n]*)")
_NAME_RE = re.compile(r"[^\W\d]\w*")
# `else` после закрывающей скобки: `@else` через любые пробелы
# или голый `else` на той же строке
_ELSE_RE = re.compile(r"(?:\s*@|[ \t]*)else(?:\s*(?={)|\s+if\s)")
_LET_RE = re.compile(r"let\s")
_IN_RE = re.compile(r"in\b")
_GUARD_RE = re.compile(r"if\b")
_BLOCK_AFTER_CALL_RE = re.compile(r"[ \t]*(?={)")
_DECL_END_RE = re.compile(r"[ \t]*\r?\n")


class TemplateParser:
    """
    Рекурсивный парсер одного шаблона.

    Состояние — текущая позиция в тексте и глубина вложенности блоков.
    Экземпляр одноразовый: один вызов parse() на один текст.
    """

    def __init__(self, source: SourceText):
        self.source = source
        self.text = source.text
        self.length = len(self.text)
        self.expressions = ExpressionParser(source)
        self.pos = 0
        self.depth = 0

    def parse(self) -> Tuple[Tuple[str, ...], Tuple[Param, ...], Body]:
        """
        Разбирает весь шаблон.

        Returns:
            (импорты, параметры, тело)

        Raises:
            ParseError: При нарушении грамматики
        """
        imports = self._parse_preamble()
        params = self._parse_params()
        body = self._parse_body(in_block=False)
        return imports, params, body

    # ------------------------------------------------------------------ #
    # Преамбула
    # ------------------------------------------------------------------ #

    def _parse_preamble(self) -> Tuple[str, ...]:
        imports: List[str] = []
        while True:
            self._skip_ws()
            if self._at("@*"):
                self._parse_block_comment()
            elif self._at("@//"):
                self._parse_line_comment()
            else:
                match = _IMPORT_RE.match(self.text, self.pos)
                if not match:
                    break
                statement = match.group(1).strip()
                if statement.endswith(";"):
                    statement = statement[:-1].rstrip()
                imports.append(statement)
                self.pos = match.end()

        if not self._at("@("):
            raise self._error("Expected parameter declaration '@(...)'", self.pos)
        return tuple(imports)

    def _parse_params(self) -> Tuple[Param, ...]:
        self.pos += 2
        params: List[Param] = []
        seen = set()
        while True:
            self._skip_ws()
            if self._at(")"):
                self.pos += 1
                break

            name_pos = self.pos
            match = _NAME_RE.match(self.text, self.pos)
            if not match:
                raise self._error("Expected parameter name or ')'", self.pos)
            name = match.group(0)
            self._check_param_name(name, name_pos)
            if name in seen:
                raise self._error(f"Duplicate parameter '{name}'", name_pos)
            seen.add(name)
            self.pos = match.end()

            self._skip_ws()
            if not self._at(":"):
                raise self._error(f"Expected ':' and a type after parameter '{name}'", self.pos)
            self.pos += 1
            type_text = self._parse_type_span()
            params.append(Param(name, type_text))

            self._skip_ws()
            if self._at(","):
                self.pos += 1
            elif not self._at(")"):
                raise self._error("Expected ',' or ')' in parameter declaration", self.pos)

        match = _DECL_END_RE.match(self.text, self.pos)
        if match:
            self.pos = match.end()
        return tuple(params)

    def _parse_type_span(self) -> str:
        """Непрозрачный текст типа до `,` или `)` верхнего уровня."""
        start = self.pos
        closers: List[str] = []
        pairs = {"(": ")", "[": "]", "{": "}"}
        while self.pos < self.length:
            ch = self.text[self.pos]
            if ch in "\"'":
                self._skip_string(ch)
                continue
            if ch in pairs:
                closers.append(pairs[ch])
            elif ch in ")]}":
                if not closers:
                    if ch == ")":
                        break
                    raise self._error(f"Unbalanced '{ch}' in parameter type", self.pos)
                if closers.pop() != ch:
                    raise self._error(f"Unbalanced '{ch}' in parameter type", self.pos)
            elif ch == "," and not closers:
                break
            self.pos += 1
        else:
            raise self._error("Unclosed parameter declaration", start)

        type_text = " ".join(self.text[start:self.pos].split())
        if not type_text:
            raise self._error("Expected parameter type", start)
        return type_text

    def _skip_string(self, quote: str) -> None:
        start = self.pos
        self.pos += 1
        while self.pos < self.length:
            ch = self.text[self.pos]
            if ch == "\\":
                self.pos += 2
                continue
            self.pos += 1
            if ch == quote:
                return
        raise self._error("Unterminated string literal", start)

    def _check_param_name(self, name: str, position: int) -> None:
        if keyword.iskeyword(name):
            raise self._error(f"'{name}' is a reserved word and cannot be a parameter name", position)
        if name.startswith(RESERVED_PREFIX):
            raise self._error(f"Parameter names starting with '{RESERVED_PREFIX}' are reserved", position)

    # ------------------------------------------------------------------ #
    # Тело
    # ------------------------------------------------------------------ #

    def _parse_body(self, in_block: bool) -> Body:
        """
        Разбирает последовательность узлов.

        Внутри блока парные `{`…`}` текста остаются текстом, а непарная `}`
        завершает блок (она не потребляется). Вне блока скобки — обычный текст.
        """
        nodes: List[Node] = []
        chunks: List[str] = []
        text_start = self.pos
        braces = 0

        def flush() -> None:
            if chunks:
                nodes.append(Text("".join(chunks), position=text_start))
                chunks.clear()

        while self.pos < self.length:
            ch = self.text[self.pos]

            if ch == "@":
                literal = self._parse_escape()
                if literal is not None:
                    if not chunks:
                        text_start = self.pos - 2
                    chunks.append(literal)
                    continue
                flush()
                nodes.append(self._parse_construct())
                text_start = self.pos
                continue

            if in_block:
                if ch == "{":
                    braces += 1
                elif ch == "}":
                    if braces == 0:
                        break
                    braces -= 1

            if not chunks:
                text_start = self.pos
            chunks.append(ch)
            self.pos += 1

        flush()
        return tuple(nodes)

    def _parse_escape(self) -> Optional[str]:
        following = self.text[self.pos + 1:self.pos + 2]
        if following and following in "@{}":
            self.pos += 2
            return following
        return None

    def _parse_construct(self) -> Node:
        start = self.pos
        following = self.text[self.pos + 1:self.pos + 2]

        if self._at("@*"):
            return self._parse_block_comment()
        if self._at("@//"):
            return self._parse_line_comment()
        if following == ":":
            return self._parse_call()
        if following == "!":
            expression = self._parse_interpolation(self.pos + 2)
            return Expr(expression, raw=True, position=start)

        keyword_match = _KEYWORD_RE.match(self.text, self.pos + 1)
        if keyword_match:
            word = keyword_match.group(1)
            self.pos = keyword_match.end()
            if word == "if":
                return self._parse_if(start)
            if word == "for":
                return self._parse_for(start)
            return self._parse_match(start)

        if self.text.startswith("else", self.pos + 1) and not _NAME_RE.match(self.text, self.pos + 5):
            raise self._error("'@else' without a matching '@if'", start)

        if following == "(" or _NAME_RE.match(following):
            expression = self._parse_interpolation(self.pos + 1)
            return Expr(expression, position=start)

        raise self._error(
            "Expected an expression, a keyword or a comment after '@' (write '@@' for a literal '@')",
            start,
        )

    def _parse_interpolation(self, position: int) -> Expression:
        expression, self.pos = self.expressions.parse_chain(position)
        return expression

    # -- комментарии ---------------------------------------------------- #

    def _parse_block_comment(self) -> Comment:
        start = self.pos
        end = self.text.find("*@", start + 2)
        if end < 0:
            raise self._error("Unclosed comment, expected '*@'", start)
        self.pos = end + 2
        return Comment(self.text[start + 2:end], position=start)

    def _parse_line_comment(self) -> Comment:
        start = self.pos
        end = self.text.find("\n", start)
        if end < 0:
            end = self.length
        elif end > start and self.text[end - 1] == "\r":
            end -= 1
        self.pos = end
        return Comment(self.text[start + 3:end], position=start)

    # -- управляющие конструкции ---------------------------------------- #

    def _parse_if(self, start: int) -> If:
        arms: List[Tuple[Condition, Body]] = []
        else_body: Optional[Body] = None

        condition = self._parse_condition()
        arms.append((condition, self._parse_block()))

        while True:
            match = _ELSE_RE.match(self.text, self.pos)
            if not match:
                break
            self.pos = match.end()
            if self._at("{"):
                else_body = self._parse_block()
                break
            condition = self._parse_condition()
            arms.append((condition, self._parse_block()))

        self._trim_newline()
        return If(tuple(arms), else_body, position=start)

    def _parse_condition(self) -> Condition:
        self._skip_ws()
        if _LET_RE.match(self.text, self.pos):
            pattern, self.pos = self.expressions.parse_pattern(self.pos + 3)
            self._skip_ws()
            if not self._at("=") or self._at("=="):
                raise self._error("Expected '=' after pattern in 'let' condition", self.pos)
            value, self.pos = self.expressions.parse_expression(self.pos + 1)
            return LetCondition(pattern, value)
        expression, self.pos = self.expressions.parse_expression(self.pos)
        return expression

    def _parse_for(self, start: int) -> For:
        self._skip_ws()
        pattern, self.pos = self.expressions.parse_pattern(self.pos)
        self._skip_ws()
        if not _IN_RE.match(self.text, self.pos):
            raise self._error("Expected 'in' after loop pattern", self.pos)
        iterable, self.pos = self.expressions.parse_expression(self.pos + 2)
        body = self._parse_block()
        self._trim_newline()
        return For(pattern, iterable, body, position=start)

    def _parse_match(self, start: int) -> Match:
        subject, self.pos = self.expressions.parse_expression(self.pos)
        self._skip_ws()
        open_pos = self.pos
        if not self._at("{"):
            raise self._error("Expected '{' after match subject", self.pos)
        self.pos += 1
        self._enter(open_pos)

        arms: List[MatchArm] = []
        while True:
            self._skip_ws_and_comments()
            if self.pos >= self.length:
                raise self._error("Unclosed '@match' block, expected '}'", open_pos)
            if self._at("}"):
                self.pos += 1
                break

            pattern, self.pos = self.expressions.parse_pattern(self.pos)
            self._skip_ws()
            guard: Optional[Expression] = None
            if _GUARD_RE.match(self.text, self.pos):
                guard, self.pos = self.expressions.parse_expression(self.pos + 2)
                self._skip_ws()
            if not self._at("=>"):
                raise self._error("Expected '=>' after match pattern", self.pos)
            self.pos += 2
            body = self._parse_block()
            arms.append(MatchArm(pattern, guard, body))

            self._skip_ws_and_comments()
            if self._at(","):
                self.pos += 1

        self.depth -= 1
        self._trim_newline()
        return Match(subject, tuple(arms), position=start)

    # -- вызовы ---------------------------------------------------------- #

    def _parse_call(self) -> Call:
        start = self.pos
        name, self.pos = self.expressions.parse_path(self.pos + 2)
        if not self._at("("):
            raise self._error("Expected '(' after template name", self.pos)
        self.pos += 1

        args: List[CallArg] = []
        while True:
            self._skip_ws()
            if self._at(")"):
                self.pos += 1
                break
            if self._at("{"):
                args.append(Block(self._parse_block()))
            else:
                expression, self.pos = self.expressions.parse_expression(self.pos)
                args.append(expression)
            self._skip_ws()
            if self._at(","):
                self.pos += 1
            elif not self._at(")"):
                raise self._error("Expected ',' or ')' in call arguments", self.pos)

        blocks: List[Block] = []
        while True:
            match = _BLOCK_AFTER_CALL_RE.match(self.text, self.pos)
            if not match:
                break
            self.pos = match.end()
            blocks.append(Block(self._parse_block()))
        if blocks:
            self._trim_newline()
        return Call(name, tuple(args), tuple(blocks), position=start)

    # -- блоки ----------------------------------------------------------- #

    def _parse_block(self) -> Body:
        """Разбирает `{ BODY }`; позиция — перед `{` (пробелы допустимы)."""
        self._skip_ws()
        open_pos = self.pos
        if not self._at("{"):
            raise self._error("Expected '{'", self.pos)
        self.pos += 1
        self._enter(open_pos)
        body = self._parse_body(in_block=True)
        if not self._at("}"):
            raise self._error("Unclosed block, expected '}'", open_pos)
        self.pos += 1
        self.depth -= 1
        return body

    def _enter(self, position: int) -> None:
        self.depth += 1
        if self.depth > MAX_NESTING:
            raise self._error(f"Blocks are nested deeper than {MAX_NESTING} levels", position)

    def _trim_newline(self) -> None:
        """Отрезает ровно один перевод строки сразу после закрывающей скобки."""
        if self._at("\r\n"):
            self.pos += 2
        elif self._at("\n"):
            self.pos += 1

    # ------------------------------------------------------------------ #
    # Вспомогательные методы
    # ------------------------------------------------------------------ #

    def _at(self, literal: str) -> bool:
        return self.text.startswith(literal, self.pos)

    def _skip_ws(self) -> None:
        while self.pos < self.length and self.text[self.pos].isspace():
            self.pos += 1

    def _skip_ws_and_comments(self) -> None:
        while True:
            self._skip_ws()
            if self._at("@*"):
                self._parse_block_comment()
            elif self._at("@//"):
                self._parse_line_comment()
            else:
                return

    def _error(self, message: str, position: int) -> ParseError:
        return self.source.error(message, position)


# ---------------------------------------------------------------------------
# Файлы шаблонов
# ---------------------------------------------------------------------------

def is_template_file(path: Path | PurePosixPath) -> bool:
    suffix = path.suffix[1:]
    return suffix in TEMPLATE_EXTENSIONS and not path.name.startswith(".")


def template_name(rel_path: PurePosixPath, display: str) -> Tuple[Tuple[str, ...], str, str]:
    """
    Разбирает относительный путь шаблона на (namespace, stem, ext).

    `-` в именах заменяется на `_`; результат обязан быть идентификатором Python.
    """
    ext = rel_path.suffix[1:]
    parts = [part.replace("-", "_") for part in rel_path.parent.parts]
    stem = rel_path.name[: -len(rel_path.suffix)].replace("-", "_")
    for name in parts + [stem]:
        if not name.isidentifier() or keyword.iskeyword(name) or name.startswith(RESERVED_PREFIX):
            raise ParseError(
                f"'{name}' is not a valid template name (derived from '{rel_path}')",
                file=display,
            )
    return tuple(parts), stem, ext


def decode_source(data: bytes, display: str) -> str:
    """Декодирует UTF-8; ошибка указывает на строку и колонку плохого байта."""
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as exc:
        prefix = data[: exc.start].decode("utf-8", errors="replace")
        line, column = SourceText(prefix).location(len(prefix))
        raise ParseError(
            "Template source is not valid UTF-8",
            file=display,
            line=line,
            column=column,
            offset=exc.start,
        ) from exc
    return text[1:] if text.startswith("\ufeff") else text


def parse_template(
    text: str,
    *,
    path: Path | str = "",
    namespace: Tuple[str, ...] = (),
    stem: str = "template",
    ext: str = "html",
) -> TemplateFile:
    """
    Разбирает текст шаблона в TemplateFile.

    Raises:
        ParseError: При синтаксической ошибке
    """
    source = SourceText(text, str(path))
    imports, params, body = TemplateParser(source).parse()
    return TemplateFile(
        path=Path(path),
        namespace=namespace,
        stem=stem,
        ext=ext,
        text=text,
        imports=imports,
        params=params,
        body=body,
    )


def parse_template_file(path: Path, root: Path) -> TemplateFile:
    """
    Читает и разбирает файл шаблона, лежащий под каталогом `root`.

    Raises:
        IoError: Файл не читается
        ParseError: Имя файла, кодировка или синтаксис некорректны
    """
    rel_path = PurePosixPath(path.relative_to(root).as_posix())
    display = rel_path.as_posix()
    namespace, stem, ext = template_name(rel_path, display)
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise IoError("Cannot read template", path) from exc
    text = decode_source(data, display)
    source = SourceText(text, display)
    imports, params, body = TemplateParser(source).parse()
    return TemplateFile(
        path=path,
        namespace=namespace,
        stem=stem,
        ext=ext,
        text=text,
        imports=imports,
        params=params,
        body=body,
    )


__all__ = [
    "MAX_NESTING",
    "TEMPLATE_EXTENSIONS",
    "TemplateParser",
    "is_template_file",
    "template_name",
    "decode_source",
    "parse_template",
    "parse_template_file",
]

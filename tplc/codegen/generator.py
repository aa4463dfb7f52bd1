"""
Генератор модуля Python по разобранному шаблону.

Каждый шаблон превращается в модуль с одной функцией отрисовки:

    def page_html(_tplc_out_: Writer, title: str) -> None:
        _tplc_out_.write("<h1>")
        _tplc_write_escaped(_tplc_out_, title)
        _tplc_out_.write("</h1>\\n")

Соседний текст (в том числе разделённый комментариями) сливается в один
вызов write. Порядок импортов и таблиц фиксирован, поэтому одинаковый
вход всегда даёт побайтно одинаковый результат.

Имена, связанные образцом в @for, @match или `if let`, видны только внутри
блока. Если такое имя перекрывает уже видимое, в коде Python оно получает
новое имя `_tplc_<имя>_N`, и внешнее значение после блока не меняется.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, Iterator, List, Mapping, Optional, Sequence, Set, Tuple

from ..errors import ParseError
from ..expression.emit import emit_expression, emit_pattern, emit_target
from ..expression.nodes import (
    BindingPattern,
    Expression,
    OrPattern,
    Pattern,
    StructPattern,
    TuplePattern,
    VariantPattern,
    WildcardPattern,
    pattern_bindings,
    pattern_is_irrefutable,
)
from ..source import SourceText
from ..template.nodes import (
    Block,
    Body,
    Call,
    Comment,
    Condition,
    Expr,
    For,
    If,
    LetCondition,
    Match,
    MatchArm,
    Node,
    TemplateFile,
    Text,
)

logger = logging.getLogger(__name__)

OUT = "_tplc_out_"
STATICS_ALIAS = "_tplc_statics"
UTILS_MODULE = "_utils"
STATICS_MODULE = "statics"

HEADER = "# Generated by tplc from {source}. Do not edit.\n"

# Наибольший отступ сгенерированного кода (у Python предел 100 уровней)
MAX_INDENT = 90

# Видимые имена: имя в шаблоне → имя в коде Python
Scope = Mapping[str, str]


class SourceBuilder:
    """
    Накопитель строк кода с текущим уровнем отступа.

    Для каждой строки запоминается `position`: смещение в шаблоне,
    из которого она получена (для сообщений об ошибках).
    """

    def __init__(self, indent_with: str = "    "):
        self.lines: List[str] = []
        self.positions: List[int] = []
        self.position = 0
        self.cur_indent = 0
        self.indent_with = indent_with

    def commit_line(self, line: str = "") -> None:
        if line:
            self.lines.append(self.indent_with * self.cur_indent + line)
        else:
            self.lines.append("")
        self.positions.append(self.position)

    @contextmanager
    def indented(self) -> Iterator[None]:
        self.cur_indent += 1
        start = len(self.lines)
        try:
            yield
        finally:
            if len(self.lines) == start:
                self.commit_line("pass")
            self.cur_indent -= 1

    def result(self) -> str:
        return "\n".join(self.lines) + "\n"


@dataclass(frozen=True)
class TemplateRef:
    """Известная на этапе генерации функция шаблона."""
    namespace: Tuple[str, ...]
    module: str
    function: str

    @property
    def alias(self) -> str:
        return "_tplc_" + "__".join(self.namespace + (self.function,))


@dataclass(frozen=True)
class GenerationContext:
    """
    Сведения о всей сборке, нужные для генерации отдельного шаблона.

    Attributes:
        templates: (namespace, имя) → функция; имя — `stem_ext` или псевдоним `stem`
        static_names: Логические имена статических файлов или None, если их нет
    """
    templates: Dict[Tuple[Tuple[str, ...], str], TemplateRef] = field(default_factory=dict)
    static_names: Optional[FrozenSet[str]] = None

    @classmethod
    def from_templates(
        cls, templates: Sequence[TemplateFile], static_names: Optional[FrozenSet[str]] = None
    ) -> "GenerationContext":
        table: Dict[Tuple[Tuple[str, ...], str], TemplateRef] = {}
        for template in templates:
            ref = TemplateRef(template.namespace, template.module_name, template.function_name)
            table[(template.namespace, template.function_name)] = ref
            if template.ext == "html":
                table.setdefault((template.namespace, template.stem), ref)
        return cls(table, static_names)


class TemplateGenerator:
    """
    Генерирует исходный код модуля для одного шаблона.

    Экземпляр одноразовый; generate() можно вызвать один раз.
    """

    def __init__(self, template: TemplateFile, context: Optional[GenerationContext] = None):
        self.template = template
        self.context = context or GenerationContext()
        self.source = SourceText(template.text, template.logical_name)
        self.out = SourceBuilder()
        self.template_imports: Set[TemplateRef] = set()
        self.uses_statics = False
        self._counter = 0

    def generate(self) -> str:
        """
        Returns:
            Полный текст модуля

        Raises:
            ParseError: Ссылка на неизвестный статический файл, слишком
                глубокая вложенность или код, который Python не принимает
        """
        template = self.template
        scope: Dict[str, str] = {param.name: param.name for param in template.params}

        params = "".join(f", {p.name}: {p.type_text}" for p in template.params)
        self.out.commit_line(f"def {template.function_name}({OUT}: Writer{params}) -> None:")
        with self._block():
            self._emit_body(template.body, scope)
        function_code = self.out.result()

        logger.debug(
            "Generated %s (%d template imports, statics=%s)",
            template.logical_name, len(self.template_imports), self.uses_statics,
        )
        text, prefix_lines = self._module_text(function_code)
        self._check_compiles(text, prefix_lines)
        return text

    def _module_text(self, function_code: str) -> Tuple[str, int]:
        """Текст модуля и число строк перед определением функции."""
        template = self.template
        up = "." * (len(template.namespace) + 1)

        lines = [HEADER.format(source=template.logical_name).rstrip("\n"), "from __future__ import annotations", ""]
        lines.extend(template.imports)
        lines.append(
            f"from {up}{UTILS_MODULE} import Content, Html, ToHtml, Writer, "
            f"write_escaped as _tplc_write_escaped, write_raw as _tplc_write_raw"
        )
        for ref in sorted(self.template_imports, key=lambda r: (r.namespace, r.module, r.function)):
            module = ".".join(ref.namespace + (ref.module,))
            lines.append(f"from {up}{module} import {ref.function} as {ref.alias}")
        if self.uses_statics:
            lines.append(f"from {up} import {STATICS_MODULE} as {STATICS_ALIAS}")

        head = "\n".join(lines) + "\n\n\n"
        text = head + function_code
        if template.ext == "html":
            text += f"\n\n{template.stem} = {template.function_name}\n"
        return text, head.count("\n")

    def _check_compiles(self, text: str, prefix_lines: int) -> None:
        """Модуль, который Python не скомпилирует, не должен попасть на диск."""
        try:
            compile(text, self.template.module_name + ".py", "exec")
        except SyntaxError as exc:
            index = (exc.lineno or 0) - prefix_lines - 1
            position = self.out.positions[index] if 0 <= index < len(self.out.positions) else 0
            raise self._error(f"Generated code is not valid Python: {exc.msg}", position) from exc

    @contextmanager
    def _block(self) -> Iterator[None]:
        if self.out.cur_indent >= MAX_INDENT:
            raise self._error("Template is nested too deeply to generate Python code", self.out.position)
        with self.out.indented():
            yield

    # ------------------------------------------------------------------ #
    # Тело
    # ------------------------------------------------------------------ #

    def _emit_body(self, body: Body, scope: Scope) -> None:
        pending: List[str] = []

        def flush() -> None:
            if pending:
                text = "".join(pending)
                if text:
                    self.out.commit_line(f"{OUT}.write({text!r})")
                pending.clear()

        for node in body:
            if isinstance(node, Text):
                pending.append(node.text)
            elif isinstance(node, Comment):
                continue
            else:
                flush()
                self._emit_node(node, scope)
        flush()

    def _emit_node(self, node: Node, scope: Scope) -> None:
        outer = self.out.position
        self.out.position = node.position
        try:
            if isinstance(node, Expr):
                writer = "_tplc_write_raw" if node.raw else "_tplc_write_escaped"
                self.out.commit_line(f"{writer}({OUT}, {self._expr(node.expression, scope)})")
            elif isinstance(node, If):
                self._emit_if(node.arms, node.else_body, scope)
            elif isinstance(node, For):
                self._emit_for(node, scope)
            elif isinstance(node, Match):
                self._emit_match(node, scope)
            elif isinstance(node, Call):
                self._emit_call(node, scope)
            else:
                raise TypeError(f"Unsupported template node: {type(node).__name__}")
        finally:
            self.out.position = outer

    def _emit_if(
        self,
        arms: Tuple[Tuple[Condition, Body], ...],
        else_body: Optional[Body],
        scope: Scope,
    ) -> None:
        condition, body = arms[0]
        rest = arms[1:]

        if isinstance(condition, LetCondition):
            # `let` превращается в match; остаток цепочки уходит в `case _`
            pattern = simplify_pattern(condition.pattern)
            inner, names = self._bind(pattern, scope)
            self.out.commit_line(f"match {self._expr(condition.value, scope)}:")
            with self._block():
                self.out.commit_line(f"case {emit_pattern(pattern, names)}:")
                with self._block():
                    self._emit_body(body, inner)
                if (rest or else_body is not None) and not matches_anything(pattern):
                    self.out.commit_line("case _:")
                    with self._block():
                        self._emit_else(rest, else_body, scope)
            return

        self.out.commit_line(f"if {self._expr(condition, scope)}:")
        with self._block():
            self._emit_body(body, scope)
        while rest and not isinstance(rest[0][0], LetCondition):
            condition, body = rest[0]
            rest = rest[1:]
            self.out.commit_line(f"elif {self._expr(condition, scope)}:")
            with self._block():
                self._emit_body(body, scope)
        if rest or else_body is not None:
            self.out.commit_line("else:")
            with self._block():
                self._emit_else(rest, else_body, scope)

    def _emit_else(
        self,
        rest: Tuple[Tuple[Condition, Body], ...],
        else_body: Optional[Body],
        scope: Scope,
    ) -> None:
        if rest:
            self._emit_if(rest, else_body, scope)
        elif else_body is not None:
            self._emit_body(else_body, scope)

    def _emit_for(self, node: For, scope: Scope) -> None:
        iterable = self._expr(node.iterable, scope)
        pattern = simplify_pattern(node.pattern)
        inner, names = self._bind(pattern, scope)
        if pattern_is_irrefutable(pattern):
            self.out.commit_line(f"for {emit_target(pattern, names)} in {iterable}:")
            with self._block():
                self._emit_body(node.body, inner)
            return

        # Элементы, не подходящие под образец, пропускаются
        item = self._fresh("item")
        self.out.commit_line(f"for {item} in {iterable}:")
        with self._block():
            self.out.commit_line(f"match {item}:")
            with self._block():
                self.out.commit_line(f"case {emit_pattern(pattern, names)}:")
                with self._block():
                    self._emit_body(node.body, inner)

    def _emit_match(self, node: Match, scope: Scope) -> None:
        arms = reachable_arms(node.arms)
        if not arms:
            self.out.commit_line(self._expr(node.subject, scope))
            return
        self.out.commit_line(f"match {self._expr(node.subject, scope)}:")
        with self._block():
            for arm in arms:
                inner, names = self._bind(arm.pattern, scope)
                case = f"case {emit_pattern(arm.pattern, names)}"
                if arm.guard is not None:
                    case += f" if {self._expr(arm.guard, inner)}"
                self.out.commit_line(case + ":")
                with self._block():
                    self._emit_body(arm.body, inner)

    def _emit_call(self, node: Call, scope: Scope) -> None:
        target = self._call_target(node, scope)
        args = [OUT]
        for arg in node.all_args:
            if isinstance(arg, Block):
                name = self._fresh("content")
                self.out.commit_line(f"def {name}({OUT}: Writer) -> None:")
                with self._block():
                    self._emit_body(arg.body, scope)
                args.append(name)
            else:
                args.append(self._expr(arg, scope))
        self.out.commit_line(f"{target}({', '.join(args)})")

    # ------------------------------------------------------------------ #
    # Разрешение имён
    # ------------------------------------------------------------------ #

    def _bind(self, pattern: Pattern, scope: Scope) -> Tuple[Dict[str, str], Dict[str, str]]:
        """
        Область видимости внутри блока и переименования для образца.

        Имя, которое уже видно снаружи, получает новое имя в Python,
        чтобы присваивание в блоке не испортило внешнее значение.
        """
        names: Dict[str, str] = {}
        for name in pattern_bindings(pattern):
            if name in scope and name not in names:
                names[name] = self._fresh(name)
        inner = dict(scope)
        for name in pattern_bindings(pattern):
            inner[name] = names.get(name, name)
        return inner, names

    def _call_target(self, node: Call, scope: Scope) -> str:
        """
        Имя вызываемой функции.

        Локальные имена (параметры, связанные переменные) вызываются как есть;
        затем ищется шаблон относительно текущего каталога и от корня;
        всё остальное считается обычной функцией Python.
        """
        parts = node.name
        if len(parts) == 1 and parts[0] in scope:
            return scope[parts[0]]

        current = self.template.namespace
        for namespace in (current + parts[:-1], parts[:-1]):
            ref = self.context.templates.get((namespace, parts[-1]))
            if ref is None:
                continue
            if ref.namespace == current and ref.module == self.template.module_name:
                return ref.function
            self.template_imports.add(ref)
            return ref.alias

        return ".".join(parts)

    def _expr(self, expression: Expression, scope: Scope) -> str:
        def hook(parts: Tuple[str, ...], position: int) -> Optional[str]:
            if parts[0] != STATICS_MODULE or STATICS_MODULE in scope:
                return None
            names = self.context.static_names
            if names is None:
                return None
            name = "::".join(parts[1:])
            if len(parts) != 2 or parts[1] not in names:
                raise self._error(f"Unknown static file 'statics::{name}'", position)
            self.uses_statics = True
            return f"{STATICS_ALIAS}.{parts[1]}"

        return emit_expression(expression, hook, scope)

    def _fresh(self, kind: str) -> str:
        self._counter += 1
        return f"_tplc_{kind}_{self._counter}"

    def _error(self, message: str, position: int) -> ParseError:
        return self.source.error(message, position)


def matches_anything(pattern: Pattern) -> bool:
    return isinstance(pattern, (BindingPattern, WildcardPattern))


def simplify_pattern(pattern: Pattern) -> Pattern:
    """
    Заменяет альтернативу, в которой есть образец «что угодно»
    (`1 | _`, `x | 2`), этим образцом.

    Python запрещает такую альтернативу везде, кроме последнего места,
    а после неё и все следующие ветки @match.
    """
    if isinstance(pattern, OrPattern):
        alternatives = tuple(simplify_pattern(alt) for alt in pattern.alternatives)
        for alt in alternatives:
            if matches_anything(alt):
                return alt
        return replace(pattern, alternatives=alternatives)
    if isinstance(pattern, TuplePattern):
        return replace(pattern, items=tuple(simplify_pattern(item) for item in pattern.items))
    if isinstance(pattern, VariantPattern):
        return replace(pattern, items=tuple(simplify_pattern(item) for item in pattern.items))
    if isinstance(pattern, StructPattern):
        return replace(pattern, fields=tuple((name, simplify_pattern(item)) for name, item in pattern.fields))
    return pattern


def reachable_arms(arms: Tuple[MatchArm, ...]) -> Tuple[MatchArm, ...]:
    """Ветки до первой безусловно совпадающей включительно (Python запрещает остальные)."""
    result: List[MatchArm] = []
    for arm in arms:
        arm = replace(arm, pattern=simplify_pattern(arm.pattern))
        result.append(arm)
        if arm.guard is None and matches_anything(arm.pattern):
            break
    return tuple(result)


def generate_template(template: TemplateFile, context: Optional[GenerationContext] = None) -> str:
    """Генерирует текст модуля для шаблона."""
    return TemplateGenerator(template, context).generate()


__all__ = [
    "MAX_INDENT",
    "SourceBuilder",
    "TemplateRef",
    "GenerationContext",
    "TemplateGenerator",
    "generate_template",
    "reachable_arms",
    "simplify_pattern",
]

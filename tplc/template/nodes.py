"""
AST-узлы шаблона.

Неизменяемое дерево: тело шаблона — кортеж узлов в порядке исходника,
управляющие конструкции содержат вложенные тела.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple, Union

from ..expression.nodes import Expression, Pattern


@dataclass(frozen=True)
class Node:
    """Базовый класс для всех узлов тела шаблона."""
    position: int = field(default=0, kw_only=True, compare=False)


# Тело блока: узлы в порядке исходника
Body = Tuple[Node, ...]


@dataclass(frozen=True)
class Text(Node):
    """Литеральный текст, выводится как есть."""
    text: str


@dataclass(frozen=True)
class Expr(Node):
    """
    Интерполяция значения.

    raw=True — значение выводится без экранирования (`@!expr`).
    """
    expression: Expression
    raw: bool = False


@dataclass(frozen=True)
class Comment(Node):
    """Комментарий `@* ... *@` или `@// ...`; в вывод не попадает."""
    text: str


@dataclass(frozen=True)
class LetCondition:
    """Условие вида `let PATTERN = EXPR` в @if."""
    pattern: Pattern
    value: Expression


Condition = Union[Expression, LetCondition]


@dataclass(frozen=True)
class If(Node):
    """
    Цепочка @if / @else if / @else.

    Attributes:
        arms: Пары (условие, тело) в порядке исходника
        else_body: Тело ветки @else или None
    """
    arms: Tuple[Tuple[Condition, Body], ...]
    else_body: Optional[Body] = None


@dataclass(frozen=True)
class For(Node):
    """Цикл @for PATTERN in EXPR { BODY }."""
    pattern: Pattern
    iterable: Expression
    body: Body


@dataclass(frozen=True)
class MatchArm:
    """Ветка @match: образец, необязательный guard и тело."""
    pattern: Pattern
    guard: Optional[Expression]
    body: Body


@dataclass(frozen=True)
class Match(Node):
    """@match EXPR { ... }; ветки проверяются в порядке исходника."""
    subject: Expression
    arms: Tuple[MatchArm, ...]


@dataclass(frozen=True)
class Block:
    """Блок-аргумент вызова: тело, передаваемое вызываемому шаблону как функция."""
    body: Body


CallArg = Union[Expression, Block]


@dataclass(frozen=True)
class Call(Node):
    """
    Вызов другого шаблона или функции: @:name(args) {block}*

    Attributes:
        name: Сегменты пути (`@:admin::users` → ("admin", "users"))
        args: Аргументы в скобках (выражения или блоки)
        content_blocks: Блоки после закрывающей скобки
    """
    name: Tuple[str, ...]
    args: Tuple[CallArg, ...]
    content_blocks: Tuple[Block, ...] = ()

    @property
    def all_args(self) -> Tuple[CallArg, ...]:
        return self.args + self.content_blocks


@dataclass(frozen=True)
class Param:
    """Параметр шаблона; `type_text` — непрозрачная аннотация Python."""
    name: str
    type_text: str


@dataclass(frozen=True)
class TemplateFile:
    """
    Разобранный файл шаблона.

    Attributes:
        path: Путь к исходному файлу
        namespace: Каталоги относительно корня шаблонов (`("admin",)`)
        stem: Имя функции без суффикса (`-` заменён на `_`)
        ext: Формат вывода: "html", "xml" или "svg"
        text: Исходный текст
        imports: Строки импорта Python, как записаны в преамбуле
        params: Параметры в порядке объявления
        body: Тело шаблона
    """
    path: Path
    namespace: Tuple[str, ...]
    stem: str
    ext: str
    text: str
    imports: Tuple[str, ...]
    params: Tuple[Param, ...]
    body: Body

    @property
    def function_name(self) -> str:
        return f"{self.stem}_{self.ext}"

    @property
    def module_name(self) -> str:
        return f"template_{self.stem}_{self.ext}"

    @property
    def logical_name(self) -> str:
        """Логическое имя вида `admin/users.html`."""
        return "/".join(self.namespace + (f"{self.stem}.{self.ext}",))


__all__ = [
    "Node", "Body", "Text", "Expr", "Comment", "LetCondition", "Condition",
    "If", "For", "MatchArm", "Match", "Block", "CallArg", "Call", "Param",
    "TemplateFile",
]

"""
AST-узлы языка выражений.

Неизменяемые классы для значений (литералы, пути, вызовы, операторы)
и для образцов деструктуризации, используемых в @for, @match и @if let.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple, Union


@dataclass(frozen=True)
class Expression:
    """Базовый класс выражений. `position` — смещение начала в тексте шаблона."""
    position: int = field(default=0, kw_only=True, compare=False)


@dataclass(frozen=True)
class Literal(Expression):
    """
    Литерал: целое, дробное, строка, булево значение или None.

    `value` — уже вычисленное значение Python (строки с раскрытыми
    escape-последовательностями).
    """
    value: Union[int, float, str, bool, None]


@dataclass(frozen=True)
class Name(Expression):
    """Простой идентификатор."""
    name: str


@dataclass(frozen=True)
class Path(Expression):
    """
    Путь с квалификатором модуля или вариант перечисления: a::b::c.

    Содержит как минимум два сегмента.
    """
    parts: Tuple[str, ...]


@dataclass(frozen=True)
class Attribute(Expression):
    """Доступ к полю: value.name"""
    value: Expression
    name: str


@dataclass(frozen=True)
class MethodCall(Expression):
    """Вызов метода: receiver.name(args)"""
    receiver: Expression
    name: str
    args: Tuple[Expression, ...]


@dataclass(frozen=True)
class Call(Expression):
    """Вызов функции: func(args)"""
    func: Expression
    args: Tuple[Expression, ...]


@dataclass(frozen=True)
class Index(Expression):
    """Индексация: value[index]"""
    value: Expression
    index: Expression


@dataclass(frozen=True)
class TupleExpr(Expression):
    """Кортеж: (), (a,), (a, b)"""
    items: Tuple[Expression, ...]


@dataclass(frozen=True)
class ListExpr(Expression):
    """Список: [a, b]"""
    items: Tuple[Expression, ...]


@dataclass(frozen=True)
class Range(Expression):
    """Диапазон: start..end или start..=end (inclusive)."""
    start: Expression
    end: Expression
    inclusive: bool = False


@dataclass(frozen=True)
class Unary(Expression):
    """
    Унарная операция.

    Поддерживаемые операторы: "not" (логическое отрицание, также `!`)
    и "-" (смена знака).
    """
    op: str
    operand: Expression


@dataclass(frozen=True)
class Binary(Expression):
    """
    Бинарная операция: left op right

    Операторы нормализованы к форме Python: "or", "and", "==", "!=",
    "<", "<=", ">", ">=", "+", "-", "*", "/", "%".
    """
    op: str
    left: Expression
    right: Expression


@dataclass(frozen=True)
class Group(Expression):
    """Выражение в скобках: (inner)"""
    inner: Expression


# ---------------------------------------------------------------------------
# Образцы (patterns)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Pattern:
    """Базовый класс образцов деструктуризации."""
    position: int = field(default=0, kw_only=True, compare=False)


@dataclass(frozen=True)
class WildcardPattern(Pattern):
    """Образец `_`, совпадает с любым значением без связывания."""
    pass


@dataclass(frozen=True)
class BindingPattern(Pattern):
    """Связывание имени: совпадает с любым значением."""
    name: str


@dataclass(frozen=True)
class LiteralPattern(Pattern):
    """Литерал: 1, -1, "text", true, None."""
    value: Union[int, float, str, bool, None]


@dataclass(frozen=True)
class ValuePattern(Pattern):
    """Вариант перечисления без данных: Color::Red"""
    path: Tuple[str, ...]


@dataclass(frozen=True)
class TuplePattern(Pattern):
    """Кортеж образцов; `rest_index` — место `..` среди элементов (если есть)."""
    items: Tuple[Pattern, ...]
    rest_index: Optional[int] = None

    @property
    def has_rest(self) -> bool:
        return self.rest_index is not None


@dataclass(frozen=True)
class VariantPattern(Pattern):
    """Вариант с позиционными данными: Some(x), Shape::Circle(r)"""
    path: Tuple[str, ...]
    items: Tuple[Pattern, ...]


@dataclass(frozen=True)
class StructPattern(Pattern):
    """Структура с именованными полями: Point{x, y: py, ..}"""
    path: Tuple[str, ...]
    fields: Tuple[Tuple[str, Pattern], ...]
    has_rest: bool = False


@dataclass(frozen=True)
class OrPattern(Pattern):
    """Альтернатива образцов: A | B"""
    alternatives: Tuple[Pattern, ...]


def pattern_is_irrefutable(pattern: Pattern) -> bool:
    """
    Образец, который совпадает с любым значением подходящей формы и может
    быть записан как цель обычного цикла `for` (имя, `_`, кортеж из таких же).
    """
    if isinstance(pattern, (WildcardPattern, BindingPattern)):
        return True
    if isinstance(pattern, TuplePattern) and not pattern.has_rest:
        return all(pattern_is_irrefutable(item) for item in pattern.items)
    return False


def pattern_bindings(pattern: Optional[Pattern]) -> Tuple[str, ...]:
    """Имена, связываемые образцом, в порядке появления."""
    if pattern is None:
        return ()
    if isinstance(pattern, BindingPattern):
        return (pattern.name,)
    if isinstance(pattern, (TuplePattern, VariantPattern)):
        return tuple(name for item in pattern.items for name in pattern_bindings(item))
    if isinstance(pattern, StructPattern):
        return tuple(name for _, item in pattern.fields for name in pattern_bindings(item))
    if isinstance(pattern, OrPattern):
        return pattern_bindings(pattern.alternatives[0]) if pattern.alternatives else ()
    return ()


__all__ = [
    "Expression", "Literal", "Name", "Path", "Attribute", "MethodCall", "Call",
    "Index", "TupleExpr", "ListExpr", "Range", "Unary", "Binary", "Group",
    "Pattern", "WildcardPattern", "BindingPattern", "LiteralPattern", "ValuePattern",
    "TuplePattern", "VariantPattern", "StructPattern", "OrPattern",
    "pattern_is_irrefutable", "pattern_bindings",
]

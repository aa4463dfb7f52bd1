"""
Перевод AST выражений и образцов в исходный код Python.

Бинарные и унарные операции всегда берутся в скобки: так порядок
вычисления не зависит от приоритетов Python, а сравнения не сцепляются
(`a < b < c` в шаблоне значит `(a < b) < c`).
"""

from __future__ import annotations

import math
from typing import Callable, Mapping, Optional, Tuple

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

# Перехватчик путей a::b: получает сегменты и позицию, возвращает
# готовый код Python или None (тогда путь выводится как a.b).
PathHook = Callable[[Tuple[str, ...], int], Optional[str]]


def emit_literal(value) -> str:
    if isinstance(value, float) and not math.isfinite(value):
        return f"float({str(value)!r})"
    return repr(value)


def emit_expression(
    expr: Expression,
    path_hook: Optional[PathHook] = None,
    names: Optional[Mapping[str, str]] = None,
) -> str:
    """
    Возвращает исходный код Python для выражения.

    Args:
        expr: Выражение
        path_hook: Перехватчик путей a::b
        names: Переименования локальных имён (имя в шаблоне → имя в Python)
    """
    names = names or {}

    def emit(node: Expression) -> str:
        if isinstance(node, Literal):
            return emit_literal(node.value)
        if isinstance(node, Name):
            return names.get(node.name, node.name)
        if isinstance(node, Path):
            if path_hook is not None:
                hooked = path_hook(node.parts, node.position)
                if hooked is not None:
                    return hooked
            return ".".join((names.get(node.parts[0], node.parts[0]),) + node.parts[1:])
        if isinstance(node, Attribute):
            return f"{base(node.value)}.{node.name}"
        if isinstance(node, MethodCall):
            return f"{base(node.receiver)}.{node.name}({args(node.args)})"
        if isinstance(node, Call):
            return f"{base(node.func)}({args(node.args)})"
        if isinstance(node, Index):
            return f"{base(node.value)}[{emit(node.index)}]"
        if isinstance(node, TupleExpr):
            if len(node.items) == 1:
                return f"({emit(node.items[0])},)"
            return f"({args(node.items)})"
        if isinstance(node, ListExpr):
            return f"[{args(node.items)}]"
        if isinstance(node, Range):
            end = emit(node.end)
            if node.inclusive:
                end = f"{end} + 1"
            return f"range({emit(node.start)}, {end})"
        if isinstance(node, Unary):
            if node.op == "not":
                return f"(not {emit(node.operand)})"
            return f"(-{emit(node.operand)})"
        if isinstance(node, Binary):
            return f"({emit(node.left)} {node.op} {emit(node.right)})"
        if isinstance(node, Group):
            return f"({emit(node.inner)})"
        raise TypeError(f"Unsupported expression node: {type(node).__name__}")

    def base(node: Expression) -> str:
        # 1.real даёт синтаксическую ошибку в Python, а (1).real нет
        if isinstance(node, Literal):
            return f"({emit(node)})"
        return emit(node)

    def args(items: Tuple[Expression, ...]) -> str:
        return ", ".join(emit(item) for item in items)

    return emit(expr)


def emit_pattern(pattern: Pattern, names: Optional[Mapping[str, str]] = None) -> str:
    """Возвращает образец оператора `match` Python; `names` переименовывает связываемые имена."""
    names = names or {}

    def emit(node: Pattern) -> str:
        if isinstance(node, WildcardPattern):
            return "_"
        if isinstance(node, BindingPattern):
            return names.get(node.name, node.name)
        if isinstance(node, LiteralPattern):
            return emit_literal(node.value)
        if isinstance(node, ValuePattern):
            return ".".join(node.path)
        if isinstance(node, TuplePattern):
            items = [emit(item) for item in node.items]
            if node.rest_index is not None:
                items.insert(node.rest_index, "*_")
            if len(items) == 1:
                return f"({items[0]},)"
            return f"({', '.join(items)})"
        if isinstance(node, VariantPattern):
            items = ", ".join(emit(item) for item in node.items)
            return f"{'.'.join(node.path)}({items})"
        if isinstance(node, StructPattern):
            fields = ", ".join(f"{name}={emit(item)}" for name, item in node.fields)
            return f"{'.'.join(node.path)}({fields})"
        if isinstance(node, OrPattern):
            return " | ".join(emit(alt) for alt in node.alternatives)
        raise TypeError(f"Unsupported pattern node: {type(node).__name__}")

    return emit(pattern)


def emit_target(pattern: Pattern, names: Optional[Mapping[str, str]] = None) -> str:
    """
    Цель обычного цикла `for` для неопровержимого образца.

    Вызывать только если pattern_is_irrefutable(pattern).
    """
    names = names or {}
    if isinstance(pattern, WildcardPattern):
        return "_"
    if isinstance(pattern, BindingPattern):
        return names.get(pattern.name, pattern.name)
    if isinstance(pattern, TuplePattern):
        items = [emit_target(item, names) for item in pattern.items]
        if len(items) == 1:
            return f"({items[0]},)"
        return f"({', '.join(items)})"
    raise TypeError(f"Pattern is not a plain loop target: {type(pattern).__name__}")


__all__ = ["PathHook", "emit_expression", "emit_pattern", "emit_target", "emit_literal"]

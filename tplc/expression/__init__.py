"""
Встроенный язык выражений шаблонов: лексер, AST, парсер и генерация кода Python.
"""

from __future__ import annotations

from .emit import emit_expression, emit_pattern, emit_target
from .nodes import Expression, Pattern, pattern_bindings, pattern_is_irrefutable
from .parser import ExpressionParser, parse_expression_text

__all__ = [
    "Expression",
    "Pattern",
    "ExpressionParser",
    "parse_expression_text",
    "emit_expression",
    "emit_pattern",
    "emit_target",
    "pattern_bindings",
    "pattern_is_irrefutable",
]

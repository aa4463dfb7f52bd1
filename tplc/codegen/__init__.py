"""
Генерация кода Python из AST шаблонов.
"""

from __future__ import annotations

from .generator import GenerationContext, TemplateGenerator, generate_template
from .package import GeneratedUnit, package_units, runtime_source

__all__ = [
    "GenerationContext",
    "TemplateGenerator",
    "generate_template",
    "GeneratedUnit",
    "package_units",
    "runtime_source",
]

"""
Сборка сгенерированного пакета из модулей шаблонов.

Раскладывает модули по каталогам, создаёт `__init__.py` каждого
подпакета, кладёт копию run-time модуля `_utils.py` и проверяет,
что экспортируемые имена в каждом пакете уникальны.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from importlib import resources
from pathlib import Path, PurePosixPath
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from ..errors import DuplicateNameError
from ..template.nodes import TemplateFile
from .generator import STATICS_MODULE, UTILS_MODULE

logger = logging.getLogger(__name__)

INIT_HEADER = "# Generated by tplc. Do not edit.\n"
UTILS_HEADER = "# Generated by tplc: a copy of tplc.runtime. Do not edit.\n"


@dataclass(frozen=True)
class GeneratedUnit:
    """
    Один файл на выходе сборки.

    Attributes:
        path: Путь относительно выходного каталога
        text: Содержимое
        sources: Исходные файлы, от которых зависит содержимое
    """
    path: PurePosixPath
    text: str
    sources: Tuple[Path, ...] = ()


def runtime_source() -> str:
    """Текст run-time модуля, копируемого в пакет как `_utils.py`."""
    return resources.files("tplc").joinpath("runtime.py").read_text(encoding="utf-8")


def package_units(
    package: str,
    modules: Sequence[Tuple[TemplateFile, str]],
    statics_text: Optional[str] = None,
    statics_sources: Iterable[Path] = (),
) -> List[GeneratedUnit]:
    """
    Формирует все файлы пакета.

    Args:
        package: Имя корневого пакета
        modules: Пары (шаблон, сгенерированный текст модуля)
        statics_text: Текст `statics.py` или None
        statics_sources: Файлы, из которых собран `statics.py`

    Returns:
        Файлы, отсортированные по пути

    Raises:
        DuplicateNameError: Два объекта пакета получили одно имя
    """
    root = PurePosixPath(package)
    units: List[GeneratedUnit] = [
        GeneratedUnit(root / f"{UTILS_MODULE}.py", UTILS_HEADER + runtime_source()),
    ]
    if statics_text is not None:
        units.append(GeneratedUnit(root / f"{STATICS_MODULE}.py", statics_text, tuple(sorted(statics_sources))))

    namespaces: Dict[Tuple[str, ...], List[TemplateFile]] = {(): []}
    for template, text in modules:
        for depth in range(len(template.namespace) + 1):
            namespaces.setdefault(template.namespace[:depth], [])
        namespaces[template.namespace].append(template)
        path = root.joinpath(*template.namespace, f"{template.module_name}.py")
        units.append(GeneratedUnit(path, text, (template.path,)))

    for namespace in sorted(namespaces):
        templates = sorted(namespaces[namespace], key=lambda t: t.function_name)
        children = sorted({ns[len(namespace)] for ns in namespaces if len(ns) > len(namespace) and ns[:len(namespace)] == namespace})
        with_statics = statics_text is not None and namespace == ()
        text = _init_text(namespace, templates, children, with_statics)
        path = root.joinpath(*namespace, "__init__.py")
        units.append(GeneratedUnit(path, text, tuple(sorted(t.path for t in templates))))

    logger.debug("Package %s: %d namespaces, %d units", package, len(namespaces), len(units))
    return sorted(units, key=lambda u: u.path.as_posix())


def _init_text(
    namespace: Tuple[str, ...],
    templates: Sequence[TemplateFile],
    children: Sequence[str],
    with_statics: bool,
) -> str:
    owners: Dict[str, str] = {}

    def claim(name: str, owner: str) -> None:
        if name in owners:
            raise DuplicateNameError("template", name, owners[name], owner)
        owners[name] = owner

    where = "/".join(namespace) or "<root>"
    for name in (UTILS_MODULE, STATICS_MODULE) if with_statics else (UTILS_MODULE,):
        claim(name, f"module {where}/{name}.py")
    for child in children:
        claim(child, f"directory {where}/{child}")

    lines = [INIT_HEADER]
    for child in children:
        lines.append(f"from . import {child}\n")
    if with_statics:
        lines.append(f"from . import {STATICS_MODULE}\n")

    exported: Set[str] = set(children)
    if with_statics:
        exported.add(STATICS_MODULE)
    for template in templates:
        names = [template.function_name]
        if template.ext == "html":
            names.insert(0, template.stem)
        for name in names:
            claim(name, template.logical_name)
        exported.update(names)
        lines.append(f"from .{template.module_name} import {', '.join(sorted(names))}\n")

    if exported:
        lines.append("\n__all__ = [\n")
        lines.extend(f"    {name!r},\n" for name in sorted(exported))
        lines.append("]\n")
    return "".join(lines)


__all__ = ["GeneratedUnit", "runtime_source", "package_units"]

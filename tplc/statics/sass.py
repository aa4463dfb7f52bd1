"""
Адаптер препроцессора стилей поверх дистрибутива `libsass`.

Библиотека нужна только при сборке scss и ставится отдельно:
`pip install tplc[sass]`. В стилях доступна функция `static_name("img/logo.png")`,
возвращающая публичное имя уже добавленного статического файла.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping

from ..errors import CollaboratorError
from .indexer import logical_name

logger = logging.getLogger(__name__)


class LibsassPreprocessor:
    """Компиляция scss → сжатый css через `sass.compile`."""

    def __init__(self, output_style: str = "compressed"):
        self.output_style = output_style

    def compile(self, path: Path, static_names: Mapping[str, str]) -> bytes:
        try:
            import sass
        except ImportError as exc:
            raise CollaboratorError("libsass is not installed (pip install tplc[sass])", path) from exc

        def static_name(name: str) -> str:
            key = logical_name(str(name))
            if key not in static_names:
                raise ValueError(f"Static file {name} not found")
            return static_names[key]

        try:
            css = sass.compile(
                filename=str(path),
                output_style=self.output_style,
                custom_functions={"static_name": static_name},
            )
        except (sass.CompileError, OSError) as exc:
            raise CollaboratorError(str(exc), path) from exc

        logger.debug("Compiled stylesheet %s (%d chars)", path, len(css))
        return css.encode("utf-8")


__all__ = ["LibsassPreprocessor"]

"""
Запись сгенерированных файлов «только при изменении».

Файл перезаписывается, только если его новое содержимое отличается от
лежащего на диске, поэтому время модификации неизменённых модулей
сохраняется и зависимые сборки не запускаются зря.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Set, Tuple

from ..errors import IoError

logger = logging.getLogger(__name__)

WRITTEN = "written"
UNCHANGED = "unchanged"


def _ensure_dir(p: Path) -> None:
    p.mkdir(parents=True, exist_ok=True)


@dataclass
class OutputWriter:
    """
    Запись файлов в выходной каталог с учётом зависимостей.

    Attributes:
        root: Выходной каталог
        statuses: Путь → "written" / "unchanged" для каждого записанного файла
    """
    root: Path
    statuses: Dict[Path, str] = field(default_factory=dict)
    _sources: Dict[Path, Tuple[Path, ...]] = field(default_factory=dict, repr=False)

    def write(self, rel_path: Path | str, text: str, sources: Iterable[Path] = ()) -> str:
        """
        Записывает файл, если его содержимое изменилось.

        Args:
            rel_path: Путь относительно root
            text: Новое содержимое (UTF-8)
            sources: Исходные файлы, от которых зависит содержимое

        Returns:
            "written" или "unchanged"

        Raises:
            IoError: Не удалось прочитать старое или записать новое содержимое
        """
        path = self.root / rel_path
        data = text.encode("utf-8")
        self._sources[path] = tuple(sources)

        try:
            existing = path.read_bytes() if path.is_file() else None
        except OSError as exc:
            raise IoError("Cannot read generated file", path) from exc

        if existing == data:
            status = UNCHANGED
        else:
            self._atom_write(path, data)
            status = WRITTEN

        self.statuses[path] = status
        logger.debug("%s: %s", status, path)
        return status

    def dependencies(self) -> List[Path]:
        """Отсортированное объединение исходных файлов всех записанных единиц."""
        seen: Set[Path] = set()
        for sources in self._sources.values():
            seen.update(sources)
        return sorted(seen)

    def sources_of(self, rel_path: Path | str) -> Tuple[Path, ...]:
        return self._sources.get(self.root / rel_path, ())

    @property
    def written(self) -> List[Path]:
        return sorted(p for p, s in self.statuses.items() if s == WRITTEN)

    @property
    def unchanged(self) -> List[Path]:
        return sorted(p for p, s in self.statuses.items() if s == UNCHANGED)

    def _atom_write(self, path: Path, data: bytes) -> None:
        tmp = path.with_name(path.name + ".tmp")
        try:
            _ensure_dir(path.parent)
            tmp.write_bytes(data)
            tmp.replace(path)
        except OSError as exc:
            tmp.unlink(missing_ok=True)
            raise IoError("Cannot write generated file", path) from exc


__all__ = ["OutputWriter", "WRITTEN", "UNCHANGED"]

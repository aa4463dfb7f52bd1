"""Общие вспомогательные функции (обход каталогов, шаблоны исключений)."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator, List, Optional, Sequence

import pathspec

from .errors import IoError


# ---------------------------------------------------------------------------
# Шаблоны исключений → PathSpec
# ---------------------------------------------------------------------------

def build_pathspec(patterns: Sequence[str] | None) -> Optional[pathspec.PathSpec]:
    """
    PathSpec в синтаксисе .gitignore из списка шаблонов.
    Пустой список → None.
    """
    lines = [ln.strip() for ln in patterns or () if ln.strip() and not ln.strip().startswith("#")]
    if not lines:
        return None
    return pathspec.PathSpec.from_lines("gitwildmatch", lines)


# ---------------------------------------------------------------------------
# Рекурсивный обход
# ---------------------------------------------------------------------------

def iter_files(root: Path, spec: Optional[pathspec.PathSpec] = None) -> Iterator[Path]:
    """
    Все файлы под *root* в детерминированном (отсортированном) порядке.
    • пропускает скрытые файлы и каталоги
    • исключает пути, подходящие под PathSpec (если передан)

    Raises:
        IoError: root не является каталогом или не читается
    """
    if not root.is_dir():
        raise IoError("Not a directory", root)

    def on_error(exc: OSError) -> None:
        raise IoError("Cannot read directory", exc.filename or root) from exc

    for dirpath, dirnames, filenames in os.walk(root, onerror=on_error):
        rel_dir = Path(dirpath).relative_to(root).as_posix()
        keep: List[str] = []
        for d in sorted(dirnames):
            rel = d if rel_dir == "." else f"{rel_dir}/{d}"
            if d.startswith("."):
                continue
            if spec and spec.match_file(rel + "/"):
                continue
            keep.append(d)
        dirnames[:] = keep

        for fn in sorted(filenames):
            rel = fn if rel_dir == "." else f"{rel_dir}/{fn}"
            if fn.startswith("."):
                continue
            if spec and spec.match_file(rel):
                continue
            yield Path(dirpath, fn)


__all__ = ["build_pathspec", "iter_files"]

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..errors import ConfigError

DEFAULT_TEMPLATES_DIR = "templates"
DEFAULT_OUTPUT_DIR = "generated"
DEFAULT_PACKAGE = "templates"


def default_workers() -> int:
    return min(8, os.cpu_count() or 1)


def _check_keys(data: Dict[str, Any], allowed: set[str], where: str) -> None:
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ConfigError(f"Unknown key(s) in {where}: {', '.join(unknown)}")


def _str_list(value: Any, where: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"'{where}' must be a string or a list of strings")
    return list(value)


@dataclass(frozen=True)
class FilesAs:
    """Каталог, публикуемый под префиксом без хеширования имён."""
    dir: Path
    prefix: str

    @classmethod
    def from_dict(cls, data: Any, root: Path) -> "FilesAs":
        if not isinstance(data, dict):
            raise ConfigError("Each 'static.files_as' entry must be a mapping with 'dir' and 'prefix'")
        _check_keys(data, {"dir", "prefix"}, "static.files_as")
        if "dir" not in data:
            raise ConfigError("'static.files_as' entry requires 'dir'")
        return cls(dir=root / str(data["dir"]), prefix=str(data.get("prefix", "")))


@dataclass(frozen=True)
class StaticConfig:
    """Источники статических файлов."""
    dirs: Tuple[Path, ...] = ()
    files: Tuple[Path, ...] = ()
    files_as: Tuple[FilesAs, ...] = ()
    sass: Tuple[Path, ...] = ()

    @property
    def enabled(self) -> bool:
        return bool(self.dirs or self.files or self.files_as or self.sass)

    @classmethod
    def from_dict(cls, data: Any, root: Path) -> "StaticConfig":
        """Создание экземпляра из словаря (из YAML)."""
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ConfigError("'static' must be a mapping")
        _check_keys(data, {"dirs", "files", "files_as", "sass"}, "static")
        files_as = data.get("files_as") or []
        if not isinstance(files_as, list):
            raise ConfigError("'static.files_as' must be a list")
        return cls(
            dirs=tuple(root / p for p in _str_list(data.get("dirs"), "static.dirs")),
            files=tuple(root / p for p in _str_list(data.get("files"), "static.files")),
            files_as=tuple(FilesAs.from_dict(item, root) for item in files_as),
            sass=tuple(root / p for p in _str_list(data.get("sass"), "static.sass")),
        )


@dataclass(frozen=True)
class BuildConfig:
    """
    Настройки сборки.

    Пути уже разрешены относительно корня проекта (каталога tplc.yaml).
    """
    root: Path
    templates: Path
    output: Path
    package: str = DEFAULT_PACKAGE
    workers: int = field(default_factory=default_workers)
    exclude: Tuple[str, ...] = ()
    static: StaticConfig = field(default_factory=StaticConfig)

    def __post_init__(self) -> None:
        if not self.package.isidentifier():
            raise ConfigError(f"Package name must be a Python identifier: {self.package!r}")
        if self.workers < 1:
            raise ConfigError(f"'workers' must be a positive integer, got {self.workers}")

    @classmethod
    def default(cls, root: Path) -> "BuildConfig":
        return cls(root=root, templates=root / DEFAULT_TEMPLATES_DIR, output=root / DEFAULT_OUTPUT_DIR)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], root: Path) -> "BuildConfig":
        """Создание экземпляра из словаря (из YAML)."""
        _check_keys(data, {"templates", "output", "package", "workers", "exclude", "static"}, "tplc.yaml")
        workers = data.get("workers")
        if workers is not None and (isinstance(workers, bool) or not isinstance(workers, int)):
            raise ConfigError("'workers' must be an integer")
        return cls(
            root=root,
            templates=root / str(data.get("templates", DEFAULT_TEMPLATES_DIR)),
            output=root / str(data.get("output", DEFAULT_OUTPUT_DIR)),
            package=str(data.get("package", DEFAULT_PACKAGE)),
            workers=workers if workers is not None else default_workers(),
            exclude=tuple(_str_list(data.get("exclude"), "exclude")),
            static=StaticConfig.from_dict(data.get("static"), root),
        )

    def with_overrides(
        self,
        *,
        templates: Optional[Path] = None,
        output: Optional[Path] = None,
        package: Optional[str] = None,
        workers: Optional[int] = None,
    ) -> "BuildConfig":
        """Копия с заменой заданных значений (аргументы CLI важнее файла)."""
        changes: Dict[str, Any] = {}
        if templates is not None:
            changes["templates"] = templates
        if output is not None:
            changes["output"] = output
        if package is not None:
            changes["package"] = package
        if workers is not None:
            changes["workers"] = workers
        return replace(self, **changes) if changes else self


__all__ = ["BuildConfig", "StaticConfig", "FilesAs", "default_workers"]

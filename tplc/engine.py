"""
Сборка: обход каталога шаблонов, разбор, генерация и запись пакета.

Разбор и генерация каждого шаблона независимы и выполняются в пуле потоков;
результаты сортируются до записи. Если хотя бы один шаблон не разобрался,
все ошибки пишутся в лог, а сборка падает, ничего не записав.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from .codegen import GeneratedUnit, GenerationContext, generate_template, package_units
from .config.model import BuildConfig, default_workers
from .errors import DuplicateNameError, TplcError
from .output import OutputWriter
from .statics import LibsassPreprocessor, StaticIndexer, StylesheetPreprocessor, generate_statics
from .template import TemplateFile, is_template_file, parse_template_file
from .utils import build_pathspec, iter_files

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

CHECKED = "checked"


@dataclass(frozen=True)
class UnitResult:
    """Итог по одному выходному файлу."""
    path: Path
    status: str
    sources: Tuple[Path, ...] = ()


@dataclass
class BuildResult:
    """
    Итог сборки.

    Attributes:
        templates: Логические имена скомпилированных шаблонов
        units: Выходные файлы (по порядку путей)
        dependencies: Все исходные файлы, от которых зависит результат
        statics: Логическое → публичное имя статических файлов
    """
    templates: List[str] = field(default_factory=list)
    units: List[UnitResult] = field(default_factory=list)
    dependencies: List[Path] = field(default_factory=list)
    statics: Dict[str, str] = field(default_factory=dict)

    @property
    def written(self) -> List[Path]:
        return [u.path for u in self.units if u.status == "written"]

    @property
    def unchanged(self) -> List[Path]:
        return [u.path for u in self.units if u.status == "unchanged"]


@dataclass(frozen=True)
class _Outcome:
    """Результат задачи пула: значение или ожидаемая ошибка."""
    key: str
    value: object = None
    error: Optional[TplcError] = None


def _run_all(
    items: Sequence[T],
    func: Callable[[T], R],
    key: Callable[[T], str],
    workers: int,
) -> List[R]:
    """
    Выполняет func для всех items в пуле потоков.

    Ожидаемые ошибки (TplcError) собираются и логируются все; затем
    поднимается первая по ключу. Прочие исключения проходят как есть.
    """
    def task(item: T) -> _Outcome:
        try:
            return _Outcome(key(item), func(item))
        except TplcError as exc:
            return _Outcome(key(item), error=exc)

    if workers > 1 and len(items) > 1:
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="tplc") as pool:
            outcomes = list(pool.map(task, items))
    else:
        outcomes = [task(item) for item in items]

    failures = sorted((o for o in outcomes if o.error is not None), key=lambda o: o.key)
    for outcome in failures:
        logger.error("%s", outcome.error)
    if failures:
        if len(failures) > 1:
            logger.error("%d templates failed", len(failures))
        raise failures[0].error  # type: ignore[misc]
    return [o.value for o in outcomes]  # type: ignore[misc]


class Builder:
    """
    Компилятор каталога шаблонов (и, при необходимости, статических файлов)
    в пакет Python.

    Пример:
        builder = Builder("generated", package="templates")
        builder.statics().add_files("static")
        builder.compile_templates("templates")
    """

    def __init__(
        self,
        outdir: Path | str,
        *,
        package: str = "templates",
        workers: Optional[int] = None,
        exclude: Sequence[str] = (),
        base_path: Path | str = ".",
    ):
        self.outdir = Path(outdir)
        self.package = package
        self.workers = workers or default_workers()
        self.exclude = tuple(exclude)
        self.base_path = Path(base_path)
        self._statics: Optional[StaticIndexer] = None

    def statics(self) -> StaticIndexer:
        """Индекс статических файлов; создаётся при первом обращении."""
        if self._statics is None:
            self._statics = StaticIndexer(self.base_path, self.exclude)
        return self._statics

    # ------------------------------------------------------------------ #

    def compile_templates(self, indir: Path | str, *, write: bool = True) -> BuildResult:
        """
        Компилирует все шаблоны каталога `indir`.

        Args:
            indir: Корень шаблонов; подкаталоги становятся подпакетами
            write: False — только проверить (разобрать и сгенерировать)

        Raises:
            TplcError: Ошибка разбора, ввода-вывода или конфликт имён
        """
        root = Path(indir)
        templates = self.parse_all(root)
        units = self.generate(templates)

        result = BuildResult(
            templates=[t.logical_name for t in templates],
            statics=self._statics.get_names() if self._statics is not None else {},
        )
        if not write:
            result.units = [UnitResult(self.outdir / u.path, CHECKED, u.sources) for u in units]
            result.dependencies = sorted({s for u in units for s in u.sources})
            return result

        writer = OutputWriter(self.outdir)
        for unit in units:
            status = writer.write(unit.path, unit.text, unit.sources)
            result.units.append(UnitResult(self.outdir / unit.path, status, unit.sources))
        result.dependencies = writer.dependencies()
        logger.info(
            "Compiled %d templates into %s (%d written, %d unchanged)",
            len(templates), self.outdir / self.package, len(result.written), len(result.unchanged),
        )
        return result

    def parse_all(self, root: Path) -> List[TemplateFile]:
        """Разбирает все шаблоны; результат отсортирован по логическому имени."""
        spec = build_pathspec(self.exclude)
        files = [p for p in iter_files(root, spec) if is_template_file(p)]
        logger.debug("Found %d templates under %s", len(files), root)

        templates: List[TemplateFile] = _run_all(
            files,
            lambda path: parse_template_file(path, root),
            key=lambda path: path.relative_to(root).as_posix(),
            workers=self.workers,
        )
        templates.sort(key=lambda t: (t.namespace, t.function_name))
        _check_unique(templates)
        return templates

    def generate(self, templates: Sequence[TemplateFile]) -> List[GeneratedUnit]:
        """Генерирует все файлы пакета (без записи)."""
        static_names = None
        statics_text = None
        statics_sources: List[Path] = []
        if self._statics is not None:
            static_names = frozenset(self._statics.get_names())
            statics_text = generate_statics(self._statics.assets())
            statics_sources = self._statics.sources()

        context = GenerationContext.from_templates(templates, static_names)
        texts: List[str] = _run_all(
            list(templates),
            lambda t: generate_template(t, context),
            key=lambda t: t.logical_name,
            workers=self.workers,
        )
        return package_units(self.package, list(zip(templates, texts)), statics_text, statics_sources)


def _check_unique(templates: Sequence[TemplateFile]) -> None:
    seen: Dict[Tuple[Tuple[str, ...], str], TemplateFile] = {}
    for template in templates:
        key = (template.namespace, template.function_name)
        if key in seen:
            raise DuplicateNameError(
                "template", ".".join(key[0] + (key[1],)), str(seen[key].path), str(template.path)
            )
        seen[key] = template


def compile_templates(
    indir: Path | str,
    outdir: Path | str,
    *,
    package: str = "templates",
    workers: Optional[int] = None,
    exclude: Sequence[str] = (),
) -> BuildResult:
    """
    Компилирует каталог шаблонов в пакет `outdir/package`.

    Raises:
        TplcError: Сборка не удалась; ни один файл не записан
    """
    return Builder(outdir, package=package, workers=workers, exclude=exclude).compile_templates(indir)


def build_from_config(
    cfg: BuildConfig,
    *,
    write: bool = True,
    preprocessor: Optional[StylesheetPreprocessor] = None,
) -> BuildResult:
    """Полная сборка по настройкам: статические файлы, затем шаблоны."""
    builder = Builder(
        cfg.output,
        package=cfg.package,
        workers=cfg.workers,
        exclude=cfg.exclude,
        base_path=cfg.root,
    )
    static = cfg.static
    if static.enabled:
        indexer = builder.statics()
        for directory in static.dirs:
            indexer.add_files(directory)
        for path in static.files:
            indexer.add_file(path)
        for entry in static.files_as:
            indexer.add_files_as(entry.dir, entry.prefix)
        if static.sass:
            sass = preprocessor or LibsassPreprocessor()
            for path in static.sass:
                indexer.add_sass_file(path, sass)
        logger.debug("Indexed %d static files", len(indexer))
    return builder.compile_templates(cfg.templates, write=write)


__all__ = [
    "Builder",
    "BuildResult",
    "UnitResult",
    "compile_templates",
    "build_from_config",
]

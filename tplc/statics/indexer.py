"""
Индекс статических файлов с адресацией по содержимому.

Каждый файл получает логическое имя (идентификатор Python для шаблонов)
и публичное имя, в которое встроен короткий токен от md5 содержимого:

    css/style.css  →  логическое `css_style_css`, публичное `style-6Kd3fNQb.css`

Изменение хотя бы одного байта меняет публичное имя, поэтому клиенты могут
кэшировать файлы бессрочно. Одинаковое содержимое хранится один раз.
"""

from __future__ import annotations

import base64
import hashlib
import keyword
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Dict, List, Mapping, Optional, Protocol, Sequence

from ..errors import CollaboratorError, DuplicateNameError, IoError, TplcError
from ..utils import build_pathspec, iter_files
from .mime import mime_for

logger = logging.getLogger(__name__)

# Длина префикса md5, из которого строится токен (6 байт → 8 символов base64)
TOKEN_BYTES = 6

_NON_IDENT = re.compile(r"\W", re.ASCII)


@dataclass(frozen=True)
class StaticAsset:
    """
    Запись индекса.

    Attributes:
        source: Исходный файл или None для данных из памяти
        name: Логическое имя (идентификатор Python)
        digest: md5 содержимого (hex)
        public_path: Публичное имя
        mime: Mime-тип
        content: Содержимое
    """
    source: Optional[Path]
    name: str
    digest: str
    public_path: str
    mime: str
    content: bytes = field(repr=False)


class StylesheetPreprocessor(Protocol):
    """Внешний препроцессор стилей (scss → css)."""

    def compile(self, path: Path, static_names: Mapping[str, str]) -> bytes:
        """
        Компилирует файл; `static_names` — уже известные логические → публичные имена.

        Raises:
            CollaboratorError: При ошибке компиляции
        """
        ...


def content_digest(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()


def checksum_token(data: bytes) -> str:
    """Короткий токен для имени файла: url-safe base64 от первых 6 байт md5."""
    return base64.urlsafe_b64encode(hashlib.md5(data).digest()[:TOKEN_BYTES]).decode("ascii")


def logical_name(rel_path: str) -> str:
    """
    Логическое имя из относительного пути: `/ - .` и прочие символы,
    недопустимые в идентификаторе, заменяются на `_`.
    """
    name = _NON_IDENT.sub("_", rel_path)
    if not name or name[0].isdigit():
        name = "_" + name
    if keyword.iskeyword(name):
        name += "_"
    return name


def hashed_name(file_name: str, data: bytes) -> str:
    """`style.css` → `style-TOKEN.css`; без расширения → `name-TOKEN`."""
    stem, dot, ext = file_name.rpartition(".")
    if not dot or not stem:
        return f"{file_name}-{checksum_token(data)}"
    return f"{stem}-{checksum_token(data)}.{ext}"


def _ext(file_name: str) -> str:
    stem, dot, ext = file_name.rpartition(".")
    return ext if dot and stem else ""


class StaticIndexer:
    """
    Собирает таблицу статических файлов.

    Не потокобезопасен: файлы добавляются последовательно, порядок
    добавления на результат не влияет (таблица сортируется по имени).
    """

    def __init__(self, base_path: Path | str = ".", exclude: Sequence[str] = ()):
        self.base_path = Path(base_path)
        self._spec = build_pathspec(exclude)
        self._assets: Dict[str, StaticAsset] = {}
        self._public: Dict[str, str] = {}
        # digest → каноническое содержимое
        self._arena: Dict[str, bytes] = {}

    def _path_for(self, path: Path | str) -> Path:
        path = Path(path)
        return path if path.is_absolute() else self.base_path / path

    # ------------------------------------------------------------------ #
    # Добавление файлов
    # ------------------------------------------------------------------ #

    def add_files(self, indir: Path | str) -> List[StaticAsset]:
        """Рекурсивно добавляет каталог; логическое имя — от относительного пути."""
        root = self._path_for(indir)
        added = []
        for path in iter_files(root, self._spec):
            rel = path.relative_to(root).as_posix()
            data = self._read(path)
            added.append(self._add(path, logical_name(rel), hashed_name(path.name, data), data, _ext(path.name)))
        logger.debug("Static dir %s: %d files", root, len(added))
        return added

    def add_file(self, path: Path | str) -> StaticAsset:
        """Добавляет один файл; логическое имя — от имени файла."""
        path = self._path_for(path)
        data = self._read(path)
        return self._add(path, logical_name(path.name), hashed_name(path.name, data), data, _ext(path.name))

    def add_files_as(self, indir: Path | str, prefix: str) -> List[StaticAsset]:
        """
        Рекурсивно добавляет каталог под публичным префиксом без хеширования имён:
        `vendor/js/app.js` с префиксом `js` → публичное `js/app.js`.
        """
        root = self._path_for(indir)
        base = PurePosixPath(prefix.strip("/")) if prefix.strip("/") else PurePosixPath()
        return [self.add_file_as(path, (base / path.relative_to(root).as_posix()).as_posix()) for path in iter_files(root, self._spec)]

    def add_file_as(self, path: Path | str, public_path: str) -> StaticAsset:
        """Добавляет файл под заданным публичным именем без хеширования."""
        path = self._path_for(path)
        data = self._read(path)
        return self._add(path, logical_name(public_path), public_path, data, _ext(path.name))

    def add_file_data(self, path: Path | str, data: bytes, *, source: Optional[Path] = None) -> StaticAsset:
        """
        Добавляет содержимое из памяти так, будто оно прочитано из `path`.

        `source` — реальный исходный файл для зависимостей сборки (если есть).
        """
        name = Path(path).name
        return self._add(source, logical_name(name), hashed_name(name, data), bytes(data), _ext(name))

    def add_sass_file(self, path: Path | str, preprocessor: StylesheetPreprocessor) -> StaticAsset:
        """
        Компилирует таблицу стилей и добавляет результат как `<stem>.css`.

        Препроцессор видит уже добавленные файлы, поэтому стили могут
        ссылаться на их публичные имена.
        """
        path = self._path_for(path)
        try:
            css = preprocessor.compile(path, self.get_names())
        except TplcError:
            raise
        except Exception as exc:
            raise CollaboratorError(str(exc), path) from exc
        return self.add_file_data(path.with_suffix(".css"), css, source=path)

    # ------------------------------------------------------------------ #
    # Результаты
    # ------------------------------------------------------------------ #

    def get_names(self) -> Dict[str, str]:
        """Логическое имя → публичное имя, по порядку логических имён."""
        return {name: self._assets[name].public_path for name in sorted(self._assets)}

    def assets(self) -> List[StaticAsset]:
        """Записи индекса по порядку логических имён."""
        return [self._assets[name] for name in sorted(self._assets)]

    def sources(self) -> List[Path]:
        return sorted({a.source for a in self._assets.values() if a.source is not None})

    def __len__(self) -> int:
        return len(self._assets)

    # ------------------------------------------------------------------ #

    def _read(self, path: Path) -> bytes:
        try:
            return path.read_bytes()
        except OSError as exc:
            raise IoError("Cannot read static file", path) from exc

    def _add(self, source: Optional[Path], name: str, public_path: str, data: bytes, ext: str) -> StaticAsset:
        digest = content_digest(data)

        existing = self._assets.get(name)
        if existing is not None:
            if source is not None and existing.source == source and existing.digest == digest:
                return existing
            raise DuplicateNameError("static", name, _describe(existing.source), _describe(source))

        owner = self._public.get(public_path)
        if owner is not None and self._assets[owner].digest != digest:
            raise DuplicateNameError(
                "static public", public_path, _describe(self._assets[owner].source), _describe(source)
            )

        content = self._arena.setdefault(digest, data)
        asset = StaticAsset(source, name, digest, public_path, mime_for(ext), content)
        self._assets[name] = asset
        self._public.setdefault(public_path, name)
        logger.debug("Static %s -> %s (%s)", name, public_path, asset.mime)
        return asset


def _describe(source: Optional[Path]) -> str:
    return str(source) if source is not None else "<data>"


__all__ = [
    "StaticAsset",
    "StaticIndexer",
    "StylesheetPreprocessor",
    "content_digest",
    "checksum_token",
    "logical_name",
    "hashed_name",
]

"""
Генерация модуля `statics.py` по индексу статических файлов.
"""

from __future__ import annotations

from typing import Dict, List, Sequence

from ..errors import DuplicateNameError
from .indexer import StaticAsset

HEADER = "# Generated by tplc from static files. Do not edit.\n"

# Имена, занятые самим модулем
RESERVED_NAMES = frozenset({"STATICS", "StaticFile", "Optional", "annotations", "get", "_BY_NAME"})


def generate_statics(assets: Sequence[StaticAsset]) -> str:
    """
    Текст модуля: одна переменная StaticFile на логическое имя, кортеж
    STATICS (по публичным именам) и функция get() для поиска по публичному имени.

    Одинаковое содержимое записывается в модуль один раз.
    """
    by_name = sorted(assets, key=lambda a: a.name)
    for asset in by_name:
        if asset.name in RESERVED_NAMES:
            origin = asset.source.as_posix() if asset.source is not None else "<data>"
            raise DuplicateNameError("static", asset.name, "statics module", origin)

    data_vars: Dict[str, str] = {}
    for digest in sorted({a.digest for a in by_name}):
        data_vars[digest] = f"_data_{digest}"

    lines: List[str] = [
        HEADER,
        "from __future__ import annotations\n",
        "\n",
        "from typing import Optional\n",
        "\n",
        "from ._utils import StaticFile\n",
        "\n",
    ]

    contents = {a.digest: a.content for a in by_name}
    for digest, var in data_vars.items():
        lines.append(f"{var} = {contents[digest]!r}\n")

    for asset in by_name:
        origin = asset.source.as_posix() if asset.source is not None else "<data>"
        lines.append(f"\n# From {origin}\n")
        lines.append(
            f"{asset.name} = StaticFile({data_vars[asset.digest]}, {asset.public_path!r}, {asset.mime!r})\n"
        )

    # Одно публичное имя: один файл, даже если логических имён несколько
    public: Dict[str, str] = {}
    for asset in by_name:
        public.setdefault(asset.public_path, asset.name)

    lines.append("\nSTATICS = (\n")
    lines.extend(f"    {public[path]},\n" for path in sorted(public))
    lines.append(")\n")
    lines.append("\n_BY_NAME = {s.name: s for s in STATICS}\n")
    lines.append(
        "\n\ndef get(name: str) -> Optional[StaticFile]:\n"
        '    """Static file by its public name."""\n'
        "    return _BY_NAME.get(name)\n"
    )
    return "".join(lines)


__all__ = ["generate_statics"]

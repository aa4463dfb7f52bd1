"""
JSON-отчёт о сборке для CLI (`tplc build --json`).
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .engine import BuildResult
from .version import tool_version


class UnitReport(BaseModel):
    model_config = ConfigDict(extra="forbid")

    path: str
    status: Literal["written", "unchanged", "checked"]
    sources: List[str] = Field(default_factory=list)


class BuildReport(BaseModel):
    model_config = ConfigDict(extra="forbid")

    protocol: int = 1
    version: str
    package: str
    output: str
    templates: List[str] = Field(default_factory=list)
    units: List[UnitReport] = Field(default_factory=list)
    statics: Dict[str, str] = Field(default_factory=dict)
    dependencies: List[str] = Field(default_factory=list)
    written: int = 0
    unchanged: int = 0


class ErrorReport(BaseModel):
    model_config = ConfigDict(extra="forbid")

    protocol: int = 1
    error: str
    kind: str
    file: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None


def _rel(path: Path, root: Path) -> str:
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return path.as_posix()


def build_report(result: BuildResult, *, package: str, output: Path, root: Path) -> BuildReport:
    """Переводит результат сборки в модель отчёта; пути — относительно root."""
    return BuildReport(
        version=tool_version(),
        package=package,
        output=_rel(output, root),
        templates=list(result.templates),
        units=[
            UnitReport(
                path=_rel(u.path, root),
                status=u.status,  # type: ignore[arg-type]
                sources=[_rel(s, root) for s in u.sources],
            )
            for u in result.units
        ],
        statics=dict(result.statics),
        dependencies=[_rel(p, root) for p in result.dependencies],
        written=len(result.written),
        unchanged=len(result.unchanged),
    )


__all__ = ["UnitReport", "BuildReport", "ErrorReport", "build_report"]

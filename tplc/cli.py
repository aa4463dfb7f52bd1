from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from .config import load_config
from .engine import build_from_config
from .errors import IoError, ParseError, TplcError
from .jsonic import dumps as jdumps
from .report import ErrorReport, build_report
from .version import tool_version

_LOG = logging.getLogger("tplc")

# Переменная окружения, включающая отладочный лог
DEBUG_ENV = "TPLC_DEBUG"


def _setup_logging_once(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose or os.environ.get(DEBUG_ENV) else logging.INFO
    _LOG.setLevel(level)
    if getattr(_setup_logging_once, "_inited", False):
        return
    _setup_logging_once._inited = True  # type: ignore[attr-defined]
    if not _LOG.handlers:
        h = logging.StreamHandler()
        fmt = logging.Formatter("[%(levelname)s] %(message)s")
        h.setFormatter(fmt)
        _LOG.addHandler(h)


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="tplc",
        description="Compile templates into Python rendering functions",
        add_help=True,
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {tool_version()}")
    p.add_argument("-v", "--verbose", action="store_true", help="отладочный лог")
    sub = p.add_subparsers(dest="cmd", required=True)

    # Общие аргументы для build/check
    def add_common(sp: argparse.ArgumentParser) -> None:
        sp.add_argument(
            "--config",
            type=Path,
            metavar="FILE",
            help="файл конфигурации (по умолчанию ./tplc.yaml, если есть)",
        )
        sp.add_argument("--templates", type=Path, metavar="DIR", help="каталог шаблонов")
        sp.add_argument("--output", type=Path, metavar="DIR", help="выходной каталог")
        sp.add_argument("--package", help="имя генерируемого пакета")
        sp.add_argument("--workers", type=int, metavar="N", help="число потоков разбора")
        sp.add_argument("--json", action="store_true", help="JSON-отчёт в stdout")

    sp_build = sub.add_parser("build", help="Скомпилировать шаблоны и записать пакет")
    add_common(sp_build)

    sp_check = sub.add_parser("check", help="Только проверить шаблоны, ничего не записывая")
    add_common(sp_check)

    return p


def _error_report(exc: TplcError) -> ErrorReport:
    if isinstance(exc, ParseError):
        return ErrorReport(
            error=str(exc), kind=type(exc).__name__, file=exc.file or None, line=exc.line, column=exc.column
        )
    return ErrorReport(error=str(exc), kind=type(exc).__name__)


def main(argv: Optional[list[str]] = None) -> int:
    ns = _build_parser().parse_args(argv)
    _setup_logging_once(ns.verbose)

    root = Path.cwd()
    try:
        cfg = load_config(root, ns.config)
        cfg = cfg.with_overrides(
            templates=root / ns.templates if ns.templates else None,
            output=root / ns.output if ns.output else None,
            package=ns.package,
            workers=ns.workers,
        )
        result = build_from_config(cfg, write=ns.cmd == "build")
    except TplcError as e:
        if ns.json:
            sys.stdout.write(jdumps(_error_report(e)))
        sys.stderr.write(str(e).rstrip() + "\n")
        return 1 if isinstance(e, IoError) else 2

    if ns.json:
        report = build_report(result, package=cfg.package, output=cfg.output, root=root)
        sys.stdout.write(jdumps(report))
    elif ns.cmd == "check":
        sys.stdout.write(f"OK: {len(result.templates)} templates\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

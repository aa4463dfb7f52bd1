"""
Общая инфраструктура тестов tplc.

Модули:
- file_utils: создание файлов и каталогов
- rendering_utils: компиляция шаблонов во временный пакет и отрисовка
- cli_utils: запуск CLI в отдельном процессе
"""

from .file_utils import write, write_bytes
from .rendering_utils import compile_package, render, unload_package
from .cli_utils import run_cli, jload

__all__ = [
    "write",
    "write_bytes",
    "compile_package",
    "render",
    "unload_package",
    "run_cli",
    "jload",
]

import textwrap
import uuid
from pathlib import Path

import pytest

from tests.infrastructure.file_utils import write
from tests.infrastructure.rendering_utils import compile_package, unload_package


@pytest.fixture
def build_pkg(tmp_path: Path):
    """
    Компилирует набор шаблонов во временный пакет с уникальным именем
    и импортирует его. После теста пакет выгружается.

    Использование:
        pkg = build_pkg({"hello.html": "@(name: str)\\nHello, @name!"})
        render(pkg.hello, "World")
    """
    built = []

    def _build(templates, *, setup=None, with_result=False):
        package = f"tplc_gen_{uuid.uuid4().hex[:12]}"
        built.append(package)
        module, result = compile_package(tmp_path, templates, package=package, setup=setup)
        return (module, result) if with_result else module

    yield _build

    for package in built:
        unload_package(tmp_path, package)


@pytest.fixture
def tmpproj(tmp_path: Path) -> Path:
    """Минимальный проект: tplc.yaml и два шаблона, один во вложенном каталоге."""
    root = tmp_path
    write(
        root / "tplc.yaml",
        textwrap.dedent("""
        templates: templates
        output: generated
        package: site
        """).lstrip(),
    )
    write(root / "templates" / "hello.html", "@(name: str)\nHello, @name!\n")
    write(root / "templates" / "admin" / "users.html", "@(users: list)\n@for u in users {<li>@u</li>}\n")
    return root

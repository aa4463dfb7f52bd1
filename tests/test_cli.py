"""
Тесты CLI: команды build и check, JSON-отчёты и коды возврата.
"""

from pathlib import Path

from tests.infrastructure.cli_utils import jload, run_cli
from tests.infrastructure.file_utils import write
from tplc.jsonic import dumps as jdumps
from tplc.report import ErrorReport


def test_build_writes_package(tmpproj: Path):
    cp = run_cli(tmpproj, "build")
    assert cp.returncode == 0, cp.stderr
    out = tmpproj / "generated" / "site"
    assert (out / "template_hello_html.py").is_file()
    assert (out / "admin" / "template_users_html.py").is_file()
    assert "[INFO] Compiled 2 templates" in cp.stderr


def test_build_json_report(tmpproj: Path):
    cp = run_cli(tmpproj, "build", "--json")
    assert cp.returncode == 0, cp.stderr
    assert cp.stdout.endswith("}\n") and cp.stdout.count("\n") == 1
    data = jload(cp.stdout)
    assert data["protocol"] == 1
    assert data["package"] == "site"
    assert data["output"] == "generated"
    assert data["templates"] == ["hello.html", "admin/users.html"]
    assert data["written"] == len(data["units"])
    assert "templates/hello.html" in data["dependencies"]
    statuses = {u["path"]: u["status"] for u in data["units"]}
    assert statuses["generated/site/template_hello_html.py"] == "written"

    again = jload(run_cli(tmpproj, "build", "--json").stdout)
    assert again["written"] == 0
    assert again["unchanged"] == len(again["units"])


def test_check_writes_nothing(tmpproj: Path):
    cp = run_cli(tmpproj, "check")
    assert cp.returncode == 0, cp.stderr
    assert cp.stdout.strip() == "OK: 2 templates"
    assert not (tmpproj / "generated").exists()


def test_overrides(tmpproj: Path):
    cp = run_cli(tmpproj, "build", "--output", "alt", "--package", "web", "--workers", "1")
    assert cp.returncode == 0, cp.stderr
    assert (tmpproj / "alt" / "web" / "__init__.py").is_file()


def test_parse_error_exit_code(tmpproj: Path):
    write(tmpproj / "templates" / "hello.html", "@(name: str)\nHello, @if name {\n")
    cp = run_cli(tmpproj, "build")
    assert cp.returncode == 2
    assert "hello.html:2:" in cp.stderr
    assert "Unclosed block" in cp.stderr
    assert not (tmpproj / "generated").exists()


def test_parse_error_json(tmpproj: Path):
    write(tmpproj / "templates" / "hello.html", "@(name: str)\n@else {x}")
    cp = run_cli(tmpproj, "check", "--json")
    assert cp.returncode == 2
    data = jload(cp.stdout)
    assert data["kind"] == "ParseError"
    assert (data["file"], data["line"], data["column"]) == ("hello.html", 2, 1)


def test_missing_templates_dir(tmp_path: Path):
    cp = run_cli(tmp_path, "build", "--templates", "nope")
    assert cp.returncode == 1
    assert "Not a directory" in cp.stderr


def test_bad_config(tmp_path: Path):
    write(tmp_path / "tplc.yaml", "unknown: 1\n")
    cp = run_cli(tmp_path, "check")
    assert cp.returncode == 2
    assert "Unknown key" in cp.stderr


def test_version(tmp_path: Path):
    cp = run_cli(tmp_path, "--version")
    assert cp.returncode == 0
    assert cp.stdout.startswith("tplc ")


def test_json_report_keeps_non_ascii():
    text = jdumps(ErrorReport(error="нет файла", kind="IoError"))
    assert text.endswith("\n")
    assert jload(text)["error"] == "нет файла"
    assert "нет файла" in text

"""
Тесты записи «только при изменении».
"""

import os
from pathlib import Path

from tplc.output import OutputWriter


class TestOutputWriter:

    def test_first_write_creates_dirs(self, tmp_path: Path):
        writer = OutputWriter(tmp_path / "out")
        assert writer.write("pkg/sub/mod.py", "x = 1\n") == "written"
        assert (tmp_path / "out" / "pkg" / "sub" / "mod.py").read_text(encoding="utf-8") == "x = 1\n"
        assert not (tmp_path / "out" / "pkg" / "sub" / "mod.py.tmp").exists()

    def test_unchanged_text_is_not_rewritten(self, tmp_path: Path):
        path = tmp_path / "out" / "mod.py"
        OutputWriter(tmp_path / "out").write("mod.py", "x = 1\n")
        os.utime(path, ns=(1_000_000_000, 1_000_000_000))

        writer = OutputWriter(tmp_path / "out")
        assert writer.write("mod.py", "x = 1\n") == "unchanged"
        assert path.stat().st_mtime_ns == 1_000_000_000
        assert writer.unchanged == [path]
        assert writer.written == []

    def test_changed_text_is_rewritten(self, tmp_path: Path):
        OutputWriter(tmp_path / "out").write("mod.py", "x = 1\n")
        writer = OutputWriter(tmp_path / "out")
        assert writer.write("mod.py", "x = 2\n") == "written"
        assert (tmp_path / "out" / "mod.py").read_text(encoding="utf-8") == "x = 2\n"

    def test_comparison_is_bytewise(self, tmp_path: Path):
        (tmp_path / "mod.py").write_bytes(b"x = 1\r\n")
        writer = OutputWriter(tmp_path)
        assert writer.write("mod.py", "x = 1\n") == "written"
        assert (tmp_path / "mod.py").read_bytes() == b"x = 1\n"

    def test_dependencies(self, tmp_path: Path):
        writer = OutputWriter(tmp_path)
        writer.write("a.py", "a", [Path("t/b.html"), Path("t/a.html")])
        writer.write("b.py", "b", [Path("t/a.html")])
        assert writer.dependencies() == [Path("t/a.html"), Path("t/b.html")]
        assert writer.sources_of("b.py") == (Path("t/a.html"),)

"""
Тесты индекса статических файлов и генерируемого модуля statics.py.
"""

from pathlib import Path

import pytest

from tests.infrastructure.file_utils import write_bytes
from tests.infrastructure.rendering_utils import render
from tplc.errors import CollaboratorError, DuplicateNameError, IoError, ParseError
from tplc.statics import DEFAULT_MIME, StaticIndexer, checksum_token, generate_statics, logical_name, mime_for
from tplc.statics.indexer import hashed_name


class TestNaming:
    """Токены, публичные и логические имена."""

    def test_checksum_token(self):
        # md5("abc") = 900150983cd2...; первые 6 байт в url-safe base64
        assert checksum_token(b"abc") == "kAFQmDzS"

    def test_hashed_name(self):
        assert hashed_name("style.css", b"abc") == "style-kAFQmDzS.css"
        assert hashed_name("LICENSE", b"abc") == "LICENSE-kAFQmDzS"
        assert hashed_name("jquery.min.js", b"abc") == "jquery.min-kAFQmDzS.js"

    def test_one_byte_change_changes_public_name(self):
        assert hashed_name("a.css", b"body{}") != hashed_name("a.css", b"body{ }")

    @pytest.mark.parametrize("rel,name", [
        ("css/style.css", "css_style_css"),
        ("1.txt", "_1_txt"),
        ("class", "class_"),
        ("a-b c.js", "a_b_c_js"),
    ])
    def test_logical_name(self, rel, name):
        assert logical_name(rel) == name

    def test_mime(self):
        assert mime_for("css") == "text/css"
        assert mime_for("PNG") == "image/png"
        assert mime_for("unknownext") == DEFAULT_MIME
        assert mime_for("") == DEFAULT_MIME


class TestIndexer:
    """Добавление файлов и правила конфликтов."""

    def test_add_files_recursive(self, tmp_path: Path):
        write_bytes(tmp_path / "static" / "css" / "style.css", b"body{}")
        write_bytes(tmp_path / "static" / "img" / "logo.png", b"\x89PNG")
        write_bytes(tmp_path / "static" / ".hidden", b"x")

        idx = StaticIndexer(tmp_path)
        idx.add_files("static")

        assert idx.get_names() == {
            "css_style_css": hashed_name("style.css", b"body{}"),
            "img_logo_png": hashed_name("logo.png", b"\x89PNG"),
        }
        assert [a.mime for a in idx.assets()] == ["text/css", "image/png"]
        assert idx.sources() == [
            tmp_path / "static" / "css" / "style.css",
            tmp_path / "static" / "img" / "logo.png",
        ]

    def test_identical_content_is_one_asset(self, tmp_path: Path):
        write_bytes(tmp_path / "static" / "x" / "logo.png", b"same")
        write_bytes(tmp_path / "static" / "y" / "logo.png", b"same")

        idx = StaticIndexer(tmp_path)
        idx.add_files("static")
        x, y = idx.assets()

        assert x.digest == y.digest
        assert x.public_path == y.public_path
        assert x.content is y.content

    def test_same_logical_name_from_two_files(self, tmp_path: Path):
        write_bytes(tmp_path / "a" / "style.css", b"a")
        write_bytes(tmp_path / "b" / "style.css", b"a")

        idx = StaticIndexer(tmp_path)
        idx.add_file("a/style.css")
        with pytest.raises(DuplicateNameError) as exc:
            idx.add_file("b/style.css")
        assert exc.value.kind == "static"
        assert exc.value.name == "style_css"

    def test_re_adding_same_file_is_noop(self, tmp_path: Path):
        write_bytes(tmp_path / "a.css", b"a")
        idx = StaticIndexer(tmp_path)
        first = idx.add_file("a.css")
        assert idx.add_file("a.css") is first
        assert len(idx) == 1

    def test_add_files_as_prefix(self, tmp_path: Path):
        write_bytes(tmp_path / "vendor" / "app.js", b"1")
        write_bytes(tmp_path / "vendor" / "lib" / "x.js", b"2")

        idx = StaticIndexer(tmp_path)
        idx.add_files_as("vendor", "/js/")

        assert idx.get_names() == {"js_app_js": "js/app.js", "js_lib_x_js": "js/lib/x.js"}
        assert {a.mime for a in idx.assets()} == {"application/javascript"}

    def test_add_files_as_without_prefix(self, tmp_path: Path):
        write_bytes(tmp_path / "vendor" / "robots.txt", b"x")
        idx = StaticIndexer(tmp_path)
        idx.add_files_as("vendor", "")
        assert idx.get_names() == {"robots_txt": "robots.txt"}

    def test_unknown_extension(self, tmp_path: Path):
        write_bytes(tmp_path / "LICENSE", b"MIT")
        idx = StaticIndexer(tmp_path)
        asset = idx.add_file("LICENSE")
        assert asset.mime == DEFAULT_MIME
        assert asset.public_path == hashed_name("LICENSE", b"MIT")

    def test_exclude(self, tmp_path: Path):
        write_bytes(tmp_path / "static" / "app.js", b"1")
        write_bytes(tmp_path / "static" / "app.js.map", b"2")
        idx = StaticIndexer(tmp_path, exclude=["*.map"])
        idx.add_files("static")
        assert list(idx.get_names()) == ["app_js"]

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(IoError):
            StaticIndexer(tmp_path).add_file("nope.css")

    def test_missing_directory(self, tmp_path: Path):
        with pytest.raises(IoError):
            StaticIndexer(tmp_path).add_files("nope")


class FakeSass:
    """Препроцессор-заглушка: запоминает переданные имена."""

    def __init__(self, css: bytes = b"body{color:red}", error: Exception | None = None):
        self.css = css
        self.error = error
        self.seen = None

    def compile(self, path, static_names):
        self.seen = dict(static_names)
        if self.error is not None:
            raise self.error
        return self.css


class TestStylesheets:
    """Препроцессор стилей вызывается как внешний сотрудник."""

    def test_compiled_css_is_added(self, tmp_path: Path):
        write_bytes(tmp_path / "img" / "logo.png", b"png")
        write_bytes(tmp_path / "scss" / "style.scss", b"$c: red;")

        idx = StaticIndexer(tmp_path)
        idx.add_file("img/logo.png")
        sass = FakeSass()
        asset = idx.add_sass_file("scss/style.scss", sass)

        assert asset.name == "style_css"
        assert asset.public_path == hashed_name("style.css", b"body{color:red}")
        assert asset.mime == "text/css"
        assert asset.source == tmp_path / "scss" / "style.scss"
        assert sass.seen == {"logo_png": hashed_name("logo.png", b"png")}

    def test_failure_is_wrapped(self, tmp_path: Path):
        write_bytes(tmp_path / "bad.scss", b"{")
        idx = StaticIndexer(tmp_path)
        with pytest.raises(CollaboratorError) as exc:
            idx.add_sass_file("bad.scss", FakeSass(error=RuntimeError("invalid css")))
        assert "invalid css" in str(exc.value)
        assert exc.value.path == tmp_path / "bad.scss"
        assert isinstance(exc.value.cause, RuntimeError)


class TestStaticsModule:
    """Генерируемый модуль statics.py."""

    def test_shared_content_written_once(self, tmp_path: Path):
        idx = StaticIndexer(tmp_path)
        idx.add_file_data("a.txt", b"same")
        idx.add_file_data("b.txt", b"same")
        text = generate_statics(idx.assets())
        digest = idx.assets()[0].digest
        assert text.count(f"_data_{digest} = ") == 1
        compile(text, "statics.py", "exec")

    def test_reserved_name(self, tmp_path: Path):
        idx = StaticIndexer(tmp_path)
        idx.add_file_data("get", b"x")
        with pytest.raises(DuplicateNameError):
            generate_statics(idx.assets())

    def test_package_with_statics(self, tmp_path: Path, build_pkg):
        write_bytes(tmp_path / "static" / "css" / "style.css", b"body{}")
        write_bytes(tmp_path / "static" / "app.js", b"run()")

        def setup(builder):
            builder.statics().add_files("static")

        pkg, result = build_pkg(
            {"page.html": '@()\n<link href="/s/@statics::css_style_css.name">'},
            setup=setup,
            with_result=True,
        )
        style = pkg.statics.css_style_css
        public = hashed_name("style.css", b"body{}")

        assert (style.content, style.name, style.mime) == (b"body{}", public, "text/css")
        assert pkg.statics.get(public) is style
        assert pkg.statics.get("missing.css") is None
        assert [s.name for s in pkg.statics.STATICS] == sorted([public, hashed_name("app.js", b"run()")])
        assert render(pkg.page) == f'<link href="/s/{public}">'
        assert result.statics == {"app_js": hashed_name("app.js", b"run()"), "css_style_css": public}

    def test_unknown_static_reference_fails_build(self, tmp_path: Path, build_pkg):
        write_bytes(tmp_path / "static" / "a.css", b"a")

        def setup(builder):
            builder.statics().add_files("static")

        with pytest.raises(ParseError, match="Unknown static file 'statics::b_css'"):
            build_pkg({"page.html": "@()\n@statics::b_css.name"}, setup=setup)

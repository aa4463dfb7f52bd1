"""
Тесты генератора кода: форма сгенерированного модуля, слияние текста,
разрешение имён и детерминированность.
"""

import pytest

from tplc.codegen import GenerationContext, generate_template, package_units
from tplc.errors import DuplicateNameError, ParseError
from tplc.template import parse_template


def gen(text: str, *, stem: str = "page", ext: str = "html", namespace=(), context=None) -> str:
    tpl = parse_template(text, path=f"{stem}.{ext}", namespace=namespace, stem=stem, ext=ext)
    return generate_template(tpl, context)


class TestModuleShape:
    """Заголовок, импорты, сигнатура и псевдоним."""

    def test_header_and_signature(self):
        code = gen("@(title: str, items: List[int])\n<h1>@title</h1>")
        assert code.startswith("# Generated by tplc from page.html. Do not edit.\n")
        assert "def page_html(_tplc_out_: Writer, title: str, items: List[int]) -> None:" in code
        assert "from ._utils import Content, Html, ToHtml, Writer" in code
        assert code.endswith("\npage = page_html\n")
        compile(code, "page.py", "exec")

    def test_xml_has_no_alias(self):
        code = gen("@()\n<a/>", stem="feed", ext="xml")
        assert "def feed_xml(" in code
        assert "feed = " not in code

    def test_empty_body_is_valid(self):
        code = gen("@()\n")
        assert "def page_html(_tplc_out_: Writer) -> None:\n    pass\n" in code
        compile(code, "page.py", "exec")

    def test_empty_blocks_are_valid(self):
        code = gen("@(a: bool, xs: list)\n@if a {} @else {}@for x in xs {}@match a { true => {} }")
        compile(code, "page.py", "exec")

    def test_nested_namespace_imports(self):
        code = gen("@()\nx", namespace=("admin", "users"))
        assert "from ..._utils import" in code

    def test_preamble_imports_are_copied(self):
        code = gen("@import math\n@from decimal import Decimal\n@(x: Decimal)\n@math.floor(x)")
        assert "\nimport math\nfrom decimal import Decimal\n" in code


class TestEmission:
    """Перевод узлов тела в код."""

    def test_adjacent_text_is_merged(self):
        code = gen("@()\nX@* c *@Y@@Z")
        assert "_tplc_out_.write('XY@Z')" in code
        assert code.count("_tplc_out_.write(") == 1

    def test_escaped_and_raw_writers(self):
        code = gen("@(v: str)\n@v@!v")
        assert "_tplc_write_escaped(_tplc_out_, v)" in code
        assert "_tplc_write_raw(_tplc_out_, v)" in code

    def test_content_block_closure(self):
        code = gen("@(xs: list)\n@:wrap(xs) {<i>x</i>}")
        assert "def _tplc_content_1(_tplc_out_: Writer) -> None:" in code
        assert "wrap(_tplc_out_, xs, _tplc_content_1)" in code

    def test_let_with_catch_all_pattern_has_no_fallback(self):
        code = gen("@(v: int)\n@if let x = v {@x} @else {none}")
        assert "case x:" in code
        assert "case _:" not in code
        compile(code, "page.py", "exec")

    def test_refutable_loop_uses_match(self):
        code = gen("@(xs: list)\n@for (1, v) in xs {@v}")
        assert "for _tplc_item_1 in xs:" in code
        assert "case (1, v):" in code

    def test_match_without_arms(self):
        code = gen("@(n: int)\n@match n { }")
        compile(code, "page.py", "exec")

    @pytest.mark.parametrize("arm,case", [("1 | _", "case _:"), ("k | 2", "case k:")])
    def test_or_pattern_with_catch_all_collapses(self, arm, case):
        code = gen("@(n: int)\n@match n { " + arm + " => {a} 2 => {b} }")
        assert case in code
        assert "case 2:" not in code
        compile(code, "page.py", "exec")

    def test_nested_or_pattern_with_wildcard(self):
        code = gen("@(p: tuple)\n@match p { (_ | 1, 2) => {a} _ => {b} }")
        assert "case (_, 2):" in code
        compile(code, "page.py", "exec")

    def test_shadowing_binding_is_renamed(self):
        code = gen("@(x: str, xs: list)\n@for x in xs {@x}@x")
        assert "for _tplc_x_1 in xs:" in code
        assert "_tplc_write_escaped(_tplc_out_, _tplc_x_1)" in code
        assert "\n    _tplc_write_escaped(_tplc_out_, x)\n" in code
        compile(code, "page.py", "exec")

    def test_new_binding_keeps_its_name(self):
        code = gen("@(xs: list)\n@for x in xs {@x}")
        assert "for x in xs:" in code


class TestGeneratedCodeChecks:
    """Код, который Python не примет, превращается в ParseError по шаблону."""

    def test_invalid_python_points_at_template(self):
        with pytest.raises(ParseError, match="not valid Python") as exc:
            gen("@(p: tuple)\nA\n@match p { (a, 1) | (1, b) => {x} }")
        assert exc.value.file == "page.html"
        assert exc.value.line == 3

    def test_nesting_within_indent_limit(self):
        depth = 44
        code = gen("@(p: tuple)\n" + "@if let (a, 1) = p {" * depth + "X" + "}" * depth)
        compile(code, "page.py", "exec")

    def test_nesting_beyond_indent_limit(self):
        depth = 45
        with pytest.raises(ParseError, match="nested too deeply"):
            gen("@(p: tuple)\n" + "@if let (a, 1) = p {" * depth + "X" + "}" * depth)

    def test_refutable_loops_count_three_levels(self):
        depth = 40
        with pytest.raises(ParseError, match="nested too deeply") as exc:
            gen("@(xs: list)\n" + "@for (a, 1) in xs {" * depth + "X" + "}" * depth)
        assert exc.value.line == 2


class TestNameResolution:
    """Вызовы: локальные имена, шаблоны, функции Python."""

    def context(self, *specs):
        templates = [
            parse_template("@()\n", path=f"{stem}.{ext}", namespace=ns, stem=stem, ext=ext)
            for ns, stem, ext in specs
        ]
        return GenerationContext.from_templates(templates)

    def test_template_call_imports_function(self):
        ctx = self.context(((), "layout", "html"))
        code = gen("@()\n@:layout()", context=ctx)
        assert "from .template_layout_html import layout_html as _tplc_layout_html" in code
        assert "_tplc_layout_html(_tplc_out_)" in code

    def test_relative_namespace_first(self):
        ctx = self.context((("admin",), "item", "html"), ((), "item", "html"))
        code = gen("@()\n@:item()", namespace=("admin",), context=ctx)
        assert "from ..admin.template_item_html import item_html as _tplc_admin__item_html" in code

    def test_local_name_wins(self):
        ctx = self.context(((), "body", "html"))
        code = gen("@(body: Content)\n@:body()", context=ctx)
        assert "    body(_tplc_out_)" in code
        assert "template_body_html" not in code

    def test_unknown_name_is_python_call(self):
        code = gen("@import helpers\n@()\n@:helpers::icon(\"x\")")
        assert "helpers.icon(_tplc_out_, 'x')" in code

    def test_self_call(self):
        ctx = self.context(((), "page", "html"))
        code = gen("@(n: int)\n@if n > 0 {@:page(n - 1)}", context=ctx)
        assert "page_html(_tplc_out_, (n - 1))" in code
        assert "import page_html" not in code


class TestStatics:
    """Ссылки statics::NAME проверяются при генерации."""

    def test_known_static(self):
        ctx = GenerationContext(static_names=frozenset({"logo_png"}))
        code = gen("@()\n@statics::logo_png.name", context=ctx)
        assert "from . import statics as _tplc_statics" in code
        assert "_tplc_write_escaped(_tplc_out_, _tplc_statics.logo_png.name)" in code

    def test_unknown_static(self):
        ctx = GenerationContext(static_names=frozenset({"logo_png"}))
        with pytest.raises(ParseError) as exc:
            gen("@()\n@statics::nope.name", context=ctx)
        assert "Unknown static file 'statics::nope'" in exc.value.message
        assert (exc.value.line, exc.value.column) == (2, 2)

    def test_without_static_index_path_is_plain(self):
        code = gen("@()\n@statics::nope")
        assert "_tplc_write_escaped(_tplc_out_, statics.nope)" in code

    def test_local_named_statics_is_not_hooked(self):
        ctx = GenerationContext(static_names=frozenset({"logo_png"}))
        code = gen("@(statics: object)\n@statics::other", context=ctx)
        assert "statics.other" in code
        assert "_tplc_statics" not in code


class TestDeterminism:
    """Одинаковый вход даёт побайтно одинаковый результат."""

    TEMPLATES = {
        "b.html": "@(xs: list)\n@for x in xs {@:a(x)}@:sub::c()",
        "a.html": "@(x: int)\n@x",
        "sub/c.html": "@()\n@:a(1)",
    }

    def units(self, order):
        templates = []
        for rel in order:
            parts = rel[:-5].split("/")
            templates.append(parse_template(
                self.TEMPLATES[rel], path=rel, namespace=tuple(parts[:-1]), stem=parts[-1], ext="html",
            ))
        ctx = GenerationContext.from_templates(templates)
        return package_units("pkg", [(t, generate_template(t, ctx)) for t in templates])

    def test_order_independent(self):
        first = self.units(["a.html", "b.html", "sub/c.html"])
        second = self.units(["sub/c.html", "b.html", "a.html"])
        assert [(u.path, u.text) for u in first] == [(u.path, u.text) for u in second]

    def test_package_layout(self):
        paths = [u.path.as_posix() for u in self.units(["a.html", "b.html", "sub/c.html"])]
        assert paths == [
            "pkg/__init__.py",
            "pkg/_utils.py",
            "pkg/sub/__init__.py",
            "pkg/sub/template_c_html.py",
            "pkg/template_a_html.py",
            "pkg/template_b_html.py",
        ]

    def test_imports_sorted(self):
        (b_unit,) = [u for u in self.units(["b.html", "a.html", "sub/c.html"]) if u.path.name == "template_b_html.py"]
        a_line = b_unit.text.index("import a_html")
        c_line = b_unit.text.index("import c_html")
        assert a_line < c_line

    def test_name_clash_with_directory(self):
        templates = [
            parse_template("@()\n", path="sub.html", stem="sub"),
            parse_template("@()\n", path="sub/x.html", namespace=("sub",), stem="x"),
        ]
        ctx = GenerationContext.from_templates(templates)
        with pytest.raises(DuplicateNameError):
            package_units("pkg", [(t, generate_template(t, ctx)) for t in templates])

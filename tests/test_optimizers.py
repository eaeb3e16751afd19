from __future__ import annotations

import dataclasses

from site2static.optimizers import (
    NULL_BINARY_OPTIMIZER,
    NULL_TEXT_OPTIMIZER,
    OptimizerIssue,
    OptimizerSet,
    TextOptimizer,
    default_optimizers,
    select_optimizer,
)
from site2static.resources import (
    OptimizationType,
    bin_resource,
    css_resource,
    js_resource,
    page_resource,
)


def test_auto_selection_follows_output_extension() -> None:
    optimizers = default_optimizers()

    assert select_optimizer(page_resource("/"), "out/index.html", optimizers) is optimizers.html
    assert select_optimizer(page_resource("/feed"), "out/feed.xml", optimizers) is optimizers.xml
    assert select_optimizer(page_resource("/p"), "out/p.xhtml", optimizers) is optimizers.xhtml
    assert select_optimizer(js_resource("/data"), "out/data.json", optimizers) is optimizers.js
    assert select_optimizer(css_resource("/site"), "out/site.css", optimizers) is optimizers.css
    # 拡張子から判別できないページは HTML として扱う
    assert select_optimizer(page_resource("/robots"), "out/robots.txt", optimizers) is optimizers.html
    assert select_optimizer(css_resource("/x.less"), "out/x.less", optimizers) is NULL_TEXT_OPTIMIZER


def test_explicit_type_wins_over_extension() -> None:
    optimizers = default_optimizers()
    page = page_resource("/sitemap", optimization_type=OptimizationType.XML)

    assert select_optimizer(page, "out/sitemap.html", optimizers) is optimizers.xml
    assert select_optimizer(
        page_resource("/raw", optimization_type=OptimizationType.NONE), "out/raw.html", optimizers
    ) is NULL_TEXT_OPTIMIZER


def test_binary_resources_are_never_optimized() -> None:
    optimizers = default_optimizers()
    logo = bin_resource("/logo.png", optimization_type=OptimizationType.BIN)
    optimizer = select_optimizer(logo, "out/logo.png", optimizers)

    assert optimizer is NULL_BINARY_OPTIMIZER
    assert optimizer.is_identity
    assert "binary" not in {item.name for item in dataclasses.fields(OptimizerSet)}
    # 拡張子が HTML でもバイナリには適用しない
    assert select_optimizer(logo, "out/logo.html", optimizers) is NULL_BINARY_OPTIMIZER
    assert optimizer.execute(b"\x89PNG").content == b"\x89PNG"


def test_default_engines_minify_content() -> None:
    optimizers = default_optimizers()

    html = optimizers.html.execute("<html>\n  <body>\n    <!-- note -->\n    <p>Hi</p>\n  </body>\n</html>")
    css = optimizers.css.execute("body {\n  color: red;\n}\n")
    js = optimizers.js.execute("var a = 1;  // comment\nvar b = `x  y`;\n")

    assert not html.has_errors
    assert "<!--" not in html.content
    assert "<p>Hi</p>" in html.content
    assert css.content == "body{color:red}"
    assert "comment" not in js.content
    assert "`x  y`" in js.content


def test_xml_errors_keep_original_content() -> None:
    optimizers = default_optimizers()

    ok = optimizers.xml.execute("<root>\n  <item>1</item>\n</root>")
    broken = optimizers.xml.execute("<root><item></root>")

    assert ok.content == "<root><item>1</item></root>"
    assert broken.has_errors
    assert broken.content == "<root><item></root>"
    assert broken.errors[0].category == "xml"


def test_engine_exceptions_become_errors() -> None:
    def explode(content: str) -> str:
        raise RuntimeError("boom")

    result = TextOptimizer("custom", explode).execute("body")

    assert result.content == "body"
    assert result.has_errors
    assert str(result.errors[0]) == "custom: boom; L:0, C:0; S:"
    assert NULL_TEXT_OPTIMIZER.is_identity


def test_issue_formatting_without_category() -> None:
    issue = OptimizerIssue("unexpected token", line_number=3, column_number=7, source_fragment="{")

    assert str(issue) == "unexpected token; L:3, C:7; S:{"

"""コンテンツ最適化 (minify) エンジンの選択と実行。"""

from __future__ import annotations

import posixpath
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Generic, TypeVar

import csscompressor
import htmlmin
from jsmin import jsmin

from .resources import OptimizationType, Resource, ResourceKind

T = TypeVar("T", str, bytes)

HTML_OPTIONS = {
    "remove_comments": True,
    "remove_empty_space": True,
    "reduce_empty_attributes": True,
    "reduce_boolean_attributes": False,
    "remove_optional_attribute_quotes": False,
    "convert_charrefs": False,
    "keep_pre": False,
    "pre_tags": ("pre", "textarea"),
}
XHTML_OPTIONS = {**HTML_OPTIONS, "reduce_empty_attributes": False}

_INTER_TAG_SPACE = re.compile(r">\s+<")


@dataclass(frozen=True, slots=True)
class OptimizerIssue:
    """最適化エンジンが報告したエラーまたは警告。"""

    message: str
    category: str = ""
    line_number: int = 0
    column_number: int = 0
    source_fragment: str = ""

    def __str__(self) -> str:
        prefix = f"{self.category}: " if self.category.strip() else ""
        return (
            f"{prefix}{self.message}; L:{self.line_number}, C:{self.column_number}; "
            f"S:{self.source_fragment}"
        )


@dataclass(slots=True)
class OptimizerResult(Generic[T]):
    content: T
    errors: list[OptimizerIssue] = field(default_factory=list)
    warnings: list[OptimizerIssue] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)


Engine = Callable[[T], "T | OptimizerResult[T]"]


class _Optimizer(Generic[T]):
    def __init__(self, name: str, engine: Engine | None = None) -> None:
        self.name = name
        self._engine = engine

    @property
    def is_identity(self) -> bool:
        return self._engine is None

    def execute(self, content: T) -> OptimizerResult[T]:
        if self._engine is None:
            return OptimizerResult(content)
        try:
            output = self._engine(content)
        except Exception as exc:
            return OptimizerResult(content, errors=[OptimizerIssue(str(exc), category=self.name)])
        if isinstance(output, OptimizerResult):
            return output
        return OptimizerResult(output)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name!r})"


class TextOptimizer(_Optimizer[str]):
    """テキスト (HTML/XHTML/XML/CSS/JS) を対象とする最適化エンジン。"""


class BinaryOptimizer(_Optimizer[bytes]):
    """バイト列を対象とする最適化エンジン。"""


def minify_html(content: str) -> str:
    return htmlmin.minify(content, **HTML_OPTIONS)


def minify_xhtml(content: str) -> str:
    return htmlmin.minify(content, **XHTML_OPTIONS)


def minify_xml(content: str) -> OptimizerResult[str]:
    try:
        ET.fromstring(content.strip().encode("utf-8"))
    except ET.ParseError as exc:
        line, column = exc.position
        return OptimizerResult(
            content,
            errors=[OptimizerIssue(str(exc), "xml", line, column)],
        )
    return OptimizerResult(_INTER_TAG_SPACE.sub("><", content.strip()))


def minify_css(content: str) -> str:
    return csscompressor.compress(content)


def minify_js(content: str) -> str:
    return jsmin(content, quote_chars="'\"`")


NULL_TEXT_OPTIMIZER = TextOptimizer("null")
NULL_BINARY_OPTIMIZER = BinaryOptimizer("null-binary")


@dataclass(frozen=True, slots=True)
class OptimizerSet:
    """形式ごとの最適化エンジン一式。未指定の形式は何もしないエンジンになります。"""

    html: TextOptimizer = NULL_TEXT_OPTIMIZER
    xhtml: TextOptimizer = NULL_TEXT_OPTIMIZER
    xml: TextOptimizer = NULL_TEXT_OPTIMIZER
    css: TextOptimizer = NULL_TEXT_OPTIMIZER
    js: TextOptimizer = NULL_TEXT_OPTIMIZER


def default_optimizers() -> OptimizerSet:
    return OptimizerSet(
        html=TextOptimizer("html", minify_html),
        xhtml=TextOptimizer("xhtml", minify_xhtml),
        xml=TextOptimizer("xml", minify_xml),
        css=TextOptimizer("css", minify_css),
        js=TextOptimizer("js", minify_js),
    )


def _by_extension(out_path: str | Path, optimizers: OptimizerSet) -> TextOptimizer | None:
    extension = posixpath.splitext(str(out_path).replace("\\", "/"))[1].lower()
    match extension:
        case ".html" | ".htm":
            return optimizers.html
        case ".xhtml" | ".xhtm":
            return optimizers.xhtml
        case ".xml":
            return optimizers.xml
        case ".css":
            return optimizers.css
        case ".js" | ".json":
            return optimizers.js
    return None


def select_optimizer(
    resource: Resource, out_path: str | Path, optimizers: OptimizerSet
) -> TextOptimizer | BinaryOptimizer:
    """リソースと出力パスから適用する最適化エンジンを選びます。"""

    # バイナリは常にそのまま書き出す
    if resource.kind is ResourceKind.BIN:
        return NULL_BINARY_OPTIMIZER

    match resource.optimization_type:
        case OptimizationType.NONE | OptimizationType.BIN:
            return NULL_TEXT_OPTIMIZER
        case OptimizationType.HTML:
            return optimizers.html
        case OptimizationType.XHTML:
            return optimizers.xhtml
        case OptimizationType.XML:
            return optimizers.xml
        case OptimizationType.CSS:
            return optimizers.css
        case OptimizationType.JS:
            return optimizers.js

    selected = _by_extension(out_path, optimizers)
    if selected is not None:
        return selected
    if resource.kind is ResourceKind.PAGE:
        return optimizers.html
    return NULL_TEXT_OPTIMIZER

"""生成対象リソースのデータモデルとカタログ。"""

from __future__ import annotations

import json
import locale
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

from .config import NamingPolicy


class ResourceKind(str, Enum):
    PAGE = "page"
    CSS = "css"
    JS = "js"
    BIN = "bin"


class OptimizationType(str, Enum):
    """リソースに適用する最適化の種類。"""

    AUTO = "auto"
    NONE = "none"
    HTML = "html"
    XHTML = "xhtml"
    XML = "xml"
    CSS = "css"
    JS = "js"
    BIN = "bin"


class OutputEncoding(str, Enum):
    """テキスト出力時の文字エンコーディング。"""

    ASCII = "ascii"
    BIG_ENDIAN_UNICODE = "big_endian_unicode"
    DEFAULT = "default"
    LATIN1 = "latin1"
    UNICODE = "unicode"
    UTF7 = "utf7"
    UTF8 = "utf8"
    UTF32 = "utf32"

    @property
    def codec(self) -> str:
        if self is OutputEncoding.DEFAULT:
            return locale.getpreferredencoding(False)
        return _CODECS[self]


_CODECS = {
    OutputEncoding.ASCII: "ascii",
    OutputEncoding.BIG_ENDIAN_UNICODE: "utf-16-be",
    OutputEncoding.LATIN1: "latin-1",
    OutputEncoding.UNICODE: "utf-16-le",
    OutputEncoding.UTF7: "utf-7",
    OutputEncoding.UTF8: "utf-8",
    OutputEncoding.UTF32: "utf-32",
}


class ChangeFrequency(str, Enum):
    ALWAYS = "always"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    NEVER = "never"


@dataclass(frozen=True, slots=True)
class PageMetadata:
    """サイトマップ向けのページ付帯情報。生成処理自体には使われません。"""

    change_frequency: ChangeFrequency = ChangeFrequency.NEVER
    last_modified: datetime | None = None
    index_priority: float = 0.0


@dataclass(frozen=True, slots=True)
class Resource:
    """生成対象となる 1 件のリソース (ページ・CSS・JS・バイナリ)。

    ``route`` はサイトのベース URL からの相対パスで、クエリ文字列を含めません。
    ``out_file`` が指定されている場合は命名ポリシーより優先され、出力先の相対
    パスとしてそのまま使われます。
    """

    route: str
    kind: ResourceKind = ResourceKind.PAGE
    query: str | None = None
    out_file: str | None = None
    optimization_type: OptimizationType = OptimizationType.AUTO
    output_encoding: OutputEncoding = OutputEncoding.UTF8
    metadata: PageMetadata | None = None

    def __post_init__(self) -> None:
        if self.route is None or not str(self.route).strip():
            raise ValueError("route には空でない文字列を指定してください。")
        if self.kind is ResourceKind.BIN:
            object.__setattr__(self, "optimization_type", OptimizationType.NONE)
        if self.kind is ResourceKind.PAGE and self.metadata is None:
            object.__setattr__(self, "metadata", PageMetadata())

    @property
    def url(self) -> str:
        query = self.query or ""
        if query and not query.startswith("?"):
            query = f"?{query}"
        return f"{self.route}{query}"

    @property
    def skip_optimization(self) -> bool:
        return self.optimization_type is OptimizationType.NONE

    @property
    def is_page(self) -> bool:
        return self.kind is ResourceKind.PAGE

    @property
    def is_binary(self) -> bool:
        return self.kind is ResourceKind.BIN


def page_resource(route: str, **kwargs: Any) -> Resource:
    return Resource(route, ResourceKind.PAGE, **kwargs)


def css_resource(route: str, **kwargs: Any) -> Resource:
    return Resource(route, ResourceKind.CSS, **kwargs)


def js_resource(route: str, **kwargs: Any) -> Resource:
    return Resource(route, ResourceKind.JS, **kwargs)


def bin_resource(route: str, **kwargs: Any) -> Resource:
    kwargs.setdefault("output_encoding", OutputEncoding.DEFAULT)
    return Resource(route, ResourceKind.BIN, **kwargs)


def _normalize_url(url: str) -> str:
    return url.strip("/").rstrip("?").strip("/")


def find_page(
    pages: Iterable[Resource], href: str, case_sensitive: bool = False
) -> Resource | None:
    """href に一致するページを探します。最初に一致したものを返します。"""

    if href == "/":
        return next((page for page in pages if page.url == "/"), None)
    target = _normalize_url(href)
    if not case_sensitive:
        target = target.casefold()
    for page in pages:
        candidate = _normalize_url(page.url)
        if not case_sensitive:
            candidate = candidate.casefold()
        if candidate == target:
            return page
    return None


@dataclass(slots=True)
class ResourceCatalog:
    """1 回の生成サイクルで扱うリソースの集合。生成中は読み取り専用として扱います。"""

    resources: Sequence[Resource] = ()
    policy: NamingPolicy = field(default_factory=NamingPolicy)
    skip_pages: bool = False
    skip_css: bool = False
    skip_js: bool = False
    skip_bin: bool = False

    def __post_init__(self) -> None:
        self.resources = tuple(self.resources)

    @property
    def pages(self) -> tuple[Resource, ...]:
        return tuple(r for r in self.resources if r.kind is ResourceKind.PAGE)

    @property
    def other_resources(self) -> tuple[Resource, ...]:
        return tuple(r for r in self.resources if r.kind is not ResourceKind.PAGE)

    def find_page_for_url(self, url: str) -> Resource | None:
        return find_page(self.pages, url, self.policy.routes_are_case_sensitive)

    def is_skipped(self, resource: Resource) -> bool:
        match resource.kind:
            case ResourceKind.PAGE:
                return self.skip_pages
            case ResourceKind.CSS:
                return self.skip_css
            case ResourceKind.JS:
                return self.skip_js
            case ResourceKind.BIN:
                return self.skip_bin

    def with_resources(self, extra: Iterable[Resource]) -> "ResourceCatalog":
        """既存の定義に extra を追加した新しいカタログを返します。"""

        return ResourceCatalog(
            resources=(*self.resources, *extra),
            policy=self.policy,
            skip_pages=self.skip_pages,
            skip_css=self.skip_css,
            skip_js=self.skip_js,
            skip_bin=self.skip_bin,
        )


def _parse_enum(enum_type: type[Enum], raw: Any, default: Enum) -> Any:
    if raw is None or raw == "":
        return default
    text = str(raw).strip().lower().replace("-", "_")
    for member in enum_type:
        if text in {member.value, member.name.lower()}:
            return member
    raise ValueError(f"{enum_type.__name__} に未知の値が指定されました: {raw}")


def resource_from_mapping(data: Mapping[str, Any]) -> Resource:
    """カタログ JSON の 1 エントリから Resource を組み立てます。"""

    kind = _parse_enum(ResourceKind, data.get("kind"), ResourceKind.PAGE)
    default_encoding = OutputEncoding.DEFAULT if kind is ResourceKind.BIN else OutputEncoding.UTF8
    metadata = None
    raw_meta = data.get("pageMetadata") or data.get("metadata")
    if kind is ResourceKind.PAGE and raw_meta:
        last_modified = raw_meta.get("lastModified")
        metadata = PageMetadata(
            change_frequency=_parse_enum(
                ChangeFrequency, raw_meta.get("changeFrequency"), ChangeFrequency.NEVER
            ),
            last_modified=datetime.fromisoformat(last_modified) if last_modified else None,
            index_priority=float(raw_meta.get("indexPriority") or 0.0),
        )
    return Resource(
        route=data.get("route", ""),
        kind=kind,
        query=data.get("query"),
        out_file=data.get("outFile"),
        optimization_type=_parse_enum(
            OptimizationType, data.get("optimizationType"), OptimizationType.AUTO
        ),
        output_encoding=_parse_enum(OutputEncoding, data.get("outputEncoding"), default_encoding),
        metadata=metadata,
    )


def load_catalog(path: str | Path) -> ResourceCatalog:
    """JSON 形式のカタログ定義ファイルを読み込みます。"""

    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(payload, list):
        payload = {"resources": payload}
    if not isinstance(payload, dict):
        raise ValueError("カタログは JSON オブジェクトまたは配列で記述してください。")
    skip = payload.get("skip") or {}
    return ResourceCatalog(
        resources=[resource_from_mapping(entry) for entry in payload.get("resources", [])],
        policy=NamingPolicy.from_mapping(payload.get("policy")),
        skip_pages=bool(skip.get("pages", False)),
        skip_css=bool(skip.get("css", False)),
        skip_js=bool(skip.get("js", False)),
        skip_bin=bool(skip.get("bin", False)),
    )

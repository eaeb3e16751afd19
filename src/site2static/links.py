"""生成済みファイル名に合わせてページ内リンクの href を書き換えるユーティリティ。"""

from __future__ import annotations

import re
from typing import Iterable, Sequence

from .config import NamingPolicy
from .resources import Resource, ResourceKind, find_page

_TAG_PATTERN = r"""(?:<a|<area)[\s\w\-="']*href=["']([/]?(?:{alternation})[/]?)["']"""


def _route_alternative(url: str) -> str:
    if url == "/":
        return re.escape(url)
    return re.escape(url.removeprefix("/").removesuffix("/"))


def build_href_pattern(pages: Iterable[Resource]) -> re.Pattern[str] | None:
    """既知ページの URL から href を検出する正規表現を組み立てます。"""

    alternatives: list[str] = []
    for page in pages:
        alternative = _route_alternative(page.url)
        if alternative and alternative not in alternatives:
            alternatives.append(alternative)
    if not alternatives:
        return None
    return re.compile(
        _TAG_PATTERN.format(alternation="|".join(alternatives)),
        re.IGNORECASE | re.MULTILINE,
    )


def target_href(href: str, page: Resource, policy: NamingPolicy) -> str:
    """href を生成済みファイルを指す値へ変換します。"""

    if page.out_file and page.out_file.strip():
        return "/" + page.out_file.replace("\\", "/").lstrip("/")

    route = page.route
    base = href.split("?", 1)[0].rstrip("/")
    if route.endswith("/") or policy.always_create_default_file:
        new_href = f"{base}/{policy.default_file_name}"
    else:
        new_href = f"{base}{policy.page_file_extension}"

    if href.startswith("/") and not new_href.startswith("/"):
        new_href = f"/{new_href}"
    return new_href


class LinkRewriter:
    """ページ集合に対して一度だけ正規表現を構築し、複数文書へ適用します。

    生成サイクル 1 回分の寿命を想定しています。カタログが変わる場合は
    新しいインスタンスを作成してください。
    """

    def __init__(self, pages: Sequence[Resource], policy: NamingPolicy) -> None:
        self._pages = tuple(page for page in pages if page.kind is ResourceKind.PAGE)
        self._policy = policy
        self._pattern = build_href_pattern(self._pages)

    def rewrite(self, html: str | None) -> str | None:
        if html is None or not html.strip() or self._pattern is None:
            return html
        return self._pattern.sub(self._replace, html)

    def _replace(self, match: re.Match[str]) -> str:
        href = match.group(1)
        page = find_page(self._pages, href, self._policy.routes_are_case_sensitive)
        if page is None:
            return match.group(0)
        new_href = target_href(href, page, self._policy)
        start, end = match.span(1)
        offset = match.start(0)
        text = match.group(0)
        return text[: start - offset] + new_href + text[end - offset :]


def rewrite_links(
    html: str | None, pages: Sequence[Resource], policy: NamingPolicy
) -> str | None:
    """既知ページへのリンクのみを生成済みファイル名へ書き換えます。"""

    if html is None or not html.strip() or not pages:
        return html
    return LinkRewriter(pages, policy).rewrite(html)

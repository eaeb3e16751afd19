"""サイトマップ XML からページリソースを検出するユーティリティ。"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Sequence
from urllib.parse import urlsplit

from bs4 import BeautifulSoup

from .fetching import FetchError, Fetcher
from .resources import ChangeFrequency, PageMetadata, Resource, page_resource

logger = logging.getLogger(__name__)


def _text(node) -> str:
    return node.get_text(strip=True) if node is not None else ""


def _parse_lastmod(raw: str) -> datetime | None:
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        logger.debug("lastmod を解釈できませんでした: %s", raw)
        return None


def _parse_changefreq(raw: str) -> ChangeFrequency:
    try:
        return ChangeFrequency(raw.lower())
    except ValueError:
        return ChangeFrequency.NEVER


def _parse_priority(raw: str) -> float:
    try:
        return float(raw)
    except ValueError:
        return 0.0


def parse_sitemap(xml: str) -> list[Resource]:
    """``<url>`` 要素をページリソースへ変換します。重複する URL は 1 件にまとめます。"""

    soup = BeautifulSoup(xml, "html.parser")
    pages: list[Resource] = []
    seen: set[str] = set()
    for entry in soup.find_all("url"):
        location = _text(entry.find("loc"))
        if not location:
            continue
        parts = urlsplit(location)
        route = parts.path or "/"
        if not route.startswith("/"):
            route = f"/{route}"
        key = f"{route}?{parts.query}" if parts.query else route
        if key in seen:
            continue
        seen.add(key)
        metadata = PageMetadata(
            change_frequency=_parse_changefreq(_text(entry.find("changefreq"))),
            last_modified=_parse_lastmod(_text(entry.find("lastmod"))),
            index_priority=_parse_priority(_text(entry.find("priority"))),
        )
        pages.append(page_resource(route, query=parts.query or None, metadata=metadata))
    return pages


def discover_pages(fetcher: Fetcher, sitemap_paths: Sequence[str]) -> list[Resource]:
    """各サイトマップを取得してページを列挙します。取得に失敗したものはログに残して飛ばします。"""

    discovered: list[Resource] = []
    for path in sitemap_paths:
        logger.info("サイトマップからページを検出します: %s", path)
        try:
            xml = fetcher.fetch_text(path)
        except FetchError as exc:
            logger.error("サイトマップを取得できませんでした: %s (%s)", path, exc.reason)
            continue
        pages = parse_sitemap(xml)
        logger.info("サイトマップ %s から %d 件のページを検出しました。", path, len(pages))
        discovered.extend(pages)
    return discovered


def merge_pages(existing: Iterable[Resource], discovered: Iterable[Resource]) -> list[Resource]:
    """既存の定義に無い URL のページだけを追加対象として返します。"""

    known = {resource.url for resource in existing}
    return [page for page in discovered if page.url not in known]

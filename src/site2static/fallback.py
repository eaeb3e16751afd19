"""リクエスト時に生成済み静的ファイルへ振り替えるフォールバック処理。"""

from __future__ import annotations

import dataclasses
import logging
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping

from werkzeug.datastructures import EnvironHeaders

from .config import NamingPolicy
from .fetching import GENERATOR_USER_AGENT
from .paths import InvalidRouteError, page_relative_path
from .resources import Resource, ResourceCatalog, ResourceKind


def is_generator_request(request: Any) -> bool:
    """生成器から送られたリクエストかどうかを判定します。

    WSGI environ と、``headers`` を持つリクエストオブジェクト (Flask/Werkzeug) の
    どちらも受け付けます。
    """

    if request is None:
        return False
    if isinstance(request, Mapping):
        headers = EnvironHeaders(request)
    else:
        headers = request.headers
    user_agent = headers.get("User-Agent", "") or ""
    return GENERATOR_USER_AGENT in user_agent


def _route_key(route: str, case_sensitive: bool) -> str:
    key = "/" + route.strip("/") + "/" if route.strip("/") else "/"
    return key if case_sensitive else key.casefold()


class FallbackResolver:
    """ルートに対応する生成済みファイルが存在すれば、そのパスを返します。"""

    def __init__(
        self,
        pages: Iterable[Resource],
        web_root: str | Path,
        policy: NamingPolicy | None = None,
        ignore_out_file: bool = False,
    ) -> None:
        self.policy = policy or NamingPolicy()
        self.policy.validate()
        self.web_root = Path(web_root)
        self.ignore_out_file = ignore_out_file
        self._pages = tuple(page for page in pages if page.kind is ResourceKind.PAGE)
        self._logger = logging.getLogger(self.__class__.__module__ + "." + self.__class__.__name__)
        self._logger.info(
            "フォールバック設定: ページ %d 件, Web ルート %s, 既定ファイル %s, 拡張子 %s",
            len(self._pages),
            self.web_root,
            self.policy.default_file_name,
            self.policy.page_file_extension,
        )

    def find_page(self, path: str) -> Resource | None:
        sensitive = self.policy.routes_are_case_sensitive
        target = _route_key(path, sensitive)
        for page in self._pages:
            if _route_key(page.route, sensitive) == target:
                return page
        return None

    def resolve(self, path: str) -> str | None:
        if not self._pages:
            return None
        request_path = path if path.startswith("/") else f"/{path}"
        page = self.find_page(request_path)
        if page is None:
            return None
        if self.ignore_out_file and page.out_file:
            page = dataclasses.replace(page, out_file=None)
        try:
            relative = page_relative_path(page, self.policy)
        except InvalidRouteError as exc:
            self._logger.warning("フォールバック先を決定できません: %s (%s)", request_path, exc)
            return None
        physical = self.web_root.joinpath(*[part for part in relative.split("/") if part])
        new_path = "/" + relative
        if not physical.is_file():
            self._logger.debug(
                "生成済みファイルがありません: %s -> %s (%s)", request_path, new_path, physical
            )
            return None
        self._logger.info("ルートを振り替えました: %s -> %s", request_path, new_path)
        return new_path


class StaticPageFallbackMiddleware:
    """``PATH_INFO`` を生成済みファイルのパスへ書き換える WSGI ミドルウェア。"""

    def __init__(self, app: Callable, resolver: FallbackResolver) -> None:
        self.app = app
        self.resolver = resolver

    def __call__(self, environ: dict, start_response: Callable) -> Iterable[bytes]:
        if not is_generator_request(environ):
            new_path = self.resolver.resolve(environ.get("PATH_INFO") or "/")
            if new_path is not None:
                environ = dict(environ)
                environ["PATH_INFO"] = new_path
        return self.app(environ, start_response)


def init_app(
    app: Any,
    catalog: ResourceCatalog,
    web_root: str | Path | None = None,
    ignore_out_file: bool = False,
) -> FallbackResolver:
    """Flask アプリケーションへフォールバックミドルウェアを組み込みます。

    生成済みファイルは ``web_root`` (既定は ``app.static_folder``) 直下から
    配信される前提です。ルート直下で配信するには ``static_url_path=""`` を
    指定して Flask アプリケーションを作成してください。
    """

    root = web_root if web_root is not None else app.static_folder
    if root is None:
        raise ValueError("web_root が指定されておらず、static_folder も設定されていません。")
    resolver = FallbackResolver(catalog.pages, root, catalog.policy, ignore_out_file)
    app.wsgi_app = StaticPageFallbackMiddleware(app.wsgi_app, resolver)
    return resolver

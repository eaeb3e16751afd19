"""ルートから出力ファイルパスを決定するリゾルバー。"""

from __future__ import annotations

import posixpath
import re
from pathlib import Path

from .config import ConfigurationError, NamingPolicy
from .resources import Resource, ResourceKind

_KIND_EXTENSIONS = {
    ResourceKind.CSS: ".css",
    ResourceKind.JS: ".js",
    ResourceKind.BIN: ".bin",
}

_DISALLOWED_CHARS = re.compile(r"[\s<>\"{}|^`]")
_BAD_PERCENT = re.compile(r"%(?![0-9A-Fa-f]{2})")
_SCHEME = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*:")


class InvalidRouteError(ValueError):
    """ルートが相対 URL として正しくない場合に送出される例外。"""

    def __init__(self, route: str) -> None:
        self.route = route
        super().__init__(f"ルートが相対 URL として正しくありません: {route!r}")


def strip_query(url: str) -> str:
    """最初の ``?`` 以降を取り除いた URL を返します。"""

    if url is None or not url.strip():
        raise ValueError("URL には空でない文字列を指定してください。")
    index = url.find("?")
    return url[:index] if index > -1 else url


def is_well_formed_relative(path: str) -> bool:
    if not path or _DISALLOWED_CHARS.search(path) or _BAD_PERCENT.search(path):
        return False
    if _SCHEME.match(path) or path.startswith("//"):
        return False
    return True


def has_extension(path: str) -> bool:
    _, ext = posixpath.splitext(path.replace("\\", "/"))
    return len(ext) > 1


def _last_segment(path: str) -> str:
    return path.replace("\\", "/").rstrip("/").rsplit("/", 1)[-1]


def _combine(root: str | Path, relative: str) -> Path:
    normalized = relative.replace("\\", "/").lstrip("/")
    return Path(root).joinpath(*[part for part in normalized.split("/") if part])


def _require_root(root: str | Path | None) -> None:
    if root is None or not str(root).strip():
        raise ConfigurationError("出力先のルートディレクトリが指定されていません。")


def page_relative_path(page: Resource, policy: NamingPolicy) -> str:
    """ページの出力先をルートからの相対パス (``/`` 区切り) で返します。"""

    if page.out_file and page.out_file.strip():
        return page.out_file.replace("\\", "/").lstrip("/")

    policy.validate()
    page_path = strip_query(page.route)
    if not is_well_formed_relative(page_path):
        raise InvalidRouteError(page.route)

    if page_path.endswith(("/", "\\")):
        page_path += policy.default_file_name
    elif not has_extension(page_path):
        expand = policy.always_create_default_file and not policy.is_excluded(
            _last_segment(page_path)
        )
        if expand:
            page_path = f"{page_path}/{policy.default_file_name}"
        else:
            page_path += policy.page_file_extension
    return page_path.replace("\\", "/").lstrip("/")


def resolve_page_path(page: Resource, root: str | Path, policy: NamingPolicy) -> Path:
    _require_root(root)
    return _combine(root, page_relative_path(page, policy))


def resolve_resource_path(
    resource: Resource, root: str | Path, policy: NamingPolicy | None = None
) -> Path:
    """リソースの種類に応じて出力ファイルパスを決定します。

    ページは命名ポリシーに従い、CSS/JS/バイナリはルートをそのまま使います。
    拡張子のないルートには種類ごとの既定拡張子を補います。
    """

    _require_root(root)
    if resource.kind is ResourceKind.PAGE:
        return resolve_page_path(resource, root, policy or NamingPolicy())
    if resource.out_file and resource.out_file.strip():
        return _combine(root, resource.out_file)
    resource_path = strip_query(resource.route)
    if not is_well_formed_relative(resource_path) or resource_path.endswith(("/", "\\")):
        raise InvalidRouteError(resource.route)
    if not has_extension(resource_path):
        resource_path += _KIND_EXTENSIONS[resource.kind]
    return _combine(root, resource_path)

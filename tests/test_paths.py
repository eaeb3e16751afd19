from __future__ import annotations

from pathlib import Path

import pytest

from site2static.config import ConfigurationError, NamingPolicy
from site2static.paths import (
    InvalidRouteError,
    page_relative_path,
    resolve_page_path,
    resolve_resource_path,
    strip_query,
)
from site2static.resources import bin_resource, css_resource, js_resource, page_resource


@pytest.mark.parametrize(
    ("route", "expected"),
    [
        ("/", "index.html"),
        ("/blog/", "blog/index.html"),
        ("/blog/article1", "blog/article1.html"),
        ("/feed.xml", "feed.xml"),
        ("/docs/Index", "docs/Index.html"),
    ],
)
def test_page_relative_path_default_policy(route: str, expected: str) -> None:
    assert page_relative_path(page_resource(route), NamingPolicy()) == expected


def test_always_default_file_respects_exclusions() -> None:
    policy = NamingPolicy(always_create_default_file=True)

    assert page_relative_path(page_resource("/blog/article1"), policy) == "blog/article1/index.html"
    # 除外名は大文字小文字を区別しない
    assert page_relative_path(page_resource("/docs/Index"), policy) == "docs/Index.html"
    assert page_relative_path(page_resource("/default"), policy) == "default.html"


def test_out_file_overrides_policy(tmp_path: Path) -> None:
    page = page_resource("/whatever/route", out_file="custom/place.htm")

    assert resolve_page_path(page, tmp_path, NamingPolicy()) == tmp_path / "custom" / "place.htm"


def test_query_is_stripped_before_naming(tmp_path: Path) -> None:
    page = page_resource("/search", query="q=1")

    assert resolve_page_path(page, tmp_path, NamingPolicy()) == tmp_path / "search.html"
    assert strip_query("/a/b?x=1?y=2") == "/a/b"


def test_custom_extension_and_default_file(tmp_path: Path) -> None:
    policy = NamingPolicy(default_file_name="default.htm", page_file_extension="htm")

    assert policy.page_file_extension == ".htm"
    assert resolve_page_path(page_resource("/about"), tmp_path, policy) == tmp_path / "about.htm"
    assert resolve_page_path(page_resource("/news/"), tmp_path, policy) == tmp_path / "news" / "default.htm"


@pytest.mark.parametrize("route", ["/bad route", "http://example.com/page", "//cdn/page", "/bad%zz"])
def test_malformed_routes_are_rejected(route: str) -> None:
    with pytest.raises(InvalidRouteError) as excinfo:
        page_relative_path(page_resource(route), NamingPolicy())

    assert excinfo.value.route == route


def test_missing_root_or_policy_values_raise_configuration_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        resolve_page_path(page_resource("/a"), "", NamingPolicy())
    with pytest.raises(ConfigurationError):
        resolve_page_path(page_resource("/a"), tmp_path, NamingPolicy(default_file_name=" "))


def test_resource_paths_get_kind_extension(tmp_path: Path) -> None:
    assert resolve_resource_path(css_resource("/styles/site"), tmp_path) == tmp_path / "styles" / "site.css"
    assert resolve_resource_path(js_resource("/app.min.js"), tmp_path) == tmp_path / "app.min.js"
    assert resolve_resource_path(bin_resource("/images/logo"), tmp_path) == tmp_path / "images" / "logo.bin"
    assert (
        resolve_resource_path(css_resource("/theme", out_file="assets/theme.css"), tmp_path)
        == tmp_path / "assets" / "theme.css"
    )


def test_resource_route_with_trailing_slash_is_invalid(tmp_path: Path) -> None:
    with pytest.raises(InvalidRouteError):
        resolve_resource_path(css_resource("/styles/"), tmp_path)

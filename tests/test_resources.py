from __future__ import annotations

import json
from pathlib import Path

import pytest

from site2static.config import ConfigurationError
from site2static.resources import (
    ChangeFrequency,
    OptimizationType,
    OutputEncoding,
    ResourceCatalog,
    ResourceKind,
    bin_resource,
    css_resource,
    find_page,
    js_resource,
    load_catalog,
    page_resource,
)


def test_resource_defaults_and_url() -> None:
    page = page_resource("/search", query="q=1")
    binary = bin_resource("/logo.png", optimization_type=OptimizationType.AUTO)

    assert page.url == "/search?q=1"
    assert page.metadata is not None
    assert page.metadata.change_frequency is ChangeFrequency.NEVER
    assert binary.skip_optimization
    assert binary.output_encoding is OutputEncoding.DEFAULT
    assert css_resource("/site.css").output_encoding is OutputEncoding.UTF8


def test_blank_route_is_rejected() -> None:
    with pytest.raises(ValueError):
        page_resource("  ")


def test_find_page_root_only_matches_root() -> None:
    pages = [page_resource("/blog/"), page_resource("/")]

    assert find_page(pages, "/") is pages[1]
    assert find_page(pages, "blog") is pages[0]
    assert find_page([page_resource("/blog/")], "/") is None


def test_catalog_partitions_and_skips() -> None:
    catalog = ResourceCatalog(
        resources=[page_resource("/"), css_resource("/site.css"), js_resource("/app.js"), bin_resource("/a.png")],
        skip_js=True,
    )

    assert [r.route for r in catalog.pages] == ["/"]
    assert [r.kind for r in catalog.other_resources] == [ResourceKind.CSS, ResourceKind.JS, ResourceKind.BIN]
    assert catalog.is_skipped(js_resource("/x.js"))
    assert not catalog.is_skipped(css_resource("/x.css"))

    extended = catalog.with_resources([page_resource("/about")])
    assert len(extended.pages) == 2
    assert extended.skip_js
    assert len(catalog.pages) == 1


def test_load_catalog_reads_policy_and_resources(tmp_path: Path) -> None:
    catalog_path = tmp_path / "catalog.json"
    catalog_path.write_text(
        json.dumps(
            {
                "policy": {
                    "defaultFileName": "default.htm",
                    "pageFileExtension": "htm",
                    "defaultFileExclusions": ["index", "INDEX", "home"],
                    "alwaysCreateDefaultFile": True,
                    "caseSensitiveRoutes": True,
                },
                "skip": {"bin": True},
                "resources": [
                    {
                        "route": "/",
                        "pageMetadata": {
                            "changeFrequency": "Daily",
                            "lastModified": "2024-05-01T00:00:00+00:00",
                            "indexPriority": 0.8,
                        },
                    },
                    {"route": "/styles/site", "kind": "css", "outputEncoding": "latin1"},
                    {"route": "/feed", "kind": "page", "optimizationType": "xml", "outFile": "feed.xml"},
                    {"route": "/logo", "kind": "bin"},
                ],
            }
        ),
        encoding="utf-8",
    )

    catalog = load_catalog(catalog_path)

    assert catalog.policy.default_file_name == "default.htm"
    assert catalog.policy.page_file_extension == ".htm"
    assert catalog.policy.default_file_exclusions == ("index", "home")
    assert catalog.policy.always_create_default_file
    assert catalog.policy.routes_are_case_sensitive
    assert catalog.skip_bin and not catalog.skip_css
    root, css, feed, logo = catalog.resources
    assert root.metadata.change_frequency is ChangeFrequency.DAILY
    assert root.metadata.index_priority == pytest.approx(0.8)
    assert css.output_encoding is OutputEncoding.LATIN1
    assert feed.optimization_type is OptimizationType.XML
    assert feed.out_file == "feed.xml"
    assert logo.kind is ResourceKind.BIN
    assert logo.output_encoding is OutputEncoding.DEFAULT


def test_load_catalog_accepts_bare_list(tmp_path: Path) -> None:
    catalog_path = tmp_path / "catalog.json"
    catalog_path.write_text(json.dumps([{"route": "/"}, {"route": "/about"}]), encoding="utf-8")

    catalog = load_catalog(catalog_path)

    assert [page.route for page in catalog.pages] == ["/", "/about"]


def test_load_catalog_rejects_blank_exclusions(tmp_path: Path) -> None:
    catalog_path = tmp_path / "catalog.json"
    catalog_path.write_text(
        json.dumps({"policy": {"defaultFileExclusions": ["index", " "]}, "resources": []}),
        encoding="utf-8",
    )

    with pytest.raises(ConfigurationError):
        load_catalog(catalog_path)


def test_unknown_kind_is_reported(tmp_path: Path) -> None:
    catalog_path = tmp_path / "catalog.json"
    catalog_path.write_text(json.dumps([{"route": "/", "kind": "video"}]), encoding="utf-8")

    with pytest.raises(ValueError):
        load_catalog(catalog_path)

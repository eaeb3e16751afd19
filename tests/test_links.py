from __future__ import annotations

from site2static.config import NamingPolicy
from site2static.links import LinkRewriter, rewrite_links, target_href
from site2static.resources import css_resource, page_resource


def _catalog_pages():
    return [page_resource("/"), page_resource("/blog/"), page_resource("/blog/article1")]


def test_rewrites_known_routes_to_generated_files() -> None:
    html = """
    <nav>
      <a href="/">Home</a>
      <a class="nav-link" href="/blog/">Blog</a>
      <a href="/blog/article1">Article</a>
      <a href="/unknown">Unknown</a>
    </nav>
    """

    rewritten = rewrite_links(html, _catalog_pages(), NamingPolicy())

    assert '<a href="/index.html">Home</a>' in rewritten
    assert '<a class="nav-link" href="/blog/index.html">Blog</a>' in rewritten
    assert '<a href="/blog/article1.html">Article</a>' in rewritten
    assert '<a href="/unknown">Unknown</a>' in rewritten


def test_rewriting_twice_is_idempotent() -> None:
    html = '<a href="/blog/">Blog</a><a href="/blog/article1">A</a><area href="/" alt="">'
    rewriter = LinkRewriter(_catalog_pages(), NamingPolicy())

    once = rewriter.rewrite(html)

    assert rewriter.rewrite(once) == once
    assert '<area href="/index.html" alt="">' in once


def test_relative_hrefs_stay_relative() -> None:
    rewritten = rewrite_links("<a href='blog/article1'>A</a>", _catalog_pages(), NamingPolicy())

    assert rewritten == "<a href='blog/article1.html'>A</a>"


def test_case_sensitivity_toggle() -> None:
    pages = [page_resource("/Blog")]
    html = '<a href="/blog">Blog</a>'

    insensitive = rewrite_links(html, pages, NamingPolicy())
    sensitive = rewrite_links(html, pages, NamingPolicy(routes_are_case_sensitive=True))

    assert insensitive == '<a href="/blog.html">Blog</a>'
    assert sensitive == html


def test_always_default_file_expands_every_route() -> None:
    policy = NamingPolicy(always_create_default_file=True)
    pages = [page_resource("/docs"), page_resource("/index")]

    rewritten = rewrite_links('<a href="/docs">D</a><a href="/index">I</a>', pages, policy)

    # リンクの書き換えでは除外名を考慮しない
    assert rewritten == '<a href="/docs/index.html">D</a><a href="/index/index.html">I</a>'


def test_route_with_extension_still_gets_page_extension() -> None:
    rewritten = rewrite_links('<a href="/feed.xml">Feed</a>', [page_resource("/feed.xml")], NamingPolicy())

    assert rewritten == '<a href="/feed.xml.html">Feed</a>'


def test_out_file_replacement_is_rooted() -> None:
    page = page_resource("/about", out_file="pages\\about-us.htm")

    assert target_href("about", page, NamingPolicy()) == "/pages/about-us.htm"


def test_only_anchor_and_area_tags_are_rewritten() -> None:
    html = '<link href="/blog/" rel="alternate"><a href="/blog/">Blog</a>'

    rewritten = rewrite_links(html, _catalog_pages(), NamingPolicy())

    assert rewritten == '<link href="/blog/" rel="alternate"><a href="/blog/index.html">Blog</a>'


def test_blank_input_and_empty_catalog_are_noops() -> None:
    assert rewrite_links(None, _catalog_pages(), NamingPolicy()) is None
    assert rewrite_links("   ", _catalog_pages(), NamingPolicy()) == "   "
    assert rewrite_links('<a href="/blog/">', [], NamingPolicy()) == '<a href="/blog/">'
    assert LinkRewriter([css_resource("/site.css")], NamingPolicy()).rewrite('<a href="/site.css">') == '<a href="/site.css">'

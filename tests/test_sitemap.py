"""Tests for linkaudit.sitemap."""

from __future__ import annotations

import httpx
import pytest

from linkaudit.errors import SitemapError
from linkaudit.sitemap import (
    compare_sitemap,
    compare_urls,
    fetch_sitemap_urls,
    filter_by_locale,
    parse_sitemap,
)

URLSET = """<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
  <url><loc>https://example.com/</loc></url>
  <url><loc> https://example.com/about </loc></url>
  <url><loc>https://example.com/de/</loc></url>
  <url><loc>https://example.com/de/kontakt</loc></url>
</urlset>
"""

SITEMAP_INDEX = """<?xml version="1.0" encoding="UTF-8"?>
<sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
  <sitemap><loc>https://example.com/sitemap-pages.xml</loc></sitemap>
  <sitemap><loc>https://example.com/sitemap-missing.xml</loc></sitemap>
</sitemapindex>
"""


def _client(documents):
    def handler(request: httpx.Request) -> httpx.Response:
        body = documents.get(str(request.url))
        if body is None:
            return httpx.Response(404)
        return httpx.Response(200, text=body)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_parse_sitemap_urlset():
    pages, subs = parse_sitemap(URLSET)
    assert pages == [
        "https://example.com/",
        "https://example.com/about",
        "https://example.com/de/",
        "https://example.com/de/kontakt",
    ]
    assert subs == []


def test_parse_sitemap_index():
    pages, subs = parse_sitemap(SITEMAP_INDEX)
    assert pages == []
    assert subs == [
        "https://example.com/sitemap-pages.xml",
        "https://example.com/sitemap-missing.xml",
    ]


@pytest.mark.asyncio
async def test_fetch_follows_sub_sitemaps_and_skips_failures():
    documents = {
        "https://example.com/sitemap.xml": SITEMAP_INDEX,
        "https://example.com/sitemap-pages.xml": URLSET,
    }
    async with _client(documents) as client:
        urls = await fetch_sitemap_urls("https://example.com/sitemap.xml", client=client)
    assert len(urls) == 4


@pytest.mark.asyncio
async def test_fetch_failure_raises():
    async with _client({}) as client:
        with pytest.raises(SitemapError, match="Sitemap returned 404"):
            await fetch_sitemap_urls("https://example.com/sitemap.xml", client=client)


@pytest.mark.asyncio
async def test_empty_sitemap_raises():
    documents = {"https://example.com/sitemap.xml": "<urlset></urlset>"}
    async with _client(documents) as client:
        with pytest.raises(SitemapError, match="empty"):
            await fetch_sitemap_urls("https://example.com/sitemap.xml", client=client)


def test_filter_by_locale():
    urls, _ = parse_sitemap(URLSET)
    assert filter_by_locale(urls, None) == urls
    assert filter_by_locale(urls, "de") == ["https://example.com/de/", "https://example.com/de/kontakt"]
    assert filter_by_locale(urls, "default") == ["https://example.com/", "https://example.com/about"]


def test_compare_urls(make_index):
    urls, _ = parse_sitemap(URLSET)
    index = make_index(
        {
            "https://example.com/": [],
            "https://example.com/About": [],
            "https://example.com/orphan": [],
        }
    )

    comparison = compare_urls(urls, index, sitemap_url="https://example.com/sitemap.xml")

    assert comparison.in_both == 2
    assert comparison.missing_from_index == ["https://example.com/de/", "https://example.com/de/kontakt"]
    assert comparison.extra_in_index == ["https://example.com/orphan"]
    assert comparison.locale_filter == "all"
    data = comparison.to_dict()
    assert data["sitemapCount"] == data["sitemapTotalCount"] == 4
    assert data["indexedCount"] == 3


@pytest.mark.asyncio
async def test_compare_sitemap_scopes_to_index_locale(make_index):
    index = make_index({"https://example.com/de": []}, locale_filter="de")
    documents = {"https://example.com/sitemap.xml": URLSET}

    async with _client(documents) as client:
        comparison = await compare_sitemap(index, client=client)

    assert comparison.sitemap_url == "https://example.com/sitemap.xml"
    assert comparison.sitemap_count == 2
    assert comparison.sitemap_total_count == 4
    assert comparison.in_both == 1
    assert comparison.missing_from_index == ["https://example.com/de/kontakt"]
    assert comparison.extra_in_index == []

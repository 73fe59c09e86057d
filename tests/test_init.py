from __future__ import annotations

import pytest

import linkaudit
from linkaudit.models import HealthReport
from linkaudit.sitemap import SitemapComparison


def test_build_index_sync_wrapper(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict = {}

    async def fake_build_index_async(start_url, **kwargs):
        captured.update(start_url=start_url, **kwargs)
        return "built"

    monkeypatch.setattr(linkaudit, "build_index_async", fake_build_index_async)

    assert linkaudit.build_index("https://example.com", save=False) == "built"
    assert captured == {"start_url": "https://example.com", "save": False}


def test_merge_incremental_sync_wrapper(monkeypatch: pytest.MonkeyPatch, make_index) -> None:
    captured: dict = {}

    async def fake_merge(existing, urls, **kwargs):
        captured["urls"] = list(urls)
        return existing

    monkeypatch.setattr(linkaudit, "merge_incremental_async", fake_merge)
    index = make_index({})

    assert linkaudit.merge_incremental(index, ["https://example.com/a"]) is index
    assert captured["urls"] == ["https://example.com/a"]


def test_check_index_sync_wrapper(monkeypatch: pytest.MonkeyPatch, make_index) -> None:
    captured: dict = {}

    async def fake_check(index, settings, *, max_links):
        captured["max_links"] = max_links
        return HealthReport(healthy_count=5)

    monkeypatch.setattr(linkaudit, "check_index_health", fake_check)

    report = linkaudit.check_index(make_index({}), max_links=10)
    assert report.healthy_count == 5
    assert captured["max_links"] == 10


def test_compare_sitemap_sync_wrapper(monkeypatch: pytest.MonkeyPatch, make_index) -> None:
    async def fake_compare(index, *, sitemap_url=None):
        return SitemapComparison(sitemap_url or "", 0, 0, "all", 0, 0)

    monkeypatch.setattr(linkaudit, "compare_sitemap_async", fake_compare)

    result = linkaudit.compare_sitemap(make_index({}), sitemap_url="https://example.com/s.xml")
    assert result.sitemap_url == "https://example.com/s.xml"


def test_lazy_mcp_attribute() -> None:
    assert linkaudit.mcp is linkaudit.get_mcp_server()
    with pytest.raises(AttributeError):
        linkaudit.does_not_exist

"""Tests for linkaudit.indexer (fake engine, temporary store)."""

from __future__ import annotations

import httpx
import pytest

from linkaudit.errors import ConfigurationError, EngineError
from linkaudit.indexer import build_index_async, merge_incremental_async, splice_pages
from linkaudit.models import PageRecord
from linkaudit.observer import RecordingObserver
from linkaudit.search import SearchQuery
from linkaudit.store import IndexStore


def _status_client(broken_paths):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404 if request.url.path in broken_paths else 200)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_build_index_saves_and_completes(tmp_path, settings, fake_engine_factory):
    store = IndexStore(tmp_path)
    observer = RecordingObserver()

    build = await build_index_async(
        "https://example.com/",
        settings=settings,
        store=store,
        observer=observer,
        engine=fake_engine_factory(),
        query=SearchQuery(pattern="kontakt"),
    )

    assert build.path == tmp_path / "example_com.json"
    assert store.load("example.com").to_dict() == build.index.to_dict()
    assert build.summary.index_path == str(build.path)
    assert build.summary.total_pages == 7
    assert build.summary.health_report is None
    assert [(f.source_url, f.target_url) for f in build.summary.findings] == [
        ("https://example.com/de", "https://example.com/de/kontakt")
    ]
    assert observer.summary is build.summary


@pytest.mark.asyncio
async def test_build_index_without_saving(settings, fake_engine_factory):
    build = await build_index_async(
        "https://example.com/", settings=settings, engine=fake_engine_factory(), save=False
    )
    assert build.path is None
    assert build.summary.index_path is None


@pytest.mark.asyncio
async def test_build_index_with_health_check(tmp_path, settings, fake_engine_factory):
    async with _status_client({"/pricing"}) as client:
        build = await build_index_async(
            "https://example.com/",
            settings=settings,
            store=IndexStore(tmp_path),
            engine=fake_engine_factory(),
            check_links=True,
            client=client,
        )

    report = build.summary.health_report
    assert report is build.index.health_report
    assert [issue.target_url for issue in report.broken] == ["https://example.com/pricing"]
    saved = IndexStore(tmp_path).load("example.com")
    statuses = [link.http_status for link in saved.pages["https://example.com/de"].links]
    assert 404 in statuses


@pytest.mark.asyncio
async def test_engine_failure_propagates(tmp_path, settings, fake_engine_factory):
    store = IndexStore(tmp_path)
    with pytest.raises(EngineError):
        await build_index_async(
            "https://example.com/",
            settings=settings,
            store=store,
            engine=fake_engine_factory(fail_start=True),
        )
    # nothing was gathered, so nothing was written
    assert store.list() == []


@pytest.mark.asyncio
async def test_bad_start_url(settings, fake_engine_factory):
    with pytest.raises(ConfigurationError):
        await build_index_async("mailto:team@example.com", settings=settings, engine=fake_engine_factory())


def test_splice_pages_leaves_original_untouched(make_index, link):
    existing = make_index({"https://example.com/": [link("https://example.com/old")]})

    merged = splice_pages(
        existing,
        [
            PageRecord(url="https://example.com/", title="New home"),
            PageRecord(url="https://example.com/new", title="New"),
        ],
    )

    assert set(merged.pages) == {"https://example.com/", "https://example.com/new"}
    assert merged.pages["https://example.com/"].links == []
    assert merged.metadata.total_pages == 2
    assert existing.pages["https://example.com/"].links[0].href == "https://example.com/old"


@pytest.mark.asyncio
async def test_merge_incremental(tmp_path, settings, fake_engine_factory, make_index, link):
    store = IndexStore(tmp_path)
    existing = make_index(
        {
            "https://example.com/": [link("https://example.com/stale")],
            "https://example.com/kept": [link("https://example.com/a", "A")],
        }
    )
    engine = fake_engine_factory()

    build = await merge_incremental_async(
        existing,
        ["https://example.com/", "https://example.com/c", "https://example.com/"],
        settings=settings,
        store=store,
        engine=engine,
    )

    # only the requested URLs are visited; their links are not followed
    assert sorted(engine.visits) == ["https://example.com/", "https://example.com/c"]
    pages = build.index.pages
    assert set(pages) == {"https://example.com/", "https://example.com/kept", "https://example.com/c"}
    assert pages["https://example.com/"].title == "Home"
    assert pages["https://example.com/kept"].links[0].href == "https://example.com/a"
    assert build.index.metadata.total_pages == 3
    assert store.load("example.com").metadata.total_pages == 3
    assert "https://example.com/c" not in existing.pages


@pytest.mark.asyncio
async def test_merge_incremental_requires_urls(settings, make_index):
    with pytest.raises(ConfigurationError):
        await merge_incremental_async(make_index({}), [], settings=settings, save=False)


@pytest.mark.asyncio
async def test_engine_failure_reaches_observer(settings, fake_engine_factory):
    observer = RecordingObserver()
    with pytest.raises(EngineError):
        await build_index_async(
            "https://example.com/",
            settings=settings,
            observer=observer,
            engine=fake_engine_factory(fail_start=True),
            save=False,
        )

    assert [error.stage for error in observer.errors] == ["engine"]
    assert observer.summary.state == "failed"
    assert observer.summary.index_path is None


@pytest.mark.asyncio
async def test_bad_start_url_reaches_observer(settings, fake_engine_factory):
    observer = RecordingObserver()
    with pytest.raises(ConfigurationError):
        await build_index_async(
            "mailto:team@example.com", settings=settings, observer=observer, engine=fake_engine_factory()
        )

    assert [(error.url, error.stage) for error in observer.errors] == [("mailto:team@example.com", "config")]
    assert observer.summary.state == "failed"
    assert observer.summary.total_pages == 0


@pytest.mark.asyncio
async def test_merge_without_urls_reaches_observer(settings, make_index):
    observer = RecordingObserver()
    with pytest.raises(ConfigurationError):
        await merge_incremental_async(make_index({}), [], settings=settings, observer=observer, save=False)

    assert observer.errors[0].stage == "config"
    assert "at least one URL" in observer.errors[0].error
    assert observer.summary.state == "failed"

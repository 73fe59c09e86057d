"""Build, re-index and persist link indexes.

These are the entry points the CLI, the MCP server and the Python API share:
run a crawl job, optionally health-check the result, save it and emit the
completion summary.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

import httpx

from .config import CrawlSettings, load_settings_from_env
from .engine import RenderEngine
from .errors import ConfigurationError, EngineError
from .health import check_index_health
from .job import CrawlJob, report_failure
from .models import CrawlSummary, Index, PageRecord
from .observer import CrawlObserver, LoggingObserver
from .search import SearchQuery
from .store import IndexStore

LOGGER = logging.getLogger(__name__)


@dataclass
class IndexBuild:
    index: Index
    summary: CrawlSummary
    path: Optional[Path] = None


def splice_pages(existing: Index, pages: Iterable[PageRecord]) -> Index:
    """Copy of ``existing`` with ``pages`` added or replaced; other pages untouched."""
    merged = Index.from_dict(existing.to_dict())
    for page in pages:
        merged.add_page(page)
    merged.refresh_totals()
    return merged


async def _finish(
    job: CrawlJob,
    index: Index,
    *,
    check_links: bool,
    store: Optional[IndexStore],
    client: Optional[httpx.AsyncClient],
) -> IndexBuild:
    settings = job.settings
    if check_links and index.pages:
        job.observer.on_log("Checking link health...", "info")
        await check_index_health(index, settings, client=client)

    path = store.save(index) if store is not None else None
    summary = job.summary(str(path) if path else None)
    summary.total_pages = index.metadata.total_pages
    summary.total_links = index.metadata.total_links
    summary.health_report = index.health_report if check_links else None
    job.observer.on_complete(summary)
    return IndexBuild(index=index, summary=summary, path=path)


async def build_index_async(
    start_url: str,
    *,
    settings: Optional[CrawlSettings] = None,
    store: Optional[IndexStore] = None,
    observer: Optional[CrawlObserver] = None,
    query: Optional[SearchQuery] = None,
    engine: Optional[RenderEngine] = None,
    check_links: Optional[bool] = None,
    save: bool = True,
    client: Optional[httpx.AsyncClient] = None,
) -> IndexBuild:
    """Crawl ``start_url`` into a new index.

    Args:
        start_url: Root URL; its host is the crawl scope.
        settings: Crawl tunables (default: from ``LINKAUDIT_*`` variables).
        store: Where to save the index (default: the data directory).
        observer: Receives progress, log, finding, error and completion events.
        query: Optional live search evaluated against every extracted page.
        engine: Rendering engine (default: a Crawl4AI browser).
        check_links: Health-check the result (default: ``settings.check_links``).
        save: Persist the index.

    Raises:
        ConfigurationError: Unusable start URL or settings.
        EngineError: The browser failed to start. Whatever was gathered has
            already been saved when ``save`` is on.

    Either way the observer gets ``on_error`` and a failed ``on_complete``
    before the exception propagates.
    """
    settings = (settings or load_settings_from_env()).with_overrides(start_url=start_url)
    observer = observer or LoggingObserver()
    store = (store or IndexStore()) if save else None
    check = settings.check_links if check_links is None else check_links

    job = CrawlJob(settings, engine=engine, observer=observer, query=query)
    try:
        await job.run(notify_complete=False)
    except EngineError:
        if store is not None and job.index.pages:
            store.save(job.index)
        raise

    return await _finish(job, job.index, check_links=check, store=store, client=client)


async def merge_incremental_async(
    existing: Index,
    urls: Iterable[str],
    *,
    settings: Optional[CrawlSettings] = None,
    store: Optional[IndexStore] = None,
    observer: Optional[CrawlObserver] = None,
    engine: Optional[RenderEngine] = None,
    check_links: bool = False,
    save: bool = True,
    client: Optional[httpx.AsyncClient] = None,
) -> IndexBuild:
    """Re-extract exactly ``urls`` and splice them into a copy of ``existing``.

    Links found on those pages are recorded but not followed.
    """
    urls = list(dict.fromkeys(urls))
    metadata = existing.metadata
    start_url = metadata.start_url or f"https://{metadata.domain}/"
    observer = observer or LoggingObserver()
    if not urls:
        exc = ConfigurationError("Incremental re-indexing needs at least one URL")
        report_failure(observer, start_url, exc, "config")
        raise exc

    base = settings or load_settings_from_env()
    settings = base.with_overrides(
        start_url=start_url,
        locale_filter=metadata.locale_filter,
        max_pages=len(urls),
    )
    store = (store or IndexStore()) if save else None

    job = CrawlJob(settings, engine=engine, observer=observer, seed_urls=urls)
    try:
        await job.run(notify_complete=False)
    except EngineError:
        if store is not None and job.index.pages:
            store.save(splice_pages(existing, job.index.pages.values()))
        raise

    merged = splice_pages(existing, job.index.pages.values())
    LOGGER.info("Merged %d re-indexed pages into %s", len(job.index.pages), metadata.domain)
    return await _finish(job, merged, check_links=check_links, store=store, client=client)

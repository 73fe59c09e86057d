"""Link indexing and audit toolkit.

Crawls a website with a pool of browser workers into a searchable link
index, then searches that index, checks link health and reconciles it with
the sitemap. It supports:

- Full-site or locale-scoped indexing with live pattern/cross-locale findings
- Incremental re-indexing of selected URLs
- Link health checks (broken, redirect and cross-locale links)
- Sitemap comparison and persisted triage reports

Example usage:

    from linkaudit import SearchQuery, build_index_async, search

    build = await build_index_async("https://example.com", check_links=False)
    query = SearchQuery(mode="crosslocale", source_locale="default")
    for finding in search(build.index, query):
        print(finding.source_url, "->", finding.target_url)

    # Synchronous variants
    from linkaudit import CrawlSettings, build_index, check_index
    build = build_index("https://example.com/de/", settings=CrawlSettings(locale_filter="de"))
    report = check_index(build.index)
"""

from __future__ import annotations

import asyncio
from typing import Iterable, Optional

from .config import CrawlSettings, load_settings_from_env
from .errors import (
    ConfigurationError,
    EngineError,
    ExtractionError,
    IndexNotFoundError,
    LinkAuditError,
    NavigationError,
    ReportNotFoundError,
    SitemapError,
)
from .health import LinkHealthChecker, check_index_health, classify_status
from .indexer import IndexBuild, build_index_async, merge_incremental_async
from .job import CrawlJob, JobController
from .models import (
    CrawlProgress,
    CrawlSummary,
    Finding,
    HealthIssue,
    HealthReport,
    Index,
    LinkRecord,
    PageRecord,
)
from .observer import CrawlObserver, LoggingObserver, RecordingObserver
from .reports import ReportStore
from .search import SearchQuery, search
from .sitemap import SitemapComparison
from .sitemap import compare_sitemap as compare_sitemap_async
from .store import IndexStore

__all__ = [
    # Settings
    "CrawlSettings",
    "load_settings_from_env",
    # Errors
    "LinkAuditError",
    "ConfigurationError",
    "EngineError",
    "NavigationError",
    "ExtractionError",
    "IndexNotFoundError",
    "ReportNotFoundError",
    "SitemapError",
    # Index model
    "Index",
    "PageRecord",
    "LinkRecord",
    "Finding",
    "HealthIssue",
    "HealthReport",
    "CrawlProgress",
    "CrawlSummary",
    # Crawling
    "CrawlJob",
    "JobController",
    "CrawlObserver",
    "LoggingObserver",
    "RecordingObserver",
    "IndexBuild",
    "build_index",
    "build_index_async",
    "merge_incremental",
    "merge_incremental_async",
    # Analysis
    "SearchQuery",
    "search",
    "LinkHealthChecker",
    "classify_status",
    "check_index",
    "check_index_health",
    "SitemapComparison",
    "compare_sitemap",
    "compare_sitemap_async",
    # Persistence
    "IndexStore",
    "ReportStore",
    # MCP Server
    "mcp",
]


def get_mcp_server():
    """Get the MCP server instance (lazy import to avoid dependency if not needed)."""
    from .mcp_server import mcp

    return mcp


# Lazy import for mcp to avoid requiring fastmcp if not used
def __getattr__(name):
    if name == "mcp":
        from .mcp_server import mcp

        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def build_index(start_url: str, **kwargs) -> IndexBuild:
    """Synchronous wrapper for build_index_async."""
    return asyncio.run(build_index_async(start_url, **kwargs))


def merge_incremental(existing: Index, urls: Iterable[str], **kwargs) -> IndexBuild:
    """Synchronous wrapper for merge_incremental_async."""
    return asyncio.run(merge_incremental_async(existing, urls, **kwargs))


def check_index(
    index: Index,
    settings: Optional[CrawlSettings] = None,
    *,
    max_links: Optional[int] = None,
) -> HealthReport:
    """Synchronous wrapper for check_index_health."""
    return asyncio.run(check_index_health(index, settings, max_links=max_links))


def compare_sitemap(index: Index, *, sitemap_url: Optional[str] = None) -> SitemapComparison:
    """Synchronous wrapper for compare_sitemap_async."""
    return asyncio.run(compare_sitemap_async(index, sitemap_url=sitemap_url))

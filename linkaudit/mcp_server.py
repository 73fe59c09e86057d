"""MCP server exposing the link index, search, health and sitemap tools.

Supports both STDIO and HTTP transports.

Usage:
    # STDIO (for desktop MCP clients)
    python -m linkaudit.mcp_server

    # HTTP (for remote access)
    python -m linkaudit.mcp_server --transport http --port 8000

    # Or via FastMCP CLI
    fastmcp run linkaudit/mcp_server.py:mcp --transport http --port 8000

Environment Variables:
    LINKAUDIT_DATA_DIR: Where indexes and reports are stored
    LINKAUDIT_MAX_PAGES, LINKAUDIT_CONCURRENCY: Crawl defaults
"""

from __future__ import annotations

import argparse
import json
import logging
from typing import Any, List, Optional

from dotenv import load_dotenv
from fastmcp import FastMCP

from .cli_output import format_findings_markdown, format_health_markdown
from .config import load_settings_from_env
from .errors import LinkAuditError
from .reports import ReportStore
from .search import SearchQuery, search
from .store import IndexStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
LOGGER = logging.getLogger(__name__)

load_dotenv()

mcp = FastMCP(
    name="Link Audit",
    instructions="""
    Builds a searchable link index of a website and audits it:

    1. Indexing:
       - build_index: Crawl a site (optionally one locale) into a saved index
       - reindex_pages: Re-extract selected URLs into an existing index
       - list_indexes: Saved indexes with page and link totals

    2. Analysis of a saved index:
       - search_index: Links matching patterns and/or crossing locales
       - check_link_health: Broken, redirecting and cross-locale links
       - compare_with_sitemap: Pages the sitemap lists but the index lacks

    3. Triage:
       - list_reports / update_report_issue: Saved health reports
    """,
)


def _error(message: str, **context: Any) -> str:
    LOGGER.error(message)
    return json.dumps({"error": message, **context}, ensure_ascii=False)


def _dump(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


# =============================================================================
# INDEX TOOLS
# =============================================================================


@mcp.tool
async def build_index(
    url: str,
    max_pages: int = 100,
    concurrency: int = 5,
    locale: Optional[str] = None,
    include_subdomains: bool = False,
    check_links: bool = True,
    pattern: Optional[str] = None,
    mode: Optional[str] = None,
):
    """
    Crawl a website and save its link index.

    Args:
        url: Start URL; its host is the crawl scope
        max_pages: Page budget (default: 100, 0 = unlimited)
        concurrency: Concurrent browser workers (default: 5)
        locale: Locale scope - "default" or comma-separated codes like "de,fr"
        include_subdomains: Also crawl subdomains of the start host
        check_links: Run a link health check on the result (default: true)
        pattern: Optional comma-separated substrings or /regex/ to report while crawling
        mode: "pattern", "crosslocale" or "both" for live findings

    Returns:
        JSON summary with totals, live findings, the health report and the
        saved index path.

    Examples:
        build_index(url="https://example.com", max_pages=50)
        build_index(url="https://example.com/de/", locale="de", check_links=False)
    """
    from . import build_index_async

    settings = load_settings_from_env(
        url,
        max_pages=max_pages,
        concurrency=concurrency,
        locale_filter=locale,
        include_subdomains=include_subdomains,
    )
    LOGGER.info("Indexing %s (max_pages=%d, locale=%s)", url, max_pages, locale or "all")
    try:
        query = SearchQuery(mode=mode or "pattern", pattern=pattern) if (pattern or mode) else None
        build = await build_index_async(url, settings=settings, query=query, check_links=check_links)
    except LinkAuditError as exc:
        return _error(str(exc), url=url)

    data = build.summary.to_dict()
    data["findings"] = [finding.to_dict() for finding in build.summary.findings]
    return _dump(data)


@mcp.tool
async def reindex_pages(
    name: str,
    urls: Optional[List[str]] = None,
    from_sitemap: bool = False,
):
    """
    Re-extract specific pages into a saved index without recrawling the site.

    Args:
        name: Index name as returned by list_indexes
        urls: Pages to re-extract
        from_sitemap: Also re-extract every sitemap URL missing from the index

    Returns:
        JSON summary of the merged index.
    """
    from . import compare_sitemap_async, merge_incremental_async

    store = IndexStore()
    try:
        index = store.load_by_name(name)
        targets = list(urls or [])
        if from_sitemap:
            comparison = await compare_sitemap_async(index)
            targets.extend(comparison.missing_from_index)
        if not targets:
            return _dump({"name": name, "reindexed": 0})
        build = await merge_incremental_async(index, targets, store=store)
    except LinkAuditError as exc:
        return _error(str(exc), name=name)

    data = build.summary.to_dict()
    data["reindexed"] = len(dict.fromkeys(targets))
    return _dump(data)


@mcp.tool
async def list_indexes():
    """List saved indexes, newest first."""
    return _dump(IndexStore().list())


# =============================================================================
# ANALYSIS TOOLS
# =============================================================================


@mcp.tool
async def search_index(
    name: str,
    pattern: Optional[str] = None,
    mode: str = "pattern",
    source_locale: Optional[str] = None,
    other_locales: Optional[str] = None,
    include_switcher_links: bool = False,
    output_format: str = "json",
):
    """
    Search a saved index.

    Args:
        name: Index name as returned by list_indexes
        pattern: Comma-separated substrings or /regex/, matched against link URL and text
        mode: "pattern" (default), "crosslocale" (AND pattern if given) or "both" (OR)
        source_locale: Only pages in this locale ("default" = no prefix)
        other_locales: Comma-separated target locales that count as cross-locale
        include_switcher_links: Keep language-switcher links like "Deutsch"
        output_format: "json" (default) or "markdown"

    Examples:
        search_index(name="example_com", pattern="contact,about")
        search_index(name="example_com", mode="crosslocale", source_locale="default")
    """
    try:
        index = IndexStore().load_by_name(name)
        query = SearchQuery(
            mode=mode,
            pattern=pattern,
            source_locale=source_locale,
            other_locales=other_locales,
            exclude_locale_switcher=not include_switcher_links,
        )
    except LinkAuditError as exc:
        return _error(str(exc), name=name)

    findings = search(index, query)
    LOGGER.info("Search on %s returned %d links", name, len(findings))
    if output_format.lower() == "markdown":
        return format_findings_markdown(findings, title=name)
    return _dump({"name": name, "total": len(findings), "findings": [f.to_dict() for f in findings]})


@mcp.tool
async def check_link_health(
    name: str,
    max_links: int = 200,
    strict_timeouts: bool = False,
    save_report: bool = False,
    output_format: str = "json",
):
    """
    Check the health of the links stored in a saved index.

    Broken means unreachable, 404, 410 or a server error. Redirects are 3xx
    responses that do not point back at the same URL. Cross-locale issues
    are links from one locale section into another.

    Args:
        name: Index name as returned by list_indexes
        max_links: Unique link targets to check (default: 200)
        strict_timeouts: Count timed-out links as broken
        save_report: Save the result as a report for triage
        output_format: "json" (default) or "markdown"
    """
    from . import check_index_health

    store = IndexStore()
    try:
        index = store.load_by_name(name)
        settings = load_settings_from_env(timeout_is_healthy=not strict_timeouts)
        report = await check_index_health(index, settings, max_links=max_links)
    except LinkAuditError as exc:
        return _error(str(exc), name=name)
    store.save(index)

    data = report.to_dict()
    if save_report:
        data = ReportStore().save_report(name, report, index.metadata.locale_filter)
    if output_format.lower() == "markdown":
        return format_health_markdown(report.to_dict(), title=name)
    return _dump(data)


@mcp.tool
async def compare_with_sitemap(name: str, sitemap_url: Optional[str] = None):
    """
    Compare a saved index with the site's sitemap.xml.

    Args:
        name: Index name as returned by list_indexes
        sitemap_url: Sitemap to use (default: https://<domain>/sitemap.xml)
    """
    from . import compare_sitemap_async

    try:
        index = IndexStore().load_by_name(name)
        comparison = await compare_sitemap_async(index, sitemap_url=sitemap_url)
    except LinkAuditError as exc:
        return _error(str(exc), name=name)
    return _dump(comparison.to_dict())


# =============================================================================
# REPORT TOOLS
# =============================================================================


@mcp.tool
async def list_reports():
    """List saved health reports, newest first."""
    return _dump(ReportStore().list_reports())


@mcp.tool
async def update_report_issue(
    report_id: str,
    issue_id: str,
    status: Optional[str] = None,
    notes: Optional[str] = None,
):
    """
    Update the triage status or notes of one issue in a saved report.

    Args:
        report_id: Report id as returned by list_reports
        issue_id: Issue id inside the report
        status: "pending", "inProgress" or "fixed"
        notes: Free-form notes

    Returns:
        JSON with the report's updated issue counts per status.
    """
    try:
        stats = ReportStore().update_issue(report_id, issue_id, status, notes)
    except (LinkAuditError, ValueError) as exc:
        return _error(str(exc), reportId=report_id, issueId=issue_id)
    return _dump({"reportId": report_id, "issueStats": stats})


# =============================================================================
# CLI ENTRY POINT
# =============================================================================


def main():
    """CLI entry point for running the MCP server."""
    parser = argparse.ArgumentParser(
        description="Run the link audit MCP server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment Variables:
    LINKAUDIT_DATA_DIR   Where indexes and reports are stored

Examples:
    # STDIO transport (default)
    python -m linkaudit.mcp_server

    # HTTP transport (for remote access)
    python -m linkaudit.mcp_server --transport http --port 8000

    # Custom host/port
    python -m linkaudit.mcp_server --transport http --host 0.0.0.0 --port 9000
""",
    )
    parser.add_argument(
        "--transport",
        choices=["stdio", "http"],
        default="stdio",
        help="Transport protocol (default: stdio)",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host to bind to for HTTP transport (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind to for HTTP transport (default: 8000)",
    )

    args = parser.parse_args()

    LOGGER.info("Data directory: %s", IndexStore().root.parent)

    if args.transport == "http":
        LOGGER.info("Starting MCP server on http://%s:%d/mcp", args.host, args.port)
        mcp.run(transport="http", host=args.host, port=args.port)
    else:
        LOGGER.info("Starting MCP server with STDIO transport")
        mcp.run(transport="stdio")


if __name__ == "__main__":
    main()

"""Argument parser construction for CLI commands."""

from __future__ import annotations

import argparse
from typing import List, Optional

COMMANDS = ("index", "reindex", "search", "health", "sitemap", "indexes", "reports")


def _add_common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help="Directory for indexes and reports (default: $LINKAUDIT_DATA_DIR "
             "or ~/.local/share/linkaudit)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )


def _add_output_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-o",
        "--output",
        type=str,
        default=None,
        help="Write output to this file instead of stdout",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="Output as JSON instead of markdown",
    )


def _add_query_args(parser: argparse.ArgumentParser, *, required_mode: bool = False) -> None:
    parser.add_argument(
        "--pattern",
        type=str,
        default=None,
        help="Comma-separated substrings or /regex/ matched against link URL and text",
    )
    parser.add_argument(
        "--mode",
        type=str,
        choices=["pattern", "crosslocale", "both"],
        default="pattern" if required_mode else None,
        help="pattern: match --pattern; crosslocale: links leaving the page's locale "
             "(AND --pattern if given); both: either",
    )
    parser.add_argument(
        "--source-locale",
        type=str,
        default=None,
        help="Only pages in this locale ('default' = no locale prefix)",
    )
    parser.add_argument(
        "--other-locales",
        type=str,
        default=None,
        help="Comma-separated target locales that count as cross-locale (e.g. de,fr,es)",
    )
    parser.add_argument(
        "--include-switcher-links",
        action="store_true",
        help="Keep language-switcher links (e.g. 'Deutsch') in findings",
    )
    parser.add_argument(
        "--default-has-prefix",
        action="store_true",
        help="The site's default locale also carries a path prefix",
    )


def _add_crawl_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--max-pages",
        type=int,
        default=None,
        help="Page budget, 0 = unlimited (default: $LINKAUDIT_MAX_PAGES or 500)",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Concurrent browser workers (default: $LINKAUDIT_CONCURRENCY or 5)",
    )
    parser.add_argument(
        "--no-check-links",
        action="store_true",
        help="Skip the link health check after indexing",
    )
    parser.add_argument(
        "--headed",
        action="store_true",
        help="Show the browser window",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="linkaudit",
        description="Index a website's link graph, then search it, health-check it "
                    "and reconcile it with the sitemap.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    index_parser = subparsers.add_parser(
        "index",
        help="Crawl a site and save its link index",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Examples:
  # Full site, default budget
  linkaudit index https://example.com

  # Only German pages, at most 200 of them
  linkaudit index https://example.com/de/ --locale de --max-pages 200

  # Report matching links while crawling
  linkaudit index https://example.com --pattern "old-domain.com,/promo-20\\d\\d/"
""",
    )
    index_parser.add_argument("url", help="Start URL; its host is the crawl scope")
    index_parser.add_argument(
        "--locale",
        type=str,
        default=None,
        help="Locale scope: 'default' or comma-separated codes (e.g. de,fr)",
    )
    index_parser.add_argument(
        "--include-subdomains",
        action="store_true",
        help="Also crawl subdomains of the start host",
    )
    index_parser.add_argument(
        "--keep-switcher-links",
        action="store_true",
        help="Store language-switcher links in the index",
    )
    _add_crawl_args(index_parser)
    _add_query_args(index_parser)
    _add_output_args(index_parser)
    _add_common_args(index_parser)

    reindex_parser = subparsers.add_parser(
        "reindex",
        help="Re-extract specific URLs into an existing index",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Examples:
  linkaudit reindex example_com https://example.com/pricing https://example.com/about

  # Add the pages the sitemap lists but the index lacks
  linkaudit reindex example_com --from-sitemap
""",
    )
    reindex_parser.add_argument("name", help="Index name (see 'linkaudit indexes')")
    reindex_parser.add_argument("urls", nargs="*", help="URLs to re-extract")
    reindex_parser.add_argument(
        "--from-sitemap",
        action="store_true",
        help="Re-index the sitemap URLs missing from the index",
    )
    _add_crawl_args(reindex_parser)
    _add_output_args(reindex_parser)
    _add_common_args(reindex_parser)

    search_parser = subparsers.add_parser(
        "search",
        help="Search a saved index",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Examples:
  linkaudit search example_com --pattern contact,about
  linkaudit search example_com --mode crosslocale --source-locale default --other-locales de,fr
  linkaudit search example_com --mode both --pattern "/\\/v1\\//" --json
""",
    )
    search_parser.add_argument("name", help="Index name (see 'linkaudit indexes')")
    _add_query_args(search_parser, required_mode=True)
    _add_output_args(search_parser)
    _add_common_args(search_parser)

    health_parser = subparsers.add_parser(
        "health",
        help="Check link health of a saved index",
    )
    health_parser.add_argument("name", help="Index name")
    health_parser.add_argument(
        "--max-links",
        type=int,
        default=None,
        help="Unique links to check (default: $LINKAUDIT_HEALTH_MAX_LINKS or 200)",
    )
    health_parser.add_argument(
        "--strict-timeouts",
        action="store_true",
        help="Count timed-out links as broken",
    )
    health_parser.add_argument(
        "--save-report",
        action="store_true",
        help="Save the result as a health report for triage",
    )
    _add_output_args(health_parser)
    _add_common_args(health_parser)

    sitemap_parser = subparsers.add_parser(
        "sitemap",
        help="Compare a saved index with the site's sitemap.xml",
    )
    sitemap_parser.add_argument("name", help="Index name")
    sitemap_parser.add_argument(
        "--sitemap-url",
        type=str,
        default=None,
        help="Sitemap to use (default: https://<domain>/sitemap.xml)",
    )
    _add_output_args(sitemap_parser)
    _add_common_args(sitemap_parser)

    indexes_parser = subparsers.add_parser("indexes", help="List or delete saved indexes")
    indexes_parser.add_argument(
        "--delete",
        type=str,
        default=None,
        metavar="NAME",
        help="Delete the named index",
    )
    _add_output_args(indexes_parser)
    _add_common_args(indexes_parser)

    reports_parser = subparsers.add_parser("reports", help="Manage saved health reports")
    reports_sub = reports_parser.add_subparsers(dest="reports_command", required=True)

    list_parser = reports_sub.add_parser("list", help="List reports, newest first")
    _add_output_args(list_parser)
    _add_common_args(list_parser)

    show_parser = reports_sub.add_parser("show", help="Print a report")
    show_parser.add_argument("report_id")
    _add_output_args(show_parser)
    _add_common_args(show_parser)

    update_parser = reports_sub.add_parser("update", help="Change an issue's triage status")
    update_parser.add_argument("report_id")
    update_parser.add_argument("issue_id")
    update_parser.add_argument(
        "--status",
        type=str,
        choices=["pending", "inProgress", "fixed"],
        default=None,
    )
    update_parser.add_argument("--notes", type=str, default=None)
    _add_common_args(update_parser)

    delete_parser = reports_sub.add_parser("delete", help="Delete a report")
    delete_parser.add_argument("report_id")
    _add_common_args(delete_parser)

    export_parser = reports_sub.add_parser("export", help="Export a report as CSV or JSON")
    export_parser.add_argument("report_id")
    export_parser.add_argument(
        "--format",
        type=str,
        choices=["csv", "json"],
        default="csv",
        dest="export_format",
    )
    export_parser.add_argument("-o", "--output", type=str, default=None)
    _add_common_args(export_parser)

    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)

"""Command-line interface: ``linkaudit <command>``."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import shutil
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from dotenv import load_dotenv

from .cli_config import CONFIG_DIR, CONFIG_ENV_FILE, ENV_FILE_VARIABLE, load_config


def _load_config() -> None:
    load_config(
        config_dir=CONFIG_DIR,
        config_env_file=CONFIG_ENV_FILE,
        cwd=Path.cwd(),
        load_env=load_dotenv,
        copy_file=shutil.copy,
        env_file=os.getenv(ENV_FILE_VARIABLE),
    )


_load_config()

from .cli_output import (
    format_findings_markdown,
    format_health_markdown,
    format_indexes_markdown,
    format_reports_markdown,
    format_sitemap_markdown,
    format_summary_markdown,
    to_json,
    write_output,
)
from .cli_parsers import parse_args
from .config import data_dir, load_settings_from_env
from .errors import LinkAuditError
from .health import check_index_health
from .indexer import build_index_async, merge_incremental_async
from .reports import ReportStore
from .search import SearchQuery, search
from .sitemap import compare_sitemap
from .store import IndexStore


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


def _stores(args: argparse.Namespace) -> Tuple[IndexStore, ReportStore]:
    root = Path(args.data_dir).expanduser() if getattr(args, "data_dir", None) else data_dir()
    return IndexStore(root / "indexes"), ReportStore(root / "reports")


def _crawl_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if args.max_pages is not None:
        overrides["max_pages"] = args.max_pages
    if args.concurrency is not None:
        overrides["concurrency"] = args.concurrency
    if args.headed:
        overrides["headless"] = False
    if args.no_check_links:
        overrides["check_links"] = False
    return overrides


def _build_query(args: argparse.Namespace) -> Optional[SearchQuery]:
    if not args.pattern and not args.mode:
        return None
    return SearchQuery(
        mode=args.mode or "pattern",
        pattern=args.pattern,
        source_locale=args.source_locale,
        other_locales=args.other_locales,
        exclude_locale_switcher=not args.include_switcher_links,
        default_has_prefix=args.default_has_prefix,
    )


def _emit(args: argparse.Namespace, data: Any, markdown: str) -> None:
    write_output(to_json(data) if args.json_output else markdown, args.output)


# =============================================================================
# COMMANDS
# =============================================================================


async def _run_index(args: argparse.Namespace) -> int:
    settings = load_settings_from_env(
        args.url,
        locale_filter=args.locale,
        include_subdomains=args.include_subdomains,
        exclude_locale_switcher=not args.keep_switcher_links,
        **_crawl_overrides(args),
    )
    store, _ = _stores(args)
    logging.info("Indexing %s (max_pages=%d, concurrency=%d)", args.url, settings.max_pages, settings.concurrency)
    build = await build_index_async(args.url, settings=settings, store=store, query=_build_query(args))

    data = build.summary.to_dict()
    data["findings"] = [finding.to_dict() for finding in build.summary.findings]
    markdown = format_summary_markdown(data)
    if build.summary.findings:
        markdown += "\n\n" + format_findings_markdown(build.summary.findings, title=args.url)
    _emit(args, data, markdown)
    return 0


async def _run_reindex(args: argparse.Namespace) -> int:
    store, _ = _stores(args)
    index = store.load_by_name(args.name)
    urls: List[str] = list(args.urls)
    if args.from_sitemap:
        comparison = await compare_sitemap(index)
        logging.info("Sitemap lists %d URLs missing from the index", len(comparison.missing_from_index))
        urls.extend(comparison.missing_from_index)
    if not urls:
        logging.warning("Nothing to re-index")
        return 0

    settings = load_settings_from_env(**_crawl_overrides(args))
    build = await merge_incremental_async(
        index,
        urls,
        settings=settings,
        store=store,
        check_links=settings.check_links,
    )
    data = build.summary.to_dict()
    _emit(args, data, format_summary_markdown(data))
    return 0


async def _run_search(args: argparse.Namespace) -> int:
    store, _ = _stores(args)
    index = store.load_by_name(args.name)
    query = _build_query(args)
    findings = search(index, query)
    logging.info("Found %d matching links", len(findings))
    _emit(
        args,
        [finding.to_dict() for finding in findings],
        format_findings_markdown(findings, title=args.name),
    )
    return 0


async def _run_health(args: argparse.Namespace) -> int:
    store, reports = _stores(args)
    index = store.load_by_name(args.name)
    settings = load_settings_from_env(timeout_is_healthy=not args.strict_timeouts)
    report = await check_index_health(index, settings, max_links=args.max_links)
    store.save(index)

    data = report.to_dict()
    if args.save_report:
        saved = reports.save_report(args.name, report, index.metadata.locale_filter)
        logging.info("Saved report %s", saved["id"])
        data = saved
    _emit(args, data, format_health_markdown(report.to_dict(), title=args.name))
    return 1 if report.broken else 0


async def _run_sitemap(args: argparse.Namespace) -> int:
    store, _ = _stores(args)
    index = store.load_by_name(args.name)
    comparison = (await compare_sitemap(index, sitemap_url=args.sitemap_url)).to_dict()
    _emit(args, comparison, format_sitemap_markdown(comparison))
    return 0


async def _run_indexes(args: argparse.Namespace) -> int:
    store, _ = _stores(args)
    if args.delete:
        store.delete(args.delete)
        logging.info("Deleted index %s", args.delete)
        return 0
    entries = store.list()
    _emit(args, entries, format_indexes_markdown(entries))
    return 0


async def _run_reports(args: argparse.Namespace) -> int:
    _, reports = _stores(args)
    command = args.reports_command

    if command == "list":
        entries = reports.list_reports()
        _emit(args, entries, format_reports_markdown(entries))
    elif command == "show":
        data = reports.load_report(args.report_id)
        _emit(args, data, format_health_markdown(data.get("report") or {}, title=data.get("site", "")))
    elif command == "update":
        if args.status is None and args.notes is None:
            logging.error("Nothing to update: pass --status and/or --notes")
            return 1
        stats = reports.update_issue(args.report_id, args.issue_id, args.status, args.notes)
        print(to_json(stats))
    elif command == "delete":
        reports.delete_report(args.report_id)
        logging.info("Deleted report %s", args.report_id)
    elif command == "export":
        if args.export_format == "csv":
            text = reports.export_csv(args.report_id)
        else:
            text = reports.export_json(args.report_id)
        write_output(text, args.output)
    return 0


_HANDLERS = {
    "index": _run_index,
    "reindex": _run_reindex,
    "search": _run_search,
    "health": _run_health,
    "sitemap": _run_sitemap,
    "indexes": _run_indexes,
    "reports": _run_reports,
}


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for ``linkaudit``."""
    args = parse_args(argv)
    _setup_logging(args.verbose)

    try:
        return asyncio.run(_HANDLERS[args.command](args))
    except KeyboardInterrupt:
        logging.info("Interrupted")
        return 130
    except (LinkAuditError, ValueError) as exc:
        logging.error("Error: %s", exc)
        return 1
    except Exception as exc:
        logging.error("Error: %s", exc)
        if args.verbose:
            logging.exception("Full traceback:")
        return 1


if __name__ == "__main__":
    sys.exit(main())

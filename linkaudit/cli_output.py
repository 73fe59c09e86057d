"""Output and formatting helpers for CLI commands."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .models import Finding
from .search import group_by_source


def to_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


def format_findings_markdown(findings: Sequence[Finding], *, title: str) -> str:
    """Findings grouped under their source page.

    Example output:
    # Search: example_com
    _Found 2 links on 2 pages_

    ## https://example.com/a
    - [pattern_match] "Contact" -> https://example.com/contact
    """
    grouped = group_by_source(findings)
    lines = [f"# Search: {title}", f"_Found {len(findings)} links on {len(grouped)} pages_", ""]
    for source, items in grouped.items():
        lines.append(f"## {source}")
        for finding in items:
            text = finding.anchor_text or "[No Text / Image]"
            locales = ""
            if finding.cross_locale:
                locales = f" ({finding.source_locale} -> {finding.target_locale})"
            lines.append(f'- [{finding.finding_type}] "{text}" -> {finding.target_url}{locales}')
        lines.append("")
    return "\n".join(lines)


def _issue_lines(issues: List[Dict[str, Any]], *, show_locales: bool = False) -> List[str]:
    lines = []
    for issue in issues:
        if show_locales:
            label = f"{issue.get('sourceLocale', 'default')} -> {issue.get('targetLocale', 'default')}"
        else:
            label = str(issue.get("status", ""))
        text = issue.get("anchorText") or "(no text)"
        count = issue.get("occurrences") or 1
        lines.append(f"- [{label}] {issue.get('targetUrl')} \"{text}\" on {issue.get('sourceUrl')} (x{count})")
        if issue.get("error"):
            lines.append(f"  error: {issue['error']}")
    return lines


def format_health_markdown(report: Dict[str, Any], *, title: str) -> str:
    broken = report.get("broken") or []
    redirects = report.get("redirects") or []
    cross_locale = report.get("crossLocale") or []
    lines = [
        f"# Link health: {title}",
        f"_Checked {report.get('checkedCount', 0)} of {report.get('totalUniqueLinks', 0)} "
        f"unique links: {len(broken)} broken, {len(redirects)} redirects, "
        f"{len(cross_locale)} cross-locale, {report.get('healthy', 0)} healthy_",
        "",
    ]
    for heading, issues, show_locales in (
        ("Broken", broken, False),
        ("Redirects", redirects, False),
        ("Cross-locale", cross_locale, True),
    ):
        if issues:
            lines.append(f"## {heading}")
            lines.extend(_issue_lines(issues, show_locales=show_locales))
            lines.append("")
    return "\n".join(lines)


def format_sitemap_markdown(comparison: Dict[str, Any]) -> str:
    lines = [
        f"# Sitemap: {comparison.get('sitemapUrl')}",
        f"_Sitemap lists {comparison.get('sitemapCount')} URLs in scope "
        f"({comparison.get('sitemapTotalCount')} total, locale filter: "
        f"{comparison.get('localeFilter')}); index holds {comparison.get('indexedCount')} pages; "
        f"{comparison.get('inBoth')} in both_",
        "",
    ]
    for heading, key in (("Missing from index", "missingFromIndex"), ("Not in sitemap", "extraInIndex")):
        urls = comparison.get(key) or []
        lines.append(f"## {heading} ({len(urls)})")
        lines.extend(f"- {url}" for url in urls)
        lines.append("")
    return "\n".join(lines)


def format_indexes_markdown(entries: Sequence[Dict[str, Any]]) -> str:
    if not entries:
        return "No saved indexes."
    lines = ["# Saved indexes", ""]
    for entry in entries:
        scope = entry.get("localeFilter") or "full site"
        lines.append(
            f"- {entry['name']}: {entry.get('domain')} ({scope}), "
            f"{entry.get('totalPages', 0)} pages, {entry.get('totalLinks', 0)} links, "
            f"created {entry.get('createdAt') or 'unknown'}"
        )
    return "\n".join(lines)


def format_reports_markdown(entries: Sequence[Dict[str, Any]]) -> str:
    if not entries:
        return "No saved reports."
    lines = ["# Health reports", ""]
    for entry in entries:
        summary = entry.get("summary") or {}
        stats = entry.get("issueStats") or {}
        lines.append(
            f"- {entry['id']} ({entry.get('locale')}, {entry.get('createdAt')}): "
            f"{summary.get('broken', 0)} broken, {summary.get('redirects', 0)} redirects, "
            f"{summary.get('crossLocale', 0)} cross-locale | "
            f"pending {stats.get('pending', 0)}, in progress {stats.get('inProgress', 0)}, "
            f"fixed {stats.get('fixed', 0)}"
        )
    return "\n".join(lines)


def format_summary_markdown(summary: Dict[str, Any]) -> str:
    lines = [
        f"# Indexed {summary.get('domain')}",
        f"- Pages: {summary.get('totalPages')} ({summary.get('pagesDone')} visited)",
        f"- Links: {summary.get('totalLinks')}",
        f"- Findings: {summary.get('totalFindings')}",
        f"- Errors: {summary.get('errors')}",
    ]
    if summary.get("indexPath"):
        lines.append(f"- Saved to: {summary['indexPath']}")
    health = summary.get("healthReport")
    if health:
        lines.append(
            f"- Health: {len(health.get('broken') or [])} broken, "
            f"{len(health.get('redirects') or [])} redirects, "
            f"{len(health.get('crossLocale') or [])} cross-locale"
        )
    return "\n".join(lines)


def write_output(text: str, output: Optional[str]) -> None:
    """Print ``text`` or write it to ``output``."""
    if output is None:
        print(text)
        return
    path = Path(output)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    logging.info("Wrote %s", path)

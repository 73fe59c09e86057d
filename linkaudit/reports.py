"""Persisted health reports with per-issue triage status.

A saved report keeps the health report shape, but every issue gains an
``id``, a triage ``status`` (``pending``, ``inProgress`` or ``fixed``) and
``notes``. The HTTP status of broken and redirecting links moves to
``httpStatus`` so the triage status does not overwrite it.
"""

from __future__ import annotations

import csv
import io
import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .config import data_dir
from .errors import ReportNotFoundError
from .models import HealthReport, utc_now
from .store import write_json

LOGGER = logging.getLogger(__name__)

PENDING = "pending"
IN_PROGRESS = "inProgress"
FIXED = "fixed"
TRIAGE_STATUSES = (PENDING, IN_PROGRESS, FIXED)

ISSUE_CATEGORIES = (
    ("broken", "Broken"),
    ("redirects", "Redirect"),
    ("crossLocale", "Cross-Locale"),
)

CSV_HEADER = ["Source Page", "Type", "Status", "Anchor Text", "Target URL", "Occurrences", "Notes"]


def _init_issues(issues: List[Dict[str, Any]], stamp: int) -> List[Dict[str, Any]]:
    prepared = []
    for position, issue in enumerate(issues):
        entry = dict(issue)
        if "status" in entry:
            entry["httpStatus"] = entry.pop("status")
        entry.update({"id": f"{stamp}_{position}", "status": PENDING, "notes": ""})
        prepared.append(entry)
    return prepared


class ReportStore:
    """Directory of saved health reports (``<data dir>/reports`` by default)."""

    def __init__(self, root: Union[str, Path, None] = None):
        self.root = Path(root) if root is not None else data_dir() / "reports"

    def _path(self, report_id: str) -> Path:
        if not report_id or Path(report_id).name != report_id:
            raise ReportNotFoundError(report_id)
        return self.root / f"{report_id}.json"

    def _write(self, data: Dict[str, Any]) -> Path:
        path = self._path(data["id"])
        write_json(path, data)
        return path

    def save_report(
        self,
        site: str,
        report: Union[HealthReport, Dict[str, Any]],
        locale: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Persist ``report`` for ``site`` and return the stored document."""
        raw = report.to_dict() if isinstance(report, HealthReport) else dict(report)
        stamp = int(time.time() * 1000)
        issues = {
            key: _init_issues(list(raw.get(key) or []), stamp) for key, _ in ISSUE_CATEGORIES
        }
        data = {
            "id": f"{site}_{stamp}",
            "site": site,
            "locale": locale or "full",
            "createdAt": utc_now(),
            "report": {
                **issues,
                "healthy": raw.get("healthy") or 0,
                "checkedCount": raw.get("checkedCount") or 0,
                "totalUniqueLinks": raw.get("totalUniqueLinks") or 0,
            },
            "issueStats": {
                PENDING: sum(len(items) for items in issues.values()),
                IN_PROGRESS: 0,
                FIXED: 0,
            },
        }
        path = self._write(data)
        LOGGER.info("Saved report %s to %s", data["id"], path)
        return data

    def load_report(self, report_id: str) -> Dict[str, Any]:
        path = self._path(report_id)
        if not path.is_file():
            raise ReportNotFoundError(report_id)
        with path.open(encoding="utf-8") as handle:
            return json.load(handle)

    def list_reports(self) -> List[Dict[str, Any]]:
        """Report summaries, newest first."""
        if not self.root.is_dir():
            return []
        summaries = []
        for path in self.root.glob("*.json"):
            try:
                with path.open(encoding="utf-8") as handle:
                    data = json.load(handle)
            except (OSError, ValueError) as exc:
                LOGGER.warning("Skipping unreadable report %s: %s", path, exc)
                continue
            report = data.get("report") or {}
            summaries.append(
                {
                    "id": path.stem,
                    "site": data.get("site"),
                    "locale": data.get("locale") or "full",
                    "createdAt": data.get("createdAt") or "",
                    "summary": {
                        "broken": len(report.get("broken") or []),
                        "redirects": len(report.get("redirects") or []),
                        "crossLocale": len(report.get("crossLocale") or []),
                        "healthy": report.get("healthy") or 0,
                    },
                    "issueStats": data.get("issueStats")
                    or {PENDING: 0, IN_PROGRESS: 0, FIXED: 0},
                }
            )
        summaries.sort(key=lambda item: item["createdAt"], reverse=True)
        return summaries

    def update_issue(
        self,
        report_id: str,
        issue_id: str,
        status: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Dict[str, int]:
        """Change an issue's triage status and/or notes; returns ``issueStats``.

        Raises:
            ValueError: ``status`` is not a triage status.
            ReportNotFoundError: Unknown report or issue.
        """
        if status is not None and status not in TRIAGE_STATUSES:
            raise ValueError(
                f"Invalid issue status {status!r}; expected one of {', '.join(TRIAGE_STATUSES)}"
            )
        data = self.load_report(report_id)
        stats = data.setdefault("issueStats", {PENDING: 0, IN_PROGRESS: 0, FIXED: 0})

        for key, _ in ISSUE_CATEGORIES:
            for issue in data.get("report", {}).get(key) or []:
                if issue.get("id") != issue_id:
                    continue
                old_status = issue.get("status")
                if status:
                    issue["status"] = status
                if notes is not None:
                    issue["notes"] = notes
                if old_status != issue.get("status"):
                    if old_status in stats:
                        stats[old_status] -= 1
                    stats[issue["status"]] = stats.get(issue["status"], 0) + 1
                self._write(data)
                return stats

        raise ReportNotFoundError(report_id, issue_id)

    def delete_report(self, report_id: str) -> None:
        path = self._path(report_id)
        if path.is_file():
            path.unlink()
            LOGGER.info("Deleted report %s", report_id)

    def export_json(self, report_id: str) -> str:
        return json.dumps(self.load_report(report_id), indent=2, ensure_ascii=False)

    def export_csv(self, report_id: str) -> str:
        """One row per issue, grouped by type, sorted by source then target."""
        data = self.load_report(report_id)
        report = data.get("report") or {}
        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        buffer.write(",".join(CSV_HEADER) + "\n")
        for key, label in ISSUE_CATEGORIES:
            issues = sorted(
                report.get(key) or [],
                key=lambda issue: (issue.get("sourceUrl") or "", issue.get("targetUrl") or ""),
            )
            for issue in issues:
                writer.writerow(
                    [
                        issue.get("sourceUrl") or "",
                        label,
                        issue.get("status") or "",
                        issue.get("anchorText") or issue.get("linkText") or issue.get("text") or "",
                        issue.get("targetUrl") or "",
                        issue.get("occurrences") or 1,
                        issue.get("notes") or "",
                    ]
                )
        return buffer.getvalue()

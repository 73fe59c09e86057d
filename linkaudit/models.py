"""Data structures for indexes, health reports and search findings.

The ``to_dict``/``from_dict`` pairs define the persisted JSON shape, which
uses camelCase keys.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class JobState(str, Enum):
    idle = "idle"
    running = "running"
    paused = "paused"
    stopping = "stopping"
    completed = "completed"
    failed = "failed"


@dataclass(slots=True)
class Anchor:
    """Raw anchor as reported by the rendering engine."""

    href: str
    text: str = ""
    visible: bool = True


@dataclass(slots=True)
class LinkRecord:
    """One outbound link of an indexed page."""

    href: str
    anchor_text: str
    is_external: bool
    locale: Optional[str] = None
    source_locale: Optional[str] = None
    http_status: Optional[int] = None
    is_visible: bool = True

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "href": self.href,
            "anchorText": self.anchor_text,
            "isExternal": self.is_external,
            "locale": self.locale,
            "sourceLocale": self.source_locale,
            "isVisible": self.is_visible,
        }
        if self.http_status is not None:
            data["httpStatus"] = self.http_status
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LinkRecord":
        status = data.get("httpStatus", data.get("status"))
        return cls(
            href=data.get("href") or data.get("url") or "",
            anchor_text=data.get("anchorText", data.get("text")) or "",
            is_external=bool(data.get("isExternal", False)),
            locale=_optional_locale(data.get("locale")),
            source_locale=_optional_locale(data.get("sourceLocale")),
            http_status=int(status) if status is not None else None,
            is_visible=bool(data.get("isVisible", True)),
        )


def _optional_locale(value: Any) -> Optional[str]:
    if not value or value == "default":
        return None
    return str(value)


@dataclass(slots=True)
class PageRecord:
    url: str
    title: str = ""
    locale: Optional[str] = None
    links: List[LinkRecord] = field(default_factory=list)
    indexed_at: str = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "locale": self.locale,
            "indexedAt": self.indexed_at,
            "links": [link.to_dict() for link in self.links],
        }

    @classmethod
    def from_dict(cls, url: str, data: Dict[str, Any]) -> "PageRecord":
        return cls(
            url=url,
            title=data.get("title") or "",
            locale=_optional_locale(data.get("locale")),
            links=[LinkRecord.from_dict(item) for item in data.get("links") or []],
            indexed_at=data.get("indexedAt") or "",
        )


@dataclass(slots=True)
class PageError:
    url: str
    error: str
    stage: str = "extract"
    attempts: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "error": self.error,
            "stage": self.stage,
            "attempts": self.attempts,
        }


@dataclass(slots=True)
class HealthIssue:
    """A broken, redirecting or cross-locale link target.

    ``occurrences`` counts the source pages that link to the same target.
    """

    source_url: str
    target_url: str
    anchor_text: str = ""
    status: Optional[int] = None
    source_locale: Optional[str] = None
    target_locale: Optional[str] = None
    occurrences: int = 1
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "sourceUrl": self.source_url,
            "targetUrl": self.target_url,
            "anchorText": self.anchor_text,
            "occurrences": self.occurrences,
        }
        if self.status is not None:
            data["status"] = self.status
        if self.source_locale is not None or self.target_locale is not None:
            data["sourceLocale"] = self.source_locale or "default"
            data["targetLocale"] = self.target_locale or "default"
        if self.error:
            data["error"] = self.error
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HealthIssue":
        status = data.get("status")
        return cls(
            source_url=data.get("sourceUrl", ""),
            target_url=data.get("targetUrl", ""),
            anchor_text=data.get("anchorText", data.get("linkText")) or "",
            status=int(status) if isinstance(status, (int, float)) else None,
            source_locale=_optional_locale(data.get("sourceLocale")),
            target_locale=_optional_locale(data.get("targetLocale")),
            occurrences=int(data.get("occurrences") or 1),
            error=data.get("error"),
        )


@dataclass(slots=True)
class HealthReport:
    broken: List[HealthIssue] = field(default_factory=list)
    redirects: List[HealthIssue] = field(default_factory=list)
    cross_locale: List[HealthIssue] = field(default_factory=list)
    healthy_count: int = 0
    checked_count: int = 0
    total_unique_links: int = 0

    @property
    def issue_count(self) -> int:
        return len(self.broken) + len(self.redirects) + len(self.cross_locale)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "broken": [issue.to_dict() for issue in self.broken],
            "redirects": [issue.to_dict() for issue in self.redirects],
            "crossLocale": [issue.to_dict() for issue in self.cross_locale],
            "healthy": self.healthy_count,
            "checkedCount": self.checked_count,
            "totalUniqueLinks": self.total_unique_links,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "HealthReport":
        data = data or {}
        return cls(
            broken=[HealthIssue.from_dict(item) for item in data.get("broken") or []],
            redirects=[HealthIssue.from_dict(item) for item in data.get("redirects") or []],
            cross_locale=[
                HealthIssue.from_dict(item) for item in data.get("crossLocale") or []
            ],
            healthy_count=int(data.get("healthy") or 0),
            checked_count=int(data.get("checkedCount") or 0),
            total_unique_links=int(data.get("totalUniqueLinks") or 0),
        )


@dataclass(slots=True)
class IndexMetadata:
    domain: str
    start_url: str
    locale_filter: Optional[str] = None
    created_at: str = field(default_factory=utc_now)
    total_pages: int = 0
    total_links: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "domain": self.domain,
            "startUrl": self.start_url,
            "localeFilter": self.locale_filter,
            "createdAt": self.created_at,
            "totalPages": self.total_pages,
            "totalLinks": self.total_links,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IndexMetadata":
        return cls(
            domain=data.get("domain") or "",
            start_url=data.get("startUrl") or "",
            locale_filter=data.get("localeFilter"),
            created_at=data.get("createdAt") or data.get("crawledAt") or "",
            total_pages=int(data.get("totalPages") or 0),
            total_links=int(data.get("totalLinks") or 0),
        )


@dataclass
class Index:
    """Snapshot of a site's link graph, keyed by normalised page URL."""

    metadata: IndexMetadata
    pages: Dict[str, PageRecord] = field(default_factory=dict)
    health_report: HealthReport = field(default_factory=HealthReport)

    def add_page(self, page: PageRecord) -> None:
        self.pages[page.url] = page

    def refresh_totals(self) -> None:
        self.metadata.total_pages = len(self.pages)
        self.metadata.total_links = sum(len(page.links) for page in self.pages.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metadata": self.metadata.to_dict(),
            "pages": {url: page.to_dict() for url, page in self.pages.items()},
            "healthReport": self.health_report.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Index":
        pages = {
            url: PageRecord.from_dict(url, page)
            for url, page in (data.get("pages") or {}).items()
        }
        return cls(
            metadata=IndexMetadata.from_dict(data.get("metadata") or {}),
            pages=pages,
            health_report=HealthReport.from_dict(data.get("healthReport")),
        )


@dataclass(slots=True)
class Finding:
    """A link matched by a search query."""

    source_url: str
    target_url: str
    anchor_text: str
    finding_type: str
    source_title: str = ""
    source_locale: str = "default"
    target_locale: str = "default"
    is_external: bool = False
    cross_locale: bool = False
    is_visible: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sourceUrl": self.source_url,
            "sourceTitle": self.source_title,
            "sourceLocale": self.source_locale,
            "targetUrl": self.target_url,
            "targetLocale": self.target_locale,
            "anchorText": self.anchor_text,
            "isExternal": self.is_external,
            "isVisible": self.is_visible,
            "findingType": self.finding_type,
            "crossLocale": self.cross_locale,
        }


@dataclass(slots=True)
class CrawlProgress:
    current_url: Optional[str]
    pages_done: int
    queue_size: int
    findings_count: int
    links_found: int = 0
    max_pages: int = 0
    state: str = JobState.running.value
    worker_id: Optional[int] = None


@dataclass
class CrawlSummary:
    domain: str
    pages_done: int
    total_pages: int
    total_links: int
    findings: List[Finding] = field(default_factory=list)
    errors: List[PageError] = field(default_factory=list)
    state: str = JobState.completed.value
    index_path: Optional[str] = None
    health_report: Optional[HealthReport] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "domain": self.domain,
            "pagesDone": self.pages_done,
            "totalPages": self.total_pages,
            "totalLinks": self.total_links,
            "totalFindings": len(self.findings),
            "errors": len(self.errors),
            "state": self.state,
            "indexPath": self.index_path,
            "healthReport": self.health_report.to_dict() if self.health_report else None,
        }

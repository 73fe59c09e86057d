"""Exceptions raised by the indexing, health-check and search layers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .models import Index


class LinkAuditError(Exception):
    """Base class for all linkaudit errors."""


class ConfigurationError(LinkAuditError):
    """Raised before a job starts when its settings cannot be used."""


class EngineError(LinkAuditError):
    """Raised when the rendering engine cannot be started.

    ``partial_index`` holds whatever the job had gathered, so callers can
    still persist it.
    """

    def __init__(self, message: str, partial_index: Optional["Index"] = None):
        self.partial_index = partial_index
        super().__init__(message)


class NavigationError(LinkAuditError):
    """A page could not be loaded in a rendering session."""

    retryable = False

    def __init__(self, message: str, url: str = "", *, retryable: Optional[bool] = None):
        self.url = url
        if retryable is not None:
            self.retryable = retryable
        super().__init__(message)


class NavigationTimeout(NavigationError):
    retryable = True


class SessionClosedError(NavigationError):
    """The rendering session was closed underneath the caller."""


class ExtractionError(LinkAuditError):
    """A page failed after every navigation attempt."""

    def __init__(self, message: str, url: str, attempts: int = 1):
        self.url = url
        self.attempts = attempts
        super().__init__(message)


class IndexNotFoundError(LinkAuditError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Index not found: {name}")


class ReportNotFoundError(LinkAuditError):
    def __init__(self, report_id: str, issue_id: Optional[str] = None):
        self.report_id = report_id
        self.issue_id = issue_id
        if issue_id:
            message = f"Issue {issue_id} not found in report {report_id}"
        else:
            message = f"Report not found: {report_id}"
        super().__init__(message)


class SitemapError(LinkAuditError):
    """Raised when a sitemap cannot be fetched or holds no URLs."""

    def __init__(self, message: str, sitemap_url: str = ""):
        self.sitemap_url = sitemap_url
        super().__init__(message)

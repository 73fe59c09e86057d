"""Job notifications.

``CrawlObserver`` is the fixed notification interface of a crawl job; its
methods do nothing, so callers override only what they need.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from .models import CrawlProgress, CrawlSummary, Finding, PageError

LOGGER = logging.getLogger(__name__)

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class CrawlObserver:
    def on_progress(self, progress: CrawlProgress) -> None:
        pass

    def on_log(self, message: str, level: str = "info") -> None:
        pass

    def on_finding(self, finding: Finding) -> None:
        pass

    def on_complete(self, summary: CrawlSummary) -> None:
        pass

    def on_error(self, error: PageError) -> None:
        pass


class LoggingObserver(CrawlObserver):
    """Forwards notifications to :mod:`logging`."""

    def __init__(self, logger: logging.Logger = LOGGER):
        self.logger = logger

    def on_progress(self, progress: CrawlProgress) -> None:
        self.logger.debug(
            "Progress: %d pages, %d queued, %d findings (%s)",
            progress.pages_done,
            progress.queue_size,
            progress.findings_count,
            progress.current_url,
        )

    def on_log(self, message: str, level: str = "info") -> None:
        self.logger.log(_LEVELS.get(level, logging.INFO), message)

    def on_finding(self, finding: Finding) -> None:
        self.logger.info(
            "Finding [%s]: %s -> %s", finding.finding_type, finding.source_url, finding.target_url
        )

    def on_complete(self, summary: CrawlSummary) -> None:
        self.logger.info(
            "Crawl of %s %s: %d pages, %d links, %d findings, %d errors",
            summary.domain,
            summary.state,
            summary.total_pages,
            summary.total_links,
            len(summary.findings),
            len(summary.errors),
        )

    def on_error(self, error: PageError) -> None:
        self.logger.warning("Page error (%s) %s: %s", error.stage, error.url, error.error)


class RecordingObserver(CrawlObserver):
    """Keeps every notification in memory (CLI JSON output and tests)."""

    def __init__(self) -> None:
        self.progress: List[CrawlProgress] = []
        self.logs: List[Dict[str, Any]] = []
        self.findings: List[Finding] = []
        self.errors: List[PageError] = []
        self.summary: CrawlSummary | None = None

    def on_progress(self, progress: CrawlProgress) -> None:
        self.progress.append(progress)

    def on_log(self, message: str, level: str = "info") -> None:
        self.logs.append({"message": message, "level": level})

    def on_finding(self, finding: Finding) -> None:
        self.findings.append(finding)

    def on_complete(self, summary: CrawlSummary) -> None:
        self.summary = summary

    def on_error(self, error: PageError) -> None:
        self.errors.append(error)


class ObserverGroup(CrawlObserver):
    """Fan a notification out to several observers."""

    def __init__(self, *observers: CrawlObserver):
        self.observers = [observer for observer in observers if observer is not None]

    def on_progress(self, progress: CrawlProgress) -> None:
        for observer in self.observers:
            observer.on_progress(progress)

    def on_log(self, message: str, level: str = "info") -> None:
        for observer in self.observers:
            observer.on_log(message, level)

    def on_finding(self, finding: Finding) -> None:
        for observer in self.observers:
            observer.on_finding(finding)

    def on_complete(self, summary: CrawlSummary) -> None:
        for observer in self.observers:
            observer.on_complete(summary)

    def on_error(self, error: PageError) -> None:
        for observer in self.observers:
            observer.on_error(error)

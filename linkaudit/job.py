"""Crawl jobs and their control surface."""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Callable, Dict, Iterable, Optional

from .config import CrawlSettings
from .engine import Crawl4AIEngine, RenderEngine
from .errors import ConfigurationError, EngineError, LinkAuditError
from .frontier import Frontier
from .models import CrawlSummary, Index, IndexMetadata, JobState, PageError
from .observer import CrawlObserver
from .pool import WorkerPool
from .search import SearchQuery
from .urls import host_of, normalize_url

LOGGER = logging.getLogger(__name__)


def validate_settings(settings: CrawlSettings) -> str:
    """Check ``settings`` before a job starts and return the crawl domain.

    Raises:
        ConfigurationError: Unusable start URL, empty domain or bad limits.
    """
    start = normalize_url(settings.start_url)
    if start is None:
        raise ConfigurationError(f"Invalid start URL: {settings.start_url!r}")
    domain = host_of(start)
    if not domain:
        raise ConfigurationError(f"Start URL has no domain: {settings.start_url!r}")
    if settings.concurrency < 1:
        raise ConfigurationError("concurrency must be at least 1")
    if settings.max_pages < 0:
        raise ConfigurationError("max_pages must be 0 (unlimited) or positive")
    return domain


def default_locale_only(settings: CrawlSettings, query: Optional[SearchQuery]) -> bool:
    """Whether a live cross-locale crawl should stay on default-locale pages.

    Applies when the site has no locale filter, the default locale carries no
    URL prefix and the query looks for links leaving the default locale.
    Prefixed pages are then only reached as link targets.
    """
    return (
        query is not None
        and query.wants_cross_locale
        and not settings.locale_filter
        and not query.default_has_prefix
        and query.source_locale in (None, "default")
    )


def report_failure(
    observer: CrawlObserver,
    url: str,
    exc: BaseException,
    stage: str,
    summary: Optional[CrawlSummary] = None,
) -> CrawlSummary:
    """Emit one ``on_error`` and one failed ``on_complete`` for a job that died.

    Without a ``summary`` (the job never started) an empty one is built.
    """
    error = PageError(url, str(exc), stage)
    if summary is None:
        summary = CrawlSummary(domain=host_of(url or ""), pages_done=0, total_pages=0, total_links=0)
    summary.errors.append(error)
    summary.state = JobState.failed.value
    observer.on_error(error)
    observer.on_complete(summary)
    return summary


class CrawlJob:
    """One crawl over one root URL.

    With ``seed_urls`` the job re-extracts exactly those URLs (scope checks
    bypassed, discovered links not followed); otherwise it crawls from
    ``settings.start_url``.
    """

    def __init__(
        self,
        settings: CrawlSettings,
        *,
        engine: Optional[RenderEngine] = None,
        engine_factory: Callable[[CrawlSettings], RenderEngine] = Crawl4AIEngine,
        observer: Optional[CrawlObserver] = None,
        query: Optional[SearchQuery] = None,
        seed_urls: Optional[Iterable[str]] = None,
        job_id: Optional[str] = None,
    ):
        try:
            self.domain = validate_settings(settings)
        except ConfigurationError as exc:
            if observer is not None:
                report_failure(observer, settings.start_url, exc, "config")
            raise
        self.settings = settings
        self.job_id = job_id or uuid.uuid4().hex[:8]
        self.observer = observer or CrawlObserver()
        self.query = query
        self.seed_urls = list(seed_urls) if seed_urls is not None else None
        self.state = JobState.idle
        self._engine = engine if engine is not None else engine_factory(settings)

        self.index = Index(
            metadata=IndexMetadata(
                domain=self.domain,
                start_url=settings.start_url,
                locale_filter=settings.locale_filter,
            )
        )

        locale_scope, scope_locales = settings.locale_filter, settings.known_locales
        if default_locale_only(settings, query):
            # the index stays unfiltered; only the crawl is confined
            locale_scope = "default"
            scope_locales = query.other_locales or settings.known_locales
        self.frontier = Frontier(
            settings.start_url,
            locale_filter=locale_scope,
            known_locales=scope_locales,
            include_subdomains=settings.include_subdomains,
        )
        self.pool = WorkerPool(
            settings,
            self.frontier,
            self.index,
            self._engine,
            observer=self.observer,
            query=query,
            follow_links=self.seed_urls is None,
            name=f"linkaudit-{self.job_id}",
        )

    # -- control ---------------------------------------------------------

    def pause(self) -> None:
        if self.state is JobState.running:
            self.pool.pause()
            self.state = JobState.paused

    def resume(self) -> None:
        if self.state is JobState.paused:
            self.pool.resume()
            self.state = JobState.running

    def stop(self) -> None:
        if self.state in (JobState.idle, JobState.running, JobState.paused):
            self.state = JobState.stopping
            self.pool.stop()

    def stats(self) -> Dict[str, Any]:
        return {
            "pagesDone": self.pool.pages_done,
            "queueSize": len(self.frontier),
            "findingsCount": len(self.pool.findings),
            "state": self.state.value,
            "errors": len(self.pool.errors),
        }

    def summary(self, index_path: Optional[str] = None) -> CrawlSummary:
        self.index.refresh_totals()
        return CrawlSummary(
            domain=self.domain,
            pages_done=self.pool.pages_done,
            total_pages=self.index.metadata.total_pages,
            total_links=self.index.metadata.total_links,
            findings=list(self.pool.findings),
            errors=list(self.pool.errors),
            state=self.state.value,
            index_path=index_path,
        )

    # -- run -------------------------------------------------------------

    async def run(self, *, notify_complete: bool = True) -> CrawlSummary:
        """Crawl until the frontier drains, the budget is spent or ``stop()``.

        ``notify_complete=False`` leaves ``on_complete`` to a caller that still
        has work to add to the summary (health check, persistence).

        Raises:
            EngineError: The rendering engine failed to start; the partial
                index is attached to the exception. The observer has already
                seen ``on_error`` and a failed ``on_complete``.
        """
        if self.state is JobState.stopping:
            # Stopped before it ever ran.
            self.state = JobState.completed
            return self.summary()
        if self.state is not JobState.idle:
            raise LinkAuditError(f"Job {self.job_id} has already been started")
        self.state = JobState.running

        if self.seed_urls is not None:
            seeded = self.frontier.seed(self.seed_urls)
            self.observer.on_log(f"Re-indexing {len(seeded)} URLs", "info")
        else:
            self.frontier.seed([self.settings.start_url])
            scope = ""
            if self.settings.locale_filter:
                scope = f" (locale scope: {self.settings.locale_filter})"
            self.observer.on_log(f"Starting crawl of {self.domain}{scope}", "info")

        try:
            await self.pool.run()
        except EngineError as exc:
            self.state = JobState.failed
            self.index.refresh_totals()
            LOGGER.error("Crawl of %s failed: %s", self.domain, exc)
            self.observer.on_log(str(exc), "error")
            report_failure(self.observer, self.settings.start_url, exc, "engine", self.summary())
            raise

        self.state = JobState.completed
        summary = self.summary()
        self.observer.on_log(
            f"Crawl complete: {summary.pages_done} pages, {len(summary.findings)} findings",
            "success",
        )
        if notify_complete:
            self.observer.on_complete(summary)
        return summary


class JobController:
    """Keeps at most one active crawl job per owner.

    Starting a job for an owner stops and replaces the owner's previous job.
    """

    def __init__(self) -> None:
        self._jobs: Dict[str, CrawlJob] = {}
        self._tasks: Dict[str, asyncio.Task] = {}

    def get(self, owner: str) -> Optional[CrawlJob]:
        return self._jobs.get(owner)

    async def start(self, owner: str, settings: CrawlSettings, **job_options: Any) -> CrawlJob:
        await self.discard(owner)
        job = CrawlJob(settings, **job_options)
        self._jobs[owner] = job
        self._tasks[owner] = asyncio.create_task(job.run())
        return job

    async def wait(self, owner: str) -> CrawlSummary:
        task = self._tasks.get(owner)
        if task is None:
            raise LinkAuditError(f"No crawl job for {owner}")
        return await task

    def pause(self, owner: str) -> None:
        job = self._jobs.get(owner)
        if job:
            job.pause()

    def resume(self, owner: str) -> None:
        job = self._jobs.get(owner)
        if job:
            job.resume()

    def stop(self, owner: str) -> None:
        job = self._jobs.get(owner)
        if job:
            job.stop()

    async def discard(self, owner: str) -> None:
        """Stop the owner's job (if any) and wait for it to release its engine."""
        job = self._jobs.pop(owner, None)
        task = self._tasks.pop(owner, None)
        if job is None:
            return
        job.stop()
        if task is not None:
            results = await asyncio.gather(task, return_exceptions=True)
            if isinstance(results[0], Exception):
                LOGGER.debug("Replaced job %s ended with: %s", job.job_id, results[0])

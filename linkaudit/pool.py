"""Cooperative worker pool that drives the frontier and the page extractor."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

from .config import CrawlSettings
from .engine import RenderEngine, RenderSession
from .errors import EngineError, ExtractionError
from .extractor import PageExtractor
from .frontier import Frontier
from .models import CrawlProgress, Finding, Index, JobState, PageError
from .observer import CrawlObserver
from .search import SearchQuery, evaluate_page

LOGGER = logging.getLogger(__name__)


class WorkerPool:
    """``concurrency`` workers sharing one frontier and one index.

    Every frontier mutation and index insertion happens under ``_lock``.
    Pause and stop are observed at loop boundaries; an extraction in flight
    always runs to completion or timeout.
    """

    def __init__(
        self,
        settings: CrawlSettings,
        frontier: Frontier,
        index: Index,
        engine: RenderEngine,
        *,
        observer: Optional[CrawlObserver] = None,
        query: Optional[SearchQuery] = None,
        follow_links: bool = True,
        name: str = "linkaudit",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.settings = settings
        self.frontier = frontier
        self.index = index
        self.engine = engine
        self.observer = observer or CrawlObserver()
        self.query = query
        self.follow_links = follow_links
        self.name = name
        self._sleep = sleep
        self.extractor = PageExtractor(settings)

        self.running = False
        self.paused = False
        self.pages_done = 0
        self.in_flight = 0
        self.links_found = 0
        self.findings: List[Finding] = []
        self.errors: List[PageError] = []
        self._lock = asyncio.Lock()
        self._resume = asyncio.Event()
        self._resume.set()

    # -- control ---------------------------------------------------------

    def pause(self) -> None:
        if self.running and not self.paused:
            self.paused = True
            self._resume.clear()
            self.observer.on_log("Crawl paused", "info")

    def resume(self) -> None:
        if self.paused:
            self.paused = False
            self._resume.set()
            self.observer.on_log("Crawl resumed", "info")

    def stop(self) -> None:
        self.running = False
        self.paused = False
        # Wake paused workers so they can observe the stop.
        self._resume.set()

    @property
    def budget_reached(self) -> bool:
        return self.settings.max_pages > 0 and self.pages_done >= self.settings.max_pages

    def _should_continue(self) -> bool:
        return (
            self.running
            and (len(self.frontier) > 0 or self.in_flight > 0)
            and not self.budget_reached
        )

    def progress(self, current_url: Optional[str], worker_id: Optional[int] = None) -> CrawlProgress:
        if self.paused:
            state = JobState.paused
        elif self.running:
            state = JobState.running
        else:
            state = JobState.stopping
        return CrawlProgress(
            current_url=current_url,
            pages_done=self.pages_done,
            queue_size=len(self.frontier),
            findings_count=len(self.findings),
            links_found=self.links_found,
            max_pages=self.settings.max_pages,
            state=state.value,
            worker_id=worker_id,
        )

    # -- run -------------------------------------------------------------

    async def run(self) -> None:
        """Start the engine, run the workers and always release the engine.

        Raises:
            EngineError: The rendering engine could not be started.
        """
        self.running = True
        try:
            try:
                await self.engine.start()
            except Exception as exc:
                raise EngineError(
                    f"Rendering engine failed to start: {exc}", partial_index=self.index
                ) from exc

            workers = [
                asyncio.create_task(self._worker(worker_id))
                for worker_id in range(max(1, self.settings.concurrency))
            ]
            try:
                await asyncio.gather(*workers)
            finally:
                for task in workers:
                    if not task.done():
                        task.cancel()
        finally:
            self.running = False
            try:
                await self.engine.close()
            except Exception as exc:
                LOGGER.debug("Ignoring error closing engine: %s", exc)

    async def _worker(self, worker_id: int) -> None:
        if worker_id and self.settings.worker_stagger > 0:
            await self._sleep(worker_id * self.settings.worker_stagger)

        session: Optional[RenderSession] = None
        try:
            session = await self.engine.new_session(f"{self.name}-w{worker_id}")
            while self._should_continue():
                if self.paused:
                    await self._resume.wait()
                    continue

                url: Optional[str] = None
                async with self._lock:
                    if self.budget_reached:
                        break
                    url = self.frontier.dequeue()
                    if url is not None:
                        self.frontier.mark_visited(url)
                        self.in_flight += 1
                        self.pages_done += 1

                if url is None:
                    # A sibling may still discover links.
                    await self._sleep(self.settings.idle_poll)
                    continue

                try:
                    await self._process(session, url, worker_id)
                finally:
                    async with self._lock:
                        self.in_flight -= 1

                if self.settings.page_delay > 0:
                    await self._sleep(self.settings.page_delay)
        except Exception as exc:
            LOGGER.error("Worker %d stopped: %s", worker_id, exc)
            self.observer.on_log(f"Worker {worker_id} stopped: {exc}", "error")
        finally:
            if session is not None:
                try:
                    await session.close()
                except Exception as exc:
                    LOGGER.debug("Ignoring error closing session: %s", exc)

    async def _process(self, session: RenderSession, url: str, worker_id: int) -> None:
        self.observer.on_log(f"[W{worker_id}] Crawling: {url}", "info")
        try:
            page = await self.extractor.extract(session, url)
        except ExtractionError as exc:
            await self._record_error(PageError(url, str(exc), "extract", exc.attempts))
            return
        except Exception as exc:
            await self._record_error(PageError(url, str(exc), "process"))
            return

        record = page.to_record()
        findings = evaluate_page(record, self.query) if self.query else []

        async with self._lock:
            self.index.add_page(record)
            self.links_found += len(record.links)
            self.findings.extend(findings)
            added = self.frontier.enqueue_all(page.discovered) if self.follow_links else 0

        LOGGER.debug("Indexed %s: %d links, %d queued", url, len(record.links), added)
        for finding in findings:
            self.observer.on_finding(finding)
            self.observer.on_log(
                f"{finding.finding_type.upper()}: {finding.target_url} on {url}", "warning"
            )
        self.observer.on_progress(self.progress(url, worker_id))

    async def _record_error(self, error: PageError) -> None:
        async with self._lock:
            self.errors.append(error)
        LOGGER.warning("Error on %s: %s", error.url, error.error)
        self.observer.on_error(error)
        self.observer.on_log(f"Error on {error.url}: {error.error}", "error")

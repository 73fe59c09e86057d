"""Rendering engine capability: navigate a page and report its anchors.

The core only needs ``start``/``new_session``/``close`` on the engine and
``navigate``/``extract_anchors``/``close`` on a session. ``Crawl4AIEngine``
implements them on top of one ``AsyncWebCrawler`` per job, using a Crawl4AI
``session_id`` per worker so each worker keeps its own browser page.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from crawl4ai import AsyncWebCrawler
from crawl4ai.models import CrawlResult

from .config import CrawlSettings, build_browser_config, build_extract_run_config
from .errors import NavigationError, NavigationTimeout, SessionClosedError
from .models import Anchor

LOGGER = logging.getLogger(__name__)

_TIMEOUT_MARKERS = ("timeout", "timed out")
_CLOSED_MARKERS = ("has been closed", "target closed", "browser closed", "context closed")
_TRANSIENT_MARKERS = (
    "net::err_",
    "detached",
    "connection",
    "econnreset",
    "econnrefused",
    "temporarily",
    "navigation interrupted",
)


@dataclass(slots=True)
class PageSnapshot:
    """What a session saw after navigating to ``url``."""

    url: str
    final_url: str
    title: str = ""
    anchors: List[Anchor] = field(default_factory=list)
    status_code: Optional[int] = None


class RenderSession(Protocol):
    session_id: str

    async def navigate(self, url: str, timeout: float) -> PageSnapshot: ...

    def extract_anchors(self) -> List[Anchor]: ...

    async def close(self) -> None: ...


class RenderEngine(Protocol):
    async def start(self) -> None: ...

    async def new_session(self, name: str) -> RenderSession: ...

    async def close(self) -> None: ...


def classify_navigation_failure(message: str, url: str) -> NavigationError:
    """Map an engine error message onto the navigation error taxonomy."""
    lowered = (message or "").lower()
    if any(marker in lowered for marker in _CLOSED_MARKERS):
        return SessionClosedError(message, url)
    if any(marker in lowered for marker in _TIMEOUT_MARKERS):
        return NavigationTimeout(message, url)
    if any(marker in lowered for marker in _TRANSIENT_MARKERS):
        return NavigationError(message, url, retryable=True)
    return NavigationError(message or f"Navigation failed for {url}", url)


def _anchors_from_links(links: Optional[Dict[str, List[Dict[str, Any]]]]) -> List[Anchor]:
    anchors: List[Anchor] = []
    for bucket in ("internal", "external"):
        for entry in (links or {}).get(bucket, []) or []:
            href = (entry or {}).get("href")
            if not href:
                continue
            text = ((entry or {}).get("text") or "").strip()
            if not text:
                text = ((entry or {}).get("title") or "").strip()
            anchors.append(Anchor(href=href, text=text, visible=True))
    return anchors


def snapshot_from_result(result: CrawlResult, url: str) -> PageSnapshot:
    metadata = result.metadata or {}
    final_url = str(getattr(result, "redirected_url", None) or result.url or url)
    return PageSnapshot(
        url=url,
        final_url=final_url,
        title=str(metadata.get("title") or ""),
        anchors=_anchors_from_links(result.links),
        status_code=result.status_code,
    )


class Crawl4AISession:
    """One worker's browser page inside a shared ``AsyncWebCrawler``."""

    def __init__(self, engine: "Crawl4AIEngine", session_id: str):
        self._engine = engine
        self.session_id = session_id
        self._closed = False
        self._last: Optional[PageSnapshot] = None

    @property
    def closed(self) -> bool:
        return self._closed or self._engine.closed

    async def navigate(self, url: str, timeout: float) -> PageSnapshot:
        if self.closed:
            raise SessionClosedError(f"Session {self.session_id} is closed", url)

        crawler = self._engine.crawler
        config = build_extract_run_config(
            self.session_id,
            timeout=timeout,
            settle_delay=self._engine.settings.settle_delay,
        )
        try:
            container = await crawler.arun(url=url, config=config)
        except asyncio.TimeoutError as exc:
            raise NavigationTimeout(f"Timed out loading {url}", url) from exc
        except NavigationError:
            raise
        except Exception as exc:
            if self.closed:
                raise SessionClosedError(str(exc), url) from exc
            raise classify_navigation_failure(str(exc), url) from exc

        try:
            result = container[0]
        except (IndexError, TypeError):
            result = container if isinstance(container, CrawlResult) else None

        if result is None:
            raise NavigationError(f"Crawler returned no results for {url}", url)
        if not result.success:
            message = result.error_message or f"HTTP {result.status_code}"
            raise classify_navigation_failure(message, url)

        self._last = snapshot_from_result(result, url)
        return self._last

    def extract_anchors(self) -> List[Anchor]:
        return list(self._last.anchors) if self._last else []

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._engine.closed:
            return
        strategy = getattr(self._engine.crawler, "crawler_strategy", None)
        kill_session = getattr(strategy, "kill_session", None)
        if kill_session is None:
            return
        try:
            await kill_session(self.session_id)
        except Exception as exc:
            LOGGER.debug("Ignoring error closing session %s: %s", self.session_id, exc)


class Crawl4AIEngine:
    """Headless browser owned by one crawl job."""

    def __init__(self, settings: CrawlSettings):
        self.settings = settings
        self._crawler: Optional[AsyncWebCrawler] = None
        self._closed = False

    @property
    def crawler(self) -> AsyncWebCrawler:
        if self._crawler is None:
            raise SessionClosedError("Rendering engine is not running")
        return self._crawler

    @property
    def closed(self) -> bool:
        return self._closed or self._crawler is None

    async def start(self) -> None:
        crawler = AsyncWebCrawler(config=build_browser_config(self.settings))
        await crawler.start()
        self._crawler = crawler
        self._closed = False
        LOGGER.info("Browser launched")

    async def new_session(self, name: str) -> Crawl4AISession:
        if self.closed:
            raise SessionClosedError("Rendering engine is not running")
        return Crawl4AISession(self, name)

    async def close(self) -> None:
        crawler, self._crawler = self._crawler, None
        self._closed = True
        if crawler is None:
            return
        try:
            await crawler.close()
            LOGGER.info("Browser closed")
        except Exception as exc:
            LOGGER.debug("Ignoring error closing browser: %s", exc)

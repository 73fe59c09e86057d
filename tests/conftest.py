"""Shared fixtures: an in-memory rendering engine and quiet crawl settings."""

from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Sequence, Tuple, Union

import pytest

from linkaudit.config import CrawlSettings
from linkaudit.engine import PageSnapshot
from linkaudit.errors import NavigationError, SessionClosedError
from linkaudit.models import Anchor, Index, IndexMetadata, LinkRecord, PageRecord

PageSpec = Tuple[str, Sequence[Tuple[str, str]]]


class FakeSession:
    def __init__(self, engine: "FakeEngine", session_id: str):
        self.engine = engine
        self.session_id = session_id
        self.closed = False
        self._last: Optional[PageSnapshot] = None

    async def navigate(self, url: str, timeout: float) -> PageSnapshot:
        if self.closed:
            raise SessionClosedError("Target page has been closed", url)
        engine = self.engine
        engine.visits.append(url)
        engine.active += 1
        engine.max_active = max(engine.max_active, engine.active)
        try:
            await asyncio.sleep(0)
            failures = engine.failures.get(url)
            if failures:
                raise failures.pop(0)
            page = engine.pages.get(url)
            if page is None:
                raise NavigationError(f"HTTP 404 for {url}", url)
            title, anchors = page
            self._last = PageSnapshot(
                url=url,
                final_url=url,
                title=title,
                anchors=[Anchor(href=href, text=text) for href, text in anchors],
                status_code=200,
            )
            return self._last
        finally:
            engine.active -= 1

    def extract_anchors(self) -> List[Anchor]:
        return list(self._last.anchors) if self._last else []

    async def close(self) -> None:
        self.closed = True
        self.engine.closed_sessions.append(self.session_id)


class FakeEngine:
    """Serves pages from a dict of ``url -> (title, [(href, text), ...])``."""

    def __init__(
        self,
        pages: Dict[str, PageSpec],
        *,
        failures: Optional[Dict[str, List[Exception]]] = None,
        fail_start: bool = False,
    ):
        self.pages = pages
        self.failures = failures or {}
        self.fail_start = fail_start
        self.started = False
        self.closed = False
        self.sessions: List[FakeSession] = []
        self.closed_sessions: List[str] = []
        self.visits: List[str] = []
        self.active = 0
        self.max_active = 0

    async def start(self) -> None:
        if self.fail_start:
            raise RuntimeError("Executable doesn't exist at /ms-playwright/chromium")
        self.started = True

    async def new_session(self, name: str) -> FakeSession:
        session = FakeSession(self, name)
        self.sessions.append(session)
        return session

    async def close(self) -> None:
        self.closed = True


FIXTURE_SITE: Dict[str, PageSpec] = {
    "https://example.com/": (
        "Home",
        [
            ("/a", "Page A"),
            ("/b/", "Page B"),
            ("https://other.org/partner", "Partner"),
            ("/de/", "Deutsch"),
            ("#top", "Back to top"),
        ],
    ),
    "https://example.com/a": ("A", [("/c", "Page C"), ("/b", "Page B again")]),
    "https://example.com/b": ("B", [("/d?utm_source=nav", "Page D")]),
    "https://example.com/c": ("C", [("/", "Home"), ("mailto:team@example.com", "Mail us")]),
    "https://example.com/d": ("D", [("/a#section", "Back to A")]),
    "https://example.com/de": ("Startseite", [("/de/kontakt", "Kontakt"), ("/pricing", "Preise")]),
    "https://example.com/de/kontakt": ("Kontakt", [("/de", "Start")]),
}


@pytest.fixture
def fake_engine_factory():
    def factory(pages: Optional[Dict[str, PageSpec]] = None, **kwargs) -> FakeEngine:
        return FakeEngine(dict(FIXTURE_SITE if pages is None else pages), **kwargs)

    return factory


@pytest.fixture
def settings() -> CrawlSettings:
    return CrawlSettings(
        start_url="https://example.com/",
        max_pages=50,
        concurrency=2,
        navigation_attempts=2,
        retry_backoff=0.0,
        settle_delay=0.0,
        page_delay=0.0,
        idle_poll=0.0,
        worker_stagger=0.0,
        check_links=False,
        health_batch_delay=0.0,
    )


def _link(
    href: str,
    text: str = "",
    *,
    external: bool = False,
    locale: Union[str, None] = None,
    source_locale: Union[str, None] = None,
) -> LinkRecord:
    return LinkRecord(
        href=href,
        anchor_text=text,
        is_external=external,
        locale=locale,
        source_locale=source_locale,
    )


@pytest.fixture
def make_index():
    def factory(
        pages: Dict[str, Sequence[LinkRecord]],
        *,
        domain: str = "example.com",
        locale_filter: Optional[str] = None,
        locales: Optional[Dict[str, Optional[str]]] = None,
    ) -> Index:
        index = Index(
            metadata=IndexMetadata(
                domain=domain,
                start_url=f"https://{domain}/",
                locale_filter=locale_filter,
                created_at="2026-01-01T00:00:00+00:00",
            )
        )
        for url, links in pages.items():
            index.add_page(
                PageRecord(
                    url=url,
                    title=url.rsplit("/", 1)[-1] or "home",
                    locale=(locales or {}).get(url),
                    links=list(links),
                )
            )
        index.refresh_totals()
        return index

    return factory


@pytest.fixture
def link():
    return _link

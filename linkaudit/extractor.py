"""Page extraction: navigate with bounded retries, then classify anchors."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import urljoin

from .config import CrawlSettings
from .engine import PageSnapshot, RenderSession
from .errors import ExtractionError, NavigationError
from .locales import extract_locale, is_locale_switcher_text
from .models import Anchor, LinkRecord, PageRecord, utc_now
from .retry import Backoff, with_retries
from .urls import host_of

LOGGER = logging.getLogger(__name__)

MAX_ANCHOR_TEXT = 150

_SKIPPED_SCHEMES = ("javascript:", "data:", "about:", "blob:")


@dataclass(slots=True)
class ExtractedPage:
    """Result of extracting one page.

    ``links`` are the anchors worth storing; ``discovered`` holds every
    resolved href on the page (switcher links included) for the frontier.
    """

    url: str
    final_url: str
    title: str = ""
    locale: Optional[str] = None
    links: List[LinkRecord] = field(default_factory=list)
    discovered: List[str] = field(default_factory=list)

    def to_record(self) -> PageRecord:
        return PageRecord(
            url=self.url,
            title=self.title,
            locale=self.locale,
            links=list(self.links),
            indexed_at=utc_now(),
        )


def _clean_text(text: str) -> str:
    return " ".join((text or "").split())[:MAX_ANCHOR_TEXT]


def _resolve_href(href: str, base: str) -> Optional[str]:
    raw = (href or "").strip()
    if not raw or raw.startswith("#") or raw.lower().startswith(_SKIPPED_SCHEMES):
        return None
    try:
        return urljoin(base, raw)
    except ValueError:
        return None


class PageExtractor:
    """Turn a rendering session's view of a page into link records."""

    def __init__(self, settings: CrawlSettings):
        self.settings = settings

    async def extract(self, session: RenderSession, url: str) -> ExtractedPage:
        """Navigate ``session`` to ``url`` and classify its anchors.

        Timeouts and transient network failures are retried with a back-off;
        anything else fails the page at once.

        Raises:
            ExtractionError: When the page could not be loaded.
        """
        settings = self.settings
        attempts_made = 0

        async def navigate() -> PageSnapshot:
            nonlocal attempts_made
            attempts_made += 1
            return await session.navigate(url, settings.navigation_timeout)

        def log_retry(attempt: int, exc: BaseException) -> None:
            LOGGER.warning(
                "Retry %d/%d for %s: %s",
                attempt,
                settings.navigation_attempts - 1,
                url,
                exc,
            )

        try:
            snapshot = await with_retries(
                navigate,
                attempts=settings.navigation_attempts,
                backoff=Backoff(base=settings.retry_backoff),
                retry_on=(NavigationError,),
                should_retry=lambda exc: getattr(exc, "retryable", False),
                on_retry=log_retry,
            )
        except NavigationError as exc:
            raise ExtractionError(str(exc), url, attempts=attempts_made) from exc

        anchors = snapshot.anchors or session.extract_anchors()
        return self.build_page(url, snapshot, anchors)

    def build_page(
        self,
        url: str,
        snapshot: PageSnapshot,
        anchors: Optional[List[Anchor]] = None,
    ) -> ExtractedPage:
        settings = self.settings
        base = snapshot.final_url or url
        page_host = host_of(base)
        page_locale = extract_locale(url, settings.known_locales, fallback=False)

        links: List[LinkRecord] = []
        discovered: List[str] = []
        for anchor in anchors if anchors is not None else snapshot.anchors:
            href = _resolve_href(anchor.href, base)
            if href is None:
                continue
            is_external = host_of(href) != page_host
            if not is_external:
                discovered.append(href)

            text = _clean_text(anchor.text)
            if settings.exclude_locale_switcher and is_locale_switcher_text(text):
                continue

            links.append(
                LinkRecord(
                    href=href,
                    anchor_text=text,
                    is_external=is_external,
                    locale=None
                    if is_external
                    else extract_locale(href, settings.known_locales, fallback=False),
                    source_locale=page_locale,
                    is_visible=anchor.visible,
                )
            )

        return ExtractedPage(
            url=url,
            final_url=base,
            title=(snapshot.title or "").strip(),
            locale=page_locale,
            links=links,
            discovered=discovered,
        )

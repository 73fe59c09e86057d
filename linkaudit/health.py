"""Link health verification: live HTTP status of link targets.

``check_status`` tries a cheap HEAD first and falls back to GET when the
server rejects HEAD or the HEAD request fails. A redirect whose ``Location``
normalises back to the request URL (for example one that only strips a
tracking parameter) is reported as 200.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Tuple
from urllib.parse import urljoin

import httpx

from .config import REDIRECT_IGNORED_PARAMS, USER_AGENT, CrawlSettings
from .locales import extract_locale, is_cross_locale, is_locale_switcher_text, parse_locales
from .models import HealthIssue, HealthReport, Index, LinkRecord
from .retry import with_retries
from .urls import is_asset_url, normalize_url

LOGGER = logging.getLogger(__name__)

UNREACHABLE = 0
TIMEOUT_STATUS = 408
REDIRECT_STATUSES = frozenset({301, 302, 307, 308})
HEAD_REJECTED_STATUSES = frozenset({400, 403, 405})

BROKEN = "broken"
REDIRECT = "redirect"
HEALTHY = "healthy"
INCONCLUSIVE = "inconclusive"

_GET_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}

ProgressCallback = Callable[[int, int], None]


@dataclass(slots=True)
class LinkStatus:
    url: str
    status: int
    error: Optional[str] = None


class _Unreachable(Exception):
    def __init__(self, result: LinkStatus):
        self.result = result
        super().__init__(result.error or "unreachable")


def classify_status(status: int, *, timeout_is_healthy: bool = True) -> str:
    """Bucket a status into broken, redirect, healthy or inconclusive.

    ``0`` (unreachable), 404, 410 and 5xx are broken. A 408 from our own GET
    timeout is healthy unless ``timeout_is_healthy`` is off. Other 4xx codes
    (401, 429, ...) prove nothing either way.
    """
    if status == TIMEOUT_STATUS:
        return HEALTHY if timeout_is_healthy else BROKEN
    if status == UNREACHABLE or status in (404, 410) or status >= 500:
        return BROKEN
    if 300 <= status < 400:
        return REDIRECT
    if 200 <= status < 300:
        return HEALTHY
    return INCONCLUSIVE


def is_self_redirect(request_url: str, location: str) -> bool:
    target = urljoin(request_url, location)
    original = normalize_url(request_url, ignore_params=REDIRECT_IGNORED_PARAMS)
    resolved = normalize_url(target, ignore_params=REDIRECT_IGNORED_PARAMS)
    return original is not None and original == resolved


class LinkHealthChecker:
    """Resolve link statuses with an ``httpx.AsyncClient``.

    Use as an async context manager; a client passed in is not closed.
    """

    def __init__(
        self,
        settings: Optional[CrawlSettings] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.settings = settings or CrawlSettings()
        self._client = client
        self._owns_client = client is None
        self._sleep = sleep

    async def __aenter__(self) -> "LinkHealthChecker":
        if self._client is None:
            self._client = httpx.AsyncClient(headers={"User-Agent": USER_AGENT})
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("LinkHealthChecker used outside 'async with'")
        return self._client

    async def _head(self, url: str) -> Optional[int]:
        """HEAD status, or ``None`` when GET must decide."""
        try:
            response = await self.client.head(
                url, timeout=self.settings.head_timeout, follow_redirects=False
            )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            LOGGER.debug("HEAD %s failed (%s); trying GET", url, exc)
            return None

        status = response.status_code
        if status in REDIRECT_STATUSES:
            location = response.headers.get("location")
            if location and is_self_redirect(url, location):
                return 200
            return status
        if status in HEAD_REJECTED_STATUSES:
            return None
        return status

    async def _get(self, url: str) -> LinkStatus:
        try:
            async with self.client.stream(
                "GET",
                url,
                headers=_GET_HEADERS,
                timeout=self.settings.get_timeout,
                follow_redirects=True,
            ) as response:
                return LinkStatus(url, response.status_code)
        except httpx.TimeoutException:
            return LinkStatus(url, TIMEOUT_STATUS, "timeout")
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            return LinkStatus(url, UNREACHABLE, str(exc) or exc.__class__.__name__)

    async def head_then_get(self, url: str) -> LinkStatus:
        status = await self._head(url)
        if status is not None:
            return LinkStatus(url, status)
        return await self._get(url)

    async def check(self, url: str) -> LinkStatus:
        """``head_then_get`` with the configured number of attempts for unreachable URLs."""

        async def attempt() -> LinkStatus:
            result = await self.head_then_get(url)
            if result.status == UNREACHABLE:
                raise _Unreachable(result)
            return result

        try:
            return await with_retries(
                attempt,
                attempts=self.settings.health_attempts,
                retry_on=(_Unreachable,),
                sleep=self._sleep,
            )
        except _Unreachable as exc:
            return exc.result

    async def check_status(self, url: str) -> int:
        return (await self.check(url)).status

    async def check_batch(
        self,
        urls: Iterable[str],
        batch_size: Optional[int] = None,
        *,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Dict[str, LinkStatus]:
        """Check ``urls`` batch by batch; each batch runs concurrently."""
        pending = list(dict.fromkeys(urls))
        size = max(1, batch_size or self.settings.health_batch_size)
        results: Dict[str, LinkStatus] = {}

        for start in range(0, len(pending), size):
            batch = pending[start : start + size]
            for result in await asyncio.gather(*(self.check(url) for url in batch)):
                results[result.url] = result
            if on_progress is not None:
                on_progress(len(results), len(pending))
            if start + size < len(pending) and self.settings.health_batch_delay > 0:
                await self._sleep(self.settings.health_batch_delay)
        return results

    async def check_index(
        self,
        index: Index,
        max_links: Optional[int] = None,
        *,
        on_progress: Optional[ProgressCallback] = None,
    ) -> HealthReport:
        """Check the internal link targets of ``index`` and attach a fresh report.

        Only pages inside the index's locale scope are scanned. Each unique
        target is checked once; ``occurrences`` counts its source pages.
        """
        limit = self.settings.health_max_links if max_links is None else max_links
        targets, cross_locale = collect_targets(index, self.settings.known_locales)

        keys = list(targets)
        checked_keys = keys[:limit] if limit and limit > 0 else keys
        hrefs = {key: targets[key].href for key in checked_keys}
        LOGGER.info(
            "Checking %d of %d unique links on %s",
            len(checked_keys),
            len(keys),
            index.metadata.domain,
        )
        statuses = await self.check_batch(hrefs.values(), on_progress=on_progress)

        report = HealthReport(
            cross_locale=cross_locale,
            checked_count=len(checked_keys),
            total_unique_links=len(keys),
        )
        for key in checked_keys:
            sources = targets[key]
            result = statuses[hrefs[key]]
            for link in sources.links:
                link.http_status = result.status

            verdict = classify_status(
                result.status, timeout_is_healthy=self.settings.timeout_is_healthy
            )
            if verdict == HEALTHY:
                report.healthy_count += 1
                continue
            if verdict == INCONCLUSIVE:
                continue
            issue = HealthIssue(
                source_url=sources.source_urls[0],
                target_url=sources.href,
                anchor_text=sources.anchor_text,
                status=result.status,
                occurrences=len(sources.source_urls),
                error=result.error if result.status == UNREACHABLE else None,
            )
            (report.broken if verdict == BROKEN else report.redirects).append(issue)

        index.health_report = report
        LOGGER.info(
            "Health check: %d broken, %d redirects, %d cross-locale, %d healthy",
            len(report.broken),
            len(report.redirects),
            len(report.cross_locale),
            report.healthy_count,
        )
        return report


@dataclass
class _Target:
    href: str
    anchor_text: str
    source_urls: List[str]
    links: List[LinkRecord]


def _in_scope(locale: Optional[str], scope: List[str]) -> bool:
    if not scope:
        return True
    if locale is None:
        return "default" in scope
    return locale in scope


def collect_targets(
    index: Index, known_locales: Iterable[str]
) -> Tuple[Dict[str, _Target], List[HealthIssue]]:
    """Unique internal targets (keyed by normalised URL) and cross-locale issues."""
    known = tuple(known_locales)
    scope = parse_locales(index.metadata.locale_filter)
    targets: Dict[str, _Target] = {}
    crossings: Dict[Tuple[Optional[str], Optional[str], str], HealthIssue] = {}

    for page in index.pages.values():
        source_locale = page.locale or extract_locale(page.url, known, fallback=False)
        if not _in_scope(source_locale, scope):
            continue
        for link in page.links:
            if link.is_external or not link.href:
                continue
            key = normalize_url(link.href) or link.href
            text = link.anchor_text
            target = targets.get(key)
            if target is None:
                target = targets[key] = _Target(link.href, text, [], [])
            elif text and not target.anchor_text:
                target.anchor_text = text
            if page.url not in target.source_urls:
                target.source_urls.append(page.url)
            target.links.append(link)

            target_locale = link.locale or extract_locale(link.href, known, fallback=False)
            if (
                not is_asset_url(link.href)
                and is_cross_locale(source_locale, target_locale)
                and not is_locale_switcher_text(text)
            ):
                crossing = (source_locale, target_locale, key)
                if crossing in crossings:
                    crossings[crossing].occurrences += 1
                else:
                    crossings[crossing] = HealthIssue(
                        source_url=page.url,
                        target_url=link.href,
                        anchor_text=text,
                        source_locale=source_locale or "default",
                        target_locale=target_locale or "default",
                    )
    return targets, list(crossings.values())


async def check_index_health(
    index: Index,
    settings: Optional[CrawlSettings] = None,
    *,
    max_links: Optional[int] = None,
    client: Optional[httpx.AsyncClient] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> HealthReport:
    """Run a health check over a stored index and annotate it in place."""
    async with LinkHealthChecker(settings, client=client) as checker:
        return await checker.check_index(index, max_links, on_progress=on_progress)

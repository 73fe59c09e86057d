"""Reconcile a site's ``sitemap.xml`` with what an index actually holds."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import httpx

from .config import KNOWN_LOCALES, USER_AGENT
from .errors import SitemapError
from .locales import DEFAULT_LOCALE, extract_locale, parse_locales
from .models import Index
from .urls import comparison_key

LOGGER = logging.getLogger(__name__)

MAX_SUB_SITEMAPS = 10
SITEMAP_TIMEOUT = 10.0

_LOC = re.compile(r"<loc>\s*([^<]+?)\s*</loc>", re.IGNORECASE)
_SUB_SITEMAP = re.compile(r"<sitemap>[\s\S]*?<loc>\s*([^<]+?)\s*</loc>[\s\S]*?</sitemap>", re.IGNORECASE)


@dataclass(slots=True)
class SitemapComparison:
    sitemap_url: str
    sitemap_count: int
    sitemap_total_count: int
    locale_filter: str
    indexed_count: int
    in_both: int
    missing_from_index: List[str] = field(default_factory=list)
    extra_in_index: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sitemapUrl": self.sitemap_url,
            "sitemapCount": self.sitemap_count,
            "sitemapTotalCount": self.sitemap_total_count,
            "localeFilter": self.locale_filter,
            "indexedCount": self.indexed_count,
            "inBoth": self.in_both,
            "missingFromIndex": self.missing_from_index,
            "extraInIndex": self.extra_in_index,
        }


def parse_sitemap(xml: str) -> tuple[List[str], List[str]]:
    """Split a sitemap document into page URLs and sub-sitemap URLs."""
    sub_sitemaps = [match.strip() for match in _SUB_SITEMAP.findall(xml)]
    nested = set(sub_sitemaps)
    pages = [loc.strip() for loc in _LOC.findall(xml) if loc.strip() not in nested]
    return pages, sub_sitemaps


async def fetch_sitemap_urls(
    sitemap_url: str,
    *,
    client: Optional[httpx.AsyncClient] = None,
    max_sub_sitemaps: int = MAX_SUB_SITEMAPS,
) -> List[str]:
    """Every page URL listed in ``sitemap_url`` and (one level of) its sub-sitemaps.

    Raises:
        SitemapError: The top-level sitemap cannot be fetched or lists nothing.
    """
    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(
            headers={"User-Agent": USER_AGENT}, timeout=SITEMAP_TIMEOUT, follow_redirects=True
        )
    try:
        try:
            response = await client.get(sitemap_url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise SitemapError(
                f"Could not fetch sitemap from {sitemap_url}: "
                f"Sitemap returned {exc.response.status_code}",
                sitemap_url=sitemap_url,
            ) from exc
        except httpx.HTTPError as exc:
            raise SitemapError(
                f"Could not fetch sitemap from {sitemap_url}: {exc}", sitemap_url=sitemap_url
            ) from exc

        urls, sub_sitemaps = parse_sitemap(response.text)
        for sub_url in sub_sitemaps[:max_sub_sitemaps]:
            try:
                sub_response = await client.get(sub_url)
                sub_response.raise_for_status()
            except httpx.HTTPError as exc:
                LOGGER.warning("Skipping sub-sitemap %s: %s", sub_url, exc)
                continue
            sub_urls, _ = parse_sitemap(sub_response.text)
            urls.extend(sub_urls)
    finally:
        if owns_client:
            await client.aclose()

    if not urls:
        raise SitemapError("Sitemap is empty or could not be parsed", sitemap_url=sitemap_url)
    LOGGER.info("Sitemap %s lists %d URLs", sitemap_url, len(urls))
    return urls


def filter_by_locale(
    urls: Sequence[str],
    locale_filter: Optional[str],
    known_locales: Sequence[str] = KNOWN_LOCALES,
) -> List[str]:
    scope = parse_locales(locale_filter)
    if not scope:
        return list(urls)
    kept = []
    for url in urls:
        locale = extract_locale(url, known_locales) or DEFAULT_LOCALE
        if locale in scope:
            kept.append(url)
    return kept


def compare_urls(
    sitemap_urls: Sequence[str],
    index: Index,
    *,
    sitemap_url: str = "",
    known_locales: Sequence[str] = KNOWN_LOCALES,
) -> SitemapComparison:
    locale_filter = index.metadata.locale_filter
    scoped = filter_by_locale(sitemap_urls, locale_filter, known_locales)

    in_sitemap: Dict[str, str] = {}
    for url in scoped:
        in_sitemap.setdefault(comparison_key(url), url)
    indexed: Dict[str, str] = {}
    for url in index.pages:
        indexed.setdefault(comparison_key(url), url)

    in_both = [url for key, url in in_sitemap.items() if key in indexed]
    missing = [url for key, url in in_sitemap.items() if key not in indexed]
    extra = [url for key, url in indexed.items() if key not in in_sitemap]

    return SitemapComparison(
        sitemap_url=sitemap_url,
        sitemap_count=len(scoped),
        sitemap_total_count=len(sitemap_urls),
        locale_filter=locale_filter or "all",
        indexed_count=len(index.pages),
        in_both=len(in_both),
        missing_from_index=missing,
        extra_in_index=extra,
    )


async def compare_sitemap(
    index: Index,
    *,
    sitemap_url: Optional[str] = None,
    client: Optional[httpx.AsyncClient] = None,
    known_locales: Sequence[str] = KNOWN_LOCALES,
) -> SitemapComparison:
    """Compare ``https://<domain>/sitemap.xml`` with the pages of ``index``.

    ``missing_from_index`` is the natural input for an incremental re-index.
    """
    url = sitemap_url or f"https://{index.metadata.domain}/sitemap.xml"
    urls = await fetch_sitemap_urls(url, client=client)
    return compare_urls(urls, index, sitemap_url=url, known_locales=known_locales)

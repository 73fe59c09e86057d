"""Instant search over a stored link index.

The same evaluator serves stored-index queries and live findings during a
crawl. Evaluation is one linear scan over pages and their links.

Public API::

    from linkaudit.search import SearchQuery, search

    query = SearchQuery(mode="both", pattern="contact,/pricing-v\\d/", source_locale="de")
    for finding in search(index, query):
        print(finding.source_url, finding.target_url)
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Pattern, Sequence, Union

from .config import KNOWN_LOCALES
from .errors import ConfigurationError
from .locales import (
    DEFAULT_LOCALE,
    extract_locale,
    is_cross_locale,
    is_locale_switcher_text,
    locale_label,
    parse_locales,
)
from .models import Finding, Index, LinkRecord, PageRecord
from .urls import is_asset_url

LOGGER = logging.getLogger(__name__)

PATTERN_MATCH = "pattern_match"
CROSS_LOCALE = "cross_locale"


class SearchMode(str, Enum):
    pattern = "pattern"
    crosslocale = "crosslocale"
    both = "both"


@dataclass(slots=True)
class LinkPattern:
    """One entry of a comma-separated pattern list.

    ``/.../`` compiles to a case-insensitive regex; anything else (including
    a regex that fails to compile) is a case-insensitive substring.
    """

    raw: str
    regex: Optional[Pattern[str]] = None

    @classmethod
    def parse(cls, raw: str) -> "LinkPattern":
        raw = raw.strip()
        if len(raw) > 2 and raw.startswith("/") and raw.endswith("/"):
            try:
                return cls(raw=raw, regex=re.compile(raw[1:-1], re.IGNORECASE))
            except re.error:
                LOGGER.debug("Treating invalid regex %r as a substring", raw)
        return cls(raw=raw)

    def matches(self, value: str) -> bool:
        if not value:
            return False
        if self.regex is not None:
            return bool(self.regex.search(value))
        return self.raw.lower() in value.lower()


def parse_patterns(value: Optional[str]) -> List[LinkPattern]:
    if not value:
        return []
    return [LinkPattern.parse(part) for part in value.split(",") if part.strip()]


@dataclass
class SearchQuery:
    """What to look for in an index.

    ``pattern`` mode needs a pattern. In ``crosslocale`` mode a pattern, when
    given, must match as well; ``both`` accepts either.
    """

    mode: Union[SearchMode, str] = SearchMode.pattern
    pattern: Optional[str] = None
    source_locale: Optional[str] = None
    other_locales: Union[Sequence[str], str, None] = None
    exclude_locale_switcher: bool = True
    default_has_prefix: bool = False
    known_locales: Sequence[str] = KNOWN_LOCALES
    patterns: List[LinkPattern] = field(init=False, default_factory=list)

    def __post_init__(self) -> None:
        try:
            self.mode = SearchMode(self.mode)
        except ValueError as exc:
            raise ConfigurationError(f"Unknown search mode: {self.mode!r}") from exc
        if isinstance(self.other_locales, str) or self.other_locales is None:
            self.other_locales = parse_locales(self.other_locales)
        else:
            self.other_locales = [code.strip().strip("/").lower() for code in self.other_locales]
        if self.source_locale:
            self.source_locale = self.source_locale.strip().strip("/").lower() or None
        self.patterns = parse_patterns(self.pattern)
        if self.mode is SearchMode.pattern and not self.patterns:
            raise ConfigurationError("Pattern search needs at least one pattern")

    @property
    def wants_cross_locale(self) -> bool:
        return self.mode in (SearchMode.crosslocale, SearchMode.both)

    def matches_pattern(self, link: LinkRecord) -> bool:
        return any(
            pattern.matches(link.href) or pattern.matches(link.anchor_text)
            for pattern in self.patterns
        )

    def accepts_source(self, page_locale: Optional[str]) -> bool:
        if not self.source_locale:
            return True
        if self.source_locale == DEFAULT_LOCALE:
            return page_locale is None
        return page_locale == self.source_locale


def _page_locale(page: PageRecord, query: SearchQuery) -> Optional[str]:
    if page.locale:
        return page.locale
    return extract_locale(page.url, query.known_locales, fallback=False)


def _link_locale(link: LinkRecord, query: SearchQuery) -> Optional[str]:
    if link.locale:
        return link.locale
    return extract_locale(link.href, query.known_locales, fallback=False)


def crosses_locale(
    page_locale: Optional[str], link: LinkRecord, query: SearchQuery
) -> bool:
    if link.is_external or is_asset_url(link.href):
        return False
    target = _link_locale(link, query)
    if not is_cross_locale(page_locale, target, query.default_has_prefix):
        return False
    if query.other_locales and target is not None:
        return target in query.other_locales
    return True


def evaluate_page(page: PageRecord, query: SearchQuery) -> List[Finding]:
    """Findings for one page, in link order."""
    page_locale = _page_locale(page, query)
    if not query.accepts_source(page_locale):
        return []

    findings: List[Finding] = []
    for link in page.links:
        pattern_hit = bool(query.patterns) and query.matches_pattern(link)
        cross = query.wants_cross_locale and crosses_locale(page_locale, link, query)

        if query.mode is SearchMode.pattern:
            include = pattern_hit
        elif query.mode is SearchMode.crosslocale:
            include = cross and (pattern_hit or not query.patterns)
        else:
            include = pattern_hit or cross

        if include and query.exclude_locale_switcher and is_locale_switcher_text(link.anchor_text):
            include = False
        if not include:
            continue

        findings.append(
            Finding(
                source_url=page.url,
                target_url=link.href,
                anchor_text=link.anchor_text,
                finding_type=PATTERN_MATCH
                if pattern_hit and query.mode is not SearchMode.crosslocale
                else CROSS_LOCALE,
                source_title=page.title,
                source_locale=locale_label(page_locale),
                target_locale="external"
                if link.is_external
                else locale_label(_link_locale(link, query)),
                is_external=link.is_external,
                cross_locale=cross,
                is_visible=link.is_visible,
            )
        )
    return findings


def search(index: Index, query: SearchQuery) -> List[Finding]:
    """Scan every page of ``index``; findings come out grouped by source page."""
    findings: List[Finding] = []
    for page in index.pages.values():
        findings.extend(evaluate_page(page, query))
    LOGGER.debug("Search (%s) matched %d links", query.mode.value, len(findings))
    return findings


def group_by_source(findings: Sequence[Finding]) -> Dict[str, List[Finding]]:
    grouped: Dict[str, List[Finding]] = {}
    for finding in findings:
        grouped.setdefault(finding.source_url, []).append(finding)
    return grouped

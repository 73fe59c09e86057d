"""Locale classification of URLs and anchor texts.

All functions are pure and driven by the tables in :mod:`linkaudit.config`,
so they can be exercised without a crawl.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Optional, Sequence
from urllib.parse import urlsplit

from .config import KNOWN_LOCALES, LOCALE_SWITCHER_TEXTS
from .urls import host_of, is_asset_url

DEFAULT_LOCALE = "default"
EXTERNAL = "external"

_FALLBACK_LOCALE = re.compile(r"^/([a-z]{2}(?:-[a-z]{2,4})?)/", re.IGNORECASE)
_SHORT_CODE = re.compile(r"^[a-z]{2}(-[a-z]{2})?$", re.IGNORECASE)
_PARENTHESIZED = re.compile(r"\s*\([^)]*\)\s*")
_FLAG = re.compile("[\U0001F1E6-\U0001F1FF]")
_FLAGS_ONLY = re.compile("^[\U0001F1E6-\U0001F1FF]{2,4}$")
_FLAG_PREFIX = re.compile("^[\U0001F1E6-\U0001F1FF]{2}\\s*.{0,15}$")
_CJK = "\u4e00-\u9fff\u3040-\u309f\u30a0-\u30ff\uac00-\ud7af"
_CJK_LABEL = re.compile(f"^[{_CJK}\\s()a-z-]+$", re.IGNORECASE)
_HAS_CJK = re.compile(f"[{_CJK}]")


def parse_locales(value: Optional[str]) -> List[str]:
    """``"/de/, fr ,/es"`` -> ``["de", "fr", "es"]``."""
    if not value:
        return []
    codes = []
    for part in value.split(","):
        code = part.strip().strip("/").lower()
        if code and code not in codes:
            codes.append(code)
    return codes


def extract_locale(
    url: str,
    known_locales: Sequence[str] = KNOWN_LOCALES,
    *,
    fallback: bool = True,
) -> Optional[str]:
    """Locale code carried by the first path segment of ``url``.

    Returns ``None`` for the default (unprefixed) locale. Never raises.
    """
    try:
        path = urlsplit(url).path.lower() if "://" in url else url.lower()
    except (ValueError, TypeError, AttributeError):
        return None
    segments = [segment for segment in path.split("/") if segment]
    if segments and segments[0] in known_locales:
        return segments[0]
    if fallback:
        match = _FALLBACK_LOCALE.match(path)
        if match:
            return match.group(1).lower()
    return None


def locale_label(locale: Optional[str]) -> str:
    return locale or DEFAULT_LOCALE


def detect_locale(url: str, known_locales: Sequence[str] = KNOWN_LOCALES) -> str:
    """Total variant of :func:`extract_locale`: a code or ``"default"``."""
    return locale_label(extract_locale(url, known_locales))


def classify_link(
    href: str,
    root_host: str,
    known_locales: Sequence[str] = KNOWN_LOCALES,
    *,
    fallback: bool = False,
) -> str:
    """Locale verdict for a link: a code, ``"default"`` or ``"external"``."""
    if host_of(href) != root_host:
        return EXTERNAL
    return locale_label(extract_locale(href, known_locales, fallback=fallback))


def is_cross_locale(
    source_locale: Optional[str],
    target_locale: Optional[str],
    default_has_prefix: bool = False,
) -> bool:
    """Decide whether a link from ``source_locale`` to ``target_locale`` crosses locales.

    ``None`` (or ``"default"``) stands for the default locale.
    """
    source = None if source_locale == DEFAULT_LOCALE else source_locale
    target = None if target_locale == DEFAULT_LOCALE else target_locale

    if not default_has_prefix:
        if source is None:
            return target is not None
        # A prefixed page linking to an unprefixed URL lost its prefix.
        return target is None or target != source

    if source is not None and target is not None:
        return source != target
    return source is not None and target is None


def is_cross_locale_link(
    source_url: str,
    target_url: str,
    root_host: str,
    *,
    default_has_prefix: bool = False,
    known_locales: Sequence[str] = KNOWN_LOCALES,
) -> bool:
    """URL-level cross-locale check; external and asset targets never count."""
    if host_of(target_url) != root_host or is_asset_url(target_url):
        return False
    return is_cross_locale(
        extract_locale(source_url, known_locales),
        extract_locale(target_url, known_locales),
        default_has_prefix,
    )


def is_locale_switcher_text(
    text: Optional[str],
    switcher_texts: Iterable[str] = LOCALE_SWITCHER_TEXTS,
) -> bool:
    """True when an anchor text looks like a language/region switcher.

    Precision filter: exact or near-exact matches only, false negatives are fine.
    """
    raw = (text or "").strip()
    if not raw:
        return False
    lowered = raw.lower()
    known = switcher_texts if isinstance(switcher_texts, (set, frozenset)) else set(switcher_texts)
    base = _PARENTHESIZED.sub("", lowered).strip()

    if lowered in known or base in known:
        return True
    if len(lowered) <= 5 and _SHORT_CODE.match(lowered):
        return True
    if len(raw) <= 4 and _FLAGS_ONLY.match(raw):
        return True
    if len(raw) <= 20 and _FLAG_PREFIX.match(raw):
        without_flags = _FLAG.sub("", raw).strip().lower()
        if without_flags in known or len(without_flags) <= 3:
            return True
    if len(raw) <= 30 and _CJK_LABEL.match(raw) and _HAS_CJK.search(raw):
        return True
    return False

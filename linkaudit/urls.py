"""URL normalisation used as the identity key for pages and links."""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable, Optional
from urllib.parse import urljoin, urlsplit, urlunsplit

import tldextract

from .config import ASSET_EXTENSIONS, TRACKING_PARAMS

WEB_SCHEMES = ("http", "https")

_EXTENSION = re.compile(r"\.([a-z0-9]+)$", re.IGNORECASE)


def normalize_host(host: Optional[str]) -> str:
    """Normalize hostname by removing port and lowercasing."""
    if not host:
        return ""
    return host.split(":")[0].lower()


@lru_cache(maxsize=256)
def registrable_domain(host: str) -> Optional[str]:
    """Extract the registrable domain from a hostname."""
    if not host:
        return None
    extracted = tldextract.extract(host)
    if not extracted.domain or not extracted.suffix:
        return host
    domain = ".".join(part for part in (extracted.domain, extracted.suffix) if part)
    return domain or host


def host_of(url: str) -> str:
    try:
        return normalize_host(urlsplit(url).netloc)
    except ValueError:
        return ""


def _is_tracking_param(name: str, extra: Iterable[str]) -> bool:
    lowered = name.lower()
    for param in (*TRACKING_PARAMS, *extra):
        if param.endswith("_"):
            if lowered.startswith(param):
                return True
        elif lowered == param:
            return True
    return False


def _strip_params(query: str, extra: Iterable[str]) -> str:
    extra = tuple(extra)
    kept = [
        piece
        for piece in query.split("&")
        if piece and not _is_tracking_param(piece.split("=", 1)[0], extra)
    ]
    return "&".join(kept)


def normalize_url(
    href: Optional[str],
    base: Optional[str] = None,
    *,
    ignore_params: Iterable[str] = (),
) -> Optional[str]:
    """Resolve ``href`` against ``base`` and canonicalise it.

    Steps, in order: resolve, require an http(s) scheme, drop the fragment,
    drop tracking query parameters, strip trailing slashes except for the
    origin root. Returns ``None`` for anything that cannot be parsed.
    """
    if not href or not isinstance(href, str):
        return None
    try:
        absolute = urljoin(base, href.strip()) if base else href.strip()
        parts = urlsplit(absolute)
        scheme = parts.scheme.lower()
        if scheme not in WEB_SCHEMES or not parts.hostname:
            return None
        netloc = parts.netloc.lower()
        path = parts.path.rstrip("/") or "/"
        query = _strip_params(parts.query, ignore_params)
        return urlunsplit((scheme, netloc, path, query, ""))
    except ValueError:
        return None


def is_asset_url(url: str) -> bool:
    """True when the path ends in a static-asset extension."""
    try:
        path = urlsplit(url).path
    except ValueError:
        return False
    match = _EXTENSION.search(path)
    return bool(match) and match.group(1).lower() in ASSET_EXTENSIONS


def has_extension(url: str, extensions: Iterable[str]) -> bool:
    try:
        path = urlsplit(url).path
    except ValueError:
        return False
    match = _EXTENSION.search(path)
    return bool(match) and match.group(1).lower() in set(extensions)


def site_name(url_or_host: str) -> str:
    """``https://www.example.com/x`` -> ``example_com``."""
    value = (url_or_host or "").strip()
    host = host_of(value) if "://" in value else normalize_host(value)
    if host.startswith("www."):
        host = host[4:]
    return host.replace(".", "_")


def comparison_key(url: str) -> str:
    """Loose key for sitemap reconciliation: origin + lower path + query."""
    try:
        parts = urlsplit(url)
        if not parts.scheme or not parts.netloc:
            raise ValueError(url)
    except ValueError:
        return url.lower().rstrip("/")
    origin = f"{parts.scheme.lower()}://{parts.netloc.lower()}"
    path = parts.path.rstrip("/").lower()
    query = f"?{parts.query}" if parts.query else ""
    return origin + path + query

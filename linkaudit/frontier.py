"""Crawl frontier: FIFO queue with at-most-once enqueue and visit."""

from __future__ import annotations

import logging
from collections import deque
from typing import Deque, Iterable, List, Optional, Sequence, Set

from .config import CRAWL_EXCLUDED_EXTENSIONS, EXCLUDED_PATH_PATTERN, KNOWN_LOCALES
from .locales import DEFAULT_LOCALE, extract_locale, parse_locales
from .urls import has_extension, host_of, normalize_url, registrable_domain

LOGGER = logging.getLogger(__name__)


class Frontier:
    """Pending and visited URLs of one crawl job.

    Every URL is normalised before it is looked up, so the queue, the
    queued set and the visited set all share one identity key. The class does
    no locking; the worker pool serialises access.
    """

    def __init__(
        self,
        root_url: str,
        *,
        locale_filter: Optional[str] = None,
        known_locales: Sequence[str] = KNOWN_LOCALES,
        include_subdomains: bool = False,
    ):
        self.root_host = host_of(root_url)
        self.include_subdomains = include_subdomains
        self.known_locales = tuple(known_locales)
        self.scope = parse_locales(locale_filter)
        self._registrable = registrable_domain(self.root_host) if include_subdomains else None
        self._queue: Deque[str] = deque()
        self._queued: Set[str] = set()
        self._visited: Set[str] = set()

    def __len__(self) -> int:
        return len(self._queue)

    @property
    def visited(self) -> Set[str]:
        return set(self._visited)

    def in_domain(self, url: str) -> bool:
        host = host_of(url)
        if host == self.root_host:
            return True
        if self._registrable and host:
            return host == self._registrable or host.endswith("." + self._registrable)
        return False

    def in_locale_scope(self, url: str) -> bool:
        if not self.scope:
            return True
        locale = extract_locale(url, self.known_locales, fallback=False)
        if locale is None:
            return DEFAULT_LOCALE in self.scope
        return locale in self.scope

    def accepts(self, url: str) -> bool:
        """Scope, path, extension and locale checks on a normalised URL."""
        if not self.in_domain(url):
            return False
        if EXCLUDED_PATH_PATTERN.search(url.split("?", 1)[0].split("://", 1)[-1]):
            return False
        if has_extension(url, CRAWL_EXCLUDED_EXTENSIONS):
            return False
        return self.in_locale_scope(url)

    def _push(self, url: str) -> bool:
        if url in self._queued or url in self._visited:
            return False
        self._queue.append(url)
        self._queued.add(url)
        return True

    def enqueue(self, href: str, base: Optional[str] = None) -> bool:
        """Queue ``href`` if it is in scope and has never been queued or visited."""
        url = normalize_url(href, base)
        if url is None or not self.accepts(url):
            return False
        return self._push(url)

    def enqueue_all(self, hrefs: Iterable[str], base: Optional[str] = None) -> int:
        return sum(1 for href in hrefs if self.enqueue(href, base))

    def seed(self, urls: Iterable[str]) -> List[str]:
        """Queue explicit URLs, bypassing scope checks (incremental re-indexing)."""
        added = []
        for href in urls:
            url = normalize_url(href)
            if url is not None and self._push(url):
                added.append(url)
        return added

    def dequeue(self) -> Optional[str]:
        if not self._queue:
            return None
        return self._queue.popleft()

    def mark_visited(self, url: str) -> None:
        self._queued.discard(url)
        self._visited.add(url)

    def is_visited(self, url: str) -> bool:
        return url in self._visited

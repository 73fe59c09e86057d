"""Crawl settings, classification tables and Crawl4AI configuration factories."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, replace
from pathlib import Path
from typing import FrozenSet, List, Optional, Tuple

from crawl4ai import BrowserConfig, CrawlerRunConfig
from crawl4ai.async_configs import CacheMode

LOGGER = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

# Locale prefixes recognised as the first path segment of a URL.
KNOWN_LOCALES: Tuple[str, ...] = (
    "en", "de", "fr", "es", "it", "pt", "nl", "pl", "ru", "ja", "ko", "zh",
    "ar", "hi", "tr", "sv", "da", "no", "fi",
    "en-us", "en-gb", "pt-br", "zh-cn", "zh-tw",
)

# Anchor texts that mark a language/region switcher control.
LOCALE_SWITCHER_TEXTS: FrozenSet[str] = frozenset(
    {
        # English names
        "english", "german", "french", "spanish", "italian", "portuguese",
        "dutch", "polish", "russian", "japanese", "korean", "chinese",
        "arabic", "hindi", "turkish", "swedish", "danish", "norwegian",
        "finnish", "czech", "hungarian", "romanian", "bulgarian", "croatian",
        "serbian", "slovenian", "slovak", "ukrainian", "greek", "hebrew",
        "thai", "vietnamese", "indonesian", "malay", "filipino", "bengali",
        "catalan", "latvian", "lithuanian", "estonian", "icelandic",
        "persian", "farsi", "urdu", "swahili", "afrikaans", "welsh", "irish",
        "scottish", "basque", "galician",
        # Native names
        "deutsch", "français", "español", "italiano", "português",
        "nederlands", "polski", "русский", "日本語", "한국어", "中文",
        "简体中文", "繁體中文", "العربية", "हिन्दी", "türkçe", "svenska",
        "dansk", "norsk", "suomi", "čeština", "magyar", "română",
        "български", "hrvatski", "српски", "slovenščina", "slovenčina",
        "українська", "ελληνικά", "עברית", "ไทย", "tiếng việt",
        "bahasa indonesia", "melayu", "বাংলা", "català", "latviešu",
        "lietuvių", "eesti", "íslenska", "فارسی", "اردو", "kiswahili",
        "cymraeg", "gaeilge", "euskara", "galego",
        # ISO 639-1 codes
        "en", "de", "fr", "es", "it", "pt", "nl", "pl", "ru", "ja", "ko",
        "zh", "ar", "hi", "tr", "sv", "da", "no", "fi", "cs", "hu", "ro",
        "bg", "hr", "sr", "sl", "sk", "uk", "el", "he", "th", "vi", "id",
        "ms", "tl", "bn", "ca", "lv", "lt", "et", "is", "fa", "ur", "sw",
        "af", "cy", "ga", "eu", "gl", "mt", "lb", "mk", "sq", "bs", "hy",
        "ka", "az", "kk", "uz", "tg", "mn", "ne", "si", "km", "lo", "my",
        # Language-region codes
        "en-us", "en-gb", "en-au", "en-ca", "en-nz", "en-ie", "en-za",
        "en-in", "en-sg", "pt-br", "pt-pt", "zh-cn", "zh-tw", "zh-hk",
        "zh-sg", "es-es", "es-mx", "es-ar", "es-co", "es-cl", "es-pe",
        "fr-fr", "fr-ca", "fr-be", "fr-ch", "de-de", "de-at", "de-ch",
        "nl-nl", "nl-be", "it-it", "it-ch",
        # Three-letter abbreviations
        "eng", "ger", "deu", "fra", "fre", "spa", "ita", "por", "dut", "nld",
        "pol", "rus", "jpn", "kor", "chn", "chi", "ara", "hin", "tur", "swe",
        "dan", "nor", "fin",
        # Flags
        "🇺🇸", "🇬🇧", "🇩🇪", "🇫🇷", "🇪🇸", "🇮🇹", "🇵🇹", "🇧🇷", "🇳🇱", "🇵🇱",
        "🇷🇺", "🇯🇵", "🇰🇷", "🇨🇳", "🇹🇼", "🇭🇰", "🇸🇦", "🇮🇳", "🇹🇷", "🇸🇪",
        "🇩🇰", "🇳🇴", "🇫🇮", "🇨🇿", "🇭🇺", "🇷🇴", "🇧🇬", "🇭🇷", "🇷🇸", "🇸🇮",
        "🇸🇰", "🇺🇦", "🇬🇷", "🇮🇱", "🇹🇭", "🇻🇳", "🇮🇩", "🇲🇾", "🇵🇭", "🇧🇩",
        "🇦🇹", "🇨🇭", "🇧🇪", "🇨🇦", "🇦🇺", "🇳🇿", "🇮🇪", "🇿🇦", "🇸🇬", "🇲🇽",
        "🇦🇷", "🇨🇴", "🇨🇱", "🇵🇪",
    }
)

# Paths never worth crawling (back-office, session and feed endpoints).
EXCLUDED_PATH_PATTERN = re.compile(
    r"/(wp-admin|wp-login|admin|login|logout|feed|rss|cart|checkout|account)",
    re.IGNORECASE,
)

# Extensions the frontier refuses to enqueue.
CRAWL_EXCLUDED_EXTENSIONS: FrozenSet[str] = frozenset(
    {
        "pdf", "jpg", "jpeg", "png", "gif", "svg", "webp", "zip", "exe",
        "dmg", "mp4", "mp3", "wav", "avi", "mov", "ico", "woff", "woff2",
        "ttf", "eot",
    }
)

# Extensions that mark a link target as an asset rather than a page.
ASSET_EXTENSIONS: FrozenSet[str] = frozenset(
    {
        "css", "js", "jpg", "jpeg", "png", "gif", "svg", "webp", "ico",
        "woff", "woff2", "ttf", "eot", "pdf", "zip", "mp4", "mp3",
    }
)

# Query parameters dropped during normalisation. Entries ending in "_" are prefixes.
TRACKING_PARAMS: Tuple[str, ...] = ("utm_", "fbclid", "gclid", "session", "token")

# Extra parameters ignored when deciding whether a redirect points back at itself.
REDIRECT_IGNORED_PARAMS: Tuple[str, ...] = ("r",)

DEFAULT_DATA_DIR = Path.home() / ".local" / "share" / "linkaudit"


@dataclass
class CrawlSettings:
    """Tunables for one crawl/index job.

    ``max_pages`` of 0 means no page budget. ``locale_filter`` is ``None`` for
    the whole site, ``"default"`` for pages without a locale prefix, or one or
    more comma-separated locale codes.
    """

    start_url: str = ""
    max_pages: int = 500
    concurrency: int = 5
    locale_filter: Optional[str] = None
    include_subdomains: bool = False
    exclude_locale_switcher: bool = True
    known_locales: Tuple[str, ...] = KNOWN_LOCALES

    # Navigation
    navigation_timeout: float = 60.0
    navigation_attempts: int = 2
    retry_backoff: float = 2.0
    settle_delay: float = 0.8
    page_delay: float = 0.2
    idle_poll: float = 0.2
    worker_stagger: float = 0.2

    # Link health
    check_links: bool = True
    health_max_links: int = 200
    health_batch_size: int = 10
    health_batch_delay: float = 0.1
    head_timeout: float = 8.0
    get_timeout: float = 10.0
    health_attempts: int = 1
    timeout_is_healthy: bool = True

    headless: bool = True
    # text mode: skip images, fonts and stylesheets while rendering
    block_resources: bool = True

    def __post_init__(self) -> None:
        codes = [code.lower() for code in self.known_locales]
        for code in self.scope_codes():
            if code != "default" and code not in codes:
                codes.append(code)
        self.known_locales = tuple(codes)

    def scope_codes(self) -> List[str]:
        """Locale codes named by ``locale_filter`` (empty for a full-site scope)."""
        if not self.locale_filter:
            return []
        return [
            part.strip().strip("/").lower()
            for part in self.locale_filter.split(",")
            if part.strip().strip("/")
        ]

    def with_overrides(self, **changes) -> "CrawlSettings":
        return replace(self, **changes)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        LOGGER.warning("Ignoring non-integer %s=%r; using %d.", name, raw, default)
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def load_settings_from_env(start_url: str = "", **overrides) -> CrawlSettings:
    """Build ``CrawlSettings`` from ``LINKAUDIT_*`` environment variables.

    Supported variables:
        LINKAUDIT_MAX_PAGES: Page budget (0 = unlimited).
        LINKAUDIT_CONCURRENCY: Number of workers.
        LINKAUDIT_HEALTH_MAX_LINKS: Unique links checked per health run.
        LINKAUDIT_CHECK_LINKS: Run the health check after indexing.
        LINKAUDIT_HEADLESS: Run the browser headless.
        LINKAUDIT_BLOCK_RESOURCES: Skip images, fonts and styles while rendering.

    Explicit keyword overrides win over the environment.
    """
    settings = CrawlSettings(
        start_url=start_url,
        max_pages=_env_int("LINKAUDIT_MAX_PAGES", 500),
        concurrency=_env_int("LINKAUDIT_CONCURRENCY", 5),
        health_max_links=_env_int("LINKAUDIT_HEALTH_MAX_LINKS", 200),
        check_links=_env_bool("LINKAUDIT_CHECK_LINKS", True),
        headless=_env_bool("LINKAUDIT_HEADLESS", True),
        block_resources=_env_bool("LINKAUDIT_BLOCK_RESOURCES", True),
    )
    if overrides:
        settings = settings.with_overrides(**overrides)
    return settings


def data_dir() -> Path:
    """Root directory for stored indexes and reports (``LINKAUDIT_DATA_DIR``)."""
    raw = os.getenv("LINKAUDIT_DATA_DIR")
    return Path(raw).expanduser() if raw else DEFAULT_DATA_DIR


def build_browser_config(settings: CrawlSettings) -> BrowserConfig:
    """Browser tuned for link extraction: no images, fonts or styles."""
    return BrowserConfig(
        headless=settings.headless,
        use_persistent_context=False,
        user_agent=USER_AGENT,
        viewport_width=1920,
        viewport_height=1080,
        ignore_https_errors=True,
        text_mode=settings.block_resources,
        light_mode=True,
        extra_args=[
            "--disable-dev-shm-usage",
            "--disable-accelerated-2d-canvas",
            "--disable-gpu",
        ],
        verbose=False,
    )


def build_extract_run_config(
    session_id: Optional[str],
    *,
    timeout: float,
    settle_delay: float = 0.8,
) -> CrawlerRunConfig:
    """Run configuration for a navigate-and-extract-links pass."""
    return CrawlerRunConfig(
        session_id=session_id,
        wait_until="domcontentloaded",
        page_timeout=int(timeout * 1000),
        delay_before_return_html=settle_delay,
        cache_mode=CacheMode.BYPASS,
        exclude_external_links=False,
        verbose=False,
        stream=False,
    )

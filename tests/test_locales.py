"""Tests for linkaudit.locales."""

from __future__ import annotations

import pytest

from linkaudit.locales import (
    classify_link,
    detect_locale,
    extract_locale,
    is_cross_locale,
    is_cross_locale_link,
    is_locale_switcher_text,
    parse_locales,
)


class TestExtractLocale:
    def test_known_prefix(self):
        assert extract_locale("https://example.com/de/kontakt") == "de"
        assert extract_locale("https://example.com/pt-br/") == "pt-br"

    def test_default_locale_is_none(self):
        assert extract_locale("https://example.com/pricing") is None
        assert extract_locale("https://example.com/") is None

    def test_fallback_regex_for_unknown_codes(self):
        assert extract_locale("https://example.com/cs/produkty") == "cs"
        assert extract_locale("https://example.com/cs/produkty", fallback=False) is None

    def test_custom_table(self):
        assert extract_locale("https://example.com/xx/a", ("xx",), fallback=False) == "xx"

    @pytest.mark.parametrize("url", ["", "::::", "https://[bad/x", "no-scheme/de/x"])
    def test_never_raises(self, url):
        assert detect_locale(url) == "default"

    def test_detect_locale_is_total(self):
        assert detect_locale("https://example.com/about") == "default"
        assert detect_locale("https://example.com/fr/") == "fr"


class TestIsCrossLocale:
    def test_properties(self):
        assert is_cross_locale(None, "de", False) is True
        assert is_cross_locale("de", "de", False) is False
        assert is_cross_locale("de", "fr", False) is True
        assert is_cross_locale("de", None, False) is True

    def test_default_to_default(self):
        assert is_cross_locale(None, None) is False
        assert is_cross_locale("default", "default") is False

    def test_default_has_prefix(self):
        assert is_cross_locale("en", "de", True) is True
        assert is_cross_locale("en", "en", True) is False
        assert is_cross_locale(None, "de", True) is False
        assert is_cross_locale("de", None, True) is True

    def test_url_level_ignores_external_and_assets(self):
        root = "example.com"
        assert is_cross_locale_link("https://example.com/", "https://example.com/de/x", root)
        assert not is_cross_locale_link("https://example.com/", "https://other.com/de/x", root)
        assert not is_cross_locale_link("https://example.com/", "https://example.com/de/a.pdf", root)


def test_classify_link():
    assert classify_link("https://example.com/fr/a", "example.com") == "fr"
    assert classify_link("https://example.com/a", "example.com") == "default"
    assert classify_link("https://cdn.example.com/a", "example.com") == "external"


def test_parse_locales():
    assert parse_locales("/de/, FR ,es,de") == ["de", "fr", "es"]
    assert parse_locales(None) == []


class TestLocaleSwitcherText:
    @pytest.mark.parametrize(
        "text",
        ["Deutsch", "English", "EN", "de-ch", "🇩🇪", "🇫🇷 Français", "Español (España)", "日本語"],
    )
    def test_switcher_texts(self, text):
        assert is_locale_switcher_text(text)

    @pytest.mark.parametrize(
        "text",
        ["Contact us", "Pricing", "Learn more about German engineering", "", None],
    )
    def test_ordinary_texts(self, text):
        assert not is_locale_switcher_text(text)

"""Tests for linkaudit.search."""

from __future__ import annotations

import pytest

from linkaudit.errors import ConfigurationError
from linkaudit.search import (
    CROSS_LOCALE,
    PATTERN_MATCH,
    LinkPattern,
    SearchMode,
    SearchQuery,
    group_by_source,
    parse_patterns,
    search,
)

A = "https://example.com/a"
B = "https://example.com/b"


class TestPatterns:
    def test_substring_is_case_insensitive(self):
        assert LinkPattern.parse("Contact").matches("https://example.com/CONTACT-us")

    def test_regex(self):
        pattern = LinkPattern.parse(r"/pricing-v\d/")
        assert pattern.matches("https://example.com/pricing-v2")
        assert not pattern.matches("https://example.com/pricing")

    def test_invalid_regex_falls_back_to_substring(self):
        pattern = LinkPattern.parse("/[unclosed/")
        assert pattern.matches("https://example.com/[unclosed/x")

    def test_parse_patterns_splits_on_commas(self):
        assert len(parse_patterns(" contact , about ,, ")) == 2
        assert parse_patterns(None) == []


class TestQuery:
    def test_pattern_mode_requires_pattern(self):
        with pytest.raises(ConfigurationError):
            SearchQuery(mode="pattern")

    def test_unknown_mode(self):
        with pytest.raises(ConfigurationError):
            SearchQuery(mode="fuzzy", pattern="x")

    def test_normalises_locales(self):
        query = SearchQuery(mode="crosslocale", source_locale="/DE/", other_locales="fr, /es/")
        assert query.mode is SearchMode.crosslocale
        assert query.source_locale == "de"
        assert query.other_locales == ["fr", "es"]


def test_contact_about_pattern_search(make_index, link):
    contact = link("https://example.com/contact", "Contact us")
    home = link("https://example.com/", "Home")
    about = link("https://example.com/about", "About")
    index = make_index({A: [contact, home], B: [about]})

    findings = search(index, SearchQuery(mode="pattern", pattern="contact,about"))

    assert [(f.source_url, f.target_url) for f in findings] == [
        (A, "https://example.com/contact"),
        (B, "https://example.com/about"),
    ]
    assert all(f.finding_type == PATTERN_MATCH for f in findings)
    grouped = group_by_source(findings)
    assert list(grouped) == [A, B]
    assert [f.anchor_text for f in grouped[A]] == ["Contact us"]


def test_pattern_matches_anchor_text(make_index, link):
    index = make_index({A: [link("https://example.com/x", "Get in touch")]})
    assert len(search(index, SearchQuery(pattern="touch"))) == 1


class TestCrossLocale:
    def _index(self, make_index, link):
        return make_index(
            {
                "https://example.com/": [
                    link("https://example.com/de/", "Deutsch", locale="de"),
                    link("https://example.com/de/preise", "Preise", locale="de"),
                    link("https://example.com/fr/tarifs", "Tarifs", locale="fr"),
                    link("https://example.com/about", "About"),
                    link("https://other.org/de/", "Partner", external=True),
                    link("https://example.com/de/brochure.pdf", "Brochure", locale="de"),
                ],
                "https://example.com/de/start": [
                    link("https://example.com/pricing", "Pricing"),
                    link("https://example.com/de/kontakt", "Kontakt", locale="de"),
                ],
            },
            locales={"https://example.com/de/start": "de"},
        )

    def test_switcher_excluded_by_default(self, make_index, link):
        query = SearchQuery(mode="crosslocale")
        findings = search(self._index(make_index, link), query)
        assert [f.target_url for f in findings] == [
            "https://example.com/de/preise",
            "https://example.com/fr/tarifs",
            "https://example.com/pricing",
        ]
        assert all(f.finding_type == CROSS_LOCALE and f.cross_locale for f in findings)

    def test_switcher_included_when_filter_off(self, make_index, link):
        query = SearchQuery(mode="crosslocale", exclude_locale_switcher=False)
        targets = [f.target_url for f in search(self._index(make_index, link), query)]
        assert "https://example.com/de/" in targets

    def test_source_locale_filter(self, make_index, link):
        query = SearchQuery(mode="crosslocale", source_locale="de")
        findings = search(self._index(make_index, link), query)
        assert [(f.source_locale, f.target_locale) for f in findings] == [("de", "default")]

    def test_default_source_locale(self, make_index, link):
        query = SearchQuery(mode="crosslocale", source_locale="default", other_locales="fr")
        findings = search(self._index(make_index, link), query)
        assert [f.target_url for f in findings] == ["https://example.com/fr/tarifs"]

    def test_crosslocale_with_pattern_is_and(self, make_index, link):
        query = SearchQuery(mode="crosslocale", pattern="preise")
        findings = search(self._index(make_index, link), query)
        assert [f.target_url for f in findings] == ["https://example.com/de/preise"]

    def test_both_is_or(self, make_index, link):
        query = SearchQuery(mode="both", pattern="about")
        findings = search(self._index(make_index, link), query)
        types = {f.target_url: f.finding_type for f in findings}
        assert types["https://example.com/about"] == PATTERN_MATCH
        assert types["https://example.com/de/preise"] == CROSS_LOCALE
        assert len(findings) == 4

    def test_default_has_prefix(self, make_index, link):
        query = SearchQuery(mode="crosslocale", default_has_prefix=True)
        findings = search(self._index(make_index, link), query)
        assert [f.target_url for f in findings] == ["https://example.com/pricing"]


def test_finding_to_dict(make_index, link):
    index = make_index({A: [link("https://example.com/contact", "Contact")]})
    data = search(index, SearchQuery(pattern="contact"))[0].to_dict()
    assert data["sourceUrl"] == A
    assert data["findingType"] == PATTERN_MATCH
    assert data["targetLocale"] == "default"

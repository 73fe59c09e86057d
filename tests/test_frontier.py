"""Tests for linkaudit.frontier."""

from __future__ import annotations

from linkaudit.frontier import Frontier


def test_enqueue_is_idempotent():
    frontier = Frontier("https://example.com/")
    assert frontier.enqueue("/about", "https://example.com/") is True
    assert frontier.enqueue("https://example.com/about/") is False
    assert frontier.enqueue("/about#team", "https://example.com/") is False
    assert len(frontier) == 1


def test_visited_urls_are_not_requeued():
    frontier = Frontier("https://example.com/")
    frontier.enqueue("https://example.com/a")
    url = frontier.dequeue()
    frontier.mark_visited(url)
    assert frontier.is_visited("https://example.com/a")
    assert frontier.enqueue("https://example.com/a") is False
    assert frontier.dequeue() is None


def test_fifo_order():
    frontier = Frontier("https://example.com/")
    frontier.enqueue_all(["/1", "/2", "/3"], "https://example.com/")
    assert [frontier.dequeue() for _ in range(3)] == [
        "https://example.com/1",
        "https://example.com/2",
        "https://example.com/3",
    ]


def test_rejects_out_of_scope_urls():
    frontier = Frontier("https://example.com/")
    assert not frontier.enqueue("https://other.com/a")
    assert not frontier.enqueue("https://blog.example.com/a")
    assert not frontier.enqueue("https://example.com/wp-admin/options")
    assert not frontier.enqueue("https://example.com/brochure.pdf")
    assert not frontier.enqueue("mailto:sales@example.com")
    assert len(frontier) == 0


def test_subdomains_opt_in():
    frontier = Frontier("https://www.example.com/", include_subdomains=True)
    assert frontier.enqueue("https://blog.example.com/post")
    assert frontier.enqueue("https://example.com/")
    assert not frontier.enqueue("https://example.org/")


def test_locale_scope():
    frontier = Frontier("https://example.com/de/", locale_filter="de,fr")
    assert frontier.enqueue("https://example.com/de/kontakt")
    assert frontier.enqueue("https://example.com/fr/contact")
    assert not frontier.enqueue("https://example.com/es/contacto")
    assert not frontier.enqueue("https://example.com/pricing")


def test_default_locale_scope():
    frontier = Frontier("https://example.com/", locale_filter="default")
    assert frontier.enqueue("https://example.com/pricing")
    assert not frontier.enqueue("https://example.com/de/preise")


def test_seed_bypasses_scope_but_not_dedup():
    frontier = Frontier("https://example.com/de/", locale_filter="de")
    added = frontier.seed(["https://example.com/pricing", "https://example.com/pricing/", "not a url"])
    assert added == ["https://example.com/pricing"]
    assert len(frontier) == 1

"""Tests for linkaudit.reports."""

from __future__ import annotations

import csv
import io
import json

import pytest

from linkaudit.errors import ReportNotFoundError
from linkaudit.models import HealthIssue, HealthReport
from linkaudit.reports import CSV_HEADER, FIXED, IN_PROGRESS, PENDING, ReportStore


@pytest.fixture
def report():
    return HealthReport(
        broken=[
            HealthIssue("https://example.com/b", "https://example.com/gone", "Gone", status=404, occurrences=3),
            HealthIssue("https://example.com/a", "https://example.com/dead", "Dead", status=0, error="DNS"),
        ],
        redirects=[HealthIssue("https://example.com/", "https://example.com/old", "Old", status=301)],
        cross_locale=[
            HealthIssue(
                "https://example.com/",
                "https://example.com/de/preise",
                "Preise",
                source_locale=None,
                target_locale="de",
            )
        ],
        healthy_count=12,
        checked_count=16,
        total_unique_links=20,
    )


@pytest.fixture
def store(tmp_path):
    return ReportStore(tmp_path)


def _issue_ids(data, key):
    return [issue["id"] for issue in data["report"][key]]


def test_save_report_initialises_triage(store, report, tmp_path):
    data = store.save_report("example_com", report, locale="de")

    assert data["id"].startswith("example_com_")
    assert data["locale"] == "de"
    assert data["issueStats"] == {PENDING: 4, IN_PROGRESS: 0, FIXED: 0}
    broken = data["report"]["broken"][0]
    assert broken["status"] == PENDING
    assert broken["httpStatus"] == 404
    assert broken["notes"] == ""
    assert data["report"]["healthy"] == 12
    assert len(set(_issue_ids(data, "broken") + _issue_ids(data, "redirects"))) == 3
    assert (tmp_path / f"{data['id']}.json").is_file()
    assert store.load_report(data["id"]) == data


def test_full_scope_locale(store, report):
    assert store.save_report("example_com", report.to_dict())["locale"] == "full"


def test_update_issue_moves_stats(store, report):
    data = store.save_report("example_com", report)
    issue_id = _issue_ids(data, "redirects")[0]

    stats = store.update_issue(data["id"], issue_id, status=IN_PROGRESS)
    assert stats == {PENDING: 3, IN_PROGRESS: 1, FIXED: 0}

    stats = store.update_issue(data["id"], issue_id, status=FIXED, notes="301 added upstream")
    assert stats == {PENDING: 3, IN_PROGRESS: 0, FIXED: 1}

    saved = store.load_report(data["id"])["report"]["redirects"][0]
    assert (saved["status"], saved["notes"], saved["httpStatus"]) == (FIXED, "301 added upstream", 301)


def test_notes_only_update_keeps_stats(store, report):
    data = store.save_report("example_com", report)
    issue_id = _issue_ids(data, "crossLocale")[0]

    stats = store.update_issue(data["id"], issue_id, notes="intentional")

    assert stats[PENDING] == 4
    assert store.load_report(data["id"])["report"]["crossLocale"][0]["notes"] == "intentional"


def test_update_rejects_unknown_status(store, report):
    data = store.save_report("example_com", report)
    with pytest.raises(ValueError):
        store.update_issue(data["id"], _issue_ids(data, "broken")[0], status="done")


def test_update_unknown_issue_or_report(store, report):
    data = store.save_report("example_com", report)
    with pytest.raises(ReportNotFoundError) as excinfo:
        store.update_issue(data["id"], "nope", status=FIXED)
    assert excinfo.value.issue_id == "nope"
    with pytest.raises(ReportNotFoundError):
        store.update_issue("example_com_0", "nope", status=FIXED)


def test_list_reports_newest_first(store, report, tmp_path):
    older = store.save_report("example_com", report)
    path = tmp_path / f"{older['id']}.json"
    stored = json.loads(path.read_text(encoding="utf-8"))
    stored["createdAt"] = "2020-01-01T00:00:00+00:00"
    path.write_text(json.dumps(stored), encoding="utf-8")
    newer = store.save_report("shop_example_com", HealthReport(healthy_count=3))

    summaries = store.list_reports()

    assert [item["site"] for item in summaries] == ["shop_example_com", "example_com"]
    assert summaries[0]["id"] == newer["id"]
    assert summaries[1]["summary"] == {"broken": 2, "redirects": 1, "crossLocale": 1, "healthy": 12}


def test_delete_report(store, report):
    data = store.save_report("example_com", report)
    store.delete_report(data["id"])
    assert store.list_reports() == []
    with pytest.raises(ReportNotFoundError):
        store.load_report(data["id"])
    # deleting twice is a no-op
    store.delete_report(data["id"])


def test_export_csv(store, report):
    data = store.save_report("example_com", report)

    rows = list(csv.reader(io.StringIO(store.export_csv(data["id"]))))

    assert rows[0] == CSV_HEADER
    assert [(row[0], row[1], row[4]) for row in rows[1:]] == [
        ("https://example.com/a", "Broken", "https://example.com/dead"),
        ("https://example.com/b", "Broken", "https://example.com/gone"),
        ("https://example.com/", "Redirect", "https://example.com/old"),
        ("https://example.com/", "Cross-Locale", "https://example.com/de/preise"),
    ]
    assert rows[2][2] == PENDING
    assert rows[2][5] == "3"


def test_export_json(store, report):
    data = store.save_report("example_com", report)
    assert json.loads(store.export_json(data["id"])) == data


def test_rejects_path_like_ids(store):
    with pytest.raises(ReportNotFoundError):
        store.load_report("../etc/passwd")

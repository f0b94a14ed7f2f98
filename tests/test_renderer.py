"""Tests for renderer module."""
from wheredidisee.models import VisitRecord
from wheredidisee.renderer import format_result_count, render_empty_message, render_results
from wheredidisee.search import ScoredVisit

from conftest import DAY, NOW


def hits(count):
    return [
        ScoredVisit(
            VisitRecord(f"https://s{i}.com/", f"Page {i}", f"s{i}.com", NOW - i * DAY, 1),
            score=float(100 - i),
        )
        for i in range(count)
    ]


class TestRenderResults:
    def test_caps_displayed_results(self):
        payload = render_results(hits(150), "page", limit=100, now=NOW)
        assert payload["total"] == 150
        assert payload["shown"] == 100
        assert len(payload["results"]) == 100

    def test_keeps_order_and_fields(self):
        payload = render_results(hits(3), "page", now=NOW)
        first = payload["results"][0]
        assert [r["url"] for r in payload["results"]] == ["https://s0.com/", "https://s1.com/", "https://s2.com/"]
        assert first["title"] == "Page 0"
        assert first["score"] == 100.0
        assert first["lastVisitedRelative"] == "just now"
        assert payload["results"][2]["lastVisitedRelative"] == "2 days ago"

    def test_summary(self):
        assert render_results(hits(3), "page", now=NOW)["summary"] == '3 results for "page"'
        assert render_results(hits(1), "", now=NOW)["summary"] == "1 page tracked"

    def test_empty(self):
        payload = render_results([], "zzz", now=NOW)
        assert payload["total"] == 0
        assert payload["results"] == []


class TestMessages:
    def test_no_history(self):
        assert render_empty_message("x", 0).startswith("No history yet")

    def test_no_match(self):
        assert render_empty_message("x", 10) == "No pages found matching your search."

    def test_result_count(self):
        assert format_result_count(0, "git") == '0 results for "git"'
        assert format_result_count(2, "  ") == "2 pages tracked"

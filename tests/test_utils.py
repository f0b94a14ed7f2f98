"""Tests for utils module."""
import re

from wheredidisee.utils import (
    compile_patterns,
    extract_domain,
    format_relative_time,
    is_excluded_url,
    is_valid_url,
    sanitize_title,
)


NOW = 1_700_000_000_000
MINUTE = 60 * 1000
HOUR = 60 * MINUTE
DAY = 24 * HOUR


class TestUrls:
    def test_valid_urls(self):
        assert is_valid_url("https://example.com")
        assert is_valid_url("http://example.com")

    def test_invalid_urls(self):
        assert not is_valid_url("chrome://settings")
        assert not is_valid_url("ftp://example.com")
        assert not is_valid_url("")
        assert not is_valid_url(None)
        assert not is_valid_url(42)

    def test_extract_domain(self):
        assert extract_domain("https://news.ycombinator.com/item?id=1") == "news.ycombinator.com"
        assert extract_domain("http://localhost:8000/x") == "localhost"

    def test_extract_domain_failure(self):
        assert extract_domain("") == ""
        assert extract_domain("not a url") == ""
        assert extract_domain(None) == ""


class TestSanitizeTitle:
    def test_trims(self):
        assert sanitize_title("  Hello  ", "https://a.com") == "Hello"

    def test_long_title_truncated(self):
        title = sanitize_title("a" * 300, "https://a.com")
        assert len(title) == 200
        assert title.endswith("...")

    def test_falls_back_to_url(self):
        assert sanitize_title("", "https://a.com/page") == "https://a.com/page"
        assert sanitize_title("   ", "https://a.com/page") == "https://a.com/page"

    def test_long_url_fallback_truncated(self):
        url = "https://a.com/" + "p" * 200
        title = sanitize_title(None, url)
        assert len(title) == 100
        assert title.endswith("...")

    def test_untitled(self):
        assert sanitize_title(None, None) == "Untitled Page"


class TestExcludedUrls:
    def test_matches_patterns(self):
        patterns = [re.compile(r"^chrome://"), re.compile(r"^about:")]
        assert is_excluded_url("chrome://extensions", patterns)
        assert is_excluded_url("about:blank", patterns)
        assert not is_excluded_url("https://example.com", patterns)

    def test_substring_pattern(self):
        patterns = [re.compile(r"bank")]
        assert is_excluded_url("https://mybank.example.com/login", patterns)

    def test_empty_url(self):
        assert not is_excluded_url("", [re.compile(".*")])

    def test_compile_skips_invalid(self):
        patterns = compile_patterns([r"^ok", r"([unclosed"])
        assert len(patterns) == 1


class TestRelativeTime:
    def test_just_now(self):
        assert format_relative_time(NOW - 10 * 1000, NOW) == "just now"

    def test_future_is_just_now(self):
        assert format_relative_time(NOW + HOUR, NOW) == "just now"

    def test_minutes(self):
        assert format_relative_time(NOW - MINUTE, NOW) == "1 minute ago"
        assert format_relative_time(NOW - 5 * MINUTE, NOW) == "5 minutes ago"

    def test_hours(self):
        assert format_relative_time(NOW - 3 * HOUR, NOW) == "3 hours ago"

    def test_days(self):
        assert format_relative_time(NOW - 2 * DAY, NOW) == "2 days ago"

    def test_months(self):
        assert format_relative_time(NOW - 65 * DAY, NOW) == "2 months ago"

    def test_years(self):
        assert format_relative_time(NOW - 400 * DAY, NOW) == "1 year ago"

    def test_invalid(self):
        assert format_relative_time(None, NOW) == "unknown"
        assert format_relative_time(-1, NOW) == "unknown"
        assert format_relative_time("x", NOW) == "unknown"

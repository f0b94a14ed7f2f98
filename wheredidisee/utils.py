"""Helpers for turning raw tab data into history entries."""
import re
import sys
import time
from typing import Iterable, Optional, Pattern
from urllib.parse import urlsplit


MAX_TITLE_LENGTH = 200
MAX_URL_TITLE_LENGTH = 100
ELLIPSIS = "..."

MS_PER_DAY = 1000 * 60 * 60 * 24


def now_ms() -> int:
    """Current time as integer milliseconds since the epoch."""
    return int(time.time() * 1000)


def is_valid_url(url: object) -> bool:
    """Check that a URL is http or https.

    Args:
        url: URL to validate

    Returns:
        True if the URL starts with http:// or https://
    """
    if not url or not isinstance(url, str):
        return False
    return url.startswith("http://") or url.startswith("https://")


def extract_domain(url: object) -> str:
    """Extract the host component of a URL.

    Args:
        url: Full URL

    Returns:
        Hostname (e.g. "github.com"), or empty string if it can't be parsed
    """
    if not url or not isinstance(url, str):
        return ""
    try:
        return urlsplit(url).hostname or ""
    except ValueError:
        print(f"[utils] Invalid URL for domain extraction: {url}", file=sys.stderr)
        return ""


def truncate(text: str, max_length: int) -> str:
    """Cut text to max_length, ending with an ellipsis when shortened."""
    if len(text) > max_length:
        return text[:max_length - len(ELLIPSIS)] + ELLIPSIS
    return text


def sanitize_title(title: Optional[str], url: Optional[str]) -> str:
    """Clean up a page title, falling back to the URL when it is empty.

    Args:
        title: Page title as reported by the browser
        url: Page URL (fallback)

    Returns:
        Display title, capped at 200 characters
    """
    if title and title.strip():
        return truncate(title.strip(), MAX_TITLE_LENGTH)
    if url:
        return truncate(url, MAX_URL_TITLE_LENGTH)
    return "Untitled Page"


def is_excluded_url(url: Optional[str], patterns: Iterable[Pattern[str]]) -> bool:
    """Check if a URL matches any of the excluded patterns.

    Args:
        url: URL to check
        patterns: Compiled regular expressions

    Returns:
        True if the URL should not be tracked
    """
    if not url:
        return False
    return any(pattern.search(url) for pattern in patterns)


def compile_patterns(raw_patterns: Iterable[str]) -> list:
    """Compile regex strings, skipping (and reporting) invalid ones."""
    compiled = []
    for raw in raw_patterns:
        try:
            compiled.append(re.compile(raw))
        except re.error as e:
            print(f"[utils] Invalid exclusion pattern {raw!r}: {e}", file=sys.stderr)
    return compiled


def format_relative_time(timestamp: object, now: Optional[int] = None) -> str:
    """Format an epoch-ms timestamp as relative time (e.g. "2 hours ago")."""
    if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)) or timestamp <= 0:
        return "unknown"

    diff = (now if now is not None else now_ms()) - timestamp
    if diff < 0:
        return "just now"

    seconds = int(diff // 1000)
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24
    months = days // 30
    years = days // 365

    def plural(count: int, unit: str) -> str:
        return f"{count} {unit}{'' if count == 1 else 's'} ago"

    if seconds < 60:
        return "just now"
    if minutes < 60:
        return plural(minutes, "minute")
    if hours < 24:
        return plural(hours, "hour")
    if days < 30:
        return plural(days, "day")
    if months < 12:
        return plural(months, "month")
    return plural(years, "year")

"""Typed records for page history.

Every entry that reaches the store or the search engine goes through the
factories here, so both agree on what a valid record is.
"""
import math
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from wheredidisee.utils import MAX_TITLE_LENGTH, is_valid_url, now_ms, truncate


class RecordValidationError(ValueError):
    """Raised when a page visit or stored record is malformed."""


def _require_text(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise RecordValidationError(f"'{key}' must be a non-empty string")
    return value


def _require_url(data: Mapping[str, Any]) -> str:
    url = _require_text(data, "url")
    if not is_valid_url(url):
        raise RecordValidationError(f"'url' must start with http:// or https://: {url}")
    return url


def _require_int(data: Mapping[str, Any], key: str, minimum: int) -> int:
    value = data.get(key)
    # bool is an int subclass; never accept it as a count or timestamp
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise RecordValidationError(f"'{key}' must be a number")
    if not math.isfinite(value) or value < minimum:
        raise RecordValidationError(f"'{key}' must be >= {minimum}")
    return int(value)


def _clean_title(title: str) -> str:
    return truncate(title.strip(), MAX_TITLE_LENGTH)


@dataclass
class PageVisit:
    """A validated candidate for HistoryStore.upsert."""
    url: str
    title: str
    domain: str
    timestamp: int

    @classmethod
    def from_candidate(cls, candidate: Mapping[str, Any]) -> "PageVisit":
        """Validate raw visit data ({title, url, domain, timestamp}).

        A missing timestamp means "now".

        Raises:
            RecordValidationError: If any field is missing or malformed
        """
        if not isinstance(candidate, Mapping):
            raise RecordValidationError("page visit must be a mapping")

        url = _require_url(candidate)
        title = _require_text(candidate, "title")
        domain = _require_text(candidate, "domain")

        if candidate.get("timestamp") is None:
            timestamp = now_ms()
        else:
            timestamp = _require_int(candidate, "timestamp", 0)

        return cls(url=url, title=_clean_title(title), domain=domain, timestamp=timestamp)


@dataclass
class VisitRecord:
    """Accumulated visit history for one distinct URL."""
    url: str
    title: str
    domain: str
    last_visited: int
    visit_count: int = 1

    @classmethod
    def from_visit(cls, visit: PageVisit) -> "VisitRecord":
        """Create a first-seen record from a visit."""
        return cls(
            url=visit.url,
            title=visit.title,
            domain=visit.domain,
            last_visited=visit.timestamp,
            visit_count=1,
        )

    def record_visit(self, visit: PageVisit) -> None:
        """Fold another visit of the same URL into this record.

        The title always follows the latest visit. The domain is kept from
        creation.
        """
        self.title = visit.title
        self.last_visited = visit.timestamp
        self.visit_count += 1

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "VisitRecord":
        """Parse a persisted record (camelCase keys).

        Raises:
            RecordValidationError: If the record is malformed
        """
        if not isinstance(data, Mapping):
            raise RecordValidationError("record must be a mapping")

        return cls(
            url=_require_url(data),
            title=_clean_title(_require_text(data, "title")),
            domain=_require_text(data, "domain"),
            last_visited=_require_int(data, "lastVisited", 0),
            visit_count=_require_int(data, "visitCount", 1),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted/wire shape."""
        return {
            "title": self.title,
            "url": self.url,
            "domain": self.domain,
            "lastVisited": self.last_visited,
            "visitCount": self.visit_count,
        }


def coerce_record(value: Any) -> Optional[VisitRecord]:
    """Return value as a VisitRecord, or None if it isn't a valid one."""
    if isinstance(value, VisitRecord):
        if value.title and value.domain:
            return value
        return None
    try:
        return VisitRecord.from_dict(value)
    except RecordValidationError:
        return None

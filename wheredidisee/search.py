"""Search engine module for page history."""
import sys
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Protocol

from wheredidisee.models import VisitRecord, coerce_record
from wheredidisee.utils import MS_PER_DAY, now_ms


# Relevance bonuses. They stack: an exact title match also starts with and
# contains the query, so it collects all three title bonuses.
EXACT_TITLE_BONUS = 1000
TITLE_PREFIX_BONUS = 500
TITLE_CONTAINS_BONUS = 100
DOMAIN_PREFIX_BONUS = 50
DOMAIN_CONTAINS_BONUS = 25

VISIT_BONUS_PER_VISIT = 5
VISIT_BONUS_CAP = 50

RECENCY_WINDOW_DAYS = 30
RECENCY_DIVISOR = 3


@dataclass
class ScoredVisit:
    """A search hit: the record plus its relevance score.

    score is None when no scoring was done (empty query).
    """
    record: VisitRecord
    score: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        result = self.record.to_dict()
        result["score"] = self.score
        return result


class SearchEngine(Protocol):
    """Protocol for search engines to allow extensibility."""

    def search(
        self,
        query: str,
        records: Mapping[str, Any],
        now: Optional[int] = None,
    ) -> List[ScoredVisit]:
        """Search a history snapshot based on query.

        Args:
            query: Search query string
            records: Snapshot mapping of URL -> record
            now: Reference time in epoch ms (defaults to the current time)

        Returns:
            List of matching records, sorted by relevance
        """
        ...


class RankedSearchEngine:
    """Substring search over titles and domains, ranked by relevance and recency."""

    def _valid_records(self, records: Mapping[str, Any]) -> List[VisitRecord]:
        """Coerce snapshot values to records, skipping corrupt entries."""
        valid = []
        for url, value in records.items():
            record = coerce_record(value)
            if record is None:
                print(f"[Search] Skipping invalid page object: {url!r}", file=sys.stderr)
                continue
            valid.append(record)
        return valid

    def score_record(self, query: str, record: VisitRecord, now: int) -> float:
        """Score a record against a normalized (lowercased, trimmed) query.

        Args:
            query: Normalized query
            record: Record to score
            now: Reference time in epoch ms

        Returns:
            Relevance score; higher is more relevant
        """
        title = record.title.lower()
        domain = record.domain.lower()
        score: float = 0

        if title == query:
            score += EXACT_TITLE_BONUS
        if title.startswith(query):
            score += TITLE_PREFIX_BONUS
        if query in title:
            score += TITLE_CONTAINS_BONUS
        if domain.startswith(query):
            score += DOMAIN_PREFIX_BONUS
        if query in domain:
            score += DOMAIN_CONTAINS_BONUS

        # Frequently visited pages rank higher, but can't dominate
        score += min(record.visit_count * VISIT_BONUS_PER_VISIT, VISIT_BONUS_CAP)

        # 0-10 points for visits within the last 30 days
        age_days = (now - record.last_visited) / MS_PER_DAY
        if age_days < RECENCY_WINDOW_DAYS:
            score += (RECENCY_WINDOW_DAYS - age_days) / RECENCY_DIVISOR

        return score

    def search(
        self,
        query: str,
        records: Mapping[str, Any],
        now: Optional[int] = None,
    ) -> List[ScoredVisit]:
        """Search a history snapshot.

        Args:
            query: Search query string (case-insensitive substring)
            records: Snapshot mapping of URL -> VisitRecord (or persisted dict)
            now: Reference time in epoch ms (defaults to the current time)

        Returns:
            Every match, highest score first (ties: most recent first). An
            empty query returns every record, most recent first, unscored.
        """
        if not isinstance(records, Mapping):
            print(f"[Search] Invalid records snapshot: {type(records).__name__}", file=sys.stderr)
            return []

        valid = self._valid_records(records)

        if not isinstance(query, str) or not query.strip():
            valid.sort(key=lambda r: r.last_visited, reverse=True)
            return [ScoredVisit(record) for record in valid]

        normalized = query.strip().lower()
        if now is None:
            now = now_ms()

        results = []
        for record in valid:
            if normalized in record.title.lower() or normalized in record.domain.lower():
                results.append(ScoredVisit(record, self.score_record(normalized, record, now)))

        results.sort(key=lambda hit: (hit.score, hit.record.last_visited), reverse=True)

        return results

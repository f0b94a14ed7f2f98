"""Formatting search results for display."""
from typing import Any, Dict, List, Optional, Sequence

from wheredidisee.search import ScoredVisit
from wheredidisee.utils import format_relative_time


DEFAULT_MAX_RESULTS = 100


def render_results(
    results: Sequence[ScoredVisit],
    query: str,
    limit: int = DEFAULT_MAX_RESULTS,
    now: Optional[int] = None,
) -> Dict[str, Any]:
    """Build the display payload for a ranked result list.

    Args:
        results: Ranked results from the search engine
        query: The query that produced them
        limit: Maximum number of results shown
        now: Reference time in epoch ms for relative times

    Returns:
        Dict with 'query', 'summary', 'total', 'shown' and 'results' keys
    """
    shown: List[Dict[str, Any]] = []
    for hit in results[:max(limit, 0)]:
        item = hit.to_dict()
        item["lastVisitedRelative"] = format_relative_time(hit.record.last_visited, now)
        shown.append(item)

    return {
        "query": query,
        "summary": format_result_count(len(results), query),
        "total": len(results),
        "shown": len(shown),
        "results": shown,
    }


def render_empty_message(query: str, history_size: int) -> str:
    """Message for an empty result list."""
    if history_size == 0:
        return "No history yet. Browse some pages and they will show up here."
    if query and query.strip():
        return "No pages found matching your search."
    return "No pages to show."


def format_result_count(count: int, query: str) -> str:
    """Header line above the results, e.g. '3 results for "git"'."""
    if query and query.strip():
        return f'{count} result{"" if count == 1 else "s"} for "{query}"'
    return f'{count} page{"" if count == 1 else "s"} tracked'

"""Turns browser tab events into history upserts."""
import inspect
import sys
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Union

from wheredidisee.config import Config, get_config
from wheredidisee.history_store import HistoryStore
from wheredidisee.utils import extract_domain, is_excluded_url, is_valid_url, now_ms, sanitize_title


VisitHook = Callable[[Dict[str, Any]], Union[None, Awaitable[None]]]


class VisitTracker:
    """Filters tab data and records qualifying page visits.

    Only http/https pages are tracked; excluded URL patterns and incognito
    tabs are skipped.
    """

    def __init__(
        self,
        store: HistoryStore,
        config: Optional[Config] = None,
        on_visit: Optional[VisitHook] = None,
    ):
        self.store = store
        self.config = config or get_config()
        self.on_visit = on_visit

    def build_visit(self, tab: Mapping[str, Any], timestamp: Optional[int] = None) -> Optional[Dict[str, Any]]:
        """Extract page data from a tab, or None if it shouldn't be tracked.

        Args:
            tab: Tab dict with 'url', 'title' and optional 'incognito'
            timestamp: Visit time in epoch ms (defaults to now)
        """
        if not isinstance(tab, Mapping):
            return None

        url = tab.get("url")
        if not url or not is_valid_url(url):
            return None

        if is_excluded_url(url, self.config.excluded_patterns):
            return None

        if tab.get("incognito"):
            return None

        domain = extract_domain(url)
        if not domain:
            print(f"[VisitTracker] Warning: failed to extract domain from URL: {url}", file=sys.stderr)
            return None

        return {
            "title": sanitize_title(tab.get("title"), url),
            "url": url,
            "domain": domain,
            "timestamp": timestamp if timestamp is not None else now_ms(),
        }

    async def process_tab(self, tab: Mapping[str, Any]) -> bool:
        """Record a visit for a loaded tab.

        Returns:
            True if a visit was saved
        """
        try:
            visit = self.build_visit(tab)
            if visit is None:
                return False

            saved = await self.store.upsert(visit)
        except Exception as e:
            print(f"[VisitTracker] Error processing page visit: {e}", file=sys.stderr)
            return False

        if saved and self.on_visit is not None:
            try:
                result = self.on_visit(visit)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                print(f"[VisitTracker] Visit hook failed: {e}", file=sys.stderr)
        return saved

    async def handle_event(self, event: Mapping[str, Any]) -> bool:
        """Handle a tab event forwarded by the browser extension.

        'tab_updated' counts only once the page has finished loading;
        'tab_activated' counts whenever the user switches to a tab.
        """
        event_type = event.get("type")
        tab = event.get("tab") or {}

        if event_type == "tab_updated":
            if event.get("status") != "complete":
                return False
            return await self.process_tab(tab)

        if event_type == "tab_activated":
            return await self.process_tab(tab)

        return False

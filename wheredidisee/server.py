"""MCP server for searching personal page history."""
import json
import sys
from typing import Any, Dict, List, Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

from wheredidisee.cloud_sync import CloudSync
from wheredidisee.config import get_config
from wheredidisee.debounce import Debouncer
from wheredidisee.history_store import close_history_store, get_history_store
from wheredidisee.page_visits import VisitTracker
from wheredidisee.renderer import render_empty_message, render_results
from wheredidisee.search import RankedSearchEngine, SearchEngine
from wheredidisee.sheets_sync import GoogleSheetsSync, SheetsSession
from wheredidisee.supabase_sync import SupabaseSession, SupabaseSync
from wheredidisee.visit_bridge import VisitBridge


# Global state
_search_engine: SearchEngine = RankedSearchEngine()
_bridge: Optional[VisitBridge] = None
_sync_debouncer: Optional[Debouncer] = None


def _text(text: str) -> List[TextContent]:
    return [TextContent(type="text", text=text)]


def _json(data: Any) -> List[TextContent]:
    return _text(json.dumps(data, indent=2))


def get_bridge() -> Optional[VisitBridge]:
    """Get the running extension bridge, or None if it was never started."""
    return _bridge


async def _run_sync(sync: CloudSync) -> List[TextContent]:
    result = await sync.sync()
    return _json(result.to_dict())


async def get_supabase_sync() -> Optional[SupabaseSync]:
    """Build a Supabase sync adapter from config, or None if not configured."""
    config = get_config()
    session = SupabaseSession.from_config(config)
    if session is None:
        return None
    store = await get_history_store()
    return SupabaseSync(store, session, timeout=config.sync.request_timeout)


async def _background_sync() -> None:
    sync = await get_supabase_sync()
    if sync is None:
        return
    result = await sync.sync_to_cloud()
    if result.success:
        print(f"[Sync] Background sync completed: {result.message}", file=sys.stderr)
    else:
        print(f"[Sync] Background sync failed: {result.message}", file=sys.stderr)


def schedule_background_sync(_visit: Dict[str, Any]) -> None:
    """Visit hook: push to the cloud once visits stop arriving for a while."""
    global _sync_debouncer

    config = get_config()
    if not config.sync.background_sync:
        return
    if _sync_debouncer is None:
        _sync_debouncer = Debouncer(config.sync.debounce_seconds, name="Sync")
    _sync_debouncer.schedule(_background_sync)


async def get_visit_tracker() -> VisitTracker:
    store = await get_history_store()
    return VisitTracker(store, get_config(), on_visit=schedule_background_sync)


# ============================================================================
# Tool handlers
# ============================================================================

async def health_check_tool() -> List[TextContent]:
    store = await get_history_store()
    history = await store.read_all()
    bridge = get_bridge()
    return _json({
        "status": "ok",
        "pages_tracked": len(history),
        "sync_enabled": await store.is_sync_enabled(),
        "bridge_running": bool(bridge and bridge.is_running),
        "extension_connected": bool(bridge and bridge.is_connected),
    })


async def search_history_tool(query: str, limit: Optional[int] = None) -> List[TextContent]:
    """Tool handler for search_history.

    Args:
        query: Search query string (empty lists the most recent pages)
        limit: Maximum number of results shown

    Returns:
        List of TextContent with ranked results
    """
    store = await get_history_store()
    snapshot = await store.read_all()

    results = _search_engine.search(query, snapshot)

    if not results:
        return _text(render_empty_message(query, len(snapshot)))

    if limit is None:
        limit = get_config().search.max_results

    return _json(render_results(results, query, limit=limit))


async def get_page_tool(url: str) -> List[TextContent]:
    store = await get_history_store()
    record = await store.read_one(url)
    if record is None:
        return _text(f"No history for URL: {url}")
    return _json(record.to_dict())


async def record_visit_tool(url: str, title: str = "", incognito: bool = False) -> List[TextContent]:
    tracker = await get_visit_tracker()
    saved = await tracker.process_tab({"url": url, "title": title, "incognito": incognito})
    if not saved:
        return _text(f"Visit not recorded (filtered or invalid): {url}")
    record = await tracker.store.read_one(url)
    return _json({"recorded": True, "page": record.to_dict() if record else None})


async def clear_history_tool(confirm: bool) -> List[TextContent]:
    if not confirm:
        return _text("Refusing to clear history without confirm=true. This cannot be undone.")
    store = await get_history_store()
    if not await store.clear():
        return _text("Error: failed to clear history")
    return _text("History cleared.")


async def get_sync_status_tool() -> List[TextContent]:
    store = await get_history_store()
    config = get_config()
    return _json({
        "sync_enabled": await store.is_sync_enabled(),
        "google_sheets_configured": SheetsSession.from_config(config) is not None,
        "supabase_configured": SupabaseSession.from_config(config) is not None,
        "background_sync": config.sync.background_sync,
    })


async def set_sync_enabled_tool(enabled: bool) -> List[TextContent]:
    if not enabled:
        sync = await get_supabase_sync()
        if sync is not None:
            ok = await sync.sign_out()
        else:
            ok = await (await get_history_store()).set_sync_enabled(False)
    else:
        ok = await (await get_history_store()).set_sync_enabled(True)

    if not ok:
        return _text("Error: failed to update sync setting")
    return _text(f"Sync {'enabled' if enabled else 'disabled'}.")


async def sync_to_sheets_tool() -> List[TextContent]:
    config = get_config()
    session = SheetsSession.from_config(config)
    if session is None:
        return _text("Google Sheets sync is not configured (set WDIST_GOOGLE_TOKEN).")
    store = await get_history_store()
    return await _run_sync(GoogleSheetsSync(store, session, timeout=config.sync.request_timeout))


async def sync_to_cloud_tool() -> List[TextContent]:
    sync = await get_supabase_sync()
    if sync is None:
        return _text("Supabase sync is not configured (set WDIST_SUPABASE_URL and WDIST_SUPABASE_ANON_KEY).")
    return await _run_sync(sync)


async def sync_from_cloud_tool() -> List[TextContent]:
    sync = await get_supabase_sync()
    if sync is None:
        return _text("Supabase sync is not configured (set WDIST_SUPABASE_URL and WDIST_SUPABASE_ANON_KEY).")
    result = await sync.sync_from_cloud()
    return _json(result.to_dict())


# ============================================================================
# Server
# ============================================================================

_NO_ARGS = {"type": "object", "properties": {}}


def create_server() -> Server:
    """Create and configure the MCP server.

    Returns:
        Configured Server instance
    """
    server = Server("where-did-i-see-this")

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        """List available tools."""
        return [
            Tool(
                name="health_check",
                description="Report server status: pages tracked, sync flag and extension bridge state.",
                inputSchema=_NO_ARGS,
            ),
            Tool(
                name="search_history",
                description="Search visited pages by keyword (matches title or domain, case-insensitive). Results are ranked by relevance, visit count and recency.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "query": {
                            "type": "string",
                            "description": "Keyword to look for in page titles and domains"
                        },
                        "limit": {
                            "type": "integer",
                            "description": "Maximum number of results to show (default 100)"
                        }
                    },
                    "required": ["query"]
                }
            ),
            Tool(
                name="list_recent",
                description="List visited pages, most recent first.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "limit": {"type": "integer", "description": "Maximum number of pages to show"}
                    },
                }
            ),
            Tool(
                name="get_page",
                description="Get the history record for one exact URL.",
                inputSchema={
                    "type": "object",
                    "properties": {"url": {"type": "string", "description": "Exact page URL"}},
                    "required": ["url"]
                }
            ),
            Tool(
                name="record_visit",
                description="Record a page visit (http/https only; internal browser pages and incognito visits are ignored).",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "url": {"type": "string", "description": "Page URL"},
                        "title": {"type": "string", "description": "Page title (defaults to the URL)"},
                        "incognito": {"type": "boolean", "description": "Whether the visit was in a private window"}
                    },
                    "required": ["url"]
                }
            ),
            Tool(
                name="clear_history",
                description="Delete all page history. Irreversible; requires confirm=true.",
                inputSchema={
                    "type": "object",
                    "properties": {"confirm": {"type": "boolean", "description": "Must be true"}},
                    "required": ["confirm"]
                }
            ),
            Tool(
                name="get_sync_status",
                description="Show whether cloud sync is enabled and which targets are configured.",
                inputSchema=_NO_ARGS,
            ),
            Tool(
                name="set_sync_enabled",
                description="Turn Supabase cloud sync on or off (off also signs out).",
                inputSchema={
                    "type": "object",
                    "properties": {"enabled": {"type": "boolean"}},
                    "required": ["enabled"]
                }
            ),
            Tool(
                name="sync_to_sheets",
                description="Export all page history to the user's Google Sheet (replaces previous rows).",
                inputSchema=_NO_ARGS,
            ),
            Tool(
                name="sync_to_cloud",
                description="Upsert all page history into the Supabase page_history table.",
                inputSchema=_NO_ARGS,
            ),
            Tool(
                name="sync_from_cloud",
                description="Merge pages from Supabase that are missing locally (local data wins).",
                inputSchema=_NO_ARGS,
            ),
        ]

    @server.call_tool()
    async def call_tool(name: str, arguments: Any) -> list[TextContent]:
        """Handle tool calls."""
        arguments = arguments or {}

        if name == "health_check":
            return await health_check_tool()
        elif name == "search_history":
            query = arguments.get("query")
            if query is None:
                return _text("Error: 'query' parameter is required")
            return await search_history_tool(query, arguments.get("limit"))
        elif name == "list_recent":
            return await search_history_tool("", arguments.get("limit"))
        elif name == "get_page":
            url = arguments.get("url", "")
            if not url:
                return _text("Error: 'url' parameter is required")
            return await get_page_tool(url)
        elif name == "record_visit":
            url = arguments.get("url", "")
            if not url:
                return _text("Error: 'url' parameter is required")
            return await record_visit_tool(
                url, arguments.get("title", ""), bool(arguments.get("incognito", False))
            )
        elif name == "clear_history":
            return await clear_history_tool(arguments.get("confirm") is True)
        elif name == "get_sync_status":
            return await get_sync_status_tool()
        elif name == "set_sync_enabled":
            return await set_sync_enabled_tool(bool(arguments.get("enabled")))
        elif name == "sync_to_sheets":
            return await sync_to_sheets_tool()
        elif name == "sync_to_cloud":
            return await sync_to_cloud_tool()
        elif name == "sync_from_cloud":
            return await sync_from_cloud_tool()
        else:
            raise ValueError(f"Unknown tool: {name}")

    return server


async def main():
    """Main entry point for the MCP server."""
    global _bridge

    config = get_config()
    server = create_server()

    if config.bridge_enabled:
        tracker = await get_visit_tracker()
        _bridge = VisitBridge(tracker.store, tracker=tracker, search_engine=_search_engine, config=config)
        await _bridge.start()

    try:
        async with stdio_server() as (read_stream, write_stream):
            initialization_options = server.create_initialization_options()
            await server.run(read_stream, write_stream, initialization_options)
    finally:
        if _bridge is not None:
            await _bridge.stop()
            _bridge = None
        if _sync_debouncer is not None:
            _sync_debouncer.cancel()
        await close_history_store()

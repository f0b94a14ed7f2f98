"""WebSocket bridge to the companion browser extension.

The extension forwards tab events (so page visits get recorded) and popup
search keystrokes (so results can be shown as the user types).

Protocol:
  Extension -> Server:  {"type": "tab_updated", "status": "complete", "tab": {...}}
                        {"type": "tab_activated", "tab": {...}}
                        {"type": "search", "id": "<id>", "query": "<text>"}
  Server -> Extension:  {"type": "search_results", "id": "<id>", "query": ..., "results": [...]}

Search requests are debounced: only the last query typed within the debounce
window gets an answer.
"""
import json
import sys
from typing import Any, Dict, Optional

import websockets
from websockets.asyncio.server import serve as ws_serve

from wheredidisee.config import Config, get_config
from wheredidisee.debounce import Debouncer
from wheredidisee.history_store import HistoryStore
from wheredidisee.page_visits import VisitTracker
from wheredidisee.renderer import render_empty_message, render_results
from wheredidisee.search import RankedSearchEngine, SearchEngine


TAB_EVENTS = ("tab_updated", "tab_activated")


class VisitBridge:
    """Async WebSocket server receiving events from the browser extension."""

    def __init__(
        self,
        store: HistoryStore,
        tracker: Optional[VisitTracker] = None,
        search_engine: Optional[SearchEngine] = None,
        config: Optional[Config] = None,
    ):
        self.config = config or get_config()
        self.port = self.config.bridge_port
        self.store = store
        self.tracker = tracker or VisitTracker(store, self.config)
        self.search_engine = search_engine or RankedSearchEngine()
        self._search_debouncer = Debouncer(self.config.search.debounce_seconds, name="VisitBridge")
        self._ws: Optional[Any] = None
        self._server: Optional[Any] = None
        self._running = False
        self._connected = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the WebSocket server (non-blocking)."""
        try:
            self._server = await ws_serve(
                self._handler,
                "localhost",
                self.port,
            )
            self._running = True
            print(
                f"[VisitBridge] WebSocket server listening on ws://localhost:{self.port}",
                file=sys.stderr,
            )
        except OSError as e:
            print(
                f"[VisitBridge] Could not start WebSocket server on port {self.port}: {e}",
                file=sys.stderr,
            )

    async def stop(self) -> None:
        """Shut down the WebSocket server."""
        self._search_debouncer.cancel()
        if self._server:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
        self._running = False
        self._connected = False
        self._ws = None

    @property
    def is_connected(self) -> bool:
        """True if the extension is currently connected."""
        return self._ws is not None and self._connected

    @property
    def is_running(self) -> bool:
        """True if the WebSocket server is up (even if no client connected)."""
        return self._running

    # ------------------------------------------------------------------
    # WebSocket handler
    # ------------------------------------------------------------------

    async def _handler(self, websocket: Any) -> None:
        """Handle a single extension connection."""
        self._ws = websocket
        self._connected = True
        print("[VisitBridge] Browser extension connected", file=sys.stderr)

        try:
            async for raw in websocket:
                try:
                    msg = json.loads(raw)
                except json.JSONDecodeError:
                    continue
                if isinstance(msg, dict):
                    await self.handle_message(msg)
        except websockets.exceptions.ConnectionClosed:
            pass
        finally:
            print("[VisitBridge] Browser extension disconnected", file=sys.stderr)
            # A newer connection may already have replaced this one
            if self._ws is websocket:
                self._search_debouncer.cancel()
                self._connected = False
                self._ws = None

    async def handle_message(self, msg: Dict[str, Any]) -> None:
        """Dispatch one decoded message from the extension."""
        msg_type = msg.get("type")

        # Keepalive / pong
        if msg_type in ("keepalive", "pong"):
            return

        if msg_type in TAB_EVENTS:
            await self.tracker.handle_event(msg)
            return

        if msg_type == "search":
            query = msg.get("query")
            self._search_debouncer.schedule(
                self.answer_search, msg.get("id"), query if isinstance(query, str) else ""
            )

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def answer_search(self, request_id: Optional[str], query: str) -> None:
        """Search a fresh snapshot and send the rendered results."""
        snapshot = await self.store.read_all()
        results = self.search_engine.search(query, snapshot)

        payload = render_results(results, query, limit=self.config.search.max_results)
        payload["type"] = "search_results"
        payload["id"] = request_id
        if not results:
            payload["message"] = render_empty_message(query, len(snapshot))

        await self._send(payload)

    async def _send(self, payload: Dict[str, Any]) -> bool:
        if not self.is_connected:
            return False
        try:
            await self._ws.send(json.dumps(payload))
            return True
        except websockets.exceptions.ConnectionClosed:
            return False

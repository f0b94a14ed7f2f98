"""Deduplicated page history, keyed by URL.

The whole url -> record mapping lives in one JSON blob and is rewritten after
every accepted visit. Public methods never raise: failures are reported on
stderr and turned into a fallback value (False, None, empty mapping).
"""
import asyncio
import json
import sys
from typing import Any, Dict, Iterable, Mapping, Optional

from wheredidisee.models import PageVisit, RecordValidationError, VisitRecord
from wheredidisee.storage import KeyValueStore


class HistoryStore:
    """Owns the persisted mapping of URL -> VisitRecord."""

    def __init__(
        self,
        storage: KeyValueStore,
        history_key: str = "page_history",
        sync_enabled_key: str = "sync_enabled",
    ):
        self.storage = storage
        self.history_key = history_key
        self.sync_enabled_key = sync_enabled_key
        # Serializes read-modify-write of the blob; one write in flight at a time
        self._write_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def _load_raw(self) -> Dict[str, Any]:
        """Read the stored mapping as decoded JSON. Storage faults propagate.

        Entries are left untouched so write paths can save them back as-is.
        """
        try:
            raw = await self.storage.get(self.history_key)
        except json.JSONDecodeError:
            print("[HistoryStore] Warning: stored history is not valid JSON, treating as empty",
                  file=sys.stderr)
            return {}

        if raw is None:
            return {}

        if not isinstance(raw, dict):
            print("[HistoryStore] Warning: invalid history data structure, treating as empty",
                  file=sys.stderr)
            return {}

        return raw

    async def _load(self) -> Dict[str, VisitRecord]:
        """Decode the stored mapping into records, skipping invalid entries."""
        history = {}
        for url, entry in (await self._load_raw()).items():
            try:
                record = VisitRecord.from_dict(entry)
            except RecordValidationError as e:
                print(f"[HistoryStore] Warning: skipping invalid record for {url!r}: {e}",
                      file=sys.stderr)
                continue
            history[url] = record

        return history

    async def _save(self, raw: Mapping[str, Any]) -> None:
        await self.storage.set(self.history_key, dict(raw))

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def upsert(self, candidate: Mapping[str, Any]) -> bool:
        """Record a page visit.

        A known URL gets the new title and timestamp and its visit count goes
        up by one. An unknown URL becomes a new record with a count of 1.

        Args:
            candidate: Dict with 'title', 'url', 'domain' and 'timestamp' (epoch ms)

        Returns:
            True if saved, False on invalid input or storage failure
        """
        try:
            visit = PageVisit.from_candidate(candidate)
        except RecordValidationError as e:
            print(f"[HistoryStore] Invalid page data: {e}", file=sys.stderr)
            return False

        try:
            async with self._write_lock:
                raw = await self._load_raw()

                try:
                    record = VisitRecord.from_dict(raw[visit.url])
                    record.record_visit(visit)
                except (KeyError, RecordValidationError):
                    record = VisitRecord.from_visit(visit)

                # Only the visited key changes; other entries are saved back as stored
                raw[visit.url] = record.to_dict()
                await self._save(raw)
            return True
        except Exception as e:
            print(f"[HistoryStore] Error saving page visit: {e}", file=sys.stderr)
            return False

    async def read_all(self) -> Dict[str, VisitRecord]:
        """Get a snapshot of the full history.

        Returns:
            Fresh mapping of URL -> VisitRecord; empty if nothing is stored,
            the stored data is malformed, or storage fails
        """
        try:
            return await self._load()
        except Exception as e:
            print(f"[HistoryStore] Error getting page history: {e}", file=sys.stderr)
            return {}

    async def read_one(self, url: str) -> Optional[VisitRecord]:
        """Get the record for one URL, or None if not found."""
        try:
            history = await self._load()
            return history.get(url)
        except Exception as e:
            print(f"[HistoryStore] Error getting page by URL: {e}", file=sys.stderr)
            return None

    async def clear(self) -> bool:
        """Delete all history. Cannot be undone."""
        try:
            async with self._write_lock:
                await self.storage.remove(self.history_key)
            print("[HistoryStore] History cleared", file=sys.stderr)
            return True
        except Exception as e:
            print(f"[HistoryStore] Error clearing history: {e}", file=sys.stderr)
            return False

    async def import_records(self, records: Iterable[VisitRecord]) -> int:
        """Merge records from elsewhere (e.g. a cloud pull).

        Only URLs not already present are added; local records win.

        Returns:
            Number of records added (0 on failure)
        """
        try:
            async with self._write_lock:
                raw = await self._load_raw()

                merged = 0
                for record in records:
                    if record.url in raw:
                        continue
                    raw[record.url] = record.to_dict()
                    merged += 1

                if merged:
                    await self._save(raw)
            return merged
        except Exception as e:
            print(f"[HistoryStore] Error importing records: {e}", file=sys.stderr)
            return 0

    # ------------------------------------------------------------------
    # Sync flag (read by the sync adapters only)
    # ------------------------------------------------------------------

    async def is_sync_enabled(self) -> bool:
        try:
            return await self.storage.get(self.sync_enabled_key) is True
        except Exception as e:
            print(f"[HistoryStore] Error checking sync status: {e}", file=sys.stderr)
            return False

    async def set_sync_enabled(self, enabled: bool) -> bool:
        try:
            async with self._write_lock:
                await self.storage.set(self.sync_enabled_key, bool(enabled))
            return True
        except Exception as e:
            print(f"[HistoryStore] Error saving sync status: {e}", file=sys.stderr)
            return False


# Global store instance
_history_store: Optional[HistoryStore] = None


async def get_history_store() -> HistoryStore:
    """Get or create the global history store instance.

    Returns:
        HistoryStore over an initialized KeyValueStore
    """
    global _history_store

    if _history_store is None:
        from wheredidisee.config import get_config
        config = get_config()
        storage = KeyValueStore(config.db_path)
        await storage.initialize()
        _history_store = HistoryStore(
            storage,
            history_key=config.history_key,
            sync_enabled_key=config.sync_enabled_key,
        )

    return _history_store


async def close_history_store() -> None:
    """Close the global store's database connection, if open."""
    global _history_store

    if _history_store is not None:
        await _history_store.storage.close()
        _history_store = None

"""Opt-in sync of page history with a Supabase 'page_history' table.

Push upserts every local record (conflict key: user_id + url). Pull merges
rows from the cloud into the local store; local records always win.
"""
import sys
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from wheredidisee.cloud_sync import SyncResult, iso_to_ms, ms_to_iso
from wheredidisee.config import Config, get_config
from wheredidisee.history_store import HistoryStore
from wheredidisee.models import RecordValidationError, VisitRecord


TABLE = "page_history"


@dataclass
class SupabaseSession:
    """Project endpoint plus a user access token issued elsewhere."""
    url: str
    anon_key: str
    access_token: Optional[str] = None

    @classmethod
    def from_config(cls, config: Optional[Config] = None) -> Optional["SupabaseSession"]:
        """Build a session from config, or None if Supabase isn't configured."""
        config = config or get_config()
        if not (config.sync.supabase_url and config.sync.supabase_anon_key):
            return None
        return cls(
            url=config.sync.supabase_url.rstrip("/"),
            anon_key=config.sync.supabase_anon_key,
            access_token=config.sync.supabase_access_token,
        )

    def headers(self) -> Dict[str, str]:
        return {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {self.access_token or self.anon_key}",
        }


def record_to_row(record: VisitRecord, user_id: str) -> Dict[str, Any]:
    return {
        "user_id": user_id,
        "title": record.title,
        "url": record.url,
        "domain": record.domain,
        "last_visited": ms_to_iso(record.last_visited),
        "visit_count": record.visit_count,
    }


def row_to_record(row: Dict[str, Any]) -> Optional[VisitRecord]:
    """Convert a cloud row to a record, or None if the row is malformed."""
    try:
        return VisitRecord.from_dict({
            "title": row.get("title"),
            "url": row.get("url"),
            "domain": row.get("domain"),
            "lastVisited": iso_to_ms(row.get("last_visited")),
            "visitCount": row.get("visit_count"),
        })
    except RecordValidationError as e:
        print(f"[Sync] Skipping malformed cloud row {row.get('url')!r}: {e}", file=sys.stderr)
        return None


class SupabaseSync:
    """Push/pull page history to a Supabase project over its REST API."""

    def __init__(
        self,
        store: HistoryStore,
        session: SupabaseSession,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.store = store
        self.session = session
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.session.url,
            timeout=self.timeout,
            transport=self._transport,
            headers=self.session.headers(),
        )

    async def get_current_user(self) -> Optional[Dict[str, Any]]:
        """Get the authenticated user, or None if the token isn't valid."""
        if not self.session.access_token:
            return None
        try:
            async with self._client() as client:
                response = await client.get("/auth/v1/user")
                if response.status_code in (401, 403):
                    return None
                response.raise_for_status()
                user = response.json()
                return user if user.get("id") else None
        except httpx.HTTPError as e:
            print(f"[Sync] Error getting current user: {e}", file=sys.stderr)
            return None

    async def enable(self) -> bool:
        """Turn sync on (the user is already signed in via the session token)."""
        return await self.store.set_sync_enabled(True)

    async def sign_out(self) -> bool:
        """Revoke the session and turn sync off."""
        if self.session.access_token:
            try:
                async with self._client() as client:
                    response = await client.post("/auth/v1/logout")
                    response.raise_for_status()
            except httpx.HTTPError as e:
                print(f"[Sync] Error signing out: {e}", file=sys.stderr)
                return False
            self.session.access_token = None
        return await self.store.set_sync_enabled(False)

    async def _preflight(self) -> Optional[SyncResult]:
        """Return a failure result if sync is turned off."""
        if not await self.store.is_sync_enabled():
            return SyncResult(success=False, message="Sync not enabled")
        return None

    async def sync(self) -> SyncResult:
        return await self.sync_to_cloud()

    async def sync_to_cloud(self) -> SyncResult:
        """Upsert every local record into the cloud table."""
        failure = await self._preflight()
        if failure:
            return failure

        user = await self.get_current_user()
        if not user:
            return SyncResult(success=False, message="User not authenticated")

        history = await self.store.read_all()
        if not history:
            return SyncResult(success=True, message="No pages to sync")

        rows = [record_to_row(record, user["id"]) for record in history.values()]

        try:
            async with self._client() as client:
                response = await client.post(
                    f"/rest/v1/{TABLE}",
                    params={"on_conflict": "user_id,url"},
                    headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
                    json=rows,
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            print(f"[Sync] Error syncing to cloud: {e}", file=sys.stderr)
            return SyncResult(success=False, message=f"Sync failed: {e}")

        return SyncResult(
            success=True,
            message=f"Synced {len(rows)} pages to cloud",
            synced=len(rows),
        )

    async def sync_from_cloud(self) -> SyncResult:
        """Fetch the user's cloud rows and merge the ones missing locally."""
        failure = await self._preflight()
        if failure:
            return failure

        user = await self.get_current_user()
        if not user:
            return SyncResult(success=False, message="User not authenticated")

        try:
            async with self._client() as client:
                response = await client.get(f"/rest/v1/{TABLE}", params={
                    "select": "*",
                    "user_id": f"eq.{user['id']}",
                    "order": "last_visited.desc",
                })
                response.raise_for_status()
                rows: List[Dict[str, Any]] = response.json() or []
        except (httpx.HTTPError, ValueError) as e:
            print(f"[Sync] Error syncing from cloud: {e}", file=sys.stderr)
            return SyncResult(success=False, message=f"Sync failed: {e}")

        if not rows:
            return SyncResult(success=True, message="No cloud data found")

        records = [r for r in (row_to_record(row) for row in rows) if r is not None]
        merged = await self.store.import_records(records)

        return SyncResult(
            success=True,
            message=f"Fetched {len(rows)} pages, merged {merged} new pages",
            fetched=len(rows),
            merged=merged,
        )

"""One-way export of page history to a Google Sheet.

The sheet is found (or created) per user and fully rewritten on every sync:
the header row stays, everything below it is cleared and replaced.
"""
import sys
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from wheredidisee.cloud_sync import SyncResult, ms_to_iso
from wheredidisee.config import Config, get_config
from wheredidisee.history_store import HistoryStore


SHEETS_API = "https://sheets.googleapis.com/v4/spreadsheets"
DRIVE_API = "https://www.googleapis.com/drive/v3/files"
USERINFO_API = "https://www.googleapis.com/oauth2/v2/userinfo"

SHEET_TAB = "Page History"
HEADER_ROW = ["Title", "URL", "Domain", "Last Visited", "Visit Count"]
DATA_RANGE = f"{SHEET_TAB}!A2:E"
HEADER_RANGE = f"{SHEET_TAB}!A1:E1"


@dataclass
class SheetsSession:
    """Credentials for one Google account. Issuing the token happens elsewhere."""
    access_token: str

    @classmethod
    def from_config(cls, config: Optional[Config] = None) -> Optional["SheetsSession"]:
        """Build a session from config, or None if no token is configured."""
        config = config or get_config()
        token = config.sync.google_access_token
        return cls(access_token=token) if token else None


class GoogleSheetsSync:
    """Pushes the local history into the user's '<name>_wheredidisee' sheet."""

    def __init__(
        self,
        store: HistoryStore,
        session: SheetsSession,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.store = store
        self.session = session
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            headers={"Authorization": f"Bearer {self.session.access_token}"},
        )

    async def get_user_email(self, client: httpx.AsyncClient) -> Optional[str]:
        response = await client.get(USERINFO_API)
        response.raise_for_status()
        return response.json().get("email")

    async def find_or_create_sheet(self, client: httpx.AsyncClient, email: str) -> str:
        """Find the user's history spreadsheet, creating it on first sync.

        Returns:
            Spreadsheet ID
        """
        sheet_name = f"{email.split('@')[0]}_wheredidisee"

        response = await client.get(DRIVE_API, params={
            "q": (
                f"name='{sheet_name}' and "
                "mimeType='application/vnd.google-apps.spreadsheet' and trashed=false"
            ),
        })
        response.raise_for_status()
        files = response.json().get("files") or []
        if files:
            return files[0]["id"]

        response = await client.post(SHEETS_API, json={
            "properties": {"title": sheet_name},
            "sheets": [{
                "properties": {
                    "title": SHEET_TAB,
                    "gridProperties": {"frozenRowCount": 1},
                },
            }],
        })
        response.raise_for_status()
        spreadsheet_id = response.json()["spreadsheetId"]

        response = await client.put(
            f"{SHEETS_API}/{spreadsheet_id}/values/{HEADER_RANGE}",
            params={"valueInputOption": "RAW"},
            json={"values": [HEADER_ROW]},
        )
        response.raise_for_status()

        print(f"[Sync] Created spreadsheet {sheet_name} ({spreadsheet_id})", file=sys.stderr)
        return spreadsheet_id

    async def sync(self) -> SyncResult:
        """Replace the sheet's rows with the current local history."""
        try:
            async with self._client() as client:
                email = await self.get_user_email(client)
                if not email:
                    return SyncResult(success=False, message="Failed to get user email")

                spreadsheet_id = await self.find_or_create_sheet(client, email)

                history = await self.store.read_all()
                if not history:
                    return SyncResult(success=True, message="No pages to sync")

                rows: List[List[Any]] = [
                    [r.title, r.url, r.domain, ms_to_iso(r.last_visited), r.visit_count]
                    for r in history.values()
                ]

                response = await client.post(f"{SHEETS_API}/{spreadsheet_id}/values/{DATA_RANGE}:clear")
                response.raise_for_status()

                response = await client.put(
                    f"{SHEETS_API}/{spreadsheet_id}/values/{DATA_RANGE}",
                    params={"valueInputOption": "RAW"},
                    json={"values": rows},
                )
                response.raise_for_status()

            extra: Dict[str, Any] = {
                "spreadsheetId": spreadsheet_id,
                "sheetUrl": f"https://docs.google.com/spreadsheets/d/{spreadsheet_id}",
            }
            return SyncResult(
                success=True,
                message=f"Synced {len(rows)} pages to Google Sheets",
                synced=len(rows),
                extra=extra,
            )
        except httpx.HTTPError as e:
            print(f"[Sync] HTTP error syncing to Google Sheets: {e}", file=sys.stderr)
            return SyncResult(success=False, message=f"Sync failed: {e}")
        except (KeyError, ValueError) as e:
            print(f"[Sync] Unexpected Google API response: {e}", file=sys.stderr)
            return SyncResult(success=False, message=f"Sync failed: {e}")

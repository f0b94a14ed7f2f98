"""Tests for Google Sheets export."""
import json

import httpx
import pytest

from wheredidisee.cloud_sync import iso_to_ms, ms_to_iso
from wheredidisee.config import Config, SyncConfig
from wheredidisee.sheets_sync import GoogleSheetsSync, HEADER_ROW, SheetsSession

from conftest import NOW


class FakeGoogle:
    """Minimal stand-in for the userinfo, Drive and Sheets endpoints."""

    def __init__(self, existing_sheet=None, email="jane.doe@example.com", fail_on=None):
        self.existing_sheet = existing_sheet
        self.email = email
        self.fail_on = fail_on
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host = request.url.host
        path = request.url.path

        if self.fail_on and self.fail_on in path:
            return httpx.Response(500, json={"error": "backend error"})

        if host == "www.googleapis.com" and path == "/oauth2/v2/userinfo":
            return httpx.Response(200, json={"email": self.email})
        if host == "www.googleapis.com" and path == "/drive/v3/files":
            files = [{"id": self.existing_sheet}] if self.existing_sheet else []
            return httpx.Response(200, json={"files": files})
        if request.method == "POST" and path == "/v4/spreadsheets":
            return httpx.Response(200, json={"spreadsheetId": "new-sheet"})
        if path.startswith("/v4/spreadsheets/"):
            return httpx.Response(200, json={})
        return httpx.Response(404)

    def find(self, method, suffix):
        return [r for r in self.requests if r.method == method and r.url.path.endswith(suffix)]


def make_sync(store, fake):
    return GoogleSheetsSync(
        store,
        SheetsSession(access_token="token-123"),
        transport=httpx.MockTransport(fake),
    )


async def seed(store):
    await store.upsert({"title": "GitHub", "url": "https://github.com/", "domain": "github.com", "timestamp": NOW})
    await store.upsert({"title": "GitHub", "url": "https://github.com/", "domain": "github.com", "timestamp": NOW})
    await store.upsert({"title": "Docs", "url": "https://docs.python.org/", "domain": "docs.python.org", "timestamp": NOW})


class TestTimestamps:
    def test_ms_to_iso(self):
        assert ms_to_iso(0) == "1970-01-01T00:00:00.000Z"
        assert ms_to_iso(1_700_000_000_123) == "2023-11-14T22:13:20.123Z"

    def test_iso_to_ms(self):
        assert iso_to_ms("2023-11-14T22:13:20.123Z") == 1_700_000_000_123
        assert iso_to_ms("2023-11-14T22:13:20.123+00:00") == 1_700_000_000_123
        assert iso_to_ms("2023-11-14T22:13:20") == 1_700_000_000_000

    def test_iso_to_ms_invalid(self):
        assert iso_to_ms("yesterday") is None
        assert iso_to_ms("") is None
        assert iso_to_ms(None) is None


class TestSession:
    def test_from_config(self):
        config = Config(sync=SyncConfig(google_access_token="abc"))
        assert SheetsSession.from_config(config).access_token == "abc"

    def test_not_configured(self):
        assert SheetsSession.from_config(Config(sync=SyncConfig())) is None


@pytest.mark.asyncio
class TestGoogleSheetsSync:
    async def test_creates_sheet_and_writes_rows(self, store):
        await seed(store)
        fake = FakeGoogle()

        result = await make_sync(store, fake).sync()

        assert result.success is True
        assert result.synced == 2
        assert result.extra["spreadsheetId"] == "new-sheet"
        assert result.extra["sheetUrl"] == "https://docs.google.com/spreadsheets/d/new-sheet"

        create = fake.find("POST", "/v4/spreadsheets")[0]
        body = json.loads(create.content)
        assert body["properties"]["title"] == "jane.doe_wheredidisee"
        assert body["sheets"][0]["properties"]["title"] == "Page History"

        header = fake.find("PUT", "A1:E1")[0]
        assert json.loads(header.content) == {"values": [HEADER_ROW]}

        assert len(fake.find("POST", "A2:E:clear")) == 1

        write = fake.find("PUT", "A2:E")[0]
        rows = json.loads(write.content)["values"]
        assert sorted(rows) == sorted([
            ["GitHub", "https://github.com/", "github.com", ms_to_iso(NOW), 2],
            ["Docs", "https://docs.python.org/", "docs.python.org", ms_to_iso(NOW), 1],
        ])
        assert write.url.params["valueInputOption"] == "RAW"

    async def test_sends_bearer_token(self, store):
        await seed(store)
        fake = FakeGoogle(existing_sheet="abc")
        await make_sync(store, fake).sync()
        assert all(r.headers["Authorization"] == "Bearer token-123" for r in fake.requests)

    async def test_reuses_existing_sheet(self, store):
        await seed(store)
        fake = FakeGoogle(existing_sheet="existing-id")

        result = await make_sync(store, fake).sync()

        assert result.success is True
        assert result.extra["spreadsheetId"] == "existing-id"
        assert fake.find("POST", "/v4/spreadsheets") == []
        assert "jane.doe_wheredidisee" in fake.requests[1].url.params["q"]

    async def test_empty_history(self, store):
        fake = FakeGoogle(existing_sheet="existing-id")
        result = await make_sync(store, fake).sync()
        assert result.success is True
        assert result.synced == 0
        assert result.message == "No pages to sync"
        assert fake.find("PUT", "A2:E") == []

    async def test_missing_email(self, store):
        fake = FakeGoogle(email=None)
        result = await make_sync(store, fake).sync()
        assert result.success is False
        assert "email" in result.message

    async def test_http_error_reported(self, store):
        await seed(store)
        fake = FakeGoogle(existing_sheet="abc", fail_on=":clear")
        result = await make_sync(store, fake).sync()
        assert result.success is False
        assert result.message.startswith("Sync failed")

    async def test_result_dict(self, store):
        await seed(store)
        result = await make_sync(store, FakeGoogle(existing_sheet="abc")).sync()
        data = result.to_dict()
        assert data["success"] is True
        assert data["synced"] == 2
        assert data["spreadsheetId"] == "abc"

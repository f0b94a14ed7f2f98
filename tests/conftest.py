"""Shared fixtures for tests."""
import pytest
import pytest_asyncio

from wheredidisee.config import Config
from wheredidisee.history_store import HistoryStore
from wheredidisee.models import VisitRecord
from wheredidisee.storage import KeyValueStore


# Fixed reference time so recency bonuses are deterministic
NOW = 1_700_000_000_000
DAY = 24 * 60 * 60 * 1000


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def history_db_path(tmp_path):
    """Return path for a temporary history database."""
    return tmp_path / "test_history.db"


@pytest_asyncio.fixture
async def storage(history_db_path):
    """Create and initialize a test key-value store."""
    s = KeyValueStore(history_db_path)
    await s.initialize()
    yield s
    await s.close()


@pytest_asyncio.fixture
async def store(storage):
    """History store over the temporary database."""
    return HistoryStore(storage)


@pytest.fixture
def config():
    """Config with defaults, independent of the environment."""
    return Config.from_env()


@pytest.fixture
def sample_records():
    """A snapshot as HistoryStore.read_all returns it."""
    records = [
        VisitRecord(
            url="https://github.com/",
            title="GitHub",
            domain="github.com",
            last_visited=NOW - 2 * DAY,
            visit_count=12,
        ),
        VisitRecord(
            url="https://docs.python.org/3/",
            title="Python 3 Documentation",
            domain="docs.python.org",
            last_visited=NOW - 1 * DAY,
            visit_count=3,
        ),
        VisitRecord(
            url="https://news.ycombinator.com/",
            title="Hacker News",
            domain="news.ycombinator.com",
            last_visited=NOW - 40 * DAY,
            visit_count=1,
        ),
        VisitRecord(
            url="https://example.com/github-tips",
            title="Ten github tips",
            domain="example.com",
            last_visited=NOW - 5 * DAY,
            visit_count=2,
        ),
    ]
    return {r.url: r for r in records}

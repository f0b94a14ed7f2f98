"""Configuration for the page history MCP server."""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Pattern

from wheredidisee.utils import compile_patterns


# URL patterns never tracked (browser-internal pages)
DEFAULT_EXCLUDED_PATTERNS = [
    r"^chrome://",
    r"^chrome-extension://",
    r"^about:",
    r"^edge:",
    r"^brave:",
]


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class SearchConfig:
    """Configuration for search and result display."""
    max_results: int = 100  # Display cap, the engine itself never truncates
    debounce_seconds: float = 0.3  # Delay before answering a keystroke query

    @classmethod
    def from_env(cls) -> "SearchConfig":
        """Create config from environment variables."""
        return cls(
            max_results=int(os.environ.get("WDIST_MAX_RESULTS", "100")),
            debounce_seconds=float(os.environ.get("WDIST_SEARCH_DEBOUNCE", "0.3")),
        )


@dataclass
class SyncConfig:
    """Configuration for one-way export to Google Sheets / Supabase."""
    request_timeout: float = 30.0  # Seconds
    background_sync: bool = False  # Push to Supabase after visits
    debounce_seconds: float = 5.0

    # Credentials are issued elsewhere; we only carry them
    google_access_token: Optional[str] = None
    supabase_url: Optional[str] = None
    supabase_anon_key: Optional[str] = None
    supabase_access_token: Optional[str] = None

    @classmethod
    def from_env(cls) -> "SyncConfig":
        """Create config from environment variables."""
        return cls(
            request_timeout=float(os.environ.get("WDIST_SYNC_TIMEOUT", "30.0")),
            background_sync=_env_bool("WDIST_BACKGROUND_SYNC", False),
            debounce_seconds=float(os.environ.get("WDIST_SYNC_DEBOUNCE", "5.0")),
            google_access_token=os.environ.get("WDIST_GOOGLE_TOKEN") or None,
            supabase_url=os.environ.get("WDIST_SUPABASE_URL") or None,
            supabase_anon_key=os.environ.get("WDIST_SUPABASE_ANON_KEY") or None,
            supabase_access_token=os.environ.get("WDIST_SUPABASE_TOKEN") or None,
        )


@dataclass
class Config:
    """Main configuration for the page history MCP server."""
    search: SearchConfig = field(default_factory=SearchConfig.from_env)
    sync: SyncConfig = field(default_factory=SyncConfig.from_env)
    db_path: Optional[Path] = None  # None = use default
    history_key: str = "page_history"
    sync_enabled_key: str = "sync_enabled"
    excluded_patterns: List[Pattern[str]] = field(
        default_factory=lambda: compile_patterns(DEFAULT_EXCLUDED_PATTERNS)
    )
    bridge_port: int = 8766  # WebSocket port for the browser extension bridge
    bridge_enabled: bool = True

    @classmethod
    def from_env(cls) -> "Config":
        """Create config from environment variables."""
        db_path_str = os.environ.get("WDIST_DB_PATH")
        db_path = Path(db_path_str) if db_path_str else None

        extra = os.environ.get("WDIST_EXCLUDED_PATTERNS", "")
        patterns = DEFAULT_EXCLUDED_PATTERNS + [p.strip() for p in extra.split(",") if p.strip()]

        return cls(
            search=SearchConfig.from_env(),
            sync=SyncConfig.from_env(),
            db_path=db_path,
            excluded_patterns=compile_patterns(patterns),
            bridge_port=int(os.environ.get("WDIST_BRIDGE_PORT", "8766")),
            bridge_enabled=_env_bool("WDIST_BRIDGE_ENABLED", True),
        )


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global config instance.

    Returns:
        Config loaded from environment
    """
    global _config

    if _config is None:
        _config = Config.from_env()

    return _config

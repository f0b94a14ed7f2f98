"""Shared pieces for exporting page history to cloud services."""
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Protocol


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass
class SyncResult:
    """Outcome of a sync run. Failures are reported, never raised."""
    success: bool
    message: str
    synced: int = 0
    fetched: int = 0
    merged: int = 0
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "success": self.success,
            "message": self.message,
            "synced": self.synced,
            "fetched": self.fetched,
            "merged": self.merged,
        }
        result.update(self.extra)
        return result


class CloudSync(Protocol):
    """Anything that can push the local history somewhere."""

    async def sync(self) -> SyncResult:
        ...


def ms_to_iso(timestamp: int) -> str:
    """Epoch milliseconds -> ISO-8601 UTC string (e.g. 2024-01-31T12:00:00.000Z)."""
    moment = EPOCH + timedelta(milliseconds=timestamp)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def iso_to_ms(value: str) -> Optional[int]:
    """ISO-8601 string -> epoch milliseconds, or None if unparseable."""
    if not isinstance(value, str) or not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        moment = datetime.fromisoformat(text)
    except ValueError:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (moment - EPOCH) // timedelta(milliseconds=1)

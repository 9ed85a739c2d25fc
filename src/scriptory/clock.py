"""Time helpers shared by the stores.

Everything goes through these functions so tests can patch a single place.
"""

import time
from datetime import UTC, datetime


def now_ms() -> int:
    """Milliseconds since the epoch."""
    return int(time.time() * 1000)


def now_iso() -> str:
    """Current UTC time as ISO-8601 with millisecond precision."""
    return ms_to_iso(now_ms())


def ms_to_iso(ms: int) -> str:
    dt = datetime.fromtimestamp(ms / 1000, tz=UTC)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(value: str) -> datetime:
    """Parse an ISO-8601 timestamp or date. Naive values are taken as UTC.

    Raises:
        ValueError: If the value is not ISO-8601.
    """
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt

"""Time helpers shared by the test modules."""

from datetime import datetime, timezone

NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


def day(n: int, hour: int = 10, minute: int = 0) -> datetime:
    """Instant on January `n`, 2024 (UTC)."""
    return datetime(2024, 1, n, hour, minute, tzinfo=timezone.utc)


def iso(dt: datetime) -> str:
    return dt.isoformat().replace("+00:00", "Z")

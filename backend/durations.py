"""
Duration and date helpers shared by the calculator, timeline and export code.
All instants are handled as timezone-aware UTC datetimes.
"""

import math
import re
import logging
from datetime import date, datetime, timezone
from typing import Any, Optional

logger = logging.getLogger(__name__)


# ISO 8601 duration subset: only the H/M/S designators of the time part are read.
DURATION_PATTERN = re.compile(
    r"PT(?:(\d+(?:\.\d+)?)H)?(?:(\d+(?:\.\d+)?)M)?(?:(\d+(?:\.\d+)?)S)?"
)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


def parse_duration(duration: Any) -> int:
    """
    Parse an ISO 8601 duration such as ``PT1H30M`` into whole seconds.
    Anything without an H/M/S designator yields 0.
    """
    if not isinstance(duration, str) or not duration:
        return 0
    m = DURATION_PATTERN.search(duration)
    if not m:
        return 0
    hours, minutes, seconds = (float(x) if x else 0.0 for x in m.groups())
    return int(hours * 3600 + minutes * 60 + seconds)


def encode_duration(seconds: float) -> str:
    """Inverse of parse_duration: 5400 -> 'PT1H30M'."""
    total = max(int(seconds), 0)
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    parts = ""
    if hours:
        parts += f"{hours}H"
    if minutes:
        parts += f"{minutes}M"
    if secs or not parts:
        parts += f"{secs}S"
    return "PT" + parts


def format_duration(seconds: float) -> str:
    """
    Render seconds with the largest applicable unit pair:
    '2h 30m', '5m 10s' or '45s'.
    """
    total = max(int(seconds or 0), 0)
    hours = total // 3600
    minutes = (total % 3600) // 60
    secs = total % 60
    if hours > 0:
        return f"{hours}h {minutes}m"
    elif minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an xAPI timestamp into an aware UTC datetime, None if unparsable."""
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        if not value.strip():
            return None
        try:
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            logger.debug(f"Unparsable timestamp: {value!r}")
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_iso(dt: Optional[datetime]) -> Optional[str]:
    """Canonical instant encoding: ISO 8601 in UTC with a trailing 'Z'."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def utc_date(dt: datetime) -> date:
    """Calendar day of an instant, always taken in UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).date()


def date_key(dt: datetime) -> str:
    return utc_date(dt).isoformat()


def days_between(earlier: datetime, later: datetime) -> float:
    """Fractional days from earlier to later."""
    return (later - earlier).total_seconds() / 86400

"""Date and timestamp helpers. All calendar days are UTC."""

import re
import time
from datetime import datetime, timezone

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
SECONDS_PER_DAY = 24 * 60 * 60


def today_utc() -> str:
    """Today's date in YYYY-MM-DD format (UTC)."""
    return datetime.now(timezone.utc).date().isoformat()


def now_millis() -> int:
    """Current timestamp in milliseconds."""
    return int(time.time() * 1000)


def ttl_epoch(days: int, now: float | None = None) -> int:
    """Absolute expiry, in epoch seconds, for a DynamoDB time-to-live attribute.

    Args:
        days: Number of days from now.
        now: Reference time in epoch seconds. Defaults to the current time.
    """
    reference = time.time() if now is None else now
    return int(reference) + days * SECONDS_PER_DAY


def is_valid_date(value: str) -> bool:
    """True when value is a real calendar date in YYYY-MM-DD format."""
    if not isinstance(value, str) or not DATE_PATTERN.match(value):
        return False
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        return False
    return True

"""Time Utilities for UTC management"""

from datetime import datetime, timezone
from typing import Tuple


def get_utc_now() -> datetime:
    """
    Returns a naive UTC datetime.
    Matches the DB schema (TIMESTAMP WITHOUT TIME ZONE).
    Avoids 'datetime.utcnow()' deprecation warnings.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def next_period(month: int, year: int) -> Tuple[int, int]:
    """Return the (month, year) that follows the given one; December rolls into January."""
    if month >= 12:
        return 1, year + 1
    return month + 1, year

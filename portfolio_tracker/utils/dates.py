"""Small date helpers shared by the valuation and aggregation code.

Calendar days are UTC days throughout, so the date a refresh stamps on a
history point is the same "today" the valuation code reads.
"""

from __future__ import annotations

import datetime as dt
from typing import Optional


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def utc_day(moment: dt.datetime) -> dt.date:
    """Calendar day of ``moment`` in UTC; naive values are taken as UTC."""
    if moment.tzinfo is None:
        return moment.date()
    return moment.astimezone(dt.timezone.utc).date()


def resolve_today(today: Optional[dt.date] = None) -> dt.date:
    """Return ``today`` or the current UTC date."""
    return today or utcnow().date()


def days_before(anchor: dt.date, days: int) -> dt.date:
    return anchor - dt.timedelta(days=days)


__all__ = ["utcnow", "utc_day", "resolve_today", "days_before"]

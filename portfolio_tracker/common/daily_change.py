"""Portfolio-level daily change from per-investment percent moves.

Quotes only carry today's price and a signed percent change, so yesterday's
value of each investment is back-solved from today's value.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple


@dataclass(frozen=True)
class DailyChange:
    current: float
    previous: float
    absolute: float
    percent: float


def previous_value(value_today: float, daily_change_percent: Optional[float]) -> float:
    """Back-solve yesterday's value; a -100% move means it was worth 0."""
    pct = daily_change_percent or 0.0
    if pct == -100:
        return 0.0
    return value_today / (1 + pct / 100)


def daily_change(
    holdings: Iterable[Tuple[float, Optional[float]]],
    cash: float = 0.0,
) -> DailyChange:
    """Combine ``(value_today, daily_change_percent)`` pairs with flat ``cash``."""
    current = cash
    previous = cash
    for value, pct in holdings:
        current += value
        previous += previous_value(value, pct)

    absolute = current - previous
    percent = absolute / previous * 100 if previous > 0 else 0.0
    return DailyChange(current=current, previous=previous, absolute=absolute, percent=percent)


__all__ = ["DailyChange", "previous_value", "daily_change"]

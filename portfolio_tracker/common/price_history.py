"""Per-investment price history.

History is a sparse list of ``(date, native price)`` samples. Index 0 is the
cost-basis anchor written when the investment is created or edited; later
points are appended by refreshes, at most one per calendar day.

All helpers here treat the stored list as an immutable snapshot: reads sort a
copy and writes return a new :class:`Investment`.
"""

from __future__ import annotations

import bisect
import datetime as dt
from typing import Dict, Iterable, List, Optional

from portfolio_tracker.common.models import Investment, PricePoint
from portfolio_tracker.utils.dates import resolve_today


def sorted_history(history: Iterable[PricePoint]) -> List[PricePoint]:
    """Return ``history`` ascending by date with one point per date.

    When a date appears more than once the later entry in list order wins.
    """
    latest: Dict[dt.date, PricePoint] = {}
    for point in history:
        latest[point.date] = point
    return [latest[d] for d in sorted(latest)]


def reconstruct_price(
    investment: Investment,
    as_of: Optional[dt.date] = None,
    *,
    today: Optional[dt.date] = None,
) -> float:
    """Return the native price of ``investment`` on ``as_of`` (default today).

    - before ``buy_date`` the investment did not exist: 0;
    - otherwise the latest sample dated on or before ``as_of``;
    - with no such sample, the cost-basis price.
    """
    target = as_of or resolve_today(today)
    if target < investment.buy_date:
        return 0.0

    points = sorted_history(investment.history)
    idx = bisect.bisect_right([p.date for p in points], target)
    if idx:
        return points[idx - 1].price
    return investment.cost_basis_price


def append_or_update_today_point(
    investment: Investment,
    price: float,
    *,
    on: Optional[dt.date] = None,
) -> Investment:
    """Record ``price`` for ``on`` (default today).

    A stored point already dated ``on`` is overwritten in place, wherever it
    sits in the list (a re-anchored index 0 can be the newest date); otherwise
    a new point is appended. Running a refresh twice on one day leaves a
    single point holding the latest price.
    """
    day = on or resolve_today()
    point = PricePoint(date=day, price=price)
    history: List[PricePoint] = []
    replaced = False
    for existing in investment.history:
        if existing.date != day:
            history.append(existing)
        elif not replaced:
            history.append(point)
            replaced = True
    if not replaced:
        history.append(point)
    return investment.model_copy(update={"history": history})


def reanchor_cost_basis(
    investment: Investment,
    buy_date: Optional[dt.date] = None,
    price: Optional[float] = None,
) -> Investment:
    """Replace the anchor point (index 0), creating it when history is empty.

    ``buy_date`` and ``price`` default to the investment's own buy date and
    cost-basis price.
    """
    anchor_date = buy_date or investment.buy_date
    anchor_price = investment.cost_basis_price if price is None else price
    anchor = PricePoint(date=anchor_date, price=anchor_price)

    history = list(investment.history)
    if history:
        history[0] = anchor
    else:
        history = [anchor]
    return investment.model_copy(update={"history": history, "buy_date": anchor_date})


__all__ = [
    "sorted_history",
    "reconstruct_price",
    "append_or_update_today_point",
    "reanchor_cost_basis",
]

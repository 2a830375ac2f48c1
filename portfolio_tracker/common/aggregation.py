"""
Value-over-time series for investments, portfolios and the whole book

- date_universe(book)              -> every date any investment references
- build_series(book, mode=...)     -> per-investment / per-portfolio / total
- percentage_return(series)        -> series normalised to its first positive value
- weekly_change(series)            -> change against the point ~7 days back
- investment_return_chart(inv)     -> % return chart from the investment's own prices
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pandas as pd

from portfolio_tracker.common.constants import PERCENT_MODE, VALUE_MODE, WEEKLY_LOOKBACK_DAYS
from portfolio_tracker.common.models import Investment, PortfolioBook
from portfolio_tracker.common.price_history import sorted_history
from portfolio_tracker.common.valuation import value_of
from portfolio_tracker.utils.dates import days_before, resolve_today

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SeriesPoint:
    date: dt.date
    value: float

    def to_dict(self) -> Dict[str, Any]:
        return {"date": self.date.isoformat(), "value": self.value}


@dataclass(frozen=True)
class WeeklyChange:
    current: float = 0.0
    week_ago: float = 0.0
    week_ago_date: Optional[dt.date] = None
    absolute: float = 0.0
    percent: float = 0.0


@dataclass
class BookSeries:
    mode: str = VALUE_MODE
    per_investment: Dict[str, List[SeriesPoint]] = field(default_factory=dict)
    per_portfolio: Dict[str, List[SeriesPoint]] = field(default_factory=dict)
    total: List[SeriesPoint] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        def _points(series: Iterable[SeriesPoint]) -> List[Dict[str, Any]]:
            return [p.to_dict() for p in series]

        return {
            "mode": self.mode,
            "per_investment": {k: _points(v) for k, v in self.per_investment.items()},
            "per_portfolio": {k: _points(v) for k, v in self.per_portfolio.items()},
            "total": _points(self.total),
        }


# ──────────────────────────────────────────────────────────────
# Date universe
# ──────────────────────────────────────────────────────────────
def date_universe(book: PortfolioBook, *, today: Optional[dt.date] = None) -> List[dt.date]:
    """Sorted, de-duplicated union of sample dates, buy dates and today."""
    dates = {resolve_today(today)}
    for pf in book.portfolios:
        for inv in pf.investments:
            dates.add(inv.buy_date)
            dates.update(p.date for p in inv.history)
    return sorted(dates)


# ──────────────────────────────────────────────────────────────
# Series transforms
# ──────────────────────────────────────────────────────────────
def _sorted_points(series: Iterable[SeriesPoint]) -> List[SeriesPoint]:
    return sorted(series, key=lambda p: p.date)


def percentage_return(series: Sequence[SeriesPoint]) -> List[SeriesPoint]:
    """Normalise ``series`` against its first strictly positive value.

    Points before the baseline are dropped. A series without any positive
    value yields an empty list.
    """
    points = _sorted_points(series)
    for idx, point in enumerate(points):
        if point.value > 0:
            baseline = point.value
            return [
                SeriesPoint(p.date, (p.value - baseline) / baseline * 100)
                for p in points[idx:]
            ]
    return []


def weekly_change(
    series: Sequence[SeriesPoint],
    *,
    today: Optional[dt.date] = None,
    lookback_days: int = WEEKLY_LOOKBACK_DAYS,
) -> WeeklyChange:
    """Compare the latest value with the one ``lookback_days`` ago.

    The reference point is the newest entry dated on or before
    ``today - lookback_days``; when none is old enough the first entry is used.
    """
    points = _sorted_points(series)
    if not points:
        return WeeklyChange()

    current = points[-1].value
    cutoff = days_before(resolve_today(today), lookback_days)
    reference = points[0]
    for point in reversed(points):
        if point.date <= cutoff:
            reference = point
            break

    absolute = current - reference.value
    percent = absolute / reference.value * 100 if reference.value != 0 else 0.0
    return WeeklyChange(
        current=current,
        week_ago=reference.value,
        week_ago_date=reference.date,
        absolute=absolute,
        percent=percent,
    )


def _to_points(values: pd.Series) -> List[SeriesPoint]:
    return [SeriesPoint(d, float(v)) for d, v in values.items()]


def _in_window(d: dt.date, start: Optional[dt.date], end: Optional[dt.date]) -> bool:
    return (start is None or d >= start) and (end is None or d <= end)


# ──────────────────────────────────────────────────────────────
# Book-wide aggregation
# ──────────────────────────────────────────────────────────────
def build_series(
    book: PortfolioBook,
    *,
    mode: str = VALUE_MODE,
    start: Optional[dt.date] = None,
    end: Optional[dt.date] = None,
    today: Optional[dt.date] = None,
) -> BookSeries:
    """Return value-over-time series for every investment, portfolio and the book.

    Each investment is valued on every date of :func:`date_universe` (today
    uses the latest quote when there is one); a
    portfolio's value on a date is its (constant) cash plus its investments,
    and the total is the sum of portfolios. ``start``/``end`` narrow the
    window before the percent transform, so in ``"percent"`` mode the baseline
    is the first positive value inside the window.
    """
    if mode not in (VALUE_MODE, PERCENT_MODE):
        raise ValueError(f"Unknown series mode: {mode}")

    today = resolve_today(today)
    dates = [d for d in date_universe(book, today=today) if _in_window(d, start, end)]
    table = book.exchange_rates

    index = pd.Index(dates, name="date")
    investment_values: Dict[str, List[float]] = {}
    portfolio_values: Dict[str, pd.Series] = {}

    for pf in book.portfolios:
        fee = pf.fx_fee_percent
        holdings = pd.Series(0.0, index=index)
        for inv in pf.investments:
            # today's point is the "now" valuation so it agrees with the summary
            values = [
                value_of(inv, table, fee, None if d == today else d, today=today).value
                for d in dates
            ]
            investment_values[inv.id] = values
            holdings = holdings + pd.Series(values, index=index, dtype=float)
        portfolio_values[pf.id] = holdings + pf.cash

    per_investment = pd.DataFrame(investment_values, index=index, dtype=float)
    per_portfolio = pd.DataFrame(portfolio_values, index=index, dtype=float)
    total = per_portfolio.sum(axis=1)

    result = BookSeries(
        mode=mode,
        per_investment={col: _to_points(per_investment[col]) for col in per_investment.columns},
        per_portfolio={col: _to_points(per_portfolio[col]) for col in per_portfolio.columns},
        total=_to_points(total),
    )
    logger.debug(
        "Built %s series over %d dates for %d portfolios",
        mode,
        len(dates),
        len(book.portfolios),
    )

    if mode == PERCENT_MODE:
        result.per_investment = {k: percentage_return(v) for k, v in result.per_investment.items()}
        result.per_portfolio = {k: percentage_return(v) for k, v in result.per_portfolio.items()}
        result.total = percentage_return(result.total)
    return result


# ──────────────────────────────────────────────────────────────
# Per-investment chart
# ──────────────────────────────────────────────────────────────
def investment_return_chart(
    investment: Investment,
    *,
    today: Optional[dt.date] = None,
) -> List[SeriesPoint]:
    """Percent return of ``investment`` from its own native-price history.

    A cost-basis anchor stands in for an empty history, and the current quote
    is added as today's point when the last sample is older than today.
    """
    today = resolve_today(today)
    points = [SeriesPoint(p.date, p.price) for p in sorted_history(investment.history)]
    if not points and investment.quantity > 0:
        points = [SeriesPoint(investment.buy_date, investment.cost_basis_price)]
    if points and points[-1].date < today and investment.current_price is not None:
        points.append(SeriesPoint(today, investment.current_price))
    return percentage_return(points)


__all__ = [
    "SeriesPoint",
    "WeeklyChange",
    "BookSeries",
    "date_universe",
    "percentage_return",
    "weekly_change",
    "build_series",
    "investment_return_chart",
]

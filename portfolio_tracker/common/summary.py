"""Current-state summary of a portfolio: per-investment rows plus totals."""

from __future__ import annotations

import datetime as dt
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from portfolio_tracker.common.aggregation import WeeklyChange, build_series, weekly_change
from portfolio_tracker.common.daily_change import DailyChange, daily_change
from portfolio_tracker.common.models import Investment, PortfolioBook
from portfolio_tracker.common.valuation import Valuation, value_of
from portfolio_tracker.utils.dates import resolve_today


@dataclass(frozen=True)
class InvestmentSummary:
    id: str
    symbol: str
    name: str
    type: str
    currency: str
    book_cost_currency: str
    quantity: float
    price: float
    average_cost: float
    value: float
    cost: float
    gain: float
    gain_percent: float
    rate: float
    cost_rate: float
    daily_change_percent: float
    rate_fallback: bool

    @classmethod
    def from_valuation(cls, inv: Investment, val: Valuation) -> "InvestmentSummary":
        return cls(
            id=inv.id,
            symbol=inv.symbol,
            name=inv.name,
            type=inv.type,
            currency=inv.market_currency,
            book_cost_currency=inv.book_cost_currency,
            quantity=inv.quantity,
            price=val.price,
            average_cost=inv.cost_basis_price,
            value=val.value,
            cost=val.cost,
            gain=val.gain,
            gain_percent=val.gain_percent,
            rate=val.rate,
            cost_rate=val.cost_rate,
            daily_change_percent=inv.daily_change_percent or 0.0,
            rate_fallback=val.rate_fallback,
        )


@dataclass
class PortfolioSummary:
    portfolio_id: str
    name: str
    cash: float
    fx_fee_percent: float
    investments_value: float
    total_value: float
    total_cost: float
    total_gain: float
    total_gain_percent: float
    daily_change: DailyChange
    weekly_change: WeeklyChange
    investments: List[InvestmentSummary] = field(default_factory=list)
    as_of: Optional[dt.date] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["as_of"] = self.as_of.isoformat() if self.as_of else None
        wk = data["weekly_change"]
        wk["week_ago_date"] = wk["week_ago_date"].isoformat() if wk["week_ago_date"] else None
        return data


def summarise_portfolio(
    book: PortfolioBook,
    portfolio_id: Optional[str] = None,
    *,
    today: Optional[dt.date] = None,
) -> PortfolioSummary:
    """Summarise ``portfolio_id`` (default: the current portfolio) as of now."""
    today = resolve_today(today)
    pf = book.get_portfolio(portfolio_id)
    table = book.exchange_rates
    fee = pf.fx_fee_percent

    rows: List[InvestmentSummary] = []
    for inv in pf.investments:
        rows.append(InvestmentSummary.from_valuation(inv, value_of(inv, table, fee, today=today)))

    invested = sum(r.value for r in rows)
    cost = sum(r.cost for r in rows)
    gain = invested - cost
    daily = daily_change(((r.value, r.daily_change_percent) for r in rows), cash=pf.cash)

    series = build_series(book, today=today).per_portfolio.get(pf.id, [])
    weekly = weekly_change(series, today=today)

    return PortfolioSummary(
        portfolio_id=pf.id,
        name=pf.name,
        cash=pf.cash,
        fx_fee_percent=fee,
        investments_value=invested,
        total_value=invested + pf.cash,
        total_cost=cost,
        total_gain=gain,
        total_gain_percent=gain / cost * 100 if cost > 0 else 0.0,
        daily_change=daily,
        weekly_change=weekly,
        investments=rows,
        as_of=today,
    )


__all__ = ["InvestmentSummary", "PortfolioSummary", "summarise_portfolio"]

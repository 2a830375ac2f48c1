"""Reporting-currency valuation of a single investment or portfolio."""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Optional

from portfolio_tracker.common.fx import ExchangeRateTable, resolve_cost_basis_rate, resolve_rate
from portfolio_tracker.common.models import Investment, Portfolio
from portfolio_tracker.common.price_history import reconstruct_price
from portfolio_tracker.utils.dates import resolve_today

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Valuation:
    """Value and cost of one investment in the reporting currency."""

    value: float
    cost: float
    price: float
    rate: float
    cost_rate: float
    rate_fallback: bool = False

    @property
    def gain(self) -> float:
        return self.value - self.cost

    @property
    def gain_percent(self) -> float:
        if self.cost > 0:
            return self.gain / self.cost * 100
        return 0.0


def _native_price(investment: Investment, as_of: Optional[dt.date], today: dt.date) -> float:
    # "now" prefers the last scraped quote over the stored history
    if as_of is None and investment.current_price is not None:
        return investment.current_price
    return reconstruct_price(investment, as_of or today)


def value_of(
    investment: Investment,
    table: ExchangeRateTable,
    fee_percent: float = 0.0,
    as_of: Optional[dt.date] = None,
    *,
    today: Optional[dt.date] = None,
) -> Valuation:
    """Value ``investment`` on ``as_of`` (default: now).

    ``value = quantity * price * effective rate``, forced to 0 before the buy
    date. ``cost`` is the book cost converted at the cost-basis rate and does
    not vary with ``as_of``.
    """
    today = resolve_today(today)
    target = as_of or today

    price = _native_price(investment, as_of, today)
    rate = resolve_rate(investment.market_currency, table, fee_percent)
    cost_rate = resolve_cost_basis_rate(investment, table, fee_percent)

    value = investment.quantity * price * rate.rate
    if target < investment.buy_date:
        value = 0.0

    return Valuation(
        value=value,
        cost=investment.book_cost * cost_rate.rate,
        price=price,
        rate=rate.rate,
        cost_rate=cost_rate.rate,
        rate_fallback=rate.fallback or cost_rate.fallback,
    )


def portfolio_value(
    portfolio: Portfolio,
    table: ExchangeRateTable,
    as_of: Optional[dt.date] = None,
    *,
    today: Optional[dt.date] = None,
) -> float:
    """Cash plus the value of every investment in ``portfolio``.

    Cash is assumed constant over time; historical cash movements are not
    recorded.
    """
    fee = portfolio.fx_fee_percent
    total = portfolio.cash
    for inv in portfolio.investments:
        total += value_of(inv, table, fee, as_of, today=today).value
    return total


def realised_sale_value(
    investment: Investment,
    table: ExchangeRateTable,
    fee_percent: float = 0.0,
    sale_value: Optional[float] = None,
    *,
    today: Optional[dt.date] = None,
) -> float:
    """Return the proceeds credited to cash when ``investment`` is removed."""
    if sale_value is not None:
        return sale_value
    return value_of(investment, table, fee_percent, today=today).value


__all__ = ["Valuation", "value_of", "portfolio_value", "realised_sale_value"]

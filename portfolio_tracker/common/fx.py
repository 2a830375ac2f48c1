"""Exchange-rate table lookups and FX fee handling.

Rates are stored as "reporting-currency units per 1 unit of ``ccy``". The
reporting currency itself is implicit (rate 1) and never stored. A currency
missing from the table degrades to parity; :class:`RateResolution` carries a
``fallback`` flag so callers can tell that apart from a genuine 1:1 rate.
"""

from __future__ import annotations

import logging
from typing import Dict, Mapping, NamedTuple, Optional

from portfolio_tracker.common.constants import REPORTING_CURRENCY
from portfolio_tracker.common.models import Investment

logger = logging.getLogger(__name__)

ExchangeRateTable = Mapping[str, float]


class RateResolution(NamedTuple):
    rate: float
    fallback: bool = False


def _is_reporting(currency: Optional[str]) -> bool:
    return not currency or currency.upper() == REPORTING_CURRENCY


def market_rate(currency: Optional[str], table: ExchangeRateTable) -> RateResolution:
    """Return the fee-free rate for ``currency`` from ``table``."""
    if _is_reporting(currency):
        return RateResolution(1.0)
    ccy = currency.upper()
    rate = table.get(ccy)
    if rate is None:
        logger.debug("No exchange rate for %s; assuming parity", ccy)
        return RateResolution(1.0, fallback=True)
    return RateResolution(float(rate))


def resolve_rate(
    currency: Optional[str],
    table: ExchangeRateTable,
    fee_percent: float = 0.0,
) -> RateResolution:
    """Return the fee-adjusted rate for ``currency``.

    The reporting currency is always exactly 1; fees never apply to it.
    """
    if _is_reporting(currency):
        return RateResolution(1.0)
    market = market_rate(currency, table)
    return RateResolution(market.rate * (1 - (fee_percent or 0.0) / 100), market.fallback)


def effective_rate(
    currency: Optional[str],
    table: ExchangeRateTable,
    fee_percent: float = 0.0,
) -> float:
    return resolve_rate(currency, table, fee_percent).rate


def resolve_cost_basis_rate(
    investment: Investment,
    table: ExchangeRateTable,
    fee_percent: float = 0.0,
) -> RateResolution:
    """Return the rate used to convert ``investment.book_cost``.

    A manual ``book_cost_exchange_rate`` is taken as already net of fees and
    used verbatim; otherwise the book-cost currency goes through
    :func:`resolve_rate` with the portfolio fee.
    """
    manual = investment.book_cost_exchange_rate
    if manual is not None and manual > 0:
        return RateResolution(float(manual))
    return resolve_rate(investment.book_cost_currency, table, fee_percent)


def cost_basis_rate(
    investment: Investment,
    table: ExchangeRateTable,
    fee_percent: float = 0.0,
) -> float:
    return resolve_cost_basis_rate(investment, table, fee_percent).rate


def upsert_rates(table: ExchangeRateTable, rates: Mapping[str, Optional[float]]) -> Dict[str, float]:
    """Return a copy of ``table`` with the successfully fetched ``rates`` merged.

    ``None`` results and the reporting currency are skipped; existing entries
    are never evicted.
    """
    merged = dict(table)
    for ccy, rate in rates.items():
        if rate is None or _is_reporting(ccy):
            continue
        merged[ccy.upper()] = float(rate)
    return merged


__all__ = [
    "ExchangeRateTable",
    "RateResolution",
    "market_rate",
    "resolve_rate",
    "effective_rate",
    "resolve_cost_basis_rate",
    "cost_basis_rate",
    "upsert_rates",
]

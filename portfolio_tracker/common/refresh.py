"""Refresh holdings and exchange rates from an external quote source.

Fetchers are plain blocking callables (the FT scraper by default) run in
worker threads and gathered concurrently. A fetch that returns ``None`` or
raises leaves its holding or rate untouched; there is no retry.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from portfolio_tracker.common.book import currencies_needing_rates, replace_portfolio
from portfolio_tracker.common.constants import ALL_PORTFOLIOS, REPORTING_CURRENCY
from portfolio_tracker.common.fx import upsert_rates
from portfolio_tracker.common.models import Investment, Portfolio, PortfolioBook, Quote
from portfolio_tracker.common.price_history import append_or_update_today_point
from portfolio_tracker.utils.dates import utc_day, utcnow

logger = logging.getLogger(__name__)

QuoteFetcher = Callable[[str, str], Optional[Quote]]
RateFetcher = Callable[[str, str], Optional[float]]


@dataclass
class RefreshResult:
    book: PortfolioBook
    updated: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    rates_updated: List[str] = field(default_factory=list)
    rates_failed: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "updated": self.updated,
            "failed": self.failed,
            "rates_updated": self.rates_updated,
            "rates_failed": self.rates_failed,
            "last_updated": self.book.last_updated.isoformat() if self.book.last_updated else None,
        }


def apply_quote(investment: Investment, quote: Quote, *, now: Optional[dt.datetime] = None) -> Investment:
    """Return ``investment`` updated with ``quote`` and today's history point."""
    now = now or utcnow()
    updated = investment.model_copy(
        update={
            "current_price": quote.price,
            "daily_change_percent": quote.change_percent,
            "currency": quote.currency,
            "last_updated": now,
        }
    )
    return append_or_update_today_point(updated, quote.price, on=utc_day(now))


async def _gather(calls: Iterable[Tuple[Callable[..., Any], Tuple[Any, ...]]]) -> List[Any]:
    return await asyncio.gather(
        *(asyncio.to_thread(fn, *args) for fn, args in calls),
        return_exceptions=True,
    )


async def _refresh_portfolio(
    portfolio: Portfolio,
    fetch_quote: QuoteFetcher,
    now: dt.datetime,
    result: RefreshResult,
) -> Portfolio:
    investments = list(portfolio.investments)
    quotes = await _gather((fetch_quote, (inv.symbol, inv.type)) for inv in investments)

    refreshed: List[Investment] = []
    for inv, quote in zip(investments, quotes):
        if isinstance(quote, Exception):
            logger.warning("Quote fetch for %s raised: %s", inv.symbol, quote)
            quote = None
        if quote is None:
            result.failed.append(inv.id)
            refreshed.append(inv)
            continue
        try:
            refreshed.append(apply_quote(inv, quote, now=now))
        except ValueError as exc:
            logger.warning("Quote for %s rejected: %s", inv.symbol, exc)
            result.failed.append(inv.id)
            refreshed.append(inv)
            continue
        result.updated.append(inv.id)
    return portfolio.model_copy(update={"investments": refreshed})


async def refresh_rates(
    table: Mapping[str, float],
    currencies: Iterable[str],
    fetch_fx_rate: RateFetcher,
) -> Tuple[Dict[str, float], List[str], List[str]]:
    """Fetch a rate to the reporting currency for each of ``currencies``.

    Returns ``(new_table, updated, failed)``. Failed currencies keep whatever
    rate the table already held.
    """
    wanted = sorted({c.upper() for c in currencies if c and c.upper() != REPORTING_CURRENCY})
    fetched = await _gather((fetch_fx_rate, (ccy, REPORTING_CURRENCY)) for ccy in wanted)

    rates: Dict[str, Optional[float]] = {}
    failed: List[str] = []
    for ccy, rate in zip(wanted, fetched):
        if isinstance(rate, Exception):
            logger.warning("FX fetch for %s raised: %s", ccy, rate)
            rate = None
        if rate is None or rate <= 0:
            failed.append(ccy)
            continue
        rates[ccy] = rate
    return upsert_rates(table, rates), sorted(rates), failed


async def refresh_book(
    book: PortfolioBook,
    fetch_quote: QuoteFetcher,
    fetch_fx_rate: RateFetcher,
    *,
    portfolio_id: Optional[str] = None,
    now: Optional[dt.datetime] = None,
) -> RefreshResult:
    """Refresh quotes for one portfolio (default: current) or all with ``"*"``.

    After quotes, exchange rates are fetched for every non-reporting currency
    the refreshed holdings use. The returned book is stamped with ``now``.
    """
    now = now or utcnow()
    if portfolio_id == ALL_PORTFOLIOS:
        targets = list(book.portfolios)
    else:
        targets = [book.get_portfolio(portfolio_id)]

    result = RefreshResult(book=book)
    for pf in targets:
        book = replace_portfolio(book, await _refresh_portfolio(pf, fetch_quote, now, result))

    refreshed_ids = {pf.id for pf in targets}
    currencies = currencies_needing_rates(
        inv for pf in book.portfolios if pf.id in refreshed_ids for inv in pf.investments
    )
    table, result.rates_updated, result.rates_failed = await refresh_rates(
        book.exchange_rates, currencies, fetch_fx_rate
    )

    result.book = book.model_copy(update={"exchange_rates": table, "last_updated": now})
    logger.info(
        "Refreshed %d holdings (%d failed) and %d rates (%d failed)",
        len(result.updated),
        len(result.failed),
        len(result.rates_updated),
        len(result.rates_failed),
    )
    return result


__all__ = ["QuoteFetcher", "RateFetcher", "RefreshResult", "apply_quote", "refresh_rates", "refresh_book"]

"""Invariant-preserving edits to a :class:`PortfolioBook`.

Every helper takes a book and returns a new one; the input is left untouched
so a failed request never leaves a half-written document behind. Ids that do
not exist raise :class:`PortfolioNotFoundError` or
:class:`InvestmentNotFoundError`.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Iterable, Mapping, Optional, Set, Tuple

from portfolio_tracker.common.constants import REPORTING_CURRENCY
from portfolio_tracker.common.errors import LastPortfolioError
from portfolio_tracker.common.models import Investment, Portfolio, PortfolioBook, Quote, new_id
from portfolio_tracker.common.price_history import reanchor_cost_basis
from portfolio_tracker.common.valuation import realised_sale_value
from portfolio_tracker.config import config
from portfolio_tracker.utils.dates import utcnow

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = {
    "quantity",
    "book_cost",
    "book_cost_currency",
    "book_cost_exchange_rate",
    "buy_date",
    "name",
    "region",
    "sector",
}


# ───────────── helpers ─────────────
def replace_portfolio(book: PortfolioBook, portfolio: Portfolio) -> PortfolioBook:
    book.get_portfolio(portfolio.id)
    portfolios = [portfolio if p.id == portfolio.id else p for p in book.portfolios]
    return book.model_copy(update={"portfolios": portfolios})


def _replace_investment(portfolio: Portfolio, investment: Investment) -> Portfolio:
    portfolio.get_investment(investment.id)
    investments = [investment if i.id == investment.id else i for i in portfolio.investments]
    return portfolio.model_copy(update={"investments": investments})


def _validate_fee(fee: float) -> float:
    if not 0 <= fee <= 100:
        raise ValueError(f"FX fee must be between 0 and 100; got {fee}")
    return float(fee)


def currencies_needing_rates(investments: Iterable[Investment]) -> Set[str]:
    """Non-reporting market and book-cost currencies used by ``investments``."""
    out: Set[str] = set()
    for inv in investments:
        for ccy in (inv.currency, inv.book_cost_currency):
            if ccy and ccy != REPORTING_CURRENCY:
                out.add(ccy)
    return out


def all_investments(book: PortfolioBook) -> Iterable[Investment]:
    for pf in book.portfolios:
        yield from pf.investments


# ───────────── investments ─────────────
def add_investment(
    book: PortfolioBook,
    portfolio_id: Optional[str],
    investment: Investment,
    quote: Optional[Quote] = None,
    *,
    now: Optional[dt.datetime] = None,
) -> Tuple[PortfolioBook, Investment]:
    """Add ``investment`` with a fresh id and a single cost-basis anchor point.

    ``quote``, when the initial fetch succeeded, seeds the current price,
    market currency and daily change.
    """
    pf = book.get_portfolio(portfolio_id)
    update: dict[str, Any] = {"id": new_id(), "history": [], "last_updated": now or utcnow()}
    if quote is not None:
        update.update(
            current_price=quote.price,
            currency=quote.currency,
            daily_change_percent=quote.change_percent,
        )
    inv = reanchor_cost_basis(investment.model_copy(update=update))

    pf = pf.model_copy(update={"investments": [*pf.investments, inv]})
    logger.info("Added %s (%s) to portfolio %s", inv.symbol, inv.id, pf.id)
    return replace_portfolio(book, pf), inv


def edit_investment(
    book: PortfolioBook,
    portfolio_id: Optional[str],
    investment_id: str,
    changes: Mapping[str, Any],
) -> Tuple[PortfolioBook, Investment]:
    """Apply ``changes`` to an investment and rewrite its anchor point.

    Only :data:`EDITABLE_FIELDS` may change. The anchor is overwritten in
    place, never appended.
    """
    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise ValueError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")

    pf = book.get_portfolio(portfolio_id)
    current = pf.get_investment(investment_id)
    edited = Investment.model_validate({**current.model_dump(), **changes})
    edited = reanchor_cost_basis(edited)

    return replace_portfolio(book, _replace_investment(pf, edited)), edited


def remove_investment(
    book: PortfolioBook,
    portfolio_id: Optional[str],
    investment_id: str,
    *,
    add_to_cash: bool = True,
    sale_value: Optional[float] = None,
    today: Optional[dt.date] = None,
) -> Tuple[PortfolioBook, float]:
    """Remove an investment, optionally crediting the proceeds to cash.

    Without an explicit ``sale_value`` the proceeds are the investment's
    current reporting-currency value (portfolio fee applied). Returns the new
    book and the amount credited.
    """
    pf = book.get_portfolio(portfolio_id)
    inv = pf.get_investment(investment_id)

    credited = 0.0
    if add_to_cash:
        credited = realised_sale_value(
            inv, book.exchange_rates, pf.fx_fee_percent, sale_value, today=today
        )

    pf = pf.model_copy(
        update={
            "investments": [i for i in pf.investments if i.id != investment_id],
            "cash": pf.cash + credited,
        }
    )
    logger.info("Removed %s from portfolio %s; credited %.2f to cash", inv.symbol, pf.id, credited)
    return replace_portfolio(book, pf), credited


# ───────────── portfolio fields ─────────────
def set_cash(book: PortfolioBook, portfolio_id: Optional[str], amount: float) -> PortfolioBook:
    pf = book.get_portfolio(portfolio_id)
    return replace_portfolio(book, pf.model_copy(update={"cash": float(amount)}))


def set_fx_fee(book: PortfolioBook, portfolio_id: Optional[str], fee_percent: float) -> PortfolioBook:
    pf = book.get_portfolio(portfolio_id)
    fee = _validate_fee(fee_percent)
    return replace_portfolio(book, pf.model_copy(update={"fx_fee_percent": fee}))


# ───────────── portfolios ─────────────
def _clean_name(name: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValueError("Portfolio name cannot be empty")
    return cleaned


def add_portfolio(
    book: PortfolioBook,
    name: str,
    *,
    cash: float = 0.0,
    fx_fee_percent: Optional[float] = None,
    select: bool = True,
) -> Tuple[PortfolioBook, Portfolio]:
    """Append a new empty portfolio and, by default, make it current.

    Without an explicit fee the configured ``default_fx_fee_percent`` applies.
    """
    if fx_fee_percent is None:
        fx_fee_percent = config.default_fx_fee_percent
    pf = Portfolio(
        id=new_id(),
        name=_clean_name(name),
        cash=cash,
        fx_fee_percent=_validate_fee(fx_fee_percent),
    )
    update: dict[str, Any] = {"portfolios": [*book.portfolios, pf]}
    if select:
        update["current_portfolio_id"] = pf.id
    return book.model_copy(update=update), pf


def rename_portfolio(book: PortfolioBook, portfolio_id: str, name: str) -> PortfolioBook:
    pf = book.get_portfolio(portfolio_id)
    return replace_portfolio(book, pf.model_copy(update={"name": _clean_name(name)}))


def switch_portfolio(book: PortfolioBook, portfolio_id: str) -> PortfolioBook:
    pf = book.get_portfolio(portfolio_id)
    return book.model_copy(update={"current_portfolio_id": pf.id})


def delete_portfolio(book: PortfolioBook, portfolio_id: str) -> PortfolioBook:
    """Remove a portfolio; the last remaining one cannot be deleted.

    Deleting the current portfolio moves the selection to the first remaining
    one.
    """
    book.get_portfolio(portfolio_id)
    if len(book.portfolios) <= 1:
        raise LastPortfolioError()

    remaining = [p for p in book.portfolios if p.id != portfolio_id]
    current = book.current_portfolio_id
    if current == portfolio_id:
        current = remaining[0].id
    return book.model_copy(update={"portfolios": remaining, "current_portfolio_id": current})


__all__ = [
    "EDITABLE_FIELDS",
    "replace_portfolio",
    "currencies_needing_rates",
    "all_investments",
    "add_investment",
    "edit_investment",
    "remove_investment",
    "set_cash",
    "set_fx_fee",
    "add_portfolio",
    "rename_portfolio",
    "switch_portfolio",
    "delete_portfolio",
]

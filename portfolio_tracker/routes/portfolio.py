"""Endpoints for the portfolio book: CRUD, refresh, summary and charts.

Each write loads the whole book, applies one pure transform from
:mod:`portfolio_tracker.common.book` and saves it back. The store and the
quote fetchers are FastAPI dependencies so tests can swap in fakes.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from portfolio_tracker.common import book as book_ops
from portfolio_tracker.common.aggregation import build_series, investment_return_chart
from portfolio_tracker.common.constants import REPORTING_CURRENCY, VALUE_MODE
from portfolio_tracker.common.errors import handle_book_errors
from portfolio_tracker.common.models import Investment, InvestmentType, Portfolio, PortfolioBook, Quote
from portfolio_tracker.common.refresh import QuoteFetcher, RateFetcher, refresh_book
from portfolio_tracker.common.storage import DocumentStore, default_store, load_book, save_book
from portfolio_tracker.common.summary import summarise_portfolio
from portfolio_tracker.scraper import ft

logger = logging.getLogger(__name__)

router = APIRouter(tags=["portfolio"])


# ──────────────────────────────────────────────────────────────
# Dependencies
# ──────────────────────────────────────────────────────────────
@dataclass
class Fetchers:
    quote: QuoteFetcher
    fx_rate: RateFetcher


def get_book_store() -> DocumentStore:
    return default_store()


def get_fetchers() -> Fetchers:
    return Fetchers(quote=ft.fetch_quote, fx_rate=ft.fetch_fx_rate)


# ──────────────────────────────────────────────────────────────
# Request bodies
# ──────────────────────────────────────────────────────────────
class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class PortfolioCreate(_Body):
    name: str
    cash: float = 0.0
    fx_fee_percent: Optional[float] = Field(None, alias="fxFeePercent")
    select: bool = True


class PortfolioUpdate(_Body):
    name: Optional[str] = None
    fx_fee_percent: Optional[float] = Field(None, alias="fxFeePercent")


class CashUpdate(_Body):
    amount: float


class InvestmentCreate(_Body):
    type: InvestmentType = "fund"
    symbol: str
    name: str = ""
    region: str = ""
    sector: str = ""
    quantity: float = Field(ge=0)
    book_cost: float = Field(alias="bookCost")
    book_cost_currency: str = Field(REPORTING_CURRENCY, alias="bookCostCurrency")
    book_cost_exchange_rate: Optional[float] = Field(None, alias="bookCostExchangeRate")
    buy_date: dt.date = Field(alias="buyDate")


class InvestmentUpdate(_Body):
    name: Optional[str] = None
    region: Optional[str] = None
    sector: Optional[str] = None
    quantity: Optional[float] = Field(None, ge=0)
    book_cost: Optional[float] = Field(None, alias="bookCost")
    book_cost_currency: Optional[str] = Field(None, alias="bookCostCurrency")
    book_cost_exchange_rate: Optional[float] = Field(None, alias="bookCostExchangeRate")
    buy_date: Optional[dt.date] = Field(None, alias="buyDate")


# ──────────────────────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────────────────────
def _doc(model: BaseModel) -> Dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)


def _portfolio_row(book: PortfolioBook, pf: Portfolio) -> Dict[str, Any]:
    return {
        "id": pf.id,
        "name": pf.name,
        "cash": pf.cash,
        "fxFeePercent": pf.fx_fee_percent,
        "investmentCount": len(pf.investments),
        "current": pf.id == book.current_portfolio_id,
    }


async def _initial_quote(fetchers: Fetchers, symbol: str, asset_type: str) -> Optional[Quote]:
    try:
        return await asyncio.to_thread(fetchers.quote, symbol, asset_type)
    except Exception as exc:
        logger.warning("Initial quote for %s failed: %s", symbol, exc)
        return None


# ──────────────────────────────────────────────────────────────
# Book and portfolios
# ──────────────────────────────────────────────────────────────
@router.get("/book")
async def get_book(store: DocumentStore = Depends(get_book_store)):
    """Return the whole persisted book."""
    return load_book(store).to_document()


@router.get("/portfolios")
async def list_portfolios(store: DocumentStore = Depends(get_book_store)):
    book = load_book(store)
    return [_portfolio_row(book, pf) for pf in book.portfolios]


@router.post("/portfolios", status_code=201)
@handle_book_errors
async def create_portfolio(body: PortfolioCreate, store: DocumentStore = Depends(get_book_store)):
    book, pf = book_ops.add_portfolio(
        load_book(store),
        body.name,
        cash=body.cash,
        fx_fee_percent=body.fx_fee_percent,
        select=body.select,
    )
    save_book(store, book)
    return _portfolio_row(book, pf)


@router.patch("/portfolios/{portfolio_id}")
@handle_book_errors
async def update_portfolio(
    portfolio_id: str,
    body: PortfolioUpdate,
    store: DocumentStore = Depends(get_book_store),
):
    """Rename a portfolio and/or change its FX fee."""
    book = load_book(store)
    if body.name is not None:
        book = book_ops.rename_portfolio(book, portfolio_id, body.name)
    if body.fx_fee_percent is not None:
        book = book_ops.set_fx_fee(book, portfolio_id, body.fx_fee_percent)
    save_book(store, book)
    return _portfolio_row(book, book.get_portfolio(portfolio_id))


@router.delete("/portfolios/{portfolio_id}")
@handle_book_errors
async def delete_portfolio(portfolio_id: str, store: DocumentStore = Depends(get_book_store)):
    book = book_ops.delete_portfolio(load_book(store), portfolio_id)
    save_book(store, book)
    return {"status": "ok", "currentPortfolioId": book.current_portfolio_id}


@router.post("/portfolios/{portfolio_id}/select")
@handle_book_errors
async def select_portfolio(portfolio_id: str, store: DocumentStore = Depends(get_book_store)):
    book = book_ops.switch_portfolio(load_book(store), portfolio_id)
    save_book(store, book)
    return {"status": "ok", "currentPortfolioId": book.current_portfolio_id}


@router.put("/portfolios/{portfolio_id}/cash")
@handle_book_errors
async def set_cash(portfolio_id: str, body: CashUpdate, store: DocumentStore = Depends(get_book_store)):
    book = book_ops.set_cash(load_book(store), portfolio_id, body.amount)
    save_book(store, book)
    return _portfolio_row(book, book.get_portfolio(portfolio_id))


# ──────────────────────────────────────────────────────────────
# Investments
# ──────────────────────────────────────────────────────────────
@router.post("/portfolios/{portfolio_id}/investments", status_code=201)
@handle_book_errors
async def add_investment(
    portfolio_id: str,
    body: InvestmentCreate,
    store: DocumentStore = Depends(get_book_store),
    fetchers: Fetchers = Depends(get_fetchers),
):
    """Add a holding, seeding its price from a live quote when one is available."""
    book = load_book(store)
    book.get_portfolio(portfolio_id)

    quote = await _initial_quote(fetchers, body.symbol, body.type)
    new = Investment.model_validate(body.model_dump())
    book, inv = book_ops.add_investment(book, portfolio_id, new, quote)
    save_book(store, book)
    return _doc(inv)


@router.patch("/portfolios/{portfolio_id}/investments/{investment_id}")
@handle_book_errors
async def edit_investment(
    portfolio_id: str,
    investment_id: str,
    body: InvestmentUpdate,
    store: DocumentStore = Depends(get_book_store),
):
    changes = body.model_dump(exclude_unset=True)
    book, inv = book_ops.edit_investment(load_book(store), portfolio_id, investment_id, changes)
    save_book(store, book)
    return _doc(inv)


@router.delete("/portfolios/{portfolio_id}/investments/{investment_id}")
@handle_book_errors
async def remove_investment(
    portfolio_id: str,
    investment_id: str,
    add_to_cash: bool = Query(True),
    sale_value: Optional[float] = Query(None, ge=0),
    store: DocumentStore = Depends(get_book_store),
):
    """Remove a holding, crediting the sale proceeds to cash unless told not to."""
    book, credited = book_ops.remove_investment(
        load_book(store),
        portfolio_id,
        investment_id,
        add_to_cash=add_to_cash,
        sale_value=sale_value,
    )
    save_book(store, book)
    return {"status": "ok", "credited": credited, "cash": book.get_portfolio(portfolio_id).cash}


# ──────────────────────────────────────────────────────────────
# Refresh and reporting
# ──────────────────────────────────────────────────────────────
@router.post("/refresh")
@handle_book_errors
async def refresh(
    portfolio_id: Optional[str] = Query(None, description="Portfolio id, or '*' for every portfolio"),
    store: DocumentStore = Depends(get_book_store),
    fetchers: Fetchers = Depends(get_fetchers),
):
    result = await refresh_book(load_book(store), fetchers.quote, fetchers.fx_rate, portfolio_id=portfolio_id)
    save_book(store, result.book)
    return result.to_dict()


@router.get("/summary")
@handle_book_errors
async def summary(
    portfolio_id: Optional[str] = Query(None),
    store: DocumentStore = Depends(get_book_store),
):
    return summarise_portfolio(load_book(store), portfolio_id).to_dict()


@router.get("/series")
@handle_book_errors
async def series(
    mode: str = Query(VALUE_MODE),
    start: Optional[dt.date] = Query(None),
    end: Optional[dt.date] = Query(None),
    store: DocumentStore = Depends(get_book_store),
):
    """Value (or percent-return) series for every investment, portfolio and the book."""
    return build_series(load_book(store), mode=mode, start=start, end=end).to_dict()


@router.get("/charts")
@handle_book_errors
async def charts(
    portfolio_id: Optional[str] = Query(None),
    store: DocumentStore = Depends(get_book_store),
):
    pf = load_book(store).get_portfolio(portfolio_id)
    out: List[Dict[str, Any]] = []
    for inv in pf.investments:
        out.append(
            {
                "id": inv.id,
                "symbol": inv.symbol,
                "name": inv.name,
                "points": [p.to_dict() for p in investment_return_chart(inv)],
            }
        )
    return out

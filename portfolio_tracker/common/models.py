"""Pydantic models for the portfolio book document.

The whole book is persisted as a single JSON document. Field names on disk use
camelCase (``bookCost``, ``buyDate`` ...) and the models accept either the
alias or the Python attribute name.
"""

from __future__ import annotations

import datetime as dt
import logging
import uuid
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from portfolio_tracker.common.constants import DEFAULT_PORTFOLIO_NAME, REPORTING_CURRENCY
from portfolio_tracker.common.errors import InvestmentNotFoundError, PortfolioNotFoundError

logger = logging.getLogger(__name__)

InvestmentType = Literal["fund", "etf", "stock"]


def new_id() -> str:
    return uuid.uuid4().hex[:12]


def _normalise_ccy(value: Any) -> Optional[str]:
    if value is None:
        return None
    code = str(value).strip().upper()
    return code or None


class _Document(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class PricePoint(_Document):
    date: dt.date
    price: float = Field(ge=0)


class Quote(_Document):
    """Result of a successful price fetch."""

    price: float = Field(ge=0)
    currency: str
    change_percent: float = Field(0.0, alias="changePercent")


class Investment(_Document):
    id: str = Field(default_factory=new_id)
    type: InvestmentType = "fund"
    symbol: str
    name: str = ""
    region: str = ""
    sector: str = ""
    quantity: float = Field(0.0, ge=0)
    book_cost: float = Field(0.0, alias="bookCost")
    book_cost_currency: str = Field(REPORTING_CURRENCY, alias="bookCostCurrency")
    book_cost_exchange_rate: Optional[float] = Field(None, alias="bookCostExchangeRate")
    buy_date: dt.date = Field(alias="buyDate")
    history: List[PricePoint] = Field(default_factory=list)
    current_price: Optional[float] = Field(None, alias="currentPrice")
    currency: Optional[str] = None
    daily_change_percent: Optional[float] = Field(None, alias="dailyChangePercent")
    last_updated: Optional[dt.datetime] = Field(None, alias="lastUpdated")

    @field_validator("currency", mode="before")
    @classmethod
    def _market_currency(cls, value: Any) -> Optional[str]:
        return _normalise_ccy(value)

    @field_validator("book_cost_currency", mode="before")
    @classmethod
    def _book_currency(cls, value: Any) -> str:
        return _normalise_ccy(value) or REPORTING_CURRENCY

    @property
    def cost_basis_price(self) -> float:
        """Book cost per unit in ``book_cost_currency`` (0 without units)."""
        if self.quantity > 0:
            return self.book_cost / self.quantity
        return 0.0

    @property
    def market_currency(self) -> str:
        return self.currency or REPORTING_CURRENCY


class Portfolio(_Document):
    id: str = Field(default_factory=new_id)
    name: str = DEFAULT_PORTFOLIO_NAME
    cash: float = 0.0
    investments: List[Investment] = Field(default_factory=list)
    fx_fee_percent: float = Field(0.0, alias="fxFeePercent", ge=0, le=100)

    @field_validator("fx_fee_percent", "cash", mode="before")
    @classmethod
    def _none_is_zero(cls, value: Any) -> Any:
        return 0.0 if value is None else value

    def get_investment(self, investment_id: str) -> Investment:
        for inv in self.investments:
            if inv.id == investment_id:
                return inv
        raise InvestmentNotFoundError(investment_id)


class PortfolioBook(_Document):
    portfolios: List[Portfolio] = Field(default_factory=list)
    current_portfolio_id: str = Field("", alias="currentPortfolioId")
    exchange_rates: Dict[str, float] = Field(default_factory=dict, alias="exchangeRates")
    last_updated: Optional[dt.datetime] = Field(None, alias="lastUpdated")

    @model_validator(mode="before")
    @classmethod
    def _migrate_single_portfolio(cls, data: Any) -> Any:
        """Wrap documents written before multiple portfolios existed."""
        if not isinstance(data, dict) or "portfolios" in data:
            return data
        if "investments" not in data and "cash" not in data:
            return data
        logger.info("Migrating single-portfolio document to portfolio book")
        legacy = {
            "id": new_id(),
            "name": DEFAULT_PORTFOLIO_NAME,
            "cash": data.get("cash") or 0.0,
            "investments": data.get("investments") or [],
        }
        migrated = {k: v for k, v in data.items() if k not in {"cash", "investments"}}
        migrated["portfolios"] = [legacy]
        migrated["currentPortfolioId"] = legacy["id"]
        return migrated

    @field_validator("exchange_rates", mode="before")
    @classmethod
    def _clean_rates(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        cleaned = {}
        for ccy, rate in value.items():
            code = _normalise_ccy(ccy)
            if code and code != REPORTING_CURRENCY and rate is not None:
                cleaned[code] = rate
        return cleaned

    @model_validator(mode="after")
    def _check_portfolios(self) -> "PortfolioBook":
        if not self.portfolios:
            self.portfolios = [Portfolio()]
        ids = [p.id for p in self.portfolios]
        if len(ids) != len(set(ids)):
            raise ValueError("Portfolio ids must be unique")
        if self.current_portfolio_id not in ids:
            self.current_portfolio_id = ids[0]
        return self

    def get_portfolio(self, portfolio_id: Optional[str] = None) -> Portfolio:
        """Return ``portfolio_id`` or the current portfolio when omitted."""
        target = portfolio_id or self.current_portfolio_id
        for pf in self.portfolios:
            if pf.id == target:
                return pf
        raise PortfolioNotFoundError(target)

    def current_portfolio(self) -> Portfolio:
        return self.get_portfolio(self.current_portfolio_id)

    def to_document(self) -> Dict[str, Any]:
        """Serialise to the on-disk camelCase JSON shape."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


__all__ = [
    "InvestmentType",
    "PricePoint",
    "Quote",
    "Investment",
    "Portfolio",
    "PortfolioBook",
    "new_id",
]

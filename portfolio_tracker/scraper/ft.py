"""Quotes and exchange rates scraped from Financial Times tearsheet pages.

Both entry points are best effort: any network or parsing problem is logged
and reported as ``None`` so a refresh can carry on with the other holdings.
Nothing is fetched while ``offline_mode`` is enabled.
"""

from __future__ import annotations

import logging
import re
from typing import Iterator, Optional, Tuple

import requests
from bs4 import BeautifulSoup
from pydantic import ValidationError

from portfolio_tracker.common.constants import MINOR_UNIT_CURRENCIES
from portfolio_tracker.common.models import Quote
from portfolio_tracker.config import config

logger = logging.getLogger("ft_scraper")

FUND_PATH = "funds/tearsheet/summary"
EQUITY_PATH = "equities/tearsheet/summary"
FX_PATH = "currencies/tearsheet/summary"

# exchange suffixes tried when the user gives a bare ticker
FALLBACK_SUFFIXES = ("NYQ", "NSQ", "LSE")

_SUFFIX_CURRENCIES = {"LSE": "GBP", "GER": "EUR", "FRA": "EUR"}

_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")
_PRICE_CCY_RE = re.compile(r"Price \(([A-Za-z]{3})\)")


# ──────────────────────────────────────────────────────────────
# Parsing helpers
# ──────────────────────────────────────────────────────────────
def _to_float(text: Optional[str]) -> Optional[float]:
    if not text:
        return None
    cleaned = text.replace(",", "").replace("+", "").replace("−", "-")
    match = _NUMBER_RE.search(cleaned)
    return float(match.group()) if match else None


def _text(soup: BeautifulSoup, selector: str) -> str:
    node = soup.select_one(selector)
    return node.get_text(strip=True) if node else ""


def _data_list_rows(soup: BeautifulSoup, scope: str = "") -> Iterator[Tuple[str, str]]:
    for row in soup.select(f"{scope} .mod-ui-data-list__row, {scope} li".strip()):
        label = row.select_one(".mod-ui-data-list__label")
        value = row.select_one(".mod-ui-data-list__value")
        if label and value:
            yield label.get_text(strip=True), value.get_text(strip=True)


def _parse_currency(soup: BeautifulSoup) -> Optional[str]:
    match = _PRICE_CCY_RE.search(_text(soup, ".mod-tearsheet-overview__quote__subheading"))
    if match:
        return match.group(1)
    for label, value in _data_list_rows(soup):
        if label == "Currency" and value:
            return value
    return None


def _parse_change_percent(soup: BeautifulSoup) -> float:
    """Return today's percent move; FT renders it as ``"+0.50 / +1.23%"``."""
    change = ""
    for label, value in _data_list_rows(soup):
        if "Today's Change" in label or label == "Change":
            change = value
    if not change:
        first = _text(soup, ".mod-tearsheet-overview__quote__bar .mod-ui-data-list__value")
        if "%" in first or "/" in first:
            change = first
    if "/" in change:
        parts = change.split("/")
        change = next((p for p in parts if "%" in p), parts[1])
    return _to_float(change) or 0.0


def _infer_currency(symbol: str) -> str:
    _, _, suffix = symbol.rpartition(":")
    return _SUFFIX_CURRENCIES.get(suffix.upper(), "USD")


def parse_quote_page(html: str, symbol: str) -> Optional[Quote]:
    """Extract a :class:`Quote` from a fund or equity tearsheet."""
    soup = BeautifulSoup(html, "html.parser")

    price_text = _text(soup, ".mod-tearsheet-overview__quote__value") or _text(
        soup, ".mod-tearsheet-overview__header__last-price"
    )
    price = _to_float(price_text)
    if price is None:
        price = _to_float(_text(soup, ".mod-tearsheet-overview__quote li .mod-ui-data-list__value"))
    if price is None:
        return None

    currency = _parse_currency(soup) or _infer_currency(symbol)
    minor = MINOR_UNIT_CURRENCIES.get(currency)
    if minor:
        currency, divisor = minor
        price = price / divisor

    try:
        return Quote(price=price, currency=currency.upper(), change_percent=_parse_change_percent(soup))
    except ValidationError as exc:
        logger.warning("Unusable FT quote for %s: %s", symbol, exc)
        return None


def parse_rate_page(html: str) -> Optional[float]:
    soup = BeautifulSoup(html, "html.parser")
    rate = _to_float(_text(soup, ".mod-tearsheet-overview__quote__value"))
    if rate is None:
        for label, value in _data_list_rows(soup, ".mod-tearsheet-overview__quote__bar"):
            if "Price" in label:
                rate = _to_float(value)
    if rate is None or rate <= 0:
        return None
    return rate


# ──────────────────────────────────────────────────────────────
# Network
# ──────────────────────────────────────────────────────────────
def _get(path: str, symbol: str) -> Optional[str]:
    url = f"{config.ft_base_url.rstrip('/')}/{path}"
    headers = {"User-Agent": config.ft_user_agent} if config.ft_user_agent else {}
    try:
        resp = requests.get(url, params={"s": symbol}, headers=headers, timeout=config.fetch_timeout)
        resp.raise_for_status()
    except requests.RequestException as exc:
        logger.warning("FT request failed for %s: %s", symbol, exc)
        return None
    return resp.text


def symbol_candidates(symbol: str) -> Iterator[str]:
    """Yield ``symbol`` followed by the exchange-suffixed variants to retry."""
    yield symbol
    if ":" not in symbol:
        for suffix in FALLBACK_SUFFIXES:
            yield f"{symbol}:{suffix}"
    elif symbol.upper().endswith(":NYSE"):
        yield symbol[: -len(":NYSE")] + ":NYQ"


def fetch_quote(symbol: str, asset_type: str = "fund") -> Optional[Quote]:
    """Scrape the latest price for ``symbol``; ``None`` when nothing usable."""
    if config.offline_mode:
        logger.debug("Offline mode; skipping quote fetch for %s", symbol)
        return None

    path = FUND_PATH if asset_type == "fund" else EQUITY_PATH
    for candidate in symbol_candidates(symbol.strip()):
        html = _get(path, candidate)
        if html is None:
            continue
        quote = parse_quote_page(html, candidate)
        if quote is not None:
            logger.info("FT quote for %s: %s %s", candidate, quote.price, quote.currency)
            return quote

    logger.warning("No FT quote for %s after retries", symbol)
    return None


def fetch_fx_rate(base: str, target: str) -> Optional[float]:
    """Return how many ``target`` units one ``base`` unit buys."""
    base, target = base.upper(), target.upper()
    if base == target:
        return 1.0
    if config.offline_mode:
        logger.debug("Offline mode; skipping FX fetch for %s%s", base, target)
        return None

    html = _get(FX_PATH, f"{base}{target}")
    if html is None:
        return None
    rate = parse_rate_page(html)
    if rate is None:
        logger.warning("Could not parse FT rate for %s%s", base, target)
    return rate


__all__ = ["fetch_quote", "fetch_fx_rate", "parse_quote_page", "parse_rate_page", "symbol_candidates"]

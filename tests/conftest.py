import asyncio
import datetime as dt
import inspect
import os
import tempfile
from pathlib import Path

import pytest

os.environ.setdefault("TESTING", "1")
os.environ.setdefault("DATA_ROOT", str(Path(tempfile.gettempdir()) / "portfolio_tracker_tests"))

from portfolio_tracker.config import config
from portfolio_tracker.common.models import Investment, Portfolio, PortfolioBook, PricePoint


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem):
    """Lightweight async test support when ``pytest-asyncio`` isn't available."""

    test_function = pyfuncitem.obj
    if not inspect.iscoroutinefunction(test_function):
        return None

    call_kwargs = {
        name: value
        for name, value in pyfuncitem.funcargs.items()
        if name in pyfuncitem._fixtureinfo.argnames
    }

    loop = asyncio.new_event_loop()
    try:
        asyncio.set_event_loop(loop)
        loop.run_until_complete(test_function(**call_kwargs))
        loop.run_until_complete(loop.shutdown_asyncgens())
    finally:
        asyncio.set_event_loop(None)
        loop.close()

    return True


@pytest.fixture(scope="session", autouse=True)
def enable_offline_mode():
    """Keep the FT scraper off the network for all tests."""
    previous = config.offline_mode
    config.offline_mode = True
    try:
        yield
    finally:
        config.offline_mode = previous


class MemoryStore:
    """In-memory stand-in for a document store."""

    def __init__(self, data=None):
        self.data = dict(data or {})
        self.saves = 0

    def load(self):
        return dict(self.data)

    def save(self, data):
        self.data = data
        self.saves += 1


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def today():
    return dt.date(2024, 3, 15)


@pytest.fixture
def usd_stock():
    return Investment(
        id="usd1",
        type="stock",
        symbol="AAPL:NSQ",
        name="Apple",
        quantity=10,
        book_cost=1000,
        book_cost_currency="USD",
        buy_date=dt.date(2024, 1, 2),
        history=[PricePoint(date=dt.date(2024, 1, 2), price=100)],
        current_price=150,
        currency="USD",
        daily_change_percent=2.0,
    )


@pytest.fixture
def gbp_fund():
    return Investment(
        id="gbp1",
        type="fund",
        symbol="GB00B3X7QG63",
        name="Index Fund",
        quantity=5,
        book_cost=500,
        buy_date=dt.date(2024, 1, 1),
        history=[
            PricePoint(date=dt.date(2024, 1, 1), price=100),
            PricePoint(date=dt.date(2024, 2, 1), price=110),
            PricePoint(date=dt.date(2024, 3, 1), price=120),
        ],
        currency="GBP",
    )


@pytest.fixture
def book(usd_stock, gbp_fund):
    main = Portfolio(id="main", name="Main", cash=100, investments=[gbp_fund, usd_stock], fx_fee_percent=1.5)
    isa = Portfolio(id="isa", name="ISA", cash=50)
    return PortfolioBook(
        portfolios=[main, isa],
        current_portfolio_id="main",
        exchange_rates={"USD": 0.8},
    )

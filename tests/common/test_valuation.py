import datetime as dt

import pytest

from portfolio_tracker.common.models import Investment, Portfolio
from portfolio_tracker.common.valuation import portfolio_value, realised_sale_value, value_of


def test_usd_holding_with_fee(usd_stock, today):
    val = value_of(usd_stock, {"USD": 0.8}, 1.5, today=today)
    assert val.rate == pytest.approx(0.788)
    assert val.value == pytest.approx(1182.00)
    assert val.price == 150
    assert val.cost == pytest.approx(788.0)
    assert val.gain == pytest.approx(394.0)
    assert val.gain_percent == pytest.approx(50.0)
    assert val.rate_fallback is False


def test_gbp_holding_rate_is_one_regardless_of_fee(gbp_fund, today):
    val = value_of(gbp_fund, {"USD": 0.8}, 25, today=today)
    assert val.rate == 1.0
    assert val.value == pytest.approx(600)


def test_value_before_buy_date_is_zero(usd_stock, today):
    val = value_of(usd_stock, {"USD": 0.8}, 0, as_of=dt.date(2023, 12, 31), today=today)
    assert val.value == 0
    assert val.cost == pytest.approx(800)


def test_historical_value_uses_history_not_current_price(usd_stock, today):
    val = value_of(usd_stock, {"USD": 0.8}, 0, as_of=dt.date(2024, 2, 1), today=today)
    assert val.price == 100
    assert val.value == pytest.approx(800)


def test_now_without_current_price_reconstructs(gbp_fund, today):
    assert value_of(gbp_fund, {}, today=today).price == 120


def test_missing_rate_flags_fallback(usd_stock, today):
    val = value_of(usd_stock, {}, 0, today=today)
    assert val.rate == 1.0
    assert val.rate_fallback is True


def test_manual_cost_rate_used_for_cost_only(usd_stock, today):
    inv = usd_stock.model_copy(update={"book_cost_exchange_rate": 0.7})
    val = value_of(inv, {"USD": 0.8}, 1.5, today=today)
    assert val.cost == pytest.approx(700)
    assert val.rate == pytest.approx(0.788)


def test_zero_cost_gain_percent_is_zero(today):
    inv = Investment(symbol="GIFT", quantity=1, book_cost=0, buy_date=dt.date(2024, 1, 1), current_price=10)
    val = value_of(inv, {}, today=today)
    assert val.gain == 10
    assert val.gain_percent == 0


def test_portfolio_value_adds_cash(book, today):
    main = book.get_portfolio("main")
    assert portfolio_value(main, book.exchange_rates, today=today) == pytest.approx(100 + 600 + 1182)
    assert portfolio_value(Portfolio(cash=42), {}, today=today) == 42


def test_realised_sale_value_prefers_explicit(usd_stock, today):
    assert realised_sale_value(usd_stock, {"USD": 0.8}, 1.5, 999.0, today=today) == 999.0
    assert realised_sale_value(usd_stock, {"USD": 0.8}, 1.5, today=today) == pytest.approx(1182.0)


def test_zero_quote_is_a_real_price(usd_stock, today):
    inv = usd_stock.model_copy(update={"current_price": 0.0})
    val = value_of(inv, {"USD": 0.8}, 0, today=today)
    assert val.price == 0
    assert val.value == 0

import datetime as dt

import pytest

from portfolio_tracker.common.errors import PortfolioNotFoundError
from portfolio_tracker.common.summary import summarise_portfolio


def test_summary_totals(book, today):
    summary = summarise_portfolio(book, today=today)

    assert summary.portfolio_id == "main"
    assert summary.investments_value == pytest.approx(1782)
    assert summary.total_value == pytest.approx(1882)
    assert summary.total_cost == pytest.approx(500 + 788)
    assert summary.total_gain == pytest.approx(494)
    assert summary.total_gain_percent == pytest.approx(494 / 1288 * 100)


def test_summary_rows(book, today):
    rows = {r.id: r for r in summarise_portfolio(book, today=today).investments}

    usd = rows["usd1"]
    assert usd.currency == "USD"
    assert usd.rate == pytest.approx(0.788)
    assert usd.value == pytest.approx(1182)
    assert usd.average_cost == 100
    assert usd.rate_fallback is False

    gbp = rows["gbp1"]
    assert gbp.price == 120
    assert gbp.gain_percent == pytest.approx(20)


def test_summary_daily_and_weekly_change(book, today):
    summary = summarise_portfolio(book, today=today)
    # only the USD holding moved today (+2%)
    assert summary.daily_change.absolute == pytest.approx(1182 - 1182 / 1.02)
    assert summary.weekly_change.week_ago_date == dt.date(2024, 3, 1)
    assert summary.weekly_change.current == pytest.approx(summary.total_value)


def test_summary_for_other_portfolio(book, today):
    summary = summarise_portfolio(book, "isa", today=today)
    assert summary.total_value == 50
    assert summary.investments == []
    assert summary.daily_change.percent == 0


def test_summary_to_dict_is_json_friendly(book, today):
    data = summarise_portfolio(book, today=today).to_dict()
    assert data["as_of"] == "2024-03-15"
    assert data["weekly_change"]["week_ago_date"] == "2024-03-01"
    assert {r["symbol"] for r in data["investments"]} == {"AAPL:NSQ", "GB00B3X7QG63"}


def test_summary_unknown_portfolio(book):
    with pytest.raises(PortfolioNotFoundError):
        summarise_portfolio(book, "nope")

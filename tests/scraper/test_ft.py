import pytest
import requests

from portfolio_tracker.scraper import ft

FUND_PAGE = """
<div class="mod-tearsheet-overview__quote">
  <ul class="mod-tearsheet-overview__quote__bar">
    <li><span class="mod-ui-data-list__label">Price (GBX)</span>
        <span class="mod-ui-data-list__value">12,345.00</span></li>
    <li><span class="mod-ui-data-list__label">Today's Change</span>
        <span class="mod-ui-data-list__value">+25.00 / +0.20%</span></li>
  </ul>
  <span class="mod-tearsheet-overview__quote__value">12,345.00</span>
  <div class="mod-tearsheet-overview__quote__subheading">Price (GBX)</div>
</div>
"""

EQUITY_PAGE = """
<div class="mod-tearsheet-overview__header__last-price">187.50</div>
<ul>
  <li class="mod-ui-data-list__row">
    <span class="mod-ui-data-list__label">Currency</span>
    <span class="mod-ui-data-list__value">USD</span>
  </li>
  <li class="mod-ui-data-list__row">
    <span class="mod-ui-data-list__label">Change</span>
    <span class="mod-ui-data-list__value">-1.50 / -0.79%</span>
  </li>
</ul>
"""

FX_PAGE = """
<ul class="mod-tearsheet-overview__quote__bar">
  <li><span class="mod-ui-data-list__label">Price (GBP)</span>
      <span class="mod-ui-data-list__value">0.7912</span></li>
</ul>
"""


class FakeResponse:
    def __init__(self, text="", status=200):
        self.text = text
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


@pytest.fixture
def online(monkeypatch):
    monkeypatch.setattr(ft.config, "offline_mode", False)


@pytest.fixture
def fake_get(monkeypatch):
    """Serve pages keyed by the ``s`` query parameter and record requests."""
    pages = {}
    calls = []

    def _get(url, params=None, headers=None, timeout=None):
        calls.append((url, params["s"]))
        page = pages.get(params["s"])
        if page is None:
            return FakeResponse(status=404)
        return FakeResponse(page)

    monkeypatch.setattr(ft.requests, "get", _get)
    return pages, calls


def test_parse_fund_page_converts_pence():
    quote = ft.parse_quote_page(FUND_PAGE, "GB00B3X7QG63")
    assert quote.price == pytest.approx(123.45)
    assert quote.currency == "GBP"
    assert quote.change_percent == pytest.approx(0.20)


def test_parse_equity_page_uses_fallbacks():
    quote = ft.parse_quote_page(EQUITY_PAGE, "AAPL:NSQ")
    assert quote.price == 187.50
    assert quote.currency == "USD"
    assert quote.change_percent == pytest.approx(-0.79)


def test_parse_page_without_price():
    assert ft.parse_quote_page("<html><body>Not found</body></html>", "X") is None


def test_currency_inferred_from_suffix():
    page = '<span class="mod-tearsheet-overview__quote__value">10.5</span>'
    assert ft.parse_quote_page(page, "SAP:GER").currency == "EUR"
    assert ft.parse_quote_page(page, "VOD:LSE").currency == "GBP"
    assert ft.parse_quote_page(page, "MSFT").currency == "USD"


def test_parse_rate_page_fallback_label():
    assert ft.parse_rate_page(FX_PAGE) == pytest.approx(0.7912)
    assert ft.parse_rate_page("<div></div>") is None


def test_symbol_candidates():
    assert list(ft.symbol_candidates("MKL")) == ["MKL", "MKL:NYQ", "MKL:NSQ", "MKL:LSE"]
    assert list(ft.symbol_candidates("MKL:NYSE")) == ["MKL:NYSE", "MKL:NYQ"]
    assert list(ft.symbol_candidates("VOD:LSE")) == ["VOD:LSE"]


def test_fetch_quote_fund_url(online, fake_get):
    pages, calls = fake_get
    pages["GB00B3X7QG63"] = FUND_PAGE
    quote = ft.fetch_quote("GB00B3X7QG63", "fund")
    assert quote.currency == "GBP"
    assert calls == [("https://markets.ft.com/data/funds/tearsheet/summary", "GB00B3X7QG63")]


def test_fetch_quote_retries_with_suffixes(online, fake_get):
    pages, calls = fake_get
    pages["AAPL:NSQ"] = EQUITY_PAGE
    quote = ft.fetch_quote("AAPL", "stock")
    assert quote.price == 187.50
    assert [s for _, s in calls] == ["AAPL", "AAPL:NYQ", "AAPL:NSQ"]
    assert all("equities/tearsheet/summary" in url for url, _ in calls)


def test_fetch_quote_gives_up(online, fake_get, caplog):
    assert ft.fetch_quote("NOPE", "etf") is None
    assert "No FT quote for NOPE" in caplog.text


def test_network_error_is_swallowed(online, monkeypatch):
    def boom(*args, **kwargs):
        raise requests.ConnectionError("down")

    monkeypatch.setattr(ft.requests, "get", boom)
    assert ft.fetch_quote("VOD:LSE", "stock") is None
    assert ft.fetch_fx_rate("USD", "GBP") is None


def test_fetch_fx_rate(online, fake_get):
    pages, calls = fake_get
    pages["USDGBP"] = FX_PAGE
    assert ft.fetch_fx_rate("usd", "GBP") == pytest.approx(0.7912)
    assert calls[0][0].endswith("currencies/tearsheet/summary")


def test_same_currency_rate_is_one(fake_get):
    _, calls = fake_get
    assert ft.fetch_fx_rate("GBP", "gbp") == 1.0
    assert calls == []


def test_offline_mode_skips_network(fake_get):
    _, calls = fake_get
    assert ft.fetch_quote("AAPL", "stock") is None
    assert ft.fetch_fx_rate("USD", "GBP") is None
    assert calls == []


def test_negative_price_page_is_not_a_quote():
    page = '<span class="mod-tearsheet-overview__quote__value">-12.5</span>'
    assert ft.parse_quote_page(page, "VOD:LSE") is None


def test_fetch_quote_skips_negative_price(online, fake_get):
    pages, calls = fake_get
    pages["AAPL"] = '<span class="mod-tearsheet-overview__quote__value">-1.00</span>'
    pages["AAPL:NYQ"] = EQUITY_PAGE
    assert ft.fetch_quote("AAPL", "stock").price == 187.50
    assert [s for _, s in calls] == ["AAPL", "AAPL:NYQ"]

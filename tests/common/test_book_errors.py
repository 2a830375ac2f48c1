import asyncio

import pytest
from fastapi import HTTPException

from portfolio_tracker.common.errors import (
    LAST_PORTFOLIO,
    InvestmentNotFoundError,
    LastPortfolioError,
    PortfolioNotFoundError,
    handle_book_errors,
)


def test_error_messages_carry_ids():
    assert "abc" in str(PortfolioNotFoundError("abc"))
    assert InvestmentNotFoundError("xyz").investment_id == "xyz"
    assert str(LastPortfolioError()) == LAST_PORTFOLIO


def test_handle_book_errors_sync():
    @handle_book_errors
    def sample(ok: bool):
        if ok:
            return "ok"
        raise PortfolioNotFoundError("p1")

    assert sample(True) == "ok"
    with pytest.raises(HTTPException) as excinfo:
        sample(False)
    assert excinfo.value.status_code == 404
    assert "p1" in excinfo.value.detail


def test_handle_book_errors_async():
    @handle_book_errors
    async def sample():
        raise LastPortfolioError()

    with pytest.raises(HTTPException) as excinfo:
        asyncio.run(sample())
    assert excinfo.value.status_code == 400
    assert excinfo.value.detail == LAST_PORTFOLIO


def test_value_error_becomes_bad_request():
    @handle_book_errors
    def sample():
        raise ValueError("bad fee")

    with pytest.raises(HTTPException) as excinfo:
        sample()
    assert excinfo.value.status_code == 400


def test_other_errors_propagate():
    @handle_book_errors
    def sample():
        raise KeyError("boom")

    with pytest.raises(KeyError):
        sample()

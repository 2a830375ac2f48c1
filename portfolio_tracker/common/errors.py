from __future__ import annotations

import inspect
from functools import wraps
from typing import Any, Callable, TypeVar

from fastapi import HTTPException

PORTFOLIO_NOT_FOUND = "Portfolio not found"
INVESTMENT_NOT_FOUND = "Investment not found"
LAST_PORTFOLIO = "Cannot delete the last portfolio"


class PortfolioBookError(Exception):
    """Base class for errors raised while transforming a portfolio book."""

    status_code = 400


class PortfolioNotFoundError(PortfolioBookError):
    """Raised when a requested portfolio id is not in the book."""

    status_code = 404

    def __init__(self, portfolio_id: str):
        super().__init__(f"{PORTFOLIO_NOT_FOUND}: {portfolio_id}")
        self.portfolio_id = portfolio_id


class InvestmentNotFoundError(PortfolioBookError):
    """Raised when a requested investment id is not in the portfolio."""

    status_code = 404

    def __init__(self, investment_id: str):
        super().__init__(f"{INVESTMENT_NOT_FOUND}: {investment_id}")
        self.investment_id = investment_id


class LastPortfolioError(PortfolioBookError):
    """Raised when deleting a portfolio would leave the book empty."""

    def __init__(self) -> None:
        super().__init__(LAST_PORTFOLIO)


F = TypeVar("F", bound=Callable[..., Any])


def _to_http(exc: Exception) -> HTTPException:
    status = getattr(exc, "status_code", 400)
    return HTTPException(status_code=status, detail=str(exc))


def handle_book_errors(func: F) -> F:
    """Decorator mapping book errors to ``HTTPException``.

    :class:`PortfolioBookError` keeps its own status code; a plain
    ``ValueError`` (bad fee, empty name, unknown series mode) becomes a 400.
    """

    if inspect.iscoroutinefunction(func):

        @wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return await func(*args, **kwargs)
            except (PortfolioBookError, ValueError) as exc:
                raise _to_http(exc) from exc
        async_wrapper.__signature__ = inspect.signature(func, eval_str=True)
        return async_wrapper  # type: ignore[return-value]

    @wraps(func)
    def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except (PortfolioBookError, ValueError) as exc:
            raise _to_http(exc) from exc
    sync_wrapper.__signature__ = inspect.signature(func, eval_str=True)
    return sync_wrapper  # type: ignore[return-value]

import asyncio
from collections.abc import Callable
from datetime import datetime
from typing import Any, TypeVar

import structlog
import yfinance as yf

from marketboard.exceptions import NotFoundError, ProviderTransportError
from marketboard.market.providers.base import QuoteProvider
from marketboard.market.schemas import SparklinePoint
from marketboard.market.series import sort_series, to_finite_float

logger = structlog.get_logger()

PROVIDER = "yahoo_finance"

T = TypeVar("T")


def _fetch_ticker_info(symbol: str) -> dict:
    """Fetch ticker info synchronously (to be run in a thread)."""
    info = yf.Ticker(symbol).info
    has_no_data = not info or (
        info.get("regularMarketPrice") is None
        and not info.get("shortName")
        and not info.get("longName")
    )
    if has_no_data:
        raise NotFoundError("Ticker", symbol)
    return dict(info)


def _fetch_ticker_history(symbol: str, start: datetime, interval: str) -> list[SparklinePoint]:
    """Fetch closing prices synchronously (to be run in a thread)."""
    hist = yf.Ticker(symbol).history(start=start, interval=interval)
    if hist.empty:
        return []

    points: list[SparklinePoint] = []
    for index, close in hist["Close"].items():
        value = to_finite_float(close)
        if value is None:
            continue
        points.append(SparklinePoint(timestamp=round(index.timestamp() * 1000), value=value))
    return sort_series(points)


def _fetch_basic_quote(symbol: str) -> dict:
    """Names and exchange from chart metadata; lighter than the full info call."""
    t = yf.Ticker(symbol)
    meta = dict(t.get_history_metadata() or {})
    if not meta:
        raise NotFoundError("Ticker", symbol)
    try:
        meta["marketCap"] = t.fast_info["marketCap"]
    except (KeyError, TypeError, ValueError) as exc:
        logger.debug("yfinance_fast_info_unavailable", symbol=symbol, error=str(exc))
    return meta


class YahooFinanceProvider(QuoteProvider):
    def __init__(self, timeout: float = 10.0) -> None:
        self._timeout = timeout

    async def _run(self, label: str, symbol: str, func: Callable[..., T], *args: Any) -> T:
        try:
            return await asyncio.wait_for(asyncio.to_thread(func, symbol, *args), self._timeout)
        except NotFoundError:
            raise
        except TimeoutError as exc:
            logger.warning("yfinance_timeout", call=label, symbol=symbol, timeout=self._timeout)
            raise ProviderTransportError(PROVIDER, f"{label} timed out for {symbol}") from exc
        except Exception as exc:
            logger.error("yfinance_error", call=label, symbol=symbol, error=str(exc))
            raise ProviderTransportError(PROVIDER, f"{label} failed for {symbol}: {exc}") from exc

    async def get_quote(self, symbol: str) -> dict[str, Any]:
        return await self._run("quote", symbol, _fetch_ticker_info)

    async def get_history(
        self, symbol: str, start: datetime, interval: str
    ) -> list[SparklinePoint]:
        return await self._run("history", symbol, _fetch_ticker_history, start, interval)

    async def get_quote_summary(self, symbol: str) -> dict[str, Any]:
        return await self._run("quote_summary", symbol, _fetch_ticker_info)

    async def get_basic_quote(self, symbol: str) -> dict[str, Any]:
        return await self._run("basic_quote", symbol, _fetch_basic_quote)

import time
from datetime import UTC, datetime
from typing import Any

import structlog

from marketboard.cache import Clock, TTLCache
from marketboard.exceptions import DataInsufficientError, NotFoundError, ProviderSoftError
from marketboard.functions.client import (
    ARGENTINA_MARKET_FUNCTION,
    FunctionClient,
    map_function_source,
)
from marketboard.functions.repository import decode_sparkline
from marketboard.market.models import FUNCTION_SOURCE_CACHE_FALLBACK, DataSource, DetailRange, Market
from marketboard.market.providers.alpha_vantage import PROVIDER as ALPHA_VANTAGE
from marketboard.market.providers.base import MarketDataProvider
from marketboard.market.schemas import StockDetail
from marketboard.market.series import (
    Granularity,
    ParsedSeries,
    SeriesFailure,
    SeriesFailureReason,
    decode_series,
    percent_change,
    slice_by_range,
    to_finite_float,
)

logger = structlog.get_logger()

INTRADAY_RANGES = {DetailRange.ONE_HOUR, DetailRange.ONE_DAY}


class DetailService:
    """Price series and headline numbers for one ticker over one range."""

    def __init__(
        self,
        provider: MarketDataProvider,
        functions: FunctionClient,
        clock: Clock = time.time,
        cache_ttl_seconds: int = 60,
    ) -> None:
        self._provider = provider
        self._functions = functions
        self._clock = clock
        self._cache = TTLCache(clock)
        self._cache_ttl_seconds = cache_ttl_seconds

    def _now_iso(self) -> str:
        return datetime.fromtimestamp(self._clock(), tz=UTC).isoformat()

    async def get_detail(self, ticker: str, market: Market, range_: DetailRange) -> StockDetail:
        ticker = ticker.upper().strip()
        key = (market, ticker, range_)

        cached = self._cache.get(key)
        if cached is not None:
            return cached.model_copy(update={"source": DataSource.CACHE})

        try:
            if market == Market.US:
                detail = await self._fetch_us(ticker, range_)
            else:
                detail = await self._fetch_ar(ticker, range_)
        except Exception as exc:
            logger.warning(
                "stock_detail_fetch_failed",
                ticker=ticker,
                market=market,
                range=range_,
                error=str(exc),
            )
            return self._fallback(key, ticker, market, range_)

        self._cache.set(key, detail, self._cache_ttl_seconds)
        return detail

    def _fallback(
        self, key: tuple, ticker: str, market: Market, range_: DetailRange
    ) -> StockDetail:
        stale = self._cache.get_stale(key)
        if stale is not None:
            return stale.model_copy(update={"source": DataSource.CACHE, "stale": True})

        return StockDetail(
            ticker=ticker,
            market=market,
            price=0,
            percent_change=0,
            series=[],
            range=range_,
            source=DataSource.UNAVAILABLE,
            last_updated_at=self._now_iso(),
            stale=True,
        )

    async def _fetch_us(self, ticker: str, range_: DetailRange) -> StockDetail:
        intraday = range_ in INTRADAY_RANGES
        granularity = Granularity.intraday if intraday else Granularity.daily
        payload = await self._provider.get_time_series(ticker, granularity, full=not intraday)

        match decode_series(payload, granularity):
            case SeriesFailure(reason=SeriesFailureReason.provider_error, message=message):
                raise ProviderSoftError(ALPHA_VANTAGE, message)
            case ParsedSeries(points=points):
                series = slice_by_range(points, range_)
            case _:
                series = []

        if len(series) < 2:
            raise DataInsufficientError(ticker, range_)

        return StockDetail(
            ticker=ticker,
            market=Market.US,
            price=series[-1].value,
            percent_change=percent_change(series),
            series=series,
            range=range_,
            source=DataSource.LIVE,
            last_updated_at=self._now_iso(),
            stale=False,
        )

    async def _fetch_ar(self, ticker: str, range_: DetailRange) -> StockDetail:
        payload = await self._functions.invoke(
            ARGENTINA_MARKET_FUNCTION, {"timeframe": range_.value, "ticker": ticker}
        )
        row = self._pick_row(payload.get("stocks"), ticker)
        if row is None:
            raise NotFoundError("Ticker", ticker)

        price = to_finite_float(row.get("price"))
        percent = to_finite_float(row.get("percentChange"))
        if price is None or percent is None or price < 0:
            raise DataInsufficientError(ticker, range_)

        label = payload.get("source")
        return StockDetail(
            ticker=ticker,
            market=Market.AR,
            price=price,
            percent_change=percent,
            series=slice_by_range(decode_sparkline(row.get("sparkline")), range_),
            range=range_,
            source=map_function_source(label),
            last_updated_at=self._now_iso(),
            stale=bool(payload.get("stale", label == FUNCTION_SOURCE_CACHE_FALLBACK)),
        )

    @staticmethod
    def _pick_row(rows: Any, ticker: str) -> dict[str, Any] | None:
        if not isinstance(rows, list):
            return None
        for row in rows:
            if isinstance(row, dict) and str(row.get("ticker", "")).strip().upper() == ticker:
                return row
        return None

"""
Server-side aggregation of the BYMA watch-list.

Reads the persisted cache first and only goes to Yahoo when the cache is stale
or too thin. Every live fetch is written back, and a failed live fetch falls
back to whatever rows the cache still has (``cache_fallback``).
"""

import asyncio
import time
import uuid
from datetime import UTC, datetime
from typing import Any

import structlog
from dateutil.relativedelta import relativedelta

from marketboard.cache import Clock
from marketboard.exceptions import (
    DataInsufficientError,
    ProviderTransportError,
    UpstreamUnavailableError,
    ValidationError,
)
from marketboard.functions.repository import MarketCacheRepository, rows_to_stocks, yahoo_symbol
from marketboard.functions.schemas import MarketFunctionResponse
from marketboard.market.fields import clean_text, first_finite
from marketboard.market.models import (
    FUNCTION_SOURCE_CACHE,
    FUNCTION_SOURCE_CACHE_FALLBACK,
    FUNCTION_SOURCE_LIVE,
    DetailRange,
    Market,
)
from marketboard.market.providers.base import QuoteProvider
from marketboard.market.schemas import SparklinePoint, Stock
from marketboard.market.series import (
    build_fallback_snapshot,
    build_hourly_snapshot,
    slice_by_range,
    to_finite_float,
)

logger = structlog.get_logger()

BYMA_TICKERS = ("GGAL", "YPFD", "PAMP", "TXAR", "LOMA", "CEPU", "EDN", "CRES", "SUPV", "BMA")
PRICE_FIELDS = ("regularMarketPrice", "postMarketPrice", "preMarketPrice", "bid", "ask")
FRESH_CACHE_MIN_ROWS = 5
RANKING_SIZE = 10
DEFAULT_TIMEFRAME = DetailRange.ONE_DAY

# History requested per timeframe: lookback from now and bar interval. Each
# lookback overshoots its range so weekends and holidays still leave a baseline.
HISTORY_WINDOWS: dict[str, tuple[relativedelta, str]] = {
    DetailRange.ONE_HOUR: (relativedelta(days=5), "5m"),
    DetailRange.ONE_DAY: (relativedelta(days=7), "1d"),
    DetailRange.ONE_WEEK: (relativedelta(days=14), "1d"),
    DetailRange.ONE_MONTH: (relativedelta(months=1, days=7), "1d"),
    DetailRange.THREE_MONTHS: (relativedelta(months=3, days=7), "1d"),
    DetailRange.SIX_MONTHS: (relativedelta(months=6, days=7), "1d"),
    DetailRange.ONE_YEAR: (relativedelta(years=1, days=7), "1d"),
}


def parse_timeframe(raw: Any) -> DetailRange:
    if raw is None or raw == "":
        return DEFAULT_TIMEFRAME
    try:
        return DetailRange(str(raw).upper())
    except ValueError:
        raise ValidationError(f"Invalid timeframe: {raw}") from None


def parse_ticker(raw: Any) -> str | None:
    if raw is None or raw == "":
        return None
    ticker = str(raw).strip().upper().removesuffix(".BA")
    if ticker not in BYMA_TICKERS:
        raise ValidationError(f"Unsupported ticker: {raw}")
    return ticker


def history_start(timeframe: DetailRange, now: datetime) -> tuple[datetime, str]:
    if timeframe == DetailRange.YTD:
        jan_first = now.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
        return jan_first - relativedelta(days=7), "1d"
    lookback, interval = HISTORY_WINDOWS[timeframe]
    return now - lookback, interval


def parse_cached_at(raw: Any) -> float | None:
    if not isinstance(raw, str):
        return None
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.timestamp()


def _percent_against(window: list[SparklinePoint], price: float) -> float:
    if not window or window[0].value <= 0:
        return 0.0
    base = window[0].value
    return ((price - base) / base) * 100


class ArgentinaMarketFunction:
    def __init__(
        self,
        provider: QuoteProvider,
        repository: MarketCacheRepository,
        clock: Clock = time.time,
        cache_ttl_seconds: int = 300,
    ) -> None:
        self._provider = provider
        self._repository = repository
        self._clock = clock
        self._cache_ttl_seconds = cache_ttl_seconds

    def _is_fresh(self, rows: list[dict[str, Any]], min_rows: int) -> bool:
        if len(rows) < min_rows:
            return False
        now = self._clock()
        for row in rows:
            cached_at = parse_cached_at(row.get("cached_at"))
            if cached_at is None or now - cached_at > self._cache_ttl_seconds:
                return False
        return True

    async def handle(self, body: dict[str, Any]) -> MarketFunctionResponse:
        started = time.perf_counter()
        request_id = uuid.uuid4().hex
        timeframe = parse_timeframe(body.get("timeframe"))
        ticker = parse_ticker(body.get("ticker"))
        log = logger.bind(request_id=request_id, timeframe=timeframe.value, ticker=ticker)
        log.info("ar_market_request_started")

        limit = 1 if ticker else RANKING_SIZE
        rows = await self._repository.read(timeframe.value, limit=limit, ticker=ticker)
        fresh = self._is_fresh(rows, 1 if ticker else FRESH_CACHE_MIN_ROWS)
        log.info("ar_market_cache_read", rows=len(rows), fresh=fresh)

        if fresh:
            stocks = rows_to_stocks(rows)
            log.info(
                "ar_market_request_completed",
                source=FUNCTION_SOURCE_CACHE,
                rows=len(stocks),
                duration_ms=round((time.perf_counter() - started) * 1000),
            )
            return MarketFunctionResponse(
                source=FUNCTION_SOURCE_CACHE,
                stale=False,
                timeframe=timeframe.value,
                stocks=stocks,
                request_id=request_id,
            )

        tickers = [ticker] if ticker else list(BYMA_TICKERS)
        live, failures = await self._fetch_live(tickers, timeframe)
        log.info(
            "ar_market_live_summary",
            requested=len(tickers),
            succeeded=len(live),
            failures=failures,
        )

        if live:
            live.sort(key=lambda stock: stock.percent_change, reverse=True)
            stocks = live[:RANKING_SIZE]
            await self._repository.upsert(timeframe.value, stocks, self._now_iso())
            source, stale = FUNCTION_SOURCE_LIVE, False
        elif rows:
            stocks = rows_to_stocks(rows)
            source, stale = FUNCTION_SOURCE_CACHE_FALLBACK, True
        else:
            log.error(
                "ar_market_request_completed",
                status=502,
                rows=0,
                failures=failures,
                duration_ms=round((time.perf_counter() - started) * 1000),
            )
            raise UpstreamUnavailableError(
                "Unable to fetch Argentina market data and no cache is available."
            )

        log.info(
            "ar_market_request_completed",
            source=source,
            rows=len(stocks),
            duration_ms=round((time.perf_counter() - started) * 1000),
        )
        return MarketFunctionResponse(
            source=source,
            stale=stale,
            timeframe=timeframe.value,
            stocks=stocks,
            request_id=request_id,
        )

    async def _fetch_live(
        self, tickers: list[str], timeframe: DetailRange
    ) -> tuple[list[Stock], list[dict[str, str]]]:
        results = await asyncio.gather(
            *(self._fetch_ticker(ticker, timeframe) for ticker in tickers),
            return_exceptions=True,
        )

        stocks: list[Stock] = []
        failures: list[dict[str, str]] = []
        for ticker, result in zip(tickers, results, strict=True):
            if isinstance(result, BaseException):
                failures.append({"ticker": ticker, "reason": str(result) or type(result).__name__})
                continue
            stocks.append(result)
        return stocks, failures

    async def _fetch_ticker(self, ticker: str, timeframe: DetailRange) -> Stock:
        symbol = yahoo_symbol(ticker)
        now_s = self._clock()
        now_ms = round(now_s * 1000)

        quote = await self._provider.get_quote(symbol)
        price = first_finite(*(quote.get(field) for field in PRICE_FIELDS))
        if price is None or price <= 0:
            raise DataInsufficientError(ticker, timeframe)

        start, interval = history_start(timeframe, datetime.fromtimestamp(now_s, tz=UTC))
        try:
            history = await self._provider.get_history(symbol, start, interval)
        except ProviderTransportError as exc:
            logger.warning("ar_market_history_failed", ticker=ticker, error=str(exc))
            history = []

        percent, sparkline = self._measure(history, timeframe, price, quote, now_ms)
        return Stock(
            id=ticker,
            ticker=ticker,
            company_name=clean_text(quote.get("longName")) or clean_text(quote.get("shortName")),
            market=Market.AR,
            price=price,
            percent_change=percent,
            sparkline=sparkline,
        )

    @staticmethod
    def _measure(
        history: list[SparklinePoint],
        timeframe: DetailRange,
        price: float,
        quote: dict[str, Any],
        now_ms: int,
    ) -> tuple[float, list[SparklinePoint]]:
        reported = to_finite_float(quote.get("regularMarketChangePercent"))

        if timeframe == DetailRange.ONE_HOUR:
            snapshot = build_hourly_snapshot(history)
        else:
            window = slice_by_range(history, timeframe, now_ms)
            if len(window) < 2:
                snapshot = None
            elif timeframe == DetailRange.ONE_DAY and reported is not None:
                return reported, window
            else:
                return _percent_against(window, price), window

        if snapshot is None:
            # Not enough history: a two-point line implied by the quote's own change.
            snapshot = build_fallback_snapshot(price, reported or 0.0, now_ms)
        return snapshot.percent_change, snapshot.sparkline

    def _now_iso(self) -> str:
        return datetime.fromtimestamp(self._clock(), tz=UTC).isoformat()

"""
Top-gainers rankings for the US and AR markets.

Both services walk the same fallback ladder: live data, then a cached copy,
then demo rows when explicitly allowed, then an empty UNAVAILABLE result.
Neither ever raises to its caller.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any

import structlog

from marketboard.cache import Clock, TTLCache
from marketboard.exceptions import DataInsufficientError, ProviderSoftError
from marketboard.functions.client import (
    ARGENTINA_MARKET_FUNCTION,
    FunctionClient,
    map_ranking_source,
)
from marketboard.functions.repository import MarketCacheRepository, rows_to_stocks
from marketboard.market.mock_data import mock_stocks
from marketboard.market.models import DataSource, Market, Timeframe
from marketboard.market.names import CompanyNameResolver
from marketboard.market.providers.alpha_vantage import PROVIDER as ALPHA_VANTAGE
from marketboard.market.providers.base import MarketDataProvider
from marketboard.market.schemas import RankingResult, Stock
from marketboard.market.series import (
    Granularity,
    ParsedSeries,
    SeriesFailure,
    SeriesFailureReason,
    Snapshot,
    build_fallback_snapshot,
    build_hourly_snapshot,
    build_snapshot,
    decode_series,
    parse_percent,
    to_finite_float,
)

logger = structlog.get_logger()

RANKING_SIZE = 10
MOVER_LISTS = ("top_gainers", "top_losers", "most_actively_traded")
# Series requests per ranking build, bounded by the provider's per-minute quota.
HISTORY_REQUEST_BUDGET = {Timeframe.ONE_HOUR: 5}
DEFAULT_HISTORY_REQUEST_BUDGET = 6
FULL_HISTORY_TIMEFRAMES = {Timeframe.THREE_MONTHS, Timeframe.YTD}
CANDIDATE_POOL_KEY = "top_movers"


def _rank(stocks: list[Stock]) -> list[Stock]:
    return sorted(stocks, key=lambda stock: stock.percent_change, reverse=True)[:RANKING_SIZE]


def _named(stock: Stock) -> Stock:
    if stock.company_name:
        return stock
    return stock.model_copy(update={"company_name": stock.ticker})


@dataclass(frozen=True)
class Candidate:
    ticker: str
    price: float | None
    percent_change: float | None


class UsRankingService:
    def __init__(
        self,
        provider: MarketDataProvider,
        names: CompanyNameResolver,
        clock: Clock = time.time,
        ranking_ttl_seconds: int = 300,
        top_movers_ttl_seconds: int = 60,
        pool_size: int = 24,
        name_lookup_budget: int = 2,
        allow_mock_fallback: bool = False,
    ) -> None:
        self._provider = provider
        self._names = names
        self._clock = clock
        self._rankings = TTLCache(clock)
        self._movers = TTLCache(clock)
        self._ranking_ttl_seconds = ranking_ttl_seconds
        self._top_movers_ttl_seconds = top_movers_ttl_seconds
        self._pool_size = pool_size
        self._name_lookup_budget = name_lookup_budget
        self._allow_mock_fallback = allow_mock_fallback

    def _now_ms(self) -> int:
        return round(self._clock() * 1000)

    async def get_ranking(self, timeframe: Timeframe) -> RankingResult:
        cached = self._rankings.get(timeframe)
        if cached is not None:
            logger.info("us_ranking_cache_hit", timeframe=timeframe)
            return RankingResult(stocks=cached, source=DataSource.CACHE, stale=False)

        try:
            stocks = await self._build_live_ranking(timeframe)
        except Exception as exc:
            logger.error("us_ranking_fetch_failed", timeframe=timeframe, error=str(exc))
            stocks = []

        if stocks:
            self._rankings.set(timeframe, stocks, self._ranking_ttl_seconds)
            logger.info("us_ranking_live", timeframe=timeframe, rows=len(stocks))
            return RankingResult(stocks=stocks, source=DataSource.LIVE, stale=False)

        return self._fallback(timeframe)

    def _fallback(self, timeframe: Timeframe) -> RankingResult:
        stale = self._rankings.get_stale(timeframe)
        if stale:
            logger.warning("us_ranking_serving_stale", timeframe=timeframe, rows=len(stale))
            return RankingResult(stocks=stale, source=DataSource.CACHE, stale=True)

        if self._allow_mock_fallback:
            logger.warning("us_ranking_serving_mock", timeframe=timeframe)
            return RankingResult(
                stocks=mock_stocks(Market.US, self._now_ms()), source=DataSource.MOCK
            )

        logger.warning("us_ranking_unavailable", timeframe=timeframe)
        return RankingResult(stocks=[], source=DataSource.UNAVAILABLE, stale=True)

    async def _build_live_ranking(self, timeframe: Timeframe) -> list[Stock]:
        candidates = await self._get_candidates()
        if not candidates:
            return []

        now_ms = self._now_ms()
        budget = HISTORY_REQUEST_BUDGET.get(timeframe, DEFAULT_HISTORY_REQUEST_BUDGET)
        batch = candidates[:budget]
        results = await asyncio.gather(
            *(self._fetch_snapshot(candidate.ticker, timeframe) for candidate in batch),
            return_exceptions=True,
        )

        ranked: list[Stock] = []
        for candidate, result in zip(batch, results, strict=True):
            if len(ranked) >= RANKING_SIZE:
                break
            if isinstance(result, BaseException):
                logger.warning(
                    "us_snapshot_failed", ticker=candidate.ticker, error=str(result)
                )
                continue
            ranked.append(self._to_stock(candidate.ticker, result))

        ranked = _rank(ranked)
        ranked = self._backfill(ranked, candidates, now_ms)

        max_lookups = 0 if timeframe == Timeframe.ONE_HOUR else self._name_lookup_budget
        return await self._names.enrich(ranked, max_lookups)

    def _backfill(self, ranked: list[Stock], candidates: list[Candidate], now_ms: int) -> list[Stock]:
        """Top up from the movers' self-reported price and change, in candidate order."""
        seen = {stock.ticker for stock in ranked}
        filled = list(ranked)
        for candidate in candidates:
            if len(filled) >= RANKING_SIZE:
                break
            if candidate.ticker in seen or candidate.price is None or candidate.percent_change is None:
                continue
            if candidate.price <= 0:
                continue
            snapshot = build_fallback_snapshot(candidate.price, candidate.percent_change, now_ms)
            filled.append(self._to_stock(candidate.ticker, snapshot))
            seen.add(candidate.ticker)

        if len(filled) > len(ranked):
            logger.info("us_ranking_backfilled", rows=len(filled) - len(ranked))
        return _rank(filled)

    @staticmethod
    def _to_stock(ticker: str, snapshot: Snapshot) -> Stock:
        return Stock(
            id=ticker,
            ticker=ticker,
            market=Market.US,
            price=snapshot.price,
            percent_change=snapshot.percent_change,
            sparkline=snapshot.sparkline,
        )

    async def _get_candidates(self) -> list[Candidate]:
        cached = self._movers.get(CANDIDATE_POOL_KEY)
        if cached is not None:
            return cached

        payload = await self._provider.get_top_movers()
        pool: list[Candidate] = []
        seen: set[str] = set()
        for list_name in MOVER_LISTS:
            rows = payload.get(list_name)
            if not isinstance(rows, list):
                continue
            for row in rows:
                if len(pool) >= self._pool_size:
                    break
                candidate = self._parse_mover(row)
                if candidate is None or candidate.ticker in seen:
                    continue
                seen.add(candidate.ticker)
                pool.append(candidate)

        logger.info("us_candidate_pool_loaded", candidates=len(pool))
        if pool:
            self._movers.set(CANDIDATE_POOL_KEY, pool, self._top_movers_ttl_seconds)
        return pool

    @staticmethod
    def _parse_mover(row: Any) -> Candidate | None:
        if not isinstance(row, dict):
            return None
        ticker = str(row.get("ticker") or "").strip().upper()
        if not ticker:
            return None
        return Candidate(
            ticker=ticker,
            price=to_finite_float(row.get("price")),
            percent_change=parse_percent(row.get("change_percentage")),
        )

    async def _fetch_snapshot(self, ticker: str, timeframe: Timeframe) -> Snapshot:
        hourly = timeframe == Timeframe.ONE_HOUR
        granularity = Granularity.intraday if hourly else Granularity.daily
        payload = await self._provider.get_time_series(
            ticker, granularity, full=timeframe in FULL_HISTORY_TIMEFRAMES
        )

        match decode_series(payload, granularity):
            case SeriesFailure(reason=SeriesFailureReason.provider_error, message=message):
                raise ProviderSoftError(ALPHA_VANTAGE, message)
            case ParsedSeries(points=points):
                snapshot = build_hourly_snapshot(points) if hourly else build_snapshot(points, timeframe)
                if snapshot is not None and snapshot.price > 0:
                    return snapshot
        raise DataInsufficientError(ticker, timeframe)


class ArRankingService:
    def __init__(
        self,
        functions: FunctionClient,
        repository: MarketCacheRepository,
        clock: Clock = time.time,
        allow_mock_fallback: bool = False,
    ) -> None:
        self._functions = functions
        self._repository = repository
        self._clock = clock
        self._allow_mock_fallback = allow_mock_fallback

    async def get_ranking(self, timeframe: Timeframe) -> RankingResult:
        try:
            payload = await self._functions.invoke(
                ARGENTINA_MARKET_FUNCTION, {"timeframe": timeframe.value}
            )
            stocks = self._parse_stocks(payload.get("stocks"))
            if stocks:
                return RankingResult(
                    stocks=_rank([_named(stock) for stock in stocks]),
                    source=map_ranking_source(payload.get("source")),
                    stale=bool(payload.get("stale", False)),
                )
            logger.warning("ar_ranking_function_empty", timeframe=timeframe)
        except Exception as exc:
            logger.warning("ar_ranking_function_failed", timeframe=timeframe, error=str(exc))

        rows = await self._repository.read(timeframe.value)
        cached = [_named(stock) for stock in rows_to_stocks(rows)]
        if cached:
            logger.info("ar_ranking_serving_cache", timeframe=timeframe, rows=len(cached))
            return RankingResult(stocks=cached, source=DataSource.CACHE, stale=True)

        if self._allow_mock_fallback:
            logger.warning("ar_ranking_serving_mock", timeframe=timeframe)
            return RankingResult(
                stocks=mock_stocks(Market.AR, round(self._clock() * 1000)), source=DataSource.MOCK
            )

        logger.warning("ar_ranking_unavailable", timeframe=timeframe)
        return RankingResult(stocks=[], source=DataSource.UNAVAILABLE, stale=True)

    @staticmethod
    def _parse_stocks(rows: Any) -> list[Stock]:
        if not isinstance(rows, list):
            return []
        stocks: list[Stock] = []
        for row in rows:
            if not isinstance(row, dict):
                continue
            try:
                stock = Stock.model_validate({**row, "market": Market.AR})
            except ValueError as exc:
                logger.debug("ar_ranking_row_dropped", ticker=row.get("ticker"), error=str(exc))
                continue
            stocks.append(stock)
        return stocks

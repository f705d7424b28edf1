"""Tests for the AR ranking client and its persisted-cache fallback."""

from __future__ import annotations

import asyncio

from fakes import FakeClock, FakeFunctionClient, FakeQuoteProvider, iso, open_cache_db
from marketboard.functions.argentina_market import ArgentinaMarketFunction
from marketboard.functions.client import ARGENTINA_MARKET_FUNCTION, LocalFunctionClient
from marketboard.functions.repository import MarketCacheRepository
from marketboard.market.models import DataSource, Freshness, Market, Timeframe
from marketboard.market.schemas import Stock
from marketboard.rankings.service import ArRankingService


def _row(ticker: str, price: float, percent: float) -> dict:
    return {
        "id": ticker,
        "ticker": ticker,
        "companyName": f"{ticker} S.A.",
        "market": "AR",
        "price": price,
        "percentChange": percent,
        "sparkline": [{"timestamp": 1, "value": price * 0.9}, {"timestamp": 2, "value": price}],
    }


def _stock(ticker: str, price: float, percent: float) -> Stock:
    return Stock(id=ticker, ticker=ticker, market=Market.AR, price=price, percent_change=percent)


def test_invokes_market_function_with_timeframe() -> None:
    async def _runner() -> None:
        client = FakeFunctionClient(
            {ARGENTINA_MARKET_FUNCTION: {"source": "live", "stocks": [_row("GGAL", 4500.5, 1.2), _row("YPFD", 21500, 4.8)]}}
        )
        service = ArRankingService(client, MarketCacheRepository(None))

        result = await service.get_ranking(Timeframe.ONE_WEEK)

        assert client.calls == [(ARGENTINA_MARKET_FUNCTION, {"timeframe": "1W"})]
        assert result.source == DataSource.LIVE
        assert result.stale is False
        assert [s.ticker for s in result.stocks] == ["YPFD", "GGAL"]
        assert result.stocks[0].company_name == "YPFD S.A."

    asyncio.run(_runner())


def test_cache_fallback_label_maps_to_stale_cache() -> None:
    async def _runner() -> None:
        client = FakeFunctionClient(
            {ARGENTINA_MARKET_FUNCTION: {"source": "cache_fallback", "stale": True, "stocks": [_row("GGAL", 4500.5, 5.2)]}}
        )

        result = await ArRankingService(client, MarketCacheRepository(None)).get_ranking(Timeframe.ONE_DAY)

        assert result.source == DataSource.CACHE
        assert result.stale is True
        assert result.freshness == Freshness.stale

    asyncio.run(_runner())


def test_any_non_live_label_counts_as_cache() -> None:
    async def _runner() -> None:
        client = FakeFunctionClient({ARGENTINA_MARKET_FUNCTION: {"source": "mock", "stocks": [_row("GGAL", 1, 1)]}})

        result = await ArRankingService(client, MarketCacheRepository(None)).get_ranking(Timeframe.ONE_DAY)

        assert result.source == DataSource.CACHE
        assert result.stale is False

    asyncio.run(_runner())


def test_invalid_rows_in_function_payload_are_skipped() -> None:
    async def _runner() -> None:
        bad = _row("BAD", 0, 1.0)
        client = FakeFunctionClient({ARGENTINA_MARKET_FUNCTION: {"source": "live", "stocks": [bad, "x", _row("GGAL", 10, 2)]}})

        result = await ArRankingService(client, MarketCacheRepository(None)).get_ranking(Timeframe.ONE_DAY)

        assert [s.ticker for s in result.stocks] == ["GGAL"]

    asyncio.run(_runner())


def test_function_failure_reads_persisted_cache() -> None:
    """A failing function falls back to the table rows, ordered and marked stale."""

    async def _runner() -> None:
        db = await open_cache_db()
        try:
            repository = MarketCacheRepository(db)
            await repository.upsert(
                "1D",
                [_stock("GGAL", 4500.5, 5.2), _stock("PAMP", 2800.75, 3.5), _stock("BMA", 6200.0, 7.1)],
                iso(FakeClock().now),
            )
            await repository.upsert("1W", [_stock("EDN", 850.5, 9.9)], iso(FakeClock().now))

            result = await ArRankingService(FakeFunctionClient(), repository).get_ranking(Timeframe.ONE_DAY)
        finally:
            await db.close()

        assert result.source == DataSource.CACHE
        assert result.stale is True
        assert [s.ticker for s in result.stocks] == ["BMA", "GGAL", "PAMP"]

    asyncio.run(_runner())


def test_no_function_and_no_cache_is_unavailable() -> None:
    async def _runner() -> None:
        service = ArRankingService(FakeFunctionClient(), MarketCacheRepository(None))

        result = await service.get_ranking(Timeframe.ONE_DAY)

        assert result.source == DataSource.UNAVAILABLE
        assert result.stocks == []
        assert result.stale is True

    asyncio.run(_runner())


def test_mock_rows_when_enabled() -> None:
    async def _runner() -> None:
        service = ArRankingService(FakeFunctionClient(), MarketCacheRepository(None), allow_mock_fallback=True)

        result = await service.get_ranking(Timeframe.ONE_DAY)

        assert result.source == DataSource.MOCK
        assert result.stocks[0].ticker == "GGAL"
        assert all(s.market == Market.AR for s in result.stocks)

    asyncio.run(_runner())


def test_local_function_client_round_trip() -> None:
    """The in-process client returns the same JSON shape as the HTTP route."""

    async def _runner() -> None:
        clock = FakeClock()
        provider = FakeQuoteProvider(
            quotes={
                "GGAL.BA": {"regularMarketPrice": 4500.5, "regularMarketChangePercent": 5.2, "longName": "Grupo Galicia"},
                "PAMP.BA": {"regularMarketPrice": 2800.75, "regularMarketChangePercent": 3.5},
            }
        )
        function = ArgentinaMarketFunction(provider, MarketCacheRepository(None), clock=clock)
        client = LocalFunctionClient({ARGENTINA_MARKET_FUNCTION: function.handle})

        payload = await client.invoke(ARGENTINA_MARKET_FUNCTION, {"timeframe": "1D"})
        result = await ArRankingService(client, MarketCacheRepository(None)).get_ranking(Timeframe.ONE_DAY)

        assert payload["source"] == "live"
        assert "requestId" in payload
        assert payload["stocks"][0]["percentChange"] == 5.2
        assert result.source == DataSource.LIVE
        assert [s.ticker for s in result.stocks] == ["GGAL", "PAMP"]
        assert result.stocks[0].company_name == "Grupo Galicia"

    asyncio.run(_runner())


def test_missing_company_name_defaults_to_ticker() -> None:
    """Rows from the function and from the cache table both fall back to the ticker."""

    async def _runner() -> None:
        row = {key: value for key, value in _row("GGAL", 4500.5, 5.2).items() if key != "companyName"}
        client = FakeFunctionClient({ARGENTINA_MARKET_FUNCTION: {"source": "live", "stocks": [row]}})
        live = await ArRankingService(client, MarketCacheRepository(None)).get_ranking(Timeframe.ONE_DAY)

        db = await open_cache_db()
        try:
            repository = MarketCacheRepository(db)
            await repository.upsert("1D", [_stock("PAMP", 2800.75, 3.5)], iso(FakeClock().now))
            cached = await ArRankingService(FakeFunctionClient(), repository).get_ranking(Timeframe.ONE_DAY)
        finally:
            await db.close()

        assert live.stocks[0].company_name == "GGAL"
        assert cached.stocks[0].company_name == "PAMP"

    asyncio.run(_runner())

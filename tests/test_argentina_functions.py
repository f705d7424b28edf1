"""Tests for the server-side AR market and company-profile functions."""

from __future__ import annotations

import asyncio

import pytest

from fakes import FakeClock, FakeQuoteProvider, iso, open_cache_db, point
from marketboard.exceptions import AppError, UpstreamUnavailableError, ValidationError
from marketboard.functions.argentina_market import BYMA_TICKERS, ArgentinaMarketFunction
from marketboard.functions.argentina_profile import ArgentinaProfileFunction
from marketboard.functions.repository import MarketCacheRepository, ProfileCacheRepository
from marketboard.market.models import DataSource
from marketboard.market.series import DAY_MS, HOUR_MS

DAY = DAY_MS / 1000
HOUR = HOUR_MS / 1000


def _all_quotes() -> dict[str, dict]:
    return {
        f"{ticker}.BA": {"regularMarketPrice": 100.0 + i, "regularMarketChangePercent": float(i)}
        for i, ticker in enumerate(BYMA_TICKERS)
    }


def test_live_fetch_picks_first_usable_price_and_reported_change() -> None:
    async def _runner() -> None:
        provider = FakeQuoteProvider(
            quotes={
                "GGAL.BA": {"regularMarketPrice": 4500.5, "regularMarketChangePercent": 5.2, "longName": "Grupo Galicia"},
                "YPFD.BA": {"regularMarketPrice": None, "postMarketPrice": "nan", "preMarketPrice": 21000.0, "regularMarketChangePercent": 4.8},
                "PAMP.BA": {"regularMarketPrice": None, "bid": None},
            }
        )
        function = ArgentinaMarketFunction(provider, MarketCacheRepository(None), clock=FakeClock())

        response = await function.handle({})

        assert response.source == "live"
        assert response.timeframe == "1D"
        assert [s.ticker for s in response.stocks] == ["GGAL", "YPFD"]
        assert response.stocks[1].price == 21000.0
        assert response.stocks[0].company_name == "Grupo Galicia"
        assert response.request_id

    asyncio.run(_runner())


def test_month_change_is_measured_against_window_start() -> None:
    async def _runner() -> None:
        clock = FakeClock()
        now = clock.now
        provider = FakeQuoteProvider(
            quotes={"GGAL.BA": {"regularMarketPrice": 4500.0, "regularMarketChangePercent": 1.0}},
            history={"GGAL.BA": [point(now - 40 * DAY, 3000.0), point(now - 20 * DAY, 4000.0), point(now - DAY, 4400.0)]},
        )
        function = ArgentinaMarketFunction(provider, MarketCacheRepository(None), clock=clock)

        response = await function.handle({"timeframe": "1M", "ticker": "ggal.ba"})

        assert len(response.stocks) == 1
        stock = response.stocks[0]
        assert stock.percent_change == pytest.approx(12.5)
        assert [p.value for p in stock.sparkline] == [4000.0, 4400.0]
        assert ("quote", "GGAL.BA") in provider.calls

    asyncio.run(_runner())


def test_hourly_change_uses_baseline_an_hour_back() -> None:
    async def _runner() -> None:
        clock = FakeClock()
        now = clock.now
        provider = FakeQuoteProvider(
            quotes={"PAMP.BA": {"regularMarketPrice": 121.0, "regularMarketChangePercent": 40.0}},
            history={"PAMP.BA": [point(now - 2 * HOUR, 100.0), point(now - HOUR, 110.0), point(now, 121.0)]},
        )
        function = ArgentinaMarketFunction(provider, MarketCacheRepository(None), clock=clock)

        response = await function.handle({"timeframe": "1H", "ticker": "PAMP"})

        assert response.stocks[0].percent_change == pytest.approx(10.0)

    asyncio.run(_runner())


def test_fresh_cache_then_stale_fallback_then_unavailable() -> None:
    """Live rows are persisted, reused while fresh, and served as fallback once stale."""

    async def _runner() -> None:
        db = await open_cache_db()
        try:
            clock = FakeClock()
            provider = FakeQuoteProvider(quotes=_all_quotes())
            function = ArgentinaMarketFunction(provider, MarketCacheRepository(db), clock=clock)

            live = await function.handle({"timeframe": "1D"})
            assert live.source == "live"
            assert len(live.stocks) == 10

            provider.quotes = {}
            cached = await function.handle({"timeframe": "1D"})
            assert cached.source == "cache"
            assert [s.ticker for s in cached.stocks] == [s.ticker for s in live.stocks]

            clock.advance(301)
            fallback = await function.handle({"timeframe": "1D"})
            assert fallback.source == "cache_fallback"
            assert fallback.stale is True
            assert len(fallback.stocks) == 10

            with pytest.raises(UpstreamUnavailableError) as excinfo:
                await function.handle({"timeframe": "1W"})
            assert "no cache is available" in excinfo.value.message
        finally:
            await db.close()

    asyncio.run(_runner())


def test_thin_cache_is_not_fresh() -> None:
    """Fewer than five cached rows force a live refresh."""

    async def _runner() -> None:
        db = await open_cache_db()
        try:
            clock = FakeClock()
            provider = FakeQuoteProvider(quotes={"GGAL.BA": {"regularMarketPrice": 10.0, "regularMarketChangePercent": 1.0}})
            function = ArgentinaMarketFunction(provider, MarketCacheRepository(db), clock=clock)

            await function.handle({"timeframe": "1D"})
            again = await function.handle({"timeframe": "1D"})

            assert again.source == "live"
            assert provider.calls.count(("quote", "GGAL.BA")) == 2
        finally:
            await db.close()

    asyncio.run(_runner())


def test_rejects_bad_timeframe_and_unknown_ticker() -> None:
    async def _runner() -> None:
        function = ArgentinaMarketFunction(FakeQuoteProvider(), MarketCacheRepository(None))

        with pytest.raises(ValidationError):
            await function.handle({"timeframe": "2Y"})
        with pytest.raises(ValidationError):
            await function.handle({"timeframe": "1D", "ticker": "AAPL"})

    asyncio.run(_runner())


def test_profile_from_quote_summary_is_persisted() -> None:
    async def _runner() -> None:
        db = await open_cache_db()
        try:
            provider = FakeQuoteProvider(
                summaries={
                    "GGAL.BA": {
                        "longName": "Grupo Financiero Galicia S.A.",
                        "longBusinessSummary": {"fmt": "Financial services holding."},
                        "sector": "Financial Services",
                        "industry": "Banks - Regional",
                        "marketCap": {"raw": 5_200_000_000_000, "fmt": "5.2T"},
                        "fullExchangeName": "Buenos Aires",
                        "country": "Argentina",
                        "website": " ",
                    }
                }
            )
            repository = ProfileCacheRepository(db)
            function = ArgentinaProfileFunction(provider, repository, clock=FakeClock())

            response = await function.handle({"ticker": "GGAL"})
            row = await repository.read("GGAL")
        finally:
            await db.close()

        profile = response.profile
        assert response.source == "live"
        assert profile.company_name == "Grupo Financiero Galicia S.A."
        assert profile.description == "Financial services holding."
        assert profile.market_cap == 5.2e12
        assert profile.exchange == "Buenos Aires"
        assert profile.website is None
        assert row is not None and row["ticker_yahoo"] == "GGAL.BA"

    asyncio.run(_runner())


def test_profile_falls_back_to_basic_quote() -> None:
    async def _runner() -> None:
        provider = FakeQuoteProvider(basics={"YPFD.BA": {"shortName": "YPF", "exchangeName": "BUE", "marketCap": "1,234,000"}})
        function = ArgentinaProfileFunction(provider, ProfileCacheRepository(None), clock=FakeClock())

        response = await function.handle({"ticker": "YPFD"})

        assert response.profile.company_name == "YPF"
        assert response.profile.exchange == "BUE"
        assert response.profile.market_cap == 1_234_000
        assert [call for call, _ in provider.calls] == ["quote_summary", "basic_quote"]

    asyncio.run(_runner())


def test_profile_cache_fallback_and_failure() -> None:
    async def _runner() -> None:
        db = await open_cache_db()
        try:
            clock = FakeClock()
            repository = ProfileCacheRepository(db)
            live_provider = FakeQuoteProvider(summaries={"BMA.BA": {"longName": "Banco Macro"}})
            await ArgentinaProfileFunction(live_provider, repository, clock=clock).handle({"ticker": "BMA"})

            clock.advance(86401)
            failing = ArgentinaProfileFunction(FakeQuoteProvider(), repository, clock=clock)
            fallback = await failing.handle({"ticker": "BMA"})

            assert fallback.source == "cache_fallback"
            assert fallback.stale is True
            assert fallback.profile.source == DataSource.CACHE
            assert fallback.profile.company_name == "Banco Macro"
            assert fallback.profile.last_updated_at == iso(clock.now - 86401)

            with pytest.raises(AppError) as excinfo:
                await failing.handle({"ticker": "LOMA"})
            assert excinfo.value.code == "PROFILE_UNAVAILABLE"
        finally:
            await db.close()

    asyncio.run(_runner())


def test_profile_rejects_unsupported_ticker() -> None:
    async def _runner() -> None:
        function = ArgentinaProfileFunction(FakeQuoteProvider(), ProfileCacheRepository(None))

        with pytest.raises(ValidationError):
            await function.handle({"ticker": "AAPL"})
        with pytest.raises(ValidationError):
            await function.handle({})

    asyncio.run(_runner())


@pytest.mark.parametrize("timeframe", ["1H", "1D", "1M", "YTD"])
def test_missing_history_draws_line_from_reported_change(timeframe) -> None:
    """Without history the quote's own change implies a two-point line."""

    async def _runner() -> None:
        provider = FakeQuoteProvider(
            quotes={"GGAL.BA": {"regularMarketPrice": 4500.0, "regularMarketChangePercent": 5.0}},
            history={"GGAL.BA": []},
        )
        function = ArgentinaMarketFunction(provider, MarketCacheRepository(None), clock=FakeClock())

        response = await function.handle({"timeframe": timeframe, "ticker": "GGAL"})

        stock = response.stocks[0]
        assert stock.percent_change == pytest.approx(5.0)
        assert len(stock.sparkline) == 2
        assert stock.sparkline[0].value == pytest.approx(4500.0 / 1.05)
        assert stock.sparkline[-1].value == 4500.0

    asyncio.run(_runner())


def test_missing_history_and_change_gives_flat_line() -> None:
    async def _runner() -> None:
        provider = FakeQuoteProvider(quotes={"PAMP.BA": {"regularMarketPrice": 2800.0}})
        function = ArgentinaMarketFunction(provider, MarketCacheRepository(None), clock=FakeClock())

        response = await function.handle({"timeframe": "1W", "ticker": "PAMP"})

        stock = response.stocks[0]
        assert stock.percent_change == 0.0
        assert [p.value for p in stock.sparkline] == [2800.0, 2800.0]

    asyncio.run(_runner())

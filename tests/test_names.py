"""Tests for company name resolution and its lookup budget."""

from __future__ import annotations

import asyncio

from fakes import FakeClock, FakeMarketProvider, FakeSearchProvider
from marketboard.cache import TTLCache
from marketboard.exceptions import ProviderSoftError, ProviderTransportError
from marketboard.market.models import Market
from marketboard.market.names import CompanyNameResolver, LookupBudget
from marketboard.market.schemas import Stock


def _stock(ticker: str, name: str | None = None) -> Stock:
    return Stock(id=ticker, ticker=ticker, company_name=name, market=Market.US, price=1.0, percent_change=0.0)


def test_ttl_cache_expires_but_keeps_stale_copy() -> None:
    """Expired entries disappear from ``get`` but stay readable as stale."""

    clock = FakeClock()
    cache = TTLCache(clock)
    cache.set("k", "v", ttl_seconds=10)

    assert cache.get("k") == "v"
    clock.advance(10)
    assert cache.get("k") is None
    assert cache.get_stale("k") == "v"
    assert cache.size == 1

    cache.clear()
    assert cache.get_stale("k") is None


def test_hint_and_static_table_need_no_network() -> None:
    async def _runner() -> None:
        search = FakeSearchProvider()
        market = FakeMarketProvider()
        resolver = CompanyNameResolver(search, market)

        assert await resolver.resolve_company_name("zzz", hint="  Zed Corp ") == "Zed Corp"
        assert await resolver.resolve_company_name("nvda") == "NVIDIA Corporation"
        assert search.calls == []
        assert market.calls == []

    asyncio.run(_runner())


def test_search_requires_exact_symbol_and_skips_derivatives() -> None:
    """Option and crypto matches are ignored; the exact equity wins."""

    async def _runner() -> None:
        search = FakeSearchProvider(
            {
                "ACME": [
                    {"symbol": "ACME240119C00010000", "quoteType": "OPTION", "longname": "ACME call"},
                    {"symbol": "ACME", "quoteType": "CRYPTOCURRENCY", "shortname": "Acme coin"},
                    {"symbol": "ACMEX", "quoteType": "EQUITY", "longname": "Acme Extra"},
                    {"symbol": "ACME", "quoteType": "EQUITY", "longname": "", "shortname": "Acme Corp"},
                ]
            }
        )
        market = FakeMarketProvider()
        resolver = CompanyNameResolver(search, market)

        assert await resolver.resolve_company_name("ACME", budget=LookupBudget(2)) == "Acme Corp"
        assert market.count("overview") == 0

    asyncio.run(_runner())


def test_network_failures_fall_through_to_ticker() -> None:
    async def _runner() -> None:
        search = FakeSearchProvider({"ABCD": ProviderTransportError("yahoo_search", "HTTP 500")})
        market = FakeMarketProvider(overviews={"ABCD": ProviderSoftError("alpha_vantage", "rate limited")})
        resolver = CompanyNameResolver(search, market)

        assert await resolver.resolve_company_name("ABCD", budget=LookupBudget(5)) == "ABCD"
        assert search.calls == ["ABCD"]
        assert market.count("overview") == 1

    asyncio.run(_runner())


def test_resolved_names_are_cached_for_a_day() -> None:
    async def _runner() -> None:
        clock = FakeClock()
        search = FakeSearchProvider({"RSVR": [{"symbol": "RSVR", "quoteType": "EQUITY", "longname": "Reservoir Media, Inc."}]})
        resolver = CompanyNameResolver(search, FakeMarketProvider(), cache=TTLCache(clock))

        assert await resolver.resolve_company_name("RSVR") == "Reservoir Media, Inc."
        assert await resolver.resolve_company_name("RSVR", budget=LookupBudget(0)) == "Reservoir Media, Inc."
        assert search.calls == ["RSVR"]

        clock.advance(86400)
        assert await resolver.resolve_company_name("RSVR", budget=LookupBudget(0)) == "RSVR"

    asyncio.run(_runner())


def test_enrich_spends_budget_in_rank_order() -> None:
    """Each search or overview call costs one lookup; later rows keep their ticker."""

    async def _runner() -> None:
        search = FakeSearchProvider()
        market = FakeMarketProvider(overviews={"RSVRW": {"Name": "Reservoir Media Warrant"}})
        resolver = CompanyNameResolver(search, market)

        enriched = await resolver.enrich([_stock("RSVRW"), _stock("ALBT"), _stock("AAPL")], max_lookups=2)

        assert [s.company_name for s in enriched] == ["Reservoir Media Warrant", "ALBT", "Apple Inc."]
        assert search.calls == ["RSVRW"]
        assert market.calls == [("overview", "RSVRW")]

    asyncio.run(_runner())


def test_enrich_with_zero_budget_makes_no_calls() -> None:
    async def _runner() -> None:
        search = FakeSearchProvider()
        market = FakeMarketProvider()
        resolver = CompanyNameResolver(search, market)

        enriched = await resolver.enrich([_stock("QQQX"), _stock("MSFT", "Microsoft")], max_lookups=0)

        assert [s.company_name for s in enriched] == ["QQQX", "Microsoft"]
        assert search.calls == []
        assert market.calls == []

    asyncio.run(_runner())

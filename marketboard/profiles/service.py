import time
from datetime import UTC, datetime
from typing import Any

import structlog

from marketboard.cache import Clock, TTLCache
from marketboard.exceptions import UpstreamUnavailableError
from marketboard.functions.client import (
    ARGENTINA_PROFILE_FUNCTION,
    FunctionClient,
    map_function_source,
)
from marketboard.market.fields import clean_text, positive_number
from marketboard.market.models import DataSource, Market
from marketboard.market.providers.base import MarketDataProvider
from marketboard.market.schemas import CompanyProfile

logger = structlog.get_logger()

CACHEABLE_SOURCES = {DataSource.LIVE, DataSource.CACHE}


class CompanyProfileService:
    def __init__(
        self,
        provider: MarketDataProvider,
        functions: FunctionClient,
        clock: Clock = time.time,
        cache_ttl_seconds: int = 43200,
    ) -> None:
        self._provider = provider
        self._functions = functions
        self._clock = clock
        self._cache = TTLCache(clock)
        self._cache_ttl_seconds = cache_ttl_seconds

    def _now_iso(self) -> str:
        return datetime.fromtimestamp(self._clock(), tz=UTC).isoformat()

    async def get_profile(
        self, ticker: str, market: Market, fallback_name: str | None = None
    ) -> CompanyProfile:
        """Profile for ``ticker``; never raises, degrading to a minimal UNAVAILABLE profile."""
        ticker = ticker.upper().strip()
        key = (market, ticker)

        cached = self._cache.get(key)
        if cached is not None:
            return cached.model_copy(update={"source": DataSource.CACHE})

        try:
            if market == Market.US:
                profile = await self._fetch_us(ticker, fallback_name)
            else:
                profile = await self._fetch_ar(ticker, fallback_name)
        except Exception as exc:
            logger.warning("company_profile_fetch_failed", ticker=ticker, market=market, error=str(exc))
            stale = self._cache.get_stale(key)
            if stale is not None:
                return stale.model_copy(update={"source": DataSource.CACHE})
            return self._minimal(ticker, market, fallback_name)

        if profile.source in CACHEABLE_SOURCES:
            self._cache.set(key, profile, self._cache_ttl_seconds)
        return profile

    def _minimal(self, ticker: str, market: Market, fallback_name: str | None) -> CompanyProfile:
        return CompanyProfile(
            ticker=ticker,
            market=market,
            company_name=clean_text(fallback_name) or ticker,
            source=DataSource.UNAVAILABLE,
            last_updated_at=self._now_iso(),
        )

    async def _fetch_us(self, ticker: str, fallback_name: str | None) -> CompanyProfile:
        overview = await self._provider.get_overview(ticker)
        return CompanyProfile(
            ticker=ticker,
            market=Market.US,
            company_name=clean_text(overview.get("Name")) or clean_text(fallback_name) or ticker,
            description=clean_text(overview.get("Description")),
            sector=clean_text(overview.get("Sector")),
            industry=clean_text(overview.get("Industry")),
            market_cap=positive_number(overview.get("MarketCapitalization")),
            exchange=clean_text(overview.get("Exchange")),
            country=clean_text(overview.get("Country")),
            website=clean_text(overview.get("OfficialSite")),
            source=DataSource.LIVE,
            last_updated_at=self._now_iso(),
        )

    async def _fetch_ar(self, ticker: str, fallback_name: str | None) -> CompanyProfile:
        payload = await self._functions.invoke(ARGENTINA_PROFILE_FUNCTION, {"ticker": ticker})
        raw: Any = payload.get("profile")
        if not isinstance(raw, dict):
            raise UpstreamUnavailableError(f"No company profile returned for {ticker}")

        return CompanyProfile(
            ticker=ticker,
            market=Market.AR,
            company_name=clean_text(raw.get("companyName")) or clean_text(fallback_name) or ticker,
            description=clean_text(raw.get("description")),
            sector=clean_text(raw.get("sector")),
            industry=clean_text(raw.get("industry")),
            market_cap=positive_number(raw.get("marketCap")),
            exchange=clean_text(raw.get("exchange")),
            country=clean_text(raw.get("country")),
            website=clean_text(raw.get("website")),
            source=map_function_source(payload.get("source")),
            last_updated_at=clean_text(raw.get("lastUpdatedAt")) or self._now_iso(),
        )

"""
Service wiring.

Services own their in-memory caches, so each is built once per process and
shared across requests. ``reset_services`` drops them (used on shutdown and
in tests).
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from marketboard.config import settings
from marketboard.database import get_optional_db
from marketboard.details.service import DetailService
from marketboard.functions.argentina_market import ArgentinaMarketFunction
from marketboard.functions.argentina_profile import ArgentinaProfileFunction
from marketboard.functions.client import (
    ARGENTINA_MARKET_FUNCTION,
    ARGENTINA_PROFILE_FUNCTION,
    FunctionClient,
    HttpFunctionClient,
    LocalFunctionClient,
)
from marketboard.functions.repository import MarketCacheRepository, ProfileCacheRepository
from marketboard.fx.service import FxService
from marketboard.market.names import CompanyNameResolver
from marketboard.market.providers.alpha_vantage import AlphaVantageProvider
from marketboard.market.providers.yahoo_finance import YahooFinanceProvider
from marketboard.market.providers.yahoo_search import YahooSearchProvider
from marketboard.profiles.service import CompanyProfileService
from marketboard.rankings.service import ArRankingService, UsRankingService


@lru_cache
def get_market_provider() -> AlphaVantageProvider:
    return AlphaVantageProvider(
        settings.alpha_vantage_api_key,
        base_url=settings.alpha_vantage_url,
        timeout=settings.http_timeout_seconds,
    )


@lru_cache
def get_quote_provider() -> YahooFinanceProvider:
    return YahooFinanceProvider(timeout=settings.http_timeout_seconds)


@lru_cache
def get_name_resolver() -> CompanyNameResolver:
    return CompanyNameResolver(
        YahooSearchProvider(settings.yahoo_search_url, timeout=settings.http_timeout_seconds),
        get_market_provider(),
        ttl_seconds=settings.company_name_ttl_seconds,
    )


def get_market_cache_repo() -> MarketCacheRepository:
    return MarketCacheRepository(get_optional_db())


def get_profile_cache_repo() -> ProfileCacheRepository:
    return ProfileCacheRepository(get_optional_db())


@lru_cache
def get_argentina_market_function() -> ArgentinaMarketFunction:
    return ArgentinaMarketFunction(
        get_quote_provider(),
        get_market_cache_repo(),
        cache_ttl_seconds=settings.ar_market_cache_ttl_seconds,
    )


@lru_cache
def get_argentina_profile_function() -> ArgentinaProfileFunction:
    return ArgentinaProfileFunction(
        get_quote_provider(),
        get_profile_cache_repo(),
        cache_ttl_seconds=settings.ar_profile_cache_ttl_seconds,
    )


@lru_cache
def get_function_client() -> FunctionClient:
    if settings.functions_url:
        return HttpFunctionClient(settings.functions_url, timeout=settings.http_timeout_seconds)
    return LocalFunctionClient(
        {
            ARGENTINA_MARKET_FUNCTION: get_argentina_market_function().handle,
            ARGENTINA_PROFILE_FUNCTION: get_argentina_profile_function().handle,
        }
    )


@lru_cache
def get_us_ranking_service() -> UsRankingService:
    return UsRankingService(
        get_market_provider(),
        get_name_resolver(),
        ranking_ttl_seconds=settings.ranking_cache_ttl_seconds,
        top_movers_ttl_seconds=settings.top_movers_ttl_seconds,
        pool_size=settings.top_movers_pool_size,
        name_lookup_budget=settings.name_lookup_budget,
        allow_mock_fallback=settings.allow_mock_fallback,
    )


@lru_cache
def get_ar_ranking_service() -> ArRankingService:
    return ArRankingService(
        get_function_client(),
        get_market_cache_repo(),
        allow_mock_fallback=settings.allow_mock_fallback,
    )


@lru_cache
def get_detail_service() -> DetailService:
    return DetailService(
        get_market_provider(),
        get_function_client(),
        cache_ttl_seconds=settings.detail_cache_ttl_seconds,
    )


@lru_cache
def get_company_profile_service() -> CompanyProfileService:
    return CompanyProfileService(
        get_market_provider(),
        get_function_client(),
        cache_ttl_seconds=settings.company_profile_ttl_seconds,
    )


@lru_cache
def get_fx_service() -> FxService:
    return FxService(
        settings.fx_url,
        timeout=settings.http_timeout_seconds,
        cache_ttl_seconds=settings.fx_cache_ttl_seconds,
    )


def reset_services() -> None:
    for factory in (
        get_market_provider,
        get_quote_provider,
        get_name_resolver,
        get_argentina_market_function,
        get_argentina_profile_function,
        get_function_client,
        get_us_ranking_service,
        get_ar_ranking_service,
        get_detail_service,
        get_company_profile_service,
        get_fx_service,
    ):
        factory.cache_clear()


UsRankingServiceDep = Annotated[UsRankingService, Depends(get_us_ranking_service)]
ArRankingServiceDep = Annotated[ArRankingService, Depends(get_ar_ranking_service)]
DetailServiceDep = Annotated[DetailService, Depends(get_detail_service)]
CompanyProfileServiceDep = Annotated[CompanyProfileService, Depends(get_company_profile_service)]
FxServiceDep = Annotated[FxService, Depends(get_fx_service)]
ArgentinaMarketFunctionDep = Annotated[
    ArgentinaMarketFunction, Depends(get_argentina_market_function)
]
ArgentinaProfileFunctionDep = Annotated[
    ArgentinaProfileFunction, Depends(get_argentina_profile_function)
]

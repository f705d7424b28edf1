import time
import uuid
from datetime import UTC, datetime
from typing import Any

import structlog

from marketboard.cache import Clock
from marketboard.exceptions import AppError, ValidationError
from marketboard.functions.argentina_market import parse_cached_at, parse_ticker
from marketboard.functions.repository import ProfileCacheRepository, row_to_profile, yahoo_symbol
from marketboard.functions.schemas import ProfileFunctionResponse
from marketboard.market.fields import clean_text, positive_number
from marketboard.market.models import (
    FUNCTION_SOURCE_CACHE,
    FUNCTION_SOURCE_CACHE_FALLBACK,
    FUNCTION_SOURCE_LIVE,
    DataSource,
    Market,
)
from marketboard.market.providers.base import QuoteProvider
from marketboard.market.schemas import CompanyProfile

logger = structlog.get_logger()


def _profile_from_fields(
    ticker: str, fields: dict[str, Any], last_updated_at: str
) -> CompanyProfile:
    return CompanyProfile(
        ticker=ticker,
        market=Market.AR,
        company_name=clean_text(fields.get("longName"))
        or clean_text(fields.get("shortName"))
        or ticker,
        description=clean_text(fields.get("longBusinessSummary")),
        sector=clean_text(fields.get("sector")),
        industry=clean_text(fields.get("industry")),
        market_cap=positive_number(fields.get("marketCap")),
        exchange=clean_text(fields.get("exchangeName"))
        or clean_text(fields.get("fullExchangeName"))
        or clean_text(fields.get("exchange")),
        country=clean_text(fields.get("country")),
        website=clean_text(fields.get("website")),
        source=DataSource.LIVE,
        last_updated_at=last_updated_at,
    )


class ArgentinaProfileFunction:
    """Company profile for one BYMA ticker: quote summary, then basic quote, then cache."""

    def __init__(
        self,
        provider: QuoteProvider,
        repository: ProfileCacheRepository,
        clock: Clock = time.time,
        cache_ttl_seconds: int = 86400,
    ) -> None:
        self._provider = provider
        self._repository = repository
        self._clock = clock
        self._cache_ttl_seconds = cache_ttl_seconds

    async def handle(self, body: dict[str, Any]) -> ProfileFunctionResponse:
        request_id = uuid.uuid4().hex
        ticker = parse_ticker(body.get("ticker"))
        if ticker is None:
            raise ValidationError("Unsupported ticker: unknown")
        log = logger.bind(request_id=request_id, ticker=ticker)
        log.info("ar_profile_request_started")

        row = await self._repository.read(ticker)
        cached_at = parse_cached_at(row.get("cached_at")) if row else None
        if cached_at is not None and self._clock() - cached_at <= self._cache_ttl_seconds:
            log.info("ar_profile_request_completed", source=FUNCTION_SOURCE_CACHE)
            return ProfileFunctionResponse(
                source=FUNCTION_SOURCE_CACHE,
                stale=False,
                profile=row_to_profile(row, DataSource.CACHE),
                request_id=request_id,
            )

        try:
            profile = await self._fetch_live(ticker)
        except Exception as exc:
            log.warning("ar_profile_live_failed", error=str(exc))
            if row:
                log.info("ar_profile_request_completed", source=FUNCTION_SOURCE_CACHE_FALLBACK)
                return ProfileFunctionResponse(
                    source=FUNCTION_SOURCE_CACHE_FALLBACK,
                    stale=True,
                    profile=row_to_profile(row, DataSource.CACHE),
                    request_id=request_id,
                )
            log.error("ar_profile_request_completed", status=500)
            raise AppError("Company profile unavailable", code="PROFILE_UNAVAILABLE") from exc

        await self._repository.upsert(profile, profile.last_updated_at)
        log.info("ar_profile_request_completed", source=FUNCTION_SOURCE_LIVE)
        return ProfileFunctionResponse(
            source=FUNCTION_SOURCE_LIVE, stale=False, profile=profile, request_id=request_id
        )

    async def _fetch_live(self, ticker: str) -> CompanyProfile:
        symbol = yahoo_symbol(ticker)
        now_iso = datetime.fromtimestamp(self._clock(), tz=UTC).isoformat()
        try:
            summary = await self._provider.get_quote_summary(symbol)
        except Exception as exc:
            logger.info("ar_profile_summary_failed", ticker=ticker, error=str(exc))
            basic = await self._provider.get_basic_quote(symbol)
            return _profile_from_fields(ticker, basic, now_iso)
        return _profile_from_fields(ticker, summary, now_iso)

import time

import httpx
import structlog

from marketboard.cache import Clock, TTLCache
from marketboard.exceptions import FxUnavailableError, ProviderTransportError
from marketboard.fx.currency import conversion_factor, native_currency
from marketboard.fx.schemas import CurrencyConversion, FxRate
from marketboard.http import get_json
from marketboard.market.models import Currency, Market
from marketboard.market.series import to_finite_float

logger = structlog.get_logger()

PROVIDER = "fx"
RATE_KEY = "USD_ARS"
RATE_UNAVAILABLE_WARNING = "Exchange rate unavailable; showing prices in the native currency."


class FxService:
    def __init__(
        self,
        url: str = "https://open.er-api.com/v6/latest/USD",
        timeout: float = 10.0,
        clock: Clock = time.time,
        cache_ttl_seconds: int = 240,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._cache = TTLCache(clock)
        self._cache_ttl_seconds = cache_ttl_seconds
        self._client = client

    async def get_usd_ars_rate(self) -> FxRate:
        cached = self._cache.get(RATE_KEY)
        if cached is not None:
            return cached

        try:
            payload = await get_json(PROVIDER, self._url, timeout=self._timeout, client=self._client)
        except ProviderTransportError as exc:
            raise FxUnavailableError(f"FX request failed: {exc.message}") from exc

        rates = payload.get("rates") if isinstance(payload, dict) else None
        rate = to_finite_float(rates.get("ARS")) if isinstance(rates, dict) else None
        if rate is None or rate <= 0:
            logger.warning("fx_rate_invalid", rates_present=isinstance(rates, dict))
            raise FxUnavailableError("FX response missing valid ARS rate")

        result = FxRate(rate=rate)
        self._cache.set(RATE_KEY, result, self._cache_ttl_seconds)
        logger.info("fx_rate_refreshed", rate=rate)
        return result

    async def get_conversion(self, market: Market, selected: Currency) -> CurrencyConversion:
        native = native_currency(market)
        rate: float | None = None
        if selected != native:
            try:
                rate = (await self.get_usd_ars_rate()).rate
            except FxUnavailableError as exc:
                logger.warning("fx_conversion_without_rate", market=market, error=exc.message)

        factor = conversion_factor(market, selected, rate)
        return CurrencyConversion(
            market=market,
            native_currency=native,
            selected_currency=selected,
            rate=rate,
            factor=factor,
            warning=RATE_UNAVAILABLE_WARNING if factor is None else None,
        )

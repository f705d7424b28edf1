from typing import Any

import httpx
import structlog

from marketboard.exceptions import ProviderSoftError, ProviderTransportError
from marketboard.http import get_json
from marketboard.market.providers.base import MarketDataProvider
from marketboard.market.series import Granularity, provider_error_message

logger = structlog.get_logger()

PROVIDER = "alpha_vantage"


class AlphaVantageProvider(MarketDataProvider):
    """
    Alpha Vantage query endpoint, keyed by the ``function`` parameter.

    Quota exhaustion comes back as HTTP 200 with a ``Note``/``Information``/
    ``Error Message`` body. Time-series payloads are returned raw so callers can
    decode them; top movers and overview raise ``ProviderSoftError`` directly.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://www.alphavantage.co/query",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url
        self._timeout = timeout
        self._client = client

    async def _query(self, function: str, **params: Any) -> dict[str, Any]:
        query = {"function": function, "apikey": self._api_key, **params}
        data = await get_json(
            PROVIDER, self._base_url, params=query, timeout=self._timeout, client=self._client
        )
        if not isinstance(data, dict):
            raise ProviderTransportError(PROVIDER, f"{function} returned a non-object body")
        logger.debug("alpha_vantage_query", function=function, symbol=params.get("symbol"))
        return data

    @staticmethod
    def _raise_on_soft_error(function: str, payload: dict[str, Any]) -> None:
        message = provider_error_message(payload)
        if message is not None:
            logger.warning("alpha_vantage_soft_error", function=function, message=message)
            raise ProviderSoftError(PROVIDER, message)

    async def get_top_movers(self) -> dict[str, Any]:
        payload = await self._query("TOP_GAINERS_LOSERS")
        self._raise_on_soft_error("TOP_GAINERS_LOSERS", payload)
        return payload

    async def get_time_series(
        self, ticker: str, granularity: Granularity, full: bool = False
    ) -> dict[str, Any]:
        outputsize = "full" if full else "compact"
        if granularity == Granularity.intraday:
            return await self._query(
                "TIME_SERIES_INTRADAY", symbol=ticker, interval="5min", outputsize=outputsize
            )
        return await self._query("TIME_SERIES_DAILY", symbol=ticker, outputsize=outputsize)

    async def get_overview(self, ticker: str) -> dict[str, Any]:
        payload = await self._query("OVERVIEW", symbol=ticker)
        self._raise_on_soft_error("OVERVIEW", payload)
        return payload

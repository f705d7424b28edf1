from typing import Any

import httpx

from marketboard.exceptions import ProviderTransportError
from marketboard.http import get_json
from marketboard.market.providers.base import SymbolSearchProvider

PROVIDER = "yahoo_search"


class YahooSearchProvider(SymbolSearchProvider):
    def __init__(
        self,
        base_url: str = "https://query2.finance.yahoo.com/v1/finance/search",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url
        self._timeout = timeout
        self._client = client

    async def search(self, query: str) -> list[dict[str, Any]]:
        data = await get_json(
            PROVIDER,
            self._base_url,
            params={"q": query, "quotesCount": 6, "newsCount": 0},
            headers={"User-Agent": "Mozilla/5.0 (marketboard)"},
            timeout=self._timeout,
            client=self._client,
        )
        if not isinstance(data, dict):
            raise ProviderTransportError(PROVIDER, "search returned a non-object body")
        quotes = data.get("quotes")
        if not isinstance(quotes, list):
            return []
        return [quote for quote in quotes if isinstance(quote, dict)]

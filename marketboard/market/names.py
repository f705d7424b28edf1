"""Company display names for ranking rows.

Resolution walks an ordered list of strategies and stops at the first name:
static table, 24h in-memory cache, symbol search, company overview. Network
strategies draw from a per-batch ``LookupBudget`` so enrichment never eats the
provider quota needed for price history. Anything unresolved keeps its ticker.
"""

from abc import ABC, abstractmethod

import structlog

from marketboard.cache import TTLCache
from marketboard.market.fields import clean_text
from marketboard.market.providers.base import MarketDataProvider, SymbolSearchProvider
from marketboard.market.schemas import Stock

logger = structlog.get_logger()

STATIC_COMPANY_NAMES: dict[str, str] = {
    "AAPL": "Apple Inc.",
    "MSFT": "Microsoft Corporation",
    "NVDA": "NVIDIA Corporation",
    "GOOGL": "Alphabet Inc.",
    "GOOG": "Alphabet Inc.",
    "AMZN": "Amazon.com, Inc.",
    "META": "Meta Platforms, Inc.",
    "TSLA": "Tesla, Inc.",
    "BRK.B": "Berkshire Hathaway Inc.",
    "AVGO": "Broadcom Inc.",
    "JPM": "JPMorgan Chase & Co.",
    "V": "Visa Inc.",
    "MA": "Mastercard Incorporated",
    "UNH": "UnitedHealth Group Incorporated",
    "XOM": "Exxon Mobil Corporation",
    "JNJ": "Johnson & Johnson",
    "WMT": "Walmart Inc.",
    "PG": "The Procter & Gamble Company",
    "HD": "The Home Depot, Inc.",
    "KO": "The Coca-Cola Company",
    "PEP": "PepsiCo, Inc.",
    "COST": "Costco Wholesale Corporation",
    "ORCL": "Oracle Corporation",
    "CRM": "Salesforce, Inc.",
    "ADBE": "Adobe Inc.",
    "NFLX": "Netflix, Inc.",
    "AMD": "Advanced Micro Devices, Inc.",
    "INTC": "Intel Corporation",
    "CSCO": "Cisco Systems, Inc.",
    "QCOM": "QUALCOMM Incorporated",
    "IBM": "International Business Machines Corporation",
    "BAC": "Bank of America Corporation",
    "DIS": "The Walt Disney Company",
    "PLTR": "Palantir Technologies Inc.",
    "UBER": "Uber Technologies, Inc.",
    "PYPL": "PayPal Holdings, Inc.",
    "SHOP": "Shopify Inc.",
    "MELI": "MercadoLibre, Inc.",
    "F": "Ford Motor Company",
    "T": "AT&T Inc.",
    "SOFI": "SoFi Technologies, Inc.",
    "SMCI": "Super Micro Computer, Inc.",
    "MU": "Micron Technology, Inc.",
    "COIN": "Coinbase Global, Inc.",
    "MSTR": "MicroStrategy Incorporated",
}

EXCLUDED_QUOTE_TYPES = {"OPTION", "CRYPTOCURRENCY"}


class LookupBudget:
    """Counts network name lookups left in one enrichment batch."""

    def __init__(self, max_lookups: int) -> None:
        self.remaining = max(0, max_lookups)
        self.spent = 0

    def try_spend(self) -> bool:
        if self.remaining <= 0:
            return False
        self.remaining -= 1
        self.spent += 1
        return True


class NameStrategy(ABC):
    name: str = "strategy"
    network: bool = False

    @abstractmethod
    async def try_resolve(self, ticker: str) -> str | None: ...


class StaticTableStrategy(NameStrategy):
    name = "static"

    def __init__(self, table: dict[str, str]) -> None:
        self._table = table

    async def try_resolve(self, ticker: str) -> str | None:
        return self._table.get(ticker)


class CachedNameStrategy(NameStrategy):
    name = "cache"

    def __init__(self, cache: TTLCache) -> None:
        self._cache = cache

    async def try_resolve(self, ticker: str) -> str | None:
        return self._cache.get(ticker)


class SymbolSearchStrategy(NameStrategy):
    name = "search"
    network = True

    def __init__(self, provider: SymbolSearchProvider) -> None:
        self._provider = provider

    async def try_resolve(self, ticker: str) -> str | None:
        try:
            quotes = await self._provider.search(ticker)
        except Exception as exc:
            logger.warning("company_name_search_failed", ticker=ticker, error=str(exc))
            return None

        for quote in quotes:
            symbol = str(quote.get("symbol", "")).upper()
            quote_type = str(quote.get("quoteType", "")).upper()
            if symbol != ticker or quote_type in EXCLUDED_QUOTE_TYPES:
                continue
            name = clean_text(quote.get("longname")) or clean_text(quote.get("shortname"))
            if name:
                return name
        return None


class OverviewStrategy(NameStrategy):
    name = "overview"
    network = True

    def __init__(self, provider: MarketDataProvider) -> None:
        self._provider = provider

    async def try_resolve(self, ticker: str) -> str | None:
        try:
            payload = await self._provider.get_overview(ticker)
        except Exception as exc:
            logger.warning("company_name_overview_failed", ticker=ticker, error=str(exc))
            return None
        return clean_text(payload.get("Name"))


class CompanyNameResolver:
    def __init__(
        self,
        search_provider: SymbolSearchProvider,
        market_provider: MarketDataProvider,
        cache: TTLCache | None = None,
        ttl_seconds: int = 86400,
        static_names: dict[str, str] | None = None,
    ) -> None:
        self._cache = cache or TTLCache()
        self._ttl_seconds = ttl_seconds
        self._strategies: list[NameStrategy] = [
            StaticTableStrategy(static_names if static_names is not None else STATIC_COMPANY_NAMES),
            CachedNameStrategy(self._cache),
            SymbolSearchStrategy(search_provider),
            OverviewStrategy(market_provider),
        ]

    async def resolve_company_name(
        self,
        ticker: str,
        hint: str | None = None,
        budget: LookupBudget | None = None,
    ) -> str:
        ticker = ticker.upper().strip()
        hinted = clean_text(hint)
        if hinted:
            return hinted

        for strategy in self._strategies:
            if strategy.network and budget is not None and not budget.try_spend():
                break
            name = await strategy.try_resolve(ticker)
            if not name:
                continue
            if strategy.network:
                self._cache.set(ticker, name, self._ttl_seconds)
                logger.info("company_name_resolved", ticker=ticker, strategy=strategy.name)
            return name

        return ticker

    async def enrich(self, stocks: list[Stock], max_lookups: int) -> list[Stock]:
        """Fill ``company_name`` in rank order; higher-ranked rows get the budget first."""
        budget = LookupBudget(max_lookups)
        enriched: list[Stock] = []
        for stock in stocks:
            name = await self.resolve_company_name(stock.ticker, stock.company_name, budget)
            if name != stock.company_name:
                stock = stock.model_copy(update={"company_name": name})
            enriched.append(stock)

        logger.debug("company_names_enriched", rows=len(stocks), lookups=budget.spent)
        return enriched

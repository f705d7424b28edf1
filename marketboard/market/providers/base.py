from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from marketboard.market.schemas import SparklinePoint
from marketboard.market.series import Granularity


class MarketDataProvider(ABC):
    """US provider: top movers, raw time series and company overview."""

    @abstractmethod
    async def get_top_movers(self) -> dict[str, Any]: ...

    @abstractmethod
    async def get_time_series(
        self, ticker: str, granularity: Granularity, full: bool = False
    ) -> dict[str, Any]: ...

    @abstractmethod
    async def get_overview(self, ticker: str) -> dict[str, Any]: ...


class SymbolSearchProvider(ABC):
    @abstractmethod
    async def search(self, query: str) -> list[dict[str, Any]]: ...


class QuoteProvider(ABC):
    """Per-symbol quote, history and profile data (BYMA symbols via Yahoo)."""

    @abstractmethod
    async def get_quote(self, symbol: str) -> dict[str, Any]: ...

    @abstractmethod
    async def get_history(
        self, symbol: str, start: datetime, interval: str
    ) -> list[SparklinePoint]: ...

    @abstractmethod
    async def get_quote_summary(self, symbol: str) -> dict[str, Any]: ...

    @abstractmethod
    async def get_basic_quote(self, symbol: str) -> dict[str, Any]: ...
